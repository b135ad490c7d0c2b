"""
Session Manager.

Tracks the current identity and reacts to sign-in/sign-out transitions
coming from the auth collaborator. Components that hold identity-scoped data
register a transition hook and are reloaded (or cleared) through it.
"""

from typing import Awaitable, Callable, List, Optional

from trailhub.backend.base import AuthBackend
from trailhub.config import StateEvent
from trailhub.core.errors import BackendError, NotAuthenticatedError, ValidationError
from trailhub.core.logger import logger
from trailhub.core.models import AuthEvent, AuthSession, Identity, Profile
from trailhub.core.utils import display_name_for
from trailhub.state.observable import IdentityScope, Observable

TransitionHook = Callable[[Optional[Identity]], Awaitable[None]]


class SessionManager(Observable):
    """
    Owner of the current Identity.

    Attributes:
        identity (Optional[Identity]): The signed-in user, or None.
        display_name (str): Name shown in the header; follows profile edits.
    """

    def __init__(self, auth: AuthBackend, scope: IdentityScope):
        super().__init__()
        self.auth = auth
        self.scope = scope
        self.identity: Optional[Identity] = None
        self.display_name: str = ""
        self._hooks: List[TransitionHook] = []
        self._unsubscribe = auth.subscribe(self._on_auth_event)

    @property
    def is_signed_in(self) -> bool:
        return self.identity is not None

    def add_transition_hook(self, hook: TransitionHook) -> None:
        """Hooks are awaited, in order, after every identity change."""
        self._hooks.append(hook)

    def require_identity(self) -> Identity:
        if self.identity is None:
            raise NotAuthenticatedError()
        return self.identity

    async def initialize(self) -> Optional[Identity]:
        """Pick up an existing session, if the auth collaborator has one."""
        try:
            session = await self.auth.get_session()
        except BackendError as e:
            logger.warning(f"Session lookup failed, continuing signed out: {e}")
            return None

        if session is not None:
            await self._apply(session.identity)
        return self.identity

    async def sign_in(self, email: str, password: str) -> Identity:
        if not email or not password:
            raise ValidationError("Email and password are required.")
        session = await self.auth.sign_in(email.strip(), password)
        return session.identity

    async def sign_up(self, email: str, password: str, full_name: str = "") -> Optional[Identity]:
        if not email or not password:
            raise ValidationError("Email and password are required.")
        session = await self.auth.sign_up(email.strip(), password, full_name.strip())
        return session.identity if session else None

    async def sign_out(self) -> None:
        await self.auth.sign_out()

    def update_display_name(self, profile: Profile) -> None:
        """Follow a saved profile's name in the header."""
        if self.identity is None or profile.id != self.identity.id:
            return
        self.display_name = display_name_for(profile.full_name, self.identity.email)
        self._notify(StateEvent.SESSION, signed_in=True, display_name=self.display_name)

    def close(self) -> None:
        self._unsubscribe()

    async def _on_auth_event(self, event: AuthEvent, session: Optional[AuthSession]) -> None:
        if event == AuthEvent.SIGNED_IN and session is not None:
            await self._apply(session.identity)
        elif event == AuthEvent.SIGNED_OUT:
            await self._apply(None)

    async def _apply(self, identity: Optional[Identity]) -> None:
        # Advance first so any in-flight fetch from the old identity is stale.
        self.scope.advance()
        self.identity = identity

        if identity is None:
            logger.info("Signed out; clearing identity-scoped state")
            self.display_name = ""
            self._notify(StateEvent.SESSION, signed_in=False, display_name="")
        else:
            logger.info(f"Identity set: {identity.id}")
            self.display_name = identity.name
            self._notify(StateEvent.SESSION, signed_in=True, display_name=identity.name)

        for hook in list(self._hooks):
            await hook(identity)
