"""
Backend Collaborator Interfaces (Abstract).

This module defines the three external collaborators the state components
talk to: authentication, the relational store, and object storage.
Implement these to connect TrailHub to a different backend; see
`trailhub.backend.supabase` for the HTTP implementation.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from trailhub.core.models import AuthEvent, AuthSession

# Equality filters, column -> value. Every filter the site issues is an `eq`.
Filters = Dict[str, Any]
# (column, descending)
Order = Tuple[str, bool]

AuthHandler = Callable[[AuthEvent, Optional[AuthSession]], Union[None, Awaitable[None]]]
Unsubscribe = Callable[[], None]


class AuthBackend(ABC):
    """Authentication provider."""

    @abstractmethod
    async def get_session(self) -> Optional[AuthSession]:
        """Return the current session, or None when nobody is signed in."""

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Sign in with email/password. Emits SIGNED_IN on success."""

    @abstractmethod
    async def sign_up(self, email: str, password: str, full_name: str = "") -> Optional[AuthSession]:
        """
        Register a new account.

        Returns the session when the provider signs the user in right away,
        None when the account still needs email confirmation.
        """

    @abstractmethod
    async def sign_out(self) -> None:
        """End the current session. Emits SIGNED_OUT."""

    @abstractmethod
    def subscribe(self, handler: AuthHandler) -> Unsubscribe:
        """Register a transition handler; returns a callable that removes it."""


class StoreBackend(ABC):
    """Relational table store."""

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        columns: str = "*",
        order: Optional[Order] = None,
    ) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def update(self, table: str, filters: Filters, fields: Dict[str, Any]) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def upsert(self, table: str, record: Dict[str, Any], on_conflict: str = "id") -> Dict[str, Any]:
        ...

    @abstractmethod
    async def delete(self, table: str, filters: Filters) -> None:
        ...

    @abstractmethod
    async def rpc(self, function: str, params: Dict[str, Any]) -> Any:
        """Call a server-side function (used for the aggregate stats query)."""


class StorageBackend(ABC):
    """Object storage."""

    @abstractmethod
    async def upload(self, bucket: str, path: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        ...

    @abstractmethod
    def get_public_url(self, bucket: str, path: str) -> str:
        ...
