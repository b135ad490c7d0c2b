"""
State Notification Primitives.

Each state component owns one slice of view state and tells its observers
when that slice changes. Observers never mutate component state; they only
read it (or forward the notification, e.g. to an SSE stream).
"""

from typing import Any, Callable, Dict, List

from pydantic import BaseModel, Field

from trailhub.config import StateEvent
from trailhub.core.logger import logger


class StateChange(BaseModel):
    """A single 'state changed' notification."""
    kind: StateEvent
    data: Dict[str, Any] = Field(default_factory=dict)

    def to_event(self) -> Dict[str, Any]:
        return {"type": self.kind.value, **self.data}


Listener = Callable[[StateChange], None]


class Observable:
    """Mixin giving a component a listener list and a `_notify` helper."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, kind: StateEvent, **data: Any) -> None:
        change = StateChange(kind=kind, data=data)
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as e:
                # A broken view must not undo a state change that already happened.
                logger.error(f"State listener failed on {kind.value}: {e}", exc_info=True)


class IdentityScope:
    """
    Generation counter for identity-scoped data.

    Components capture `token()` before a remote call and check
    `is_current(token)` before writing the response back. The Session Manager
    advances the generation on every identity change, so a response that
    belongs to a previous session is discarded instead of applied.
    """

    def __init__(self) -> None:
        self.generation = 0

    def token(self) -> int:
        return self.generation

    def advance(self) -> None:
        self.generation += 1

    def is_current(self, token: int) -> bool:
        return token == self.generation
