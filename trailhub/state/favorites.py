"""
Favorites Tracker.

Holds the signed-in identity's favorited trail ids. A toggle inserts or
deletes the (identity, trail) mark in the store and only then updates the
local set.
"""

import asyncio
from typing import Dict, Optional, Set

from trailhub.backend.base import StoreBackend
from trailhub.config import FAVORITES_TABLE, StateEvent
from trailhub.core.errors import BackendError, NotAuthenticatedError, ToggleInProgressError
from trailhub.core.logger import logger
from trailhub.core.models import Identity
from trailhub.state.observable import IdentityScope, Observable


class FavoritesTracker(Observable):

    def __init__(self, store: StoreBackend, scope: IdentityScope):
        super().__init__()
        self.store = store
        self.scope = scope
        self.favorites: Set[str] = set()
        self._locks: Dict[str, asyncio.Lock] = {}

    def is_favorite(self, trail_id: str) -> bool:
        return str(trail_id) in self.favorites

    async def load(self, identity: Identity) -> Set[str]:
        token = self.scope.token()
        rows = await self.store.select(FAVORITES_TABLE, {"user_id": identity.id}, columns="course_id")
        if not self.scope.is_current(token):
            logger.info("Discarding favorites response from a previous session")
            return set(self.favorites)

        self.favorites = {str(row["course_id"]) for row in rows}
        self._notify(StateEvent.FAVORITES, favorites=sorted(self.favorites))
        return set(self.favorites)

    async def toggle(self, identity: Optional[Identity], trail_id: str) -> bool:
        """
        Flip the favorite mark for one trail.

        Args:
            identity (Optional[Identity]): The signed-in user.
            trail_id (str): The trail to (un)mark.

        Returns:
            bool: True if the trail is now a favorite.

        Raises:
            NotAuthenticatedError: No identity; the store is not contacted.
            ToggleInProgressError: A toggle for this trail is still in flight.
            BackendError: The store call failed; the local set is unchanged.
        """
        if identity is None:
            raise NotAuthenticatedError()

        trail_id = str(trail_id)
        lock = self._locks.setdefault(trail_id, asyncio.Lock())
        if lock.locked():
            raise ToggleInProgressError(trail_id)

        async with lock:
            token = self.scope.token()
            key = {"user_id": identity.id, "course_id": trail_id}
            currently = trail_id in self.favorites
            try:
                if currently:
                    await self.store.delete(FAVORITES_TABLE, key)
                else:
                    await self.store.insert(FAVORITES_TABLE, key)
            except BackendError as e:
                logger.error(f"Error toggling favorite {trail_id} for {identity.id}: {e}")
                raise

            if not self.scope.is_current(token):
                # Signed out (or switched user) while waiting; nothing to apply.
                return not currently

            if currently:
                self.favorites.discard(trail_id)
            else:
                self.favorites.add(trail_id)
            self._notify(StateEvent.FAVORITES, favorites=sorted(self.favorites), toggled=trail_id)
            return not currently

    def clear(self) -> None:
        self.favorites = set()
        self._notify(StateEvent.FAVORITES, favorites=[])
