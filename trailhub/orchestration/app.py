"""
Application Root (The Orchestrator).

This module contains the TrailHubApp class, which composes the state
components for one visitor, wires identity transitions to the
identity-scoped loads, and refreshes dependent data after user actions.
"""

import asyncio
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError as RecordError

from trailhub.backend.base import AuthBackend, StorageBackend, StoreBackend
from trailhub.config import StateEvent
from trailhub.core.errors import BackendError, NotAuthenticatedError, ValidationError
from trailhub.core.logger import logger
from trailhub.core.models import (
    CommunityPost,
    CompletionRecord,
    HikePlan,
    Identity,
    Profile,
    Trail,
)
from trailhub.state.catalog import CatalogLoader
from trailhub.state.community import CommunityBoard, HikePlanner
from trailhub.state.completions import CompletionRecorder
from trailhub.state.favorites import FavoritesTracker
from trailhub.state.observable import IdentityScope, Listener, Observable
from trailhub.state.profile import ProfileStore
from trailhub.state.search import ALL, visible
from trailhub.state.session import SessionManager
from trailhub.state.stats import AggregateStatsReader


class TrailHubApp(Observable):
    """
    One visitor's view state.

    Attributes:
        session (SessionManager): Current identity and auth transitions.
        catalog (CatalogLoader): Trail listing and its load status.
        favorites (FavoritesTracker): Favorited trail ids.
        completions (CompletionRecorder): Completion records.
        profile (ProfileStore): Profile and avatar.
        stats (AggregateStatsReader): Aggregate counts.
        community (CommunityBoard): Local community posts.
        plans (HikePlanner): Local planned hikes.
    """

    def __init__(self, auth: AuthBackend, store: StoreBackend, storage: StorageBackend):
        super().__init__()
        self.scope = IdentityScope()
        self.session = SessionManager(auth, self.scope)
        self.catalog = CatalogLoader(store)
        self.favorites = FavoritesTracker(store, self.scope)
        self.completions = CompletionRecorder(store, self.scope)
        self.profile = ProfileStore(store, storage, self.scope)
        self.stats = AggregateStatsReader(store, self.scope)
        self.community = CommunityBoard()
        self.plans = HikePlanner()

        self.session.add_transition_hook(self._on_identity_change)

    @classmethod
    def from_backend(cls, backend: Any) -> "TrailHubApp":
        """Build from any object exposing `auth`, `store` and `storage`."""
        return cls(backend.auth, backend.store, backend.storage)

    # -------------------------
    # Lifecycle
    # -------------------------

    async def start(self) -> None:
        """Initial session lookup and catalog load, concurrently."""
        await asyncio.gather(self.session.initialize(), self.catalog.fetch())

    def close(self) -> None:
        self.session.close()

    def subscribe_all(self, listener: Listener) -> Callable[[], None]:
        """Subscribe one listener to every component (and to app-level errors)."""
        components: List[Observable] = [
            self, self.session, self.catalog, self.favorites, self.completions,
            self.profile, self.stats, self.community, self.plans,
        ]
        unsubscribers = [c.subscribe(listener) for c in components]

        def unsubscribe() -> None:
            for fn in unsubscribers:
                fn()

        return unsubscribe

    async def _on_identity_change(self, identity: Optional[Identity]) -> None:
        # Sign-in can switch users without a sign-out in between.
        self.favorites.clear()
        self.completions.clear()
        self.profile.clear()
        self.stats.clear()
        self.plans.clear()
        if identity is not None:
            await self.load_identity_data(identity)

    async def load_identity_data(self, identity: Identity) -> None:
        """Favorites, profile, stats and completions, concurrently."""
        names = ["favorites", "profile", "stats", "completions"]
        results = await asyncio.gather(
            self.favorites.load(identity),
            self.profile.load(identity),
            self.stats.refresh(identity),
            self.completions.load(identity),
            return_exceptions=True,
        )
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                self._report_error(f"Could not load your {name}.", result)
        if self.profile.profile is not None:
            self.session.update_display_name(self.profile.profile)

    def _report_error(self, message: str, error: Exception) -> None:
        logger.error(f"{message} ({error})")
        self._notify(StateEvent.ERROR, message=message)

    async def _refresh_after_action(self, identity: Identity, token: int, completions: bool = False) -> None:
        """Re-read stats (and completions) after a write, unless the identity changed meanwhile."""
        if not self.scope.is_current(token):
            logger.info(f"Identity changed during an action for {identity.id}; skipping refresh")
            return

        tasks = [self.stats.refresh(identity)]
        if completions:
            tasks.append(self.completions.load(identity))
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, BackendError):
                self._report_error("Saved, but could not refresh your stats.", result)
            elif isinstance(result, Exception):
                raise result

    # -------------------------
    # Browsing
    # -------------------------

    def visible_trails(self, query: str = "", difficulty: str = ALL, country: str = ALL) -> List[Trail]:
        return visible(self.catalog.trails, query, difficulty, country)

    def require_trail(self, trail_id: str) -> Trail:
        trail = self.catalog.get(trail_id)
        if trail is None:
            raise ValidationError(f"Unknown trail: {trail_id}")
        return trail

    # -------------------------
    # Actions
    # -------------------------

    async def toggle_favorite(self, trail_id: str) -> bool:
        identity = self.session.identity
        if identity is None:
            raise NotAuthenticatedError()
        token = self.scope.token()
        now_favorite = await self.favorites.toggle(identity, trail_id)
        await self._refresh_after_action(identity, token)
        return now_favorite

    async def save_completion(
        self,
        trail_id: str,
        rating: int,
        review: str = "",
        completed_at: Optional[date] = None,
        difficulty_tag: str = "",
        weather_tag: str = "",
        companions: str = "",
    ) -> CompletionRecord:
        identity = self.session.require_identity()
        trail = self.require_trail(trail_id)
        token = self.scope.token()
        record = await self.completions.save(
            identity, trail, rating, review, completed_at, difficulty_tag, weather_tag, companions
        )
        await self._refresh_after_action(identity, token, completions=True)
        return record

    async def save_profile(self, **fields: Any) -> Profile:
        identity = self.session.require_identity()
        current = self.profile.profile or Profile.default_for(identity)
        try:
            profile = Profile.model_validate({**current.model_dump(), **fields, "id": identity.id})
        except RecordError as e:
            raise ValidationError(f"Invalid profile: {e.errors()[0]['msg']}")
        saved = await self.profile.save(identity, profile)
        self.session.update_display_name(saved)
        return saved

    async def upload_avatar(self, image_bytes: bytes, filename: str, content_type: Optional[str] = None) -> str:
        identity = self.session.require_identity()
        return await self.profile.upload_avatar(identity, image_bytes, filename, content_type)

    def add_post(self, title: str, content: str) -> CommunityPost:
        return self.community.add_post(self.session.identity, self.session.display_name, title, content)

    def plan_hike(self, trail_id: str) -> HikePlan:
        identity = self.session.require_identity()
        return self.plans.plan(identity, self.require_trail(trail_id))

    # -------------------------
    # Views
    # -------------------------

    def me(self) -> Dict[str, Any]:
        """Snapshot of the identity-scoped state for the profile page."""
        identity = self.session.identity
        return {
            "signed_in": identity is not None,
            "display_name": self.session.display_name,
            "identity": identity.model_dump(mode="json") if identity else None,
            "profile": self.profile.profile.model_dump(mode="json") if self.profile.profile else None,
            "stats": self.stats.stats.model_dump(),
            "favorites": sorted(self.favorites.favorites),
            "completions": [c.model_dump(mode="json") for c in self.completions.completions],
            "plans": [p.model_dump(mode="json") for p in self.plans.plans],
        }
