"""
Catalog Loader.

Fetches the trail listing and keeps it in display shape, together with a
loading/loaded/errored status the views render from.
"""

from enum import Enum
from typing import List, Optional

from pydantic import ValidationError as RecordError

from trailhub.backend.base import StoreBackend
from trailhub.config import TRAILS_TABLE, StateEvent
from trailhub.core.errors import BackendError
from trailhub.core.logger import logger
from trailhub.core.models import Trail
from trailhub.state.observable import Observable

LOAD_ERROR_MESSAGE = "Could not load hiking trails. Please try again."


class CatalogStatus(str, Enum):
    LOADING = "loading"
    LOADED = "loaded"
    ERRORED = "errored"


class CatalogLoader(Observable):
    """
    Attributes:
        status (CatalogStatus): Exactly one of loading, loaded, errored.
        trails (List[Trail]): Newest first. Empty unless status is loaded.
        error (Optional[str]): Readable message when status is errored.
    """

    def __init__(self, store: StoreBackend):
        super().__init__()
        self.store = store
        self.status = CatalogStatus.LOADING
        self.trails: List[Trail] = []
        self.error: Optional[str] = None
        self._request = 0

    async def fetch(self) -> List[Trail]:
        """
        (Re)load the catalog, replacing any previous result.

        Failures are not raised: the status becomes `errored` and the user
        retries by calling fetch again. When fetches overlap, only the latest
        one is applied.
        """
        self._request += 1
        request = self._request

        self.status = CatalogStatus.LOADING
        self.error = None
        self._notify(StateEvent.CATALOG, status=self.status.value)

        try:
            rows = await self.store.select(TRAILS_TABLE, order=("created_at", True))
        except BackendError as e:
            if request != self._request:
                return self.trails
            logger.error(f"Error loading hiking trails: {e}")
            self.status = CatalogStatus.ERRORED
            self.trails = []
            self.error = LOAD_ERROR_MESSAGE
            self._notify(StateEvent.CATALOG, status=self.status.value, error=self.error)
            return []

        if request != self._request:
            return self.trails

        trails: List[Trail] = []
        for row in rows:
            try:
                trails.append(Trail.from_record(row))
            except (RecordError, KeyError) as e:
                logger.warning(f"Skipping malformed trail record {row.get('id')!r}: {e}")

        self.trails = trails
        self.status = CatalogStatus.LOADED
        self._notify(StateEvent.CATALOG, status=self.status.value, count=len(trails))
        logger.info(f"Loaded {len(trails)} trails")
        return trails

    def get(self, trail_id: str) -> Optional[Trail]:
        for trail in self.trails:
            if trail.id == str(trail_id):
                return trail
        return None

    def countries(self) -> List[str]:
        """Distinct countries, in the order they first appear."""
        seen: List[str] = []
        for trail in self.trails:
            if trail.country and trail.country not in seen:
                seen.append(trail.country)
        return seen
