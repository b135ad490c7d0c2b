"""
Completion Recorder.

Saves one completion record per (identity, trail): an existing record is
updated in place, otherwise a new one is inserted. Also keeps the identity's
list of completed trails for the profile page.

Known limitation: the existence check and the write are two store calls.
They are serialized per (identity, trail) inside this process, but two
clients saving the same pair at the same moment can still both insert.
"""

import asyncio
from datetime import date
from typing import Dict, List, Optional, Tuple, Union

from pydantic import ValidationError as RecordError

from trailhub.backend.base import StoreBackend
from trailhub.config import COMPLETIONS_TABLE, MAX_RATING, MIN_RATING, StateEvent
from trailhub.core.errors import BackendError, NotAuthenticatedError, ValidationError
from trailhub.core.logger import logger
from trailhub.core.models import CompletionRecord, Identity, Trail
from trailhub.state.observable import IdentityScope, Observable

# Completion rows joined with the trail columns the list shows.
LIST_COLUMNS = """
    *,
    hiking_courses (
        name,
        location,
        country,
        difficulty,
        distance_km,
        image_url
    )
"""


def validate_rating(rating: object) -> int:
    """Ratings are whole stars from 1 to 5; 0 means the user never picked one."""
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError("Rating must be a whole number of stars.")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(f"Please choose a rating between {MIN_RATING} and {MAX_RATING}.")
    return rating


class CompletionRecorder(Observable):

    def __init__(self, store: StoreBackend, scope: IdentityScope):
        super().__init__()
        self.store = store
        self.scope = scope
        self.completions: List[CompletionRecord] = []
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}

    async def save(
        self,
        identity: Optional[Identity],
        trail: Union[Trail, str],
        rating: int,
        review: str = "",
        completed_at: Optional[date] = None,
        difficulty_tag: str = "",
        weather_tag: str = "",
        companions: str = "",
    ) -> CompletionRecord:
        """
        Record (or re-record) that `identity` completed `trail`.

        Validation happens before any store call. Observers are notified on
        success so aggregate stats can be refreshed.

        Raises:
            ValidationError: Rating outside 1-5, or a completion date in the future.
            NotAuthenticatedError: No identity.
            BackendError: The lookup or the write failed.
        """
        validate_rating(rating)
        if identity is None:
            raise NotAuthenticatedError()

        completed_at = completed_at or date.today()
        if completed_at > date.today():
            raise ValidationError("Completion date cannot be in the future.")

        trail_id = trail.id if isinstance(trail, Trail) else str(trail)
        record = CompletionRecord(
            user_id=identity.id,
            trail_id=trail_id,
            rating=rating,
            review=review.strip(),
            completed_at=completed_at,
            difficulty_experienced=difficulty_tag,
            weather=weather_tag,
            companions=companions.strip(),
        )

        lock = self._locks.setdefault((identity.id, trail_id), asyncio.Lock())
        async with lock:
            try:
                existing = await self.store.select(
                    COMPLETIONS_TABLE,
                    {"user_id": identity.id, "course_id": trail_id},
                    columns="id",
                )
                if existing:
                    record.id = str(existing[0]["id"])
                    await self.store.update(COMPLETIONS_TABLE, {"id": existing[0]["id"]}, record.to_fields())
                    logger.info(f"Updated completion {record.id} ({identity.id}, {trail_id})")
                else:
                    row = await self.store.insert(
                        COMPLETIONS_TABLE,
                        {"user_id": identity.id, "course_id": trail_id, **record.to_fields()},
                    )
                    if row.get("id") is not None:
                        record.id = str(row["id"])
                    logger.info(f"Inserted completion ({identity.id}, {trail_id})")
            except BackendError as e:
                logger.error(f"Error saving completion ({identity.id}, {trail_id}): {e}")
                raise

        self._notify(StateEvent.COMPLETIONS, saved=trail_id, rating=rating)
        return record

    async def load(self, identity: Identity) -> List[CompletionRecord]:
        """The identity's completions, most recent first."""
        token = self.scope.token()
        rows = await self.store.select(
            COMPLETIONS_TABLE,
            {"user_id": identity.id},
            columns=LIST_COLUMNS,
            order=("completed_at", True),
        )
        if not self.scope.is_current(token):
            logger.info("Discarding completions response from a previous session")
            return list(self.completions)

        completions: List[CompletionRecord] = []
        for row in rows:
            try:
                completions.append(CompletionRecord.from_record(row))
            except (RecordError, KeyError) as e:
                logger.warning(f"Skipping malformed completion record {row.get('id')!r}: {e}")
        self.completions = completions
        self._notify(StateEvent.COMPLETIONS, count=len(self.completions))
        return list(self.completions)

    def clear(self) -> None:
        self.completions = []
        self._notify(StateEvent.COMPLETIONS, count=0)
