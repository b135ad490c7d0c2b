"""
Aggregate Stats Reader.

The counts come from the store's aggregate function and are never derived
locally from the favorites set or the completion list.
"""

from typing import Any, Dict, Optional

from trailhub.backend.base import StoreBackend
from trailhub.config import STATS_RPC, StateEvent
from trailhub.core.logger import logger
from trailhub.core.models import AggregateStats, Identity
from trailhub.state.observable import IdentityScope, Observable


def _first_row(result: Any) -> Optional[Dict[str, Any]]:
    # Set-returning functions come back as a list, scalar-row ones as an object.
    if isinstance(result, list):
        return result[0] if result else None
    if isinstance(result, dict):
        return result
    return None


class AggregateStatsReader(Observable):

    def __init__(self, store: StoreBackend, scope: IdentityScope):
        super().__init__()
        self.store = store
        self.scope = scope
        self.stats = AggregateStats()

    async def refresh(self, identity: Identity) -> AggregateStats:
        token = self.scope.token()
        result = await self.store.rpc(STATS_RPC, {"user_uuid": identity.id})
        row = _first_row(result)
        stats = AggregateStats.from_record(row) if row else AggregateStats()

        if not self.scope.is_current(token):
            logger.info("Discarding stats response from a previous session")
            return stats

        self.stats = stats
        self._notify(StateEvent.STATS, **stats.model_dump())
        return stats

    def clear(self) -> None:
        self.stats = AggregateStats()
        self._notify(StateEvent.STATS, **self.stats.model_dump())
