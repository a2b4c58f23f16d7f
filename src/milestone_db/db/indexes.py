from __future__ import annotations

import logging
from typing import Any, Set

from pymongo import ASCENDING

from milestone_db.core.metrics import StoreMetrics


logger = logging.getLogger(__name__)

MILESTONE_INDEX_KEYS = [("id", ASCENDING), ("v", ASCENDING)]


class IndexProvisioner:
    """Creates the unique (id, v) index the first time a collection is used.

    Creating indexes on the fly is risky for a collection that already holds a lot
    of unindexed data: the build can lock up the database. Creation is therefore
    deferred to first use, remembered per collection for the life of the process,
    and can be switched off for operators who manage indexes themselves.

    The check-then-add is not locked. Two concurrent first accesses may both
    issue ``create_index``, which MongoDB treats as a no-op the second time.
    """

    def __init__(self, disabled: bool = False, metrics: StoreMetrics | None = None) -> None:
        self.disabled = disabled
        self.indexed: Set[str] = set()
        self._metrics = metrics
        if disabled:
            logger.info("Automatic milestone index creation is disabled")

    def should_create(self, collection_name: str) -> bool:
        return not self.disabled and collection_name not in self.indexed

    async def ensure(self, collection: Any, collection_name: str) -> None:
        if not self.should_create(collection_name):
            return
        logger.warning("Creating milestone index on %s", collection_name)
        await collection.create_index(MILESTONE_INDEX_KEYS, background=True, unique=True)
        self.indexed.add(collection_name)
        if self._metrics is not None:
            self._metrics.record_index_creation()
