from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Mapping, Optional, Set

from pymongo import DESCENDING

from milestone_db.core.config import Settings
from milestone_db.core.metrics import StoreMetrics
from milestone_db.db.connection import ConnectionManager, ConnectionSource
from milestone_db.db.indexes import IndexProvisioner
from milestone_db.db.models import milestone_collection_name
from milestone_db.services.events import EventChannel, StoreEvent


logger = logging.getLogger(__name__)


class MilestoneStore:
    """Stores milestone snapshots in MongoDB, one ``m_<collection>`` per collection.

    A milestone is a full snapshot of a document at version ``v``. Saving the same
    ``(id, v)`` twice overwrites the first copy. ``get`` returns the newest milestone
    whose version does not exceed the requested one.
    """

    def __init__(
        self,
        mongo: ConnectionSource,
        *,
        disable_index_creation: bool = False,
        interval: int | None = None,
        metrics: StoreMetrics | None = None,
        events: EventChannel | None = None,
        **options: Any,
    ) -> None:
        self.interval = interval
        self.metrics = metrics or StoreMetrics()
        self.events = events or EventChannel()
        self._connection = ConnectionManager(mongo, **options)
        self._indexes = IndexProvisioner(disabled=disable_index_creation, metrics=self.metrics)
        self._background: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "MilestoneStore":
        return cls(
            settings.mongo_url,
            disable_index_creation=settings.disable_index_creation,
            interval=settings.milestone_interval,
            serverSelectionTimeoutMS=settings.mongo_timeout_ms,
            **kwargs,
        )

    @property
    def is_open(self) -> bool:
        return self._connection.is_open

    async def open(self) -> None:
        await self._connection.open()

    async def __aenter__(self) -> "MilestoneStore":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        error = await self.close()
        if error is not None and exc_info[0] is None:
            raise error

    async def close(self) -> Optional[BaseException]:
        """Close the connection, returning the close error instead of raising it."""
        try:
            await self._connection.close()
        except Exception as exc:
            logger.warning("Error while closing milestone store: %s", exc)
            return exc
        return None

    async def save(self, collection_name: str, snapshot: Optional[Mapping[str, Any]]) -> bool:
        if not snapshot:
            self.metrics.record_operation("save", "skipped")
            return False

        start_ms = time.perf_counter() * 1000
        try:
            collection = await self._collection(collection_name)
            query = {"id": snapshot["id"], "v": snapshot["v"]}
            await collection.replace_one(query, dict(snapshot), upsert=True)
        except Exception:
            self.metrics.record_operation("save", "error")
            raise
        self.metrics.record_operation("save", "saved")
        self.metrics.record_latency(time.perf_counter() * 1000 - start_ms)
        logger.debug("Saved milestone %s v%s in %s", snapshot["id"], snapshot["v"], collection_name)
        return True

    def save_nowait(self, collection_name: str, snapshot: Optional[Mapping[str, Any]]) -> asyncio.Task:
        """Save in the background and publish the outcome on ``self.events``."""
        task = asyncio.create_task(self._save_and_publish(collection_name, snapshot))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def get(self, collection_name: str, id: str, version: int | None = None) -> Optional[Dict[str, Any]]:
        start_ms = time.perf_counter() * 1000
        try:
            collection = await self._collection(collection_name)
            query: Dict[str, Any] = {"id": id}
            if version is not None:
                query["v"] = {"$lte": version}
            snapshot = await collection.find_one(query, projection={"_id": 0}, sort=[("v", DESCENDING)])
        except Exception:
            self.metrics.record_operation("get", "error")
            raise
        self.metrics.record_latency(time.perf_counter() * 1000 - start_ms)

        if snapshot is None:
            self.metrics.record_operation("get", "miss")
            return None
        self.metrics.record_operation("get", "hit")
        if snapshot.get("m") is None:
            snapshot["m"] = None
        return snapshot

    async def _save_and_publish(self, collection_name: str, snapshot: Optional[Mapping[str, Any]]) -> None:
        try:
            saved = await self.save(collection_name, snapshot)
        except Exception as exc:
            await self.events.publish(StoreEvent(name="error", collection_name=collection_name, error=exc))
            return
        await self.events.publish(
            StoreEvent(
                name="save",
                collection_name=collection_name,
                snapshot=dict(snapshot) if snapshot else None,
                saved=saved,
            )
        )

    async def _collection(self, collection_name: str) -> Any:
        db = await self._connection.resolve()
        name = milestone_collection_name(collection_name)
        collection = db.get_collection(name)
        await self._indexes.ensure(collection, name)
        return collection
