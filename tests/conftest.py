from __future__ import annotations

import copy
import itertools
from typing import Any, Dict, List, Optional

import pytest

from milestone_db.services.milestones import MilestoneStore


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeClient:
    def __init__(self) -> None:
        self.closed = False
        self.close_error: Exception | None = None

    def close(self) -> None:
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


class FakeCollection:
    """Just enough of a motor collection for milestone documents."""

    _ids = itertools.count(1)

    def __init__(self, name: str) -> None:
        self.name = name
        self.docs: List[Dict[str, Any]] = []
        self.create_index_calls: List[tuple] = []
        self.create_index_error: Exception | None = None
        self.write_error: Exception | None = None
        self.writes = 0
        self.reads = 0

    async def create_index(self, keys, **options) -> str:
        self.create_index_calls.append((list(keys), options))
        if self.create_index_error is not None:
            raise self.create_index_error
        return "id_1_v_1"

    async def replace_one(self, filter: Dict[str, Any], replacement: Dict[str, Any], upsert: bool = False):
        self.writes += 1
        if self.write_error is not None:
            raise self.write_error
        for i, doc in enumerate(self.docs):
            if all(doc.get(k) == v for k, v in filter.items()):
                self.docs[i] = {"_id": doc["_id"], **copy.deepcopy(replacement)}
                return
        if upsert:
            self.docs.append({"_id": next(self._ids), **copy.deepcopy(replacement)})

    async def find_one(self, filter: Dict[str, Any], projection=None, sort=None) -> Optional[Dict[str, Any]]:
        self.reads += 1
        matches = [d for d in self.docs if self._matches(d, filter)]
        for key, direction in reversed(sort or []):
            matches.sort(key=lambda d: d[key], reverse=direction < 0)
        if not matches:
            return None
        found = copy.deepcopy(matches[0])
        if projection and projection.get("_id") == 0:
            found.pop("_id", None)
        return found

    @staticmethod
    def _matches(doc: Dict[str, Any], filter: Dict[str, Any]) -> bool:
        for key, cond in filter.items():
            if isinstance(cond, dict):
                if "$lte" in cond and not doc.get(key) <= cond["$lte"]:
                    return False
            elif doc.get(key) != cond:
                return False
        return True


class FakeDatabase:
    def __init__(self) -> None:
        self.client = FakeClient()
        self.collections: Dict[str, FakeCollection] = {}

    def get_collection(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    def index_requests(self) -> int:
        return sum(len(c.create_index_calls) for c in self.collections.values())

    def storage_calls(self) -> int:
        return sum(c.writes + c.reads for c in self.collections.values())


def factory_for(db: FakeDatabase):
    async def connect():
        return db

    return connect


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def store(fake_db) -> MilestoneStore:
    return MilestoneStore(factory_for(fake_db))
