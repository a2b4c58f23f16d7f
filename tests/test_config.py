from __future__ import annotations

import pytest

from conftest import factory_for
from milestone_db.core.config import Settings, get_settings
from milestone_db.services.milestones import MilestoneStore


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("MONGO_URL", "mongodb://db.internal:27017/sharedb")
    monkeypatch.setenv("MILESTONE_DISABLE_INDEX_CREATION", "true")
    monkeypatch.setenv("MILESTONE_INTERVAL", "250")
    get_settings.cache_clear()

    settings = get_settings()
    get_settings.cache_clear()

    assert settings.mongo_url == "mongodb://db.internal:27017/sharedb"
    assert settings.disable_index_creation is True
    assert settings.milestone_interval == 250


def test_index_creation_enabled_by_default(monkeypatch):
    monkeypatch.delenv("MILESTONE_DISABLE_INDEX_CREATION", raising=False)
    assert Settings().disable_index_creation is False


def test_store_from_settings():
    settings = Settings(
        mongo_url="mongodb://localhost:27017/milestones",
        disable_index_creation=True,
        milestone_interval=50,
    )
    store = MilestoneStore.from_settings(settings)

    assert store.interval == 50
    assert not store.is_open
    assert store._indexes.should_create("m_books") is False


@pytest.mark.anyio
async def test_context_manager_closes_store(fake_db):
    async with MilestoneStore(factory_for(fake_db)) as store:
        assert await store.save("books", {"id": "a", "v": 1})
    assert fake_db.client.closed
    assert not store.is_open
