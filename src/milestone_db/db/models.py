from __future__ import annotations


MILESTONE_COLLECTION_PREFIX = "m_"


def milestone_collection_name(collection_name: str) -> str:
    return f"{MILESTONE_COLLECTION_PREFIX}{collection_name}"
