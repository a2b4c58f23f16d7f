from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from milestone_db.services.milestones import MilestoneStore


router = APIRouter(prefix="/v1")


def get_store(request: Request) -> MilestoneStore:
    return request.app.state.milestones


class SnapshotBody(BaseModel):
    # Snapshots are opaque; unknown fields are stored as given
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)
    v: int = Field(..., ge=0)
    type: Optional[str] = None
    data: Any = None
    m: Any = None


class SaveResponse(BaseModel):
    saved: bool


@router.put("/milestones/{collection}", response_model=SaveResponse)
async def save_milestone(collection: str, body: SnapshotBody, request: Request) -> Any:
    saved = await get_store(request).save(collection, body.model_dump())
    return SaveResponse(saved=saved)


@router.get("/milestones/{collection}/{doc_id}")
async def get_milestone(
    collection: str,
    doc_id: str,
    request: Request,
    version: Optional[int] = Query(default=None, ge=0),
) -> Dict[str, Any]:
    snapshot = await get_store(request).get(collection, doc_id, version)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="not_found")
    return snapshot
