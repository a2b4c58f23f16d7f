from __future__ import annotations

import logging
import uuid
from typing import Any, Dict

from fastapi import FastAPI
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from milestone_db.api.routes import router as api_router
from milestone_db.core.config import get_settings
from milestone_db.core.errors import ClosedStore
from milestone_db.core.logging_config import setup_logging
from milestone_db.services.milestones import MilestoneStore


logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(title=settings.app_name, version=settings.app_version)


@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["x-request-id"] = request_id
    return response


@app.exception_handler(ClosedStore)
async def closed_store_handler(request: Request, exc: ClosedStore) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": "store_closed", "code": exc.code})


@app.get("/healthz")
async def healthz() -> Dict[str, Any]:
    return {"status": "ok"}


@app.get("/readyz")
async def readyz() -> Response:
    try:
        await app.state.milestones.open()
    except Exception as exc:
        logger.warning("Milestone store not ready: %s", exc)
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    return JSONResponse(content={"status": "ready"})


@app.on_event("startup")
async def startup_events() -> None:
    setup_logging(settings.log_level)
    # Tests install their own store before startup
    if getattr(app.state, "milestones", None) is None:
        app.state.milestones = MilestoneStore.from_settings(settings)


@app.on_event("shutdown")
async def shutdown_events() -> None:
    store: MilestoneStore | None = getattr(app.state, "milestones", None)
    if store is None:
        return
    error = await store.close()
    if error is not None:
        logger.warning("Milestone store closed with error: %s", error)


@app.get("/metrics")
async def metrics() -> Response:
    summary = app.state.milestones.metrics.summary()
    lines = [
        "# HELP milestone_operations_total Store operations by outcome",
        "# TYPE milestone_operations_total counter",
    ]
    for outcome in ("saved", "skipped", "hit", "miss", "error"):
        lines.append(f'milestone_operations_total{{outcome="{outcome}"}} {summary.get(outcome, 0)}')
    lines.append("# HELP milestone_index_creations_total Index creation requests issued")
    lines.append("# TYPE milestone_index_creations_total counter")
    lines.append(f'milestone_index_creations_total {summary.get("index_creations", 0)}')
    lines.append("# HELP milestone_latency_p95_ms 95th percentile operation latency in ms")
    lines.append("# TYPE milestone_latency_p95_ms gauge")
    lines.append(f'milestone_latency_p95_ms {summary.get("p95_latency_ms", 0.0)}')
    body = "\n".join(lines) + "\n"
    return Response(content=body, media_type="text/plain")


app.include_router(api_router)
