from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .db import Base, engine, get_engine_info
from .leaderboard import leaderboard_router
from .schemas import DatabaseStatus, UploadRun
from .services.data_store import get_latest_status, get_recent_logs, get_row_counts


logger = logging.getLogger(__name__)

# FastAPI instance serves the leaderboard frontend.
app = FastAPI(title="Step Leaderboard API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(leaderboard_router)


@app.on_event("startup")
def startup_event() -> None:
    Base.metadata.create_all(bind=engine)
    row_counts = get_row_counts()
    logger.info(
        "Step leaderboard ready (engine=%s, groups=%d, entries=%d)",
        get_engine_info().engine,
        row_counts.get("groups", 0),
        row_counts.get("leaderboard_entries", 0),
    )


@app.get("/health")
def health_check() -> dict:
    return {"status": "ok"}


@app.get("/admin/db/status", response_model=DatabaseStatus)
def get_database_status() -> DatabaseStatus:
    """Return metadata about the configured database and recent upload activity."""
    info = get_engine_info()
    row_counts = get_row_counts()
    latest = get_latest_status()
    last_update = latest.finished_at if latest and latest.finished_at else None
    last_duration = latest.duration_seconds if latest else None

    runs = [
        UploadRun(
            resource=log.resource,
            status=log.status,
            group_id=log.group_id,
            challenge_id=log.challenge_id,
            rows_succeeded=log.rows_succeeded,
            rows_failed=log.rows_failed,
            message=log.message,
            finished_at=log.finished_at,
            duration_seconds=log.duration_seconds,
        )
        for log in get_recent_logs(limit=20)
    ]

    return DatabaseStatus(
        engine=info.engine,
        row_counts=row_counts,
        last_update=last_update,
        last_duration_seconds=last_duration,
        recent_runs=runs,
    )
