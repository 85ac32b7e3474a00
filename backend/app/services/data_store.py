from __future__ import annotations

import logging
from typing import Dict, List, Optional

from ..db import crud
from ..db import get_db_session
from ..db.models import DailyStep, Group, LeaderboardEntry, Participant, UploadLog, WeeklyChallenge


logger = logging.getLogger(__name__)

COUNTED_TABLES = (
    ("groups", Group),
    ("participants", Participant),
    ("weekly_challenges", WeeklyChallenge),
    ("leaderboard_entries", LeaderboardEntry),
    ("daily_steps", DailyStep),
    ("upload_logs", UploadLog),
)


def get_row_counts() -> Dict[str, int]:
    with get_db_session() as session:
        return {name: crud.get_row_count(session, model) for name, model in COUNTED_TABLES}


def get_recent_logs(limit: int = 10, group_id: Optional[str] = None) -> List[UploadLog]:
    with get_db_session() as session:
        group_ids = [group_id] if group_id else None
        return crud.get_recent_logs(session, limit=limit, group_ids=group_ids)


def get_latest_status(group_id: Optional[str] = None) -> Optional[UploadLog]:
    with get_db_session() as session:
        return crud.get_latest_upload(session, group_id)


def record_failed_upload(group_id: str, message: str, duration_seconds: float) -> None:
    """
    Log a rejected upload in its own session; the request session is rolled
    back when the error propagates.
    """
    logger.debug("Recording failed upload for group %s: %s", group_id, message)
    with get_db_session() as session:
        crud.record_upload_log(
            session,
            resource="csv_upload",
            status="error",
            message=message,
            group_id=group_id,
            rows_succeeded=0,
            rows_failed=None,
            duration_seconds=duration_seconds,
        )
