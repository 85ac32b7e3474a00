from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

# Pydantic models for the operational endpoints; leaderboard payloads live in
# backend.app.leaderboard.schemas.


class UploadRun(BaseModel):
    resource: str
    status: str
    group_id: Optional[str] = None
    challenge_id: Optional[str] = None
    rows_succeeded: Optional[int] = Field(default=None, ge=0)
    rows_failed: Optional[int] = Field(default=None, ge=0)
    message: Optional[str] = None
    finished_at: Optional[datetime] = None
    duration_seconds: Optional[float] = Field(default=None, ge=0)


class DatabaseStatus(BaseModel):
    engine: str
    row_counts: Dict[str, int] = Field(default_factory=dict)
    last_update: Optional[datetime] = None
    last_duration_seconds: Optional[float] = None
    recent_runs: List[UploadRun] = Field(default_factory=list)
