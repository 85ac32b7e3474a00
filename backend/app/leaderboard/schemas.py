from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    created_by: str = Field(..., min_length=1)
    owner_name: str = Field(..., min_length=1)
    owner_email: Optional[str] = None


class GroupJoin(BaseModel):
    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    email: Optional[str] = None


class GroupOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    created_by: Optional[str] = None
    is_active: bool = True
    created_at: datetime


class ParticipantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    group_id: str
    user_id: Optional[str] = None
    name: str
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    joined_at: datetime
    entry_count: int = Field(default=0, ge=0)


class WeekOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    week_number: int = Field(..., ge=1, le=53)
    year: int
    week_start_date: date
    week_end_date: date
    title: Optional[str] = None


class ManualEntryRequest(BaseModel):
    name: str = Field(..., min_length=1)
    steps: int = Field(..., ge=0)
    distance: Optional[float] = Field(default=None, ge=0)
    challenge_id: Optional[str] = None
    entry_date: Optional[date] = None


class EntryUpdateRequest(BaseModel):
    participant_id: str = Field(..., min_length=1)
    steps: int = Field(..., ge=0)
    distance: Optional[float] = Field(default=None, ge=0)


class EntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    challenge_id: str
    participant_id: str
    participant_name: Optional[str] = None
    steps: int = Field(..., ge=0)
    distance: float = Field(..., ge=0)
    points: int = Field(..., ge=0)
    rank: Optional[int] = Field(default=None, ge=1)


class ParticipantEntryOut(EntryOut):
    week: WeekOut


class WeekSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    top_performer: Optional[str] = None
    top_steps: int = Field(default=0, ge=0)
    active_participants: int = Field(default=0, ge=0)
    total_steps: int = Field(default=0, ge=0)
    total_distance: float = Field(default=0.0, ge=0)
    average_steps: int = Field(default=0, ge=0)


class WeeklyLeaderboardResponse(BaseModel):
    week: Optional[WeekOut] = None
    entries: List[EntryOut] = Field(default_factory=list)
    summary: WeekSummaryOut


class OverallStandingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    participant_id: str
    name: str
    email: Optional[str] = None
    total_points: int = Field(..., ge=0)
    total_steps: int = Field(..., ge=0)
    total_distance: float = Field(..., ge=0)
    week_count: int = Field(..., ge=0)
    rank: int = Field(..., ge=1)


class OverallSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    champion: Optional[str] = None
    champion_points: int = Field(default=0, ge=0)
    total_participants: int = Field(default=0, ge=0)
    total_steps: int = Field(default=0, ge=0)
    total_distance: float = Field(default=0.0, ge=0)
    average_steps: int = Field(default=0, ge=0)
    most_weeks_participant: Optional[str] = None
    most_weeks: int = Field(default=0, ge=0)


class OverallLeaderboardResponse(BaseModel):
    rows: List[OverallStandingOut] = Field(default_factory=list)
    summary: OverallSummaryOut


class ParticipantStatsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    participant_id: str
    name: str
    total_steps: int = Field(..., ge=0)
    total_distance: float = Field(..., ge=0)
    total_points: int = Field(..., ge=0)
    weeks_participated: int = Field(..., ge=0)
    average_steps: int = Field(..., ge=0)
    best_week_steps: int = Field(..., ge=0)
    current_rank: Optional[int] = None


UploadStatus = Literal["success", "partial", "error"]


class UploadSummary(BaseModel):
    challenge_id: str
    week_number: int
    year: int
    week_start_date: date
    week_end_date: date
    week_created: bool
    status: UploadStatus
    succeeded: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)
    participants_created: int = Field(default=0, ge=0)
    daily_rows: int = Field(default=0, ge=0)
    skipped_dates: List[date] = Field(default_factory=list)
    entries_ranked: int = Field(default=0, ge=0)


class RecalculationSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    challenge_id: str
    updated: List[int] = Field(default_factory=list)
    failed: Dict[int, str] = Field(default_factory=dict)


class DeletionSummary(BaseModel):
    participant_id: str
    affected_weeks: List[str] = Field(default_factory=list)
    daily_rows_deleted: int = Field(default=0, ge=0)
    entries_deleted: int = Field(default=0, ge=0)


class LeaderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    participant_id: Optional[str] = None
    name: str
    value: float = 0.0


class DailyChampionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    participant_id: str
    name: str
    date: date
    steps: int = Field(..., ge=0)


class DayTotalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: date
    steps: int = Field(..., ge=0)


class DailyWinnerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: date
    participant_id: Optional[str] = None
    name: Optional[str] = None
    steps: int = Field(..., ge=0)


class WinCountOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    participant_id: str
    name: str
    wins: int = Field(..., ge=0)


class DedicationRateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    participant_id: str
    name: str
    active_days: int = Field(..., ge=0)
    rate: float = Field(..., ge=0)


class WinStreakOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    participant_id: Optional[str] = None
    name: str
    length: int = Field(..., ge=0)
    start: Optional[date] = None
    end: Optional[date] = None


class AnalyticsSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    participant_count: int = Field(..., ge=0)
    day_count: int = Field(..., ge=0)
    total_steps: int = Field(..., ge=0)
    daily_champion: Optional[DailyChampionOut] = None
    most_consistent: LeaderOut
    biggest_improver: LeaderOut
    weekend_leader: LeaderOut
    weekday_leader: LeaderOut
    most_active_day: Optional[DayTotalOut] = None
    participation_rate: float = Field(..., ge=0)
    momentum: Literal["up", "down", "steady"]
    goal_achievement_rate: float = Field(..., ge=0)
    daily_winners: List[DailyWinnerOut] = Field(default_factory=list)
    daily_wins: Dict[str, WinCountOut] = Field(default_factory=dict)


class WeeklyAnalyticsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    challenge_id: Optional[str] = None
    summary: AnalyticsSummaryOut


class AllTimeAnalyticsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    summary: AnalyticsSummaryOut
    weeks_recorded: int = Field(..., ge=0)
    longest_win_streak: WinStreakOut
    consistency_champion: LeaderOut
    dedication_leader: LeaderOut
    dedication_rates: Dict[str, DedicationRateOut] = Field(default_factory=dict)
    peak_day_of_week: Optional[str] = None
    peak_day_steps: int = Field(default=0, ge=0)
