from __future__ import annotations

import logging
from time import perf_counter
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.orm import Session

from ..config import get_settings
from ..db.models import LeaderboardEntry, Participant
from ..dependencies import get_db
from ..services.data_store import record_failed_upload
from . import aggregation, groups, service
from .errors import AlreadyMember, CsvFormatError, LeaderboardError, NotFoundError
from .schemas import (
    AllTimeAnalyticsResponse,
    DeletionSummary,
    EntryOut,
    EntryUpdateRequest,
    GroupCreate,
    GroupJoin,
    GroupOut,
    ManualEntryRequest,
    OverallLeaderboardResponse,
    OverallStandingOut,
    OverallSummaryOut,
    ParticipantEntryOut,
    ParticipantOut,
    ParticipantStatsOut,
    RecalculationSummary,
    UploadSummary,
    WeekOut,
    WeekSummaryOut,
    WeeklyAnalyticsResponse,
    WeeklyLeaderboardResponse,
)


logger = logging.getLogger(__name__)

leaderboard_router = APIRouter(prefix="/api", tags=["leaderboard"])


def _raise_http(exc: Exception) -> NoReturn:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, AlreadyMember):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


def _entry_out(entry: LeaderboardEntry, participant: Optional[Participant] = None) -> EntryOut:
    return EntryOut(
        id=entry.id,
        challenge_id=entry.challenge_id,
        participant_id=entry.participant_id,
        participant_name=participant.name if participant is not None else None,
        steps=entry.steps,
        distance=float(entry.distance or 0),
        points=entry.points,
        rank=entry.rank,
    )


@leaderboard_router.post("/groups", response_model=GroupOut, status_code=status.HTTP_201_CREATED)
async def create_group_endpoint(payload: GroupCreate, session: Session = Depends(get_db)) -> GroupOut:
    try:
        group = groups.create_group(
            session,
            name=payload.name,
            created_by=payload.created_by,
            owner_name=payload.owner_name,
            description=payload.description,
            owner_email=payload.owner_email,
        )
    except (LeaderboardError, ValueError) as exc:
        _raise_http(exc)
    return GroupOut.model_validate(group)


@leaderboard_router.get("/groups", response_model=List[GroupOut])
async def list_groups_endpoint(
    owner: str = Query(..., min_length=1, description="User id of the group owner"),
    session: Session = Depends(get_db),
) -> List[GroupOut]:
    return [GroupOut.model_validate(group) for group in groups.list_user_groups(session, owner)]


@leaderboard_router.get("/groups/search", response_model=GroupOut)
async def search_group_endpoint(
    name: str = Query(..., min_length=1),
    session: Session = Depends(get_db),
) -> GroupOut:
    group = groups.search_group_by_name(session, name)
    if group is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No active group named '{name}'.")
    return GroupOut.model_validate(group)


@leaderboard_router.get("/groups/{group_id}", response_model=GroupOut)
async def get_group_endpoint(group_id: str, session: Session = Depends(get_db)) -> GroupOut:
    group = groups.get_group(session, group_id)
    if group is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Group {group_id} not found or inactive.")
    return GroupOut.model_validate(group)


@leaderboard_router.post(
    "/groups/{group_id}/join",
    response_model=ParticipantOut,
    status_code=status.HTTP_201_CREATED,
)
async def join_group_endpoint(
    group_id: str,
    payload: GroupJoin,
    session: Session = Depends(get_db),
) -> ParticipantOut:
    try:
        participant = groups.join_group(session, group_id, user_id=payload.user_id, name=payload.name, email=payload.email)
    except LeaderboardError as exc:
        _raise_http(exc)
    return ParticipantOut.model_validate(participant)


@leaderboard_router.get("/groups/{group_id}/members", response_model=List[ParticipantOut])
async def list_members_endpoint(group_id: str, session: Session = Depends(get_db)) -> List[ParticipantOut]:
    try:
        members = groups.list_group_participants(session, group_id)
    except LeaderboardError as exc:
        _raise_http(exc)
    return [ParticipantOut.model_validate(member) for member in members]


@leaderboard_router.delete("/groups/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_group_endpoint(group_id: str, session: Session = Depends(get_db)) -> Response:
    try:
        groups.delete_group(session, group_id)
    except LeaderboardError as exc:
        _raise_http(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@leaderboard_router.post("/groups/{group_id}/uploads", response_model=UploadSummary)
async def upload_steps_endpoint(
    group_id: str,
    file: UploadFile = File(...),
    session: Session = Depends(get_db),
) -> UploadSummary:
    filename = file.filename or ""
    if not filename.lower().endswith(".csv"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only CSV uploads are supported.")

    content = await file.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty.")
    if len(content) > get_settings().max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Uploaded file is too large.",
        )

    start_time = perf_counter()
    try:
        result = service.upload_csv(session, group_id, content)
    except CsvFormatError as exc:
        logger.warning("Rejected upload %s for group %s: %s", filename, group_id, exc)
        session.rollback()
        record_failed_upload(group_id, str(exc), perf_counter() - start_time)
        _raise_http(exc)
    except LeaderboardError as exc:
        _raise_http(exc)
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CSV file must be UTF-8 encoded.") from exc

    return UploadSummary(
        challenge_id=result.challenge_id,
        week_number=result.week.week_number,
        year=result.week.year,
        week_start_date=result.week.start,
        week_end_date=result.week.end,
        week_created=result.week_created,
        status=result.status,
        succeeded=result.succeeded,
        failed=result.failed,
        participants_created=result.participants_created,
        daily_rows=result.daily_rows,
        skipped_dates=result.skipped_dates,
        entries_ranked=len(result.recalculation.updated) if result.recalculation else 0,
    )


@leaderboard_router.post(
    "/groups/{group_id}/entries",
    response_model=EntryOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_entry_endpoint(
    group_id: str,
    payload: ManualEntryRequest,
    session: Session = Depends(get_db),
) -> EntryOut:
    try:
        entry = service.create_manual_entry(
            session,
            group_id,
            name=payload.name,
            steps=payload.steps,
            distance=payload.distance,
            challenge_id=payload.challenge_id,
            entry_date=payload.entry_date,
        )
    except (LeaderboardError, ValueError) as exc:
        _raise_http(exc)
    return _entry_out(entry, session.get(Participant, entry.participant_id))


@leaderboard_router.patch("/entries/{entry_id}", response_model=EntryOut)
async def update_entry_endpoint(
    entry_id: int,
    payload: EntryUpdateRequest,
    session: Session = Depends(get_db),
) -> EntryOut:
    try:
        entry = service.update_entry(
            session,
            entry_id,
            payload.participant_id,
            steps=payload.steps,
            distance=payload.distance,
        )
    except (LeaderboardError, ValueError) as exc:
        _raise_http(exc)
    return _entry_out(entry, session.get(Participant, entry.participant_id))


@leaderboard_router.delete("/groups/{group_id}/participants/{participant_id}", response_model=DeletionSummary)
async def delete_participant_endpoint(
    group_id: str,
    participant_id: str,
    session: Session = Depends(get_db),
) -> DeletionSummary:
    try:
        result = service.delete_participant(session, participant_id, group_id)
    except LeaderboardError as exc:
        _raise_http(exc)
    return DeletionSummary(
        participant_id=result.participant_id,
        affected_weeks=result.affected_weeks,
        daily_rows_deleted=result.daily_rows_deleted,
        entries_deleted=result.entries_deleted,
    )


@leaderboard_router.get("/groups/{group_id}/weeks", response_model=List[WeekOut])
async def list_weeks_endpoint(group_id: str, session: Session = Depends(get_db)) -> List[WeekOut]:
    try:
        weeks = service.list_weeks(session, group_id)
    except LeaderboardError as exc:
        _raise_http(exc)
    return [WeekOut.model_validate(week) for week in weeks]


@leaderboard_router.get("/groups/{group_id}/participants", response_model=List[ParticipantOut])
async def list_participants_endpoint(group_id: str, session: Session = Depends(get_db)) -> List[ParticipantOut]:
    try:
        rows = service.list_participants(session, group_id)
    except LeaderboardError as exc:
        _raise_http(exc)
    return [
        ParticipantOut.model_validate(participant).model_copy(update={"entry_count": count})
        for participant, count in rows
    ]


@leaderboard_router.get(
    "/groups/{group_id}/participants/{participant_id}/entries",
    response_model=List[ParticipantEntryOut],
)
async def participant_entries_endpoint(
    group_id: str,
    participant_id: str,
    session: Session = Depends(get_db),
) -> List[ParticipantEntryOut]:
    try:
        rows = service.get_participant_entries(session, participant_id, group_id)
    except LeaderboardError as exc:
        _raise_http(exc)
    return [
        ParticipantEntryOut(**_entry_out(entry).model_dump(), week=WeekOut.model_validate(challenge))
        for entry, challenge in rows
    ]


@leaderboard_router.get("/groups/{group_id}/leaderboard", response_model=WeeklyLeaderboardResponse)
async def weekly_leaderboard_endpoint(
    group_id: str,
    week: Optional[str] = Query(None, description="Weekly challenge id; defaults to the latest week"),
    session: Session = Depends(get_db),
) -> WeeklyLeaderboardResponse:
    try:
        challenge, rows = service.get_weekly_leaderboard(session, group_id, week)
    except LeaderboardError as exc:
        _raise_http(exc)
    summary = aggregation.summarize_week(rows)
    return WeeklyLeaderboardResponse(
        week=WeekOut.model_validate(challenge) if challenge is not None else None,
        entries=[_entry_out(entry, participant) for entry, participant in rows],
        summary=WeekSummaryOut.model_validate(summary),
    )


@leaderboard_router.get("/groups/{group_id}/leaderboard/overall", response_model=OverallLeaderboardResponse)
async def overall_leaderboard_endpoint(group_id: str, session: Session = Depends(get_db)) -> OverallLeaderboardResponse:
    if groups.get_group(session, group_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Group {group_id} not found or inactive.")
    standings = aggregation.get_overall_leaderboard(session, group_id)
    return OverallLeaderboardResponse(
        rows=[OverallStandingOut.model_validate(item) for item in standings],
        summary=OverallSummaryOut.model_validate(aggregation.summarize_overall(standings)),
    )


@leaderboard_router.get("/groups/{group_id}/stats", response_model=ParticipantStatsOut)
async def participant_stats_endpoint(
    group_id: str,
    name: str = Query(..., min_length=1, description="Participant name"),
    session: Session = Depends(get_db),
) -> ParticipantStatsOut:
    stats = aggregation.get_participant_stats(session, group_id, name)
    if stats is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No step data found for '{name}'.")
    return ParticipantStatsOut.model_validate(stats)


@leaderboard_router.get("/groups/{group_id}/analytics/weekly", response_model=WeeklyAnalyticsResponse)
async def weekly_analytics_endpoint(
    group_id: str,
    week: Optional[str] = Query(None, description="Weekly challenge id; defaults to the latest week"),
    session: Session = Depends(get_db),
) -> WeeklyAnalyticsResponse:
    try:
        analytics = service.get_weekly_analytics(session, group_id, week)
    except LeaderboardError as exc:
        _raise_http(exc)
    if analytics is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No weeks recorded for this group yet.")
    return WeeklyAnalyticsResponse.model_validate(analytics)


@leaderboard_router.get("/groups/{group_id}/analytics/all-time", response_model=AllTimeAnalyticsResponse)
async def all_time_analytics_endpoint(group_id: str, session: Session = Depends(get_db)) -> AllTimeAnalyticsResponse:
    try:
        analytics = service.get_all_time_analytics(session, group_id)
    except LeaderboardError as exc:
        _raise_http(exc)
    return AllTimeAnalyticsResponse.model_validate(analytics)


@leaderboard_router.post("/challenges/{challenge_id}/recalculate", response_model=RecalculationSummary)
async def recalculate_endpoint(challenge_id: str, session: Session = Depends(get_db)) -> RecalculationSummary:
    try:
        result = service.recalculate_challenge(session, challenge_id)
    except LeaderboardError as exc:
        _raise_http(exc)
    return RecalculationSummary.model_validate(result)
