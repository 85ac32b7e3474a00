from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from time import perf_counter
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..db import crud
from ..db.models import SOURCE_MANUAL, Group, LeaderboardEntry, Participant, WeeklyChallenge
from .analytics import AllTimeAnalytics, DailyPoint, WeeklyAnalytics, compute_all_time_analytics, compute_weekly_analytics
from .errors import EntryNotFound, GroupNotFound, ParticipantNotFound, WeekNotFound
from .parsing import parse_step_csv
from .scoring import (
    RecalculationResult,
    distribute_weekly_total,
    recalculate_week,
    refresh_entry_totals,
    to_distance,
)
from .weeks import WeekBounds, get_monday_week_bounds, get_or_create_challenge

logger = logging.getLogger(__name__)

UPLOAD_RESOURCE = "csv_upload"


@dataclass
class UploadResult:
    """Outcome of one CSV upload; ``failed`` lists the rows worth retrying."""

    challenge_id: str
    week: WeekBounds
    week_created: bool
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    participants_created: int = 0
    daily_rows: int = 0
    skipped_dates: List[date] = field(default_factory=list)
    recalculation: Optional[RecalculationResult] = None

    @property
    def status(self) -> str:
        if not self.failed:
            return "success"
        return "partial" if self.succeeded else "error"


@dataclass
class DeletionResult:
    participant_id: str
    affected_weeks: List[str]
    daily_rows_deleted: int
    entries_deleted: int
    recalculations: List[RecalculationResult] = field(default_factory=list)


def _require_group(session: Session, group_id: str) -> Group:
    group = crud.get_group(session, group_id)
    if group is None:
        raise GroupNotFound(group_id)
    return group


def _require_challenge(session: Session, group_id: str, challenge_id: str) -> WeeklyChallenge:
    challenge = session.get(WeeklyChallenge, challenge_id)
    if challenge is None or challenge.group_id != group_id:
        raise WeekNotFound(challenge_id)
    return challenge


def upload_csv(session: Session, group_id: str, content: str | bytes) -> UploadResult:
    """
    Ingest one weekly CSV for a group.

    Parsing errors propagate untouched. After that the upload is best-effort:
    each participant is written inside its own savepoint, failures are logged
    and collected in ``UploadResult.failed`` and the remaining rows continue.
    Rows already written are not rolled back. Re-uploading the same file
    converges on the same rows through the unique-key upserts.
    """
    start_time = perf_counter()
    _require_group(session, group_id)
    parsed = parse_step_csv(content)

    bounds = get_monday_week_bounds(parsed.dates)
    challenge, week_created = get_or_create_challenge(session, group_id, bounds)
    result = UploadResult(challenge_id=challenge.id, week=bounds, week_created=week_created)

    result.skipped_dates = [day for day in parsed.dates if not bounds.contains(day)]
    if result.skipped_dates:
        logger.warning(
            "Skipping %d date columns outside %s (%s to %s): %s",
            len(result.skipped_dates),
            bounds.title,
            bounds.start,
            bounds.end,
            ", ".join(day.isoformat() for day in result.skipped_dates),
        )

    for row in parsed.participants:
        try:
            with session.begin_nested():
                participant, created = crud.get_or_create_participant_by_name(
                    session,
                    group_id,
                    row.name,
                    email_domain=crud.UPLOADED_EMAIL_DOMAIN,
                )
                # A manual total spread over the week is replaced by real daily data.
                replaced = crud.delete_daily_steps(session, challenge.id, participant.id, source=SOURCE_MANUAL)
                if replaced:
                    logger.info("Replacing %d manual daily rows for %s in %s", replaced, row.name, bounds.title)
                written = 0
                for day in row.daily_data:
                    if not bounds.contains(day.date):
                        continue
                    crud.upsert_daily_step(
                        session,
                        challenge_id=challenge.id,
                        participant_id=participant.id,
                        step_date=day.date,
                        steps=day.steps,
                        distance=to_distance(day.distance),
                    )
                    written += 1
                refresh_entry_totals(session, challenge.id, participant.id)
        except SQLAlchemyError as exc:
            logger.exception("Failed to store step data for %s in %s", row.name, bounds.title)
            result.failed[row.name] = str(exc)
            continue

        result.succeeded.append(row.name)
        result.daily_rows += written
        if created:
            result.participants_created += 1

    result.recalculation = recalculate_week(session, challenge.id)

    duration = perf_counter() - start_time
    crud.record_upload_log(
        session,
        resource=UPLOAD_RESOURCE,
        status=result.status,
        message="; ".join(f"{name}: {error}" for name, error in result.failed.items()) or None,
        group_id=group_id,
        challenge_id=challenge.id,
        rows_succeeded=len(result.succeeded),
        rows_failed=len(result.failed),
        duration_seconds=duration,
    )
    logger.info(
        "Uploaded %s for group %s in %.2fs (participants=%d, created=%d, daily_rows=%d, failed=%d)",
        bounds.title,
        group_id,
        duration,
        len(result.succeeded),
        result.participants_created,
        result.daily_rows,
        len(result.failed),
    )
    return result


def _replace_daily_steps(
    session: Session,
    challenge: WeeklyChallenge,
    participant_id: str,
    steps: int,
    distance: object,
) -> LeaderboardEntry | None:
    crud.delete_daily_steps(session, challenge.id, participant_id)
    for day in distribute_weekly_total(steps, distance, challenge.week_start_date):
        crud.upsert_daily_step(
            session,
            challenge_id=challenge.id,
            participant_id=participant_id,
            step_date=day.date,
            steps=day.steps,
            distance=to_distance(day.distance),
            source=SOURCE_MANUAL,
        )
    return refresh_entry_totals(session, challenge.id, participant_id)


def create_manual_entry(
    session: Session,
    group_id: str,
    *,
    name: str,
    steps: int,
    distance: float | None = None,
    challenge_id: str | None = None,
    entry_date: date | None = None,
) -> LeaderboardEntry:
    """
    Record a weekly total typed in by an admin.

    The week is the explicit ``challenge_id`` when given, otherwise the week
    of ``entry_date`` (today when omitted), created on demand. The total is
    spread over the week's seven days so daily rows stay the source of truth.
    """
    _require_group(session, group_id)
    clean_name = (name or "").strip()
    if not clean_name:
        raise ValueError("Participant name is required.")
    if steps is None or steps < 0:
        raise ValueError("Steps must be a non-negative integer.")

    if challenge_id:
        challenge = _require_challenge(session, group_id, challenge_id)
    else:
        bounds = get_monday_week_bounds([entry_date] if entry_date else None)
        challenge, _ = get_or_create_challenge(session, group_id, bounds)

    if distance is None:
        distance = steps * get_settings().miles_per_step

    participant, created = crud.get_or_create_participant_by_name(
        session,
        group_id,
        clean_name,
        email_domain=crud.GENERATED_EMAIL_DOMAIN,
    )
    if created:
        logger.info("Created participant %s for manual entry in group %s", participant.name, group_id)

    entry = _replace_daily_steps(session, challenge, participant.id, steps, distance)
    recalculate_week(session, challenge.id)
    logger.info("Added %d steps for %s in %s", steps, participant.name, challenge.title)
    return entry


def update_entry(
    session: Session,
    entry_id: int,
    participant_id: str,
    *,
    steps: int,
    distance: float | None = None,
) -> LeaderboardEntry:
    """Change one weekly total, then re-rank the whole week."""
    entry = session.get(LeaderboardEntry, entry_id)
    if entry is None or entry.participant_id != participant_id:
        raise EntryNotFound(entry_id, participant_id)
    if steps is None or steps < 0:
        raise ValueError("Steps must be a non-negative integer.")

    challenge = session.get(WeeklyChallenge, entry.challenge_id)
    if challenge is None:
        raise WeekNotFound(entry.challenge_id)

    new_distance = entry.distance if distance is None else distance
    _replace_daily_steps(session, challenge, participant_id, steps, new_distance)
    recalculate_week(session, challenge.id)
    logger.info("Updated entry %s to %d steps", entry_id, steps)
    return entry


def delete_participant(session: Session, participant_id: str, group_id: str) -> DeletionResult:
    """
    Remove a participant with their daily rows and entries, in that order,
    then re-rank every week they appeared in.
    """
    participant = crud.get_participant_in_group(session, participant_id, group_id)
    if participant is None:
        raise ParticipantNotFound(participant_id, group_id)

    affected = crud.list_participant_challenge_ids(session, participant_id)
    daily_deleted, entries_deleted, _ = crud.delete_participant_rows(session, participant_id)
    logger.info(
        "Deleted participant %s (%s): %d daily rows, %d entries, %d weeks affected",
        participant_id,
        participant.name,
        daily_deleted,
        entries_deleted,
        len(affected),
    )

    result = DeletionResult(
        participant_id=participant_id,
        affected_weeks=affected,
        daily_rows_deleted=daily_deleted,
        entries_deleted=entries_deleted,
    )
    for challenge_id in affected:
        result.recalculations.append(recalculate_week(session, challenge_id))
    return result


def recalculate_challenge(session: Session, challenge_id: str) -> RecalculationResult:
    """Rebuild every entry of a week from daily rows, then re-rank it."""
    challenge = session.get(WeeklyChallenge, challenge_id)
    if challenge is None:
        raise WeekNotFound(challenge_id)
    participant_ids = session.execute(
        select(LeaderboardEntry.participant_id).where(LeaderboardEntry.challenge_id == challenge_id)
    ).scalars().all()
    for participant_id in participant_ids:
        refresh_entry_totals(session, challenge_id, participant_id)
    return recalculate_week(session, challenge_id)


def list_weeks(session: Session, group_id: str) -> List[WeeklyChallenge]:
    _require_group(session, group_id)
    return crud.list_challenges(session, group_id)


def get_weekly_leaderboard(
    session: Session,
    group_id: str,
    challenge_id: str | None = None,
) -> Tuple[WeeklyChallenge | None, List[Tuple[LeaderboardEntry, Participant]]]:
    """Entries of one week ordered by rank; defaults to the latest week."""
    _require_group(session, group_id)
    if challenge_id:
        challenge = _require_challenge(session, group_id, challenge_id)
    else:
        weeks = crud.list_challenges(session, group_id)
        if not weeks:
            return None, []
        challenge = weeks[0]

    rows = session.execute(
        select(LeaderboardEntry, Participant)
        .join(Participant, Participant.id == LeaderboardEntry.participant_id)
        .where(LeaderboardEntry.challenge_id == challenge.id)
        .where(Participant.is_seed_data.is_(False))
        .order_by(LeaderboardEntry.rank.asc().nullslast(), LeaderboardEntry.steps.desc(), LeaderboardEntry.id)
    ).all()
    return challenge, [(entry, participant) for entry, participant in rows]


def list_participants(session: Session, group_id: str) -> List[Tuple[Participant, int]]:
    """Real participants of a group with the number of weekly entries each."""
    _require_group(session, group_id)
    rows = session.execute(
        select(Participant, func.count(LeaderboardEntry.id))
        .outerjoin(LeaderboardEntry, LeaderboardEntry.participant_id == Participant.id)
        .where(Participant.group_id == group_id)
        .where(Participant.is_seed_data.is_(False))
        .group_by(Participant.id)
        .order_by(Participant.joined_at, Participant.name)
    ).all()
    return [(participant, int(count or 0)) for participant, count in rows]


def get_participant_entries(
    session: Session,
    participant_id: str,
    group_id: str,
) -> List[Tuple[LeaderboardEntry, WeeklyChallenge]]:
    participant = crud.get_participant_in_group(session, participant_id, group_id)
    if participant is None:
        raise ParticipantNotFound(participant_id, group_id)
    rows = session.execute(
        select(LeaderboardEntry, WeeklyChallenge)
        .join(WeeklyChallenge, WeeklyChallenge.id == LeaderboardEntry.challenge_id)
        .where(LeaderboardEntry.participant_id == participant_id)
        .order_by(WeeklyChallenge.year.desc(), WeeklyChallenge.week_number.desc())
    ).all()
    return [(entry, challenge) for entry, challenge in rows]


def has_real_data(session: Session, group_id: str | None = None) -> bool:
    stmt = select(Participant.id).where(Participant.is_seed_data.is_(False)).limit(1)
    if group_id:
        stmt = stmt.where(Participant.group_id == group_id)
    return session.execute(stmt).first() is not None


def _to_points(rows: Sequence[Tuple[str, str, date, int]]) -> List[DailyPoint]:
    return [
        DailyPoint(participant_id=participant_id, name=name, date=step_date, steps=int(steps or 0))
        for participant_id, name, step_date, steps in rows
    ]


def get_weekly_analytics(session: Session, group_id: str, challenge_id: str | None = None) -> WeeklyAnalytics | None:
    challenge, _ = get_weekly_leaderboard(session, group_id, challenge_id)
    if challenge is None:
        return None
    rows = crud.select_daily_rows(session, group_id, challenge_id=challenge.id)
    settings = get_settings()
    return compute_weekly_analytics(
        _to_points(rows),
        challenge_id=challenge.id,
        goal_steps=settings.daily_step_goal,
        min_consistency_days=settings.min_consistency_days,
        momentum_threshold_percent=settings.momentum_threshold_percent,
    )


def get_all_time_analytics(session: Session, group_id: str) -> AllTimeAnalytics:
    _require_group(session, group_id)
    rows = crud.select_daily_rows(session, group_id)
    settings = get_settings()
    return compute_all_time_analytics(
        _to_points(rows),
        goal_steps=settings.daily_step_goal,
        min_champion_days=settings.min_champion_days,
        momentum_threshold_percent=settings.momentum_threshold_percent,
    )
