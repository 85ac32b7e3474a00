from __future__ import annotations

import re
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from .models import SOURCE_UPLOAD, DailyStep, Group, LeaderboardEntry, Participant, UploadLog, WeeklyChallenge

UPLOADED_EMAIL_DOMAIN = "uploaded.com"
GENERATED_EMAIL_DOMAIN = "generated.com"

_SLUG_RE = re.compile(r"[^a-z0-9]")


def _normalize_str(value: object) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    text = str(value).strip()
    return text or None


def synthetic_email(name: str, domain: str) -> str:
    """Placeholder address for participants created from CSV or manual entry."""
    slug = _SLUG_RE.sub("", name.lower()) or "participant"
    return f"{slug}@{domain}"


def get_group(session: Session, group_id: str, *, active_only: bool = True) -> Group | None:
    stmt = select(Group).where(Group.id == group_id)
    if active_only:
        stmt = stmt.where(Group.is_active.is_(True))
    return session.execute(stmt).scalar_one_or_none()


def find_participants_by_name(session: Session, group_id: str, name: str) -> List[Participant]:
    """Case-insensitive name lookup; several rows may share a name."""
    normalized = _normalize_str(name)
    if not normalized:
        return []
    stmt = (
        select(Participant)
        .where(Participant.group_id == group_id)
        .where(func.lower(Participant.name) == normalized.lower())
        .order_by(Participant.joined_at, Participant.id)
    )
    return list(session.execute(stmt).scalars())


def get_participant_in_group(session: Session, participant_id: str, group_id: str) -> Participant | None:
    stmt = select(Participant).where(Participant.id == participant_id, Participant.group_id == group_id)
    return session.execute(stmt).scalar_one_or_none()


def get_or_create_participant_by_name(
    session: Session,
    group_id: str,
    name: str,
    *,
    email_domain: str,
) -> Tuple[Participant, bool]:
    matches = find_participants_by_name(session, group_id, name)
    if matches:
        return matches[0], False
    clean_name = _normalize_str(name) or name
    participant = Participant(
        group_id=group_id,
        name=clean_name,
        email=synthetic_email(clean_name, email_domain),
    )
    session.add(participant)
    session.flush()
    return participant, True


def get_challenge_by_week(session: Session, group_id: str, week_number: int, year: int) -> WeeklyChallenge | None:
    stmt = select(WeeklyChallenge).where(
        WeeklyChallenge.group_id == group_id,
        WeeklyChallenge.week_number == week_number,
        WeeklyChallenge.year == year,
    )
    return session.execute(stmt).scalar_one_or_none()


def list_challenges(session: Session, group_id: str) -> List[WeeklyChallenge]:
    stmt = (
        select(WeeklyChallenge)
        .where(WeeklyChallenge.group_id == group_id)
        .order_by(WeeklyChallenge.year.desc(), WeeklyChallenge.week_number.desc())
    )
    return list(session.execute(stmt).scalars())


def upsert_daily_step(
    session: Session,
    *,
    challenge_id: str,
    participant_id: str,
    step_date: date,
    steps: int,
    distance: Decimal,
    source: str = SOURCE_UPLOAD,
) -> DailyStep:
    """Insert or update the (challenge, participant, date) row."""
    existing = session.execute(
        select(DailyStep).where(
            DailyStep.challenge_id == challenge_id,
            DailyStep.participant_id == participant_id,
            DailyStep.step_date == step_date,
        )
    ).scalar_one_or_none()

    if existing:
        existing.steps = steps
        existing.distance = distance
        existing.source = source
        return existing

    record = DailyStep(
        challenge_id=challenge_id,
        participant_id=participant_id,
        step_date=step_date,
        steps=steps,
        distance=distance,
        source=source,
    )
    session.add(record)
    return record


def delete_daily_steps(session: Session, challenge_id: str, participant_id: str, source: str | None = None) -> int:
    """Delete one participant's rows for a week, optionally only those from ``source``."""
    stmt = delete(DailyStep).where(
        DailyStep.challenge_id == challenge_id,
        DailyStep.participant_id == participant_id,
    )
    if source is not None:
        stmt = stmt.where(DailyStep.source == source)
    result = session.execute(stmt)
    return result.rowcount or 0


def sum_daily_steps(session: Session, challenge_id: str, participant_id: str) -> Tuple[int, Decimal, int]:
    """Return (steps, distance, days) summed over one participant's week."""
    row = session.execute(
        select(
            func.coalesce(func.sum(DailyStep.steps), 0),
            func.coalesce(func.sum(DailyStep.distance), 0),
            func.count(DailyStep.id),
        ).where(
            DailyStep.challenge_id == challenge_id,
            DailyStep.participant_id == participant_id,
        )
    ).one()
    steps, distance, days = row
    return int(steps or 0), Decimal(str(distance or 0)), int(days or 0)


def get_entry(session: Session, challenge_id: str, participant_id: str) -> LeaderboardEntry | None:
    stmt = select(LeaderboardEntry).where(
        LeaderboardEntry.challenge_id == challenge_id,
        LeaderboardEntry.participant_id == participant_id,
    )
    return session.execute(stmt).scalar_one_or_none()


def list_week_entries(session: Session, challenge_id: str) -> List[LeaderboardEntry]:
    """Entries of a week in submission order (id)."""
    stmt = (
        select(LeaderboardEntry)
        .where(LeaderboardEntry.challenge_id == challenge_id)
        .order_by(LeaderboardEntry.id.asc())
    )
    return list(session.execute(stmt).scalars())


def list_participant_challenge_ids(session: Session, participant_id: str) -> List[str]:
    stmt = (
        select(LeaderboardEntry.challenge_id)
        .where(LeaderboardEntry.participant_id == participant_id)
        .union(select(DailyStep.challenge_id).where(DailyStep.participant_id == participant_id))
    )
    return sorted({row[0] for row in session.execute(stmt)})


def delete_participant_rows(session: Session, participant_id: str) -> Tuple[int, int, int]:
    """Delete daily steps, then entries, then the participant itself."""
    daily = session.execute(
        delete(DailyStep).where(DailyStep.participant_id == participant_id)
    ).rowcount or 0
    entries = session.execute(
        delete(LeaderboardEntry).where(LeaderboardEntry.participant_id == participant_id)
    ).rowcount or 0
    participants = session.execute(
        delete(Participant).where(Participant.id == participant_id)
    ).rowcount or 0
    return daily, entries, participants


def select_daily_rows(
    session: Session,
    group_id: str,
    *,
    challenge_id: str | None = None,
) -> Sequence[Tuple[str, str, date, int]]:
    """(participant_id, name, step_date, steps) for the group's real participants."""
    stmt = (
        select(DailyStep.participant_id, Participant.name, DailyStep.step_date, DailyStep.steps)
        .join(Participant, Participant.id == DailyStep.participant_id)
        .join(WeeklyChallenge, WeeklyChallenge.id == DailyStep.challenge_id)
        .where(WeeklyChallenge.group_id == group_id)
        .where(Participant.is_seed_data.is_(False))
        .order_by(DailyStep.step_date, Participant.name)
    )
    if challenge_id is not None:
        stmt = stmt.where(DailyStep.challenge_id == challenge_id)
    return session.execute(stmt).all()


def select_group_entries(session: Session, group_id: str) -> Sequence[Tuple[LeaderboardEntry, Participant, WeeklyChallenge]]:
    stmt = (
        select(LeaderboardEntry, Participant, WeeklyChallenge)
        .join(Participant, Participant.id == LeaderboardEntry.participant_id)
        .join(WeeklyChallenge, WeeklyChallenge.id == LeaderboardEntry.challenge_id)
        .where(Participant.group_id == group_id)
        .where(Participant.is_seed_data.is_(False))
    )
    return session.execute(stmt).all()


def record_upload_log(
    session: Session,
    *,
    resource: str,
    status: str,
    message: str | None,
    group_id: str | None = None,
    challenge_id: str | None = None,
    rows_succeeded: int | None = None,
    rows_failed: int | None = None,
    duration_seconds: float | None = None,
) -> UploadLog:
    log = UploadLog(
        resource=resource,
        group_id=group_id,
        challenge_id=challenge_id,
        status=status,
        message=message,
        rows_succeeded=rows_succeeded,
        rows_failed=rows_failed,
        duration_seconds=duration_seconds,
        finished_at=datetime.now(timezone.utc),
    )
    session.add(log)
    session.flush()
    return log


def get_row_count(session: Session, model) -> int:
    return session.scalar(select(func.count()).select_from(model)) or 0


def get_latest_upload(session: Session, group_id: str | None = None) -> UploadLog | None:
    stmt = select(UploadLog)
    if group_id is not None:
        stmt = stmt.where(UploadLog.group_id == group_id)
    stmt = stmt.order_by(UploadLog.finished_at.desc().nullslast(), UploadLog.id.desc()).limit(1)
    return session.execute(stmt).scalars().first()


def get_recent_logs(session: Session, limit: int = 10, group_ids: Iterable[str] | None = None) -> List[UploadLog]:
    stmt = select(UploadLog)
    if group_ids is not None:
        stmt = stmt.where(UploadLog.group_id.in_(list(group_ids)))
    stmt = stmt.order_by(UploadLog.finished_at.desc().nullslast(), UploadLog.id.desc()).limit(limit)
    return list(session.execute(stmt).scalars().all())
