import os
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

# Ensure the project root is importable when running tests outside the package
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("DB_NAME", "test_upload.sqlite")

from backend.app.db import crud  # noqa: E402
from backend.app.db.models import DailyStep, Group, LeaderboardEntry, Participant, UploadLog, WeeklyChallenge  # noqa: E402
from backend.app.db.session import Base, SessionLocal, engine  # noqa: E402
from backend.app.leaderboard import service  # noqa: E402
from backend.app.leaderboard.errors import GroupNotFound, MissingColumn  # noqa: E402


WEEK_THREE_CSV = (
    "Name,2024-01-15,2024-01-16,2024-01-17,Total Distance\n"
    "Alice,5000,6000,7000,9.0\n"
    "Bob,8000,8000,8000,12\n"
    "Carol,1000,,2000,\n"
)


@pytest.fixture(autouse=True)
def clean_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture()
def group(session) -> Group:
    record = Group(name="Walkers")
    session.add(record)
    session.flush()
    return record


def _entries_by_name(session, challenge_id):
    rows = session.execute(
        select(Participant.name, LeaderboardEntry)
        .join(LeaderboardEntry, LeaderboardEntry.participant_id == Participant.id)
        .where(LeaderboardEntry.challenge_id == challenge_id)
    ).all()
    return {name: entry for name, entry in rows}


def _snapshot(session):
    daily = session.execute(
        select(DailyStep.id, DailyStep.participant_id, DailyStep.step_date, DailyStep.steps, DailyStep.distance)
        .order_by(DailyStep.id)
    ).all()
    entries = session.execute(
        select(
            LeaderboardEntry.id,
            LeaderboardEntry.participant_id,
            LeaderboardEntry.steps,
            LeaderboardEntry.distance,
            LeaderboardEntry.points,
            LeaderboardEntry.rank,
        ).order_by(LeaderboardEntry.id)
    ).all()
    return daily, entries


def test_upload_creates_week_participants_and_ranks(session, group) -> None:
    result = service.upload_csv(session, group.id, WEEK_THREE_CSV)

    assert result.status == "success"
    assert result.week_created is True
    assert result.week.start == date(2024, 1, 15)
    assert result.week.week_number == 3
    assert result.succeeded == ["Alice", "Bob", "Carol"]
    assert result.participants_created == 3
    assert result.daily_rows == 9

    entries = _entries_by_name(session, result.challenge_id)
    assert {name: entry.steps for name, entry in entries.items()} == {"Alice": 18000, "Bob": 24000, "Carol": 3000}
    assert {name: entry.points for name, entry in entries.items()} == {"Bob": 3, "Alice": 2, "Carol": 1}
    assert entries["Alice"].distance == Decimal("9.00")

    participant = crud.find_participants_by_name(session, group.id, "alice")[0]
    assert participant.email == "alice@uploaded.com"
    assert participant.is_seed_data is False


def test_daily_rows_sum_to_entry_totals(session, group) -> None:
    result = service.upload_csv(session, group.id, WEEK_THREE_CSV)

    for entry in session.execute(select(LeaderboardEntry)).scalars():
        steps, _, days = crud.sum_daily_steps(session, result.challenge_id, entry.participant_id)
        assert steps == entry.steps
        assert days == 3


def test_reuploading_same_csv_is_idempotent(session, group) -> None:
    service.upload_csv(session, group.id, WEEK_THREE_CSV)
    before = _snapshot(session)

    result = service.upload_csv(session, group.id, WEEK_THREE_CSV)

    assert result.week_created is False
    assert result.participants_created == 0
    assert _snapshot(session) == before
    assert session.query(WeeklyChallenge).count() == 1
    assert session.query(Participant).count() == 3


def test_overlapping_upload_updates_existing_days(session, group) -> None:
    service.upload_csv(session, group.id, WEEK_THREE_CSV)

    result = service.upload_csv(session, group.id, "name,2024-01-17,2024-01-18\nBOB,1000,500\n")

    entries = _entries_by_name(session, result.challenge_id)
    assert entries["Bob"].steps == 8000 + 8000 + 1000 + 500
    assert session.query(Participant).count() == 3
    assert {entry.points for entry in entries.values()} == {1, 2, 3}


def test_dates_outside_the_week_are_skipped(session, group) -> None:
    content = "Name,2024-01-20,2024-01-21,2024-01-22\nAlice,100,200,300\n"

    result = service.upload_csv(session, group.id, content)

    assert result.week.end == date(2024, 1, 21)
    assert result.skipped_dates == [date(2024, 1, 22)]
    assert result.daily_rows == 2
    assert _entries_by_name(session, result.challenge_id)["Alice"].steps == 300


def test_failed_participant_does_not_stop_the_upload(session, group, monkeypatch) -> None:
    original = crud.upsert_daily_step

    def failing_upsert(db, **kwargs):
        if db.get(Participant, kwargs["participant_id"]).name == "Bob":
            raise OperationalError("INSERT INTO daily_steps", {}, Exception("disk I/O error"))
        return original(db, **kwargs)

    monkeypatch.setattr(crud, "upsert_daily_step", failing_upsert)

    result = service.upload_csv(session, group.id, WEEK_THREE_CSV)

    assert result.status == "partial"
    assert result.succeeded == ["Alice", "Carol"]
    assert list(result.failed) == ["Bob"]
    entries = _entries_by_name(session, result.challenge_id)
    assert set(entries) == {"Alice", "Carol"}
    assert {entry.points for entry in entries.values()} == {1, 2}
    assert crud.find_participants_by_name(session, group.id, "Bob") == []

    log = session.execute(select(UploadLog)).scalars().one()
    assert log.status == "partial"
    assert log.rows_succeeded == 2
    assert log.rows_failed == 1


def test_upload_logs_successful_runs(session, group) -> None:
    service.upload_csv(session, group.id, WEEK_THREE_CSV)

    latest = crud.get_latest_upload(session, group.id)
    assert latest is not None
    assert latest.status == "success"
    assert latest.rows_succeeded == 3
    assert latest.duration_seconds is not None
    assert crud.get_latest_upload(session).id == latest.id
    assert crud.get_latest_upload(session, "other-group") is None


def test_parse_errors_propagate_before_writing(session, group) -> None:
    with pytest.raises(MissingColumn):
        service.upload_csv(session, group.id, "Who,2024-01-15\nAlice,1\n")

    assert session.query(WeeklyChallenge).count() == 0


def test_upload_to_unknown_group(session) -> None:
    with pytest.raises(GroupNotFound):
        service.upload_csv(session, "missing-group", WEEK_THREE_CSV)
