import os
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import select

# Ensure the project root is importable when running tests outside the package
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("DB_NAME", "test_participants.sqlite")

from backend.app.db import crud  # noqa: E402
from backend.app.db.models import DailyStep, Group, LeaderboardEntry, Participant, WeeklyChallenge  # noqa: E402
from backend.app.db.session import Base, SessionLocal, engine  # noqa: E402
from backend.app.leaderboard import service  # noqa: E402
from backend.app.leaderboard.errors import EntryNotFound, ParticipantNotFound, WeekNotFound  # noqa: E402


WEEK_THREE_CSV = "Name,2024-01-15,2024-01-16\nAlice,5000,6000\nBob,4000,4000\nCarol,1000,1000\n"
WEEK_FOUR_CSV = "Name,2024-01-22,2024-01-23\nAlice,100,100\nBob,3000,3000\nDan,2000,2000\n"


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


def _make_group(session, name: str = "Walkers") -> Group:
    group = Group(name=name)
    session.add(group)
    session.flush()
    return group


def _points(session, challenge_id):
    return sorted(entry.points for entry in crud.list_week_entries(session, challenge_id))


def test_manual_entry_synthesizes_seven_days(session) -> None:
    group = _make_group(session)

    entry = service.create_manual_entry(session, group.id, name="Nina", steps=70003, entry_date=date(2024, 1, 17))

    challenge = session.get(WeeklyChallenge, entry.challenge_id)
    assert challenge.week_number == 3
    assert entry.steps == 70003
    # 0.0005 miles per step
    assert entry.distance == Decimal("35.00")
    assert entry.points == 1 and entry.rank == 1

    days = session.execute(
        select(DailyStep.step_date, DailyStep.steps)
        .where(DailyStep.participant_id == entry.participant_id)
        .order_by(DailyStep.step_date)
    ).all()
    assert [steps for _, steps in days] == [10001, 10001, 10001, 10000, 10000, 10000, 10000]
    assert days[0][0] == date(2024, 1, 15)

    participant = session.get(Participant, entry.participant_id)
    assert participant.email == "nina@generated.com"


def test_manual_entry_replaces_previous_days_for_same_week(session) -> None:
    group = _make_group(session)
    result = service.upload_csv(session, group.id, WEEK_THREE_CSV)

    entry = service.create_manual_entry(session, group.id, name="carol", steps=700, distance=1.4, challenge_id=result.challenge_id)

    assert entry.steps == 700
    assert entry.distance == Decimal("1.40")
    steps, _, days = crud.sum_daily_steps(session, result.challenge_id, entry.participant_id)
    assert (steps, days) == (700, 7)
    assert session.query(Participant).count() == 3
    assert _points(session, result.challenge_id) == [1, 2, 3]


def test_upload_replaces_spread_manual_days(session) -> None:
    group = _make_group(session)
    manual = service.create_manual_entry(session, group.id, name="Alice", steps=7000, entry_date=date(2024, 1, 15))

    result = service.upload_csv(session, group.id, WEEK_THREE_CSV)

    assert result.challenge_id == manual.challenge_id
    steps, _, days = crud.sum_daily_steps(session, result.challenge_id, manual.participant_id)
    assert (steps, days) == (11000, 2)
    assert crud.get_entry(session, result.challenge_id, manual.participant_id).steps == 11000
    sources = session.execute(
        select(DailyStep.source).where(DailyStep.participant_id == manual.participant_id)
    ).scalars().all()
    assert set(sources) == {"upload"}


def test_manual_entry_rows_are_marked_manual(session) -> None:
    group = _make_group(session)
    result = service.upload_csv(session, group.id, WEEK_THREE_CSV)

    entry = service.create_manual_entry(session, group.id, name="Bob", steps=700, challenge_id=result.challenge_id)

    sources = session.execute(
        select(DailyStep.source).where(DailyStep.participant_id == entry.participant_id)
    ).scalars().all()
    assert sources == ["manual"] * 7


def test_manual_entry_rejects_week_from_other_group(session) -> None:
    group = _make_group(session)
    other = _make_group(session, "Runners")
    result = service.upload_csv(session, other.id, WEEK_THREE_CSV)

    with pytest.raises(WeekNotFound):
        service.create_manual_entry(session, group.id, name="Nina", steps=10, challenge_id=result.challenge_id)


def test_manual_entry_validates_input(session) -> None:
    group = _make_group(session)

    with pytest.raises(ValueError):
        service.create_manual_entry(session, group.id, name="  ", steps=10)
    with pytest.raises(ValueError):
        service.create_manual_entry(session, group.id, name="Nina", steps=-1)


def test_update_entry_rewrites_days_and_reranks(session) -> None:
    group = _make_group(session)
    result = service.upload_csv(session, group.id, WEEK_THREE_CSV)
    carol = crud.find_participants_by_name(session, group.id, "Carol")[0]
    entry = crud.get_entry(session, result.challenge_id, carol.id)

    updated = service.update_entry(session, entry.id, carol.id, steps=20000)

    assert updated.steps == 20000
    assert updated.rank == 1
    assert updated.points == 3
    steps, _, days = crud.sum_daily_steps(session, result.challenge_id, carol.id)
    assert (steps, days) == (20000, 7)
    assert _points(session, result.challenge_id) == [1, 2, 3]


def test_update_entry_requires_owning_participant(session) -> None:
    group = _make_group(session)
    result = service.upload_csv(session, group.id, WEEK_THREE_CSV)
    alice = crud.find_participants_by_name(session, group.id, "Alice")[0]
    bob = crud.find_participants_by_name(session, group.id, "Bob")[0]
    entry = crud.get_entry(session, result.challenge_id, alice.id)

    with pytest.raises(EntryNotFound):
        service.update_entry(session, entry.id, bob.id, steps=1)


def test_delete_participant_removes_rows_and_reranks_every_week(session) -> None:
    group = _make_group(session)
    week_three = service.upload_csv(session, group.id, WEEK_THREE_CSV)
    week_four = service.upload_csv(session, group.id, WEEK_FOUR_CSV)
    bob = crud.find_participants_by_name(session, group.id, "Bob")[0]

    result = service.delete_participant(session, bob.id, group.id)

    assert sorted(result.affected_weeks) == sorted([week_three.challenge_id, week_four.challenge_id])
    assert result.daily_rows_deleted == 4
    assert result.entries_deleted == 2
    assert session.get(Participant, bob.id) is None
    assert session.execute(select(DailyStep).where(DailyStep.participant_id == bob.id)).first() is None
    assert session.execute(select(LeaderboardEntry).where(LeaderboardEntry.participant_id == bob.id)).first() is None
    assert _points(session, week_three.challenge_id) == [1, 2]
    assert _points(session, week_four.challenge_id) == [1, 2]


def test_delete_participant_outside_group(session) -> None:
    group = _make_group(session)
    other = _make_group(session, "Runners")
    service.upload_csv(session, group.id, WEEK_THREE_CSV)
    alice = crud.find_participants_by_name(session, group.id, "Alice")[0]

    with pytest.raises(ParticipantNotFound):
        service.delete_participant(session, alice.id, other.id)


def test_read_helpers(session) -> None:
    group = _make_group(session)
    week_three = service.upload_csv(session, group.id, WEEK_THREE_CSV)
    week_four = service.upload_csv(session, group.id, WEEK_FOUR_CSV)

    weeks = service.list_weeks(session, group.id)
    assert [week.id for week in weeks] == [week_four.challenge_id, week_three.challenge_id]

    challenge, rows = service.get_weekly_leaderboard(session, group.id)
    assert challenge.id == week_four.challenge_id
    assert [participant.name for _, participant in rows] == ["Bob", "Dan", "Alice"]

    counts = {participant.name: count for participant, count in service.list_participants(session, group.id)}
    assert counts == {"Alice": 2, "Bob": 2, "Carol": 1, "Dan": 1}

    alice = crud.find_participants_by_name(session, group.id, "Alice")[0]
    history = service.get_participant_entries(session, alice.id, group.id)
    assert [challenge.week_number for _, challenge in history] == [4, 3]

    assert service.has_real_data(session, group.id) is True
    assert service.has_real_data(session, "missing-group") is False


def test_recalculate_challenge_rebuilds_totals(session) -> None:
    group = _make_group(session)
    result = service.upload_csv(session, group.id, WEEK_THREE_CSV)
    alice = crud.find_participants_by_name(session, group.id, "Alice")[0]
    entry = crud.get_entry(session, result.challenge_id, alice.id)
    entry.steps = 1
    session.flush()

    recalculation = service.recalculate_challenge(session, result.challenge_id)

    assert recalculation.failed == {}
    assert entry.steps == 11000
    assert entry.rank == 1
