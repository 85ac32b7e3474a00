import os
import sys
from decimal import Decimal
from pathlib import Path

import pytest

# Ensure the project root is importable when running tests outside the package
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("DB_NAME", "test_overall.sqlite")

from backend.app.db.models import Group, LeaderboardEntry, Participant  # noqa: E402
from backend.app.db.session import Base, SessionLocal, engine  # noqa: E402
from backend.app.leaderboard import aggregation, service  # noqa: E402
from backend.app.leaderboard.seed import DEMO_GROUP_ID, seed_demo_group  # noqa: E402


WEEK_THREE_CSV = "Name,2024-01-15,2024-01-16,Distance\nAlice,5000,6000,5.5\nBob,4000,4000,4\nCarol,1000,1000,1\n"
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


@pytest.fixture()
def group(session) -> Group:
    record = Group(name="Walkers")
    session.add(record)
    session.flush()
    service.upload_csv(session, record.id, WEEK_THREE_CSV)
    service.upload_csv(session, record.id, WEEK_FOUR_CSV)
    return record


def test_overall_leaderboard_sums_points_across_weeks(session, group) -> None:
    standings = aggregation.get_overall_leaderboard(session, group.id)

    # Week 3: Alice 3, Bob 2, Carol 1. Week 4: Bob 3, Dan 2, Alice 1.
    assert [(row.name, row.total_points) for row in standings] == [
        ("Bob", 5),
        ("Alice", 4),
        ("Dan", 2),
        ("Carol", 1),
    ]
    assert [row.rank for row in standings] == [1, 2, 3, 4]
    bob = standings[0]
    assert bob.total_steps == 14000
    assert bob.week_count == 2
    assert bob.total_distance == Decimal("4.00")


def test_equal_points_fall_back_to_total_steps(session) -> None:
    group = Group(name="Pairs")
    session.add(group)
    session.flush()
    service.upload_csv(session, group.id, "Name,2024-01-15\nAlice,500\nBob,400\n")
    service.upload_csv(session, group.id, "Name,2024-01-22\nAlice,100\nBob,900\n")

    standings = aggregation.get_overall_leaderboard(session, group.id)

    assert [(row.name, row.total_points, row.total_steps) for row in standings] == [
        ("Bob", 3, 1300),
        ("Alice", 3, 600),
    ]


def test_seed_participants_are_excluded(session, group) -> None:
    seed = Participant(group_id=group.id, name="Demo Walker", email="demo@example.com", is_seed_data=True)
    session.add(seed)
    session.flush()
    week = service.list_weeks(session, group.id)[0]
    session.add(LeaderboardEntry(challenge_id=week.id, participant_id=seed.id, steps=99999, distance=0, points=9))
    session.flush()

    names = {row.name for row in aggregation.get_overall_leaderboard(session, group.id)}
    assert "Demo Walker" not in names
    _, rows = service.get_weekly_leaderboard(session, group.id)
    assert "Demo Walker" not in {participant.name for _, participant in rows}


def test_synthetic_emails_are_real_participants(session, group) -> None:
    service.create_manual_entry(session, group.id, name="Erin", steps=100, challenge_id=service.list_weeks(session, group.id)[0].id)

    names = {row.name for row in aggregation.get_overall_leaderboard(session, group.id)}
    assert "Erin" in names


def test_demo_seed_is_hidden_and_idempotent(session) -> None:
    seed_demo_group(session)
    seed_demo_group(session)

    assert session.query(Participant).filter(Participant.group_id == DEMO_GROUP_ID).count() == 5
    assert session.query(LeaderboardEntry).count() == 5
    assert sorted(entry.points for entry in session.query(LeaderboardEntry)) == [1, 2, 3, 4, 5]
    assert aggregation.get_overall_leaderboard(session, DEMO_GROUP_ID) == []
    assert service.has_real_data(session) is False


def test_participant_stats(session, group) -> None:
    stats = aggregation.get_participant_stats(session, group.id, "alice")

    assert stats is not None
    assert stats.name == "Alice"
    assert stats.total_steps == 11200
    assert stats.total_points == 4
    assert stats.weeks_participated == 2
    assert stats.average_steps == 5600
    assert stats.best_week_steps == 11000
    # Rank in the most recent week.
    assert stats.current_rank == 3
    assert aggregation.get_participant_stats(session, group.id, "Nobody") is None


def test_summaries(session, group) -> None:
    challenge, rows = service.get_weekly_leaderboard(session, group.id)
    week = aggregation.summarize_week(rows)

    assert challenge.week_number == 4
    assert week.top_performer == "Bob"
    assert week.active_participants == 3
    assert week.total_steps == 10200
    assert week.average_steps == 3400

    overall = aggregation.summarize_overall(aggregation.get_overall_leaderboard(session, group.id))
    assert overall.champion == "Bob"
    assert overall.total_participants == 4
    assert overall.most_weeks == 2
    assert overall.most_weeks_participant == "Bob"

    empty = aggregation.summarize_week([])
    assert empty.top_performer is None
    assert empty.average_steps == 0
