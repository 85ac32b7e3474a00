import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import select

# Ensure the project root is importable when running tests outside the package
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("DB_NAME", "test_groups.sqlite")

from backend.app.db.models import DailyStep, Group, LeaderboardEntry, Participant, WeeklyChallenge  # noqa: E402
from backend.app.db.session import Base, SessionLocal, engine  # noqa: E402
from backend.app.leaderboard import groups, service  # noqa: E402
from backend.app.leaderboard.errors import AlreadyMember, GroupNotFound  # noqa: E402


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


def _create(session, name: str = "Office Walkers", owner: str = "user-1") -> Group:
    return groups.create_group(session, name=name, created_by=owner, owner_name="Olivia Owner", owner_email="olivia@corp.test")


def test_create_group_adds_owner_as_participant(session) -> None:
    group = _create(session)

    members = groups.list_group_participants(session, group.id)
    assert [(member.user_id, member.name) for member in members] == [("user-1", "Olivia Owner")]
    assert group.is_active is True


def test_create_group_requires_name(session) -> None:
    with pytest.raises(ValueError):
        _create(session, name="   ")


def test_join_group(session) -> None:
    group = _create(session)

    participant = groups.join_group(session, group.id, user_id="user-2", name="Sam Member")

    assert participant.group_id == group.id
    assert len(groups.list_group_participants(session, group.id)) == 2


def test_join_group_twice_is_rejected(session) -> None:
    group = _create(session)
    groups.join_group(session, group.id, user_id="user-2", name="Sam Member")

    with pytest.raises(AlreadyMember):
        groups.join_group(session, group.id, user_id="user-2", name="Sam Member")
    with pytest.raises(AlreadyMember):
        groups.join_group(session, group.id, user_id="user-1", name="Olivia Owner")


def test_join_inactive_or_missing_group(session) -> None:
    group = _create(session)
    group.is_active = False
    session.flush()

    with pytest.raises(GroupNotFound):
        groups.join_group(session, group.id, user_id="user-2", name="Sam")
    with pytest.raises(GroupNotFound):
        groups.join_group(session, "missing", user_id="user-2", name="Sam")
    assert groups.get_group(session, group.id) is None


def test_search_and_list_groups(session) -> None:
    first = _create(session, name="Office Walkers")
    second = _create(session, name="Weekend Hikers")
    _create(session, name="Someone Else's", owner="user-9")

    assert groups.search_group_by_name(session, "office walkers").id == first.id
    assert groups.search_group_by_name(session, "unknown") is None
    owned = groups.list_user_groups(session, "user-1")
    assert {group.id for group in owned} == {first.id, second.id}


def test_delete_group_cascades(session) -> None:
    group = _create(session)
    service.upload_csv(session, group.id, "Name,2024-01-15,2024-01-16\nAlice,5000,6000\nBob,10,20\n")
    group_id = group.id

    groups.delete_group(session, group_id)
    session.expunge_all()

    assert session.get(Group, group_id) is None
    for model in (Participant, WeeklyChallenge, LeaderboardEntry, DailyStep):
        assert session.execute(select(model)).first() is None

    with pytest.raises(GroupNotFound):
        groups.delete_group(session, group_id)
