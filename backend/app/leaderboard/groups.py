from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..db import crud
from ..db.models import Group, Participant
from .errors import AlreadyMember, GroupNotFound

logger = logging.getLogger(__name__)


def create_group(
    session: Session,
    *,
    name: str,
    created_by: str,
    owner_name: str,
    description: str | None = None,
    owner_email: str | None = None,
) -> Group:
    """Create a group and add its owner as the first participant."""
    clean_name = (name or "").strip()
    if not clean_name:
        raise ValueError("Group name is required.")

    group = Group(name=clean_name, description=description, created_by=created_by)
    session.add(group)
    session.flush()
    _add_member(session, group.id, created_by, owner_name, owner_email)
    logger.info("Created group %s (%s) owned by %s", group.id, clean_name, created_by)
    return group


def _add_member(session: Session, group_id: str, user_id: str, name: str, email: str | None) -> Participant:
    participant = Participant(
        group_id=group_id,
        user_id=user_id,
        name=(name or "").strip() or "Member",
        email=email,
    )
    session.add(participant)
    session.flush()
    return participant


def join_group(
    session: Session,
    group_id: str,
    *,
    user_id: str,
    name: str,
    email: str | None = None,
) -> Participant:
    if crud.get_group(session, group_id) is None:
        raise GroupNotFound(group_id)

    existing = session.execute(
        select(Participant.id).where(Participant.group_id == group_id, Participant.user_id == user_id)
    ).first()
    if existing is not None:
        raise AlreadyMember(group_id, user_id)

    participant = _add_member(session, group_id, user_id, name, email)
    logger.info("User %s joined group %s", user_id, group_id)
    return participant


def get_group(session: Session, group_id: str) -> Optional[Group]:
    return crud.get_group(session, group_id)


def search_group_by_name(session: Session, name: str) -> Optional[Group]:
    clean_name = (name or "").strip()
    if not clean_name:
        return None
    stmt = (
        select(Group)
        .where(func.lower(Group.name) == clean_name.lower())
        .where(Group.is_active.is_(True))
        .order_by(Group.created_at.desc())
        .limit(1)
    )
    return session.execute(stmt).scalars().first()


def list_user_groups(session: Session, user_id: str) -> List[Group]:
    stmt = (
        select(Group)
        .where(Group.created_by == user_id)
        .where(Group.is_active.is_(True))
        .order_by(Group.created_at.desc())
    )
    return list(session.execute(stmt).scalars())


def list_group_participants(session: Session, group_id: str) -> List[Participant]:
    if crud.get_group(session, group_id) is None:
        raise GroupNotFound(group_id)
    stmt = (
        select(Participant)
        .where(Participant.group_id == group_id)
        .where(Participant.is_active.is_(True))
        .order_by(Participant.joined_at.asc())
    )
    return list(session.execute(stmt).scalars())


def delete_group(session: Session, group_id: str) -> None:
    """Delete a group; participants, weeks, entries and daily rows cascade in storage."""
    group = crud.get_group(session, group_id, active_only=False)
    if group is None:
        raise GroupNotFound(group_id)
    session.delete(group)
    session.flush()
    logger.info("Deleted group %s (%s)", group_id, group.name)
