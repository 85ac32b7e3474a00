from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Tuple

from sqlalchemy.orm import Session

from ..db import crud
from ..db.models import SOURCE_MANUAL, Group, Participant, WeeklyChallenge
from .scoring import distribute_weekly_total, recalculate_week, refresh_entry_totals, to_distance
from .weeks import get_monday_week_bounds

logger = logging.getLogger(__name__)

DEMO_GROUP_ID = "550e8400-e29b-41d4-a716-446655440000"
DEMO_CHALLENGE_ID = "550e8400-e29b-41d4-a716-446655440010"
DEMO_WEEK_START = date(2024, 1, 15)

# (participant id suffix, name, e-mail, weekly steps, weekly distance)
DEMO_PARTICIPANTS: Tuple[Tuple[str, str, str, int, str], ...] = (
    ("001", "Sarah Johnson", "sarah@example.com", 15847, "12.3"),
    ("002", "Mike Chen", "mike@example.com", 14523, "11.8"),
    ("003", "Emma Davis", "emma@example.com", 13891, "11.1"),
    ("004", "James Wilson", "james@example.com", 12456, "9.8"),
    ("005", "Lisa Brown", "lisa@example.com", 11234, "8.9"),
)


def seed_demo_group(session: Session) -> Group:
    """
    Create the "Demo Step Challenge" group with one week of sample results.

    Every participant is flagged ``is_seed_data`` so leaderboards and analytics
    ignore them. Running it again updates the same rows.
    """
    group = session.get(Group, DEMO_GROUP_ID)
    if group is None:
        group = Group(
            id=DEMO_GROUP_ID,
            name="Demo Step Challenge",
            description="Sample group for demonstration purposes",
        )
        session.add(group)
        session.flush()

    bounds = get_monday_week_bounds([DEMO_WEEK_START])
    challenge = session.get(WeeklyChallenge, DEMO_CHALLENGE_ID)
    if challenge is None:
        challenge = WeeklyChallenge(
            id=DEMO_CHALLENGE_ID,
            group_id=group.id,
            week_start_date=bounds.start,
            week_end_date=bounds.end,
            week_number=bounds.week_number,
            year=bounds.year,
            title=bounds.title,
        )
        session.add(challenge)
        session.flush()

    for suffix, name, email, steps, distance in DEMO_PARTICIPANTS:
        participant_id = f"550e8400-e29b-41d4-a716-446655440{suffix}"
        participant = session.get(Participant, participant_id)
        if participant is None:
            participant = Participant(id=participant_id, group_id=group.id, name=name)
            session.add(participant)
        participant.email = email
        participant.avatar_url = f"https://api.dicebear.com/7.x/avataaars/svg?seed={name.split()[0]}"
        participant.is_seed_data = True
        session.flush()

        for day in distribute_weekly_total(steps, Decimal(distance), challenge.week_start_date):
            crud.upsert_daily_step(
                session,
                challenge_id=challenge.id,
                participant_id=participant.id,
                step_date=day.date,
                steps=day.steps,
                distance=to_distance(day.distance),
                source=SOURCE_MANUAL,
            )
        refresh_entry_totals(session, challenge.id, participant.id)

    recalculate_week(session, challenge.id)
    logger.info("Seeded demo group %s with %d participants", group.id, len(DEMO_PARTICIPANTS))
    return group
