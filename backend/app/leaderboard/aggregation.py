from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db import crud
from ..db.models import LeaderboardEntry, Participant, WeeklyChallenge

logger = logging.getLogger(__name__)


@dataclass
class OverallStanding:
    participant_id: str
    name: str
    email: Optional[str]
    total_points: int = 0
    total_steps: int = 0
    total_distance: Decimal = Decimal("0.00")
    week_count: int = 0
    rank: int = 0


@dataclass
class ParticipantStats:
    participant_id: str
    name: str
    total_steps: int
    total_distance: Decimal
    total_points: int
    weeks_participated: int
    average_steps: int
    best_week_steps: int
    current_rank: Optional[int]


@dataclass
class WeekSummary:
    top_performer: Optional[str]
    top_steps: int
    active_participants: int
    total_steps: int
    total_distance: Decimal
    average_steps: int


@dataclass
class OverallSummary:
    champion: Optional[str]
    champion_points: int
    total_participants: int
    total_steps: int
    total_distance: Decimal
    average_steps: int
    most_weeks_participant: Optional[str]
    most_weeks: int


def get_overall_leaderboard(session: Session, group_id: str) -> List[OverallStanding]:
    """
    Fold every weekly entry of the group into per-participant totals.

    Seed participants are left out. Ordering is points descending, then total
    steps descending, then name, and ranks are 1-indexed. Nothing is stored;
    the table is rebuilt on every call.
    """
    standings: Dict[str, OverallStanding] = {}
    for entry, participant, _challenge in crud.select_group_entries(session, group_id):
        standing = standings.get(participant.id)
        if standing is None:
            standing = standings[participant.id] = OverallStanding(
                participant_id=participant.id,
                name=participant.name or "Unknown",
                email=participant.email,
            )
        standing.total_points += entry.points or 0
        standing.total_steps += entry.steps or 0
        standing.total_distance += Decimal(str(entry.distance or 0))
        standing.week_count += 1

    ordered = sorted(
        standings.values(),
        key=lambda item: (-item.total_points, -item.total_steps, item.name.lower()),
    )
    for position, standing in enumerate(ordered, start=1):
        standing.rank = position
    logger.debug("Built overall leaderboard for group %s with %d participants", group_id, len(ordered))
    return ordered


def _match_participant(session: Session, group_id: str, name: str) -> Optional[Participant]:
    exact = session.execute(
        select(Participant)
        .where(Participant.group_id == group_id, Participant.name == name)
        .order_by(Participant.joined_at)
    ).scalars().first()
    if exact is not None:
        return exact
    matches = crud.find_participants_by_name(session, group_id, name)
    return matches[0] if matches else None


def get_participant_stats(session: Session, group_id: str, name: str) -> Optional[ParticipantStats]:
    """Lifetime totals for the participant called ``name``; None when unknown or without entries."""
    clean_name = (name or "").strip()
    if not clean_name:
        return None
    participant = _match_participant(session, group_id, clean_name)
    if participant is None:
        return None

    rows: Sequence[Tuple[LeaderboardEntry, WeeklyChallenge]] = session.execute(
        select(LeaderboardEntry, WeeklyChallenge)
        .join(WeeklyChallenge, WeeklyChallenge.id == LeaderboardEntry.challenge_id)
        .where(LeaderboardEntry.participant_id == participant.id)
        .order_by(WeeklyChallenge.year.desc(), WeeklyChallenge.week_number.desc())
    ).all()
    if not rows:
        return None

    entries = [entry for entry, _ in rows]
    total_steps = sum(entry.steps or 0 for entry in entries)
    weeks = len(entries)
    return ParticipantStats(
        participant_id=participant.id,
        name=participant.name,
        total_steps=total_steps,
        total_distance=sum((Decimal(str(entry.distance or 0)) for entry in entries), Decimal("0.00")),
        total_points=sum(entry.points or 0 for entry in entries),
        weeks_participated=weeks,
        average_steps=round(total_steps / weeks),
        best_week_steps=max(entry.steps or 0 for entry in entries),
        current_rank=entries[0].rank,
    )


def summarize_week(entries: Sequence[Tuple[LeaderboardEntry, Participant]]) -> WeekSummary:
    """Headline numbers for one week; ``entries`` are expected in rank order."""
    if not entries:
        return WeekSummary(None, 0, 0, 0, Decimal("0.00"), 0)
    total_steps = sum(entry.steps or 0 for entry, _ in entries)
    top_entry, top_participant = entries[0]
    return WeekSummary(
        top_performer=top_participant.name,
        top_steps=top_entry.steps or 0,
        active_participants=len(entries),
        total_steps=total_steps,
        total_distance=sum((Decimal(str(entry.distance or 0)) for entry, _ in entries), Decimal("0.00")),
        average_steps=round(total_steps / len(entries)),
    )


def summarize_overall(standings: Sequence[OverallStanding]) -> OverallSummary:
    if not standings:
        return OverallSummary(None, 0, 0, 0, Decimal("0.00"), 0, None, 0)
    total_steps = sum(item.total_steps for item in standings)
    most_weeks = max(item.week_count for item in standings)
    # First in standings order among those with the most weeks.
    regular = next(item for item in standings if item.week_count == most_weeks)
    champion = standings[0]
    return OverallSummary(
        champion=champion.name,
        champion_points=champion.total_points,
        total_participants=len(standings),
        total_steps=total_steps,
        total_distance=sum((item.total_distance for item in standings), Decimal("0.00")),
        average_steps=round(total_steps / len(standings)),
        most_weeks_participant=regular.name,
        most_weeks=most_weeks,
    )
