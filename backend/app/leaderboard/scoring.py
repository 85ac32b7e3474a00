from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from time import perf_counter
from typing import Callable, Dict, List, Sequence, Tuple, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import crud
from ..db.models import LeaderboardEntry
from .parsing import DailyValue

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7
CENT = Decimal("0.01")

T = TypeVar("T")


@dataclass
class RecalculationResult:
    challenge_id: str
    updated: List[int] = field(default_factory=list)
    failed: Dict[int, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.updated) + len(self.failed)


def to_distance(value: object) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def rank_by_steps(items: Sequence[T], steps: Callable[[T], int]) -> List[Tuple[T, int, int]]:
    """
    Order ``items`` best first and return ``(item, rank, points)`` triples.

    Equal step counts keep the order the items were given in, so callers pass
    them in submission order. Rank ``i`` (1-based) of ``N`` items earns
    ``N - i + 1`` points: first place gets N and last place gets exactly 1.
    """
    ordered = sorted(items, key=lambda item: -steps(item))
    total = len(ordered)
    return [(item, position + 1, total - position) for position, item in enumerate(ordered)]


def recalculate_week(session: Session, challenge_id: str) -> RecalculationResult:
    """
    Re-rank every entry of a week with inverse-rank points.

    Entries are read in submission order (entry id) and ranked by
    ``rank_by_steps``.

    Each entry is written inside its own savepoint. A failing entry is logged
    and reported in ``failed`` while the remaining entries are still updated,
    which can leave that week partially stale until the next recalculation.
    """
    start_time = perf_counter()
    result = RecalculationResult(challenge_id=challenge_id)
    session.flush()
    entries = crud.list_week_entries(session, challenge_id)
    if not entries:
        logger.warning("No entries found for point recalculation for week %s", challenge_id)
        return result

    total_participants = len(entries)
    for entry, rank, points in rank_by_steps(entries, lambda item: item.steps):
        try:
            with session.begin_nested():
                entry.rank = rank
                entry.points = points
        except SQLAlchemyError as exc:
            logger.exception("Error updating points for entry %s in week %s", entry.id, challenge_id)
            result.failed[entry.id] = str(exc)
            continue
        result.updated.append(entry.id)

    logger.info(
        "Recalculated points for %d participants in week %s in %.3fs (failed=%d)",
        total_participants,
        challenge_id,
        perf_counter() - start_time,
        len(result.failed),
    )
    return result


def refresh_entry_totals(session: Session, challenge_id: str, participant_id: str) -> LeaderboardEntry | None:
    """
    Rebuild a weekly entry's steps and distance from its daily rows.

    This is the only write path for entry totals: whoever changes daily data
    calls it, then recalculates the week.
    """
    session.flush()
    steps, distance, days = crud.sum_daily_steps(session, challenge_id, participant_id)
    entry = crud.get_entry(session, challenge_id, participant_id)

    if entry is None:
        if days == 0:
            return None
        entry = LeaderboardEntry(
            challenge_id=challenge_id,
            participant_id=participant_id,
            steps=steps,
            distance=to_distance(distance),
            points=0,
        )
        session.add(entry)
        session.flush()
        return entry

    entry.steps = steps
    entry.distance = to_distance(distance)
    return entry


def distribute_weekly_total(total_steps: int, distance: object, week_start: date) -> List[DailyValue]:
    """
    Spread a weekly total over the seven days starting at ``week_start``.

    Every day gets ``total // 7`` steps and the remainder goes one step per day
    to the earliest days. Distance is split the same way at cent precision so
    the days always add back up to the stated totals.
    """
    if total_steps < 0:
        raise ValueError("total_steps must be >= 0")

    base_steps, extra_steps = divmod(int(total_steps), DAYS_PER_WEEK)
    total_cents = int(to_distance(distance) / CENT)
    base_cents, extra_cents = divmod(total_cents, DAYS_PER_WEEK)

    days: List[DailyValue] = []
    for offset in range(DAYS_PER_WEEK):
        cents = base_cents + (1 if offset < extra_cents else 0)
        days.append(
            DailyValue(
                date=week_start + timedelta(days=offset),
                steps=base_steps + (1 if offset < extra_steps else 0),
                distance=float(Decimal(cents) * CENT),
            )
        )
    return days
