from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, List, Optional, Union

from sqlalchemy.orm import Session

from ..db import crud
from ..db.models import WeeklyChallenge

logger = logging.getLogger(__name__)

DateLike = Union[date, str]


@dataclass(frozen=True)
class WeekBounds:
    start: date
    end: date
    week_number: int
    year: int

    @property
    def title(self) -> str:
        return f"Week {self.week_number}, {self.year}"

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def _coerce_date(value: DateLike) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def iso_week_number(day: date) -> tuple[int, int]:
    """Week number and year of ``day``, counted from the week's Thursday."""
    thursday = day + timedelta(days=4 - day.isoweekday())
    day_of_year = thursday.timetuple().tm_yday
    return math.ceil(day_of_year / 7), thursday.year


def get_monday_week_bounds(dates: Optional[Iterable[DateLike]] = None) -> WeekBounds:
    """
    Resolve the Monday-Sunday week holding the earliest of ``dates``.

    With no dates the current day anchors the week, which is how manual
    entries without a date are placed.
    """
    parsed = [_coerce_date(value) for value in (dates or [])]
    anchor = min(parsed) if parsed else date.today()

    # isoweekday: Monday=1 .. Sunday=7, so Sunday steps back six days.
    monday = anchor - timedelta(days=anchor.isoweekday() - 1)
    sunday = monday + timedelta(days=6)
    week_number, year = iso_week_number(anchor)
    return WeekBounds(start=monday, end=sunday, week_number=week_number, year=year)


def week_dates(bounds: WeekBounds) -> List[date]:
    return [bounds.start + timedelta(days=offset) for offset in range(7)]


def get_or_create_challenge(session: Session, group_id: str, bounds: WeekBounds) -> tuple[WeeklyChallenge, bool]:
    """Locate the group's challenge for ``bounds`` or create it lazily."""
    existing = crud.get_challenge_by_week(session, group_id, bounds.week_number, bounds.year)
    if existing is not None:
        logger.warning(
            "Week %s already exists for group %s (challenge %s); updating existing data",
            bounds.title,
            group_id,
            existing.id,
        )
        return existing, False

    challenge = WeeklyChallenge(
        group_id=group_id,
        week_start_date=bounds.start,
        week_end_date=bounds.end,
        week_number=bounds.week_number,
        year=bounds.year,
        title=bounds.title,
    )
    session.add(challenge)
    session.flush()
    logger.info("Created challenge %s (%s to %s) for group %s", bounds.title, bounds.start, bounds.end, group_id)
    return challenge, True
