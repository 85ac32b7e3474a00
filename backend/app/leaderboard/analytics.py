"""
Analytics over daily step rows.

Everything here is a pure function of ``DailyPoint`` rows so the same code
serves one week, a group's whole history and the offline CLI. Names are for
display; participants are keyed by id because two people may share a name.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from statistics import mean, pvariance
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

NOT_AVAILABLE = "N/A"
WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
WEEKEND = {5, 6}
MOMENTUM_WINDOW = 3


@dataclass(frozen=True)
class DailyPoint:
    participant_id: str
    name: str
    date: date
    steps: int


@dataclass(frozen=True)
class Leader:
    participant_id: Optional[str]
    name: str
    value: float = 0.0

    @classmethod
    def none(cls) -> "Leader":
        return cls(participant_id=None, name=NOT_AVAILABLE)


@dataclass(frozen=True)
class DailyChampion:
    participant_id: str
    name: str
    date: date
    steps: int


@dataclass(frozen=True)
class DayTotal:
    date: date
    steps: int


@dataclass(frozen=True)
class DailyWinner:
    date: date
    participant_id: Optional[str]
    name: Optional[str]
    steps: int


@dataclass(frozen=True)
class WinCount:
    participant_id: str
    name: str
    wins: int


@dataclass(frozen=True)
class DedicationRate:
    participant_id: str
    name: str
    active_days: int
    rate: float


@dataclass(frozen=True)
class WinStreak:
    participant_id: Optional[str]
    name: str
    length: int
    start: Optional[date] = None
    end: Optional[date] = None


@dataclass
class AnalyticsSummary:
    participant_count: int = 0
    day_count: int = 0
    total_steps: int = 0
    daily_champion: Optional[DailyChampion] = None
    most_consistent: Leader = field(default_factory=Leader.none)
    biggest_improver: Leader = field(default_factory=Leader.none)
    weekend_leader: Leader = field(default_factory=Leader.none)
    weekday_leader: Leader = field(default_factory=Leader.none)
    most_active_day: Optional[DayTotal] = None
    participation_rate: float = 0.0
    momentum: str = "steady"
    goal_achievement_rate: float = 0.0
    daily_winners: List[DailyWinner] = field(default_factory=list)
    daily_wins: Dict[str, WinCount] = field(default_factory=dict)


@dataclass
class WeeklyAnalytics:
    challenge_id: Optional[str]
    summary: AnalyticsSummary


@dataclass
class AllTimeAnalytics:
    summary: AnalyticsSummary
    weeks_recorded: int = 0
    longest_win_streak: WinStreak = field(default_factory=lambda: WinStreak(None, NOT_AVAILABLE, 0))
    consistency_champion: Leader = field(default_factory=Leader.none)
    dedication_leader: Leader = field(default_factory=Leader.none)
    dedication_rates: Dict[str, DedicationRate] = field(default_factory=dict)
    peak_day_of_week: Optional[str] = None
    peak_day_steps: int = 0


class _Series:
    """One participant's recorded days, duplicates on the same date summed."""

    def __init__(self, participant_id: str, name: str) -> None:
        self.participant_id = participant_id
        self.name = name
        self.days: Dict[date, int] = {}

    def add(self, day: date, steps: int) -> None:
        self.days[day] = self.days.get(day, 0) + max(int(steps), 0)

    def ordered(self) -> List[Tuple[date, int]]:
        return sorted(self.days.items())

    @property
    def values(self) -> List[int]:
        return [steps for _, steps in self.ordered()]

    @property
    def active_days(self) -> int:
        return sum(1 for steps in self.days.values() if steps > 0)


def _collect(points: Iterable[DailyPoint]) -> Dict[str, _Series]:
    series: Dict[str, _Series] = {}
    for point in points:
        entry = series.get(point.participant_id)
        if entry is None:
            entry = series[point.participant_id] = _Series(point.participant_id, point.name)
        entry.add(point.date, point.steps)
    return series


def _rate(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return round(numerator / denominator * 100, 2)


def _top(totals: Dict[str, int], series: Dict[str, _Series]) -> Leader:
    if not totals:
        return Leader.none()
    participant_id, value = min(totals.items(), key=lambda item: (-item[1], series[item[0]].name))
    return Leader(participant_id, series[participant_id].name, float(value))


def _lowest_variance(series: Dict[str, _Series], *, min_days: int, active_only: bool) -> Leader:
    """Lowest population variance; a shared minimum means there is no winner."""
    variances: List[Tuple[float, _Series]] = []
    for item in series.values():
        qualifying = item.active_days if active_only else len(item.days)
        if qualifying < max(min_days, 1):
            continue
        variances.append((pvariance(item.values), item))
    if not variances:
        return Leader.none()
    variances.sort(key=lambda pair: pair[0])
    if len(variances) > 1 and variances[0][0] == variances[1][0]:
        return Leader.none()
    value, best = variances[0]
    return Leader(best.participant_id, best.name, round(value, 2))


def daily_champion(series: Dict[str, _Series]) -> Optional[DailyChampion]:
    best: Optional[DailyChampion] = None
    for item in series.values():
        for day, steps in item.ordered():
            if best is None or (steps, -day.toordinal()) > (best.steps, -best.date.toordinal()):
                best = DailyChampion(item.participant_id, item.name, day, steps)
    return best


def biggest_improver(series: Dict[str, _Series]) -> Leader:
    """Largest change from first to last recorded day, in date order."""
    changes: Dict[str, int] = {}
    for item in series.values():
        ordered = item.ordered()
        if len(ordered) < 2:
            continue
        changes[item.participant_id] = ordered[-1][1] - ordered[0][1]
    return _top(changes, series)


def partition_leaders(series: Dict[str, _Series]) -> Tuple[Leader, Leader]:
    """Top participant by weekend (Sat/Sun) steps and by weekday steps."""
    weekend: Dict[str, int] = {}
    weekday: Dict[str, int] = {}
    for item in series.values():
        for day, steps in item.days.items():
            bucket = weekend if day.weekday() in WEEKEND else weekday
            bucket[item.participant_id] = bucket.get(item.participant_id, 0) + steps
    return _top(weekend, series), _top(weekday, series)


def group_totals_by_date(series: Dict[str, _Series]) -> Dict[date, int]:
    totals: Dict[date, int] = defaultdict(int)
    for item in series.values():
        for day, steps in item.days.items():
            totals[day] += steps
    return dict(sorted(totals.items()))


def most_active_day(totals: Dict[date, int]) -> Optional[DayTotal]:
    if not totals:
        return None
    day, steps = min(totals.items(), key=lambda item: (-item[1], item[0]))
    return DayTotal(day, steps)


def momentum(totals: Dict[date, int], threshold_percent: float = 5.0) -> str:
    """
    Compare the mean group total of the first three recorded dates with the
    last three. Changes inside +/- ``threshold_percent`` read as "steady".
    """
    values = [totals[day] for day in sorted(totals)]
    if len(values) < 2:
        return "steady"
    first = mean(values[:MOMENTUM_WINDOW])
    last = mean(values[-MOMENTUM_WINDOW:])
    if first == 0:
        return "up" if last > 0 else "steady"
    change = (last - first) / first * 100
    if change > threshold_percent:
        return "up"
    if change < -threshold_percent:
        return "down"
    return "steady"


def goal_achievement_rate(series: Dict[str, _Series], goal_steps: int) -> float:
    rows = [steps for item in series.values() for steps in item.days.values()]
    return _rate(sum(1 for steps in rows if steps >= goal_steps), len(rows))


def daily_winners(series: Dict[str, _Series]) -> List[DailyWinner]:
    """Per date, the single highest step count wins; ties and all-zero days have no winner."""
    by_date: Dict[date, List[Tuple[int, _Series]]] = defaultdict(list)
    for item in series.values():
        for day, steps in item.days.items():
            by_date[day].append((steps, item))

    winners: List[DailyWinner] = []
    for day in sorted(by_date):
        ranked = sorted(by_date[day], key=lambda pair: -pair[0])
        top_steps, top = ranked[0]
        tied = len(ranked) > 1 and ranked[1][0] == top_steps
        if tied or top_steps <= 0:
            winners.append(DailyWinner(day, None, None, top_steps))
        else:
            winners.append(DailyWinner(day, top.participant_id, top.name, top_steps))
    return winners


def count_wins(winners: Sequence[DailyWinner]) -> Dict[str, WinCount]:
    """Wins per participant id, most wins first."""
    wins: Dict[str, int] = {}
    names: Dict[str, str] = {}
    for winner in winners:
        if winner.participant_id is not None:
            wins[winner.participant_id] = wins.get(winner.participant_id, 0) + 1
            names[winner.participant_id] = winner.name or NOT_AVAILABLE
    ordered = sorted(wins.items(), key=lambda item: (-item[1], names[item[0]], item[0]))
    return {pid: WinCount(pid, names[pid], count) for pid, count in ordered}


def longest_win_streak(winners: Sequence[DailyWinner]) -> WinStreak:
    """
    Longest run of consecutive calendar dates won by the same participant.

    A date without a winner, or a gap in the dates, ends the current run.
    The earliest of equally long runs is kept.
    """
    best = WinStreak(None, NOT_AVAILABLE, 0)
    current: Optional[WinStreak] = None
    for winner in sorted(winners, key=lambda item: item.date):
        if winner.participant_id is None:
            current = None
            continue
        if (
            current is not None
            and current.participant_id == winner.participant_id
            and current.end is not None
            and winner.date == current.end + timedelta(days=1)
        ):
            current = WinStreak(current.participant_id, current.name, current.length + 1, current.start, winner.date)
        else:
            current = WinStreak(winner.participant_id, winner.name or NOT_AVAILABLE, 1, winner.date, winner.date)
        if current.length > best.length:
            best = current
    return best


def _summarize(
    series: Dict[str, _Series],
    *,
    denominator_days: int,
    goal_steps: int,
    min_consistency_days: int,
    momentum_threshold_percent: float,
) -> AnalyticsSummary:
    totals = group_totals_by_date(series)
    winners = daily_winners(series)
    weekend, weekday = partition_leaders(series)
    participant_count = len(series)
    return AnalyticsSummary(
        participant_count=participant_count,
        day_count=len(totals),
        total_steps=sum(totals.values()),
        daily_champion=daily_champion(series),
        most_consistent=_lowest_variance(series, min_days=min_consistency_days, active_only=False),
        biggest_improver=biggest_improver(series),
        weekend_leader=weekend,
        weekday_leader=weekday,
        most_active_day=most_active_day(totals),
        participation_rate=_rate(
            sum(item.active_days for item in series.values()),
            participant_count * denominator_days,
        ),
        momentum=momentum(totals, momentum_threshold_percent),
        goal_achievement_rate=goal_achievement_rate(series, goal_steps),
        daily_winners=winners,
        daily_wins=count_wins(winners),
    )


def compute_weekly_analytics(
    points: Iterable[DailyPoint],
    *,
    challenge_id: Optional[str] = None,
    goal_steps: int = 10000,
    min_consistency_days: int = 3,
    momentum_threshold_percent: float = 5.0,
) -> WeeklyAnalytics:
    series = _collect(points)
    summary = _summarize(
        series,
        denominator_days=7,
        goal_steps=goal_steps,
        min_consistency_days=min_consistency_days,
        momentum_threshold_percent=momentum_threshold_percent,
    )
    return WeeklyAnalytics(challenge_id=challenge_id, summary=summary)


def _week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


def compute_all_time_analytics(
    points: Iterable[DailyPoint],
    *,
    goal_steps: int = 10000,
    min_consistency_days: int = 3,
    min_champion_days: int = 7,
    momentum_threshold_percent: float = 5.0,
) -> AllTimeAnalytics:
    series = _collect(points)
    weeks = {_week_start(day) for item in series.values() for day in item.days}
    summary = _summarize(
        series,
        denominator_days=len(weeks) * 7,
        goal_steps=goal_steps,
        min_consistency_days=min_consistency_days,
        momentum_threshold_percent=momentum_threshold_percent,
    )

    result = AllTimeAnalytics(summary=summary, weeks_recorded=len(weeks))
    result.longest_win_streak = longest_win_streak(summary.daily_winners)
    result.consistency_champion = _lowest_variance(series, min_days=min_champion_days, active_only=True)

    max_active = max((item.active_days for item in series.values()), default=0)
    if max_active:
        rates = {item.participant_id: _rate(item.active_days, max_active) for item in series.values()}
        result.dedication_rates = {
            pid: DedicationRate(pid, series[pid].name, series[pid].active_days, rate)
            for pid, rate in sorted(rates.items(), key=lambda item: (-item[1], series[item[0]].name, item[0]))
        }
        best_id, best_rate = min(rates.items(), key=lambda item: (-item[1], series[item[0]].name))
        result.dedication_leader = Leader(best_id, series[best_id].name, best_rate)

    by_weekday: Dict[int, int] = defaultdict(int)
    for item in series.values():
        for day, steps in item.days.items():
            by_weekday[day.weekday()] += steps
    if by_weekday:
        weekday, steps = min(by_weekday.items(), key=lambda item: (-item[1], item[0]))
        result.peak_day_of_week = WEEKDAY_NAMES[weekday]
        result.peak_day_steps = steps
    return result
