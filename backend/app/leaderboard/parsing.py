"""
CSV parsing for weekly step uploads.

Uploads are "wide": one row per participant, one column per calendar date
(``YYYY-MM-DD``), an identifying name column and optional aggregate
"Total Steps" / "Total Distance" columns. Per-day steps are always taken from
the date columns; the aggregate steps column is only a cross-check, and the
aggregate distance is spread across the days in proportion to their steps.
"""

from __future__ import annotations

import csv
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from .errors import EmptyFile, MissingColumn, NoDateColumns, NoValidRows

logger = logging.getLogger(__name__)

DATE_HEADER_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
SEPARATOR_RE = re.compile(r"[\s_\-]+")
DOT_THOUSANDS_RE = re.compile(r"^-?\d{1,3}(?:\.\d{3})+$")
QUOTE_CHARS = "\"'"


@dataclass(frozen=True)
class ColumnSpec:
    """Candidate headers for one logical column, most specific first."""

    field: str
    exact: Tuple[str, ...]
    contains: Tuple[str, ...] = ()


NAME_COLUMN = ColumnSpec(
    field="Name",
    exact=("name", "participant", "participant name", "full name", "member", "member name"),
    contains=("name", "participant"),
)
TOTAL_STEPS_COLUMN = ColumnSpec(
    field="Total Steps",
    exact=("total steps", "steps total", "weekly steps", "steps", "total"),
    contains=("step",),
)
TOTAL_DISTANCE_COLUMN = ColumnSpec(
    field="Total Distance",
    exact=("total distance", "distance", "total miles", "miles", "total km", "km"),
    contains=("distance", "mile"),
)


@dataclass(frozen=True)
class ColumnMap:
    name: int
    total_steps: Optional[int]
    total_distance: Optional[int]
    dates: Tuple[Tuple[int, date], ...]


@dataclass
class DailyValue:
    date: date
    steps: int
    distance: float = 0.0


@dataclass
class ParsedParticipant:
    name: str
    total_steps: int
    total_distance: float
    daily_data: List[DailyValue] = field(default_factory=list)


@dataclass
class ParsedUpload:
    participants: List[ParsedParticipant]
    dates: List[date]
    headers: List[str]
    delimiter: str


def _clean_cell(value: object) -> str:
    if value is None:
        return ""
    text = str(value).strip()
    while len(text) >= 1 and text[0] in QUOTE_CHARS:
        text = text[1:]
    while len(text) >= 1 and text[-1] in QUOTE_CHARS:
        text = text[:-1]
    return text.strip()


def _normalize_header(header: str) -> str:
    return SEPARATOR_RE.sub(" ", header.lower()).strip()


def detect_delimiter(header_line: str) -> str:
    if ";" in header_line and "," not in header_line:
        return ";"
    return ","


def _parse_date_header(header: str) -> Optional[date]:
    if not DATE_HEADER_RE.match(header):
        return None
    try:
        return date.fromisoformat(header)
    except ValueError:
        return None


def _match_column(spec: ColumnSpec, normalized: Sequence[str], claimed: set[int]) -> Optional[int]:
    for candidate in spec.exact:
        for index, header in enumerate(normalized):
            if index not in claimed and header == candidate:
                return index
    for fragment in spec.contains:
        for index, header in enumerate(normalized):
            if index not in claimed and fragment in header:
                return index
    return None


def match_columns(headers: Sequence[str]) -> ColumnMap:
    """Resolve header positions, raising MissingColumn / NoDateColumns."""
    dates: Dict[date, int] = {}
    claimed: set[int] = set()
    for index, header in enumerate(headers):
        parsed = _parse_date_header(header)
        if parsed is None:
            continue
        claimed.add(index)
        if parsed in dates:
            logger.warning("Ignoring duplicate date column %s at position %d", header, index)
            continue
        dates[parsed] = index

    normalized = [_normalize_header(header) for header in headers]
    name_index = _match_column(NAME_COLUMN, normalized, claimed)
    if name_index is None:
        raise MissingColumn(NAME_COLUMN.field, headers)
    claimed.add(name_index)

    if not dates:
        raise NoDateColumns(headers)

    steps_index = _match_column(TOTAL_STEPS_COLUMN, normalized, claimed)
    if steps_index is not None:
        claimed.add(steps_index)
    distance_index = _match_column(TOTAL_DISTANCE_COLUMN, normalized, claimed)

    return ColumnMap(
        name=name_index,
        total_steps=steps_index,
        total_distance=distance_index,
        dates=tuple((index, day) for day, index in sorted(dates.items())),
    )


def _parse_number(raw: object, delimiter: str) -> Optional[float]:
    text = _clean_cell(raw).replace(" ", "")
    if not text:
        return None
    if delimiter == ";":
        # Semicolon files usually come from locales with a decimal comma;
        # a dot only groups thousands when every group after it has 3 digits.
        if "," in text:
            text = text.replace(".", "").replace(",", ".")
        elif DOT_THOUSANDS_RE.match(text):
            text = text.replace(".", "")
        elif "." in text:
            logger.warning("Reading %r as a dot-decimal number in a semicolon file", text)
    else:
        text = text.replace(",", "")
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def _cell(row: Sequence[str], index: Optional[int]) -> str:
    if index is None or index >= len(row):
        return ""
    return row[index]


def _parse_row(row: Sequence[str], columns: ColumnMap, delimiter: str, line_number: int) -> Optional[ParsedParticipant]:
    name = _clean_cell(_cell(row, columns.name))
    if not name:
        return None

    daily: List[DailyValue] = []
    has_numeric = False
    for index, day in columns.dates:
        value = _parse_number(_cell(row, index), delimiter)
        if value is None:
            steps = 0
        else:
            has_numeric = True
            steps = max(int(round(value)), 0)
        daily.append(DailyValue(date=day, steps=steps))

    if not has_numeric:
        logger.debug("Line %d: skipping %s, no numeric step values", line_number, name)
        return None

    total_steps = sum(item.steps for item in daily)

    stated_steps = _parse_number(_cell(row, columns.total_steps), delimiter)
    if stated_steps is not None and int(round(stated_steps)) != total_steps:
        logger.debug(
            "Line %d: stated total %s differs from summed daily steps %d for %s",
            line_number,
            stated_steps,
            total_steps,
            name,
        )

    total_distance = _parse_number(_cell(row, columns.total_distance), delimiter) or 0.0
    total_distance = max(total_distance, 0.0)
    if total_distance and total_steps > 0:
        for item in daily:
            item.distance = item.steps / total_steps * total_distance

    return ParsedParticipant(
        name=name,
        total_steps=total_steps,
        total_distance=total_distance,
        daily_data=daily,
    )


def parse_step_csv(content: str | bytes) -> ParsedUpload:
    """Parse a wide step CSV into per-participant daily records."""
    text = content.decode("utf-8-sig") if isinstance(content, bytes) else content.lstrip("\ufeff")
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        raise EmptyFile()

    delimiter = detect_delimiter(lines[0])
    reader = csv.reader(lines, delimiter=delimiter)
    headers = [_clean_cell(cell) for cell in next(reader)]
    columns = match_columns(headers)

    participants: List[ParsedParticipant] = []
    for line_number, row in enumerate(reader, start=2):
        parsed = _parse_row(row, columns, delimiter, line_number)
        if parsed is not None:
            participants.append(parsed)

    if not participants:
        raise NoValidRows(headers)

    logger.info(
        "Parsed %d participants across %d date columns (delimiter=%r)",
        len(participants),
        len(columns.dates),
        delimiter,
    )
    return ParsedUpload(
        participants=participants,
        dates=[day for _, day in columns.dates],
        headers=headers,
        delimiter=delimiter,
    )
