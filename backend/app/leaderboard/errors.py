from __future__ import annotations

from typing import Sequence


class LeaderboardError(Exception):
    """Base class for errors raised by the leaderboard engine."""


class CsvFormatError(LeaderboardError):
    """The uploaded CSV does not have the expected shape."""

    def __init__(self, message: str, headers: Sequence[str] | None = None) -> None:
        self.headers = list(headers or [])
        if self.headers:
            message = f"{message} Found headers: {', '.join(self.headers)}"
        super().__init__(message)


class MissingColumn(CsvFormatError):
    def __init__(self, column: str, headers: Sequence[str]) -> None:
        self.column = column
        super().__init__(f"CSV file is missing a '{column}' column.", headers)


class NoDateColumns(CsvFormatError):
    def __init__(self, headers: Sequence[str]) -> None:
        super().__init__("CSV file has no date columns (expected headers like 2024-01-15).", headers)


class EmptyFile(CsvFormatError):
    def __init__(self) -> None:
        super().__init__("CSV file must contain a header row and at least one data row.")


class NoValidRows(CsvFormatError):
    def __init__(self, headers: Sequence[str]) -> None:
        super().__init__("CSV file does not contain any rows with a name and step values.", headers)


class NotFoundError(LeaderboardError):
    """A referenced record does not exist or is outside the expected scope."""


class ParticipantNotFound(NotFoundError):
    def __init__(self, participant_id: str, group_id: str | None = None) -> None:
        self.participant_id = participant_id
        self.group_id = group_id
        scope = f" in group {group_id}" if group_id else ""
        super().__init__(f"Participant {participant_id} not found{scope}.")


class EntryNotFound(NotFoundError):
    def __init__(self, entry_id: int, participant_id: str) -> None:
        self.entry_id = entry_id
        self.participant_id = participant_id
        super().__init__(f"Entry {entry_id} not found for participant {participant_id}.")


class WeekNotFound(NotFoundError):
    def __init__(self, challenge_id: str) -> None:
        self.challenge_id = challenge_id
        super().__init__(f"Weekly challenge {challenge_id} not found.")


class GroupNotFound(NotFoundError):
    def __init__(self, group_id: str) -> None:
        self.group_id = group_id
        super().__init__(f"Group {group_id} not found or inactive.")


class AlreadyMember(LeaderboardError):
    def __init__(self, group_id: str, user_id: str) -> None:
        self.group_id = group_id
        self.user_id = user_id
        super().__init__(f"User {user_id} is already a member of group {group_id}.")
