from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .session import Base


SOURCE_UPLOAD = "upload"
SOURCE_MANUAL = "manual"


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Group(Base):
    __tablename__ = "groups"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    participants: Mapped[List["Participant"]] = relationship(
        "Participant",
        back_populates="group",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    challenges: Mapped[List["WeeklyChallenge"]] = relationship(
        "WeeklyChallenge",
        back_populates="group",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Participant(Base):
    __tablename__ = "participants"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_participants_group_user"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    group_id: Mapped[str] = mapped_column(String, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Demo rows inserted by the seed routine; excluded from every leaderboard read.
    is_seed_data: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    group: Mapped["Group"] = relationship("Group", back_populates="participants")
    entries: Mapped[List["LeaderboardEntry"]] = relationship(
        "LeaderboardEntry",
        back_populates="participant",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class WeeklyChallenge(Base):
    __tablename__ = "weekly_challenges"
    __table_args__ = (
        UniqueConstraint("group_id", "week_number", "year", name="uq_weekly_challenges_group_week"),
        Index("idx_weekly_challenges_week", "week_number", "year"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    group_id: Mapped[str] = mapped_column(String, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    week_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    week_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    group: Mapped["Group"] = relationship("Group", back_populates="challenges")
    entries: Mapped[List["LeaderboardEntry"]] = relationship(
        "LeaderboardEntry",
        back_populates="challenge",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class LeaderboardEntry(Base):
    __tablename__ = "leaderboard_entries"
    __table_args__ = (
        UniqueConstraint("challenge_id", "participant_id", name="uq_leaderboard_entries_challenge_participant"),
        Index("idx_leaderboard_entries_rank", "rank"),
        {"sqlite_autoincrement": True},
    )

    # Monotonic ids double as submission order when step counts tie.
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    challenge_id: Mapped[str] = mapped_column(
        String, ForeignKey("weekly_challenges.id", ondelete="CASCADE"), nullable=False, index=True
    )
    participant_id: Mapped[str] = mapped_column(
        String, ForeignKey("participants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    steps: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    distance: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0, server_default="0")
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    rank: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    challenge: Mapped["WeeklyChallenge"] = relationship("WeeklyChallenge", back_populates="entries")
    participant: Mapped["Participant"] = relationship("Participant", back_populates="entries")


class DailyStep(Base):
    __tablename__ = "daily_steps"
    __table_args__ = (
        UniqueConstraint("challenge_id", "participant_id", "step_date", name="uq_daily_steps_challenge_participant_date"),
        Index("idx_daily_steps_date", "step_date"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    challenge_id: Mapped[str] = mapped_column(
        String, ForeignKey("weekly_challenges.id", ondelete="CASCADE"), nullable=False, index=True
    )
    participant_id: Mapped[str] = mapped_column(
        String, ForeignKey("participants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    step_date: Mapped[date] = mapped_column(Date, nullable=False)
    steps: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    distance: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0, server_default="0")
    # "upload" rows come from a CSV; "manual" rows are a weekly total spread over the days.
    source: Mapped[str] = mapped_column(
        String(16), nullable=False, default=SOURCE_UPLOAD, server_default=SOURCE_UPLOAD
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )


class UploadLog(Base):
    __tablename__ = "upload_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    resource: Mapped[str] = mapped_column(String, nullable=False)
    group_id: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    challenge_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="success")
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rows_succeeded: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rows_failed: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    duration_seconds: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now())
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


Index("idx_participants_name_lc", Participant.group_id, func.lower(Participant.name))
