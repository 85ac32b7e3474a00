"""
Database package for the step leaderboard backend.

Exposes the SQLAlchemy base metadata and session helpers so the leaderboard
services can read and write groups, weeks, entries and daily steps without
knowing which engine is active (SQLite by default, PostgreSQL when the DB_*
environment variables are provided).
"""

from .session import Base, SessionLocal, engine, get_db_session, get_engine_info

__all__ = [
    "Base",
    "SessionLocal",
    "engine",
    "get_db_session",
    "get_engine_info",
]
