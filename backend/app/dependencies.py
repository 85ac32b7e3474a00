from __future__ import annotations

from typing import Generator

from sqlalchemy.orm import Session

from .db.session import get_db_session


def get_db() -> Generator[Session, None, None]:
    with get_db_session() as session:
        yield session
