from __future__ import annotations

from typing import Any

__all__ = ["leaderboard_router"]


def __getattr__(name: str) -> Any:
    if name == "leaderboard_router":
        from .router import leaderboard_router as _leaderboard_router

        return _leaderboard_router
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
