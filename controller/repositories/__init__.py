"""Repository layer for data access."""

from controller.repositories.week_repository import WeekRepository

__all__ = [
    "WeekRepository",
]
