"""Habit service: thin facade over ``HabitRepository``."""

from __future__ import annotations

import logging
from typing import Optional

from habits.db.database import Database
from habits.db.habit_repo import HabitRepository
from habits.models.habit import Habit

logger = logging.getLogger(__name__)


class HabitNotFoundError(LookupError):
    def __init__(self, habit_id: int):
        super().__init__(f"Habit not found with id {habit_id}")
        self.habit_id = habit_id


class HabitService:

    def __init__(self, db: Database):
        self._repo = HabitRepository(db)

    def create(self, habit: Habit) -> Habit:
        created = self._repo.create(habit)
        logger.info(f"Created habit {created.id}: {created.name}")
        return created

    def update(self, habit_id: int, habit: Habit) -> Habit:
        updated = self._repo.update(habit_id, habit)
        if updated is None:
            raise HabitNotFoundError(habit_id)
        logger.info(f"Updated habit {habit_id}")
        return updated

    def get(self, habit_id: int) -> Optional[Habit]:
        return self._repo.get_by_id(habit_id)

    def get_all(self) -> list[Habit]:
        return self._repo.list_all()

    def patch_description(self, habit_id: int, description: Optional[str]) -> None:
        """Set the description when one is given; ``None`` leaves the row alone."""
        if description is not None:
            self._repo.update_description(habit_id, description)

    def reorder(self, ordered_ids: list[int]) -> None:
        if not ordered_ids:
            raise ValueError("Order list is empty.")
        self._repo.reorder(ordered_ids)
        logger.info(f"Reordered {len(ordered_ids)} habits")
