"""Repetition service: timestamp normalization around ``RepetitionRepository``.

Incoming timestamps may be epoch seconds or milliseconds; they are stored as
milliseconds floored to the UTC day.
"""

from __future__ import annotations

from typing import Optional

from habits.db.database import Database
from habits.db.repetition_repo import RepetitionRepository
from habits.models.repetition import Repetition
from habits.timeutil import normalize_units_to_ms, to_utc_midnight


class RepetitionService:

    def __init__(self, db: Database):
        self._repo = RepetitionRepository(db)

    def list_between(self, from_inclusive: int, to_exclusive: int) -> list[Repetition]:
        return self._repo.list_between(
            normalize_units_to_ms(from_inclusive), normalize_units_to_ms(to_exclusive)
        )

    def save(
        self,
        habit_id: int,
        timestamp: int,
        value: Optional[int],
        notes: Optional[str] = None,
    ) -> None:
        """Upsert the day's repetition; a ``None`` value clears it instead."""
        day = to_utc_midnight(normalize_units_to_ms(timestamp))
        if value is None:
            self._repo.delete(habit_id, day)
        else:
            self._repo.upsert(habit_id, day, value, notes)

    def delete(self, habit_id: int, timestamp: int) -> bool:
        day = to_utc_midnight(normalize_units_to_ms(timestamp))
        return self._repo.delete(habit_id, day)
