"""Repository for the ``Repetitions`` table.

Timestamps reaching this layer are already normalized by the service.
"""

from __future__ import annotations

from typing import Optional

from habits.db.database import Database
from habits.models.repetition import Repetition


class RepetitionRepository:

    def __init__(self, db: Database):
        self._db = db

    def list_between(self, from_ms: int, to_ms: int) -> list[Repetition]:
        """Repetitions with ``from_ms <= timestamp < to_ms``."""
        rows = self._db.fetchall(
            """SELECT habit, timestamp, value, notes
               FROM Repetitions
               WHERE timestamp >= ? AND timestamp < ?
               ORDER BY timestamp ASC, habit ASC""",
            (from_ms, to_ms),
        )
        return [Repetition.from_row(r) for r in rows]

    def upsert(self, habit_id: int, timestamp: int, value: int, notes: Optional[str]) -> None:
        # Relies on the unique index on (habit, timestamp)
        self._db.execute(
            """INSERT INTO Repetitions (habit, timestamp, value, notes)
               VALUES (?, ?, ?, ?)
               ON CONFLICT(habit, timestamp) DO UPDATE
               SET value = excluded.value, notes = excluded.notes""",
            (habit_id, timestamp, value, notes),
        )

    def delete(self, habit_id: int, timestamp: int) -> bool:
        rowcount = self._db.execute(
            "DELETE FROM Repetitions WHERE habit = ? AND timestamp = ?",
            (habit_id, timestamp),
        )
        return rowcount > 0
