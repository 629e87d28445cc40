"""Repository for the ``Habits`` table: CRUD plus list ordering."""

from __future__ import annotations

from typing import Optional

from habits.db.database import Database
from habits.models.habit import Habit


class HabitRepository:
    """Single-Responsibility repository for habit persistence."""

    def __init__(self, db: Database):
        self._db = db

    # -- Create ----------------------------------------------------------------

    def create(self, habit: Habit) -> Habit:
        placeholders = ", ".join("?" for _ in Habit.COLUMNS)
        with self._db.transaction() as conn:
            cursor = conn.execute(
                f"INSERT INTO Habits ({', '.join(Habit.COLUMNS)}) VALUES ({placeholders})",
                habit.row_values(),
            )
            habit.id = cursor.lastrowid
        return habit

    # -- Read ------------------------------------------------------------------

    def get_by_id(self, habit_id: int) -> Optional[Habit]:
        row = self._db.fetchone("SELECT * FROM Habits WHERE id = ?", (habit_id,))
        return Habit.from_row(row) if row else None

    def list_all(self) -> list[Habit]:
        rows = self._db.fetchall("SELECT * FROM Habits ORDER BY position ASC, id ASC")
        return [Habit.from_row(r) for r in rows]

    # -- Update ----------------------------------------------------------------

    def update(self, habit_id: int, habit: Habit) -> Optional[Habit]:
        """Overwrite every updatable column; ``None`` when the id is unknown."""
        set_parts = ", ".join(f"{col} = ?" for col in Habit.COLUMNS)
        with self._db.transaction() as conn:
            cursor = conn.execute(
                f"UPDATE Habits SET {set_parts} WHERE id = ?",
                (*habit.row_values(), habit_id),
            )
        if cursor.rowcount == 0:
            return None
        return self.get_by_id(habit_id)

    def update_description(self, habit_id: int, description: str) -> bool:
        rowcount = self._db.execute(
            "UPDATE Habits SET description = ? WHERE id = ?", (description, habit_id)
        )
        return rowcount > 0

    def reorder(self, ordered_ids: list[int]) -> None:
        """Set ``position`` to each id's index in ``ordered_ids``."""
        with self._db.transaction() as conn:
            conn.executemany(
                "UPDATE Habits SET position = ? WHERE id = ?",
                [(pos, habit_id) for pos, habit_id in enumerate(ordered_ids)],
            )
