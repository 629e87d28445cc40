"""Habit domain model: one row of the ``Habits`` table."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Optional


@dataclass
class Habit:
    """A tracked habit as stored by Loop Habit Tracker.

    Boolean columns (``archived``, ``highlight``) are stored as nullable 0/1
    integers, so ``None`` is preserved.
    """

    id: Optional[int] = None
    archived: Optional[bool] = None
    color: Optional[int] = None
    description: Optional[str] = None
    freq_den: Optional[int] = None
    freq_num: Optional[int] = None
    highlight: Optional[bool] = None
    name: Optional[str] = None
    position: Optional[int] = None
    reminder_hour: Optional[int] = None
    reminder_min: Optional[int] = None
    reminder_days: int = 127
    type: int = 0
    target_type: int = 0
    target_value: float = 0.0
    unit: str = ""
    question: Optional[str] = None
    uuid: Optional[str] = None

    # Columns written on create/update, in table order (``id`` excluded).
    COLUMNS = (
        "archived", "color", "description", "freq_den", "freq_num",
        "highlight", "name", "position", "reminder_hour", "reminder_min",
        "reminder_days", "type", "target_type", "target_value", "unit",
        "question", "uuid",
    )

    def row_values(self) -> tuple[Any, ...]:
        """Values for ``COLUMNS``, with booleans flattened to 0/1."""
        values = []
        for col in self.COLUMNS:
            val = getattr(self, col)
            if isinstance(val, bool):
                val = int(val)
            values.append(val)
        return tuple(values)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "archived": self.archived,
            "color": self.color,
            "description": self.description,
            "freqDen": self.freq_den,
            "freqNum": self.freq_num,
            "highlight": self.highlight,
            "name": self.name,
            "position": self.position,
            "reminderHour": self.reminder_hour,
            "reminderMin": self.reminder_min,
            "reminderDays": self.reminder_days,
            "type": self.type,
            "targetType": self.target_type,
            "targetValue": self.target_value,
            "unit": self.unit,
            "question": self.question,
            "uuid": self.uuid,
        }

    @staticmethod
    def _as_bool(raw: Any) -> Optional[bool]:
        return None if raw is None else bool(raw)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Habit":
        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in row.items() if k in known}
        habit = cls(**data)
        habit.archived = cls._as_bool(row.get("archived"))
        habit.highlight = cls._as_bool(row.get("highlight"))
        if habit.reminder_days is None:
            habit.reminder_days = 127
        if habit.unit is None:
            habit.unit = ""
        return habit
