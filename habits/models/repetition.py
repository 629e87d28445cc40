"""Repetition domain model: one check-in of a habit on a given day."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from habits.timeutil import normalize_units_to_ms


@dataclass
class Repetition:
    habit: int
    timestamp: int
    value: int
    notes: Optional[str] = None
    id: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "habit": self.habit,
            "timestamp": self.timestamp,
            "value": self.value,
            "notes": self.notes,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Repetition":
        # Older exports store seconds; always hand out milliseconds.
        return cls(
            id=row.get("id"),
            habit=row["habit"],
            timestamp=normalize_units_to_ms(row["timestamp"]),
            value=row["value"],
            notes=row.get("notes"),
        )
