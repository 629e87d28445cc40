from habits.models.habit import Habit
from habits.models.repetition import Repetition

__all__ = ["Habit", "Repetition"]
