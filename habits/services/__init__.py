from habits.services.habit_service import HabitNotFoundError, HabitService
from habits.services.repetition_service import RepetitionService

__all__ = ["HabitNotFoundError", "HabitService", "RepetitionService"]
