"""HTTP layer for the Loop Habits backend."""
