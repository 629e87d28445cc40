"""Loop Habits backend: habit/repetition CRUD plus live SQLite export and import."""

__version__ = "1.0.0"
