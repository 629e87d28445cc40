"""Database layer: pooled SQLite, repositories, and whole-database transfer."""

from habits.db.database import Database
from habits.db.schema import SCHEMA_DDL
from habits.db.transfer import DatabaseImporter, SnapshotExporter

__all__ = ["Database", "SCHEMA_DDL", "DatabaseImporter", "SnapshotExporter"]
