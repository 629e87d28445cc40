"""Whole-database export and import for the live SQLite file.

Export takes a ``VACUUM INTO`` snapshot and hands back a file object that
removes itself when closed.  Import attaches an uploaded database under a
per-request alias and replaces every table, view, index and trigger of
``main`` with the uploaded ones inside a single transaction, so readers see
either the old database or the new one and never a mix.
"""

from __future__ import annotations

import io
import logging
import os
import shutil
import sqlite3
import tempfile
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Callable, Generator, Optional

from habits.db.catalog import (
    list_columns,
    list_object_ddl,
    list_object_names,
    list_tables,
    quote_identifier,
    read_int_pragma,
    run_statement,
)
from habits.db.database import Database

logger = logging.getLogger(__name__)

MIN_SNAPSHOT_SQLITE_VERSION = (3, 27, 0)

IMPORT_PHASES = (
    "drop_views",
    "drop_triggers",
    "drop_indexes",
    "drop_tables",
    "create_tables",
    "copy_data",
    "create_views",
    "create_indexes",
    "create_triggers",
    "copy_user_version",
)

_DROP_SQL = {
    "view": "DROP VIEW IF EXISTS {}",
    "trigger": "DROP TRIGGER IF EXISTS {}",
    "index": "DROP INDEX IF EXISTS {}",
    "table": "DROP TABLE IF EXISTS {}",
}


class SnapshotUnsupportedError(RuntimeError):
    """The installed SQLite cannot run ``VACUUM INTO``."""


class EmptyUploadError(ValueError):
    """The uploaded database file is missing or has no bytes."""


# -- temp files ----------------------------------------------------------------

def new_temp_path(prefix: str, temp_dir: Optional[Path] = None) -> Path:
    """Reserve a unique, process-local path (the file exists and is empty)."""
    if temp_dir is not None:
        Path(temp_dir).mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(prefix=prefix, suffix=".db", dir=temp_dir)
    os.close(fd)
    return Path(name)


def remove_db_file(path: Path) -> None:
    """Delete a database file plus the journal files SQLite may leave next to it."""
    for suffix in ("", "-wal", "-shm", "-journal"):
        try:
            Path(f"{path}{suffix}").unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove temp file {path}{suffix}: {e}")


class SnapshotFile(io.BufferedReader):
    """Read-only handle on an export snapshot; the file is deleted on close."""

    def __init__(self, path: Path):
        super().__init__(io.FileIO(str(path), "rb"))
        self.path = path

    def close(self) -> None:
        try:
            super().close()
        finally:
            remove_db_file(self.path)


@contextmanager
def autocommit(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
    """Run the block with implicit transactions off, then restore the old mode."""
    previous = conn.isolation_level
    conn.isolation_level = None
    try:
        yield conn
    finally:
        try:
            conn.isolation_level = previous
        except sqlite3.Error as e:
            logger.debug(f"Could not restore isolation level: {e}")


# -- export --------------------------------------------------------------------

def _is_snapshot_unsupported(error: sqlite3.Error) -> bool:
    if sqlite3.sqlite_version_info < MIN_SNAPSHOT_SQLITE_VERSION:
        return True
    return "into" in str(error).lower()


class SnapshotExporter:
    """Produces a transactionally consistent copy of the live database."""

    def __init__(self, db: Database, temp_dir: Optional[Path] = None):
        self._db = db
        self._temp_dir = temp_dir

    def export_snapshot(self) -> SnapshotFile:
        target = new_temp_path("loop_export_", self._temp_dir)
        # VACUUM INTO refuses to overwrite an existing file
        target.unlink()

        try:
            with self._db.connection() as conn:
                run_statement(conn, f"PRAGMA busy_timeout = {int(self._db.busy_timeout_ms)}")
                with autocommit(conn):
                    run_statement(conn, "VACUUM INTO ?", (str(target),))
        except sqlite3.Error as e:
            remove_db_file(target)
            if _is_snapshot_unsupported(e):
                min_version = ".".join(str(p) for p in MIN_SNAPSHOT_SQLITE_VERSION)
                raise SnapshotUnsupportedError(
                    f"VACUUM INTO unsupported by current SQLite ({sqlite3.sqlite_version}); "
                    f"use SQLite >= {min_version}."
                ) from e
            raise
        except BaseException:
            remove_db_file(target)
            raise

        # A zero-page source may leave no file behind; an empty file is a valid empty database
        target.touch(exist_ok=True)
        logger.info(f"Exported snapshot of {self._db.path} ({target.stat().st_size} bytes)")
        return SnapshotFile(target)


# -- import --------------------------------------------------------------------

def new_alias() -> str:
    """Attach alias unique across pooled connections and concurrent requests."""
    return f"src_{uuid.uuid4().hex}"


class AttachedSchema:
    """Scoped ATTACH of a database file on one connection.

    ``detach()`` is safe to call repeatedly; with ``best_effort=True`` a failing
    DETACH is logged and left for a later attempt instead of raised.
    """

    def __init__(self, conn: sqlite3.Connection, path: Path, alias: Optional[str] = None):
        self._conn = conn
        self.path = path
        self.alias = alias or new_alias()
        self.attached = False

    def attach(self) -> "AttachedSchema":
        run_statement(self._conn, f"ATTACH DATABASE ? AS {self.alias}", (str(self.path),))
        self.attached = True
        return self

    def detach(self, best_effort: bool = False) -> None:
        if not self.attached:
            return
        try:
            run_statement(self._conn, f"DETACH DATABASE {self.alias}")
        except sqlite3.Error as e:
            if not best_effort:
                raise
            logger.debug(f"Deferred detach of {self.alias}: {e}")
            return
        self.attached = False

    def __enter__(self) -> "AttachedSchema":
        return self.attach()

    def __exit__(self, *exc) -> None:
        self.detach(best_effort=True)


PhaseFn = Callable[[sqlite3.Connection, str], None]


class DatabaseImporter:
    """Replaces the live database's schema and rows with an uploaded file."""

    def __init__(self, db: Database, temp_dir: Optional[Path] = None):
        self._db = db
        self._temp_dir = temp_dir

    # -- entry points ----------------------------------------------------------

    def import_upload(self, fileobj: BinaryIO) -> None:
        """Copy ``fileobj`` to a private temp file, then import from it."""
        source = self.materialize(fileobj)
        try:
            self._replace_from(source)
        finally:
            remove_db_file(source)

    def import_file(self, path: Path | str) -> None:
        with open(path, "rb") as fh:
            self.import_upload(fh)

    def materialize(self, fileobj: Optional[BinaryIO]) -> Path:
        if fileobj is None:
            raise EmptyUploadError("No file uploaded.")
        target = new_temp_path("loop_upload_", self._temp_dir)
        try:
            with open(target, "wb") as out:
                shutil.copyfileobj(fileobj, out)
            if target.stat().st_size == 0:
                raise EmptyUploadError("No file uploaded.")
        except BaseException:
            remove_db_file(target)
            raise
        return target

    # -- pipeline --------------------------------------------------------------

    def phases(self) -> list[tuple[str, PhaseFn]]:
        return [(name, getattr(self, f"_{name}")) for name in IMPORT_PHASES]

    def _replace_from(self, source: Path) -> None:
        with self._db.connection() as conn:
            run_statement(conn, f"PRAGMA busy_timeout = {int(self._db.busy_timeout_ms)}")
            with autocommit(conn):
                attached = AttachedSchema(conn, source)
                try:
                    try:
                        # foreign_keys is a no-op inside a transaction, so flip it first
                        run_statement(conn, "PRAGMA foreign_keys = OFF")
                        attached.attach()
                        run_statement(conn, "BEGIN")
                        for name, phase in self.phases():
                            logger.debug(f"Import phase {name} ({attached.alias})")
                            phase(conn, attached.alias)
                        run_statement(conn, "COMMIT")
                    except Exception:
                        attached.detach(best_effort=True)
                        if conn.in_transaction:
                            conn.rollback()
                        logger.warning(f"Import from {source.name} rolled back")
                        raise

                    # DETACH is refused while a transaction holds the alias
                    attached.detach(best_effort=True)
                    run_statement(conn, "PRAGMA foreign_keys = ON")
                finally:
                    attached.detach(best_effort=True)
                    try:
                        run_statement(conn, "PRAGMA foreign_keys = ON")
                    except sqlite3.Error as e:
                        logger.debug(f"Could not re-enable foreign keys: {e}")

        logger.info(f"Imported database into {self._db.path}")

    def _drop_all(self, conn: sqlite3.Connection, kind: str) -> None:
        # Collect every name before dropping anything
        statements = [
            _DROP_SQL[kind].format("main." + quote_identifier(name))
            for name in list_object_names(conn, "main", kind)
        ]
        for sql in statements:
            run_statement(conn, sql)

    def _replay_ddl(self, conn: sqlite3.Connection, alias: str, kind: str) -> None:
        for ddl in list_object_ddl(conn, alias, kind):
            run_statement(conn, ddl)

    def _drop_views(self, conn: sqlite3.Connection, alias: str) -> None:
        self._drop_all(conn, "view")

    def _drop_triggers(self, conn: sqlite3.Connection, alias: str) -> None:
        self._drop_all(conn, "trigger")

    def _drop_indexes(self, conn: sqlite3.Connection, alias: str) -> None:
        self._drop_all(conn, "index")

    def _drop_tables(self, conn: sqlite3.Connection, alias: str) -> None:
        self._drop_all(conn, "table")

    def _create_tables(self, conn: sqlite3.Connection, alias: str) -> None:
        self._replay_ddl(conn, alias, "table")

    def _copy_data(self, conn: sqlite3.Connection, alias: str) -> None:
        for table in list_tables(conn, alias):
            columns = list_columns(conn, alias, table)
            if not columns:
                logger.debug(f"Skipping {table}: no columns")
                continue
            col_list = ", ".join(quote_identifier(c) for c in columns)
            run_statement(
                conn,
                f"INSERT INTO main.{quote_identifier(table)} ({col_list}) "
                f"SELECT {col_list} FROM {alias}.{quote_identifier(table)}",
            )

    def _create_views(self, conn: sqlite3.Connection, alias: str) -> None:
        self._replay_ddl(conn, alias, "view")

    def _create_indexes(self, conn: sqlite3.Connection, alias: str) -> None:
        self._replay_ddl(conn, alias, "index")

    def _create_triggers(self, conn: sqlite3.Connection, alias: str) -> None:
        self._replay_ddl(conn, alias, "trigger")

    def _copy_user_version(self, conn: sqlite3.Connection, alias: str) -> None:
        version = read_int_pragma(conn, alias, "user_version")
        run_statement(conn, f"PRAGMA main.user_version = {version}")
