"""Build a standalone SQLite file from a JSON dump of schema objects and rows.

Dump shape::

    {
      "schema": {"objects": [{"type": "table", "sql": "CREATE TABLE ..."}, ...],
                 "user_version": 3},
      "data": {"Habits": [{"id": 1, "name": "Read"}, ...], ...}
    }
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any, Optional

from habits.db.catalog import list_columns, quote_identifier, run_statement
from habits.db.transfer import new_temp_path, remove_db_file

logger = logging.getLogger(__name__)


def _required(node: Any, name: str) -> Any:
    if not isinstance(node, dict) or node.get(name) is None:
        raise ValueError(f"Missing field: {name}")
    return node[name]


def _bindable(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (dict, list)):
        raise ValueError(f"Unsupported value in dump: {value!r}")
    return value


def _exec_objects(conn: sqlite3.Connection, objects: list[dict[str, Any]], kind: str) -> None:
    for obj in objects:
        if obj.get("type") != kind or obj.get("sql") is None:
            continue
        ddl = str(obj["sql"]).strip()
        if ddl:
            run_statement(conn, ddl)


def build_database_from_dump(dump: dict[str, Any], temp_dir: Optional[Path] = None) -> Path:
    """Write ``dump`` into a fresh temp database and return its path.

    The caller owns the returned file.  On any failure the partial file is
    removed and the error re-raised.
    """
    schema = _required(dump, "schema")
    objects = _required(schema, "objects")
    data = _required(dump, "data")
    if not isinstance(objects, list) or not isinstance(data, dict):
        raise ValueError("Malformed dump: schema.objects must be a list and data an object")

    target = new_temp_path("loop_export_", temp_dir)
    try:
        conn = sqlite3.connect(str(target), isolation_level=None)
        try:
            run_statement(conn, "PRAGMA foreign_keys = OFF")
            run_statement(conn, "PRAGMA journal_mode = MEMORY")
            run_statement(conn, "PRAGMA synchronous = OFF")
            run_statement(conn, "BEGIN")

            _exec_objects(conn, objects, "table")

            for table, rows in data.items():
                if not isinstance(rows, list) or not rows:
                    continue
                columns = list_columns(conn, "main", table)
                if not columns:
                    raise ValueError(f"Dump data references unknown table: {table}")
                if not all(isinstance(row, dict) for row in rows):
                    raise ValueError(f"Rows for {table} must be JSON objects")
                placeholders = ", ".join("?" for _ in columns)
                col_list = ", ".join(quote_identifier(c) for c in columns)
                conn.executemany(
                    f"INSERT INTO {quote_identifier(table)} ({col_list}) VALUES ({placeholders})",
                    [tuple(_bindable(row.get(c)) for c in columns) for row in rows],
                )

            _exec_objects(conn, objects, "view")
            _exec_objects(conn, objects, "index")
            _exec_objects(conn, objects, "trigger")

            user_version = int(schema.get("user_version") or 0)
            run_statement(conn, f"PRAGMA user_version = {user_version}")
            run_statement(conn, "COMMIT")
            run_statement(conn, "PRAGMA foreign_keys = ON")
        except BaseException:
            if conn.in_transaction:
                conn.rollback()
            raise
        finally:
            conn.close()
    except BaseException:
        remove_db_file(target)
        raise

    logger.info(f"Built database from JSON dump ({len(data)} tables)")
    return target
