"""Statement runner and schema introspection over ``sqlite_master``.

Everything here takes an explicit connection plus a schema name (``main`` or
an ATTACH alias).  Catalog reads are drained and their cursors closed before
returning, so callers can issue DDL on the same connection right after.
"""

from __future__ import annotations

import re
import sqlite3
from typing import Any, Sequence

OBJECT_KINDS = ("table", "view", "index", "trigger")

# Names SQLite reserves for its own objects (sqlite_sequence, sqlite_autoindex_*, ...)
RESERVED_PREFIX = "sqlite_"

_NOT_RESERVED = "name NOT LIKE 'sqlite\\_%' ESCAPE '\\'"
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _check_bare(name: str, what: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid {what}: {name!r}")
    return name


def _check_kind(kind: str) -> str:
    if kind not in OBJECT_KINDS:
        raise ValueError(f"Unknown schema object type: {kind!r}")
    return kind


def run_statement(conn: sqlite3.Connection, sql: str, params: Sequence[Any] = ()) -> None:
    """Execute one statement; driver errors propagate untouched."""
    cursor = conn.execute(sql, params)
    cursor.close()


def _query(conn: sqlite3.Connection, sql: str, params: Sequence[Any] = ()) -> list[tuple]:
    cursor = conn.execute(sql, params)
    try:
        return [tuple(r) for r in cursor.fetchall()]
    finally:
        cursor.close()


def list_tables(conn: sqlite3.Connection, schema: str) -> list[str]:
    schema = _check_bare(schema, "schema name")
    rows = _query(
        conn,
        f"SELECT name FROM {schema}.sqlite_master "
        f"WHERE type = 'table' AND {_NOT_RESERVED} ORDER BY name",
    )
    return [r[0] for r in rows]


def list_columns(conn: sqlite3.Connection, schema: str, table: str) -> list[str]:
    """Column names in declaration order, not alphabetical."""
    schema = _check_bare(schema, "schema name")
    rows = _query(conn, f"PRAGMA {schema}.table_info({quote_identifier(table)})")
    # table_info rows: (cid, name, type, notnull, dflt_value, pk)
    return [r[1] for r in sorted(rows, key=lambda r: r[0])]


def list_object_ddl(conn: sqlite3.Connection, schema: str, kind: str) -> list[str]:
    """CREATE statements for ``kind`` objects, ordered by name.

    Objects without their own DDL (auto indexes backing UNIQUE / PRIMARY KEY
    constraints) are skipped; replaying them would create a duplicate.
    """
    schema = _check_bare(schema, "schema name")
    rows = _query(
        conn,
        f"SELECT sql FROM {schema}.sqlite_master "
        f"WHERE type = ? AND sql IS NOT NULL AND {_NOT_RESERVED} ORDER BY name",
        (_check_kind(kind),),
    )
    return [r[0].strip() for r in rows if r[0] and r[0].strip()]


def list_object_names(conn: sqlite3.Connection, schema: str, kind: str) -> list[str]:
    """Names of droppable ``kind`` objects, ordered by name."""
    schema = _check_bare(schema, "schema name")
    sql = (
        f"SELECT name FROM {schema}.sqlite_master "
        f"WHERE type = ? AND {_NOT_RESERVED}"
    )
    if kind == "index":
        sql += " AND sql IS NOT NULL"
    rows = _query(conn, sql + " ORDER BY name", (_check_kind(kind),))
    return [r[0] for r in rows]


def read_int_pragma(conn: sqlite3.Connection, schema: str, name: str) -> int:
    schema = _check_bare(schema, "schema name")
    name = _check_bare(name, "pragma name")
    rows = _query(conn, f"PRAGMA {schema}.{name}")
    if not rows or rows[0][0] is None:
        return 0
    return int(rows[0][0])
