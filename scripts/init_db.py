#!/usr/bin/env python3
"""Initialize the database and optionally export or import a whole .db file."""

from __future__ import annotations

import argparse
import shutil
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from habits.db.database import Database
from habits.db.transfer import DatabaseImporter, SnapshotExporter


def main():
    parser = argparse.ArgumentParser(description="Initialize the database")
    parser.add_argument("--db-path", type=str, help="Override database path")
    parser.add_argument("--export", type=str, metavar="PATH", help="Write a snapshot of the database to PATH")
    parser.add_argument("--import", dest="import_path", type=str, metavar="PATH",
                        help="Replace the database contents with the .db file at PATH")
    args = parser.parse_args()

    db_path = Path(args.db_path) if args.db_path else None
    db = Database(path=db_path)
    db.init()
    print(f"Database initialized at: {db.path}")

    try:
        if args.import_path:
            _import(db, Path(args.import_path))

        if args.export:
            _export(db, Path(args.export))
    finally:
        db.close()
    print("Done.")


def _import(db: Database, path: Path):
    if not path.is_file():
        print(f"  No such file: {path}")
        sys.exit(1)
    DatabaseImporter(db).import_file(path)
    print(f"  Imported: {path}")


def _export(db: Database, path: Path):
    path.parent.mkdir(parents=True, exist_ok=True)
    with SnapshotExporter(db).export_snapshot() as snapshot, open(path, "wb") as out:
        shutil.copyfileobj(snapshot, out)
    print(f"  Exported: {path} ({path.stat().st_size} bytes)")


if __name__ == "__main__":
    main()
