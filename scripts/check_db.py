"""Quick check of database state."""
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from habits.db.catalog import OBJECT_KINDS, list_columns, list_object_names, quote_identifier, read_int_pragma
from habits.db.database import Database

db_path = Path(sys.argv[1]) if len(sys.argv) > 1 else None
db = Database(path=db_path)
db.init()

print(f"=== {db.path} ===")
with db.connection() as conn:
    print(f"user_version: {read_int_pragma(conn, 'main', 'user_version')}")
    for kind in OBJECT_KINDS:
        names = list_object_names(conn, "main", kind)
        print(f"\n=== {kind.title()}s ===")
        print(f"Total: {len(names)}")
        for name in names:
            if kind == "table":
                count = conn.execute(f"SELECT COUNT(*) FROM main.{quote_identifier(name)}").fetchone()[0]
                cols = ", ".join(list_columns(conn, "main", name))
                print(f"  {name:<20} | {count:>6} rows | {cols}")
            else:
                print(f"  {name}")
db.close()
