"""Unit tests for the DB layer: pool, schema, models, repositories and services.

Every test uses a fresh temporary database file so tests are isolated and
leave no artefacts on disk.
"""

from __future__ import annotations

import sqlite3
import tempfile
import unittest
from contextlib import ExitStack
from pathlib import Path

from habits.db.database import Database
from habits.db.habit_repo import HabitRepository
from habits.db.repetition_repo import RepetitionRepository
from habits.db.transfer import remove_db_file
from habits.models.habit import Habit
from habits.models.repetition import Repetition
from habits.services.habit_service import HabitNotFoundError, HabitService
from habits.services.repetition_service import RepetitionService
from habits.timeutil import normalize_units_to_ms, to_utc_midnight


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_db(**kwargs) -> Database:
    """Return a Database backed by a fresh temporary file."""
    tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    tmp.close()
    db = Database(path=Path(tmp.name), **kwargs)
    db.init()
    return db


def _drop_db(db: Database) -> None:
    db.close()
    remove_db_file(db.path)


def _sample_habit(**overrides) -> Habit:
    defaults = dict(
        name="Read",
        description="Read 20 pages",
        color=3,
        freq_num=1,
        freq_den=1,
        archived=False,
        highlight=False,
        position=0,
        question="Did you read today?",
        uuid="4f1c9d0e",
    )
    defaults.update(overrides)
    return Habit(**defaults)


DAY_MS = 86_400_000
# 2023-11-14 00:00:00 UTC
MIDNIGHT_MS = 1_699_920_000_000


# ===========================================================================
# 1. Database core
# ===========================================================================

class TestDatabaseCore(unittest.TestCase):
    def setUp(self):
        self.db = _make_db()

    def tearDown(self):
        _drop_db(self.db)

    def test_tables_created(self):
        tables = self.db.fetchall(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
        )
        names = {t["name"] for t in tables}
        self.assertTrue({"Habits", "Repetitions"}.issubset(names))

    def test_unique_repetition_index_created(self):
        row = self.db.fetchone(
            "SELECT name FROM sqlite_master WHERE type='index' AND name=?",
            ("idx_repetitions_habit_timestamp",),
        )
        self.assertIsNotNone(row)

    def test_init_is_idempotent(self):
        self.db.init()
        self.db.init()
        row = self.db.fetchone("SELECT COUNT(*) AS n FROM sqlite_master WHERE type='table' AND name='Habits'")
        self.assertEqual(row["n"], 1)

    def test_foreign_keys_enabled(self):
        row = self.db.fetchone("PRAGMA foreign_keys")
        self.assertEqual(row["foreign_keys"], 1)

    def test_busy_timeout_set(self):
        row = self.db.fetchone("PRAGMA busy_timeout")
        self.assertEqual(list(row.values())[0], 10000)

    def test_transaction_commit(self):
        with self.db.transaction() as conn:
            conn.execute("INSERT INTO Habits (name) VALUES (?)", ("Run",))
        row = self.db.fetchone("SELECT * FROM Habits WHERE name = 'Run'")
        self.assertIsNotNone(row)

    def test_transaction_rollback(self):
        try:
            with self.db.transaction() as conn:
                conn.execute("INSERT INTO Habits (name) VALUES (?)", ("Swim",))
                raise ValueError("Force rollback")
        except ValueError:
            pass
        row = self.db.fetchone("SELECT * FROM Habits WHERE name = 'Swim'")
        self.assertIsNone(row)

    def test_foreign_key_violation_raises(self):
        with self.assertRaises(sqlite3.IntegrityError):
            self.db.execute(
                "INSERT INTO Repetitions (habit, timestamp, value) VALUES (?, ?, ?)",
                (999, MIDNIGHT_MS, 2),
            )


class TestConnectionPool(unittest.TestCase):
    def setUp(self):
        self.db = _make_db(pool_size=2, pool_timeout=0.1)

    def tearDown(self):
        _drop_db(self.db)

    def test_connections_are_reused(self):
        with self.db.connection() as first:
            pass
        with self.db.connection() as second:
            pass
        self.assertIs(first, second)

    def test_exhausted_pool_times_out(self):
        with ExitStack() as stack:
            stack.enter_context(self.db.connection())
            stack.enter_context(self.db.connection())
            with self.assertRaises(TimeoutError):
                with self.db.connection():
                    pass

    def test_open_transaction_rolled_back_on_release(self):
        with self.db.connection() as conn:
            conn.execute("INSERT INTO Habits (name) VALUES ('dangling')")
            self.assertTrue(conn.in_transaction)
        self.assertIsNone(self.db.fetchone("SELECT * FROM Habits WHERE name = 'dangling'"))


# ===========================================================================
# 2. Time helpers
# ===========================================================================

class TestTimeUtil(unittest.TestCase):
    def test_seconds_scaled_to_ms(self):
        self.assertEqual(normalize_units_to_ms(1_699_920_000), MIDNIGHT_MS)

    def test_ms_left_alone(self):
        self.assertEqual(normalize_units_to_ms(MIDNIGHT_MS), MIDNIGHT_MS)

    def test_utc_midnight_floor(self):
        self.assertEqual(to_utc_midnight(MIDNIGHT_MS + 80_123_456), MIDNIGHT_MS)
        self.assertEqual(to_utc_midnight(MIDNIGHT_MS), MIDNIGHT_MS)

    def test_utc_midnight_before_epoch(self):
        self.assertEqual(to_utc_midnight(-1), -DAY_MS)


# ===========================================================================
# 3. Habit model & repo
# ===========================================================================

class TestHabitModel(unittest.TestCase):
    def test_to_dict_uses_client_keys(self):
        d = _sample_habit(freq_den=7, reminder_hour=8).to_dict()
        self.assertEqual(d["freqDen"], 7)
        self.assertEqual(d["reminderHour"], 8)
        self.assertEqual(d["reminderDays"], 127)
        self.assertNotIn("freq_den", d)

    def test_from_row_converts_flags(self):
        h = Habit.from_row({"id": 1, "name": "Read", "archived": 1, "highlight": None,
                            "reminder_days": None, "unit": None, "extra": "ignored"})
        self.assertIs(h.archived, True)
        self.assertIsNone(h.highlight)
        self.assertEqual(h.reminder_days, 127)
        self.assertEqual(h.unit, "")

    def test_row_values_flatten_booleans(self):
        values = dict(zip(Habit.COLUMNS, _sample_habit(archived=True).row_values()))
        self.assertEqual(values["archived"], 1)
        self.assertEqual(values["highlight"], 0)


class TestHabitRepository(unittest.TestCase):
    def setUp(self):
        self.db = _make_db()
        self.repo = HabitRepository(self.db)

    def tearDown(self):
        _drop_db(self.db)

    def test_create_and_get(self):
        created = self.repo.create(_sample_habit())
        self.assertIsNotNone(created.id)
        fetched = self.repo.get_by_id(created.id)
        self.assertEqual(fetched.name, "Read")
        self.assertIs(fetched.archived, False)

    def test_get_missing(self):
        self.assertIsNone(self.repo.get_by_id(12345))

    def test_list_ordered_by_position(self):
        self.repo.create(_sample_habit(name="B", position=2))
        self.repo.create(_sample_habit(name="A", position=1))
        self.assertEqual([h.name for h in self.repo.list_all()], ["A", "B"])

    def test_update(self):
        h = self.repo.create(_sample_habit())
        updated = self.repo.update(h.id, _sample_habit(name="Exercise", color=5))
        self.assertEqual(updated.name, "Exercise")
        self.assertEqual(updated.color, 5)

    def test_update_missing_returns_none(self):
        self.assertIsNone(self.repo.update(999, _sample_habit()))

    def test_update_description(self):
        h = self.repo.create(_sample_habit())
        self.assertTrue(self.repo.update_description(h.id, "Twenty pages"))
        self.assertEqual(self.repo.get_by_id(h.id).description, "Twenty pages")
        self.assertFalse(self.repo.update_description(999, "nope"))

    def test_reorder(self):
        a = self.repo.create(_sample_habit(name="A", position=0))
        b = self.repo.create(_sample_habit(name="B", position=1))
        self.repo.reorder([b.id, a.id])
        self.assertEqual([h.name for h in self.repo.list_all()], ["B", "A"])


# ===========================================================================
# 4. Repetition repo
# ===========================================================================

class TestRepetitionRepository(unittest.TestCase):
    def setUp(self):
        self.db = _make_db()
        self.habit = HabitRepository(self.db).create(_sample_habit())
        self.repo = RepetitionRepository(self.db)

    def tearDown(self):
        _drop_db(self.db)

    def test_upsert_inserts_then_updates(self):
        self.repo.upsert(self.habit.id, MIDNIGHT_MS, 2, None)
        self.repo.upsert(self.habit.id, MIDNIGHT_MS, 1, "skipped")
        reps = self.repo.list_between(MIDNIGHT_MS, MIDNIGHT_MS + DAY_MS)
        self.assertEqual(len(reps), 1)
        self.assertEqual(reps[0].value, 1)
        self.assertEqual(reps[0].notes, "skipped")

    def test_list_between_is_half_open(self):
        self.repo.upsert(self.habit.id, MIDNIGHT_MS, 2, None)
        self.repo.upsert(self.habit.id, MIDNIGHT_MS + DAY_MS, 2, None)
        reps = self.repo.list_between(MIDNIGHT_MS, MIDNIGHT_MS + DAY_MS)
        self.assertEqual([r.timestamp for r in reps], [MIDNIGHT_MS])

    def test_delete(self):
        self.repo.upsert(self.habit.id, MIDNIGHT_MS, 2, None)
        self.assertTrue(self.repo.delete(self.habit.id, MIDNIGHT_MS))
        self.assertFalse(self.repo.delete(self.habit.id, MIDNIGHT_MS))

    def test_legacy_seconds_rows_read_as_ms(self):
        self.db.execute(
            "INSERT INTO Repetitions (habit, timestamp, value) VALUES (?, ?, ?)",
            (self.habit.id, 1_699_920_000, 2),
        )
        rep = Repetition.from_row(self.db.fetchone("SELECT * FROM Repetitions"))
        self.assertEqual(rep.timestamp, MIDNIGHT_MS)


# ===========================================================================
# 5. Services
# ===========================================================================

class TestHabitService(unittest.TestCase):
    def setUp(self):
        self.db = _make_db()
        self.service = HabitService(self.db)

    def tearDown(self):
        _drop_db(self.db)

    def test_update_missing_raises(self):
        with self.assertRaises(HabitNotFoundError) as ctx:
            self.service.update(42, _sample_habit())
        self.assertEqual(ctx.exception.habit_id, 42)
        self.assertIn("42", str(ctx.exception))

    def test_patch_description_none_is_noop(self):
        h = self.service.create(_sample_habit())
        self.service.patch_description(h.id, None)
        self.assertEqual(self.service.get(h.id).description, "Read 20 pages")

    def test_reorder_empty_rejected(self):
        with self.assertRaises(ValueError):
            self.service.reorder([])


class TestRepetitionService(unittest.TestCase):
    def setUp(self):
        self.db = _make_db()
        self.habit = HabitService(self.db).create(_sample_habit())
        self.service = RepetitionService(self.db)

    def tearDown(self):
        _drop_db(self.db)

    def test_save_floors_to_utc_midnight(self):
        self.service.save(self.habit.id, MIDNIGHT_MS + 5 * 3_600_000, 2)
        reps = self.service.list_between(MIDNIGHT_MS, MIDNIGHT_MS + DAY_MS)
        self.assertEqual(reps[0].timestamp, MIDNIGHT_MS)

    def test_save_accepts_seconds(self):
        self.service.save(self.habit.id, 1_699_920_000 + 3600, 2)
        reps = self.service.list_between(1_699_920_000, 1_699_920_000 + 86_400)
        self.assertEqual([r.timestamp for r in reps], [MIDNIGHT_MS])

    def test_save_without_value_clears_day(self):
        self.service.save(self.habit.id, MIDNIGHT_MS, 2)
        self.service.save(self.habit.id, MIDNIGHT_MS + 1000, None)
        self.assertEqual(self.service.list_between(MIDNIGHT_MS, MIDNIGHT_MS + DAY_MS), [])

    def test_delete_normalizes_timestamp(self):
        self.service.save(self.habit.id, MIDNIGHT_MS, 2)
        self.assertTrue(self.service.delete(self.habit.id, 1_699_920_000 + 60))


if __name__ == "__main__":
    unittest.main()
