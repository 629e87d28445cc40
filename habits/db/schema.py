"""Database schema DDL: the Loop Habit Tracker tables."""

SCHEMA_DDL = """
PRAGMA journal_mode=WAL;
PRAGMA foreign_keys = ON;

-- ==========================================================================
-- Habits
-- ==========================================================================
CREATE TABLE IF NOT EXISTS Habits (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    archived        INTEGER,
    color           INTEGER,
    description     TEXT,
    freq_den        INTEGER,
    freq_num        INTEGER,
    highlight       INTEGER,
    name            TEXT,
    position        INTEGER,
    reminder_hour   INTEGER,
    reminder_min    INTEGER,
    reminder_days   INTEGER NOT NULL DEFAULT 127,
    type            INTEGER NOT NULL DEFAULT 0,
    target_type     INTEGER NOT NULL DEFAULT 0,
    target_value    REAL NOT NULL DEFAULT 0,
    unit            TEXT NOT NULL DEFAULT '',
    question        TEXT,
    uuid            TEXT
);

-- ==========================================================================
-- Repetitions (one row per habit per UTC day)
-- ==========================================================================
CREATE TABLE IF NOT EXISTS Repetitions (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    habit       INTEGER NOT NULL REFERENCES Habits(id),
    timestamp   INTEGER NOT NULL,
    value       INTEGER NOT NULL,
    notes       TEXT
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_repetitions_habit_timestamp
    ON Repetitions(habit, timestamp);
"""
