"""Database initialization and connection management."""
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from skillloop.config import DEFAULT_DB_PATH

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    language TEXT NOT NULL DEFAULT 'en',
    streak INTEGER NOT NULL DEFAULT 0,
    last_completed_date TEXT,
    subscription_tier TEXT NOT NULL DEFAULT 'free',
    interest TEXT DEFAULT '',
    goal TEXT DEFAULT '',
    minutes_per_day INTEGER DEFAULT 20,
    baseline_level TEXT DEFAULT 'BEGINNER'
);

CREATE TABLE IF NOT EXISTS plans (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users(id),
    title TEXT NOT NULL,
    total_days INTEGER NOT NULL,
    minutes_per_day INTEGER DEFAULT 20,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS days (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    plan_id TEXT NOT NULL REFERENCES plans(id) ON DELETE CASCADE,
    day_number INTEGER NOT NULL,
    mission_title TEXT NOT NULL,
    focus TEXT DEFAULT '',
    status TEXT NOT NULL DEFAULT 'LOCKED',
    difficulty INTEGER NOT NULL DEFAULT 1,
    steps TEXT,
    quiz TEXT,
    resources TEXT,
    article TEXT,
    slides TEXT,
    result TEXT,
    UNIQUE(plan_id, day_number)
);

CREATE TABLE IF NOT EXISTS quiz_attempts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL REFERENCES users(id),
    plan_id TEXT NOT NULL REFERENCES plans(id) ON DELETE CASCADE,
    day_number INTEGER NOT NULL,
    answers TEXT NOT NULL,
    score REAL NOT NULL,
    correct INTEGER NOT NULL,
    total INTEGER NOT NULL,
    feedback TEXT,
    passed INTEGER NOT NULL DEFAULT 0,
    created_at TEXT
);
"""

ARTIFACT_COLUMNS = ("steps", "quiz", "resources", "article", "slides")


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()


@contextmanager
def write_transaction(db_path: str) -> Iterator[sqlite3.Connection]:
    """Yield a connection inside BEGIN IMMEDIATE.

    The write lock is taken before the first read, so a check-then-act
    sequence inside the block cannot interleave with another writer.
    """
    conn = get_connection(db_path)
    conn.isolation_level = None
    try:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
    finally:
        conn.close()


def ensure_user(db_path: str, user_id: str, language: str = "en") -> None:
    conn = get_connection(db_path)
    conn.execute(
        "INSERT OR IGNORE INTO users (id, language) VALUES (?, ?)",
        (user_id, language),
    )
    conn.commit()
    conn.close()
