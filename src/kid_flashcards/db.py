"""Database initialization and connection management."""
import sqlite3
from pathlib import Path

from kid_flashcards.config import DEFAULT_DB_PATH

SCHEMA = """
CREATE TABLE IF NOT EXISTS card_documents (
    user_id TEXT NOT NULL,
    card_set_id TEXT NOT NULL,
    card_id TEXT NOT NULL,
    document TEXT NOT NULL,
    updated_at TEXT,
    PRIMARY KEY (user_id, card_set_id, card_id)
);

CREATE TABLE IF NOT EXISTS card_set_progress (
    user_id TEXT NOT NULL,
    card_set_id TEXT NOT NULL,
    total_cards INTEGER NOT NULL,
    reviewed_cards INTEGER NOT NULL,
    progress_percentage INTEGER NOT NULL,
    last_review_date TEXT,
    updated_at TEXT,
    PRIMARY KEY (user_id, card_set_id)
);

CREATE TABLE IF NOT EXISTS user_settings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    key TEXT NOT NULL,
    value TEXT,
    UNIQUE(user_id, key)
);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()
