"""Per-user card documents, card-set progress and settings in SQLite."""
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

from kid_flashcards.db import get_connection
from kid_flashcards.errors import PersistenceFailure
from kid_flashcards.models import Flashcard, card_from_document, card_to_document

logger = logging.getLogger(__name__)


@contextmanager
def _connection(db_path: str):
    conn = None
    try:
        conn = get_connection(db_path)
        yield conn
    except sqlite3.Error as e:
        logger.error(f"Card store operation failed: {e}")
        raise PersistenceFailure(str(e)) from e
    finally:
        if conn is not None:
            conn.close()


def load_cards(db_path: str, user_id: str, card_set_id: str) -> list[Flashcard]:
    """Stored snapshot of a card set. An empty list means no prior state."""
    with _connection(db_path) as conn:
        rows = conn.execute(
            """SELECT document FROM card_documents
            WHERE user_id = ? AND card_set_id = ?
            ORDER BY rowid""",
            (user_id, card_set_id),
        ).fetchall()
    try:
        cards = [card_from_document(r["document"]) for r in rows]
    except (ValueError, TypeError, KeyError) as e:
        logger.error(f"Stored card for {user_id}/{card_set_id} is unreadable: {e}")
        raise PersistenceFailure(f"Unreadable card document: {e}") from e
    logger.debug(f"Loaded {len(cards)} stored cards for {user_id}/{card_set_id}")
    return cards


def save_cards_batch(db_path: str, user_id: str, card_set_id: str, cards: list[Flashcard]) -> None:
    """Write all cards in one transaction; nothing is written if any row fails."""
    now = datetime.now().isoformat()
    with _connection(db_path) as conn:
        with conn:
            conn.executemany(
                """INSERT INTO card_documents (user_id, card_set_id, card_id, document, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id, card_set_id, card_id)
                DO UPDATE SET document = excluded.document, updated_at = excluded.updated_at""",
                [(user_id, card_set_id, c.id, card_to_document(c), now) for c in cards],
            )
    logger.info(f"Saved {len(cards)} cards for {user_id}/{card_set_id}")


def save_card_set_progress(db_path: str, user_id: str, progress: dict) -> None:
    last_review = progress["last_review_date"]
    with _connection(db_path) as conn:
        with conn:
            conn.execute(
                """INSERT INTO card_set_progress
                (user_id, card_set_id, total_cards, reviewed_cards, progress_percentage,
                 last_review_date, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, card_set_id) DO UPDATE SET
                    total_cards = excluded.total_cards,
                    reviewed_cards = excluded.reviewed_cards,
                    progress_percentage = excluded.progress_percentage,
                    last_review_date = excluded.last_review_date,
                    updated_at = excluded.updated_at""",
                (
                    user_id,
                    progress["card_set_id"],
                    progress["total_cards"],
                    progress["reviewed_cards"],
                    progress["progress_percentage"],
                    last_review.isoformat() if last_review else None,
                    datetime.now().isoformat(),
                ),
            )


def _progress_from_row(row) -> dict:
    return {
        "card_set_id": row["card_set_id"],
        "total_cards": row["total_cards"],
        "reviewed_cards": row["reviewed_cards"],
        "progress_percentage": row["progress_percentage"],
        "last_review_date": (
            datetime.fromisoformat(row["last_review_date"]) if row["last_review_date"] else None
        ),
    }


def load_card_set_progress(db_path: str, user_id: str, card_set_id: str) -> Optional[dict]:
    with _connection(db_path) as conn:
        row = conn.execute(
            "SELECT * FROM card_set_progress WHERE user_id = ? AND card_set_id = ?",
            (user_id, card_set_id),
        ).fetchone()
    return _progress_from_row(row) if row else None


def load_all_card_set_progress(db_path: str, user_id: str) -> dict[str, dict]:
    with _connection(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM card_set_progress WHERE user_id = ?", (user_id,)
        ).fetchall()
    return {r["card_set_id"]: _progress_from_row(r) for r in rows}


def get_setting(db_path: str, user_id: str, key: str, default: str = None) -> str | None:
    with _connection(db_path) as conn:
        row = conn.execute(
            "SELECT value FROM user_settings WHERE user_id = ? AND key = ?", (user_id, key)
        ).fetchone()
    return row["value"] if row else default


def set_setting(db_path: str, user_id: str, key: str, value: str) -> None:
    with _connection(db_path) as conn:
        with conn:
            conn.execute(
                """INSERT INTO user_settings (user_id, key, value) VALUES (?, ?, ?)
                ON CONFLICT(user_id, key) DO UPDATE SET value = excluded.value""",
                (user_id, key, value),
            )
