import json
from datetime import datetime

import pytest

from kid_flashcards.models import CardFace, Flashcard

NOW = datetime(2024, 3, 15, 10, 30)


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_flashcards.db")
    return db_path


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_card():
    """Factory for cards with default scheduling, due at the start of NOW's day."""
    def _make(card_id="card-1", **fields):
        values = {
            "card_set_id": "test-set",
            "next_review_date": NOW.replace(hour=0, minute=0),
            "created_at": NOW,
            "updated_at": NOW,
        }
        values.update(fields)
        return Flashcard(
            id=card_id,
            front=CardFace(icon="🐱", title=f"Front {card_id}", description="front side"),
            back=CardFace(icon="🐾", title=f"Back {card_id}", description="back side"),
            **values,
        )
    return _make


def _raw_card(card_id, title):
    return {
        "id": card_id,
        "front": {"icon": "⭐", "title": title, "description": f"What is {title}?"},
        "back": {"icon": "✅", "title": title.upper(), "description": f"It is {title}"},
    }


@pytest.fixture
def content_dir(tmp_path):
    """A small content directory: a valid default set, a second set and a broken one."""
    directory = tmp_path / "content"
    directory.mkdir()
    card_sets = [
        {"id": "animals", "name": "Animals", "cover": "🐶", "data_file": "animals.json"},
        {"id": "shapes", "name": "Shapes", "cover": "🔺", "data_file": "shapes.json"},
        {"id": "broken", "name": "Broken", "cover": "💥", "data_file": "missing.json"},
    ]
    (directory / "card_sets.json").write_text(json.dumps(card_sets), encoding="utf-8")
    (directory / "animals.json").write_text(
        json.dumps([_raw_card("cat", "cat"), _raw_card("dog", "dog")]), encoding="utf-8"
    )
    (directory / "shapes.json").write_text(
        json.dumps([_raw_card("circle", "circle"), _raw_card("square", "square"),
                    _raw_card("triangle", "triangle")]),
        encoding="utf-8",
    )
    return directory
