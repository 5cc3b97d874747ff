"""Load card sets and their vocabulary cards from the content directory."""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import yaml

from kid_flashcards.config import CONTENT_DIR
from kid_flashcards.errors import MalformedContent
from kid_flashcards.models import CardFace, CardSet, Flashcard
from kid_flashcards.sm2 import default_schedule

logger = logging.getLogger(__name__)

FACE_FIELDS = ("icon", "title", "description")


def read_data_file(path: Path):
    """Parse a JSON or YAML content file."""
    suffix = path.suffix.lower()
    try:
        text = path.read_text(encoding="utf-8")
        if suffix in (".yaml", ".yml"):
            return yaml.safe_load(text)
        return json.loads(text)
    except FileNotFoundError as e:
        raise MalformedContent(f"Content file not found: {path.name}") from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise MalformedContent(f"Could not parse {path.name}: {e}") from e


def load_card_sets(content_dir: Path = CONTENT_DIR) -> list[CardSet]:
    data = read_data_file(content_dir / "card_sets.json")
    if not isinstance(data, list):
        raise MalformedContent("card_sets.json must hold a list of card sets")
    card_sets = []
    for item in data:
        try:
            card_sets.append(CardSet(
                id=item["id"],
                name=item["name"],
                cover=item["cover"],
                data_file=item["data_file"],
                description=item.get("description", ""),
            ))
        except (KeyError, TypeError) as e:
            raise MalformedContent(f"Card set entry is incomplete: {item!r}") from e
    return card_sets


def get_card_set(card_set_id: str, content_dir: Path = CONTENT_DIR) -> Optional[CardSet]:
    for card_set in load_card_sets(content_dir):
        if card_set.id == card_set_id:
            return card_set
    return None


def _parse_face(raw: dict, side: str, card_id: str) -> CardFace:
    face = raw.get(side)
    if not isinstance(face, dict) or any(not face.get(f) for f in FACE_FIELDS):
        raise MalformedContent(f"Card {card_id!r} is missing {side} fields")
    return CardFace(**{f: str(face[f]) for f in FACE_FIELDS})


def validate_raw_card(raw) -> tuple[str, CardFace, CardFace]:
    if not isinstance(raw, dict) or not raw.get("id"):
        raise MalformedContent(f"Card without an id: {raw!r}")
    card_id = str(raw["id"])
    return card_id, _parse_face(raw, "front", card_id), _parse_face(raw, "back", card_id)


def load_raw_cards(card_set: CardSet, content_dir: Path = CONTENT_DIR) -> list[dict]:
    data = read_data_file(content_dir / card_set.data_file)
    if not isinstance(data, list) or not data:
        raise MalformedContent(f"{card_set.data_file} contains no cards")
    return data


def new_card(raw: dict, card_set_id: str, now: Optional[datetime] = None) -> Flashcard:
    """Stamp a raw content card with default scheduling parameters."""
    now = now or datetime.now()
    card_id, front, back = validate_raw_card(raw)
    return Flashcard(
        id=card_id,
        front=front,
        back=back,
        card_set_id=card_set_id,
        created_at=now,
        updated_at=now,
        **default_schedule(now),
    )


def load_cards(
    card_set: CardSet, now: Optional[datetime] = None, content_dir: Path = CONTENT_DIR
) -> list[Flashcard]:
    now = now or datetime.now()
    cards = [new_card(raw, card_set.id, now) for raw in load_raw_cards(card_set, content_dir)]
    ids = [card.id for card in cards]
    if len(set(ids)) != len(ids):
        raise MalformedContent(f"{card_set.data_file} contains duplicate card ids")
    logger.info(f"Loaded {len(cards)} cards from {card_set.data_file}")
    return cards
