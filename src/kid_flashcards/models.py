"""Data classes for cards, card sets and review sessions."""
import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional

# Timestamp used for cards that have never been rated
NEVER_REVIEWED = datetime(1970, 1, 1)

DATE_FIELDS = ("next_review_date", "last_review_date", "created_at", "updated_at")


@dataclass(frozen=True)
class CardFace:
    icon: str
    title: str
    description: str


@dataclass(frozen=True)
class Flashcard:
    id: str
    front: CardFace
    back: CardFace
    card_set_id: str = ""
    easiness_factor: float = 2.5
    repetitions: int = 0
    interval: int = 1
    next_review_date: datetime = NEVER_REVIEWED
    last_review_date: datetime = NEVER_REVIEWED
    total_reviews: int = 0
    correct_streak: int = 0
    average_quality: float = 0.0
    is_new: bool = True
    created_at: datetime = NEVER_REVIEWED
    updated_at: datetime = NEVER_REVIEWED


@dataclass(frozen=True)
class CardSet:
    id: str
    name: str
    cover: str
    data_file: str
    description: str = ""


@dataclass
class ReviewSession:
    cards: list
    start_time: datetime
    total_cards: int
    current_index: int = 0
    is_showing_back: bool = False
    is_complete: bool = False
    easy_count: int = 0
    hard_count: int = 0
    again_count: int = 0
    reviewed_card_ids: set = field(default_factory=set)

    @property
    def reviewed_cards(self) -> int:
        return len(self.reviewed_card_ids)

    @property
    def current_card(self) -> Optional[Flashcard]:
        if self.is_complete or self.current_index >= len(self.cards):
            return None
        return self.cards[self.current_index]

    def card_ids(self) -> set:
        return {card.id for card in self.cards}


def card_to_document(card: Flashcard) -> str:
    """Serialize a card as a JSON document with ISO-8601 timestamps."""
    data = asdict(card)
    for name in DATE_FIELDS:
        data[name] = getattr(card, name).isoformat()
    return json.dumps(data, ensure_ascii=False)


def card_from_document(document: str) -> Flashcard:
    data = json.loads(document)
    for name in DATE_FIELDS:
        data[name] = datetime.fromisoformat(data[name])
    data["front"] = CardFace(**data["front"])
    data["back"] = CardFace(**data["back"])
    return Flashcard(**data)
