"""Application-wide settings."""
from pathlib import Path

DEFAULT_DB_PATH = str(Path.home() / ".kid_flashcards" / "flashcards.db")
CONTENT_DIR = Path(__file__).parent / "content"

DEFAULT_CARD_SET_ID = "animals"

# Largest number of distinct cards pulled into one review session
MAX_SESSION_CARDS = 20

# Attempts per failed batch write before it is dropped from the retry queue
MAX_PENDING_RETRIES = 3
