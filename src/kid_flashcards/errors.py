"""Exceptions raised at the scheduler boundary."""


class FlashcardError(Exception):
    """Base class for all flashcard errors."""


class InvalidTransition(FlashcardError):
    """A session event arrived that the current session state cannot accept."""


class MalformedContent(FlashcardError):
    """A content source produced no usable cards or a card is incomplete."""


class PersistenceFailure(FlashcardError):
    """Writing to or reading from the card store failed."""
