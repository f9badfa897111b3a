from .flashcards import (
    PROMPT_VERSION,
    CardDraft,
    CardDraftSet,
    Deck,
    Difficulty,
    Flashcard,
    GenerationMetadata,
    GenerationRequest,
    GenerationResult,
    create_deck,
    uid,
)

__all__ = [
    "PROMPT_VERSION",
    "CardDraft",
    "CardDraftSet",
    "Deck",
    "Difficulty",
    "Flashcard",
    "GenerationMetadata",
    "GenerationRequest",
    "GenerationResult",
    "create_deck",
    "uid",
]
