"""Pydantic models for flashcard generation and validation.

``CardDraft``/``CardDraftSet`` describe exactly what the LLM is asked to
return. ``Flashcard`` and ``GenerationResult`` are what the rest of the
service hands out once a draft has been accepted.
"""

from __future__ import annotations

import secrets
import string
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PROMPT_VERSION = "1.0"
SERVER_COUNT_RANGE = (1, 50)
UI_COUNTS = (5, 10, 20)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def uid(prefix: str = "id") -> str:
    return f"{prefix}_{''.join(secrets.choice(_ID_ALPHABET) for _ in range(8))}"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class GenerationRequest(BaseModel):
    """A validated, immutable request to generate ``count`` cards on ``topic``."""

    model_config = ConfigDict(frozen=True)

    topic: str = Field(..., min_length=1, description="Topic is required")
    count: int = Field(..., ge=SERVER_COUNT_RANGE[0], le=SERVER_COUNT_RANGE[1])
    difficulty: Difficulty

    @field_validator("topic")
    @classmethod
    def _topic_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Topic is required")
        return v


class CardDraft(BaseModel):
    question: str = Field(
        ...,
        min_length=1,
        description="A clear, specific question appropriate for the difficulty level",
    )
    answer: str = Field(
        ..., min_length=1, description="A concise but complete answer to the question"
    )
    explanation: Optional[str] = Field(
        default=None, description="Optional additional explanation or context"
    )
    tags: list[str] = Field(
        default_factory=list, description="Relevant tags for categorization"
    )
    difficulty: Difficulty = Field(
        ..., description="The difficulty level of this specific card"
    )


class CardDraftSet(BaseModel):
    """Structured output the model must produce."""

    topic: str = Field(..., description="The topic these flashcards cover")
    difficulty: Difficulty = Field(
        ..., description="The overall difficulty level requested"
    )
    cards: list[CardDraft] = Field(..., description="Array of generated flashcards")


class Flashcard(BaseModel):
    id: str = Field(default_factory=lambda: uid("card"))
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    explanation: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    difficulty: Difficulty
    known: bool = False
    # Spaced-repetition fields are carried for the UI, never read here.
    due_at: Optional[datetime] = None
    ease: Optional[float] = None
    interval: Optional[int] = None

    @classmethod
    def from_draft(cls, draft: CardDraft, *, topic: str) -> "Flashcard":
        tags = list(draft.tags)
        if topic not in tags:
            tags.append(topic)
        return cls(
            question=draft.question,
            answer=draft.answer,
            explanation=draft.explanation,
            tags=tags,
            difficulty=draft.difficulty,
            due_at=_now_utc(),
            ease=2.5,
            interval=0,
        )


class GenerationMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    generated_at: datetime
    model: str = Field(..., min_length=1)
    prompt_version: str = PROMPT_VERSION


class GenerationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    topic: str = Field(..., min_length=1)
    difficulty: Difficulty
    cards: list[Flashcard]
    metadata: GenerationMetadata


class Deck(BaseModel):
    id: str = Field(default_factory=lambda: uid("deck"))
    title: str
    topic: str
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now_utc)
    cards: list[Flashcard] = Field(default_factory=list)


def create_deck(topic: str, difficulty: Difficulty | str, cards: list[Flashcard]) -> Deck:
    """Wrap generated cards into a deck ready for client-side storage."""
    now = _now_utc()
    level = difficulty.value if isinstance(difficulty, Difficulty) else str(difficulty)
    return Deck(
        title=f"{topic} • {now.date().isoformat()}",
        topic=topic,
        tags=[level],
        created_at=now,
        cards=list(cards),
    )
