from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from flashforge.core.rate_limiter import RateLimitDecision
from flashforge.modules.flashcards.models.flashcards import Difficulty, GenerationResult


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FlashcardRead(CamelModel):
    id: str
    question: str
    answer: str
    explanation: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    difficulty: Difficulty
    known: bool = False
    due_at: Optional[datetime] = None
    ease: Optional[float] = None
    interval: Optional[int] = None


class GenerationMetadataRead(CamelModel):
    generated_at: datetime
    model: str
    prompt_version: str


class GenerationResultRead(CamelModel):
    topic: str
    difficulty: Difficulty
    cards: list[FlashcardRead] = Field(default_factory=list)
    metadata: GenerationMetadataRead

    @classmethod
    def from_result(cls, result: GenerationResult) -> "GenerationResultRead":
        return cls.model_validate(result.model_dump())


class RateLimitInfo(CamelModel):
    remaining: int
    limit: int
    reset_time: int = Field(..., description="Window reset, epoch milliseconds")

    @classmethod
    def from_decision(cls, decision: RateLimitDecision) -> "RateLimitInfo":
        return cls(
            remaining=decision.remaining,
            limit=decision.limit,
            reset_time=decision.reset_time_ms,
        )


class GenerateResponse(CamelModel):
    success: bool = True
    data: GenerationResultRead
    rate_limit_info: RateLimitInfo
    fallback: bool = False


class RateLimitedResponse(CamelModel):
    error: str = "Rate limit exceeded"
    retry_after: int
    limit: int
    remaining: int = 0


class InvalidInputResponse(CamelModel):
    error: str = "Invalid input"
    details: list[Any] = Field(default_factory=list)


class GenerationErrorResponse(CamelModel):
    error: str
    type: str
    retryable: bool


class HealthResponse(CamelModel):
    status: str
    timestamp: str
    error: Optional[str] = None
