"""Flashcards module exports."""

from .models.flashcards import Flashcard, GenerationRequest, GenerationResult
from .errors import ClassifiedError, ErrorKind, classify
from .fallback import generate_fallback_cards
from .generator import StructuredGenerationClient
from .retry import RetryOrchestrator, RetryPolicy
from .main import FlashcardPipeline, PipelineResponse

__all__ = [
    "Flashcard",
    "GenerationRequest",
    "GenerationResult",
    "ClassifiedError",
    "ErrorKind",
    "classify",
    "generate_fallback_cards",
    "StructuredGenerationClient",
    "RetryOrchestrator",
    "RetryPolicy",
    "FlashcardPipeline",
    "PipelineResponse",
]
