"""Client-side access to the flashcards service."""

from .main import FlashforgeClient, GenerateInput, ServerResponseError, generate_flashcards

__all__ = ["FlashforgeClient", "GenerateInput", "ServerResponseError", "generate_flashcards"]
