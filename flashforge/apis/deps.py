from __future__ import annotations

from fastapi import HTTPException, Request, status

from flashforge.core.config import settings
from flashforge.modules.flashcards.main import FlashcardPipeline


def get_pipeline(request: Request) -> FlashcardPipeline:
    """Return the pipeline owned by the running app (set up in ``lifespan``)."""
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Flashcard pipeline is not initialised",
        )
    return pipeline


def get_client_id(request: Request) -> str:
    """Identify the caller for rate limiting.

    Behind a reverse proxy the first ``X-Forwarded-For`` hop is the client.
    """
    if settings.app.trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",", 1)[0].strip()
            if first:
                return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
