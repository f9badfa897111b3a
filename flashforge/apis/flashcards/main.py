from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, TypeVar

from fastapi import APIRouter, Body, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from flashforge.apis.deps import get_client_id, get_pipeline
from flashforge.core.config import settings
from flashforge.core.logging import get_logger
from flashforge.modules.flashcards.errors import (
    ClassifiedError,
    QuotaExceededError,
    RequestValidationError,
)
from flashforge.modules.flashcards.main import FlashcardPipeline
from .schemas import (
    GenerateResponse,
    GenerationErrorResponse,
    GenerationResultRead,
    HealthResponse,
    InvalidInputResponse,
    RateLimitedResponse,
    RateLimitInfo,
)


router = APIRouter()

logger = get_logger(__name__)

DISCONNECT_POLL_SECONDS = 0.5

T = TypeVar("T")


class ClientDisconnected(Exception):
    pass


def _ts() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _json(model, status_code: int, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=model.model_dump(by_alias=True, mode="json", exclude_none=True),
        headers=headers,
    )


async def _until_disconnect(request: Request, work: Awaitable[T]) -> T:
    """Await ``work`` but cancel it once the HTTP client goes away."""
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                task.cancel()
                await asyncio.wait({task})
                raise ClientDisconnected()
    finally:
        if not task.done():
            task.cancel()


@router.post(
    f"/{settings.app.version}/flashcards/generate",
    response_model=GenerateResponse,
    status_code=status.HTTP_200_OK,
    tags=["flashcards"],
    responses={
        400: {"model": InvalidInputResponse},
        429: {"model": RateLimitedResponse},
        422: {"model": GenerationErrorResponse},
        502: {"model": GenerationErrorResponse},
        500: {"model": GenerationErrorResponse},
    },
)
async def generate_flashcards(
    request: Request,
    payload: Any = Body(None, description="{topic, count (1-50), difficulty}"),
    pipeline: FlashcardPipeline = Depends(get_pipeline),
    client_id: str = Depends(get_client_id),
):
    try:
        outcome = await _until_disconnect(request, pipeline.generate(client_id, payload))
    except RequestValidationError as e:
        return _json(InvalidInputResponse(details=e.errors), status.HTTP_400_BAD_REQUEST)
    except QuotaExceededError as e:
        decision = e.decision
        return _json(
            RateLimitedResponse(
                retry_after=decision.retry_after_seconds or 1,
                limit=decision.limit,
            ),
            status.HTTP_429_TOO_MANY_REQUESTS,
            headers={"Retry-After": str(decision.retry_after_seconds or 1)},
        )
    except ClassifiedError as e:
        logger.error("Flashcard generation error: %s", e.message)
        return _json(
            GenerationErrorResponse(error=e.message, type=e.kind.value, retryable=e.retryable),
            e.status_code,
        )
    except ClientDisconnected:
        logger.info("Client %s disconnected; generation cancelled", client_id)
        # 499: client closed request (nginx convention)
        return Response(status_code=499)

    return GenerateResponse(
        data=GenerationResultRead.from_result(outcome.result),
        rate_limit_info=RateLimitInfo.from_decision(outcome.rate_limit),
        fallback=outcome.fallback,
    )


@router.get(
    f"/{settings.app.version}/flashcards/health",
    response_model=HealthResponse,
    tags=["flashcards"],
    responses={503: {"model": HealthResponse}},
)
async def health_check(pipeline: FlashcardPipeline = Depends(get_pipeline)):
    try:
        await pipeline.health_check()
    except Exception as e:  # noqa: BLE001
        logger.warning("Health check failed: %s", e)
        return _json(
            HealthResponse(status="unhealthy", timestamp=_ts(), error=str(e) or "Unknown error"),
            status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return HealthResponse(status="healthy", timestamp=_ts())
