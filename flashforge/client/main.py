"""HTTP client for the flashcards service.

``FlashforgeClient.generate_flashcards`` always returns cards: it retries
the ``generate`` endpoint with the shared backoff policy and falls back to
the local templates when the service cannot produce a deck.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Literal, Mapping, Optional, Union

import httpx
from pydantic import BaseModel, Field, ValidationError, field_validator
from tenacity import RetryCallState

from flashforge.core.config import settings
from flashforge.core.logging import get_logger
from flashforge.modules.flashcards.fallback import generate_fallback_cards
from flashforge.modules.flashcards.models.flashcards import (
    Difficulty,
    Flashcard,
    GenerationRequest,
)
from flashforge.modules.flashcards.retry import RetryPolicy, Sleep

logger = get_logger(__name__)


class GenerateInput(BaseModel):
    """What the topic form can submit: counts are limited to 5, 10 or 20."""

    topic: str = Field(..., min_length=1, description="Topic is required")
    count: Literal[5, 10, 20]
    difficulty: Difficulty

    @field_validator("topic")
    @classmethod
    def _topic_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Topic is required")
        return v

    def to_request(self) -> GenerationRequest:
        return GenerationRequest(
            topic=self.topic, count=self.count, difficulty=self.difficulty
        )


class ServerResponseError(Exception):
    def __init__(self, message: str, *, status_code: int, retryable: bool) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


def _should_retry(exc: BaseException) -> bool:
    if isinstance(exc, ServerResponseError):
        return exc.retryable
    return isinstance(exc, httpx.TransportError)


def _log_retry(state: RetryCallState) -> None:
    logger.info(
        "Retrying flashcard request in %.2fs (%s)",
        state.next_action.sleep if state.next_action else 0.0,
        state.outcome.exception() if state.outcome else None,
    )


class FlashforgeClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        *,
        api_version: str | None = None,
        policy: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        version = api_version or settings.app.version
        self._generate_path = f"/{version}/flashcards/generate"
        self._health_path = f"/{version}/flashcards/health"
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "FlashforgeClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def generate_flashcards(
        self, request: Union[GenerateInput, Mapping[str, Any]]
    ) -> list[Flashcard]:
        try:
            parsed = (
                request
                if isinstance(request, GenerateInput)
                else GenerateInput.model_validate(request)
            )
        except ValidationError as e:
            raise ValueError(", ".join(err["msg"] for err in e.errors())) from e

        try:
            data = await self._generate_with_retry(parsed)
            return [self._to_card(c, topic=parsed.topic) for c in data["cards"]]
        except (ServerResponseError, httpx.HTTPError, ValidationError, KeyError, TypeError) as e:
            logger.warning("Failed to generate flashcards (%s); falling back to templates", e)
            return generate_fallback_cards(parsed.to_request())

    async def check_health(self) -> bool:
        try:
            resp = await self._http.get(self._health_path)
            return resp.is_success and resp.json().get("status") == "healthy"
        except (httpx.HTTPError, ValueError):
            return False

    async def _generate_with_retry(self, req: GenerateInput) -> dict[str, Any]:
        retrying = self.policy.retrying(
            retry_on=_should_retry, sleep=self._sleep, before_sleep=_log_retry
        )
        return await retrying(self._post_once, req.model_dump(mode="json"))

    async def _post_once(self, body: dict[str, Any]) -> dict[str, Any]:
        resp = await self._http.post(self._generate_path, json=body)
        try:
            payload = resp.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if resp.is_success:
            if payload.get("success") and payload.get("data"):
                return payload["data"]
            raise ServerResponseError(
                "Invalid response from server", status_code=resp.status_code, retryable=True
            )

        status = resp.status_code
        message = payload.get("error") or "Failed to generate flashcards"
        if status == 429:
            retryable = True
        elif 400 <= status < 500:
            retryable = False
        else:
            retryable = bool(payload.get("retryable", True))
        raise ServerResponseError(message, status_code=status, retryable=retryable)

    @staticmethod
    def _to_card(raw: Mapping[str, Any], *, topic: str) -> Flashcard:
        fields: dict[str, Any] = {
            "question": raw.get("question"),
            "answer": raw.get("answer"),
            "explanation": raw.get("explanation"),
            "tags": list(raw.get("tags") or []),
            "difficulty": raw.get("difficulty"),
            "known": False,
            "due_at": raw.get("dueAt") or datetime.now(timezone.utc),
            "ease": raw.get("ease", 2.5),
            "interval": raw.get("interval", 0),
        }
        if raw.get("id"):
            fields["id"] = raw["id"]
        card = Flashcard.model_validate(fields)
        if topic not in card.tags:
            card.tags.append(topic)
        return card


async def generate_flashcards(
    request: Union[GenerateInput, Mapping[str, Any]],
    *,
    base_url: str = "http://localhost:8080",
) -> list[Flashcard]:
    async with FlashforgeClient(base_url) as client:
        return await client.generate_flashcards(request)
