"""Flashcards pipeline service class.

``FlashcardPipeline`` is the one object request handlers talk to. It owns
the quota gate and the retry orchestrator. The app lifespan builds it at
startup and closes it at shutdown.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from flashforge.core.config import Settings, settings as default_settings
from flashforge.core.logging import get_logger
from flashforge.core.rate_limiter import QuotaGate, RateLimitDecision
from flashforge.modules.flashcards.errors import (
    ClassifiedError,
    QuotaExceededError,
    RequestValidationError,
)
from flashforge.modules.flashcards.fallback import generate_fallback_result
from flashforge.modules.flashcards.generator import (
    HEALTH_CHECK_REQUEST,
    StructuredGenerationClient,
)
from flashforge.modules.flashcards.models.flashcards import (
    Flashcard,
    GenerationRequest,
    GenerationResult,
)
from flashforge.modules.flashcards.retry import (
    GenerationClient,
    RetryOrchestrator,
    RetryPolicy,
    Sleep,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class PipelineResponse:
    result: GenerationResult
    rate_limit: RateLimitDecision
    fallback: bool = False
    # Set when the cards came from templates after the LLM path failed.
    error: Optional[ClassifiedError] = None

    @property
    def cards(self) -> list[Flashcard]:
        return self.result.cards


class FlashcardPipeline:
    def __init__(
        self,
        *,
        gate: QuotaGate,
        orchestrator: RetryOrchestrator,
        fallback_enabled: bool = True,
    ) -> None:
        self.gate = gate
        self.orchestrator = orchestrator
        self.fallback_enabled = fallback_enabled

    @classmethod
    def from_settings(
        cls,
        cfg: Settings | None = None,
        *,
        client: GenerationClient | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> "FlashcardPipeline":
        cfg = cfg or default_settings
        if client is None:
            client = StructuredGenerationClient(llm_settings=cfg.llm)
        gate = QuotaGate(
            limit=cfg.rate_limit.max_requests,
            window_seconds=cfg.rate_limit.window_seconds,
        )
        orchestrator = RetryOrchestrator(
            client, RetryPolicy.from_settings(cfg.retry), sleep=sleep
        )
        return cls(
            gate=gate,
            orchestrator=orchestrator,
            fallback_enabled=cfg.server_fallback_enabled,
        )

    @property
    def client(self) -> GenerationClient:
        return self.orchestrator.client

    def close(self) -> None:
        """Drop every quota window; called once at shutdown."""
        self.gate.reset()

    @staticmethod
    def validate(request: Union[GenerationRequest, Mapping[str, Any]]) -> GenerationRequest:
        if isinstance(request, GenerationRequest):
            return request
        try:
            return GenerationRequest.model_validate(request)
        except ValidationError as e:
            raise RequestValidationError(
                e.errors(include_url=False, include_context=False)
            ) from e

    async def generate(
        self,
        client_id: str,
        request: Union[GenerationRequest, Mapping[str, Any]],
    ) -> PipelineResponse:
        req = self.validate(request)

        decision = self.gate.check(client_id)
        if not decision.allowed:
            logger.warning(
                "Rate limit exceeded for %s; retry after %ss",
                client_id,
                decision.retry_after_seconds,
                extra={"client_id": client_id},
            )
            raise QuotaExceededError(decision)

        try:
            result = await self.orchestrator.run(req)
        except ClassifiedError as err:
            if not self.fallback_enabled:
                raise
            logger.warning(
                "LLM generation failed (%s: %s); falling back to templates",
                err.kind.value,
                err.message,
                extra={"client_id": client_id},
            )
            return PipelineResponse(
                result=generate_fallback_result(req),
                rate_limit=decision,
                fallback=True,
                error=err,
            )
        return PipelineResponse(result=result, rate_limit=decision)

    async def health_check(self) -> GenerationResult:
        """Trial call straight to the generation client; raises on failure."""
        return await self.client.invoke(HEALTH_CHECK_REQUEST)

    def generate_sync(
        self,
        client_id: str,
        request: Union[GenerationRequest, Mapping[str, Any]],
    ) -> PipelineResponse:
        return asyncio.run(self.generate(client_id, request))
