"""Structured flashcard generation via pydantic-ai.

``StructuredGenerationClient.invoke`` performs exactly one LLM call per
invocation. Every failure leaves as one of the ``RawGenerationFailure``
variants so the caller can classify and decide on retries; this module
never retries on its own (the agent is built with ``retries=0``).

Provider imports are kept lazy so only the selected provider's SDK has to
be importable.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, Union

import httpx
from pydantic import ValidationError
from pydantic_ai import Agent
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior

from flashforge.core.config import LLMSettings, settings
from flashforge.core.logging import get_logger
from flashforge.modules.flashcards.errors import (
    InvalidRequestFailure,
    LLMConfigurationError,
    MalformedOutputFailure,
    ProviderFailure,
    ProviderStatusFailure,
    ResultValidationFailure,
)
from flashforge.modules.flashcards.models.flashcards import (
    PROMPT_VERSION,
    CardDraftSet,
    Difficulty,
    Flashcard,
    GenerationRequest,
    GenerationResult,
)

logger = get_logger(__name__)

HEALTH_CHECK_REQUEST = GenerationRequest(topic="test", count=1, difficulty=Difficulty.EASY)
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


def _build_groq_model(llm: LLMSettings):
    if not llm.groq_api_key:
        raise LLMConfigurationError(
            "GROQ_API_KEY environment variable is required"
        )
    from groq import AsyncGroq
    from pydantic_ai.models.groq import GroqModel
    from pydantic_ai.providers.groq import GroqProvider

    # one HTTP call per invoke; RetryOrchestrator owns retries
    provider = GroqProvider(
        groq_client=AsyncGroq(api_key=llm.groq_api_key, max_retries=0)
    )
    return GroqModel(llm.groq_model, provider=provider)


def _build_google_model(llm: LLMSettings):
    if not llm.gemini_api_key:
        raise LLMConfigurationError(
            "GEMINI_API_KEY environment variable is required"
        )
    from pydantic_ai.models.google import GoogleModel
    from pydantic_ai.providers.google import GoogleProvider

    provider = GoogleProvider(api_key=llm.gemini_api_key)
    return GoogleModel(llm.gemini_model, provider=provider)


def _build_openrouter_model(llm: LLMSettings):
    """Build OpenRouter model via OpenAI-compatible provider (lazy import)."""
    if not llm.openrouter_api_key:
        raise LLMConfigurationError(
            "OPENROUTER_API_KEY environment variable is required"
        )
    from openai import AsyncOpenAI
    from pydantic_ai.models.openai import OpenAIChatModel
    from pydantic_ai.providers.openai import OpenAIProvider

    client = AsyncOpenAI(
        api_key=llm.openrouter_api_key,
        base_url=OPENROUTER_BASE_URL,
        max_retries=0,
    )
    provider = OpenAIProvider(openai_client=client)
    return OpenAIChatModel(llm.openrouter_model, provider=provider)


def build_model_by_settings(llm: LLMSettings | None = None):
    llm = llm or settings.llm
    provider = (llm.model_provider or "groq").lower()
    if provider == "groq":
        return _build_groq_model(llm)
    if provider == "google":
        return _build_google_model(llm)
    if provider == "openrouter":
        return _build_openrouter_model(llm)
    raise LLMConfigurationError(f"Unknown MODEL_PROVIDER: {llm.model_provider!r}")


SYSTEM_PROMPT = (
    "You are an expert educator creating flashcards for students. "
    "Your task is to generate high-quality, educational flashcards on the given topic. "
    "Return a single JSON object that validates as the provided CardDraftSet model: "
    "{topic, difficulty, cards}. No extra keys or commentary; do not include code fences."
)


def format_instructions() -> str:
    schema = json.dumps(CardDraftSet.model_json_schema(), indent=2, sort_keys=True)
    return (
        "The output must be a JSON object conforming to the JSON schema below.\n"
        f"```json\n{schema}\n```"
    )


def build_instruction(req: GenerationRequest) -> str:
    level = req.difficulty.value
    return (
        f"TOPIC: {req.topic}\n"
        f"DIFFICULTY: {level}\n"
        f"NUMBER OF CARDS: {req.count}\n\n"
        "REQUIREMENTS:\n"
        f"1. Create exactly {req.count} flashcards\n"
        f"2. Questions should be clear, specific, and at {level} difficulty level\n"
        "3. Answers should be concise but complete\n"
        '4. For "easy" level: focus on basic definitions and fundamental concepts\n'
        '5. For "medium" level: include application and understanding questions\n'
        '6. For "hard" level: include analysis, synthesis, and complex problem-solving\n'
        "7. Include diverse question types: definitions, examples, comparisons, applications\n"
        "8. Ensure questions are pedagogically sound and promote learning\n\n"
        "DIFFICULTY GUIDELINES:\n"
        "- Easy: Basic recall, definitions, simple facts\n"
        "- Medium: Understanding, application, simple analysis\n"
        "- Hard: Synthesis, evaluation, complex analysis, critical thinking\n\n"
        "OUTPUT FORMAT:\n"
        f"{format_instructions()}\n\n"
        "Generate flashcards that are educationally valuable and appropriate for the "
        "specified difficulty level."
    )


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class StructuredGenerationClient:
    """One schema-constrained LLM call per ``invoke``."""

    def __init__(
        self,
        *,
        model: Any = None,
        model_name: Optional[str] = None,
        llm_settings: LLMSettings | None = None,
        clock: Callable[[], datetime] = _now_utc,
    ) -> None:
        llm = llm_settings or settings.llm
        if model is None:
            model = build_model_by_settings(llm)
            model_name = model_name or llm.model_name
        self.model_name: str = model_name or getattr(model, "model_name", None) or "unknown"
        self._clock = clock
        self._agent: Agent[None, CardDraftSet] = Agent[None, CardDraftSet](
            model=model,
            output_type=CardDraftSet,
            system_prompt=SYSTEM_PROMPT,
            retries=0,
            model_settings={"temperature": llm.temperature, "max_tokens": llm.max_tokens},
        )

    async def invoke(
        self, request: Union[GenerationRequest, Mapping[str, Any]]
    ) -> GenerationResult:
        req = self._coerce_request(request)
        drafts = await self._call_model(req)

        if len(drafts.cards) != req.count:
            raise MalformedOutputFailure(
                f"Failed to parse provider output: expected {req.count} cards, "
                f"got {len(drafts.cards)}"
            )

        payload = {
            "topic": drafts.topic,
            "difficulty": drafts.difficulty,
            "cards": [
                Flashcard.from_draft(d, topic=req.topic).model_dump() for d in drafts.cards
            ],
            "metadata": {
                "generated_at": self._clock(),
                "model": self.model_name,
                "prompt_version": PROMPT_VERSION,
            },
        }
        try:
            result = GenerationResult.model_validate(payload)
        except ValidationError as e:
            raise ResultValidationFailure(
                f"Generated result failed validation: {e.error_count()} error(s)",
                errors=e.errors(include_url=False, include_context=False),
                cause=e,
            ) from e
        logger.debug(
            "Generated %d cards on %r with %s", len(result.cards), req.topic, self.model_name
        )
        return result

    @staticmethod
    def _coerce_request(
        request: Union[GenerationRequest, Mapping[str, Any]],
    ) -> GenerationRequest:
        if isinstance(request, GenerationRequest):
            return request
        try:
            return GenerationRequest.model_validate(request)
        except ValidationError as e:
            raise InvalidRequestFailure(
                "Invalid generation request",
                errors=e.errors(include_url=False, include_context=False),
                cause=e,
            ) from e

    async def _call_model(self, req: GenerationRequest) -> CardDraftSet:
        try:
            res = await self._agent.run(build_instruction(req))
        except asyncio.CancelledError:
            raise
        except ModelHTTPError as e:
            raise ProviderStatusFailure(
                f"LLM provider returned status {e.status_code} ({e.model_name})",
                status_code=e.status_code,
                body=e.body,
                cause=e,
            ) from e
        except httpx.HTTPStatusError as e:
            raise ProviderStatusFailure(
                f"LLM provider returned status {e.response.status_code}",
                status_code=e.response.status_code,
                body=e.response.text,
                cause=e,
            ) from e
        except UnexpectedModelBehavior as e:
            raise MalformedOutputFailure(
                f"Failed to parse provider output: {e.message}", cause=e
            ) from e
        except Exception as e:  # noqa: BLE001
            raise ProviderFailure(str(e) or type(e).__name__, cause=e) from e
        return res.output
