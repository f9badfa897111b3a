import asyncio

import pytest
from pydantic_ai.exceptions import ModelHTTPError

from flashforge.modules.flashcards.errors import (
    ClassifiedError,
    ErrorKind,
    MalformedOutputFailure,
    ProviderStatusFailure,
    QuotaExceededError,
    RequestValidationError,
)
from flashforge.modules.flashcards.fallback import FALLBACK_MODEL_NAME
from flashforge.modules.flashcards.generator import StructuredGenerationClient
from tests.factories import ScriptedClient, draft_payload, function_model

BIOLOGY = {"topic": "Biology", "count": 3, "difficulty": "easy"}


async def test_happy_path(make_pipeline, biology_result, sleep):
    pipeline = make_pipeline(biology_result)

    outcome = await pipeline.generate("1.2.3.4", BIOLOGY)

    assert not outcome.fallback
    assert outcome.error is None
    assert outcome.result is biology_result
    assert outcome.rate_limit.remaining == 19
    assert sleep.delays == []


async def test_end_to_end_with_function_model(make_pipeline, sleep):
    model, calls = function_model(draft_payload("Biology", "easy", 3))
    pipeline = make_pipeline(client=StructuredGenerationClient(model=model, model_name="test-model"))

    outcome = await pipeline.generate("1.2.3.4", BIOLOGY)

    assert calls == [1]
    assert len(outcome.cards) == 3
    assert outcome.result.metadata.prompt_version == "1.0"
    assert outcome.rate_limit.remaining == 19


async def test_transient_rate_limits_are_retried(make_pipeline, sleep):
    too_many = ModelHTTPError(status_code=429, model_name="test-model", body=None)
    model, calls = function_model(too_many, too_many, draft_payload("Biology", "easy", 3))
    pipeline = make_pipeline(client=StructuredGenerationClient(model=model, model_name="test-model"))

    outcome = await pipeline.generate("1.2.3.4", BIOLOGY)

    assert calls == [3]
    assert sleep.delays == [1.0, 2.0]
    assert not outcome.fallback
    assert outcome.rate_limit.remaining == 19


async def test_malformed_output_falls_back_without_retry(make_pipeline, sleep):
    model, calls = function_model({"unexpected": True})
    pipeline = make_pipeline(client=StructuredGenerationClient(model=model, model_name="test-model"))

    outcome = await pipeline.generate("1.2.3.4", BIOLOGY)

    assert calls == [1]
    assert sleep.delays == []
    assert outcome.fallback
    assert outcome.error.kind is ErrorKind.PARSING_ERROR
    assert len(outcome.cards) == 3
    assert outcome.result.metadata.model == FALLBACK_MODEL_NAME


async def test_exhausted_retries_fall_back(make_pipeline, sleep):
    client = ScriptedClient(ProviderStatusFailure("slow down", status_code=429))
    pipeline = make_pipeline(client=client)

    outcome = await pipeline.generate("1.2.3.4", BIOLOGY)

    assert len(client.calls) == 4
    assert outcome.fallback
    assert outcome.error.kind is ErrorKind.RATE_LIMIT


async def test_errors_surface_when_fallback_disabled(make_pipeline):
    pipeline = make_pipeline(MalformedOutputFailure("not json"), fallback_enabled=False)

    with pytest.raises(ClassifiedError) as exc_info:
        await pipeline.generate("1.2.3.4", BIOLOGY)

    assert exc_info.value.kind is ErrorKind.PARSING_ERROR
    assert exc_info.value.status_code == 422


async def test_quota_exhaustion(make_pipeline, biology_result, clock):
    client = ScriptedClient(biology_result)
    pipeline = make_pipeline(client=client)

    for _ in range(20):
        await pipeline.generate("A", BIOLOGY)
    clock.advance(15)

    with pytest.raises(QuotaExceededError) as exc_info:
        await pipeline.generate("A", BIOLOGY)

    assert exc_info.value.decision.retry_after_seconds == 45
    assert len(client.calls) == 20
    # other clients are unaffected
    assert (await pipeline.generate("B", BIOLOGY)).rate_limit.remaining == 19


async def test_invalid_input_is_rejected_before_quota(make_pipeline, biology_result):
    client = ScriptedClient(biology_result)
    pipeline = make_pipeline(client=client)

    with pytest.raises(RequestValidationError) as exc_info:
        await pipeline.generate("A", {"topic": "Biology", "count": 0, "difficulty": "easy"})

    assert exc_info.value.errors
    assert client.calls == []
    assert pipeline.gate.used("A") == 0


async def test_health_check_uses_tiny_request(make_pipeline, biology_result):
    client = ScriptedClient(biology_result)
    pipeline = make_pipeline(client=client)

    await pipeline.health_check()

    (sent,) = client.calls
    assert (sent.topic, sent.count, sent.difficulty.value) == ("test", 1, "easy")
    assert pipeline.gate.used("health") == 0


def test_generate_sync(make_pipeline, biology_result):
    outcome = make_pipeline(biology_result).generate_sync("cli", BIOLOGY)

    assert outcome.result is biology_result


async def test_close_drops_quota_windows(make_pipeline, biology_result):
    pipeline = make_pipeline(biology_result)
    await pipeline.generate("A", BIOLOGY)

    pipeline.close()

    assert pipeline.gate.used("A") == 0


async def test_cancellation_skips_fallback(make_pipeline, monkeypatch):
    fallbacks = []
    monkeypatch.setattr(
        "flashforge.modules.flashcards.main.generate_fallback_result", fallbacks.append
    )
    pipeline = make_pipeline(asyncio.CancelledError())

    with pytest.raises(asyncio.CancelledError):
        await pipeline.generate("A", BIOLOGY)

    assert fallbacks == []
