"""Bounded retry with exponential backoff around the generation client."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Protocol, Union

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from flashforge.core.config import RetrySettings
from flashforge.core.logging import get_logger
from flashforge.modules.flashcards.errors import ClassifiedError, classify
from flashforge.modules.flashcards.models.flashcards import (
    GenerationRequest,
    GenerationResult,
)

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and delay schedule. Delays are in seconds."""

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")

    @property
    def max_attempts(self) -> int:
        return 1 + self.max_retries

    def delay_for(self, attempt: int) -> float:
        """Wait after the zero-based ``attempt`` failed."""
        return min(self.initial_delay * (self.backoff_multiplier**attempt), self.max_delay)

    def schedule(self) -> list[float]:
        return [self.delay_for(n) for n in range(self.max_retries)]

    def retrying(
        self,
        *,
        retry_on: Callable[[BaseException], bool],
        sleep: Sleep = asyncio.sleep,
        before_sleep: Callable[[RetryCallState], Any] | None = None,
    ) -> AsyncRetrying:
        """A tenacity controller that follows this policy and re-raises the last error."""
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.initial_delay,
                exp_base=self.backoff_multiplier,
                max=self.max_delay,
            ),
            retry=retry_if_exception(retry_on),
            sleep=sleep,
            before_sleep=before_sleep,
            reraise=True,
        )

    @classmethod
    def from_settings(cls, cfg: RetrySettings) -> "RetryPolicy":
        return cls(
            max_retries=cfg.max_retries,
            initial_delay=cfg.initial_delay_ms / 1000.0,
            max_delay=cfg.max_delay_ms / 1000.0,
            backoff_multiplier=cfg.backoff_multiplier,
        )


class GenerationClient(Protocol):
    async def invoke(
        self, request: Union[GenerationRequest, Mapping[str, Any]]
    ) -> GenerationResult: ...


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ClassifiedError) and exc.retryable


def _log_retry(state: RetryCallState) -> None:
    err = state.outcome.exception() if state.outcome else None
    logger.info(
        "Retrying generation in %.2fs after attempt %d (%s)",
        state.next_action.sleep if state.next_action else 0.0,
        state.attempt_number,
        err.kind.value if isinstance(err, ClassifiedError) else err,
    )


class RetryOrchestrator:
    """Drives ``client.invoke`` until success, a terminal error, or no budget left.

    Raises the last ``ClassifiedError`` on failure. Waiting goes through the
    injected ``sleep`` so a cancelled caller stops between attempts too.
    """

    def __init__(
        self,
        client: GenerationClient,
        policy: RetryPolicy | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.client = client
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def run(self, request: GenerationRequest) -> GenerationResult:
        retrying = self.policy.retrying(
            retry_on=_is_retryable, sleep=self._sleep, before_sleep=_log_retry
        )
        return await retrying(self._attempt, request)

    async def _attempt(self, request: GenerationRequest) -> GenerationResult:
        try:
            return await self.client.invoke(request)
        except Exception as e:  # noqa: BLE001
            err = classify(e)
            if err is e:
                raise
            logger.warning(
                "Generation attempt failed: kind=%s retryable=%s message=%s",
                err.kind.value,
                err.retryable,
                err.message,
            )
            raise err from e
