"""Failure taxonomy for the generation pipeline.

The generation client raises one of the ``RawGenerationFailure`` variants;
``classify`` maps a variant to a ``ClassifiedError`` whose ``retryable``
flag drives the retry loop. Nothing else constructs a ``ClassifiedError``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from flashforge.core.rate_limiter import RateLimitDecision


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    RATE_LIMIT = "rate_limit"
    API_ERROR = "api_error"
    PARSING_ERROR = "parsing_error"
    UNKNOWN = "unknown"


_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.RATE_LIMIT: 429,
    ErrorKind.API_ERROR: 502,
    ErrorKind.PARSING_ERROR: 422,
    ErrorKind.UNKNOWN: 500,
}

_PARSING_MARKERS = ("parse", "format")


# Raw failures -----------------------------------------------------------
class RawGenerationFailure(Exception):
    """Base for everything the generation client may raise."""

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class InvalidRequestFailure(RawGenerationFailure):
    def __init__(self, message: str, *, errors: list[Any] | None = None, cause=None) -> None:
        super().__init__(message, cause=cause)
        self.errors = errors or []


class ProviderStatusFailure(RawGenerationFailure):
    def __init__(self, message: str, *, status_code: int, body: Any = None, cause=None) -> None:
        super().__init__(message, cause=cause)
        self.status_code = int(status_code)
        self.body = body


class MalformedOutputFailure(RawGenerationFailure):
    """Provider output could not be parsed into the expected card set."""


class ResultValidationFailure(RawGenerationFailure):
    def __init__(self, message: str, *, errors: list[Any] | None = None, cause=None) -> None:
        super().__init__(message, cause=cause)
        self.errors = errors or []


class ProviderFailure(RawGenerationFailure):
    """Anything the provider path raised that has no more specific variant."""


# Classified -------------------------------------------------------------
class ClassifiedError(Exception):
    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        retryable: bool,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self._kind = kind
        self._message = message
        self._retryable = retryable
        self._details = dict(details or {})

    @property
    def kind(self) -> ErrorKind:
        return self._kind

    @property
    def message(self) -> str:
        return self._message

    @property
    def retryable(self) -> bool:
        return self._retryable

    @property
    def details(self) -> dict[str, Any]:
        return dict(self._details)

    @property
    def status_code(self) -> int:
        return status_code_for(self._kind)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ClassifiedError):
            return NotImplemented
        return (
            self._kind == other._kind
            and self._message == other._message
            and self._retryable == other._retryable
            and self._details == other._details
        )

    def __hash__(self) -> int:
        return hash((self._kind, self._message, self._retryable))

    def __repr__(self) -> str:
        return (
            f"ClassifiedError(kind={self._kind.value!r}, message={self._message!r}, "
            f"retryable={self._retryable})"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self._message,
            "type": self._kind.value,
            "retryable": self._retryable,
        }


def status_code_for(kind: ErrorKind) -> int:
    return _STATUS_BY_KIND.get(kind, 500)


def _status_of(raw: BaseException) -> Optional[int]:
    if isinstance(raw, ProviderStatusFailure):
        return raw.status_code
    return None


def _has_parsing_marker(message: str) -> bool:
    lowered = message.lower()
    return any(m in lowered for m in _PARSING_MARKERS)


def classify(raw: BaseException) -> ClassifiedError:
    """Map a raw failure to its kind. First matching rule wins.

    Provider 5xx is checked before the generic 4xx rule and comes out as a
    retryable ``unknown``.
    """
    if isinstance(raw, ClassifiedError):
        return raw

    message = getattr(raw, "message", None) or str(raw) or "Unknown error occurred"
    details: dict[str, Any] = {"original_error": raw, "variant": type(raw).__name__}
    status = _status_of(raw)
    if status is not None:
        details["status_code"] = status

    if isinstance(raw, (InvalidRequestFailure, ResultValidationFailure)):
        details["errors"] = raw.errors
        return ClassifiedError(ErrorKind.VALIDATION, message, retryable=False, details=details)
    if status == 429:
        return ClassifiedError(ErrorKind.RATE_LIMIT, message, retryable=True, details=details)
    if isinstance(raw, MalformedOutputFailure) or _has_parsing_marker(message):
        return ClassifiedError(ErrorKind.PARSING_ERROR, message, retryable=False, details=details)
    if status is not None and 500 <= status < 600:
        return ClassifiedError(ErrorKind.UNKNOWN, message, retryable=True, details=details)
    if status is not None and 400 <= status < 500:
        return ClassifiedError(ErrorKind.API_ERROR, message, retryable=False, details=details)
    return ClassifiedError(ErrorKind.UNKNOWN, message, retryable=False, details=details)


# Facade-level rejections ------------------------------------------------
class RequestValidationError(Exception):
    """The incoming request did not pass shape validation."""

    def __init__(self, errors: list[Any]) -> None:
        super().__init__("Invalid input")
        self.errors = errors


class QuotaExceededError(Exception):
    """The client used up its request quota for the current window."""

    def __init__(self, decision: RateLimitDecision) -> None:
        super().__init__("Rate limit exceeded")
        self.decision = decision


class LLMConfigurationError(RuntimeError):
    """The LLM provider cannot be built from the current settings."""
