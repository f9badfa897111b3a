import pytest

from flashforge.modules.flashcards.errors import (
    ClassifiedError,
    ErrorKind,
    InvalidRequestFailure,
    MalformedOutputFailure,
    ProviderFailure,
    ProviderStatusFailure,
    ResultValidationFailure,
    classify,
    status_code_for,
)


@pytest.mark.parametrize(
    "raw, kind, retryable",
    [
        (InvalidRequestFailure("bad request", errors=[{"loc": ["count"]}]), ErrorKind.VALIDATION, False),
        (ResultValidationFailure("bad result"), ErrorKind.VALIDATION, False),
        (ProviderStatusFailure("slow down", status_code=429), ErrorKind.RATE_LIMIT, True),
        (MalformedOutputFailure("not json"), ErrorKind.PARSING_ERROR, False),
        (ProviderFailure("could not parse response"), ErrorKind.PARSING_ERROR, False),
        (ProviderFailure("unexpected format"), ErrorKind.PARSING_ERROR, False),
        (ProviderStatusFailure("upstream down", status_code=503), ErrorKind.UNKNOWN, True),
        (ProviderStatusFailure("unauthorised", status_code=401), ErrorKind.API_ERROR, False),
        (ProviderStatusFailure("not found", status_code=404), ErrorKind.API_ERROR, False),
        (ProviderFailure("connection reset"), ErrorKind.UNKNOWN, False),
        (RuntimeError("boom"), ErrorKind.UNKNOWN, False),
    ],
)
def test_classification_table(raw, kind, retryable):
    err = classify(raw)

    assert err.kind is kind
    assert err.retryable is retryable
    assert err.details["original_error"] is raw
    assert err.details["variant"] == type(raw).__name__


def test_rate_limit_wins_over_parsing_marker():
    raw = ProviderStatusFailure("failed to parse rate limit body", status_code=429)

    assert classify(raw).kind is ErrorKind.RATE_LIMIT


def test_validation_wins_over_parsing_marker():
    raw = ResultValidationFailure("could not parse card 2")

    assert classify(raw).kind is ErrorKind.VALIDATION


def test_classify_is_pure():
    raw = ProviderStatusFailure("slow down", status_code=429, body={"error": "x"})

    assert classify(raw) == classify(raw)


def test_already_classified_passes_through():
    err = ClassifiedError(ErrorKind.API_ERROR, "nope", retryable=False)

    assert classify(err) is err


def test_details_carry_status_and_errors():
    status = classify(ProviderStatusFailure("oops", status_code=500))
    invalid = classify(InvalidRequestFailure("bad", errors=[{"msg": "too big"}]))

    assert status.details["status_code"] == 500
    assert invalid.details["errors"] == [{"msg": "too big"}]


def test_empty_message_gets_default():
    assert classify(RuntimeError()).message == "Unknown error occurred"


def test_classified_error_is_read_only():
    err = ClassifiedError(ErrorKind.RATE_LIMIT, "slow", retryable=True, details={"a": 1})

    with pytest.raises(AttributeError):
        err.kind = ErrorKind.UNKNOWN  # type: ignore[misc]
    err.details["a"] = 2
    assert err.details == {"a": 1}


def test_to_dict_shape():
    err = ClassifiedError(ErrorKind.PARSING_ERROR, "bad output", retryable=False)

    assert err.to_dict() == {"error": "bad output", "type": "parsing_error", "retryable": False}


@pytest.mark.parametrize(
    "kind, status",
    [
        (ErrorKind.VALIDATION, 400),
        (ErrorKind.RATE_LIMIT, 429),
        (ErrorKind.API_ERROR, 502),
        (ErrorKind.PARSING_ERROR, 422),
        (ErrorKind.UNKNOWN, 500),
    ],
)
def test_status_codes(kind, status):
    assert status_code_for(kind) == status
    assert ClassifiedError(kind, "x", retryable=False).status_code == status
