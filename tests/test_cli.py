import json

import pytest

from flashforge.modules.flashcards.cli import main
from flashforge.modules.flashcards.errors import MalformedOutputFailure, ProviderStatusFailure


def _output(capsys):
    return json.loads(capsys.readouterr().out)


def test_fallback_command(capsys):
    rc = main(["fallback", "-t", "Photosynthesis", "-n", "7", "-d", "hard"])

    assert rc == 0
    cards = _output(capsys)
    assert len(cards) == 7
    assert cards[0]["tags"] == ["Photosynthesis", "hard"]


def test_fallback_command_rejects_bad_count(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["fallback", "-t", "x", "-n", "0"])

    assert exc_info.value.code == 2


def test_generate_command(make_pipeline, biology_result, capsys):
    rc = main(["generate", "-t", "Biology", "-n", "3", "-d", "easy"], pipeline=make_pipeline(biology_result))

    assert rc == 0
    out = _output(capsys)
    assert out["topic"] == "Biology"
    assert len(out["cards"]) == 3
    assert out["fallback"] is False


def test_generate_command_with_deck(make_pipeline, biology_result, capsys):
    rc = main(
        ["generate", "-t", "Biology", "-n", "3", "-d", "easy", "--deck"],
        pipeline=make_pipeline(biology_result),
    )

    assert rc == 0
    deck = _output(capsys)
    assert deck["id"].startswith("deck_")
    assert deck["tags"] == ["easy"]
    assert len(deck["cards"]) == 3


def test_generate_command_invalid_input(make_pipeline, biology_result, capsys):
    rc = main(["generate", "-t", "Biology", "-n", "99"], pipeline=make_pipeline(biology_result))

    assert rc == 2
    assert _output(capsys)["error"] == "Invalid input"


def test_generate_command_quota(make_pipeline, biology_result, capsys):
    pipeline = make_pipeline(biology_result)
    for _ in range(20):
        pipeline.generate_sync("cli", {"topic": "Biology", "count": 3, "difficulty": "easy"})
    capsys.readouterr()

    rc = main(["generate", "-t", "Biology", "-n", "3", "-d", "easy"], pipeline=pipeline)

    assert rc == 3
    assert _output(capsys)["error"] == "Rate limit exceeded"


def test_health_command(make_pipeline, biology_result, capsys):
    assert main(["health"], pipeline=make_pipeline(biology_result)) == 0
    assert _output(capsys) == {"status": "healthy"}


def test_health_command_unhealthy(make_pipeline, capsys):
    pipeline = make_pipeline(ProviderStatusFailure("LLM provider returned status 401", status_code=401))

    assert main(["health"], pipeline=pipeline) == 1
    assert _output(capsys)["status"] == "unhealthy"


def test_generate_command_generation_error(make_pipeline, capsys):
    pipeline = make_pipeline(MalformedOutputFailure("not json"), fallback_enabled=False)

    rc = main(["generate", "-t", "Biology", "-n", "3", "-d", "easy"], pipeline=pipeline)

    assert rc == 4
    assert _output(capsys) == {"error": "not json", "type": "parsing_error", "retryable": False}
