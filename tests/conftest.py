import os
import time

import pytest

# Settings are read at import time; give the default provider a key.
os.environ.setdefault("GROQ_API_KEY", "test-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from flashforge.core.config import Settings  # noqa: E402
from flashforge.modules.flashcards.main import FlashcardPipeline  # noqa: E402
from tests.factories import RecordingSleep, ScriptedClient, make_result  # noqa: E402


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def clock(monkeypatch):
    """Freeze ``time.time`` (what the quota storage reads) and let tests move it."""

    class Clock:
        def __init__(self) -> None:
            self.now = 1_700_000_000.0

        def __call__(self) -> float:
            return self.now

        def advance(self, seconds: float) -> None:
            self.now += seconds

    fake = Clock()
    monkeypatch.setattr(time, "time", fake)
    return fake


@pytest.fixture
def test_settings() -> Settings:
    return Settings()


@pytest.fixture
def make_pipeline(test_settings, sleep):
    """Build a pipeline around a scripted client with instant sleeps."""

    def _make(*outcomes, fallback_enabled: bool = True, client=None) -> FlashcardPipeline:
        pipeline = FlashcardPipeline.from_settings(
            test_settings,
            client=client or ScriptedClient(*outcomes),
            sleep=sleep,
        )
        pipeline.fallback_enabled = fallback_enabled
        return pipeline

    return _make


@pytest.fixture
def biology_result():
    return make_result("Biology", "easy", 3)
