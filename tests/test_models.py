import pytest
from pydantic import ValidationError

from flashforge.modules.flashcards.models.flashcards import (
    CardDraft,
    Flashcard,
    GenerationRequest,
    create_deck,
)


@pytest.mark.parametrize(
    "payload",
    [
        {"topic": "", "count": 5, "difficulty": "easy"},
        {"topic": "   ", "count": 5, "difficulty": "easy"},
        {"topic": "Biology", "count": 0, "difficulty": "easy"},
        {"topic": "Biology", "count": 51, "difficulty": "easy"},
        {"topic": "Biology", "count": 5, "difficulty": "extreme"},
        {"topic": "Biology", "difficulty": "easy"},
    ],
)
def test_request_rejects_bad_input(payload):
    with pytest.raises(ValidationError):
        GenerationRequest.model_validate(payload)


def test_request_bounds_are_inclusive():
    assert GenerationRequest(topic="a", count=1, difficulty="easy").count == 1
    assert GenerationRequest(topic="a", count=50, difficulty="hard").count == 50


def test_request_is_immutable():
    req = GenerationRequest(topic="Biology", count=5, difficulty="easy")

    with pytest.raises(ValidationError):
        req.count = 6  # type: ignore[misc]


def test_card_from_draft_adds_topic_tag_and_review_defaults():
    draft = CardDraft(question="What is ATP?", answer="Energy currency", tags=["cells"], difficulty="easy")

    card = Flashcard.from_draft(draft, topic="Biology")

    assert card.tags == ["cells", "Biology"]
    assert card.id.startswith("card_")
    assert card.ease == 2.5
    assert card.interval == 0
    assert card.due_at is not None
    assert card.known is False


def test_card_from_draft_keeps_existing_topic_tag_once():
    draft = CardDraft(question="Q", answer="A", tags=["Biology"], difficulty="easy")

    assert Flashcard.from_draft(draft, topic="Biology").tags == ["Biology"]


def test_create_deck():
    cards = [Flashcard(question="Q", answer="A", difficulty="easy")]

    deck = create_deck("Biology", "easy", cards)

    assert deck.id.startswith("deck_")
    assert deck.title.startswith("Biology • ")
    assert deck.tags == ["easy"]
    assert deck.cards == cards
