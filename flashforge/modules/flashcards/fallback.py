"""Template-based flashcards used when the LLM path gives up."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Union

from flashforge.modules.flashcards.models.flashcards import (
    PROMPT_VERSION,
    Flashcard,
    GenerationMetadata,
    GenerationRequest,
    GenerationResult,
)

FALLBACK_MODEL_NAME = "template-fallback"

TEMPLATES: tuple[tuple[str, str], ...] = (
    ("Define the core concept of {topic} in one sentence.", "The core concept of {topic} is ..."),
    ("Why is {topic} important? Give a concise reason.", "{topic} matters because ..."),
    ("Name a common misconception about {topic}.", "A common misconception is ..."),
    ("Provide a simple example illustrating {topic}.", "Example: ..."),
    ("List two key terms related to {topic}.", "Key terms include ..."),
    ("How does {topic} relate to everyday life?", "It relates by ..."),
    ("Contrast {topic} with a closely related idea.", "{topic} differs by ..."),
    ("What are the typical challenges when learning {topic}?", "Challenges include ..."),
    ("Summarize a practical tip for mastering {topic}.", "Tip: ..."),
    ("What would be a trick question about {topic}?", "Trick: ..."),
)


def generate_fallback_cards(
    request: Union[GenerationRequest, Mapping[str, Any]],
) -> list[Flashcard]:
    """Exactly ``count`` cards cycling through ``TEMPLATES``. No I/O."""
    req = (
        request
        if isinstance(request, GenerationRequest)
        else GenerationRequest.model_validate(request)
    )
    level = req.difficulty
    cards: list[Flashcard] = []
    for i in range(req.count):
        q, a = TEMPLATES[i % len(TEMPLATES)]
        cards.append(
            Flashcard(
                question=q.format(topic=req.topic),
                answer=a.format(topic=req.topic),
                tags=[req.topic, level.value],
                difficulty=level,
                due_at=datetime.now(timezone.utc),
                ease=2.5,
                interval=0,
            )
        )
    return cards


def generate_fallback_result(request: GenerationRequest) -> GenerationResult:
    return GenerationResult(
        topic=request.topic,
        difficulty=request.difficulty,
        cards=generate_fallback_cards(request),
        metadata=GenerationMetadata(
            generated_at=datetime.now(timezone.utc),
            model=FALLBACK_MODEL_NAME,
            prompt_version=PROMPT_VERSION,
        ),
    )
