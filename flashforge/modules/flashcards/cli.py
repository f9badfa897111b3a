from __future__ import annotations

import argparse
import asyncio
import json

from flashforge.modules.flashcards.errors import (
    ClassifiedError,
    QuotaExceededError,
    RequestValidationError,
)
from flashforge.modules.flashcards.fallback import generate_fallback_cards
from flashforge.modules.flashcards.main import FlashcardPipeline
from flashforge.modules.flashcards.models.flashcards import create_deck

CLI_CLIENT_ID = "cli"


def _add_request_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--topic", "-t", required=True, help="Topic to study")
    p.add_argument("--count", "-n", type=int, default=10, help="Number of cards (1-50)")
    p.add_argument(
        "--difficulty",
        "-d",
        choices=["easy", "medium", "hard"],
        default="medium",
    )


def _request(args: argparse.Namespace) -> dict:
    return {"topic": args.topic, "count": args.count, "difficulty": args.difficulty}


def _dump(obj) -> None:
    print(json.dumps(obj, indent=2, default=str))


def main(argv: list[str] | None = None, *, pipeline: FlashcardPipeline | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="flashforge", description="Flashcards generator CLI"
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    g = sub.add_parser("generate", help="Generate flashcards through the LLM pipeline")
    _add_request_args(g)
    g.add_argument("--deck", action="store_true", help="Wrap the cards in a deck")

    fb = sub.add_parser("fallback", help="Print template cards without calling the LLM")
    _add_request_args(fb)

    sub.add_parser("health", help="Run the LLM health check")

    args = parser.parse_args(argv)

    if args.cmd == "fallback":
        try:
            cards = generate_fallback_cards(_request(args))
        except ValueError as e:
            parser.error(str(e))
        _dump([c.model_dump(mode="json") for c in cards])
        return 0

    svc = pipeline or FlashcardPipeline.from_settings()

    if args.cmd == "generate":
        try:
            outcome = svc.generate_sync(CLI_CLIENT_ID, _request(args))
        except RequestValidationError as e:
            _dump({"error": "Invalid input", "details": e.errors})
            return 2
        except QuotaExceededError as e:
            _dump({"error": "Rate limit exceeded", "retryAfter": e.decision.retry_after_seconds})
            return 3
        except ClassifiedError as e:
            _dump(e.to_dict())
            return 4
        if args.deck:
            deck = create_deck(outcome.result.topic, outcome.result.difficulty, outcome.cards)
            _dump(deck.model_dump(mode="json"))
        else:
            out = outcome.result.model_dump(mode="json")
            out["fallback"] = outcome.fallback
            _dump(out)
        return 0

    if args.cmd == "health":
        try:
            asyncio.run(svc.health_check())
        except Exception as e:  # noqa: BLE001
            _dump({"status": "unhealthy", "error": str(e)})
            return 1
        _dump({"status": "healthy"})
        return 0

    parser.print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
