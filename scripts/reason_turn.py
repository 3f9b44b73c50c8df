"""
CLI tool to run one reasoning turn against the configured completion service.

Usage:
    python scripts/reason_turn.py "We're relocating to Austin in 3 months, budget around 550K"
    python scripts/reason_turn.py "Can I talk to a real person?" --lead-id abc123

Prints the Reasoning Result as JSON. Nothing is written to the database.
"""

import argparse
import asyncio
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from dotenv import load_dotenv
load_dotenv(".env.local")

from lead_reasoner.logging_config import setup_logging, get_logger
from lead_reasoner.schemas.reasoning import ConversationContext, ConversationMessage
from lead_reasoner.services.reasoning_engine import reason

setup_logging()
logger = get_logger(__name__)


async def run_turn(user_input: str, lead_id: str | None, history: list[str]) -> None:
    messages = tuple(
        ConversationMessage(role="user" if i % 2 == 0 else "assistant", content=text)
        for i, text in enumerate(history)
    )
    context = ConversationContext(lead_id=lead_id, previous_messages=messages)
    result = await reason(user_input, context)
    print(result.model_dump_json(indent=2))


def main() -> None:
    parser = argparse.ArgumentParser(description="Run one lead reasoning turn")
    parser.add_argument("user_input", help="What the lead said")
    parser.add_argument("--lead-id", help="Lead ID to attach to the context")
    parser.add_argument(
        "--history",
        action="append",
        default=[],
        help="Earlier messages, alternating user/assistant starting with user (repeatable)",
    )

    args = parser.parse_args()
    if not args.user_input.strip():
        parser.error("user_input must not be empty")

    asyncio.run(run_turn(args.user_input, args.lead_id, args.history))


if __name__ == "__main__":
    main()
