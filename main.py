"""
Portal record agent – main entry point.

Usage
-----
# HTTP server mode (default)
python main.py

# CLI mode (single lookup without the HTTP server)
python main.py --cli --subject-id 306955741 --birth-date 1987-01-01 \
    --issue-date 2023-10-01 --requester-id 7877
"""

import argparse
import asyncio
import json
import sys
import uuid

from dotenv import load_dotenv
from loguru import logger

load_dotenv(override=True)

from config.settings import settings  # noqa: E402 – must be after load_dotenv
from config.logging import configure_logging  # noqa: E402


async def _run_cli(query, args: argparse.Namespace) -> int:
    """Run one lookup and print the reply envelope as JSON."""
    from agents.orchestrator import Orchestrator, reply_for
    from agents.retry import run_with_retries
    from models.record import RequestContext

    ctx = RequestContext(
        user_id=str(args.requester_id), client_id="cli", request_id=uuid.uuid4().hex
    )
    logger.bind(**ctx.log_extra()).info(f"Running CLI lookup for subject {query.subject_id}")

    orchestrator = Orchestrator(settings)
    try:
        outcome = await run_with_retries(
            orchestrator,
            query,
            ctx,
            attempts=args.retries or settings.retry_attempts,
            delay_seconds=settings.retry_delay_seconds,
        )
    finally:
        await orchestrator.aclose()
    reply = reply_for(outcome)
    print(json.dumps(reply.to_payload(), ensure_ascii=False, indent=2))
    return 0 if reply.is_success else 1


def main() -> None:
    configure_logging(settings)

    parser = argparse.ArgumentParser(description="Portal record extraction agent")
    parser.add_argument(
        "--cli",
        action="store_true",
        help="Run one lookup in CLI mode instead of starting the HTTP server.",
    )
    parser.add_argument("--subject-id", type=str, help="Identity number to look up.")
    parser.add_argument("--birth-date", type=str, help="Birth date, YYYY-MM-DD.")
    parser.add_argument("--issue-date", type=str, help="Identity card issue date, YYYY-MM-DD.")
    parser.add_argument("--requester-id", type=int, default=0, help="Calling user id.")
    parser.add_argument(
        "--retries",
        type=int,
        default=None,
        help="Total attempts for retryable failures (default: RETRY_ATTEMPTS).",
    )
    args = parser.parse_args()

    if args.cli:
        missing = [
            flag
            for flag, value in (
                ("--subject-id", args.subject_id),
                ("--birth-date", args.birth_date),
                ("--issue-date", args.issue_date),
            )
            if not value
        ]
        if missing:
            parser.error(f"--cli requires {', '.join(missing)}")

        from pydantic import ValidationError

        from models.record import UserQuery

        try:
            query = UserQuery(
                subject_id=args.subject_id,
                birth_date=args.birth_date,
                issue_date=args.issue_date,
                requester_id=args.requester_id,
            )
        except ValidationError as exc:
            parser.error(str(exc))
        sys.exit(asyncio.run(_run_cli(query, args)))
    else:
        from server import serve

        serve(settings)


if __name__ == "__main__":
    main()
