"""Command line entry point: ask questions, dump the inventory, check connections."""

import argparse
import asyncio
import json
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError

from app.modules.assistant.domain.connections import verify_connections
from app.modules.assistant.domain.factory import build_assistant
from app.modules.inventory.domain.service import ScanOrchestrator
from app.shared.adapters.aws_utils import AWSClientProvider
from app.shared.core.config import Settings, get_settings
from app.shared.core.exceptions import ConfigurationError
from app.shared.core.logging import setup_logging
from app.shared.db.session import dispose_engine, init_db
from app.shared.llm.factory import LLMFactory

logger = structlog.get_logger()


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="stratus",
        description="Ask questions about an AWS account's resources and costs.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ask = subparsers.add_parser("ask", help="Answer a natural-language question.")
    ask.add_argument("question", help="Question text, e.g. 'what did EC2 cost in march?'")
    ask.add_argument("--client-id", default=None, help="Client id stored in the audit trail.")
    ask.add_argument(
        "--json",
        action="store_true",
        help="Print the answer together with the structured inventory as JSON.",
    )

    subparsers.add_parser("scan", help="Scan every resource kind and print the snapshot.")
    subparsers.add_parser("check", help="Verify AWS and LLM connectivity.")
    return parser.parse_args(argv)


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)


async def _scan(settings: Settings) -> int:
    orchestrator = ScanOrchestrator(AWSClientProvider.from_settings(settings))
    snapshot = await orchestrator.scan_all()
    print(_dump(snapshot.to_payload()))
    return 1 if snapshot.failures else 0


async def _check(settings: Settings) -> int:
    provider = AWSClientProvider.from_settings(settings)
    results = await verify_connections(
        provider,
        lambda: LLMFactory.create(
            provider=settings.LLM_PROVIDER,
            max_output_tokens=settings.LLM_MAX_OUTPUT_TOKENS,
        ),
    )
    print(_dump(results))
    return 0 if all(r.get("success") for r in results.values()) else 1


async def _ask(args: argparse.Namespace, settings: Settings) -> int:
    assistant = build_assistant(settings)
    try:
        if assistant.audit_logger is not None:
            try:
                await init_db()
            except SQLAlchemyError as e:
                # Answer anyway; the question just goes unrecorded.
                logger.warning("audit_store_unavailable", error=str(e))
                assistant.audit_logger = None

        result = await assistant.answer(args.question, client_id=args.client_id)
        if args.json:
            print(_dump(result.model_dump(mode="json")))
        else:
            print(result.answer)
        return 0 if result.error is None else 1
    finally:
        await dispose_engine()


async def _run(args: argparse.Namespace) -> int:
    settings = get_settings()
    if args.command == "scan":
        return await _scan(settings)
    if args.command == "check":
        return await _check(settings)
    return await _ask(args, settings)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    setup_logging()
    try:
        return asyncio.run(_run(args))
    except (ValueError, ConfigurationError) as e:
        logger.error("cli_invalid_input", command=args.command, error=str(e))
        print(f"error: {e}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
