"""Run pipeline stages, inspect today's budget, or register provider keys.

Usage:
  python -m scripts.pipeline run scorer
  python -m scripts.pipeline run all
  python -m scripts.pipeline status
  python -m scripts.pipeline add-key --provider google --key AIza... --model gemini-2.0-flash
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from product_factory.core.database import close_db, init_db
from product_factory.core.exceptions import UnknownStageError
from product_factory.core.logging import setup_logging
from product_factory.services.ai_router.providers import OPENAI_COMPATIBLE_PROVIDERS
from product_factory.services.pipeline import get_status, run_all, run_stage, stage_names

SUPPORTED_PROVIDERS = sorted(OPENAI_COMPATIBLE_PROVIDERS | {"anthropic", "google"})


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create missing tables before running the command",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run one stage (or all stages in order)")
    run_parser.add_argument("stage", choices=[*stage_names(), "all"])

    subparsers.add_parser("status", help="Show today's spend against the daily limit")

    key_parser = subparsers.add_parser("add-key", help="Register an LLM provider credential")
    key_parser.add_argument("--provider", required=True, choices=SUPPORTED_PROVIDERS)
    key_parser.add_argument("--key", required=True, dest="key_value")
    key_parser.add_argument(
        "--model",
        action="append",
        dest="models",
        default=[],
        help="Allowed model (repeatable; the first one is used)",
    )
    key_parser.add_argument("--base-url", default=None)
    key_parser.add_argument("--note", default=None)

    return parser.parse_args(argv)


async def _run(stage: str) -> int:
    if stage == "all":
        results = await run_all()
        print(json.dumps({name: summary.model_dump() for name, summary in results.items()}, indent=2))
        return 0

    try:
        summary = await run_stage(stage)
    except UnknownStageError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    print(json.dumps({"stage": stage, **summary.model_dump()}, indent=2))
    return 0


async def _status() -> int:
    status = await get_status()
    print(json.dumps(status.model_dump(), indent=2))
    return 0


async def _add_key(args: argparse.Namespace) -> int:
    from product_factory.repositories.provider_key_repository import ProviderKeyRepository

    key_id = await ProviderKeyRepository().add_key(
        provider=args.provider,
        key_value=args.key_value,
        allowed_models=[model.strip() for model in args.models if model.strip()],
        base_url=args.base_url,
        note=args.note,
    )
    print(f"Provider key added: id={key_id} provider={args.provider}")
    return 0


async def async_main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    args = parse_args(argv)
    setup_logging()

    try:
        if args.init_db:
            await init_db()

        if args.command == "run":
            return await _run(args.stage)
        if args.command == "status":
            return await _status()
        return await _add_key(args)
    finally:
        await close_db()


def main() -> int:
    """Sync wrapper."""
    return asyncio.run(async_main())


if __name__ == "__main__":
    raise SystemExit(main())
