"""Command line interface for running the avatar harvest."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from avatar_etl.config import initialize_environment
from avatar_etl.errors import DirectoryError
from avatar_etl.logging_setup import configure_logging
from avatar_etl.pipeline import run_pipeline

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the command line interface."""
    p = argparse.ArgumentParser(
        description="Harvest validator identities from LCD endpoints and "
                    "download their Keybase avatars"
    )
    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level (DEBUG, INFO, WARNING, ERROR). Defaults to $LOG_LEVEL or INFO.",
    )
    p.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Maximum simultaneous resolve/download tasks. Defaults to $AV_CONCURRENCY or 2.",
    )
    p.add_argument(
        "--page-size",
        type=int,
        default=None,
        help="Validators requested per page. Defaults to $AV_PAGE_SIZE or 100.",
    )
    return p


async def main(argv: list[str] | None = None) -> int:
    """Run the harvest using command line arguments; return the exit code."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = await initialize_environment(
            concurrency=args.concurrency, page_size=args.page_size
        )
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    try:
        await run_pipeline(config)
    except DirectoryError as exc:
        logger.error("Cannot start harvest: %s", exc)
        return 1
    return 0


def run() -> None:
    """Console-script entry point."""
    sys.exit(asyncio.run(main()))
