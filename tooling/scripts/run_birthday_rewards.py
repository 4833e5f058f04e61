#!/usr/bin/env python3
"""Issue birthday rewards for one day.

Intended usage: schedule once a day via cron or a workflow runner, shortly
after midnight in the restaurant's timezone.

Example:
    python tooling/scripts/run_birthday_rewards.py --day 2026-02-28
"""

from __future__ import annotations

import argparse
import asyncio
import datetime as dt
import sys
from pathlib import Path

from loguru import logger


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Issue birthday rewards once")
    parser.add_argument(
        "--day",
        type=dt.date.fromisoformat,
        default=None,
        help="ISO date to process (default: today in BIRTHDAY_REWARDS_TIMEZONE).",
    )
    return parser.parse_args()


async def _run(day: dt.date | None) -> dict[str, object]:
    repo_root = Path(__file__).resolve().parents[2]
    api_src = repo_root / "apps" / "api" / "src"
    if str(api_src) not in sys.path:
        sys.path.insert(0, str(api_src))

    from tablerewards_api.db.session import async_session, engine  # type: ignore import-position
    from tablerewards_api.jobs.loyalty import run_birthday_rewards  # type: ignore import-position

    try:
        return await run_birthday_rewards(session_factory=async_session, day=day)
    finally:
        await engine.dispose()


def main() -> int:
    args = parse_args()
    summary = asyncio.run(_run(args.day))
    logger.success("Birthday reward run completed", **summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
