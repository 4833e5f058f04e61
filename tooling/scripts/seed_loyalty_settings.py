#!/usr/bin/env python3
"""Write the default loyalty settings into ``system_settings``.

Existing rows are left alone unless ``--overwrite`` is given, so the script is
safe to run after every deploy.

Example:
    python tooling/scripts/seed_loyalty_settings.py --overwrite
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from loguru import logger


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed default loyalty settings")
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace stored values with the built-in defaults.",
    )
    return parser.parse_args()


async def _run(overwrite: bool) -> int:
    repo_root = Path(__file__).resolve().parents[2]
    api_src = repo_root / "apps" / "api" / "src"
    if str(api_src) not in sys.path:
        sys.path.insert(0, str(api_src))

    from tablerewards_api.db.session import async_session, engine  # type: ignore import-position
    from tablerewards_api.services.loyalty import LoyaltySettingsStore  # type: ignore import-position

    try:
        async with async_session() as session:
            written = await LoyaltySettingsStore(session).seed_defaults(overwrite=overwrite)
            await session.commit()
            return written
    finally:
        await engine.dispose()


def main() -> int:
    args = parse_args()
    written = asyncio.run(_run(args.overwrite))
    logger.success("Loyalty settings seeded", rows_written=written, overwrite=args.overwrite)
    return 0


if __name__ == "__main__":
    sys.exit(main())
