#!/usr/bin/env python3
"""
Reconcile stored team sizes with the referral edges.

Usage:
    python scripts/recompute_team_sizes.py            # every user
    python scripts/recompute_team_sizes.py --user <uid>
    python scripts/recompute_team_sizes.py --dry-run  # report, roll back
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from mlm_app.config.settings import settings
from mlm_app.initialization import create_engine, create_session_maker
from mlm_app.services.referral import ReferralTeamManager
from mlm_app.utils.cache import CacheService

logger.remove()
logger.add(sys.stderr, level=settings.log_level)


async def recompute(user_id: str | None, dry_run: bool) -> None:
    engine = create_engine()
    session_maker = create_session_maker(engine)
    cache = None if dry_run else CacheService.from_settings()

    try:
        async with session_maker() as session:
            manager = ReferralTeamManager(session, cache)
            if user_id:
                size = await manager.recompute_team_size(user_id)
                logger.info(
                    f"{user_id}: direct={size.direct} total={size.total}"
                )
            else:
                changed = await manager.recompute_all()
                logger.info(f"{changed} user(s) had stale team sizes")

            if dry_run:
                await session.rollback()
                logger.warning("Dry run: changes rolled back")
            else:
                await session.commit()
                logger.success("Team sizes saved")
    finally:
        if cache is not None:
            await cache.close()
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Recompute direct/total team sizes from referral edges"
    )
    parser.add_argument("--user", default=None, help="Recompute one user and its sponsor chain")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview changes without applying them",
    )

    args = parser.parse_args()
    asyncio.run(recompute(args.user, args.dry_run))


if __name__ == "__main__":
    main()
