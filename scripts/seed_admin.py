#!/usr/bin/env python3
"""
Create the root administrator at the top of the referral network.

Usage:
    python scripts/seed_admin.py --id <uid> --name "Admin" --email admin@example.com
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
from mlm_app.services.user import UserService, build_referral_link
from mlm_app.utils.exceptions import MLMError

logger.remove()
logger.add(sys.stderr, level=settings.log_level)


async def seed_admin(user_id: str, name: str, email: str, phone: str | None) -> int:
    engine = create_engine()
    session_maker = create_session_maker(engine)

    try:
        async with session_maker() as session:
            admin = await UserService(session).create_root_admin(
                user_id, name, email, phone
            )
    except MLMError as e:
        logger.error(f"Root admin not created: {e.message}")
        return 1
    finally:
        await engine.dispose()

    logger.success(f"Root admin {admin.id} created")
    logger.info(f"Referral link: {build_referral_link(admin.referral_code)}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Create the root administrator")
    parser.add_argument("--id", required=True, help="User id from the identity provider")
    parser.add_argument("--name", required=True, help="Display name")
    parser.add_argument("--email", required=True, help="Email address")
    parser.add_argument("--phone", default=None, help="Phone number")

    args = parser.parse_args()
    sys.exit(asyncio.run(seed_admin(args.id, args.name, args.email, args.phone)))


if __name__ == "__main__":
    main()
