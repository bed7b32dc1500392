"""Bootstrap the first administrator from ADMIN_SEED_EMAIL / ADMIN_SEED_PASSWORD."""

import argparse
import asyncio
import logging
import sys

from finadmin.config import settings
from finadmin.core.auth.bootstrap import seed_admin_user
from finadmin.db.session import AsyncSessionLocal, engine


async def main(email: str | None, password: str | None) -> int:
    async with AsyncSessionLocal() as session:
        admin = await seed_admin_user(session, email=email, password=password)
    await engine.dispose()
    return 0 if admin is not None else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--email", default=settings.ADMIN_SEED_EMAIL)
    parser.add_argument("--password", default=settings.ADMIN_SEED_PASSWORD)
    args = parser.parse_args()

    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(levelname)s %(name)s %(message)s")
    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

    sys.exit(asyncio.run(main(args.email, args.password)))
