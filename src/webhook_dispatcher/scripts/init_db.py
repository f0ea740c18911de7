"""Create the subscriptions table if it does not exist."""
from __future__ import annotations

import asyncio
import logging

from webhook_dispatcher.infrastructure.db import models  # noqa: F401
from webhook_dispatcher.infrastructure.db.base import Base
from webhook_dispatcher.infrastructure.db.session import engine

logger = logging.getLogger(__name__)


async def init_db() -> None:
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Created tables: %s", ", ".join(Base.metadata.tables))
    finally:
        await engine.dispose()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(init_db())


if __name__ == "__main__":
    main()
