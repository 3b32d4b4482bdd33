"""Entry point for lynx-sync: python -m lynx_sync"""

import asyncio
import logging

from lynx_sync.app import Lynx
from lynx_sync.config import Settings
from lynx_sync.database import Database

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
# Quiet noisy loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("trafilatura").setLevel(logging.WARNING)
logging.getLogger("langchain").setLevel(logging.WARNING)

logger = logging.getLogger("lynx_sync")


async def main() -> None:
    """Open the store and run the feed scheduler until interrupted."""
    settings = Settings.from_env()

    db = Database(settings.db_path)
    db.connect()
    lynx = Lynx(db, settings)

    scheduler_task = asyncio.create_task(lynx.scheduler.run_forever())

    try:
        await scheduler_task
    except asyncio.CancelledError:
        pass
    finally:
        logger.info("Shutting down, queued enrichment attempts are dropped")
        scheduler_task.cancel()
        lynx.close(wait=True, cancel_pending=True)
        db.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nGoodbye!")
