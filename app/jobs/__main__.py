"""Run the maintenance scheduler as a standalone process.

Usage::

    python -m app.jobs

Useful when several API workers share one database and only one process
should run the purge and statistics jobs (set ``JOBS_ENABLED=false`` on
the workers).
"""

import asyncio
import signal

from app.config import config
from app.jobs.scheduler import (
    get_scheduler,
    setup_all_jobs,
    shutdown_scheduler,
    start_scheduler,
)
from app.logging import get_logger, setup_logging
from app.storage import close_engine, create_schema

setup_logging(config.log_level)
logger = get_logger(__name__)


async def _run() -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop.set)

    await create_schema()
    start_scheduler()
    setup_all_jobs()
    logger.info("Scheduler running standalone, press Ctrl+C to stop")

    try:
        while get_scheduler().running and not stop.is_set():
            await asyncio.sleep(1)
    finally:
        shutdown_scheduler()
        await close_engine()


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
