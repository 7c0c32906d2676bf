"""
Appointment sweep worker
Runs the auto-start and no-show sweeps every SWEEP_INTERVAL_SECONDS
"""

import asyncio
import logging

from medbook.core import config
from medbook.database import SessionLocal
from medbook.scheduling.sweeps import run_sweeps
from medbook.scheduling.timeutils import clinic_now

logger = logging.getLogger(__name__)


def run_sweeps_once(session_factory=SessionLocal, now=None) -> dict:
    db = session_factory()
    try:
        return run_sweeps(db, now=now or clinic_now())
    finally:
        db.close()


async def run_sweep_worker(interval_seconds: int = config.SWEEP_INTERVAL_SECONDS):
    logger.info('Starting appointment sweep worker (every %s seconds)', interval_seconds)

    while True:
        try:
            await asyncio.to_thread(run_sweeps_once)
        except Exception:
            logger.exception('Error in appointment sweep loop')

        await asyncio.sleep(interval_seconds)


if __name__ == '__main__':
    logging.basicConfig(level=config.LOG_LEVEL)
    config.validate_runtime_config()
    asyncio.run(run_sweep_worker())
