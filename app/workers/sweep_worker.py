"""
Standalone Hold Sweep Worker
Recovery sweep loop for deployments that run without the ARQ worker
"""

import asyncio
import logging
from typing import Optional

from ..config import SWEEP_INTERVAL_SECONDS
from ..database import SessionLocal
from ..domain.reservations.service import ReservationService
from ..queue import PendingJobs, queue_configured
from ..services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)


async def sweep_once() -> Optional[dict]:
    """
    Expire every overdue hold once
    Notifications are queued only when Redis is configured
    """
    jobs = PendingJobs()
    notifier = NotificationDispatcher(jobs) if queue_configured() else None

    db = SessionLocal()
    try:
        summary = ReservationService(db, notifier=notifier).sweep_expired_holds()
    except Exception as e:
        logger.error(f"❌ Error in sweep_once: {e}")
        return None
    finally:
        db.close()

    await jobs.flush()
    return summary


async def run_sweep_worker(interval: int = SWEEP_INTERVAL_SECONDS):
    """
    Main worker loop - runs every ``interval`` seconds
    """
    logger.info(f"🚀 Starting hold sweep worker (every {interval}s)...")

    while True:
        try:
            await sweep_once()
            await asyncio.sleep(interval)

        except Exception as e:
            logger.error(f"❌ Error in sweep worker loop: {e}")
            await asyncio.sleep(interval)


if __name__ == "__main__":
    asyncio.run(run_sweep_worker())
