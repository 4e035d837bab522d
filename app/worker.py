"""
ARQ Background Worker for Reservation Jobs
Runs deferred hold expiry, the recovery sweep, notification delivery
and the retention purge
"""

import logging
import os

from arq import Retry
from arq.cron import cron

from .config import RESERVATION_RETENTION_DAYS, SWEEP_INTERVAL_SECONDS
from .database import SessionLocal
from .domain.reservations.repository import SlotStore
from .domain.reservations.service import ReservationService
from .domain.reservations.states import NotificationEvent
from .queue import PendingJobs, get_redis_settings
from .services.expiry_scheduler import ExpiryScheduler
from .services.notification_service import NotificationDispatcher, send_reservation_notification

logger = logging.getLogger(__name__)

# Seconds between notification delivery attempts, multiplied by the try number
NOTIFICATION_RETRY_DELAY = int(os.getenv("NOTIFICATION_RETRY_DELAY", "30"))


def sweep_cron_seconds(interval: int) -> set[int]:
    """Cron second-of-minute set that fires roughly every ``interval`` seconds"""
    if interval <= 0 or interval >= 60:
        return {0}
    return set(range(0, 60, interval))


def build_service(db, jobs: PendingJobs) -> ReservationService:
    return ReservationService(
        db,
        notifier=NotificationDispatcher(jobs),
        expiry_scheduler=ExpiryScheduler(jobs),
    )


async def expire_hold_task(ctx, reservation_id: str):
    """
    Deferred job queued at hold creation, due at the hold's expires_at

    A no-op if the hold was confirmed or cancelled meanwhile.
    """
    logger.info(f"⏰ Expiry job for hold {reservation_id} (job {ctx.get('job_id', 'unknown')})")

    jobs = PendingJobs()
    db = SessionLocal()
    try:
        expired = build_service(db, jobs).expire_hold(reservation_id)
    except Exception as e:
        logger.error(f"❌ Expiry job failed for hold {reservation_id}: {type(e).__name__}: {e}")
        raise
    finally:
        db.close()

    await jobs.flush(ctx.get("redis"))
    return {"reservation_id": reservation_id, "expired": expired}


async def sweep_expired_holds_task(ctx):
    """
    Cron job: finalize every held reservation past its window
    Covers holds whose expiry job was lost (Redis flush, worker restart)
    """
    jobs = PendingJobs()
    db = SessionLocal()
    try:
        summary = build_service(db, jobs).sweep_expired_holds()
    except Exception as e:
        logger.error(f"❌ Hold sweep failed: {str(e)}")
        raise
    finally:
        db.close()

    await jobs.flush(ctx.get("redis"))
    return summary


async def send_reservation_notification_task(ctx, event: str, reservation_id: str):
    """
    Deliver a confirmed/cancelled/expired notification to the holder
    Retried with backoff when every attempted channel fails
    """
    db = SessionLocal()
    try:
        reservation = SlotStore.get(db, reservation_id)
    finally:
        db.close()

    if not reservation:
        logger.warning(f"⚠️ Reservation {reservation_id} gone, skipping {event} notification")
        return {"status": "skipped"}

    result = await send_reservation_notification(NotificationEvent(event), reservation)

    attempted = result["email_attempted"] or result["sms_attempted"]
    delivered = result["email_sent"] or result["sms_sent"]
    if attempted and not delivered:
        job_try = ctx.get("job_try", 1)
        logger.warning(
            f"⚠️ {event} notification for {reservation_id} failed on try {job_try}, retrying"
        )
        raise Retry(defer=job_try * NOTIFICATION_RETRY_DELAY)

    return {"status": "completed", **result}


async def purge_released_reservations_task(ctx):
    """Daily cron job: delete expired/cancelled reservations past retention"""
    logger.info("🧹 Starting released reservation purge")

    db = SessionLocal()
    try:
        deleted = ReservationService(db).purge_released(RESERVATION_RETENTION_DAYS)
        return {"deleted": deleted}
    except Exception as e:
        logger.error(f"❌ Reservation purge failed: {str(e)}")
        raise
    finally:
        db.close()


class WorkerSettings:
    """ARQ Worker Settings"""

    functions = [
        expire_hold_task,
        sweep_expired_holds_task,
        send_reservation_notification_task,
        purge_released_reservations_task,
    ]
    redis_settings = get_redis_settings()

    max_jobs = int(os.getenv("ARQ_MAX_JOBS", "20"))
    job_timeout = int(os.getenv("ARQ_JOB_TIMEOUT", "60"))
    keep_result = int(os.getenv("ARQ_KEEP_RESULT", "3600"))

    health_check_interval = 60

    # Retry settings for failed jobs
    max_tries = 3

    # Expiry jobs are aborted when a hold is confirmed or cancelled
    allow_abort_jobs = True

    cron_jobs = [
        cron(
            sweep_expired_holds_task,
            second=sweep_cron_seconds(SWEEP_INTERVAL_SECONDS),
            run_at_startup=True,
            unique=True,
        ),
        cron(purge_released_reservations_task, hour=3, minute=0),  # 3 AM UTC
    ]

    logger.info(
        f"🔧 ARQ Worker configured: max_jobs={max_jobs}, timeout={job_timeout}s, "
        f"sweep every {SWEEP_INTERVAL_SECONDS}s"
    )
