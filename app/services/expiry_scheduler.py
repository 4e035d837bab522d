"""
Low-latency hold expiry via ARQ deferred jobs
The recovery sweep remains the durable mechanism; these jobs only shorten
the time a dead hold blocks its slot
"""

import logging
from datetime import timezone

from ..models import Reservation
from ..queue import PendingJobs

logger = logging.getLogger(__name__)


def expiry_job_id(reservation_id: str) -> str:
    return f"expire-hold:{reservation_id}"


class ExpiryScheduler:
    def __init__(self, jobs: PendingJobs):
        self.jobs = jobs

    def schedule(self, reservation: Reservation) -> None:
        """Run expire_hold_task for this hold at its expires_at"""
        self.jobs.enqueue(
            "expire_hold_task",
            reservation.id,
            _job_id=expiry_job_id(reservation.id),
            # naive datetimes would be read as local time by arq
            _defer_until=reservation.expires_at.replace(tzinfo=timezone.utc),
        )
        logger.debug(f"⏲️ Expiry scheduled for hold {reservation.id} at {reservation.expires_at}")

    def cancel(self, reservation_id: str) -> None:
        self.jobs.abort(expiry_job_id(reservation_id))
