"""Reservation router - FastAPI endpoints for slot holds"""

import logging
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...queue import PendingJobs
from ...services.expiry_scheduler import ExpiryScheduler
from ...services.notification_service import NotificationDispatcher
from .errors import HoldExpired
from .schemas import (
    AvailabilityResponse,
    CancelRequest,
    ConfirmRequest,
    ConfirmResponse,
    HoldRequest,
    HoldResponse,
    ReservationResponse,
)
from .service import ReservationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reservations", tags=["Reservations"])


def get_pending_jobs() -> PendingJobs:
    """Per-request job buffer, flushed after the response is sent"""
    return PendingJobs()


def get_reservation_service(
    db: Session = Depends(get_db),
    jobs: PendingJobs = Depends(get_pending_jobs),
) -> ReservationService:
    """Dependency injection for ReservationService"""
    return ReservationService(
        db,
        notifier=NotificationDispatcher(jobs),
        expiry_scheduler=ExpiryScheduler(jobs),
    )


@router.post("/hold", response_model=HoldResponse, status_code=201)
async def request_hold(
    data: HoldRequest,
    background_tasks: BackgroundTasks,
    jobs: PendingJobs = Depends(get_pending_jobs),
    service: ReservationService = Depends(get_reservation_service),
):
    """Hold a slot for 60 seconds while the patient completes booking"""
    reservation = service.request_hold(
        specialist_id=data.resourceSpecialistId,
        scheduled_at=data.scheduledAt,
        holder_id=data.holderId,
        duration_minutes=data.durationMinutes,
        holder_email=data.holderEmail,
        holder_phone=data.holderPhone,
    )
    background_tasks.add_task(jobs.flush)
    return HoldResponse(reservationId=reservation.id, expiresAt=reservation.expires_at)


@router.post("/confirm", response_model=ConfirmResponse)
async def confirm_reservation(
    data: ConfirmRequest,
    background_tasks: BackgroundTasks,
    jobs: PendingJobs = Depends(get_pending_jobs),
    service: ReservationService = Depends(get_reservation_service),
):
    """Confirm a live hold as a booking"""
    try:
        reservation = service.confirm(data.reservationId)
    except HoldExpired:
        # A late confirm expired the hold; error responses skip background tasks
        await jobs.flush()
        raise
    background_tasks.add_task(jobs.flush)
    return ConfirmResponse(reservation=ReservationResponse.from_model(reservation))


@router.post("/cancel")
async def cancel_reservation(
    data: CancelRequest,
    background_tasks: BackgroundTasks,
    jobs: PendingJobs = Depends(get_pending_jobs),
    service: ReservationService = Depends(get_reservation_service),
):
    """Release a hold; always succeeds for unknown or already-final reservations"""
    service.cancel(data.reservationId, data.reason)
    background_tasks.add_task(jobs.flush)
    return {}


@router.get("/availability", response_model=AvailabilityResponse)
async def check_availability(
    background_tasks: BackgroundTasks,
    specialistId: str = Query(..., min_length=1),
    scheduledAt: datetime = Query(...),
    jobs: PendingJobs = Depends(get_pending_jobs),
    service: ReservationService = Depends(get_reservation_service),
):
    """Whether a slot is currently free (informational; holding is the only guarantee)"""
    availability = service.check_availability(specialistId, scheduledAt)
    background_tasks.add_task(jobs.flush)
    return AvailabilityResponse(**availability)


@router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    reservation_id: str,
    service: ReservationService = Depends(get_reservation_service),
):
    """Get a reservation by ID"""
    return ReservationResponse.from_model(service.get_reservation(reservation_id))
