"""Reservation domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_serializer, field_validator

from ...shared.time_utils import as_utc, to_naive_utc, utcnow
from ...shared.validators import validate_email, validate_identifier, validate_phone
from .states import ReservationState


class HoldRequest(BaseModel):
    """Schema for requesting a 60-second hold on a slot"""

    holderId: str
    resourceSpecialistId: str
    scheduledAt: datetime
    durationMinutes: int
    holderEmail: Optional[str] = None
    holderPhone: Optional[str] = None

    @field_validator("holderId", "resourceSpecialistId")
    @classmethod
    def validate_identifiers(cls, v):
        return validate_identifier(v)

    @field_validator("scheduledAt")
    @classmethod
    def validate_future_slot(cls, v):
        v = to_naive_utc(v)
        if v <= utcnow():
            raise ValueError("Scheduled time must be in the future")
        return v

    @field_validator("durationMinutes")
    @classmethod
    def validate_duration(cls, v):
        if v <= 0:
            raise ValueError("Duration must be greater than 0")
        return v

    @field_validator("holderEmail")
    @classmethod
    def validate_holder_email(cls, v):
        if v:
            return validate_email(v)
        return v

    @field_validator("holderPhone")
    @classmethod
    def validate_holder_phone(cls, v):
        if v:
            return validate_phone(v)
        return v


class HoldResponse(BaseModel):
    reservationId: str
    expiresAt: datetime

    @field_serializer("expiresAt")
    def serialize_expires_at(self, v: datetime):
        return as_utc(v)


class ConfirmRequest(BaseModel):
    reservationId: str


class CancelRequest(BaseModel):
    reservationId: str
    reason: Optional[str] = None


class ReservationResponse(BaseModel):
    """Schema for reservation response"""

    id: str
    resourceKey: str
    specialistId: str
    scheduledAt: datetime
    holderId: str
    state: ReservationState
    durationMinutes: int
    createdAt: datetime
    expiresAt: datetime
    confirmedAt: Optional[datetime] = None
    releasedAt: Optional[datetime] = None
    cancelReason: Optional[str] = None

    @field_serializer("scheduledAt", "createdAt", "expiresAt", "confirmedAt", "releasedAt")
    def serialize_timestamps(self, v: Optional[datetime]):
        return as_utc(v)

    @classmethod
    def from_model(cls, reservation) -> "ReservationResponse":
        return cls(
            id=reservation.id,
            resourceKey=reservation.resource_key,
            specialistId=reservation.specialist_id,
            scheduledAt=reservation.scheduled_at,
            holderId=reservation.holder_id,
            state=reservation.state,
            durationMinutes=reservation.duration_minutes,
            createdAt=reservation.created_at,
            expiresAt=reservation.expires_at,
            confirmedAt=reservation.confirmed_at,
            releasedAt=reservation.released_at,
            cancelReason=reservation.cancel_reason,
        )


class ConfirmResponse(BaseModel):
    reservation: ReservationResponse


class AvailabilityResponse(BaseModel):
    available: bool
    state: Optional[ReservationState] = None
    heldUntil: Optional[datetime] = None

    @field_serializer("heldUntil")
    def serialize_held_until(self, v: Optional[datetime]):
        return as_utc(v)
