"""Reservation domain errors - mapped to HTTP responses by the app exception handler"""

from typing import Optional


class ReservationError(Exception):
    """Base class for reservation failures"""

    status_code = 500
    error = "reservation_error"
    default_detail = "Reservation request failed"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {"error": self.error, "detail": self.detail}


class SlotUnavailable(ReservationError):
    """Another active hold or booking owns the resource key"""

    status_code = 409
    error = "slot_taken"
    default_detail = "Slot no longer available"


class ReservationNotFound(ReservationError):
    status_code = 404
    error = "not_found"
    default_detail = "Reservation not found"


class InvalidState(ReservationError):
    status_code = 409
    error = "invalid_state"
    default_detail = "Reservation is not in a state that allows this action"


class HoldExpired(ReservationError):
    """Confirm attempted after the hold window closed"""

    status_code = 410
    error = "hold_expired"
    default_detail = "Hold expired or invalid"


class InvalidRequest(ReservationError):
    status_code = 422
    error = "invalid_request"
    default_detail = "Invalid reservation request"


class StoreUnavailable(ReservationError):
    """Infrastructure failure in the slot store - callers retry with backoff"""

    status_code = 503
    error = "store_unavailable"
    default_detail = "Reservation store unavailable"
