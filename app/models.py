import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, Index, Integer, String, text

from .database import Base
from .domain.reservations.states import ReservationState
from .shared.time_utils import to_naive_utc, utcnow


def generate_reservation_id():
    """Generate an opaque reservation ID"""
    return str(uuid.uuid4())


def build_resource_key(specialist_id: str, scheduled_at: datetime) -> str:
    """Composite key for the contended (specialist, start time) slot"""
    start = to_naive_utc(scheduled_at).replace(microsecond=0)
    return f"{specialist_id}|{start.isoformat()}"


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(String(36), primary_key=True, default=generate_reservation_id)
    resource_key = Column(String(255), nullable=False)
    specialist_id = Column(String(255), nullable=False)
    scheduled_at = Column(DateTime, nullable=False)  # naive UTC
    holder_id = Column(String(255), nullable=False, index=True)  # patient
    state = Column(
        Enum(
            ReservationState,
            name="reservation_state",
            native_enum=False,
            length=20,
            values_callable=lambda states: [s.value for s in states],
        ),
        nullable=False,
        default=ReservationState.HELD,
    )
    duration_minutes = Column(Integer, nullable=False)

    # Optional contact details for confirm/cancel/expire notifications
    holder_email = Column(String(255), nullable=True)
    holder_phone = Column(String(20), nullable=True)  # E.164

    created_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=False, index=True)
    confirmed_at = Column(DateTime, nullable=True)
    released_at = Column(DateTime, nullable=True)  # expired or cancelled
    cancel_reason = Column(String(500), nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        # Single arbiter of mutual exclusion: one held/confirmed row per slot
        Index(
            "uq_reservations_active_resource_key",
            "resource_key",
            unique=True,
            postgresql_where=text("state IN ('held', 'confirmed')"),
            sqlite_where=text("state IN ('held', 'confirmed')"),
        ),
        Index("ix_reservations_state_expires_at", "state", "expires_at"),
    )

    def __repr__(self):
        return f"<Reservation(id={self.id}, resource_key={self.resource_key}, state={self.state})>"
