"""Slot store - Database operations for reservations"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...models import Reservation
from .errors import StoreUnavailable
from .states import ACTIVE_STATES, RELEASED_STATES, ReservationState, validate_state_transition

logger = logging.getLogger(__name__)


class SlotStore:
    """Repository for reservation records

    Mutual exclusion lives in the database: the partial unique index on
    ``resource_key`` for held/confirmed rows, and state-guarded UPDATEs.
    Anything other than an expected conflict is rolled back and raised as
    StoreUnavailable.
    """

    @staticmethod
    def try_insert_hold(db: Session, reservation: Reservation) -> bool:
        """Insert a held reservation; False if the slot already has an active row"""
        db.add(reservation)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"🔒 Hold conflict on {reservation.resource_key}")
            return False
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Failed to insert hold for {reservation.resource_key}: {e}")
            raise StoreUnavailable() from e

        db.refresh(reservation)
        return True

    @staticmethod
    def get(db: Session, reservation_id: str) -> Optional[Reservation]:
        """Get a reservation by ID, always re-read from the database"""
        try:
            return db.execute(
                select(Reservation)
                .where(Reservation.id == reservation_id)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Failed to load reservation {reservation_id}: {e}")
            raise StoreUnavailable() from e

    @staticmethod
    def update_state(
        db: Session,
        reservation_id: str,
        expected_state: ReservationState,
        new_state: ReservationState,
        **fields,
    ) -> bool:
        """
        Compare-and-swap the reservation state

        Applies only if the stored state still equals ``expected_state``.
        Returns True when this call performed the transition.
        """
        if not validate_state_transition(expected_state, new_state):
            raise ValueError(
                f"Invalid reservation transition: {expected_state.value} → {new_state.value}"
            )

        stmt = (
            update(Reservation)
            .where(Reservation.id == reservation_id, Reservation.state == expected_state)
            .values(state=new_state, **fields)
            .execution_options(synchronize_session=False)
        )
        try:
            result = db.execute(stmt)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(
                f"❌ Failed to move reservation {reservation_id} "
                f"{expected_state.value} → {new_state.value}: {e}"
            )
            raise StoreUnavailable() from e

        swapped = result.rowcount == 1
        if swapped:
            logger.info(
                f"✅ Reservation {reservation_id} transitioned: "
                f"{expected_state.value} → {new_state.value}"
            )
        else:
            logger.debug(
                f"ℹ️ Reservation {reservation_id} not {expected_state.value}, "
                f"skipped transition to {new_state.value}"
            )
        return swapped

    @staticmethod
    def find_expired_holds(db: Session, now: datetime, limit: int = 200) -> list[Reservation]:
        """Held reservations whose window has closed, oldest first"""
        try:
            return list(
                db.execute(
                    select(Reservation)
                    .where(
                        Reservation.state == ReservationState.HELD,
                        Reservation.expires_at <= now,
                    )
                    .order_by(Reservation.expires_at.asc())
                    .limit(limit)
                )
                .scalars()
                .all()
            )
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Failed to query expired holds: {e}")
            raise StoreUnavailable() from e

    @staticmethod
    def find_active_for_resource(db: Session, resource_key: str) -> Optional[Reservation]:
        """The held/confirmed reservation occupying a slot, if any"""
        try:
            return db.execute(
                select(Reservation)
                .where(
                    Reservation.resource_key == resource_key,
                    Reservation.state.in_(ACTIVE_STATES),
                )
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Failed to query slot {resource_key}: {e}")
            raise StoreUnavailable() from e

    @staticmethod
    def purge_terminal(db: Session, before: datetime) -> int:
        """Delete expired/cancelled reservations released before ``before``"""
        stmt = (
            delete(Reservation)
            .where(
                Reservation.state.in_(RELEASED_STATES),
                Reservation.released_at.isnot(None),
                Reservation.released_at < before,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = db.execute(stmt)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Failed to purge released reservations: {e}")
            raise StoreUnavailable() from e
        return result.rowcount
