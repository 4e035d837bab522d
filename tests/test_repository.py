from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.domain.reservations.errors import StoreUnavailable
from app.domain.reservations.repository import SlotStore
from app.domain.reservations.states import ReservationState
from app.models import Reservation, build_resource_key


def make_hold(slot, now, holder_id="patient-1", specialist_id="drA", hold_seconds=60):
    return Reservation(
        resource_key=build_resource_key(specialist_id, slot),
        specialist_id=specialist_id,
        scheduled_at=slot,
        holder_id=holder_id,
        state=ReservationState.HELD,
        duration_minutes=30,
        created_at=now,
        expires_at=now + timedelta(seconds=hold_seconds),
        updated_at=now,
    )


def test_resource_key_is_specialist_and_utc_start(slot):
    assert build_resource_key("drA", slot) == f"drA|{slot.isoformat()}"


def test_try_insert_hold_rejects_second_active_row(db, slot, clock):
    assert SlotStore.try_insert_hold(db, make_hold(slot, clock.now))
    assert not SlotStore.try_insert_hold(db, make_hold(slot, clock.now, holder_id="patient-2"))


def test_try_insert_hold_allows_same_slot_for_other_specialist(db, slot, clock):
    assert SlotStore.try_insert_hold(db, make_hold(slot, clock.now))
    assert SlotStore.try_insert_hold(db, make_hold(slot, clock.now, specialist_id="drB"))


def test_released_row_frees_the_slot(db, slot, clock):
    first = make_hold(slot, clock.now)
    assert SlotStore.try_insert_hold(db, first)
    assert SlotStore.update_state(
        db, first.id, ReservationState.HELD, ReservationState.EXPIRED, released_at=clock.now
    )

    second = make_hold(slot, clock.now, holder_id="patient-2")
    assert SlotStore.try_insert_hold(db, second)
    assert SlotStore.find_active_for_resource(db, second.resource_key).id == second.id


def test_update_state_only_applies_from_expected_state(db, slot, clock):
    hold = make_hold(slot, clock.now)
    SlotStore.try_insert_hold(db, hold)

    assert SlotStore.update_state(db, hold.id, ReservationState.HELD, ReservationState.CONFIRMED)
    assert not SlotStore.update_state(db, hold.id, ReservationState.HELD, ReservationState.EXPIRED)
    assert SlotStore.get(db, hold.id).state == ReservationState.CONFIRMED


def test_update_state_on_unknown_id_swaps_nothing(db):
    assert not SlotStore.update_state(
        db, "00000000-0000-0000-0000-000000000000", ReservationState.HELD, ReservationState.EXPIRED
    )


def test_find_expired_holds_returns_overdue_held_rows_oldest_first(db, slot, clock):
    late = make_hold(slot, clock.now - timedelta(seconds=120))
    later = make_hold(slot + timedelta(hours=1), clock.now - timedelta(seconds=90))
    live = make_hold(slot + timedelta(hours=2), clock.now)
    for hold in (later, late, live):
        SlotStore.try_insert_hold(db, hold)

    overdue = SlotStore.find_expired_holds(db, clock.now)
    assert [r.id for r in overdue] == [late.id, later.id]

    assert len(SlotStore.find_expired_holds(db, clock.now, limit=1)) == 1


def test_find_expired_holds_includes_exact_boundary(db, slot, clock):
    hold = make_hold(slot, clock.now)
    SlotStore.try_insert_hold(db, hold)

    assert SlotStore.find_expired_holds(db, hold.expires_at)[0].id == hold.id
    assert SlotStore.find_expired_holds(db, hold.expires_at - timedelta(seconds=1)) == []


def test_purge_terminal_keeps_confirmed_and_recent_rows(db, slot, clock):
    old_cancelled = make_hold(slot, clock.now)
    recent_expired = make_hold(slot + timedelta(hours=1), clock.now)
    confirmed = make_hold(slot + timedelta(hours=2), clock.now)
    for hold in (old_cancelled, recent_expired, confirmed):
        SlotStore.try_insert_hold(db, hold)

    SlotStore.update_state(
        db,
        old_cancelled.id,
        ReservationState.HELD,
        ReservationState.CANCELLED,
        released_at=clock.now - timedelta(days=40),
    )
    SlotStore.update_state(
        db, recent_expired.id, ReservationState.HELD, ReservationState.EXPIRED, released_at=clock.now
    )
    SlotStore.update_state(db, confirmed.id, ReservationState.HELD, ReservationState.CONFIRMED)
    old_id, recent_id, confirmed_id = old_cancelled.id, recent_expired.id, confirmed.id

    assert SlotStore.purge_terminal(db, clock.now - timedelta(days=30)) == 1
    assert SlotStore.get(db, old_id) is None
    assert SlotStore.get(db, recent_id) is not None
    assert SlotStore.get(db, confirmed_id) is not None


def test_store_failure_is_reported_as_store_unavailable(db, slot, clock, monkeypatch):
    def broken_execute(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(db, "execute", broken_execute)

    with pytest.raises(StoreUnavailable):
        SlotStore.get(db, "00000000-0000-0000-0000-000000000000")
    with pytest.raises(StoreUnavailable):
        SlotStore.update_state(
            db, "00000000-0000-0000-0000-000000000000", ReservationState.HELD, ReservationState.EXPIRED
        )


def test_update_state_rejects_transition_out_of_terminal_state(db, slot, clock):
    hold = make_hold(slot, clock.now)
    SlotStore.try_insert_hold(db, hold)

    with pytest.raises(ValueError):
        SlotStore.update_state(db, hold.id, ReservationState.EXPIRED, ReservationState.HELD)
