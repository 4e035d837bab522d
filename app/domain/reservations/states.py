"""
Reservation state machine

    held ──► confirmed   (confirm before expiry)
    held ──► expired     (expiry job, sweep, or confirm after expiry)
    held ──► cancelled   (explicit cancel)

confirmed, expired and cancelled are terminal. Nothing leads back to held.
"""

from enum import Enum


class ReservationState(str, Enum):
    HELD = "held"
    CONFIRMED = "confirmed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class NotificationEvent(str, Enum):
    """Events handed to the notification dispatcher after a transition"""

    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


# Exhaustive: every state has an entry, terminal states map to nothing
VALID_TRANSITIONS: dict[ReservationState, frozenset[ReservationState]] = {
    ReservationState.HELD: frozenset(
        {ReservationState.CONFIRMED, ReservationState.EXPIRED, ReservationState.CANCELLED}
    ),
    ReservationState.CONFIRMED: frozenset(),
    ReservationState.EXPIRED: frozenset(),
    ReservationState.CANCELLED: frozenset(),
}

# States that occupy a resource key (covered by the partial unique index)
ACTIVE_STATES = (ReservationState.HELD, ReservationState.CONFIRMED)
# Terminal states that release the slot and may be purged after retention
RELEASED_STATES = (ReservationState.EXPIRED, ReservationState.CANCELLED)

TRANSITION_EVENTS: dict[ReservationState, NotificationEvent] = {
    ReservationState.CONFIRMED: NotificationEvent.CONFIRMED,
    ReservationState.CANCELLED: NotificationEvent.CANCELLED,
    ReservationState.EXPIRED: NotificationEvent.EXPIRED,
}


def is_terminal(state: ReservationState) -> bool:
    return not VALID_TRANSITIONS[state]


def validate_state_transition(current_state: ReservationState, new_state: ReservationState) -> bool:
    """
    Check whether ``current_state -> new_state`` is allowed

    A same-state "transition" is rejected: the compare-and-swap update must
    never succeed twice for the same target.
    """
    return new_state in VALID_TRANSITIONS[current_state]
