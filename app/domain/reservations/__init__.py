"""Reservations domain - Time-boxed slot holds, confirmation and expiry"""

# Layout follows the other domains:
# - states.py     - ReservationState enum and transition table
# - errors.py     - ReservationError hierarchy (mapped to HTTP in app/main.py)
# - repository.py - SlotStore, the only code that touches the reservations table
# - service.py    - ReservationService state machine
# - router.py     - /reservations endpoints

__all__ = []
