"""
Order status transition table
"""
from farmstand.errors import InvalidTransitionError, ValidationError

PENDING = 'pending'
CONFIRMED = 'confirmed'
PROCESSING = 'processing'  # shown to customers as "preparing"
READY = 'ready'
COMPLETED = 'completed'
CANCELLED = 'cancelled'

ORDER_STATUSES = (PENDING, CONFIRMED, PROCESSING, READY, COMPLETED, CANCELLED)

VALID_TRANSITIONS = {
    PENDING: frozenset({CONFIRMED, PROCESSING, CANCELLED}),
    CONFIRMED: frozenset({PROCESSING, READY, CANCELLED}),
    PROCESSING: frozenset({READY, CANCELLED}),
    READY: frozenset({COMPLETED, CANCELLED}),
    COMPLETED: frozenset(),
    CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in VALID_TRANSITIONS.items() if not targets)

# Statuses that still represent work for the farmstand
ACTIVE_STATUSES = (PENDING, CONFIRMED, PROCESSING, READY)


def can_transition(current: str, new: str) -> bool:
    return new in VALID_TRANSITIONS.get(current, frozenset())


def validate_transition(current: str, new: str) -> None:
    """
    Raises:
        ValidationError: If new is not a known status
        InvalidTransitionError: If the table has no current -> new edge
    """
    if new not in VALID_TRANSITIONS:
        raise ValidationError(f"Unknown order status: {new}")
    if not can_transition(current, new):
        raise InvalidTransitionError(current, new)
