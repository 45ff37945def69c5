"""Exception taxonomy for the order lifecycle.

Services raise these internally and convert them into result models at their
public boundary, so callers branch on ``success``/``error_code`` instead of
catching. Every error carries a stable ``code`` for machine consumers.
"""


class FarmstandError(Exception):
    """Base exception for all farmstand errors."""

    code = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(FarmstandError):
    """Malformed or missing input, detected before any I/O."""

    code = "validation_error"


class InvalidQuantityError(ValidationError):
    """Raised when a stock delta is not a positive integer."""

    code = "invalid_quantity"

    def __init__(self, quantity):
        self.quantity = quantity
        super().__init__(f"Quantity must be a positive integer, got {quantity!r}")


class NotFoundError(FarmstandError):
    """Referenced entity does not exist."""

    code = "not_found"


class OrderNotFoundError(NotFoundError):
    code = "order_not_found"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class ProductNotFoundError(NotFoundError):
    code = "product_not_found"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class NotEligibleError(FarmstandError):
    """Entity exists but is in the wrong state for the requested operation."""

    code = "not_eligible"


class InvalidTransitionError(NotEligibleError):
    """Raised when a status change is not in the transition table."""

    code = "invalid_transition"

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Invalid status transition: {current} -> {requested}")


class ConflictError(FarmstandError):
    """Operation conflicts with current shared state."""

    code = "conflict"


class InventoryConflictError(ConflictError):
    """Raised when requested quantities exceed live stock."""

    code = "inventory_conflict"

    def __init__(self, conflicts: list):
        self.conflicts = conflicts
        names = ", ".join(c.product_name or c.product_id for c in conflicts)
        super().__init__(f"Insufficient stock for: {names}")


class AlreadyRestoredError(ConflictError):
    code = "already_restored"

    def __init__(self, order_id: str, product_id: str | None = None):
        self.order_id = order_id
        self.product_id = product_id
        if product_id:
            msg = f"Stock already restored for product {product_id} of order {order_id}"
        else:
            msg = f"Stock already restored for order {order_id}"
        super().__init__(msg)


class DuplicateSlotError(ConflictError):
    code = "duplicate_slot"


class ConcurrentUpdateError(ConflictError):
    """Raised when a conditional write matched no rows."""

    code = "concurrent_update"

    def __init__(self, order_id: str, expected_status: str):
        self.order_id = order_id
        self.expected_status = expected_status
        super().__init__(
            f"Order {order_id} changed concurrently (expected status '{expected_status}')"
        )


class AuthenticationError(FarmstandError):
    code = "authentication_required"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class DependencyFailure(FarmstandError):
    """Network or store error surfaced from a backend."""

    code = "dependency_failure"


class RescheduleRejected(ValidationError):
    """A reschedule request that fails a pickup policy rule.

    ``code`` names the rule (past_datetime, outside_business_hours, ...).
    """

    def __init__(self, code: str, message: str):
        self.code = code
        super().__init__(message)
