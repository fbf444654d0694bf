from typing import Any, Optional


class StorefrontError(Exception):
    """
    Base for every error raised by the storefront core.

    `kind` tells the caller which family of failure this is, `identifier`
    names the offending entity (line id, order id, product id...).
    """

    kind = "error"
    retryable = False

    def __init__(self, message: str, identifier: Any = None):
        super().__init__(message)
        self.message = message
        self.identifier = identifier

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": self.message,
            "identifier": self.identifier,
            "retryable": self.retryable,
        }


class ValidationError(StorefrontError):
    """Malformed input; rejected before anything is written."""

    kind = "validation"


class EmptyCartError(ValidationError):
    def __init__(self, message: str = "Cart is empty", identifier: Any = None):
        super().__init__(message, identifier)


class StockError(StorefrontError):
    kind = "stock"


class InsufficientStockError(StockError):
    def __init__(self, line_id: int, requested: int, available: int):
        super().__init__(
            f"Not enough stock for cart line {line_id}: requested={requested} available={available}",
            identifier=line_id,
        )
        self.line_id = line_id
        self.requested = requested
        self.available = available

    def to_dict(self) -> dict:
        body = super().to_dict()
        body.update({"requested": self.requested, "available": self.available})
        return body


class StateGuardError(StorefrontError):
    kind = "state_guard"

    ALREADY_PROCESSED = "already_processed"
    NOT_FOUND = "not_found"
    NOT_YOURS = "not_yours"
    INVALID_TRANSITION = "invalid_transition"

    reason: Optional[str] = None

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["reason"] = self.reason
        return body


class AlreadyProcessedError(StateGuardError):
    reason = StateGuardError.ALREADY_PROCESSED

    def __init__(self, order_number: str, status: str, identifier: Any = None):
        super().__init__(
            f"Order #{order_number} is already {status}", identifier=identifier
        )
        self.status = status


class OrderNotFoundError(StateGuardError):
    reason = StateGuardError.NOT_FOUND

    def __init__(self, order_id: int):
        super().__init__(f"Order #{order_id} not found", identifier=order_id)


class OrderNotOwnedError(StateGuardError):
    reason = StateGuardError.NOT_YOURS

    def __init__(self, order_id: int):
        super().__init__(
            "This order does not belong to your account", identifier=order_id
        )


class InvalidTransitionError(StateGuardError):
    reason = StateGuardError.INVALID_TRANSITION

    def __init__(self, order_id: int, old_status: str, new_status: str):
        super().__init__(
            f"Cannot move order from {old_status} to {new_status}",
            identifier=order_id,
        )
        self.old_status = old_status
        self.new_status = new_status


class NotFoundError(StorefrontError):
    kind = "not_found"


class StorageError(StorefrontError):
    """Backing store, lock or file storage unavailable. Safe to retry."""

    kind = "storage"
    retryable = True
