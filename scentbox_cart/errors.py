"""Error types for the cart engine.

The HTTP layer raises these; the mutation pipeline and the coupon validator
turn them into ``ErrorRecord`` values on the cart store.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class errmsg:
    """Error message constants for the cart domain."""

    CART_BUSY = "Cart is busy with another operation"
    ITEM_NOT_IN_CART = "Item not found in cart."
    DETAILS_INCOMPLETE = "Item details are incomplete for adding to cart."
    COMPOSITION_EMPTY = "Box must contain at least one perfume"
    DECANT_SIZE_INVALID = "Decant size must be 3, 5 or 10 ml"
    DECANT_COUNT_POSITIVE = "Decant count must be positive"
    PRICE_NEGATIVE = "Price cannot be negative"
    NAME_REQUIRED = "Item name is required"
    COUPON_CODE_REQUIRED = "Coupon code is required"
    INVALID_COUPON_TYPE = "Invalid coupon type"
    INVALID_COUPON_PAYLOAD = "Coupon response could not be read"
    INVALID_CART_PAYLOAD = "Cart response could not be read"
    UNKNOWN_SERVER_ERROR = "Network response was not ok"
    ADD_NOT_CONFIRMED = "Failed to confirm item addition with the server. Please try again."

    LOAD_PREFIX = "Error loading cart"
    ADD_PREFIX = "Error adding box"
    REMOVE_PREFIX = "Error removing item"
    CLEAR_PREFIX = "Error clearing cart"
    COUPON_PREFIX = "Error applying coupon"
    SAVE_PREFIX = "Error saving cart"


class ErrorKind(Enum):
    """Classification of a failure as seen by the UI."""

    NETWORK = "network"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    SERVER_REJECTION = "server_rejection"
    INVARIANT = "invariant"
    BUSY = "busy"
    STORAGE = "storage"


class CartError(Exception):
    """Base class for cart engine errors."""

    kind = ErrorKind.INVARIANT

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message}: {self.cause}"
        return self.message


class NetworkError(CartError):
    """Transport-level failure: connection refused, reset, timed out."""

    kind = ErrorKind.NETWORK

    def __init__(self, cause: Exception):
        super().__init__("network failure", cause)


class ServiceError(CartError):
    """The remote service answered with an error status."""

    kind = ErrorKind.SERVER_REJECTION

    def __init__(self, status_code: int, detail: str, payload: Any = None):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail
        self.payload = payload

    def __str__(self) -> str:
        return self.detail

    def is_not_found(self) -> bool:
        """Return True if the server reported 404."""
        return self.status_code == 404

    def is_bad_request(self) -> bool:
        """Return True if the server rejected the request body."""
        return self.status_code == 400


class NotFoundError(ServiceError):
    """The cart or coupon does not exist on the server."""

    kind = ErrorKind.NOT_FOUND


class ValidationError(CartError):
    """A draft was malformed; raised before any network call."""

    kind = ErrorKind.VALIDATION


class InvariantViolationError(CartError):
    """An internal precondition failed."""

    kind = ErrorKind.INVARIANT


class CartBusyError(CartError):
    """Another mutation holds the cart."""

    kind = ErrorKind.BUSY

    def __init__(self, message: str = errmsg.CART_BUSY):
        super().__init__(message)


class SnapshotError(CartError):
    """The local snapshot store could not be read or written."""

    kind = ErrorKind.STORAGE


class ConfigError(CartError):
    """Settings could not be parsed."""

    def __init__(self, message: str):
        super().__init__(f"invalid configuration: {message}")


@dataclass(frozen=True)
class ErrorRecord:
    """Human-readable error installed into ``lastError`` or ``couponError``."""

    kind: ErrorKind
    message: str
    status_code: Optional[int] = None

    @classmethod
    def from_exception(cls, exc: Exception, prefix: str = "") -> "ErrorRecord":
        """Build a record from any exception, prefixing the message if given."""
        if isinstance(exc, CartError):
            kind = exc.kind
        else:
            kind = ErrorKind.INVARIANT
        status_code = exc.status_code if isinstance(exc, ServiceError) else None
        text = str(exc) or exc.__class__.__name__
        message = f"{prefix}: {text}" if prefix else text
        return cls(kind=kind, message=message, status_code=status_code)
