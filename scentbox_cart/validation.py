"""Validation helpers for item drafts and coupon codes.

Everything here runs before a network call is made.
"""

from collections.abc import Sequence
from decimal import Decimal
from typing import Any, Optional

from .errors import ValidationError, errmsg
from .models import VALID_DECANT_SIZES, ItemDraft


def require_present(value: Optional[Any], error_msg: str) -> None:
    """Require that a value is set."""
    if value is None:
        raise ValidationError(error_msg)


def require_not_blank(value: str, error_msg: str) -> None:
    """Require that a string has non-whitespace content."""
    if not value or not value.strip():
        raise ValidationError(error_msg)


def require_positive(value: int, error_msg: str) -> None:
    """Require that a value is greater than zero."""
    if value <= 0:
        raise ValidationError(error_msg)


def require_non_negative(value: Decimal, error_msg: str) -> None:
    """Require that a value is zero or greater."""
    if value < 0:
        raise ValidationError(error_msg)


def require_not_empty(items: Sequence[Any], error_msg: str) -> None:
    """Require that a sequence has at least one element."""
    if not items:
        raise ValidationError(error_msg)


def require_one_of(value: Any, allowed: Sequence[Any], error_msg: str) -> None:
    """Require that a value is one of the allowed values."""
    if value not in allowed:
        raise ValidationError(error_msg)


def validate_draft(draft: ItemDraft) -> None:
    """Check an item draft is complete enough to send to the cart service."""
    require_not_blank(draft.display_name, errmsg.NAME_REQUIRED)
    require_non_negative(draft.unit_price, errmsg.PRICE_NEGATIVE)
    require_present(draft.composition, errmsg.DETAILS_INCOMPLETE)
    require_not_empty(draft.composition.perfumes, errmsg.COMPOSITION_EMPTY)
    require_positive(draft.composition.decant_size, errmsg.DETAILS_INCOMPLETE)
    require_one_of(draft.composition.decant_size, VALID_DECANT_SIZES, errmsg.DECANT_SIZE_INVALID)
    require_positive(draft.composition.decant_count, errmsg.DECANT_COUNT_POSITIVE)


def normalize_coupon_code(code: str) -> str:
    """Trim and uppercase a coupon code, rejecting blank input."""
    require_not_blank(code, errmsg.COUPON_CODE_REQUIRED)
    return code.strip().upper()
