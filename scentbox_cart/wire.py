"""Remote field convention.

The cart and coupon services speak snake_case JSON with money as decimal
strings. Everything that knows those field names lives here.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from .errors import InvariantViolationError, errmsg
from .models import (
    DEFAULT_DECANT_SIZE,
    BoxComposition,
    CoarseKind,
    Coupon,
    DiscountKind,
    ItemDraft,
    PerfumeSummary,
)

# Namespace for perfume ids the server did not send. Derived ids stay the
# same across responses so reconciliation remains idempotent.
PERFUME_ID_NAMESPACE = uuid.UUID("3f0d8e52-5b0e-4c1e-9a7b-2d6c1f4e8a90")

UNKNOWN_PERFUME = "Unknown Perfume"
UNKNOWN_BRAND = "Unknown Brand"


@dataclass(frozen=True)
class RemoteCartItem:
    """A cart line exactly as the server described it."""

    id: str
    coarse_kind: Optional[CoarseKind]
    name: Optional[str]
    price: Decimal
    thumbnail_ref: Optional[str] = None
    composition: Optional[BoxComposition] = None


def money(value: Any) -> Decimal:
    """Parse a wire amount into a Decimal."""
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError) as e:
        raise InvariantViolationError(f"invalid amount {value!r}", e) from e


def money_to_wire(value: Decimal) -> str:
    return str(value)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing Z."""
    if not isinstance(value, str):
        raise InvariantViolationError(f"invalid timestamp {value!r}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise InvariantViolationError(f"invalid timestamp {value!r}", e) from e


def _perfume_id(raw: dict[str, Any], server_id: str, position: int) -> str:
    if raw.get("external_id"):
        return str(raw["external_id"])
    if raw.get("perfume_id_backend") is not None:
        return str(raw["perfume_id_backend"])
    return str(uuid.uuid5(PERFUME_ID_NAMESPACE, f"{server_id}:{position}"))


def parse_composition(raw: Optional[dict[str, Any]], server_id: str) -> Optional[BoxComposition]:
    if not raw:
        return None
    perfumes = tuple(
        PerfumeSummary(
            id=_perfume_id(p, server_id, position),
            name=p.get("name") or UNKNOWN_PERFUME,
            brand=p.get("brand") or UNKNOWN_BRAND,
            thumbnail_ref=p.get("thumbnail_url") or None,
        )
        for position, p in enumerate(raw.get("perfumes") or [])
    )
    return BoxComposition(
        perfumes=perfumes,
        decant_size=int(raw.get("decant_size") or DEFAULT_DECANT_SIZE),
        decant_count=int(raw.get("decant_count") or 0),
    )


def parse_cart_item(raw: dict[str, Any]) -> RemoteCartItem:
    server_id = str(raw["id"])
    try:
        coarse = CoarseKind(raw.get("product_type"))
    except ValueError:
        coarse = None
    perfume = raw.get("perfume") or {}
    return RemoteCartItem(
        id=server_id,
        coarse_kind=coarse,
        name=raw.get("name") or None,
        price=money(raw.get("price_at_addition", raw.get("price", 0))),
        thumbnail_ref=perfume.get("thumbnail_url") or None,
        composition=parse_composition(raw.get("box_configuration"), server_id),
    )


def parse_cart(payload: Any) -> list[RemoteCartItem]:
    """Parse a cart body into server items.

    ``None`` (204 No Content) and a body without items both mean an empty
    cart. A bare list is accepted as the items themselves.
    """
    if payload is None:
        return []
    if isinstance(payload, list):
        raw_items = payload
    elif isinstance(payload, dict):
        raw_items = payload.get("items") or []
    else:
        raise InvariantViolationError(errmsg.INVALID_CART_PAYLOAD)
    try:
        return [parse_cart_item(raw) for raw in raw_items]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise InvariantViolationError(errmsg.INVALID_CART_PAYLOAD, e) from e


def parse_coupon(payload: Any) -> Coupon:
    """Parse a successful coupon validation body."""
    if not isinstance(payload, dict):
        raise InvariantViolationError(errmsg.INVALID_COUPON_PAYLOAD)
    try:
        discount_kind = DiscountKind(payload.get("discount_type"))
    except ValueError as e:
        raise InvariantViolationError(errmsg.INVALID_COUPON_TYPE, e) from e
    try:
        coupon_id = str(payload["id"])
        code = str(payload["code"]).upper()
        value = money(payload["value"])
    except (KeyError, TypeError, ValueError) as e:
        raise InvariantViolationError(errmsg.INVALID_COUPON_PAYLOAD, e) from e

    min_purchase = payload.get("min_purchase_amount")
    expiry = payload.get("expiry_date")
    return Coupon(
        id=coupon_id,
        code=code,
        discount_kind=discount_kind,
        value=value,
        description=payload.get("description") or None,
        min_purchase_amount=money(min_purchase) if min_purchase is not None else None,
        expires_at=parse_timestamp(expiry) if expiry else None,
    )


def build_add_payload(draft: ItemDraft) -> dict[str, Any]:
    """Shape a draft the way the add-item endpoint expects it."""
    payload: dict[str, Any] = {
        "product_type": draft.product_kind.coarse.value,
        "name": draft.display_name,
        "price": money_to_wire(draft.unit_price),
        "quantity": 1,
    }
    if draft.composition is not None:
        payload["box_configuration"] = {
            "perfumes": [
                {
                    "external_id": p.id,
                    "name": p.name,
                    "brand": p.brand,
                    "thumbnail_url": p.thumbnail_ref,
                }
                for p in draft.composition.perfumes
            ],
            "decant_size": draft.composition.decant_size,
            "decant_count": draft.composition.decant_count,
        }
    return payload


def error_detail(payload: Any, fallback: str) -> str:
    """Extract a human-readable reason from an error body.

    Looks at ``detail``, then ``non_field_errors``, then the first field
    error list.
    """
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    if not isinstance(payload, dict):
        return fallback
    detail = payload.get("detail")
    if detail:
        return str(detail)
    non_field = payload.get("non_field_errors")
    if isinstance(non_field, list) and non_field:
        return str(non_field[0])
    for value in payload.values():
        if isinstance(value, list) and value:
            return str(value[0])
        if isinstance(value, str) and value:
            return value
    return fallback
