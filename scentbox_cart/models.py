"""Cart data model."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Hashable, Optional

from .errors import ErrorKind, ErrorRecord

VALID_DECANT_SIZES = (3, 5, 10)
DEFAULT_DECANT_SIZE = 5
DEFAULT_ITEM_NAME = "Scent Box"


class ProductKind(Enum):
    """Fine-grained client-side product classification."""

    AI_BOX = "AI_BOX"
    PERSONALIZED_BOX = "BOX_PERSONALIZADO"
    GIFT_BOX = "GIFT_BOX"
    OCCASION_BOX = "OCCASION_BOX"
    PREDEFINED_BOX = "PREDEFINED_BOX"
    PERFUME = "PERFUME"

    @property
    def coarse(self) -> "CoarseKind":
        if self is ProductKind.PERFUME:
            return CoarseKind.PERFUME
        return CoarseKind.BOX


class CoarseKind(Enum):
    """Product classification the remote cart service understands."""

    BOX = "box"
    PERFUME = "perfume"


class DiscountKind(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


@dataclass(frozen=True)
class PerfumeSummary:
    """One perfume inside a box."""

    id: str
    name: str
    brand: str
    thumbnail_ref: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "thumbnail_ref": self.thumbnail_ref,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PerfumeSummary":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            brand=data.get("brand", ""),
            thumbnail_ref=data.get("thumbnail_ref"),
        )


@dataclass(frozen=True)
class BoxComposition:
    """Ordered perfumes of a box plus the decant size (ml) and count."""

    perfumes: tuple[PerfumeSummary, ...] = ()
    decant_size: int = DEFAULT_DECANT_SIZE
    decant_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "perfumes": [p.to_dict() for p in self.perfumes],
            "decant_size": self.decant_size,
            "decant_count": self.decant_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BoxComposition":
        return cls(
            perfumes=tuple(PerfumeSummary.from_dict(p) for p in data.get("perfumes", [])),
            decant_size=int(data.get("decant_size", DEFAULT_DECANT_SIZE)),
            decant_count=int(data.get("decant_count", 0)),
        )


@dataclass(frozen=True)
class CartItem:
    """A cart line as the UI sees it.

    ``local_id`` is minted once and kept across reconciliations.
    ``server_id`` addresses the line on the remote cart service.
    ``unit_price`` is the full line price, not a per-decant price.
    """

    local_id: str
    product_kind: ProductKind
    display_name: str
    unit_price: Decimal
    server_id: Optional[str] = None
    thumbnail_ref: Optional[str] = None
    composition: Optional[BoxComposition] = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the local snapshot store."""
        return {
            "local_id": self.local_id,
            "server_id": self.server_id,
            "product_kind": self.product_kind.value,
            "display_name": self.display_name,
            "unit_price": str(self.unit_price),
            "thumbnail_ref": self.thumbnail_ref,
            "composition": self.composition.to_dict() if self.composition else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CartItem":
        composition = data.get("composition")
        return cls(
            local_id=data["local_id"],
            server_id=data.get("server_id"),
            product_kind=ProductKind(data["product_kind"]),
            display_name=data.get("display_name", DEFAULT_ITEM_NAME),
            unit_price=Decimal(data["unit_price"]),
            thumbnail_ref=data.get("thumbnail_ref"),
            composition=BoxComposition.from_dict(composition) if composition else None,
        )


@dataclass(frozen=True)
class ItemDraft:
    """What the UI asks to add. It has no identifiers yet."""

    product_kind: ProductKind
    display_name: str
    unit_price: Decimal
    composition: Optional[BoxComposition] = None
    thumbnail_ref: Optional[str] = None


@dataclass(frozen=True)
class Coupon:
    """A coupon the remote coupon service validated for this cart."""

    id: str
    code: str
    discount_kind: DiscountKind
    value: Decimal
    description: Optional[str] = None
    min_purchase_amount: Optional[Decimal] = None
    expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount: Decimal
    final_price: Decimal


@dataclass
class CartState:
    """State owned by a single ``CartStore``."""

    items: tuple[CartItem, ...] = ()
    last_error: Optional[ErrorRecord] = None
    coupon_error: Optional[ErrorRecord] = None
    applied_coupon: Optional[Coupon] = None
    outstanding: set[Hashable] = field(default_factory=set)
    clear_epoch: int = 0

    @property
    def is_mutating(self) -> bool:
        return bool(self.outstanding)

    def find(self, local_id: str) -> Optional[CartItem]:
        for item in self.items:
            if item.local_id == local_id:
                return item
        return None


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a pipeline or coupon operation.

    The same error is also installed on the store.
    """

    ok: bool
    error: Optional[ErrorRecord] = None

    @property
    def busy(self) -> bool:
        return self.error is not None and self.error.kind is ErrorKind.BUSY
