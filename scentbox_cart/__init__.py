"""Client-side cart reconciliation and pricing engine."""

from .api import CartServiceClient, CouponServiceClient, ServiceClient
from .config import CartSettings, configure_logging
from .coupons import CouponValidator
from .errors import (
    CartBusyError,
    CartError,
    ConfigError,
    ErrorKind,
    ErrorRecord,
    InvariantViolationError,
    NetworkError,
    NotFoundError,
    ServiceError,
    SnapshotError,
    ValidationError,
    errmsg,
)
from .models import (
    BoxComposition,
    CartItem,
    CartState,
    CoarseKind,
    Coupon,
    DiscountKind,
    ItemDraft,
    OperationResult,
    PerfumeSummary,
    ProductKind,
    Totals,
)
from .pipeline import BusyPolicy, MutationPipeline
from .pricing import compute_discount, compute_subtotal, compute_totals
from .reconcile import infer_product_kind, reconcile
from .session import CartSession
from .snapshot import JsonFileSnapshotStore, MemorySnapshotStore, SnapshotStore
from .store import CartStore
from .wire import RemoteCartItem

__all__ = [
    # Clients
    "CartServiceClient",
    "CouponServiceClient",
    "ServiceClient",
    # Session
    "CartSession",
    "CartSettings",
    "configure_logging",
    # Components
    "CartStore",
    "MutationPipeline",
    "BusyPolicy",
    "CouponValidator",
    "reconcile",
    "infer_product_kind",
    "compute_subtotal",
    "compute_discount",
    "compute_totals",
    # Snapshot
    "SnapshotStore",
    "MemorySnapshotStore",
    "JsonFileSnapshotStore",
    # Models
    "BoxComposition",
    "CartItem",
    "CartState",
    "CoarseKind",
    "Coupon",
    "DiscountKind",
    "ItemDraft",
    "OperationResult",
    "PerfumeSummary",
    "ProductKind",
    "RemoteCartItem",
    "Totals",
    # Errors
    "CartError",
    "NetworkError",
    "ServiceError",
    "NotFoundError",
    "ValidationError",
    "InvariantViolationError",
    "CartBusyError",
    "SnapshotError",
    "ConfigError",
    "ErrorKind",
    "ErrorRecord",
    "errmsg",
]
