"""Per-session cart service object.

One ``CartSession`` is constructed per user session and handed to whatever
needs the cart. It owns the store, the mutation pipeline, the coupon
validator and the HTTP client.
"""

from decimal import Decimal
from typing import Callable, Optional

import httpx
import structlog

from .api import ServiceClient
from .config import CartSettings
from .coupons import CouponValidator
from .models import CartItem, CartState, Coupon, ItemDraft, OperationResult, Totals
from .pipeline import BusyPolicy, MutationPipeline
from .pricing import compute_totals
from .reconcile import IdFactory, new_local_id
from .snapshot import JsonFileSnapshotStore, MemorySnapshotStore, SnapshotStore
from .store import CartStore, Listener

logger = structlog.get_logger()


class CartSession:
    """Cart engine for one session."""

    def __init__(
        self,
        client: ServiceClient,
        snapshot: Optional[SnapshotStore] = None,
        policy: BusyPolicy = BusyPolicy.REJECT,
        id_factory: IdFactory = new_local_id,
    ):
        self._client = client
        self.store = CartStore(snapshot if snapshot is not None else MemorySnapshotStore())
        self.mutations = MutationPipeline(self.store, client.cart, policy, id_factory)
        self.coupons = CouponValidator(self.store, client.coupons)
        self.log = logger.bind(component="cart_session")

    @classmethod
    def from_settings(
        cls,
        settings: CartSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "CartSession":
        """Build a session from settings. ``transport`` is for tests."""
        client = ServiceClient.connect(
            settings.api_base_url,
            auth_token=settings.auth_token,
            timeout=settings.request_timeout,
            transport=transport,
        )
        if settings.snapshot_path:
            snapshot: SnapshotStore = JsonFileSnapshotStore(settings.snapshot_path)
        else:
            snapshot = MemorySnapshotStore()
        return cls(client, snapshot, settings.busy_policy)

    async def __aenter__(self) -> "CartSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def start(self) -> OperationResult:
        """Show the saved snapshot, then hydrate from the cart service."""
        self.store.restore_snapshot()
        return await self.mutations.hydrate()

    async def close(self) -> None:
        await self._client.close()

    # --- state ---

    @property
    def state(self) -> CartState:
        return self.store.state

    @property
    def items(self) -> tuple[CartItem, ...]:
        return self.store.state.items

    @property
    def item_count(self) -> int:
        return len(self.store.state.items)

    @property
    def applied_coupon(self) -> Optional[Coupon]:
        return self.store.state.applied_coupon

    @property
    def is_mutating(self) -> bool:
        return self.store.state.is_mutating

    @property
    def totals(self) -> Totals:
        return compute_totals(self.store.state.items, self.store.state.applied_coupon)

    @property
    def subtotal(self) -> Decimal:
        return self.totals.subtotal

    @property
    def discount(self) -> Decimal:
        return self.totals.discount

    @property
    def final_price(self) -> Decimal:
        return self.totals.final_price

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.store.subscribe(listener)

    # --- operations ---

    async def refresh(self) -> OperationResult:
        return await self.mutations.hydrate()

    async def add_item(self, draft: ItemDraft) -> OperationResult:
        return await self.mutations.add(draft)

    async def remove_item(self, local_id: str) -> OperationResult:
        return await self.mutations.remove(local_id)

    async def clear(self) -> OperationResult:
        return await self.mutations.clear()

    async def complete_order(self) -> OperationResult:
        return await self.mutations.complete_order()

    async def apply_coupon(self, code: str) -> OperationResult:
        return await self.coupons.apply_coupon(code)

    def remove_coupon(self) -> None:
        self.coupons.remove_coupon()
