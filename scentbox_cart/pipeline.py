"""Mutation pipeline: serialized add, remove, clear and hydration.

Each operation holds the session's cart lock for one remote round trip,
reconciles the response and installs it on the store. Failures become
``lastError`` on the store; they are never raised to the caller.
"""

import asyncio
import itertools
from contextlib import asynccontextmanager
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable

import structlog

from .api import CartServiceClient
from .errors import (
    CartBusyError,
    CartError,
    ErrorRecord,
    InvariantViolationError,
    NotFoundError,
    errmsg,
)
from .models import ItemDraft, OperationResult
from .reconcile import IdFactory, new_local_id, new_server_ids, reconcile
from .store import CartStore
from .validation import validate_draft
from .wire import build_add_payload

logger = structlog.get_logger()


class BusyPolicy(Enum):
    """What to do with a mutation requested while another is in flight."""

    REJECT = "reject"
    QUEUE = "queue"


class MutationPipeline:
    """Serializes cart mutations against the remote cart service."""

    def __init__(
        self,
        store: CartStore,
        cart_api: CartServiceClient,
        policy: BusyPolicy = BusyPolicy.REJECT,
        id_factory: IdFactory = new_local_id,
    ):
        self._store = store
        self._api = cart_api
        self._policy = policy
        self._id_factory = id_factory
        self._lock = asyncio.Lock()
        self._sequence = itertools.count(1)
        self.log = logger.bind(component="mutation_pipeline")

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def _exclusive(self) -> AsyncIterator[None]:
        if self._policy is BusyPolicy.REJECT and self._lock.locked():
            raise CartBusyError()
        async with self._lock:
            yield

    async def _run(
        self,
        operation: str,
        prefix: str,
        action: Callable[[], Awaitable[None]],
    ) -> OperationResult:
        log = self.log.bind(operation=operation)
        token = (operation, next(self._sequence))
        try:
            async with self._exclusive():
                self._store.set_error(None)
                self._store.set_coupon_error(None)
                self._store.begin_mutation(token)
                try:
                    await action()
                except CartError as e:
                    record = ErrorRecord.from_exception(e, prefix)
                    log.warning("mutation_failed", error=record.message, kind=record.kind.value)
                    self._store.set_error(record)
                    return OperationResult(ok=False, error=record)
                finally:
                    self._store.end_mutation(token)
        except CartBusyError as e:
            record = ErrorRecord.from_exception(e)
            log.info("mutation_rejected_busy")
            self._store.set_error(record)
            return OperationResult(ok=False, error=record)
        return OperationResult(ok=True)

    def _fail_locally(self, error: CartError, prefix: str) -> OperationResult:
        record = ErrorRecord.from_exception(error, prefix)
        self._store.set_error(record)
        return OperationResult(ok=False, error=record)

    # --- operations ---

    async def hydrate(self) -> OperationResult:
        """Load the authoritative cart. A missing cart is an empty cart."""

        async def action() -> None:
            try:
                server_items = await self._api.fetch_cart()
            except NotFoundError:
                self.log.info("cart_not_found")
                server_items = []
            items = reconcile(server_items, self._store.state.items, id_factory=self._id_factory)
            self._store.replace_items(items)
            self.log.info("cart_hydrated", item_count=len(items))

        return await self._run("hydrate", errmsg.LOAD_PREFIX, action)

    async def add(self, draft: ItemDraft) -> OperationResult:
        """Add a line. Nothing is inserted locally until the server confirms it."""
        try:
            validate_draft(draft)
        except CartError as e:
            self.log.info("item_draft_rejected", error=str(e))
            return self._fail_locally(e, errmsg.ADD_PREFIX)

        async def action() -> None:
            self.log.info("adding_item", name=draft.display_name, kind=draft.product_kind.value)
            server_items = await self._api.add_item(build_add_payload(draft))
            previous = self._store.state.items
            fresh = new_server_ids(server_items, previous)
            hints = {fresh[0]: draft.product_kind} if len(fresh) == 1 else {}
            self._store.replace_items(
                reconcile(server_items, previous, hints, self._id_factory)
            )

        return await self._run("add", errmsg.ADD_PREFIX, action)

    async def remove(self, local_id: str) -> OperationResult:
        """Remove a line by its local id."""

        async def action() -> None:
            previous = self._store.state.items
            item = self._store.state.find(local_id)
            if item is None:
                raise InvariantViolationError(errmsg.ITEM_NOT_IN_CART)

            if item.server_id is None:
                self.log.warning("removing_unsynced_item", local_id=local_id)
                self._store.replace_items([i for i in previous if i.local_id != local_id])
                return

            self.log.info("removing_item", local_id=local_id, server_id=item.server_id)
            server_items = await self._api.remove_item(item.server_id)
            self._store.replace_items(
                reconcile(server_items, self._store.state.items, id_factory=self._id_factory)
            )

        return await self._run("remove", errmsg.REMOVE_PREFIX, action)

    async def clear(self) -> OperationResult:
        """Empty the cart. A cleared cart has no coupon."""

        async def action() -> None:
            self.log.info("clearing_cart")
            await self._api.clear_cart()
            self._store.replace_items([], cleared=True)
            self._store.set_coupon(None)
            self._store.set_coupon_error(None)

        return await self._run("clear", errmsg.CLEAR_PREFIX, action)

    async def complete_order(self) -> OperationResult:
        """Reset local state after a checkout emptied the remote cart."""

        async def action() -> None:
            self.log.info("order_completed", item_count=len(self._store.state.items))
            self._store.replace_items([], cleared=True)
            self._store.set_coupon(None)

        return await self._run("complete_order", "", action)
