"""Cart store: the single in-memory cart state of a session."""

from typing import Callable, Hashable, Optional, Sequence

import structlog

from .errors import ErrorRecord, SnapshotError, errmsg
from .models import CartItem, CartState, Coupon
from .snapshot import CART_KEY, SnapshotStore, dump_items, load_items

logger = structlog.get_logger()

Listener = Callable[[CartState], None]

DEFAULT_TOKEN = "mutation"


class CartStore:
    """Holds the ``CartState`` and exposes the only ways to change it.

    Item changes are written to the snapshot store once no operation is
    outstanding, so partially applied states are never persisted.
    """

    def __init__(self, snapshot: Optional[SnapshotStore] = None, key: str = CART_KEY):
        self._state = CartState()
        self._snapshot = snapshot
        self._key = key
        self._unsaved = False
        self._listeners: list[Listener] = []
        self.log = logger.bind(component="cart_store")

    @property
    def state(self) -> CartState:
        """Current state. Treat as read-only."""
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._state)

    # --- mutators ---

    def begin_mutation(self, token: Hashable = DEFAULT_TOKEN) -> None:
        """Mark an operation outstanding. Repeating a token is a no-op."""
        if token in self._state.outstanding:
            return
        self._state.outstanding.add(token)
        self._notify()

    def end_mutation(self, token: Hashable = DEFAULT_TOKEN) -> None:
        """Mark an operation settled. Unknown tokens are ignored."""
        if token not in self._state.outstanding:
            return
        self._state.outstanding.discard(token)
        if not self._state.is_mutating and self._unsaved:
            self._persist()
        self._notify()

    def replace_items(self, items: Sequence[CartItem], *, cleared: bool = False) -> None:
        """Install a reconciled item list.

        ``cleared`` marks an explicit cart clear, which invalidates coupon
        validations still in flight.
        """
        self._state.items = tuple(items)
        if cleared:
            self._state.clear_epoch += 1
        self._unsaved = True
        if not self._state.is_mutating:
            self._persist()
        self._notify()

    def set_error(self, error: Optional[ErrorRecord]) -> None:
        self._state.last_error = error
        self._notify()

    def set_coupon(self, coupon: Optional[Coupon]) -> None:
        self._state.applied_coupon = coupon
        self._notify()

    def set_coupon_error(self, error: Optional[ErrorRecord]) -> None:
        self._state.coupon_error = error
        self._notify()

    # --- snapshot ---

    def restore_snapshot(self) -> bool:
        """Show the last saved items while hydration is pending.

        Only applies to an empty store. Returns True if items were restored.
        """
        if self._snapshot is None or self._state.items:
            return False
        try:
            items = load_items(self._snapshot.read(self._key))
        except SnapshotError as e:
            self.log.warning("snapshot_read_failed", error=str(e))
            return False
        if not items:
            return False
        self._state.items = items
        self.log.info("snapshot_restored", item_count=len(items))
        self._notify()
        return True

    def _persist(self) -> None:
        self._unsaved = False
        if self._snapshot is None:
            return
        try:
            self._snapshot.write(self._key, dump_items(self._state.items))
        except SnapshotError as e:
            self.log.error("snapshot_write_failed", error=str(e))
            self._state.last_error = ErrorRecord.from_exception(e, errmsg.SAVE_PREFIX)
