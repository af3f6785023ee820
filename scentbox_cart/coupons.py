"""Coupon validation against the remote coupon service."""

import itertools

import structlog

from .api import CouponServiceClient
from .errors import CartError, ErrorRecord, ServiceError, errmsg
from .models import OperationResult
from .pricing import compute_subtotal
from .store import CartStore
from .validation import normalize_coupon_code

logger = structlog.get_logger()


class CouponValidator:
    """Applies and removes coupons on a cart store.

    Validation does not take the cart lock; it reads the subtotal when the
    call is made. A response that arrives after the cart was cleared is
    dropped.
    """

    def __init__(self, store: CartStore, coupon_api: CouponServiceClient):
        self._store = store
        self._api = coupon_api
        self._sequence = itertools.count(1)
        self.log = logger.bind(component="coupon_validator")

    async def apply_coupon(self, code: str) -> OperationResult:
        self._store.set_coupon_error(None)
        try:
            normalized = normalize_coupon_code(code)
        except CartError as e:
            record = ErrorRecord.from_exception(e)
            self._store.set_coupon_error(record)
            return OperationResult(ok=False, error=record)

        log = self.log.bind(code=normalized)
        token = ("coupon", next(self._sequence))
        epoch = self._store.state.clear_epoch
        subtotal = compute_subtotal(self._store.state.items)

        self._store.begin_mutation(token)
        try:
            coupon = await self._api.validate(normalized, subtotal)
        except CartError as e:
            if self._store.state.clear_epoch != epoch:
                log.info("coupon_discarded_after_clear")
                return OperationResult(ok=False)
            prefix = "" if isinstance(e, ServiceError) else errmsg.COUPON_PREFIX
            record = ErrorRecord.from_exception(e, prefix)
            log.info("coupon_rejected", reason=record.message)
            self._store.set_coupon(None)
            self._store.set_coupon_error(record)
            return OperationResult(ok=False, error=record)
        finally:
            self._store.end_mutation(token)

        if self._store.state.clear_epoch != epoch:
            log.info("coupon_discarded_after_clear")
            return OperationResult(ok=False)

        log.info("coupon_applied", discount_kind=coupon.discount_kind.value, value=str(coupon.value))
        self._store.set_coupon(coupon)
        self._store.set_coupon_error(None)
        return OperationResult(ok=True)

    def remove_coupon(self) -> None:
        """Drop the applied coupon and any coupon error. No network call."""
        self.log.info("coupon_removed")
        self._store.set_coupon(None)
        self._store.set_coupon_error(None)
