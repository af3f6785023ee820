"""Tests for coupon validation."""

import asyncio
import json
from decimal import Decimal

import pytest

from scentbox_cart.errors import ErrorKind, ErrorRecord, errmsg
from scentbox_cart.models import DiscountKind


async def hydrated(backend, session, *prices: str):
    for n, price in enumerate(prices):
        backend.seed(f"Gift Box {n}", price)
    await session.mutations.hydrate()
    return session


class TestApplyCoupon:
    """Tests for CouponValidator.apply_coupon."""

    @pytest.mark.asyncio
    async def test_applies_percentage(self, backend, session) -> None:
        backend.add_coupon("SILLE10", "percentage", "10", min_purchase="20000")
        await hydrated(backend, session, "25000")
        result = await session.apply_coupon("  sille10 ")
        assert result.ok
        assert session.applied_coupon.code == "SILLE10"
        assert session.applied_coupon.discount_kind is DiscountKind.PERCENTAGE
        assert session.discount == Decimal("2500")
        assert session.final_price == Decimal("22500")
        assert session.state.coupon_error is None

    @pytest.mark.asyncio
    async def test_sends_current_subtotal(self, backend, session) -> None:
        backend.add_coupon("DESC5000", "fixed", "5000")
        await hydrated(backend, session, "10000", "8000")
        await session.apply_coupon("desc5000")
        request = backend.requests[-1]
        assert request.url.path == "/api/coupons/validate/"
        assert json.loads(request.content) == {"code": "DESC5000", "cart_total": "18000"}

    @pytest.mark.asyncio
    async def test_fixed_discount_capped(self, backend, session) -> None:
        backend.add_coupon("BIG", "fixed", "5000")
        await hydrated(backend, session, "3000")
        await session.apply_coupon("BIG")
        assert session.discount == Decimal("3000")
        assert session.final_price == Decimal("0")

    @pytest.mark.asyncio
    async def test_rejection_clears_applied_coupon(self, backend, session) -> None:
        """A failed validation removes whatever coupon was applied before."""
        backend.add_coupon("SILLE10", "percentage", "10")
        await hydrated(backend, session, "25000")
        await session.apply_coupon("SILLE10")
        result = await session.apply_coupon("NOPE")
        assert not result.ok
        assert session.applied_coupon is None
        assert session.state.coupon_error.message == "Invalid coupon code."
        assert session.state.coupon_error.kind is ErrorKind.NOT_FOUND
        assert session.final_price == Decimal("25000")

    @pytest.mark.asyncio
    async def test_server_message_shown(self, backend, session) -> None:
        backend.add_coupon("SILLE10", "percentage", "10", min_purchase="20000")
        await hydrated(backend, session, "5000")
        await session.apply_coupon("SILLE10")
        assert session.state.coupon_error.message == "Minimum purchase of 20000 required."
        assert session.state.coupon_error.status_code == 400

    @pytest.mark.asyncio
    async def test_expired(self, backend, session) -> None:
        backend.add_coupon("OLD", "fixed", "100", expired=True)
        await hydrated(backend, session, "5000")
        await session.apply_coupon("OLD")
        assert session.state.coupon_error.message == "This coupon has expired."

    @pytest.mark.asyncio
    async def test_network_failure_prefixed(self, backend, session) -> None:
        await hydrated(backend, session, "5000")
        backend.fail_next(network=True)
        result = await session.apply_coupon("SILLE10")
        assert result.error.kind is ErrorKind.NETWORK
        assert session.state.coupon_error.message.startswith(f"{errmsg.COUPON_PREFIX}: ")

    @pytest.mark.asyncio
    async def test_unreadable_coupon_reported(self, backend, session) -> None:
        """A success body that cannot be read becomes a coupon error."""
        await hydrated(backend, session, "5000")
        body = {"id": 1, "code": "SILLE10", "discount_type": "fixed", "value": "100", "expiry_date": 1700000000}
        backend.fail_next(status=200, body=body)
        result = await session.apply_coupon("SILLE10")
        assert not result.ok
        assert result.error.kind is ErrorKind.INVARIANT
        assert session.applied_coupon is None
        assert session.state.coupon_error.message.startswith(f"{errmsg.COUPON_PREFIX}: invalid timestamp")
        assert not session.is_mutating

    @pytest.mark.asyncio
    async def test_coupon_errors_leave_last_error_alone(self, backend, session) -> None:
        await hydrated(backend, session, "5000")
        await session.apply_coupon("NOPE")
        assert session.state.last_error is None

    @pytest.mark.asyncio
    async def test_blank_code_makes_no_call(self, backend, session) -> None:
        result = await session.apply_coupon("   ")
        assert not result.ok
        assert session.state.coupon_error.message == errmsg.COUPON_CODE_REQUIRED
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_mutating_while_validating(self, backend, session) -> None:
        backend.add_coupon("SILLE10", "percentage", "10")
        backend.hold()
        task = asyncio.create_task(session.apply_coupon("SILLE10"))
        await backend.entered.wait()
        assert session.is_mutating
        backend.release()
        await task
        assert not session.is_mutating

    @pytest.mark.asyncio
    async def test_response_after_clear_discarded(self, backend, session) -> None:
        """A coupon validated against a cart that has since been emptied is dropped."""
        backend.add_coupon("SILLE10", "percentage", "10")
        await hydrated(backend, session, "25000")
        backend.hold()
        task = asyncio.create_task(session.apply_coupon("SILLE10"))
        await backend.entered.wait()
        await session.complete_order()
        backend.release()
        result = await task
        assert not result.ok
        assert session.applied_coupon is None
        assert session.state.coupon_error is None


class TestRemoveCoupon:
    @pytest.mark.asyncio
    async def test_remove_restores_price(self, backend, session) -> None:
        backend.add_coupon("SILLE10", "percentage", "10")
        await hydrated(backend, session, "25000")
        await session.apply_coupon("SILLE10")
        requests = len(backend.requests)
        session.remove_coupon()
        assert session.applied_coupon is None
        assert session.discount == Decimal("0")
        assert session.final_price == Decimal("25000")
        assert len(backend.requests) == requests

    def test_remove_clears_coupon_error(self, session) -> None:
        session.store.set_coupon_error(ErrorRecord(ErrorKind.SERVER_REJECTION, "expired"))
        session.remove_coupon()
        assert session.state.coupon_error is None
