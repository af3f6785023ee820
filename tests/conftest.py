"""Shared fixtures: an in-process fake of the cart and coupon services."""

import asyncio
import itertools
import json
from decimal import Decimal
from typing import Any, Optional

import httpx
import pytest

from scentbox_cart.api import ServiceClient
from scentbox_cart.models import BoxComposition, ItemDraft, PerfumeSummary, ProductKind
from scentbox_cart.pipeline import BusyPolicy
from scentbox_cart.session import CartSession
from scentbox_cart.snapshot import MemorySnapshotStore

BASE_URL = "http://cart.test/api"


class FakeCartBackend:
    """Stateful stand-in for the remote services behind a MockTransport.

    ``fail_next`` queues a canned failure for the next request; ``hold``
    parks matching requests until ``release`` is called.
    """

    def __init__(self) -> None:
        self.items: list[dict[str, Any]] = []
        self.coupons: dict[str, dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.cart_exists = True
        self._failures: list[Any] = []
        self._ids = itertools.count(101)
        self._gate: Optional[asyncio.Event] = None
        self.entered: Optional[asyncio.Event] = None

    # --- test controls ---

    def seed(
        self,
        name: str,
        price: str,
        product_type: str = "box",
        perfumes: Optional[list[dict[str, Any]]] = None,
    ) -> str:
        server_id = str(next(self._ids))
        self.items.append(
            {
                "id": server_id,
                "product_type": product_type,
                "name": name,
                "price_at_addition": price,
                "box_configuration": {
                    "perfumes": perfumes
                    if perfumes is not None
                    else [{"external_id": "p-1", "name": "Santal 33", "brand": "Le Labo", "thumbnail_url": None}],
                    "decant_size": 5,
                    "decant_count": 4,
                },
            }
        )
        return server_id

    def add_coupon(self, code: str, discount_type: str, value: str, min_purchase: Optional[str] = None, expired: bool = False) -> None:
        self.coupons[code] = {
            "id": f"coupon-{code.lower()}",
            "code": code,
            "discount_type": discount_type,
            "value": value,
            "description": f"{code} promotion",
            "min_purchase_amount": min_purchase,
            "expiry_date": "2020-01-01T00:00:00Z" if expired else None,
            "_expired": expired,
        }

    def fail_next(self, status: int = 500, body: Any = None, network: bool = False) -> None:
        self._failures.append(("network", None) if network else (status, body))

    def hold(self) -> None:
        self._gate = asyncio.Event()
        self.entered = asyncio.Event()

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def paths(self) -> list[str]:
        return [f"{r.method} {r.url.path}" for r in self.requests]

    # --- request handling ---

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._gate is not None:
            self.entered.set()
            await self._gate.wait()

        if self._failures:
            status, body = self._failures.pop(0)
            if status == "network":
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(status, json=body)

        path = request.url.path.removeprefix("/api")
        method = request.method

        if method == "GET" and path == "/cart/":
            if not self.cart_exists:
                return httpx.Response(404, json={"detail": "Not found."})
            return self._cart()
        if method == "POST" and path == "/cart/items/":
            body = json.loads(request.content)
            self.items.append(
                {
                    "id": str(next(self._ids)),
                    "product_type": body["product_type"],
                    "name": body["name"],
                    "price_at_addition": body["price"],
                    "box_configuration": body.get("box_configuration"),
                }
            )
            self.cart_exists = True
            return self._cart()
        if method == "DELETE" and path.startswith("/cart/items/"):
            server_id = path.split("/")[3]
            remaining = [i for i in self.items if i["id"] != server_id]
            if len(remaining) == len(self.items):
                return httpx.Response(404, json={"detail": "Cart item not found."})
            self.items = remaining
            if not self.items:
                return httpx.Response(204)
            return self._cart()
        if method == "DELETE" and path == "/cart/":
            self.items = []
            return httpx.Response(204)
        if method == "POST" and path == "/coupons/validate/":
            return self._validate_coupon(json.loads(request.content))
        return httpx.Response(405, json={"detail": "Method not allowed."})

    def _cart(self) -> httpx.Response:
        return httpx.Response(200, json={"id": 1, "items": list(self.items)})

    def _validate_coupon(self, body: dict[str, Any]) -> httpx.Response:
        coupon = self.coupons.get(body["code"])
        if coupon is None:
            return httpx.Response(404, json={"detail": "Invalid coupon code."})
        if coupon["_expired"]:
            return httpx.Response(400, json={"detail": "This coupon has expired."})
        minimum = coupon["min_purchase_amount"]
        if minimum is not None and Decimal(body["cart_total"]) < Decimal(minimum):
            return httpx.Response(400, json={"detail": f"Minimum purchase of {minimum} required."})
        return httpx.Response(200, json={k: v for k, v in coupon.items() if not k.startswith("_")})


def sequential_ids():
    counter = itertools.count(1)
    return lambda: f"local-{next(counter)}"


def make_draft(
    name: str = "Box Personalizado 4x5ml",
    price: str = "25000",
    kind: ProductKind = ProductKind.PERSONALIZED_BOX,
    perfumes: int = 2,
) -> ItemDraft:
    return ItemDraft(
        product_kind=kind,
        display_name=name,
        unit_price=Decimal(price),
        composition=BoxComposition(
            perfumes=tuple(
                PerfumeSummary(id=f"ext-{n}", name=f"Perfume {n}", brand="Maison", thumbnail_ref=None)
                for n in range(perfumes)
            ),
            decant_size=5,
            decant_count=4,
        ),
    )


@pytest.fixture
def backend() -> FakeCartBackend:
    return FakeCartBackend()


@pytest.fixture
def snapshot() -> MemorySnapshotStore:
    return MemorySnapshotStore()


@pytest.fixture
def client(backend: FakeCartBackend) -> ServiceClient:
    return ServiceClient.connect(BASE_URL, auth_token="secret-token", transport=backend.transport())


@pytest.fixture
def session(client: ServiceClient, snapshot: MemorySnapshotStore) -> CartSession:
    return CartSession(client, snapshot, BusyPolicy.REJECT, id_factory=sequential_ids())


@pytest.fixture
def queued_session(client: ServiceClient, snapshot: MemorySnapshotStore) -> CartSession:
    return CartSession(client, snapshot, BusyPolicy.QUEUE, id_factory=sequential_ids())
