"""Async clients for the remote cart and coupon services."""

import os
from decimal import Decimal
from typing import Any, Optional

import httpx
import structlog

from .errors import (
    InvariantViolationError,
    NetworkError,
    NotFoundError,
    ServiceError,
    errmsg,
)
from .models import Coupon
from .wire import (
    RemoteCartItem,
    error_detail,
    money_to_wire,
    parse_cart,
    parse_coupon,
)

logger = structlog.get_logger()

DEFAULT_TIMEOUT = 30.0


def _create_http_client(
    base_url: str,
    auth_token: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create an HTTP client for the cart API.

    The token is sent the way the backend's token auth expects it:
    ``Authorization: Token <token>``.
    """
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
    if auth_token:
        headers["Authorization"] = f"Token {auth_token}"
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        headers=headers,
        timeout=timeout,
        transport=transport,
    )


async def _send(http: httpx.AsyncClient, method: str, url: str, body: Any = None) -> httpx.Response:
    try:
        if body is None:
            return await http.request(method, url)
        return await http.request(method, url, json=body)
    except httpx.RequestError as e:
        logger.warning("remote_call_failed", method=method, url=url, error=str(e))
        raise NetworkError(e) from e


def _handle_response(response: httpx.Response) -> Any:
    """Return the decoded body, ``None`` for an empty one, or raise."""
    if not response.is_success:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        detail = error_detail(
            payload,
            response.reason_phrase or f"{errmsg.UNKNOWN_SERVER_ERROR} (status {response.status_code})",
        )
        logger.info(
            "remote_call_rejected",
            url=str(response.request.url),
            status=response.status_code,
            detail=detail,
        )
        if response.status_code == 404:
            raise NotFoundError(response.status_code, detail, payload)
        raise ServiceError(response.status_code, detail, payload)

    if response.status_code == 204 or not response.content:
        return None
    try:
        return response.json()
    except ValueError as e:
        raise InvariantViolationError("Failed to parse JSON response", e) from e


class CartServiceClient:
    """Client for the remote cart service."""

    def __init__(self, http: httpx.AsyncClient):
        self._http = http

    @classmethod
    def connect(
        cls, base_url: str, auth_token: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT
    ) -> "CartServiceClient":
        """Create a client for the cart service at the given base URL."""
        return cls(_create_http_client(base_url, auth_token, timeout))

    @classmethod
    def from_env(cls, env_var: str, default: str) -> "CartServiceClient":
        """Connect using an environment variable with fallback."""
        return cls.connect(os.environ.get(env_var, default))

    async def fetch_cart(self) -> list[RemoteCartItem]:
        """Fetch the current cart. Raises NotFoundError if none exists yet."""
        response = await _send(self._http, "GET", "/cart/")
        return parse_cart(_handle_response(response))

    async def add_item(self, payload: dict[str, Any]) -> list[RemoteCartItem]:
        """Add one line and return the full updated item list."""
        response = await _send(self._http, "POST", "/cart/items/", payload)
        body = _handle_response(response)
        if not body:
            raise InvariantViolationError(errmsg.ADD_NOT_CONFIRMED)
        return parse_cart(body)

    async def remove_item(self, server_id: str) -> list[RemoteCartItem]:
        """Remove a line by server id. No content means the cart is empty."""
        response = await _send(self._http, "DELETE", f"/cart/items/{server_id}/")
        return parse_cart(_handle_response(response))

    async def clear_cart(self) -> None:
        """Remove every line."""
        response = await _send(self._http, "DELETE", "/cart/")
        _handle_response(response)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()


class CouponServiceClient:
    """Client for the remote coupon service."""

    def __init__(self, http: httpx.AsyncClient):
        self._http = http

    @classmethod
    def connect(
        cls, base_url: str, auth_token: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT
    ) -> "CouponServiceClient":
        """Create a client for the coupon service at the given base URL."""
        return cls(_create_http_client(base_url, auth_token, timeout))

    @classmethod
    def from_env(cls, env_var: str, default: str) -> "CouponServiceClient":
        """Connect using an environment variable with fallback."""
        return cls.connect(os.environ.get(env_var, default))

    async def validate(self, code: str, cart_total: Decimal) -> Coupon:
        """Validate a code against a cart total.

        Raises ServiceError carrying the server's reason on rejection.
        """
        body = {"code": code, "cart_total": money_to_wire(cart_total)}
        response = await _send(self._http, "POST", "/coupons/validate/", body)
        return parse_coupon(_handle_response(response))

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()


class ServiceClient:
    """Combined client for the cart and coupon services on one API host."""

    def __init__(self, http: httpx.AsyncClient):
        self.cart = CartServiceClient(http)
        self.coupons = CouponServiceClient(http)
        self._http = http

    @classmethod
    def connect(
        cls,
        base_url: str,
        auth_token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ServiceClient":
        """Connect to an API host providing both services."""
        return cls(_create_http_client(base_url, auth_token, timeout, transport))

    @classmethod
    def from_env(cls, env_var: str, default: str) -> "ServiceClient":
        """Connect using an environment variable with fallback."""
        return cls.connect(os.environ.get(env_var, default))

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()
