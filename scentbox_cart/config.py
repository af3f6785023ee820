"""Session settings and logging configuration.

Environment variables:
    CART_API_BASE_URL: API root (default: http://127.0.0.1:8000/api)
    CART_AUTH_TOKEN: Token for the backend's token auth (optional)
    CART_REQUEST_TIMEOUT: Seconds before a remote call fails (default: 30)
    CART_SNAPSHOT_PATH: JSON file for the local snapshot (optional; in-memory if unset)
    CART_BUSY_POLICY: "reject" (default) or "queue"
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

import structlog

from .errors import ConfigError
from .pipeline import BusyPolicy

DEFAULT_API_BASE_URL = "http://127.0.0.1:8000/api"
DEFAULT_TIMEOUT_SECONDS = 30.0


def configure_logging(level: int = 0) -> None:
    """Configure structlog with JSON rendering and ISO timestamps."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )


@dataclass(frozen=True)
class CartSettings:
    api_base_url: str = DEFAULT_API_BASE_URL
    auth_token: Optional[str] = None
    request_timeout: float = DEFAULT_TIMEOUT_SECONDS
    snapshot_path: Optional[str] = None
    busy_policy: BusyPolicy = BusyPolicy.REJECT

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CartSettings":
        """Build settings from the environment, falling back to defaults."""
        env = os.environ if environ is None else environ

        raw_timeout = env.get("CART_REQUEST_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS))
        try:
            timeout = float(raw_timeout)
        except ValueError as e:
            raise ConfigError(f"CART_REQUEST_TIMEOUT={raw_timeout!r}") from e
        if timeout <= 0:
            raise ConfigError("CART_REQUEST_TIMEOUT must be positive")

        raw_policy = env.get("CART_BUSY_POLICY", BusyPolicy.REJECT.value).strip().lower()
        try:
            policy = BusyPolicy(raw_policy)
        except ValueError as e:
            raise ConfigError(f"CART_BUSY_POLICY={raw_policy!r}") from e

        return cls(
            api_base_url=env.get("CART_API_BASE_URL", DEFAULT_API_BASE_URL),
            auth_token=env.get("CART_AUTH_TOKEN") or None,
            request_timeout=timeout,
            snapshot_path=env.get("CART_SNAPSHOT_PATH") or None,
            busy_policy=policy,
        )
