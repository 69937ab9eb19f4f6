"""Run configuration and default endpoints."""

import logging
import os
from dataclasses import dataclass, fields, replace

from latprobe.models import Endpoint

logger = logging.getLogger(__name__)

USER_AGENT = "latency-tester/2.0"

DEFAULT_HTTP_ENDPOINTS = (
    Endpoint(name="Gamma API", url="https://gamma-api.polymarket.com"),
    Endpoint(name="Data API", url="https://data-api.polymarket.com"),
    Endpoint(name="CLOB API", url="https://clob.polymarket.com"),
)

DEFAULT_WS_ENDPOINTS = (
    Endpoint(name="Live Data WS", url="wss://ws-live-data.polymarket.com/"),
    Endpoint(
        name="CLOB Subscriptions WS",
        url="wss://ws-subscriptions-clob.polymarket.com/ws/market",
    ),
)

# Environment variable -> ProbeConfig field
_ENV_OVERRIDES = {
    "LATPROBE_WARMUP_ROUNDS": "warmup_rounds",
    "LATPROBE_ROUNDS": "measured_rounds",
    "LATPROBE_DELAY_MS": "delay_between_ms",
    "LATPROBE_HTTP_TIMEOUT_MS": "http_timeout_ms",
    "LATPROBE_WS_HANDSHAKE_TIMEOUT_MS": "ws_handshake_timeout_ms",
    "LATPROBE_WS_PING_ROUNDS": "ws_ping_rounds",
    "LATPROBE_WS_PING_INTERVAL_MS": "ws_ping_interval_ms",
    "LATPROBE_WS_PONG_TIMEOUT_MS": "ws_pong_timeout_ms",
    "LATPROBE_DNS_LOOKUPS": "dns_lookups",
    "LATPROBE_DNS_TIMEOUT_MS": "dns_timeout_ms",
}


@dataclass(frozen=True)
class ProbeConfig:
    """Round counts, delays and timeouts for one run.

    Passed explicitly to the orchestrator so tests can use small, fast
    values (e.g. ``ProbeConfig(measured_rounds=2, delay_between_ms=0)``).
    """

    warmup_rounds: int = 3
    measured_rounds: int = 30
    delay_between_ms: int = 100
    http_timeout_ms: int = 10_000
    ws_handshake_timeout_ms: int = 10_000
    ws_ping_rounds: int = 10
    ws_ping_interval_ms: int = 200
    ws_pong_timeout_ms: int = 5_000
    dns_lookups: int = 5
    dns_timeout_ms: int = 10_000

    def __post_init__(self):
        """Validate counts and timeouts."""
        for name in ("warmup_rounds", "delay_between_ms", "ws_ping_interval_ms"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        for name in ("measured_rounds", "ws_ping_rounds", "dns_lookups"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")
        for name in (
            "http_timeout_ms",
            "ws_handshake_timeout_ms",
            "ws_pong_timeout_ms",
            "dns_timeout_ms",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

    @property
    def http_timeout_s(self) -> float:
        return self.http_timeout_ms / 1000.0

    @property
    def ws_handshake_timeout_s(self) -> float:
        return self.ws_handshake_timeout_ms / 1000.0

    @property
    def ws_pong_timeout_s(self) -> float:
        return self.ws_pong_timeout_ms / 1000.0

    @property
    def dns_timeout_s(self) -> float:
        return self.dns_timeout_ms / 1000.0

    @property
    def delay_between_s(self) -> float:
        return self.delay_between_ms / 1000.0

    def as_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def with_overrides(self, **overrides) -> "ProbeConfig":
        """Return a copy with the non-None overrides applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ=None) -> "ProbeConfig":
        """Build a config from defaults plus ``LATPROBE_*`` environment variables.

        Environment Variables:
            LATPROBE_WARMUP_ROUNDS, LATPROBE_ROUNDS, LATPROBE_DELAY_MS,
            LATPROBE_HTTP_TIMEOUT_MS, LATPROBE_WS_HANDSHAKE_TIMEOUT_MS,
            LATPROBE_WS_PING_ROUNDS, LATPROBE_WS_PING_INTERVAL_MS,
            LATPROBE_WS_PONG_TIMEOUT_MS, LATPROBE_DNS_LOOKUPS,
            LATPROBE_DNS_TIMEOUT_MS

        Raises:
            ValueError: if a variable is not an integer or fails validation
        """
        if environ is None:
            environ = os.environ

        overrides = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            raw = environ.get(env_name)
            if raw is None or not raw.strip():
                continue
            try:
                overrides[field_name] = int(raw)
            except ValueError:
                raise ValueError(f"{env_name} must be an integer, got {raw!r}") from None
            logger.debug("Config override from environment: %s=%s", field_name, raw)

        return cls(**overrides)
