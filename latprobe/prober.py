"""Prober abstraction: the set of probe operations the orchestrator drives."""

import logging
from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

from latprobe import dns_probe, http_probe, tls_probe, ws_probe
from latprobe.config import ProbeConfig
from latprobe.models import DNSResult, HTTPTiming

logger = logging.getLogger(__name__)


class Prober(Protocol):
    """Protocol defining the probe operations used by ProbeOrchestrator."""

    async def measure_dns(self, hostname: str) -> DNSResult:
        ...

    async def measure_tcp_tls(self, hostname: str, port: int = 443) -> float:
        ...

    async def measure_http_cold(self, url: str) -> HTTPTiming:
        ...

    def keepalive_pool(self) -> AbstractAsyncContextManager[Any]:
        """Return a context manager owning one reusable connection."""
        ...

    async def measure_http_keepalive(self, url: str, pool: Any) -> HTTPTiming:
        ...

    async def measure_ws_handshake(self, url: str) -> float:
        ...

    async def measure_ws_ping_pong(self, url: str, rounds: int, interval_ms: int) -> list[float]:
        ...


class NetworkProber:
    """Prober that measures real network traffic, with timeouts from a ProbeConfig."""

    def __init__(self, config: ProbeConfig | None = None):
        """Initialize with optional config (defaults apply when omitted)."""
        if config is None:
            config = ProbeConfig()
        self.config = config

        logger.debug(
            "NetworkProber initialized: http_timeout=%dms, ws_handshake_timeout=%dms",
            config.http_timeout_ms,
            config.ws_handshake_timeout_ms,
        )

    async def measure_dns(self, hostname: str) -> DNSResult:
        return await dns_probe.measure_dns(hostname, timeout_s=self.config.dns_timeout_s)

    async def measure_tcp_tls(self, hostname: str, port: int = 443) -> float:
        return await tls_probe.measure_tcp_tls(
            hostname, port, timeout_s=self.config.http_timeout_s
        )

    async def measure_http_cold(self, url: str) -> HTTPTiming:
        return await http_probe.measure_http_cold(url, timeout_s=self.config.http_timeout_s)

    def keepalive_pool(self):
        return http_probe.keepalive_pool(timeout_s=self.config.http_timeout_s)

    async def measure_http_keepalive(self, url: str, pool) -> HTTPTiming:
        return await http_probe.measure_http_keepalive(
            url, pool, timeout_s=self.config.http_timeout_s
        )

    async def measure_ws_handshake(self, url: str) -> float:
        return await ws_probe.measure_ws_handshake(
            url, timeout_s=self.config.ws_handshake_timeout_s
        )

    async def measure_ws_ping_pong(self, url: str, rounds: int, interval_ms: int) -> list[float]:
        return await ws_probe.measure_ws_ping_pong(
            url,
            rounds,
            interval_ms,
            handshake_timeout_s=self.config.ws_handshake_timeout_s,
            pong_timeout_s=self.config.ws_pong_timeout_s,
        )
