"""Simulated prober for tests and offline runs."""

import random

from latprobe.errors import ConnectError, Timeout
from latprobe.models import DNSResult, HTTPTiming


class FakePool:
    """Stand-in for a keep-alive pool; tracks whether its connection is up."""

    def __init__(self):
        self.is_open = False
        self.connected = False
        self.connections_made = 0

    async def __aenter__(self):
        self.is_open = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.is_open = False
        self.connected = False
        return False


class FakeProber:
    """Generates plausible, seedable latencies without touching the network."""

    def __init__(self, seed: int | None = None, failure_probability: float = 0.02):
        """Initialize with optional random seed for deterministic behavior."""
        self._random = random.Random(seed)

        # Simulation parameters
        self.base_rtt = 25.0  # One network round trip in ms
        self.latency_variance = 3.0
        self.spike_probability = 0.05
        self.spike_multiplier = 3.0
        self.failure_probability = failure_probability
        self.pools: list[FakePool] = []

    def _rtt(self) -> float:
        if self._random.random() < self.spike_probability:
            value = self.base_rtt * self.spike_multiplier
        else:
            value = self.base_rtt
        return max(0.1, value + self._random.gauss(0, self.latency_variance))

    def _maybe_fail(self, what: str) -> None:
        if self._random.random() < self.failure_probability:
            if self._random.random() < 0.5:
                raise Timeout(f"simulated {what} timeout")
            raise ConnectError(f"simulated {what} failure")

    def _request(self, round_trips: int) -> HTTPTiming:
        ttfb = sum(self._rtt() for _ in range(round_trips))
        total = ttfb + self._random.uniform(0.1, 2.0)
        return HTTPTiming(
            ttfb_ms=round(ttfb, 3),
            total_ms=round(total, 3),
            status_code=200,
            body_bytes=self._random.randint(100, 4000),
        )

    async def measure_dns(self, hostname: str) -> DNSResult:
        if not hostname or not hostname.strip():
            raise ValueError("Host cannot be empty")
        if self._random.random() < self.failure_probability:
            return DNSResult(elapsed_ms=round(self._rtt(), 3), error_code="ETIMEOUT")
        return DNSResult(elapsed_ms=round(self._rtt() / 2, 3), addresses=("192.0.2.10",))

    async def measure_tcp_tls(self, hostname: str, port: int = 443) -> float:
        self._maybe_fail("TCP/TLS")
        # TCP handshake + TLS 1.3 handshake
        return round(self._rtt() + self._rtt(), 3)

    async def measure_http_cold(self, url: str) -> HTTPTiming:
        self._maybe_fail("HTTP")
        # TCP + TLS + request
        return self._request(round_trips=3)

    def keepalive_pool(self) -> FakePool:
        pool = FakePool()
        self.pools.append(pool)
        return pool

    async def measure_http_keepalive(self, url: str, pool: FakePool) -> HTTPTiming:
        if not pool.is_open:
            raise RuntimeError("keep-alive pool used outside its scope")
        self._maybe_fail("HTTP")
        if pool.connected:
            return self._request(round_trips=1)
        pool.connected = True
        pool.connections_made += 1
        return self._request(round_trips=3)

    async def measure_ws_handshake(self, url: str) -> float:
        self._maybe_fail("WS handshake")
        # TCP + TLS + upgrade
        return round(sum(self._rtt() for _ in range(3)), 3)

    async def measure_ws_ping_pong(self, url: str, rounds: int, interval_ms: int) -> list[float]:
        self._maybe_fail("WS handshake")
        samples = []
        for _ in range(rounds):
            if self._random.random() < self.failure_probability:
                continue  # dropped pong
            samples.append(round(self._rtt(), 3))
        return samples
