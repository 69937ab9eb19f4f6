"""Tests for latprobe.fake_prober.FakeProber behavior."""

import asyncio

import pytest

from latprobe.errors import ProbeError
from latprobe.fake_prober import FakeProber
from latprobe.models import DNSResult, HTTPTiming


class TestFakeProber:
    """Test FakeProber determinism and contracts."""

    def test_deterministic_with_seed(self):
        """Test two probers with the same seed produce the same readings."""

        async def readings(prober):
            return [
                await prober.measure_tcp_tls("example.com"),
                await prober.measure_ws_handshake("wss://example.com"),
                await prober.measure_ws_ping_pong("wss://example.com", 5, 0),
            ]

        first = asyncio.run(readings(FakeProber(seed=42, failure_probability=0.0)))
        second = asyncio.run(readings(FakeProber(seed=42, failure_probability=0.0)))

        assert first == second

    def test_values_are_positive(self):
        """Test generated latencies are always positive."""
        prober = FakeProber(seed=7, failure_probability=0.0)

        async def sample():
            return [await prober.measure_tcp_tls("example.com") for _ in range(200)]

        assert all(value > 0 for value in asyncio.run(sample()))

    def test_http_timing_shape(self):
        """Test cold HTTP timings have TTFB no greater than total."""
        prober = FakeProber(seed=1, failure_probability=0.0)

        timing = asyncio.run(prober.measure_http_cold("https://example.com"))

        assert isinstance(timing, HTTPTiming)
        assert 0 < timing.ttfb_ms <= timing.total_ms
        assert timing.status_code == 200

    def test_dns_result(self):
        """Test DNS lookups return addresses when they succeed."""
        prober = FakeProber(seed=3, failure_probability=0.0)

        result = asyncio.run(prober.measure_dns("example.com"))

        assert isinstance(result, DNSResult)
        assert result.ok
        assert result.addresses

    def test_empty_host_raises(self):
        """Test empty host names are rejected."""
        prober = FakeProber()
        with pytest.raises(ValueError, match="Host cannot be empty"):
            asyncio.run(prober.measure_dns("  "))

    def test_failures_use_probe_errors(self):
        """Test simulated failures raise ProbeError subclasses only."""
        prober = FakeProber(seed=5, failure_probability=1.0)
        with pytest.raises(ProbeError):
            asyncio.run(prober.measure_http_cold("https://example.com"))


class TestFakeKeepalivePool:
    """Test the simulated keep-alive pool."""

    def test_first_request_pays_connection_cost(self):
        """Test only the first request in a pool opens a connection."""
        prober = FakeProber(seed=11, failure_probability=0.0)
        prober.spike_probability = 0.0

        async def scenario():
            async with prober.keepalive_pool() as pool:
                timings = [
                    await prober.measure_http_keepalive("https://example.com", pool)
                    for _ in range(4)
                ]
            return pool, timings

        pool, timings = asyncio.run(scenario())
        assert pool.connections_made == 1
        assert pool.is_open is False
        assert timings[0].ttfb_ms > max(t.ttfb_ms for t in timings[1:])

    def test_pool_outside_scope_rejected(self):
        """Test using a pool after its block exits is a programming error."""
        prober = FakeProber(seed=2, failure_probability=0.0)

        async def scenario():
            async with prober.keepalive_pool() as pool:
                pass
            await prober.measure_http_keepalive("https://example.com", pool)

        with pytest.raises(RuntimeError, match="outside its scope"):
            asyncio.run(scenario())
