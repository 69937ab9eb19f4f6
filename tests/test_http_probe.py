"""Tests for cold and keep-alive HTTP timing against a local server."""

import asyncio
import statistics

import pytest

from latprobe.errors import ConnectError, RequestError, Timeout
from latprobe.http_probe import keepalive_pool, measure_http_cold, measure_http_keepalive

BODY = b'{"status":"ok"}'


class LocalHTTPServer:
    """Minimal HTTP/1.1 server for timing tests.

    The first request on every connection is delayed by ``setup_delay_s`` to
    stand in for handshake cost, so reused connections answer faster than
    new ones. ``mode`` switches to a silent or garbage-speaking peer.
    """

    def __init__(self, setup_delay_s: float = 0.05, mode: str = "ok"):
        self.setup_delay_s = setup_delay_s
        self.mode = mode
        self.connections = 0
        self.active = 0
        self.requests = 0
        self.server = None
        self._writers = set()

    async def __aenter__(self):
        self.server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        return self

    async def __aexit__(self, *exc_info):
        self.server.close()
        for writer in self._writers:
            writer.close()
        await self.server.wait_closed()

    @property
    def url(self) -> str:
        port = self.server.sockets[0].getsockname()[1]
        return f"http://127.0.0.1:{port}/health"

    async def _handle(self, reader, writer):
        self._writers.add(writer)
        self.connections += 1
        self.active += 1
        first = True
        try:
            while True:
                head = await reader.readuntil(b"\r\n\r\n")
                self.requests += 1
                if self.mode == "silent":
                    await reader.read()
                    return
                if self.mode == "garbage":
                    writer.write(b"this is not http\r\n\r\n")
                    await writer.drain()
                    return
                if first:
                    await asyncio.sleep(self.setup_delay_s)
                    first = False
                close = b"connection: close" in head.lower()
                writer.write(
                    b"HTTP/1.1 200 OK\r\n"
                    b"Content-Type: application/json\r\n"
                    + f"Content-Length: {len(BODY)}\r\n".encode()
                    + (b"Connection: close\r\n" if close else b"")
                    + b"\r\n"
                    + BODY
                )
                await writer.drain()
                if close:
                    return
        except (asyncio.IncompleteReadError, ConnectionError):
            pass
        finally:
            self.active -= 1
            writer.close()

    async def wait_idle(self, limit_s: float = 1.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + limit_s
        while self.active and loop.time() < deadline:
            await asyncio.sleep(0.01)


class TestMeasureHttpCold:
    """Test cold-connection GET timing."""

    def test_reports_status_body_and_ordering(self, no_proxy):
        """Test timing fields are filled and TTFB never exceeds total."""

        async def scenario():
            async with LocalHTTPServer() as server:
                return await measure_http_cold(server.url, timeout_s=2.0)

        timing = asyncio.run(scenario())
        assert timing.status_code == 200
        assert timing.body_bytes == len(BODY)
        assert 0 <= timing.ttfb_ms <= timing.total_ms

    def test_every_call_opens_a_new_connection(self, no_proxy):
        """Test cold requests never reuse a connection."""

        async def scenario():
            async with LocalHTTPServer(setup_delay_s=0.0) as server:
                for _ in range(3):
                    await measure_http_cold(server.url, timeout_s=2.0)
                await server.wait_idle()
                return server.connections, server.active

        connections, active = asyncio.run(scenario())
        assert connections == 3
        assert active == 0

    def test_silent_server_times_out(self, no_proxy):
        """Test a server that never answers hits the timeout."""

        async def scenario():
            async with LocalHTTPServer(mode="silent") as server:
                with pytest.raises(Timeout):
                    await measure_http_cold(server.url, timeout_s=0.2)

        asyncio.run(scenario())

    def test_repeated_timeouts_leave_no_connections(self, no_proxy):
        """Test timed-out requests release their sockets."""

        async def scenario():
            async with LocalHTTPServer(mode="silent") as server:
                for _ in range(3):
                    with pytest.raises(Timeout):
                        await measure_http_cold(server.url, timeout_s=0.1)
                await server.wait_idle()
                return server.connections, server.active

        connections, active = asyncio.run(scenario())
        assert connections == 3
        assert active == 0

    def test_refused_port_is_connect_error(self, no_proxy, closed_port):
        """Test refused connections map to ConnectError."""
        with pytest.raises(ConnectError):
            asyncio.run(measure_http_cold(f"http://127.0.0.1:{closed_port}/", timeout_s=2.0))

    def test_malformed_response_is_request_error(self, no_proxy):
        """Test a peer that does not speak HTTP maps to RequestError."""

        async def scenario():
            async with LocalHTTPServer(mode="garbage") as server:
                await measure_http_cold(server.url, timeout_s=2.0)

        with pytest.raises(RequestError):
            asyncio.run(scenario())


class TestMeasureHttpKeepalive:
    """Test keep-alive GET timing and pool lifecycle."""

    def test_reuses_one_connection(self, no_proxy):
        """Test all requests through one pool share a single connection."""

        async def scenario():
            async with LocalHTTPServer(setup_delay_s=0.0) as server:
                async with keepalive_pool(timeout_s=2.0) as pool:
                    for _ in range(4):
                        timing = await measure_http_keepalive(server.url, pool, timeout_s=2.0)
                        assert timing.status_code == 200
                return server.connections, server.requests

        connections, requests = asyncio.run(scenario())
        assert connections == 1
        assert requests == 4

    def test_keepalive_faster_than_cold(self, no_proxy):
        """Test reused connections beat fresh ones once the pool is warm."""

        async def scenario():
            async with LocalHTTPServer(setup_delay_s=0.05) as server:
                cold = [
                    (await measure_http_cold(server.url, timeout_s=2.0)).ttfb_ms
                    for _ in range(5)
                ]
                async with keepalive_pool(timeout_s=2.0) as pool:
                    await measure_http_keepalive(server.url, pool, timeout_s=2.0)
                    warm = [
                        (await measure_http_keepalive(server.url, pool, timeout_s=2.0)).ttfb_ms
                        for _ in range(5)
                    ]
                return cold, warm

        cold, warm = asyncio.run(scenario())
        assert statistics.median(warm) < statistics.median(cold)
        assert min(cold) >= 40.0

    def test_pool_closed_after_exception(self, no_proxy):
        """Test the pooled client is closed when the block raises."""

        async def scenario():
            holder = {}
            with pytest.raises(RuntimeError, match="boom"):
                async with keepalive_pool(timeout_s=1.0) as pool:
                    holder["pool"] = pool
                    raise RuntimeError("boom")
            return holder["pool"]

        pool = asyncio.run(scenario())
        assert pool.is_closed

    def test_pool_closed_after_normal_exit(self, no_proxy):
        """Test the pooled client is closed when the block completes."""

        async def scenario():
            async with keepalive_pool() as pool:
                pass
            return pool

        assert asyncio.run(scenario()).is_closed
