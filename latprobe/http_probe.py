"""HTTP GET timing over cold and keep-alive connections.

Both variants share one timing path: the clock starts just before the
request is sent, TTFB is taken when the response headers have arrived, and
total is taken once the body has been drained. They differ only in the
client the request goes through:

- cold: a throwaway client per call with keep-alive disabled and a
  ``Connection: close`` header, so every call pays DNS + TCP + TLS.
- keep-alive: a caller-owned client limited to a single pooled connection,
  so after the first call the handshake cost disappears.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx

from latprobe.config import USER_AGENT
from latprobe.errors import ConnectError, RequestError, Timeout
from latprobe.models import HTTPTiming

logger = logging.getLogger(__name__)

COLD_LIMITS = httpx.Limits(max_connections=1, max_keepalive_connections=0)
KEEPALIVE_LIMITS = httpx.Limits(max_connections=1, max_keepalive_connections=1)


async def _timed_get(client: httpx.AsyncClient, url: str) -> HTTPTiming:
    start = time.perf_counter()
    async with client.stream("GET", url) as response:
        ttfb_ms = (time.perf_counter() - start) * 1000.0
        body_bytes = 0
        async for chunk in response.aiter_raw():
            body_bytes += len(chunk)
    total_ms = (time.perf_counter() - start) * 1000.0
    return HTTPTiming(
        ttfb_ms=ttfb_ms,
        total_ms=total_ms,
        status_code=response.status_code,
        body_bytes=body_bytes,
    )


async def _measure(client: httpx.AsyncClient, url: str, timeout_s: float) -> HTTPTiming:
    """Run one timed GET, translating failures into the probe error taxonomy."""
    try:
        # httpx timeouts are per phase; this bounds the request as a whole
        timing = await asyncio.wait_for(_timed_get(client, url), timeout=timeout_s)
    except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
        logger.debug("HTTP timeout: url=%s, timeout=%.1fs", url, timeout_s)
        raise Timeout(f"HTTP timeout after {timeout_s:.1f}s: {url}") from exc
    except httpx.ConnectError as exc:
        raise ConnectError(f"HTTP connect failed: {url}: {exc}") from exc
    except httpx.HTTPError as exc:
        raise RequestError(f"HTTP request failed: {url}: {exc}") from exc

    logger.debug(
        "HTTP GET: url=%s, status=%d, ttfb=%.2fms, total=%.2fms, bytes=%d",
        url,
        timing.status_code,
        timing.ttfb_ms,
        timing.total_ms,
        timing.body_bytes,
    )
    return timing


async def measure_http_cold(url: str, timeout_s: float = 10.0) -> HTTPTiming:
    """Time a GET on a brand-new connection that is closed afterwards.

    Raises:
        Timeout: request did not complete within timeout_s
        ConnectError: connection could not be established
        RequestError: any other request-level failure
    """
    async with httpx.AsyncClient(
        limits=COLD_LIMITS,
        timeout=timeout_s,
        headers={"User-Agent": USER_AGENT, "Connection": "close"},
    ) as client:
        return await _measure(client, url, timeout_s)


@asynccontextmanager
async def keepalive_pool(timeout_s: float = 10.0) -> AsyncIterator[httpx.AsyncClient]:
    """Provide a single-connection client for keep-alive measurements.

    The client is closed when the block exits, whether normally or through
    an exception, so the pooled connection never outlives its owner.
    """
    client = httpx.AsyncClient(
        limits=KEEPALIVE_LIMITS,
        timeout=timeout_s,
        headers={"User-Agent": USER_AGENT},
    )
    logger.debug("Keep-alive pool opened")
    try:
        yield client
    finally:
        await client.aclose()
        logger.debug("Keep-alive pool closed")


async def measure_http_keepalive(
    url: str, pool: httpx.AsyncClient, timeout_s: float = 10.0
) -> HTTPTiming:
    """Time a GET through *pool*, reusing its connection when one is open.

    Same timing semantics and errors as :func:`measure_http_cold`.
    """
    return await _measure(pool, url, timeout_s)
