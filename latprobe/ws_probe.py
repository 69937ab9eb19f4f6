"""WebSocket handshake and ping/pong round-trip timing."""

import asyncio
import logging
import time

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from latprobe.config import USER_AGENT
from latprobe.errors import ConnectError, Timeout
from latprobe.settle import Settlement

logger = logging.getLogger(__name__)

CLOSE_TIMEOUT_S = 2.0

# Failures that mean "the connection could not be established"
_CONNECT_FAILURES = (OSError, WebSocketException, EOFError)


def _open(url: str):
    """Start opening a connection with library-side timers and keepalive pings off."""
    return connect(
        url,
        open_timeout=None,
        ping_interval=None,
        ping_timeout=None,
        close_timeout=CLOSE_TIMEOUT_S,
        user_agent_header=USER_AGENT,
    )


def _terminate(ws) -> None:
    """Abort the underlying transport without a closing handshake."""
    transport = getattr(ws, "transport", None)
    if transport is not None and not transport.is_closing():
        transport.abort()


async def _close(ws) -> None:
    """Close gracefully, falling back to abort if the peer misbehaves."""
    try:
        await ws.close()
    except (OSError, WebSocketException) as exc:
        logger.debug("WS close failed, aborting: %s", exc)
        _terminate(ws)


async def measure_ws_handshake(url: str, timeout_s: float = 10.0) -> float:
    """Time a WebSocket opening handshake, then close the connection.

    The outcome is decided by whichever happens first: the handshake
    completes, the handshake fails, or the timer fires. Anything that
    happens afterwards is discarded; a connection that finishes opening
    after the timeout already fired is aborted on arrival.

    Returns:
        Elapsed milliseconds from connection start to handshake completion

    Raises:
        Timeout: handshake did not complete within timeout_s
        ConnectError: connection or handshake failed
    """
    loop = asyncio.get_running_loop()
    outcome: Settlement[float] = Settlement(f"ws handshake {url}")

    async def opener():
        start = time.perf_counter()
        ws = await _open(url)
        return ws, (time.perf_counter() - start) * 1000.0

    task = asyncio.ensure_future(opener())

    def on_opened(done: asyncio.Future) -> None:
        if done.cancelled():
            outcome.reject(ConnectError(f"WS connect cancelled: {url}"))
            return
        exc = done.exception()
        if exc is not None:
            if isinstance(exc, _CONNECT_FAILURES):
                outcome.reject(ConnectError(f"WS connect failed: {url}: {exc}"))
            else:
                outcome.reject(exc)
            return
        ws, elapsed_ms = done.result()
        if not outcome.resolve(elapsed_ms):
            # Opened after the outcome was already decided
            _terminate(ws)

    def on_timeout() -> None:
        if outcome.reject(Timeout(f"WS timeout after {timeout_s:.1f}s: {url}")):
            task.cancel()

    task.add_done_callback(on_opened)
    timer = loop.call_later(timeout_s, on_timeout)
    try:
        elapsed_ms = await outcome
    finally:
        timer.cancel()
        if not task.done():
            task.cancel()

    ws, _ = task.result()
    await _close(ws)
    logger.debug("WS handshake: url=%s, elapsed=%.2fms", url, elapsed_ms)
    return elapsed_ms


async def _ping_rounds(
    ws, url: str, rounds: int, interval_s: float, pong_timeout_s: float
) -> list[float]:
    samples: list[float] = []
    for index in range(rounds):
        start = time.perf_counter()
        try:
            pong_waiter = await ws.ping()
            await asyncio.wait_for(asyncio.shield(pong_waiter), timeout=pong_timeout_s)
        except asyncio.TimeoutError:
            logger.debug(
                "WS pong timeout: url=%s, round=%d, timeout=%.1fs", url, index + 1, pong_timeout_s
            )
        except ConnectionClosed as exc:
            logger.warning(
                "WS connection closed during ping round %d/%d: url=%s, %s",
                index + 1,
                rounds,
                url,
                exc,
            )
            break
        else:
            rtt_ms = (time.perf_counter() - start) * 1000.0
            samples.append(rtt_ms)
            logger.debug("WS ping: url=%s, round=%d, rtt=%.2fms", url, index + 1, rtt_ms)

        if index < rounds - 1:
            await asyncio.sleep(interval_s)
    return samples


async def measure_ws_ping_pong(
    url: str,
    rounds: int,
    interval_ms: int,
    handshake_timeout_s: float = 10.0,
    pong_timeout_s: float = 5.0,
) -> list[float]:
    """Measure ping/pong RTT over one persistent WebSocket connection.

    A pong that misses ``pong_timeout_s`` drops that round only; the loop
    carries on, so the result can hold fewer than *rounds* samples. The
    connection is closed after the last round on every exit path.

    The whole operation is bounded by
    ``handshake_timeout_s + rounds * (interval + pong_timeout_s)``.

    Returns:
        RTT samples in milliseconds, in measurement order

    Raises:
        ConnectError: handshake failed or did not complete in time
        Timeout: the overall bound elapsed
    """
    interval_s = interval_ms / 1000.0
    overall_s = handshake_timeout_s + rounds * (interval_s + pong_timeout_s)
    start = time.perf_counter()

    try:
        ws = await asyncio.wait_for(_open(url), timeout=handshake_timeout_s)
    except asyncio.TimeoutError as exc:
        raise ConnectError(
            f"WS handshake did not complete within {handshake_timeout_s:.1f}s: {url}"
        ) from exc
    except _CONNECT_FAILURES as exc:
        raise ConnectError(f"WS connect failed: {url}: {exc}") from exc

    remaining_s = overall_s - (time.perf_counter() - start)
    try:
        samples = await asyncio.wait_for(
            _ping_rounds(ws, url, rounds, interval_s, pong_timeout_s),
            timeout=remaining_s,
        )
    except asyncio.TimeoutError as exc:
        _terminate(ws)
        raise Timeout(f"WS ping run exceeded {overall_s:.1f}s: {url}") from exc
    finally:
        await _close(ws)

    logger.debug("WS ping run: url=%s, received=%d/%d", url, len(samples), rounds)
    return samples
