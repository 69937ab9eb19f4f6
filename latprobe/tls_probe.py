"""TCP connect + TLS handshake timing (no HTTP payload)."""

import asyncio
import logging
import ssl
import time

from latprobe.errors import ConnectError, Timeout

logger = logging.getLogger(__name__)


def _abort(writer: asyncio.StreamWriter | None) -> None:
    """Drop the connection without a graceful shutdown."""
    if writer is None:
        return
    transport = writer.transport
    if not transport.is_closing():
        transport.abort()


async def measure_tcp_tls(
    hostname: str,
    port: int = 443,
    timeout_s: float = 10.0,
    ssl_context: ssl.SSLContext | None = None,
) -> float:
    """Time a fresh TCP connection plus TLS handshake to *hostname*:*port*.

    The clock stops once the TLS session is negotiated, the point where
    application data could be sent. The connection is then aborted; it is
    never reused.

    Args:
        hostname: Target host, also used for SNI and certificate checks
        port: Target port
        timeout_s: Bound on connect + handshake
        ssl_context: Override for the default verifying context

    Returns:
        Elapsed milliseconds

    Raises:
        Timeout: handshake did not complete within timeout_s
        ConnectError: TCP or TLS failure
    """
    if ssl_context is None:
        ssl_context = ssl.create_default_context()

    writer = None
    start = time.perf_counter()
    try:
        _reader, writer = await asyncio.wait_for(
            asyncio.open_connection(
                hostname, port, ssl=ssl_context, server_hostname=hostname
            ),
            timeout=timeout_s,
        )
        elapsed_ms = (time.perf_counter() - start) * 1000.0
    except asyncio.TimeoutError as exc:
        logger.debug("TCP/TLS timeout: host=%s, port=%d, timeout=%.1fs", hostname, port, timeout_s)
        raise Timeout(f"TCP/TLS timeout after {timeout_s:.1f}s: {hostname}:{port}") from exc
    except (ssl.SSLError, ssl.CertificateError) as exc:
        raise ConnectError(f"TLS handshake failed: {hostname}:{port}: {exc}") from exc
    except OSError as exc:
        raise ConnectError(f"TCP connect failed: {hostname}:{port}: {exc}") from exc
    finally:
        _abort(writer)

    logger.debug("TCP/TLS: host=%s, port=%d, elapsed=%.2fms", hostname, port, elapsed_ms)
    return elapsed_ms
