"""Uncached DNS resolution timing."""

import logging
import time

import dns.asyncresolver
import dns.exception
import dns.rdatatype
import dns.resolver

from latprobe.models import DNSResult

logger = logging.getLogger(__name__)


def dns_error_code(exc: Exception) -> str:
    """Map a dnspython exception to a short resolver error code."""
    if isinstance(exc, dns.resolver.NXDOMAIN):
        return "ENOTFOUND"
    if isinstance(exc, dns.resolver.NoAnswer):
        return "ENODATA"
    if isinstance(exc, dns.exception.Timeout):
        return "ETIMEOUT"
    if isinstance(exc, dns.resolver.NoNameservers):
        return "ESERVFAIL"
    return "EDNS"


async def measure_dns(hostname: str, timeout_s: float = 10.0) -> DNSResult:
    """Resolve *hostname* to IPv4 addresses and time the lookup.

    A new resolver is built for every call and no cache is attached to it,
    so repeated calls each pay the full resolution cost instead of hitting a
    warm cache. Only A records are queried.

    Failures do not raise: the result carries an error code, no addresses,
    and the time spent failing.

    Args:
        hostname: Name to resolve
        timeout_s: Overall lifetime of the query

    Returns:
        DNSResult with elapsed time in milliseconds
    """
    start = time.perf_counter()
    try:
        resolver = dns.asyncresolver.Resolver()
    except dns.exception.DNSException as exc:
        # No usable resolver configuration (e.g. missing /etc/resolv.conf)
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        logger.warning("DNS resolver unavailable: %s", exc)
        return DNSResult(elapsed_ms=elapsed_ms, addresses=(), error_code=dns_error_code(exc))
    resolver.cache = None
    resolver.lifetime = timeout_s

    try:
        answer = await resolver.resolve(hostname, dns.rdatatype.A)
    except dns.exception.DNSException as exc:
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        code = dns_error_code(exc)
        logger.debug("DNS lookup failed: host=%s, code=%s, error=%s", hostname, code, exc)
        return DNSResult(elapsed_ms=elapsed_ms, addresses=(), error_code=code)

    elapsed_ms = (time.perf_counter() - start) * 1000.0
    addresses = tuple(rdata.address for rdata in answer)
    logger.debug(
        "DNS lookup: host=%s, elapsed=%.2fms, addresses=%s",
        hostname,
        elapsed_ms,
        ",".join(addresses),
    )
    return DNSResult(elapsed_ms=elapsed_ms, addresses=addresses)
