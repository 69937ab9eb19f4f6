"""Data models for latprobe measurements."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Iterator
from urllib.parse import urlparse

from latprobe.errors import ResolutionError
from latprobe.stats import Stats, compute_stats

if TYPE_CHECKING:
    from latprobe.config import ProbeConfig

# TLS schemes only; every endpoint gets a TCP+TLS probe
_DEFAULT_PORTS = {"https": 443, "wss": 443}


class ProbeKind(str, Enum):
    """Which probe produced a sample sequence."""

    DNS = "dns"
    TCP_TLS = "tcp_tls"
    HTTP_COLD_TTFB = "http_cold_ttfb"
    HTTP_COLD_TOTAL = "http_cold_total"
    HTTP_KEEPALIVE_TTFB = "http_keepalive_ttfb"
    HTTP_KEEPALIVE_TOTAL = "http_keepalive_total"
    WS_HANDSHAKE = "ws_handshake"
    WS_PING = "ws_ping"


@dataclass(frozen=True)
class Endpoint:
    """A named measurement target reached over TLS (https or wss)."""

    name: str
    url: str

    def __post_init__(self):
        """Reject URLs without a scheme or host."""
        parsed = urlparse(self.url)
        if parsed.scheme not in _DEFAULT_PORTS or not parsed.hostname:
            raise ValueError(f"Unsupported endpoint URL: {self.url!r}")

    @property
    def hostname(self) -> str:
        return urlparse(self.url).hostname

    @property
    def port(self) -> int:
        parsed = urlparse(self.url)
        return parsed.port or _DEFAULT_PORTS[parsed.scheme]


@dataclass(frozen=True)
class DNSResult:
    """Outcome of one uncached A-record lookup.

    A failed lookup still carries the elapsed time; ``error_code`` is set and
    ``addresses`` is empty.
    """

    elapsed_ms: float
    addresses: tuple[str, ...] = ()
    error_code: str | None = None

    @property
    def ok(self) -> bool:
        return self.error_code is None

    def raise_for_error(self, hostname: str) -> None:
        """Raise ResolutionError if this lookup failed."""
        if self.error_code is not None:
            raise ResolutionError(hostname, self.error_code)


@dataclass(frozen=True)
class HTTPTiming:
    """Timing breakdown of one GET request."""

    ttfb_ms: float
    total_ms: float
    status_code: int
    body_bytes: int


@dataclass
class SampleSet:
    """Ordered samples plus failure count for one (endpoint, probe type) loop.

    Sample order is measurement order; jitter depends on it.
    """

    kind: ProbeKind
    samples: list[float] = field(default_factory=list)
    error_count: int = 0
    total_rounds: int = 0

    def add(self, elapsed_ms: float) -> None:
        """Record a successful round."""
        if elapsed_ms < 0 or math.isnan(elapsed_ms):
            raise ValueError(f"Invalid sample for {self.kind.value}: {elapsed_ms!r}")
        self.samples.append(elapsed_ms)
        self.total_rounds += 1

    def fail(self) -> None:
        """Record a failed round."""
        self.error_count += 1
        self.total_rounds += 1

    def to_summary(self) -> "ProbeSummary":
        """Finalize into a summary; stats is None when every round failed."""
        return ProbeSummary(
            kind=self.kind,
            stats=compute_stats(self.samples),
            error_count=self.error_count,
            total_rounds=self.total_rounds,
        )


@dataclass(frozen=True)
class ProbeSummary:
    """Finalized statistics for one probe type against one endpoint."""

    kind: ProbeKind
    stats: Stats | None  # None means all rounds failed, not zero latency
    error_count: int
    total_rounds: int


@dataclass(frozen=True)
class ProbeRow:
    """Flat read-only view handed to the reporting layer."""

    endpoint_name: str
    endpoint_url: str
    dns_avg_ms: float | None
    kind: ProbeKind
    stats: Stats | None
    error_count: int
    total_rounds: int


@dataclass(frozen=True)
class EndpointResult:
    """One endpoint's outcome across every probe type applied to it."""

    endpoint: Endpoint
    transport: str  # "REST" or "WS"
    dns_avg_ms: float | None
    addresses: tuple[str, ...]
    summaries: tuple[ProbeSummary, ...]

    def summary(self, kind: ProbeKind) -> ProbeSummary | None:
        for item in self.summaries:
            if item.kind == kind:
                return item
        return None

    def rows(self) -> Iterator[ProbeRow]:
        for item in self.summaries:
            yield ProbeRow(
                endpoint_name=self.endpoint.name,
                endpoint_url=self.endpoint.url,
                dns_avg_ms=self.dns_avg_ms,
                kind=item.kind,
                stats=item.stats,
                error_count=item.error_count,
                total_rounds=item.total_rounds,
            )


@dataclass(frozen=True)
class RoundEvent:
    """Progress notification for one measured round."""

    endpoint: Endpoint
    kind: ProbeKind
    index: int
    total: int
    value_ms: float | None = None
    detail: str = ""
    error: str | None = None


@dataclass
class RunResult:
    """Everything one run produced."""

    started_at: datetime
    config: "ProbeConfig"
    finished_at: datetime | None = None
    http_results: list[EndpointResult] = field(default_factory=list)
    ws_results: list[EndpointResult] = field(default_factory=list)

    @property
    def results(self) -> list[EndpointResult]:
        return self.http_results + self.ws_results
