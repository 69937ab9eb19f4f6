"""Sequential warmup + measured-round driver for all endpoints."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, Sequence

from latprobe.config import DEFAULT_HTTP_ENDPOINTS, DEFAULT_WS_ENDPOINTS, ProbeConfig
from latprobe.errors import ProbeError, ResolutionError
from latprobe.models import (
    Endpoint,
    EndpointResult,
    HTTPTiming,
    ProbeKind,
    RoundEvent,
    RunResult,
    SampleSet,
)
from latprobe.prober import NetworkProber, Prober

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[RoundEvent], None]


def _http_values(timing: HTTPTiming) -> tuple[float, float]:
    return timing.ttfb_ms, timing.total_ms


def _http_detail(timing: HTTPTiming) -> str:
    return f"total={timing.total_ms:.2f}ms [{timing.status_code}] {timing.body_bytes}B"


class ProbeOrchestrator:
    """Runs every probe against every endpoint, one operation at a time.

    Per endpoint and probe type:
    - ``warmup_rounds`` calls whose results and errors are discarded
    - ``measured_rounds`` calls; failures are counted, never fatal
    - a ``delay_between_ms`` pause after every call, warmup included

    Nothing runs concurrently: overlapping probes would share the network
    path and skew each other's readings.
    """

    def __init__(
        self,
        config: ProbeConfig | None = None,
        prober: Prober | None = None,
        progress: ProgressCallback | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize orchestrator.

        Args:
            config: Round counts, delays and timeouts
            prober: Probe implementation (defaults to NetworkProber)
            progress: Optional callable invoked after each measured round
            sleep: Awaitable used for the inter-call delay
        """
        if config is None:
            config = ProbeConfig()
        if prober is None:
            prober = NetworkProber(config)

        self.config = config
        self.prober = prober
        self.progress = progress
        self._sleep = sleep

    async def run(
        self,
        http_endpoints: Iterable[Endpoint] = DEFAULT_HTTP_ENDPOINTS,
        ws_endpoints: Iterable[Endpoint] = DEFAULT_WS_ENDPOINTS,
    ) -> RunResult:
        """Measure all HTTP endpoints, then all WebSocket endpoints."""
        run = RunResult(started_at=datetime.now(timezone.utc), config=self.config)
        logger.info(
            "Run started: warmup=%d, rounds=%d, delay=%dms",
            self.config.warmup_rounds,
            self.config.measured_rounds,
            self.config.delay_between_ms,
        )

        for endpoint in http_endpoints:
            run.http_results.append(await self.measure_http_endpoint(endpoint))
        for endpoint in ws_endpoints:
            run.ws_results.append(await self.measure_ws_endpoint(endpoint))

        run.finished_at = datetime.now(timezone.utc)
        logger.info(
            "Run finished: %d endpoints in %.1fs",
            len(run.results),
            (run.finished_at - run.started_at).total_seconds(),
        )
        return run

    async def measure_http_endpoint(self, endpoint: Endpoint) -> EndpointResult:
        """DNS, TCP+TLS, cold HTTP and keep-alive HTTP for one REST endpoint."""
        logger.info("Measuring REST endpoint: %s (%s)", endpoint.name, endpoint.url)
        dns_set, dns_avg, addresses = await self._measure_dns(endpoint)
        tls_set = await self._measure_tcp_tls(endpoint)

        cold_ttfb = SampleSet(ProbeKind.HTTP_COLD_TTFB)
        cold_total = SampleSet(ProbeKind.HTTP_COLD_TOTAL)
        await self._run_rounds(
            endpoint,
            lambda: self.prober.measure_http_cold(endpoint.url),
            (cold_ttfb, cold_total),
            _http_values,
            _http_detail,
        )

        keep_ttfb = SampleSet(ProbeKind.HTTP_KEEPALIVE_TTFB)
        keep_total = SampleSet(ProbeKind.HTTP_KEEPALIVE_TOTAL)
        # One pool per endpoint; released even if a round raises something fatal
        async with self.prober.keepalive_pool() as pool:
            await self._run_rounds(
                endpoint,
                lambda: self.prober.measure_http_keepalive(endpoint.url, pool),
                (keep_ttfb, keep_total),
                _http_values,
                _http_detail,
            )

        return self._finish(
            endpoint,
            "REST",
            dns_avg,
            addresses,
            (dns_set, tls_set, cold_ttfb, cold_total, keep_ttfb, keep_total),
        )

    async def measure_ws_endpoint(self, endpoint: Endpoint) -> EndpointResult:
        """DNS, TCP+TLS, handshake and ping/pong RTT for one WebSocket endpoint."""
        logger.info("Measuring WS endpoint: %s (%s)", endpoint.name, endpoint.url)
        dns_set, dns_avg, addresses = await self._measure_dns(endpoint)
        tls_set = await self._measure_tcp_tls(endpoint)

        handshake = SampleSet(ProbeKind.WS_HANDSHAKE)
        await self._run_rounds(
            endpoint,
            lambda: self.prober.measure_ws_handshake(endpoint.url),
            (handshake,),
        )

        ping = await self._measure_ws_ping(endpoint)

        return self._finish(
            endpoint, "WS", dns_avg, addresses, (dns_set, tls_set, handshake, ping)
        )

    async def _measure_dns(
        self, endpoint: Endpoint
    ) -> tuple[SampleSet, float | None, tuple[str, ...]]:
        """Run ``dns_lookups`` uncached lookups.

        The returned average covers every lookup, failed ones included, since
        time spent failing is real resolution cost. When no lookup resolved
        the host there is no resolution time to report and the average is
        None. The sample set holds only successful lookups.
        """
        samples = SampleSet(ProbeKind.DNS)
        elapsed = []
        addresses: tuple[str, ...] = ()

        for _ in range(self.config.dns_lookups):
            result = await self.prober.measure_dns(endpoint.hostname)
            elapsed.append(result.elapsed_ms)
            try:
                result.raise_for_error(endpoint.hostname)
            except ResolutionError as exc:
                logger.debug("%s", exc)
                samples.fail()
                continue
            samples.add(result.elapsed_ms)
            if not addresses:
                addresses = result.addresses

        if samples.samples:
            dns_avg = sum(elapsed) / len(elapsed)
        else:
            dns_avg = None
        logger.info(
            "DNS %s: avg=%s over %d lookups, failed=%d, addresses=%s",
            endpoint.hostname,
            "N/A" if dns_avg is None else f"{dns_avg:.2f}ms",
            len(elapsed),
            samples.error_count,
            ", ".join(addresses) or "N/A",
        )
        return samples, dns_avg, addresses

    async def _measure_tcp_tls(self, endpoint: Endpoint) -> SampleSet:
        samples = SampleSet(ProbeKind.TCP_TLS)
        await self._run_rounds(
            endpoint,
            lambda: self.prober.measure_tcp_tls(endpoint.hostname, endpoint.port),
            (samples,),
        )
        return samples

    async def _measure_ws_ping(self, endpoint: Endpoint) -> SampleSet:
        """One connection, ``ws_ping_rounds`` pings; each missing pong is an error."""
        rounds = self.config.ws_ping_rounds
        samples = SampleSet(ProbeKind.WS_PING)
        try:
            rtts = await self.prober.measure_ws_ping_pong(
                endpoint.url, rounds, self.config.ws_ping_interval_ms
            )
        except ProbeError as exc:
            logger.debug("WS ping run failed: endpoint=%s, error=%s", endpoint.name, exc)
            for _ in range(rounds):
                samples.fail()
            self._notify(
                RoundEvent(endpoint, ProbeKind.WS_PING, 1, rounds, error=str(exc))
            )
            await self._pause()
            return samples

        for index, rtt in enumerate(rtts):
            samples.add(rtt)
            self._notify(RoundEvent(endpoint, ProbeKind.WS_PING, index + 1, rounds, value_ms=rtt))
        for _ in range(rounds - len(rtts)):
            samples.fail()
        if len(rtts) < rounds:
            logger.info(
                "WS ping %s: %d of %d pongs missing", endpoint.name, rounds - len(rtts), rounds
            )
        await self._pause()
        return samples

    async def _run_rounds(
        self,
        endpoint: Endpoint,
        operation: Callable[[], Awaitable],
        sample_sets: Sequence[SampleSet],
        values: Callable = lambda result: (result,),
        detail: Callable = lambda result: "",
    ) -> None:
        """Warmup then measured rounds of *operation*, filling *sample_sets*.

        One call yields one value per sample set (e.g. TTFB and total from a
        single HTTP request); a failed call counts as an error in all of them.
        """
        kind = sample_sets[0].kind
        total = self.config.measured_rounds

        for index in range(self.config.warmup_rounds):
            try:
                await operation()
            except ProbeError as exc:
                logger.debug(
                    "Warmup %d failed (ignored): endpoint=%s, kind=%s, error=%s",
                    index + 1,
                    endpoint.name,
                    kind.value,
                    exc,
                )
            await self._pause()

        for index in range(total):
            try:
                result = await operation()
            except ProbeError as exc:
                logger.debug(
                    "Round %d/%d failed: endpoint=%s, kind=%s, error=%s",
                    index + 1,
                    total,
                    endpoint.name,
                    kind.value,
                    exc,
                )
                for sample_set in sample_sets:
                    sample_set.fail()
                self._notify(RoundEvent(endpoint, kind, index + 1, total, error=str(exc)))
            else:
                measured = values(result)
                for sample_set, value in zip(sample_sets, measured):
                    sample_set.add(value)
                self._notify(
                    RoundEvent(
                        endpoint,
                        kind,
                        index + 1,
                        total,
                        value_ms=measured[0],
                        detail=detail(result),
                    )
                )
            await self._pause()

    async def _pause(self) -> None:
        await self._sleep(self.config.delay_between_s)

    def _notify(self, event: RoundEvent) -> None:
        if self.progress is not None:
            self.progress(event)

    def _finish(
        self,
        endpoint: Endpoint,
        transport: str,
        dns_avg: float | None,
        addresses: tuple[str, ...],
        sample_sets: Sequence[SampleSet],
    ) -> EndpointResult:
        summaries = tuple(sample_set.to_summary() for sample_set in sample_sets)
        for summary in summaries:
            if summary.stats is None:
                logger.warning(
                    "All rounds failed: endpoint=%s, kind=%s (%d/%d errors)",
                    endpoint.name,
                    summary.kind.value,
                    summary.error_count,
                    summary.total_rounds,
                )
            else:
                logger.info(
                    "%s %s: avg=%.2fms, median=%.2fms, p95=%.2fms, jitter=%.2fms, errors=%d/%d",
                    endpoint.name,
                    summary.kind.value,
                    summary.stats.avg,
                    summary.stats.median,
                    summary.stats.p95,
                    summary.stats.jitter,
                    summary.error_count,
                    summary.total_rounds,
                )
        return EndpointResult(
            endpoint=endpoint,
            transport=transport,
            dns_avg_ms=dns_avg,
            addresses=addresses,
            summaries=summaries,
        )
