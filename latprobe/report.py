"""Console summary and JSON report for a finished run."""

import os
import platform
import socket
import sys

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from latprobe.models import EndpointResult, ProbeKind, RoundEvent, RunResult
from latprobe.stats import Stats

# Probe shown in the ranking for each transport
HEADLINE_KIND = {"REST": ProbeKind.HTTP_COLD_TTFB, "WS": ProbeKind.WS_HANDSHAKE}

_KIND_LABELS = {
    ProbeKind.DNS: "DNS",
    ProbeKind.TCP_TLS: "TCP+TLS",
    ProbeKind.HTTP_COLD_TTFB: "TTFB cold",
    ProbeKind.HTTP_COLD_TOTAL: "Total cold",
    ProbeKind.HTTP_KEEPALIVE_TTFB: "TTFB keep-alive",
    ProbeKind.HTTP_KEEPALIVE_TOTAL: "Total keep-alive",
    ProbeKind.WS_HANDSHAKE: "Handshake",
    ProbeKind.WS_PING: "Ping RTT",
}

_STAT_FIELDS = ("avg", "median", "min", "max", "p95", "p99", "stddev", "jitter")


def kind_label(kind: ProbeKind) -> str:
    return _KIND_LABELS.get(kind, kind.value)


def latency_style(ms: float) -> str:
    """Color bucket for a latency value."""
    if ms < 100:
        return "green"
    if ms < 300:
        return "yellow"
    return "red"


def colored_ms(ms: float | None) -> str:
    if ms is None:
        return "N/A"
    return f"[{latency_style(ms)}]{ms:.2f}[/]"


def _round(value: float | None) -> float | None:
    return None if value is None else round(value, 2)


def _cpu_model() -> str:
    try:
        with open("/proc/cpuinfo", encoding="utf-8") as cpuinfo:
            for line in cpuinfo:
                if line.startswith("model name"):
                    return line.split(":", 1)[1].strip()
    except OSError:
        pass
    return platform.processor() or "unknown"


def _total_memory_gb() -> float | None:
    try:
        return os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES") / 1024**3
    except (AttributeError, ValueError, OSError):
        return None


def _ipv4_addresses() -> list[str]:
    hostname = socket.gethostname()
    try:
        infos = socket.getaddrinfo(hostname, None, socket.AF_INET)
    except OSError:
        return []
    addresses = sorted({info[4][0] for info in infos})
    return [address for address in addresses if not address.startswith("127.")]


def collect_host_info() -> dict:
    """Describe the machine the measurements were taken from."""
    memory = _total_memory_gb()
    return {
        "hostname": socket.gethostname(),
        "platform": f"{platform.system()} {platform.release()} ({platform.machine()})",
        "cpus": f"{_cpu_model()} x{os.cpu_count() or 0}",
        "memory": f"{memory:.1f} GB" if memory is not None else "unknown",
        "python_version": platform.python_version(),
        "ips": _ipv4_addresses(),
    }


def print_round(console: Console, event: RoundEvent) -> None:
    """Print one measured round as it completes."""
    prefix = (
        f"  {escape(event.endpoint.name):<22} {kind_label(event.kind):<16} #{event.index:>2}/{event.total}"
    )
    if event.error is not None:
        console.print(f"{prefix}  [red]ERROR: {escape(event.error)}[/]", highlight=False)
        return
    line = f"{prefix}  {colored_ms(event.value_ms)} ms"
    if event.detail:
        line += f"  [dim]{escape(event.detail)}[/]"
    console.print(line, highlight=False)


def build_summary_table(run: RunResult) -> Table:
    """One row per (endpoint, probe type); absent stats render as N/A."""
    table = Table(show_header=True, header_style="bold cyan", padding=(0, 1))
    table.add_column("Endpoint", style="cyan")
    table.add_column("Type", justify="center")
    table.add_column("Probe")
    table.add_column("DNS", justify="right")
    for name in ("Avg", "Median", "Min", "Max", "P95", "P99", "StdDev", "Jitter"):
        table.add_column(name, justify="right")
    table.add_column("Err", justify="center")

    for result in run.results:
        for row in result.rows():
            if row.kind == ProbeKind.DNS:
                continue
            stats = row.stats
            if stats is None:
                cells = ["N/A"] * 8
            else:
                cells = [colored_ms(getattr(stats, name)) for name in _STAT_FIELDS[:6]]
                cells += [f"[dim]{stats.stddev:.2f}[/]", f"[dim]{stats.jitter:.2f}[/]"]
            error_style = "red" if row.error_count else "dim"
            table.add_row(
                escape(row.endpoint_name),
                result.transport,
                kind_label(row.kind),
                colored_ms(row.dns_avg_ms),
                *cells,
                f"[{error_style}]{row.error_count}/{row.total_rounds}[/]",
            )
    return table


def ranking(run: RunResult) -> list[tuple[str, Stats]]:
    """Endpoints ordered by average latency of their headline probe.

    Endpoints whose headline probe failed every round are left out.
    """
    ranked = []
    for result in run.results:
        summary = result.summary(HEADLINE_KIND[result.transport])
        if summary is not None and summary.stats is not None:
            ranked.append((result.endpoint.name, summary.stats))
    ranked.sort(key=lambda item: item[1].avg)
    return ranked


def render_summary(console: Console, run: RunResult, host_info: dict) -> None:
    """Print host details, the summary table and the latency ranking."""
    console.rule("[bold]SUMMARY")
    console.print(f"[dim]  Hostname:  {escape(str(host_info['hostname']))}[/]")
    console.print(f"[dim]  Platform:  {escape(str(host_info['platform']))}[/]")
    console.print(f"[dim]  CPU:       {escape(str(host_info['cpus']))}[/]")
    console.print(f"[dim]  Memory:    {escape(str(host_info['memory']))}[/]")
    console.print(f"[dim]  Python:    {escape(str(host_info['python_version']))}[/]")
    console.print(f"[dim]  IPs:       {escape(' | '.join(host_info['ips']) or 'N/A')}[/]")
    console.print()
    console.print(build_summary_table(run))
    console.print("[dim]  All times in ms. Err = failed rounds / total rounds.[/]")
    console.print()

    console.print("[bold]  Ranking (by avg latency):[/]")
    medals = ("[green]1st[/]", "[yellow]2nd[/]", "[red]3rd[/]")
    for position, (name, stats) in enumerate(ranking(run)):
        medal = medals[position] if position < len(medals) else f"[dim]{position + 1}th[/]"
        console.print(
            f"    {medal}  {escape(name):<25} Avg: {colored_ms(stats.avg)} ms"
            f"  Med: {colored_ms(stats.median)} ms",
            highlight=False,
        )
    console.print()


def _stats_dict(stats: Stats | None) -> dict | None:
    if stats is None:
        return None
    values = {name: _round(getattr(stats, name)) for name in _STAT_FIELDS}
    values["samples"] = stats.samples
    return values


def _endpoint_dict(result: EndpointResult) -> dict:
    return {
        "name": result.endpoint.name,
        "url": result.endpoint.url,
        "type": result.transport,
        "dns_ms": _round(result.dns_avg_ms),
        "addresses": list(result.addresses),
        "probes": {
            summary.kind.value: {
                "stats": _stats_dict(summary.stats),
                "errors": summary.error_count,
                "rounds": summary.total_rounds,
            }
            for summary in result.summaries
        },
    }


def build_json_report(run: RunResult, host_info: dict) -> dict:
    """JSON-ready report; values rounded to 2 decimals, absent stats as null."""
    return {
        "timestamp": run.started_at.isoformat(),
        "finished": run.finished_at.isoformat() if run.finished_at else None,
        "server": host_info,
        "config": run.config.as_dict(),
        "results": {
            "api": [_endpoint_dict(result) for result in run.http_results],
            "websocket": [_endpoint_dict(result) for result in run.ws_results],
        },
    }


def make_console(no_color: bool = False) -> Console:
    return Console(file=sys.stdout, no_color=no_color, highlight=False)
