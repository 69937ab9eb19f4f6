"""Entry point for latprobe."""

import argparse
import asyncio
import json
import logging
import os
import sys

from rich.markup import escape

from latprobe.config import DEFAULT_HTTP_ENDPOINTS, DEFAULT_WS_ENDPOINTS, ProbeConfig
from latprobe.fake_prober import FakeProber
from latprobe.logging_config import configure_logging
from latprobe.models import Endpoint
from latprobe.orchestrator import ProbeOrchestrator
from latprobe.prober import NetworkProber
from latprobe.report import (
    build_json_report,
    collect_host_info,
    make_console,
    print_round,
    render_summary,
)

logger = logging.getLogger(__name__)


def parse_endpoint(value: str) -> Endpoint:
    """Parse ``NAME=URL`` (or a bare URL, named after itself)."""
    name, sep, url = value.partition("=")
    if not sep:
        name, url = value, value
    try:
        return Endpoint(name=name.strip(), url=url.strip())
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="latprobe",
        description="Measure DNS, TCP+TLS, HTTP and WebSocket latency to fixed endpoints.",
    )
    parser.add_argument("--warmup", type=int, help="Discarded rounds per probe type.")
    parser.add_argument("--rounds", type=int, help="Measured rounds per probe type.")
    parser.add_argument("--delay-ms", type=int, help="Pause after every call, in ms.")
    parser.add_argument("--ping-rounds", type=int, help="WebSocket pings per endpoint.")
    parser.add_argument("--ping-interval-ms", type=int, help="Pause between pings, in ms.")
    parser.add_argument(
        "--http",
        metavar="NAME=URL",
        type=parse_endpoint,
        action="append",
        help="REST endpoint to test (repeatable; replaces the defaults).",
    )
    parser.add_argument(
        "--ws",
        metavar="NAME=URL",
        type=parse_endpoint,
        action="append",
        help="WebSocket endpoint to test (repeatable; replaces the defaults).",
    )
    parser.add_argument("--skip-http", action="store_true", help="Skip REST endpoints.")
    parser.add_argument("--skip-ws", action="store_true", help="Skip WebSocket endpoints.")
    parser.add_argument(
        "--no-json", action="store_true", help="Do not print the JSON report after the summary."
    )
    parser.add_argument("--json-out", metavar="PATH", help="Write the JSON report to PATH.")
    parser.add_argument(
        "--fake",
        action="store_true",
        help="Use simulated latencies instead of the network (also LATPROBE_PROBER=fake).",
    )
    parser.add_argument("--no-color", action="store_true", help="Disable colored output.")
    return parser


def main(argv=None) -> int:
    """Main entry point for the latprobe command."""
    configure_logging()
    args = build_parser().parse_args(argv)

    try:
        config = ProbeConfig.from_env().with_overrides(
            warmup_rounds=args.warmup,
            measured_rounds=args.rounds,
            delay_between_ms=args.delay_ms,
            ws_ping_rounds=args.ping_rounds,
            ws_ping_interval_ms=args.ping_interval_ms,
        )
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    force_fake = args.fake or os.environ.get("LATPROBE_PROBER", "").lower() == "fake"
    if force_fake:
        prober = FakeProber()
        logger.info("Using FakeProber (simulated latencies)")
    else:
        prober = NetworkProber(config)

    http_endpoints = [] if args.skip_http else (args.http or list(DEFAULT_HTTP_ENDPOINTS))
    ws_endpoints = [] if args.skip_ws else (args.ws or list(DEFAULT_WS_ENDPOINTS))

    console = make_console(no_color=args.no_color)
    host_info = collect_host_info()
    console.print(
        f"[bold]latprobe[/]  [dim]{escape(host_info['hostname'])} | {escape(host_info['platform'])}[/]"
    )
    console.print(
        f"[dim]Config: {config.warmup_rounds} warmup + {config.measured_rounds} measured rounds, "
        f"{config.delay_between_ms}ms delay[/]"
    )

    orchestrator = ProbeOrchestrator(
        config, prober, progress=lambda event: print_round(console, event)
    )

    try:
        run = asyncio.run(orchestrator.run(http_endpoints, ws_endpoints))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    except Exception:
        logger.exception("Fatal error")
        return 1

    render_summary(console, run, host_info)

    report = build_json_report(run, host_info)
    if not args.no_json:
        console.rule("[bold]JSON REPORT")
        print(json.dumps(report, indent=2))
    if args.json_out:
        with open(args.json_out, "w", encoding="utf-8") as fh:
            json.dump(report, fh, indent=2)
        logger.info("JSON report written: %s", args.json_out)

    return 0


if __name__ == "__main__":
    sys.exit(main())
