"""Logging configuration for latprobe."""

import logging
import os
import sys


def configure_logging() -> None:
    """Configure application-wide logging.

    Respects LATPROBE_LOG_LEVEL environment variable (default: INFO).
    Logs to stderr with timestamp, level, module name, and message, so the
    report printed on stdout stays clean.

    Environment Variables:
        LATPROBE_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
                            Default is INFO.

    Examples:
        # Default INFO level
        $ python -m latprobe

        # Per-round failure details
        $ LATPROBE_LOG_LEVEL=DEBUG python -m latprobe

        # Quiet mode
        $ LATPROBE_LOG_LEVEL=WARNING python -m latprobe --json
    """
    log_level_str = os.environ.get("LATPROBE_LOG_LEVEL", "INFO").upper()

    log_level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }

    log_level = log_level_map.get(log_level_str, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,  # Override any existing configuration
    )

    # Keep HTTP and WebSocket library loggers at WARNING or above
    for noisy in ("httpx", "httpcore", "websockets"):
        logging.getLogger(noisy).setLevel(max(log_level, logging.WARNING))

    logger = logging.getLogger(__name__)
    logger.info("Logging configured: level=%s", logging.getLevelName(log_level))
