"""Logging setup for processes that embed the engine."""

import logging
import sys


LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Send engine logs to stdout. Call once at startup."""
    logging.basicConfig(
        format=LOG_FORMAT,
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    # The SDK and HTTP client are chatty at INFO
    for noisy in ("httpx", "httpcore", "google_genai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
