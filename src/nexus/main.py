"""
Nexus entry point.

Parses the command line, configures logging and starts either the API server alone or the API in
a background thread with the interactive CLI in the foreground.
"""

import argparse
import logging
import sys
import threading

from nexus.api.app import run_api
from nexus.config import settings

logger = logging.getLogger(__name__)

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stdout,
    )
    # Keep HTTP client and vector store chatter out of the application log
    for noisy in ("httpx", "httpcore", "chromadb"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nexus", description="Multi-provider model router and multi-agent orchestrator"
    )
    parser.add_argument(
        "--mode",
        choices=["api", "cli"],
        type=str.lower,
        default="api",
        help="'api' serves HTTP only; 'cli' also opens an interactive shell (default: api)",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    return parser


def _start_api_in_background() -> threading.Thread:
    # No auto-reload here: the reloader needs the main thread
    thread = threading.Thread(
        target=run_api,
        kwargs={
            "host": "0.0.0.0",
            "port": settings.API_PORT,
            "reload": False,
            "log_level": "warning",
        },
        name="nexus-api",
        daemon=True,
    )
    thread.start()
    return thread


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """Run Nexus with the command-line arguments *argv* (``sys.argv[1:]`` by default)."""
    args = _build_parser().parse_args(sys.argv[1:] if argv is None else argv)

    # The command line wins over the environment
    settings.LOG_LEVEL = args.log_level
    _init_logging(settings.LOG_LEVEL)

    logger.info("Starting Nexus [%s mode]", args.mode)
    secrets = {name for name in type(settings).model_fields if name.endswith("_API_KEY")}
    logger.debug("Settings: %s", settings.model_dump(exclude=secrets))

    if args.mode == "api":
        run_api(host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)
        return

    _start_api_in_background()

    # Lazy import to avoid CLI dependencies if not needed
    from nexus.client.cli import run_cli  # pylint: disable=import-outside-toplevel

    run_cli()


if __name__ == "__main__":
    main()
