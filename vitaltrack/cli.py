"""Command that starts the HTTP server."""

from __future__ import annotations

import argparse
import logging

from dotenv import load_dotenv

from vitaltrack.airtable import AirtableError
from vitaltrack.background import start_stock_alert_ticker
from vitaltrack.di import new_app
from vitaltrack.telegram import TelegramError

log = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8787


def main(argv: list[str] | None = None) -> int:
    """Load configuration, build the application and serve it; return the exit status."""
    parser = argparse.ArgumentParser(prog="vitaltrack", description="Run the medicine stock server.")
    parser.add_argument("--host", default=DEFAULT_HOST, help="address to listen on")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="port to listen on")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    if not load_dotenv():
        log.info("no .env file loaded")

    try:
        app = new_app(start_ticker=start_stock_alert_ticker)
    except (AirtableError, TelegramError) as exc:
        log.error("configuration error: %s", exc)
        return 1

    try:
        app.run(host=args.host, port=args.port)
    except OSError as exc:
        log.error("Server failed to start: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())