"""Wiring of runtime dependencies, the web application and background jobs."""

from __future__ import annotations

import logging
import os
import re
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from flask import Flask

from vitaltrack.airtable import AirtableClient
from vitaltrack.alerts import OutOfStockService, StockChecker
from vitaltrack.financial import FinancialReportService
from vitaltrack.logger import Logger, StdLogger
from vitaltrack.medicine import MedicineService
from vitaltrack.ports import StockDataPort, TelegramService
from vitaltrack.server import setup_routes
from vitaltrack.telegram import TelegramClient

log = logging.getLogger(__name__)

DEFAULT_TICKER_INTERVAL = timedelta(hours=24)

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


@dataclass
class Dependencies:
    """The service implementations used at run time."""

    airtable: StockDataPort
    telegram: TelegramService
    logger: Logger
    stock_checker: StockChecker | None = None
    forecast_service: OutOfStockService | None = None
    financial_service: FinancialReportService | None = None
    medicine_service: MedicineService | None = None


TickerStarter = Callable[[Dependencies, timedelta, Callable[[], datetime]], Callable[[], None]]
PollingStarter = Callable[[Dependencies], object]


def _parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``1h30m`` or ``500ms``."""
    sign = 1
    rest = text
    if rest and rest[0] in "+-":
        sign = -1 if rest[0] == "-" else 1
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise ValueError(f"invalid duration: {text!r}")
    seconds = 0.0
    position = 0
    while position < len(rest):
        match = _DURATION_PART.match(rest, position)
        if match is None:
            raise ValueError(f"invalid duration: {text!r}")
        seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()
    return timedelta(seconds=sign * seconds)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def init_dependencies() -> Dependencies:
    """Build all production dependencies from the environment."""
    airtable = AirtableClient.from_env()
    telegram = TelegramClient.from_env()
    return Dependencies(
        airtable=airtable,
        telegram=telegram,
        logger=StdLogger(),
        stock_checker=StockChecker(airtable=airtable, telegram=telegram),
        forecast_service=OutOfStockService(airtable=airtable),
        financial_service=FinancialReportService(repo=airtable),
        medicine_service=MedicineService(repo=airtable),
    )


def start_from_env(
    deps: Dependencies,
    start_ticker: TickerStarter | None = None,
    start_polling: PollingStarter | None = None,
) -> None:
    """Start the background jobs switched on by environment flags."""
    interval = DEFAULT_TICKER_INTERVAL
    value = os.environ.get("ALERT_TICKER_INTERVAL", "")
    if value:
        try:
            interval = _parse_duration(value)
        except ValueError:
            log.warning("ignoring invalid ALERT_TICKER_INTERVAL=%s", value)
    if os.environ.get("ENABLE_ALERT_TICKER") == "true" and start_ticker is not None:
        start_ticker(deps, interval, _utc_now)
    if os.environ.get("ENABLE_TELEGRAM_POLLING") == "true" and start_polling is not None:
        start_polling(deps)


def start_telegram_polling(deps: Dependencies) -> threading.Thread:
    """Poll Telegram for bot commands in a background thread."""
    deps.logger.info("telegram polling started")

    def fetch():
        medicines = deps.airtable.fetch_medicines()
        entries = deps.airtable.fetch_stock_entries()
        return medicines, entries

    def report(year: int, month: int):
        return deps.financial_service.generate_financial_report(year, month)

    thread = threading.Thread(
        target=deps.telegram.poll_for_commands, args=(fetch, report), daemon=True
    )
    thread.start()
    return thread


def new_app(
    start_ticker: TickerStarter | None = None,
    start_polling: PollingStarter | None = None,
) -> Flask:
    """Create the web application with all routes and the enabled background jobs."""
    app = Flask("vitaltrack")
    deps = init_dependencies()
    setup_routes(
        app,
        deps.stock_checker,
        deps.forecast_service,
        deps.medicine_service,
        deps.airtable,
        deps.telegram,
    )
    start_from_env(deps, start_ticker, start_polling or start_telegram_polling)
    return app


def build() -> tuple[Flask, Dependencies]:
    """Create a bare application together with its dependencies."""
    return Flask("vitaltrack"), init_dependencies()