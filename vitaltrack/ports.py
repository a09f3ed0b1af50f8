"""Interfaces the use cases expect from external services."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Protocol, runtime_checkable

from vitaltrack.models import FinancialEntry, Medicine, MonthlyFinancialReport, StockEntry

FetchStockData = Callable[[], "tuple[list[Medicine], list[StockEntry]]"]
ReportFunction = Callable[[int, int], MonthlyFinancialReport]


@runtime_checkable
class AirtableService(Protocol):
    """Operations required from the Airtable client."""

    def fetch_medicines(self) -> list[Medicine]:
        """Return all medicines."""

    def fetch_stock_entries(self) -> list[StockEntry]:
        """Return all stock entries."""

    def fetch_financial_entries(self, year: int, month: int) -> list[FinancialEntry]:
        """Return the financial entries of the given month."""

    def update_medicine_last_alerted_date(self, medicine_id: str, date: datetime) -> None:
        """Record the day a medicine was last alerted on."""


@runtime_checkable
class TelegramService(Protocol):
    """Methods for talking to Telegram."""

    def send_telegram_message(self, text: str) -> None:
        """Send a message to the configured chat."""

    def poll_for_commands(self, fetch: FetchStockData, report_fn: ReportFunction) -> None:
        """Poll for bot commands and answer them."""


@runtime_checkable
class StockDataPort(Protocol):
    """Storage used by use cases to read and write stock data."""

    def fetch_medicines(self) -> list[Medicine]:
        """Return all medicines."""

    def fetch_stock_entries(self) -> list[StockEntry]:
        """Return all stock entries."""

    def fetch_financial_entries(self, year: int, month: int) -> list[FinancialEntry]:
        """Return the financial entries of the given month."""

    def create_stock_entry(self, entry: StockEntry) -> None:
        """Store a new stock entry."""

    def update_forecast_date(
        self, medicine_id: str, forecast_date: datetime, updated_at: datetime
    ) -> None:
        """Store the latest out-of-stock forecast for a medicine."""


@runtime_checkable
class FinancialDataPort(Protocol):
    """Source of financial entries for reporting."""

    def fetch_financial_entries(self, year: int, month: int) -> list[FinancialEntry]:
        """Return the financial entries of the given month."""