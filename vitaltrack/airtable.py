"""Client for the Airtable REST API holding medicines, stock and finances."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar
from urllib.parse import quote_plus

import requests
from dotenv import load_dotenv

from vitaltrack.models import FinancialEntry, Medicine, StockEntry, format_date

log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.airtable.com"
_REQUIRED_ENV = (
    "AIRTABLE_BASE_ID",
    "AIRTABLE_MEDICINES_TABLE",
    "AIRTABLE_ENTRIES_TABLE",
    "AIRTABLE_TOKEN",
)

T = TypeVar("T")


class AirtableError(Exception):
    """Raised when Airtable rejects a request or returns an unusable response."""


def _env(name: str) -> str:
    return os.environ.get(name, "")


class AirtableClient:
    """Talks to the Airtable REST API.

    Base, table names and token are read from the environment on every call.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        session: requests.Session | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url
        self.session = session or requests.Session()
        self.timeout = timeout

    @classmethod
    def from_env(cls) -> AirtableClient:
        """Build a client from environment variables, loading a ``.env`` file first."""
        if not load_dotenv():
            log.info("no .env file loaded")
        if any(not _env(name) for name in _REQUIRED_ENV):
            raise AirtableError(
                "missing Airtable configuration: ensure AIRTABLE_BASE_ID, "
                "AIRTABLE_MEDICINES_TABLE, AIRTABLE_ENTRIES_TABLE and AIRTABLE_TOKEN are set"
            )
        return cls(base_url=_env("AIRTABLE_API_BASE_URL") or DEFAULT_BASE_URL)

    def _table_url(self, table_env: str, *parts: str) -> str:
        segments = [self.base_url, "v0", _env("AIRTABLE_BASE_ID"), _env(table_env), *parts]
        return "/".join(segments)

    def _headers(self, with_json: bool = False) -> dict[str, str]:
        headers = {"Authorization": "Bearer " + _env("AIRTABLE_TOKEN")}
        if with_json:
            headers["Content-Type"] = "application/json"
        return headers

    def _get(self, url: str) -> str:
        response = self.session.get(url, headers=self._headers(), timeout=self.timeout)
        return response.text

    @staticmethod
    def _records(body: str) -> list[dict[str, Any]]:
        try:
            data = json.loads(body)
        except ValueError as exc:
            raise AirtableError(f"invalid Airtable response: {exc}") from exc
        if isinstance(data, dict) and "error" in data:
            raise AirtableError(f"airtable error: {data['error']}")
        if not isinstance(data, dict):
            raise AirtableError("invalid Airtable response: expected an object")
        records = data.get("records") or []
        if not isinstance(records, list):
            raise AirtableError("invalid Airtable response: records is not a list")
        return records

    @staticmethod
    def _convert(records: list[dict[str, Any]], build: Callable[[dict[str, Any]], T]) -> list[T]:
        items = []
        for record in records:
            fields = dict(record.get("fields") or {})
            fields["id"] = record.get("id", "")
            try:
                items.append(build(fields))
            except (ValueError, TypeError) as exc:
                raise AirtableError(f"invalid Airtable record: {exc}") from exc
        return items

    def fetch_medicines(self) -> list[Medicine]:
        """Return all medicines, each carrying its record ID."""
        body = self._get(self._table_url("AIRTABLE_MEDICINES_TABLE"))
        return self._convert(self._records(body), Medicine.from_dict)

    def fetch_stock_entries(self) -> list[StockEntry]:
        """Return all stock entries, each carrying its record ID."""
        body = self._get(self._table_url("AIRTABLE_ENTRIES_TABLE"))
        return self._convert(self._records(body), StockEntry.from_dict)

    def _send(self, method: str, url: str, fields: dict[str, Any]) -> requests.Response:
        body = json.dumps({"fields": fields}, sort_keys=True)
        return self.session.request(
            method, url, data=body, headers=self._headers(with_json=True), timeout=self.timeout
        )

    def create_stock_entry(self, entry: StockEntry) -> None:
        """Add a new stock entry record."""
        fields = {
            "medicine_id": list(entry.medicine_id),
            "quantity": entry.quantity,
            "unit": entry.unit,
            "date": format_date(entry.date) if entry.date is not None else "0001-01-01",
        }
        response = self._send("POST", self._table_url("AIRTABLE_ENTRIES_TABLE"), fields)
        if response.status_code >= 300:
            raise AirtableError(f"airtable error: {response.text}")

    def _patch_medicine(self, medicine_id: str, fields: dict[str, Any]) -> requests.Response:
        log.info(
            "PATCH Airtable: record_id=%s body=%s",
            medicine_id,
            json.dumps({"fields": fields}, sort_keys=True),
        )
        url = self._table_url("AIRTABLE_MEDICINES_TABLE", medicine_id)
        return self._send("PATCH", url, fields)

    def update_forecast_date(
        self, medicine_id: str, forecast_date: datetime, updated_at: datetime
    ) -> None:
        """Record the latest forecast date for a medicine, as date-only values."""
        response = self._patch_medicine(
            medicine_id,
            {
                "forecast_out_of_stock_date": format_date(forecast_date),
                "forecast_last_updated": format_date(updated_at),
            },
        )
        if response.status_code >= 300:
            raise AirtableError(f"airtable error: {response.text}")

    def update_medicine_last_alerted_date(self, medicine_id: str, date: datetime) -> None:
        """Save the day a medicine was last alerted on."""
        response = self._patch_medicine(medicine_id, {"last_alerted_date": format_date(date)})
        body = response.text
        if response.status_code != 200:
            log.error("airtable update failed: status=%d body=%s", response.status_code, body)
            raise AirtableError(f"airtable error: {body}")
        log.info("updated last_alerted_date response=%s", body)

    def fetch_financial_entries(self, year: int, month: int) -> list[FinancialEntry]:
        """Return the financial entries tagged with the given month."""
        tag = f"{year:04d}-{month:02d}"
        query = quote_plus(f'MonthTag="{tag}"')
        url = self._table_url("AIRTABLE_FINANCIAL_TABLE") + f"?filterByFormula={query}"
        body = self._get(url)
        log.info("Raw Airtable response: %s", body)
        entries = self._convert(self._records(body), FinancialEntry.from_dict)
        return [entry for entry in entries if entry.month_tag == tag]