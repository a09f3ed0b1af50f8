"""Telegram Bot API client: alert messages and the /stock and /finance commands."""

from __future__ import annotations

import logging
import os
import re
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from time import sleep
from typing import Any

import requests
from dotenv import load_dotenv

from vitaltrack.airtable import AirtableClient
from vitaltrack.forecast import generate_out_of_stock_forecast_message
from vitaltrack.markdown import escape_markdown
from vitaltrack.models import NeedReportBlock, StockEntry, format_date, parse_date
from vitaltrack.ports import FetchStockData, ReportFunction
from vitaltrack.stockcalc import current_stock_at, out_of_stock_date_at

log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.telegram.org"
POLL_INTERVAL = 2.0
MAX_MESSAGE_BYTES = 4000
MGA_SUFFIX = "\u202fMGA"

_PLAIN_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")
_MONTH_ARG = re.compile(r"(\d{4})-(\d{2})")
_ZERO_DATE_TEXT = "0001-01-01"

_FETCH_FAILED = "\u26a0\ufe0f Failed to fetch stock data."
_NO_DATA = "\u26a0\ufe0f No medicine or stock data found."
_ALL_STOCKED = "\u2705 All medicines are well stocked."
_SKIPPED_WARNING = "\n\u26a0\ufe0f Some records were skipped due to data issues."
_FINANCE_FAILED = "\u26a0\ufe0f Failed to fetch financial data."


class TelegramError(Exception):
    """Raised when a Telegram request fails or is refused."""


def format_mga(value: float) -> str:
    """Format an amount with comma thousands separators and a narrow-space MGA suffix."""
    text = f"{value:.0f}"
    length = len(text)
    if length <= 3:
        return text + MGA_SUFFIX
    out = []
    for position, char in enumerate(text):
        if position and (length - position) % 3 == 0:
            out.append(",")
        out.append(char)
    return "".join(out) + MGA_SUFFIX


def _need_date_text(text: str) -> str:
    if _PLAIN_DATE.fullmatch(text):
        try:
            return format_date(parse_date(text))
        except ValueError:
            pass
    return _ZERO_DATE_TEXT


def render_need_block(need: NeedReportBlock) -> str:
    """Render one need of a financial report as a monospaced table."""
    date_text, _, label = need.need.partition(" ")
    lines = [
        f"📅 {_need_date_text(date_text)} – {label}",
        f"Need:          {format_mga(need.need_amount)}",
        f"Contributed:   {format_mga(need.total)}",
        "",
        f"| {'Contributor':<12} | {'Amount':<12} |",
        f"|{'-' * 14}|{'-' * 14}|",
    ]
    lines.extend(
        f"| {c.name:<12} | {format_mga(c.amount):>12} |" for c in need.contributors
    )
    return "```text\n" + "\n".join(lines) + "\n```"


def _month_argument(text: str) -> tuple[int, int] | None:
    parts = text.split()
    if len(parts) < 2:
        return None
    match = _MONTH_ARG.fullmatch(parts[1])
    if not match:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        return None
    return year, month


@dataclass
class _Row:
    name: str
    date: datetime
    pills: float


class TelegramClient:
    """Talks to the Telegram Bot API for one bot and its default chat."""

    def __init__(
        self,
        token: str,
        chat_id: str,
        base_url: str = DEFAULT_BASE_URL,
        session: requests.Session | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.token = token
        self.chat_id = chat_id
        self.base_url = base_url
        self.session = session or requests.Session()
        self.timeout = timeout

    @classmethod
    def from_env(cls) -> TelegramClient:
        """Build a client from environment variables, loading a ``.env`` file first."""
        if not load_dotenv():
            log.info("no .env file loaded")
        token = os.environ.get("TELEGRAM_BOT_TOKEN", "")
        chat_id = os.environ.get("TELEGRAM_CHAT_ID", "")
        base_url = os.environ.get("TELEGRAM_API_BASE_URL", "") or DEFAULT_BASE_URL
        if not token or not chat_id:
            raise TelegramError(
                "missing Telegram configuration: TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID must be set"
            )
        return cls(token=token, chat_id=chat_id, base_url=base_url)

    def _api_url(self, method: str) -> str:
        return f"{self.base_url}/bot{self.token}/{method}"

    def send_telegram_message(self, text: str) -> None:
        """Send a MarkdownV2 message to the configured chat."""
        log.info("Sending Telegram: %s", text)
        payload = {
            "chat_id": self.chat_id,
            "text": escape_markdown(text),
            "parse_mode": "MarkdownV2",
        }
        try:
            response = self.session.post(
                self._api_url("sendMessage"), json=payload, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise TelegramError(f"telegram request failed: {exc}") from exc
        if response.status_code >= 300:
            raise TelegramError(f"telegram error status: {response.status_code}")

    def send_to(self, chat_id: int, message: str) -> None:
        """Send a MarkdownV2 message to a given chat, cut to the size limit."""
        if not message:
            raise TelegramError("empty telegram message")
        escaped = escape_markdown(message)
        encoded = escaped.encode("utf-8")
        if len(encoded) > MAX_MESSAGE_BYTES:
            escaped = encoded[:MAX_MESSAGE_BYTES].decode("utf-8", errors="ignore")
        form = {"chat_id": str(chat_id), "text": escaped, "parse_mode": "MarkdownV2"}
        try:
            response = self.session.post(
                self._api_url("sendMessage"), data=form, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise TelegramError(f"telegram request failed: {exc}") from exc
        if response.status_code >= 300:
            log.error(
                "telegram send failed: status=%d body=%s", response.status_code, response.text
            )
            raise TelegramError(f"telegram error status: {response.status_code}")

    def _reply(self, chat_id: int, message: str, command: str) -> bool:
        try:
            self.send_to(chat_id, message)
        except TelegramError as exc:
            log.error("failed to send %s response: %s", command, exc)
            return False
        return True

    def poll_for_commands(self, fetch: FetchStockData, report_fn: ReportFunction) -> None:
        """Poll for bot commands forever, answering each in its own thread."""
        last_update_id = 0
        log.info("Telegram polling started...")
        while True:
            sleep(POLL_INTERVAL)
            last_update_id = self._poll_once(last_update_id, fetch, report_fn)

    def _poll_once(
        self, last_update_id: int, fetch: FetchStockData, report_fn: ReportFunction
    ) -> int:
        url = f"{self._api_url('getUpdates')}?timeout=10&offset={last_update_id + 1}"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            log.error("Telegram polling error: %s", exc)
            return last_update_id
        try:
            data = response.json()
        except ValueError as exc:
            log.error("Failed to decode Telegram updates: %s", exc)
            return last_update_id
        if not isinstance(data, dict) or data.get("ok") is not True:
            log.error("Telegram API error status %d: %s", response.status_code, response.text)
            return last_update_id

        for update in data.get("result") or []:
            last_update_id = int(update.get("update_id", 0))
            message: dict[str, Any] = update.get("message") or {}
            text = message.get("text") or ""
            chat_id = int((message.get("chat") or {}).get("id", 0))
            command = text.split("@")[0]
            if command == "/stock":
                log.info("/stock command triggered")
                self._spawn(self.handle_stock_command, chat_id, fetch)
            elif command == "/finance":
                log.info("/finance command triggered")
                now = datetime.now()
                year, month = _month_argument(text) or (now.year, now.month)
                self._spawn(self.handle_finance_command, chat_id, report_fn, year, month)
        return last_update_id

    @staticmethod
    def _spawn(target: Any, *args: Any) -> None:
        threading.Thread(target=target, args=args, daemon=True).start()

    def handle_stock_command(self, chat_id: int, fetch: FetchStockData) -> None:
        """Answer /stock with the forecast of when each medicine runs out."""
        try:
            self._answer_stock(chat_id, fetch)
        except Exception as exc:  # a broken command must not bring down polling
            log.error("recovered from /stock crash: %s", exc)

    def _answer_stock(self, chat_id: int, fetch: FetchStockData) -> None:
        try:
            medicines, entries = fetch()
        except Exception as exc:
            log.error("/stock fetch error: %s", exc)
            self._reply(chat_id, _FETCH_FAILED, "/stock")
            return

        log.info("📦 meds: %d, entries: %d", len(medicines), len(entries))

        valid: list[StockEntry] = []
        skipped = 0
        for entry in entries:
            if entry.date is None or not entry.medicine_id or entry.quantity <= 0:
                log.warning("skipping invalid stock entry: %r", entry)
                skipped += 1
                continue
            valid.append(entry)

        if not medicines:
            self._reply(chat_id, _NO_DATA, "/stock")
            return

        now = datetime.now(timezone.utc)
        rows = []
        for med in medicines:
            stock = current_stock_at(med, valid, now)
            if med.daily_dose == 0 or stock <= 0:
                continue
            rows.append(_Row(med.name, out_of_stock_date_at(med, stock, now), stock))

        if not rows:
            self._reply(chat_id, _ALL_STOCKED, "/stock")
            return

        rows.sort(key=lambda row: row.date)
        lines = [
            f"{row.name:<22} → {format_date(row.date)} ({row.pills:.2f} left)" for row in rows
        ]
        message = "*Out-of-Stock Forecast*\n\n```text\n" + "\n".join(lines) + "\n```"
        if skipped:
            message += _SKIPPED_WARNING
        if self._reply(chat_id, message, "/stock"):
            log.info("sent /stock forecast")

    def handle_finance_command(
        self, chat_id: int, report_fn: ReportFunction, year: int, month: int
    ) -> None:
        """Answer /finance with the financial report of the given month."""
        log.info("Generating financial report for %d-%02d", year, month)
        try:
            report = report_fn(year, month)
        except Exception as exc:
            log.error("/finance report error: %s", exc)
            self._reply(chat_id, _FINANCE_FAILED, "/finance")
            return

        sections = [render_need_block(need) for need in report.needs]
        total_need = 0.0
        for need in report.needs:
            total_need += need.need_amount

        summary = [
            "🧮 Monthly Summary",
            f"💰 Total Needs: {format_mga(total_need)}",
            f"💵 Total Contributed: {format_mga(report.total)}",
            "",
            "👤 By Contributor:",
        ]
        summary.extend(f"- {c.name} \u2192 {format_mga(c.amount)}" for c in report.contributors)

        message = (
            f"*Financial Report {report.year}-{report.month:02d}*\n\n"
            + "\n\n".join(sections)
            + "\n\n"
            + "\n".join(summary)
        )
        self._reply(chat_id, message, "/finance")


def handle_out_of_stock_command() -> None:
    """Send the out-of-stock forecast built from Airtable data to Telegram."""
    airtable = AirtableClient.from_env()
    telegram = TelegramClient.from_env()
    medicines = airtable.fetch_medicines()
    entries = airtable.fetch_stock_entries()
    message = generate_out_of_stock_forecast_message(
        medicines, entries, datetime.now(timezone.utc), airtable
    )
    telegram.send_telegram_message(message)