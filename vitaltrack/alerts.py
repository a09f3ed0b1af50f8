"""Low-stock and refill alerting use cases."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone

from vitaltrack.forecast import generate_out_of_stock_forecast_message
from vitaltrack.markdown import escape_markdown
from vitaltrack.models import Medicine, StockEntry, format_date
from vitaltrack.ports import AirtableService, StockDataPort, TelegramService
from vitaltrack.stockcalc import current_stock_at, out_of_stock_date_at

log = logging.getLogger(__name__)

ALERT_THRESHOLD_DAYS = 10


def _utc_day(value: datetime) -> date:
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(timezone.utc).date()


@dataclass
class StockChecker:
    """Sends Telegram alerts when stock is close to running out or refilled."""

    airtable: AirtableService
    telegram: TelegramService

    def _send(self, message: str, description: str) -> None:
        try:
            self.telegram.send_telegram_message(message)
        except Exception as exc:  # a failed alert must not stop the others
            log.error("Telegram send failed for %s: %s", description, exc)
        else:
            log.info("Telegram message sent for %s", description)

    def check_and_alert_low_stock(self) -> None:
        """Alert for medicines at most ten days from running out, then report today's refills."""
        now = datetime.now(timezone.utc)
        log.info("Starting low stock check")

        medicines = self.airtable.fetch_medicines()
        log.info("Fetched %d medicines", len(medicines))
        entries = self.airtable.fetch_stock_entries()
        log.info("Fetched %d stock entries", len(entries))

        today_text = format_date(now)
        for med in medicines:
            stock = current_stock_at(med, entries, now)
            if stock <= 0 or med.daily_dose == 0:
                continue

            forecast_date = out_of_stock_date_at(med, stock, now)
            days_left = (_utc_day(forecast_date) - _utc_day(now)).days
            log.info(
                "%s: stock=%.2f, forecast=%s, days_left=%d",
                med.name,
                stock,
                format_date(forecast_date),
                days_left,
            )
            if days_left > ALERT_THRESHOLD_DAYS:
                continue

            if med.last_alerted_date is not None and format_date(med.last_alerted_date) == today_text:
                log.info("Already alerted for %s today, skipping.", med.name)
                continue

            alert = (
                f"*{escape_markdown(med.name)}* will run out in {days_left} day(s)\\!\n"
                f"Refill before *{format_date(forecast_date)}*\n"
                f"Currently: *{stock:.2f}* pills left\\."
            )
            self._send(alert, med.name)

            log.info("Updating last alerted date for record_id=%s", med.id)
            try:
                self.airtable.update_medicine_last_alerted_date(med.id, now)
            except Exception as exc:
                log.warning("Failed to update last alerted date for %s: %s", med.name, exc)

        self._notify_refills_today(medicines, entries, now)

    def _notify_refills_today(
        self, medicines: list[Medicine], entries: list[StockEntry], now: datetime
    ) -> None:
        today = _utc_day(now)
        refills: dict[str, list[StockEntry]] = {}
        for entry in entries:
            if not entry.medicine_id or entry.date is None:
                continue
            if _utc_day(entry.date) == today:
                refills.setdefault(entry.medicine_id[0], []).append(entry)

        by_id = {}
        for med in medicines:
            by_id.setdefault(med.id, med)

        for medicine_id, today_entries in refills.items():
            med = by_id.get(medicine_id)
            if med is None:
                continue
            lines = [
                f"• {e.quantity:.2f} {escape_markdown(e.unit)} on {format_date(e.date)}"
                for e in today_entries
            ]
            message = f"*Refill recorded for {escape_markdown(med.name)}*\\:\n" + "\n".join(lines)
            log.info("Notifying refill for %s", med.name)
            self._send(message, med.name)

    def check_and_alert_new_refills(self) -> None:
        """Send one alert for each valid stock entry recorded today."""
        now = datetime.now(timezone.utc)
        log.info("Starting new refill check")

        medicines = self.airtable.fetch_medicines()
        entries = self.airtable.fetch_stock_entries()

        by_id = {med.id: med for med in medicines}
        today = _utc_day(now)

        for entry in entries:
            if not entry.medicine_id or entry.quantity <= 0 or entry.date is None:
                continue
            if _utc_day(entry.date) != today:
                continue
            med = by_id.get(entry.medicine_id[0])
            if med is None:
                continue
            if med.last_alerted_date is not None and _utc_day(med.last_alerted_date) == today:
                continue

            converted = entry.quantity
            if entry.unit == "box":
                converted *= med.unit_per_box

            message = (
                f"✅ Refill received: {escape_markdown(med.name)}\n"
                f"• Quantity: {entry.quantity:.0f} {escape_markdown(entry.unit)}\n"
                f"• Converted: {converted:.0f} pills\n"
                f"• Date: {format_date(entry.date)}"
            )
            self._send(message, med.name)


@dataclass
class OutOfStockService:
    """Builds the out-of-stock forecast from stored data."""

    airtable: StockDataPort

    def generate_out_of_stock_forecast_message(self) -> str:
        """Return a Markdown summary of when each medicine runs out."""
        medicines = self.airtable.fetch_medicines()
        entries = self.airtable.fetch_stock_entries()
        return generate_out_of_stock_forecast_message(
            medicines, entries, datetime.now(timezone.utc), self.airtable
        )