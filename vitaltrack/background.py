"""Periodic background jobs such as the stock alert ticker."""

from __future__ import annotations

import math
import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from vitaltrack.di import Dependencies
from vitaltrack.markdown import escape_markdown
from vitaltrack.models import format_date
from vitaltrack.stockcalc import current_stock_at, out_of_stock_date_at

ALERT_THRESHOLD_DAYS = 10


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _check_once(deps: Dependencies, now_fn: Callable[[], datetime]) -> None:
    now = _as_utc(now_fn())
    try:
        medicines = deps.airtable.fetch_medicines()
    except Exception as exc:
        deps.logger.error("fetch medicines failed", error=exc)
        deps.logger.info("alert ticker completed")
        return
    try:
        entries = deps.airtable.fetch_stock_entries()
    except Exception as exc:
        deps.logger.error("fetch stock entries failed", error=exc)
        deps.logger.info("alert ticker completed")
        return

    for med in medicines:
        if med.daily_dose <= 0:
            continue
        stock = current_stock_at(med, entries, now)
        if stock <= 0:
            continue
        forecast = out_of_stock_date_at(med, stock, now)
        days_left = math.floor((forecast - now).total_seconds() / 3600 / 24)
        if days_left > ALERT_THRESHOLD_DAYS:
            continue
        message = (
            f"⚠️ *Refill Alert* for *{escape_markdown(med.name)}* – "
            f"runs out on *{format_date(forecast)}*\n({stock:.2f} pills left)"
        )
        try:
            deps.telegram.send_telegram_message(message)
        except Exception as exc:
            deps.logger.error("telegram send failed", medicine_id=med.id, error=exc)
        else:
            deps.logger.info("alert sent", medicine_id=med.id)

    if deps.stock_checker is not None:
        try:
            deps.stock_checker.check_and_alert_new_refills()
        except Exception as exc:
            deps.logger.error("refill check failed", error=exc)

    deps.logger.info("alert ticker completed")


def start_stock_alert_ticker(
    deps: Dependencies, interval: timedelta, now_fn: Callable[[], datetime]
) -> Callable[[], None]:
    """Check stock levels every ``interval`` in a background thread.

    A Telegram alert is sent for each medicine at most ten days from running
    out. The returned function stops the ticker and waits for it to finish.
    """
    seconds = interval.total_seconds()
    if seconds <= 0:
        raise ValueError("non-positive interval for ticker")
    deps.logger.info(f"🟢 Ticker started with interval {interval}")
    stopped = threading.Event()

    def run() -> None:
        while not stopped.is_set():
            _check_once(deps, now_fn)
            if stopped.wait(seconds):
                return

    thread = threading.Thread(target=run, name="stock-alert-ticker", daemon=True)
    thread.start()

    def stop() -> None:
        stopped.set()
        if threading.current_thread() is not thread:
            thread.join()

    return stop