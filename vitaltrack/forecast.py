"""Out-of-stock forecast message building."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone

from vitaltrack.models import Medicine, StockEntry, format_date
from vitaltrack.ports import StockDataPort
from vitaltrack.stockcalc import current_stock_at, out_of_stock_date_at

log = logging.getLogger(__name__)


@dataclass
class _Forecast:
    name: str
    date: datetime
    should_update: bool
    medicine_id: str


def _utc_date_text(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return format_date(value)


def generate_out_of_stock_forecast_message(
    medicines: Iterable[Medicine],
    entries: Iterable[StockEntry],
    now: datetime,
    repo: StockDataPort | None,
) -> str:
    """Build a Markdown forecast of when each medicine runs out.

    Medicines with no stock or no daily dose are left out. Rows are sorted by
    forecast date; changed forecasts are saved to ``repo`` when one is given.
    """
    entries = list(entries)
    forecasts: list[_Forecast] = []
    for med in medicines:
        stock = current_stock_at(med, entries, now)
        if stock <= 0 or med.daily_dose == 0:
            continue
        forecast_date = out_of_stock_date_at(med, stock, now)
        should_update = True
        if med.forecast_out_of_stock_date is not None:
            saved = _utc_date_text(med.forecast_out_of_stock_date)
            if saved == format_date(forecast_date):
                should_update = False
        forecasts.append(_Forecast(med.name, forecast_date, should_update, med.id))

    forecasts.sort(key=lambda f: f.date)

    rows = []
    for f in forecasts:
        if f.should_update and repo is not None:
            try:
                repo.update_forecast_date(f.medicine_id, f.date, now)
            except Exception as exc:  # storage failures must not stop the report
                log.error("Failed to update forecast for %s: %s", f.name, exc)
            else:
                log.info("Updated forecast for %s to %s", f.name, format_date(f.date))
        rows.append(f"{f.name:<22} → {format_date(f.date)}")

    return "*Out-of-Stock Forecast*\n\n```text\n" + "\n".join(rows) + "\n```"