"""Stock level and depletion date calculations."""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from vitaltrack.models import Medicine, StockEntry

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def current_stock_at(medicine: Medicine, entries: Iterable[StockEntry], now: datetime) -> float:
    """Return the pill stock at ``now``.

    Starts from the initial stock, subtracts the daily dose for every whole
    UTC day since the start date and adds all refills dated up to ``now``.
    The result is never negative and is rounded to two decimals.
    """
    stock = medicine.initial_stock
    start = _as_utc(medicine.start_date or _ZERO_TIME)
    now = _as_utc(now)

    days_passed = (now.date() - start.date()).days
    if days_passed > 0:
        stock -= days_passed * medicine.daily_dose

    for entry in entries:
        if not entry.medicine_id or entry.medicine_id[0] != medicine.id:
            continue
        if entry.date is None:
            continue
        if _as_utc(entry.date) <= now:
            quantity = entry.quantity
            if entry.unit == "box":
                quantity *= medicine.unit_per_box
            stock += quantity

    stock = max(stock, 0.0)
    return math.floor(stock * 100 + 0.5) / 100


def _add_years(value: datetime, years: int) -> datetime:
    try:
        return value.replace(year=value.year + years)
    except ValueError:
        return value.replace(year=value.year + years, month=3, day=1)


def out_of_stock_date_at(medicine: Medicine, stock: float, now: datetime) -> datetime:
    """Project when ``stock`` runs out at the daily dose, with no further refills."""
    if medicine.daily_dose == 0:
        return _add_years(now, 100)
    days_left = math.floor(stock / medicine.daily_dose)
    return now + timedelta(days=days_left)