"""HTTP routes for stock checks, forecasts and stock entries."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any

from flask import Flask, jsonify, request

from vitaltrack.medicine import MedicineNotFoundError
from vitaltrack.models import CreateStockEntryRequest, StockEntry, format_date, parse_date

log = logging.getLogger(__name__)

STOCK_THRESHOLD = 10.0
_MONTH_ABBR = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
_INVALID_BODY = "invalid JSON body"
_INVALID_FIELDS = (
    "quantity must be > 0, unit must be 'box' or 'pill', date must not be empty"
)
_INVALID_DATE = "invalid date format, expected YYYY-MM-DD or RFC3339"


def _error(message: Any, status: int):
    return jsonify({"error": str(message)}), status


def _long_date(value: datetime) -> str:
    return f"{_MONTH_ABBR[value.month - 1]} {value.day}, {value.year}"


def _field(data: dict[str, Any], key: str, default: Any) -> Any:
    value = data.get(key)
    return default if value is None else value


def _parse_entry_request(data: Any) -> CreateStockEntryRequest | None:
    if not isinstance(data, dict):
        return None
    quantity = _field(data, "quantity", 0)
    unit = _field(data, "unit", "")
    date_text = _field(data, "date", "")
    if isinstance(quantity, bool) or not isinstance(quantity, (int, float)):
        return None
    if not isinstance(unit, str) or not isinstance(date_text, str):
        return None
    return CreateStockEntryRequest(quantity=float(quantity), unit=unit, date=date_text)


def setup_routes(app: Flask, checker, forecast_service, medicine_service, data_port, telegram_client) -> None:
    """Register every HTTP endpoint on ``app``.

    The stock entry POST route is only added when ``ENABLE_ENTRY_POST`` is "true".
    """
    allow_entry_post = os.environ.get("ENABLE_ENTRY_POST") == "true"

    @app.get("/check")
    def check():
        try:
            checker.check_and_alert_low_stock()
        except Exception as exc:
            return _error(exc, 500)
        return jsonify({"status": "ok"})

    @app.get("/debug/medicines")
    def debug_medicines():
        try:
            medicines = data_port.fetch_medicines()
        except Exception as exc:
            return _error(exc, 500)
        return jsonify([med.to_dict() for med in medicines])

    @app.get("/debug/entries")
    def debug_entries():
        try:
            entries = data_port.fetch_stock_entries()
        except Exception as exc:
            return _error(exc, 500)
        return jsonify([entry.to_dict() for entry in entries])

    @app.get("/api/medicines/<medicine_id>/stock")
    def medicine_stock(medicine_id: str):
        from datetime import timezone

        now = datetime.now(timezone.utc)
        try:
            info = medicine_service.get_stock_info(medicine_id, now)
        except MedicineNotFoundError as exc:
            return _error(exc, 404)
        except Exception as exc:
            return _error(exc, 500)

        if info.current_stock < STOCK_THRESHOLD:
            alert = (
                f"⚠️ Stock alert for *{medicine_id}*:\n"
                f"Only {info.current_stock:.2f} pills left!\n"
                f"Refill before {_long_date(info.out_of_stock_date)}."
            )
            try:
                telegram_client.send_telegram_message(alert)
            except Exception as exc:
                log.error("telegram send error: %s", exc)

        return jsonify(
            {
                "initial_stock": info.initial_stock,
                "consumed_stock": info.consumed_stock,
                "current_stock": info.current_stock,
                "out_of_stock_date": format_date(info.out_of_stock_date),
            }
        )

    @app.get("/debug/outofstock")
    def debug_out_of_stock():
        try:
            message = forecast_service.generate_out_of_stock_forecast_message()
            telegram_client.send_telegram_message(message)
        except Exception as exc:
            return _error(exc, 500)
        return jsonify({"message": "out-of-stock forecast sent"})

    if not allow_entry_post:
        return

    @app.post("/api/medicines/<medicine_id>/entries")
    def create_entry(medicine_id: str):
        req = _parse_entry_request(request.get_json(silent=True))
        if req is None:
            return _error(_INVALID_BODY, 400)
        if req.quantity <= 0 or req.unit not in ("box", "pill") or not req.date:
            return _error(_INVALID_FIELDS, 400)
        try:
            parsed = parse_date(req.date)
        except ValueError:
            return _error(_INVALID_DATE, 400)

        entry = StockEntry(
            medicine_id=[medicine_id], quantity=req.quantity, unit=req.unit, date=parsed
        )
        try:
            data_port.create_stock_entry(entry)
        except Exception as exc:
            return _error(exc, 500)
        return jsonify({"message": "stock entry created"}), 201