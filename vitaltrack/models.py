"""Domain records for medicines, stock entries and financial contributions."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

_DATE_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
_RFC3339_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(\.\d+)?([Zz]|[+-]\d{2}:\d{2})"
)
_ZERO_DATE_TEXT = "0001-01-01"


def _build_datetime(text: str, *parts: int, tz: timezone, micro: int = 0) -> datetime:
    try:
        return datetime(*parts, micro, tzinfo=tz)
    except ValueError:
        raise ValueError(f"invalid date format: {text}") from None


def parse_date(text: str) -> datetime:
    """Parse a ``YYYY-MM-DD`` or RFC 3339 string into an aware datetime.

    Plain dates are taken as midnight UTC. Raises ValueError on any other form.
    """
    match = _DATE_RE.fullmatch(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return _build_datetime(text, year, month, day, 0, 0, 0, tz=timezone.utc)

    match = _RFC3339_RE.fullmatch(text)
    if match:
        year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
        fraction, offset = match.group(7), match.group(8)
        micro = int((fraction[1:] + "000000")[:6]) if fraction else 0
        if offset in ("Z", "z"):
            tz = timezone.utc
        else:
            sign = -1 if offset[0] == "-" else 1
            hours, minutes = int(offset[1:3]), int(offset[4:6])
            if hours > 23 or minutes > 59:
                raise ValueError(f"invalid date format: {text}")
            tz = timezone(sign * timedelta(hours=hours, minutes=minutes))
        return _build_datetime(
            text, year, month, day, hour, minute, second, tz=tz, micro=micro
        )

    raise ValueError(f"invalid date format: {text}")


def format_date(value: datetime) -> str:
    """Format a datetime as ``YYYY-MM-DD`` in its own time zone."""
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def _optional_date(data: dict[str, Any], key: str) -> datetime | None:
    value = data.get(key)
    if value is None:
        return None
    return parse_date(value)


def _date_text(value: datetime | None) -> str:
    return format_date(value) if value is not None else _ZERO_DATE_TEXT


@dataclass
class CreateStockEntryRequest:
    """Payload for creating a stock entry; unit is "pill" or "box"."""

    quantity: float = 0.0
    unit: str = ""
    date: str = ""


@dataclass
class FinancialEntry:
    """A single contribution toward a need."""

    id: str = ""
    date: datetime | None = None
    need_label: str = ""
    need_amount: float = 0.0
    amount_contributed: float = 0.0
    month_tag: str = ""
    contributor: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FinancialEntry:
        """Build an entry from a record's JSON fields."""
        return cls(
            id=data.get("id", ""),
            date=_optional_date(data, "Date"),
            need_label=data.get("NeedLabel", ""),
            need_amount=float(data.get("NeedAmount", 0)),
            amount_contributed=float(data.get("AmountContributed", 0)),
            month_tag=data.get("MonthTag", ""),
            contributor=data.get("Contributor", ""),
        )


@dataclass
class ContributorAmount:
    """Amount contributed by one contributor."""

    name: str
    amount: float


@dataclass
class NeedReportBlock:
    """Contributions aggregated for one need."""

    need: str
    need_amount: float
    contributors: list[ContributorAmount] = field(default_factory=list)
    total: float = 0.0


@dataclass
class MonthlyFinancialReport:
    """Summary of all financial entries for a month."""

    year: int
    month: int
    needs: list[NeedReportBlock] = field(default_factory=list)
    contributors: list[ContributorAmount] = field(default_factory=list)
    total: float = 0.0


@dataclass
class Medicine:
    """A medicine tracked for stock levels."""

    id: str = ""
    name: str = ""
    unit_type: str = ""
    unit_per_box: float = 0.0
    daily_dose: float = 0.0
    start_date: datetime | None = None
    initial_stock: float = 0.0
    forecast_out_of_stock_date: datetime | None = None
    forecast_last_updated: datetime | None = None
    last_alerted_date: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Medicine:
        """Build a medicine from its JSON fields."""
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            unit_type=data.get("unit_type", ""),
            unit_per_box=float(data.get("unit_per_box", 0)),
            daily_dose=float(data.get("daily_dose", 0)),
            start_date=_optional_date(data, "start_date"),
            initial_stock=float(data.get("initial_stock", 0)),
            forecast_out_of_stock_date=_optional_date(data, "forecast_out_of_stock_date"),
            forecast_last_updated=_optional_date(data, "forecast_last_updated"),
            last_alerted_date=_optional_date(data, "last_alerted_date"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise to JSON fields; optional dates are left out when unset."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "unit_type": self.unit_type,
            "unit_per_box": self.unit_per_box,
            "daily_dose": self.daily_dose,
            "start_date": _date_text(self.start_date),
            "initial_stock": self.initial_stock,
        }
        for key in ("forecast_out_of_stock_date", "forecast_last_updated", "last_alerted_date"):
            value = getattr(self, key)
            if value is not None:
                data[key] = format_date(value)
        return data


@dataclass
class StockEntry:
    """A refill event for a medicine; unit is "box" or "pill"."""

    id: str = ""
    medicine_id: list[str] = field(default_factory=list)
    quantity: float = 0.0
    unit: str = ""
    date: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StockEntry:
        """Build an entry from its JSON fields."""
        return cls(
            id=data.get("id", ""),
            medicine_id=list(data.get("medicine_id") or []),
            quantity=float(data.get("quantity", 0)),
            unit=data.get("unit", ""),
            date=_optional_date(data, "date"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise to JSON fields."""
        return {
            "id": self.id,
            "medicine_id": list(self.medicine_id),
            "quantity": self.quantity,
            "unit": self.unit,
            "date": _date_text(self.date),
        }