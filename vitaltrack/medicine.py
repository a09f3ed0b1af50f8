"""Stock information for a single medicine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from vitaltrack.ports import StockDataPort
from vitaltrack.stockcalc import current_stock_at, out_of_stock_date_at


class MedicineNotFoundError(LookupError):
    """Raised when a medicine ID does not exist."""

    def __init__(self, message: str = "medicine not found") -> None:
        super().__init__(message)


@dataclass
class StockInfo:
    """Current stock summary for a medicine."""

    initial_stock: float
    consumed_stock: float
    current_stock: float
    out_of_stock_date: datetime


@dataclass
class MedicineService:
    """Stock related operations on medicines."""

    repo: StockDataPort

    def get_stock_info(self, medicine_id: str, now: datetime) -> StockInfo:
        """Compute current stock and depletion forecast for one medicine."""
        medicines = self.repo.fetch_medicines()
        entries = self.repo.fetch_stock_entries()

        med = next((m for m in medicines if m.id == medicine_id), None)
        if med is None:
            raise MedicineNotFoundError()

        stock = current_stock_at(med, entries, now)
        return StockInfo(
            initial_stock=med.initial_stock,
            consumed_stock=max(med.initial_stock - stock, 0.0),
            current_stock=stock,
            out_of_stock_date=out_of_stock_date_at(med, stock, now),
        )