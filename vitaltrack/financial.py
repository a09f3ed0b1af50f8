"""Monthly financial report aggregation."""

from __future__ import annotations

from dataclasses import dataclass

from vitaltrack.models import (
    ContributorAmount,
    MonthlyFinancialReport,
    NeedReportBlock,
    format_date,
)
from vitaltrack.ports import FinancialDataPort

CONTRIBUTOR_ORDER = ("Onja", "Tafita", "Henintsoa", "Mahandry")
_ZERO_DATE_TEXT = "0001-01-01"


@dataclass
class FinancialReportService:
    """Groups financial entries by need and by contributor."""

    repo: FinancialDataPort

    def generate_financial_report(self, year: int, month: int) -> MonthlyFinancialReport:
        """Build the report for one month.

        Needs are keyed by "<date> <label>" and sorted by that key. Known
        contributors come first in their fixed order, then the others in the
        order they first appear.
        """
        entries = self.repo.fetch_financial_entries(year, month)

        breakdown: dict[str, dict[str, float]] = {}
        need_amounts: dict[str, float] = {}
        contributor_totals: dict[str, float] = {}
        total = 0.0

        for entry in entries:
            date_text = format_date(entry.date) if entry.date is not None else _ZERO_DATE_TEXT
            key = f"{date_text} {entry.need_label}"
            per_need = breakdown.setdefault(key, {})
            per_need[entry.contributor] = per_need.get(entry.contributor, 0.0) + entry.amount_contributed
            need_amounts.setdefault(key, entry.need_amount)
            contributor_totals[entry.contributor] = (
                contributor_totals.get(entry.contributor, 0.0) + entry.amount_contributed
            )
            total += entry.amount_contributed

        names = [name for name in CONTRIBUTOR_ORDER if name in contributor_totals]
        names += [name for name in contributor_totals if name not in CONTRIBUTOR_ORDER]

        needs = []
        for key in sorted(breakdown):
            per_need = breakdown[key]
            contributors = [ContributorAmount(name, per_need.get(name, 0.0)) for name in names]
            need_total = 0.0
            for contributor in contributors:
                need_total += contributor.amount
            needs.append(
                NeedReportBlock(
                    need=key,
                    need_amount=need_amounts[key],
                    contributors=contributors,
                    total=need_total,
                )
            )

        return MonthlyFinancialReport(
            year=year,
            month=month,
            needs=needs,
            contributors=[ContributorAmount(name, contributor_totals[name]) for name in names],
            total=total,
        )