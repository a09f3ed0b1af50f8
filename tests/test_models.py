from datetime import datetime, timedelta, timezone

import pytest

from vitaltrack.models import (
    FinancialEntry,
    Medicine,
    StockEntry,
    format_date,
    parse_date,
)


def test_parse_plain_date_is_utc_midnight():
    assert parse_date("2025-06-02") == datetime(2025, 6, 2, tzinfo=timezone.utc)


def test_parse_rfc3339_utc():
    assert parse_date("2025-06-04T12:00:00Z") == datetime(2025, 6, 4, 12, tzinfo=timezone.utc)


def test_parse_rfc3339_with_offset_keeps_instant():
    parsed = parse_date("2025-06-04T12:00:00+02:00")
    assert parsed.utcoffset() == timedelta(hours=2)
    assert parsed == datetime(2025, 6, 4, 10, tzinfo=timezone.utc)


def test_parse_fractional_seconds():
    parsed = parse_date("2025-06-04T00:00:00.500Z")
    assert parsed.microsecond == 500000


@pytest.mark.parametrize("text", ["", "2025/06/02", "2025-6-2", "2025-02-30", "yesterday"])
def test_parse_invalid_raises(text):
    with pytest.raises(ValueError, match="invalid date format"):
        parse_date(text)


@pytest.mark.parametrize("text", ["2025-06-02", "1999-12-31", "2024-02-29"])
def test_format_round_trip(text):
    assert format_date(parse_date(text)) == text


def test_format_uses_own_zone():
    assert format_date(parse_date("2025-06-04T23:30:00-05:00")) == "2025-06-04"


def test_medicine_round_trip():
    data = {
        "id": "m1",
        "name": "Paracetamol",
        "unit_type": "pill",
        "unit_per_box": 10.0,
        "daily_dose": 1.0,
        "start_date": "2025-06-01",
        "initial_stock": 10.0,
        "last_alerted_date": "2025-06-03",
    }
    med = Medicine.from_dict(data)
    assert med.start_date == parse_date("2025-06-01")
    assert med.forecast_out_of_stock_date is None
    assert med.to_dict() == data


def test_medicine_to_dict_omits_unset_optional_dates():
    out = Medicine(id="m2", start_date=parse_date("2025-06-01")).to_dict()
    assert "forecast_out_of_stock_date" not in out
    assert "last_alerted_date" not in out
    assert out["start_date"] == "2025-06-01"


def test_medicine_from_dict_rfc3339_start():
    med = Medicine.from_dict({"id": "m", "start_date": "2025-06-01T00:00:00Z"})
    assert med.start_date == datetime(2025, 6, 1, tzinfo=timezone.utc)


def test_medicine_from_dict_bad_date_raises():
    with pytest.raises(ValueError):
        Medicine.from_dict({"id": "m", "start_date": "not a date"})


def test_stock_entry_round_trip():
    data = {
        "id": "e1",
        "medicine_id": ["m1"],
        "quantity": 2.0,
        "unit": "box",
        "date": "2025-06-02",
    }
    entry = StockEntry.from_dict(data)
    assert entry.medicine_id == ["m1"]
    assert entry.to_dict() == data


def test_stock_entry_missing_date_is_none():
    entry = StockEntry.from_dict({"id": "e2", "medicine_id": ["m1"], "quantity": 1})
    assert entry.date is None
    assert entry.quantity == 1.0


def test_financial_entry_from_dict():
    entry = FinancialEntry.from_dict(
        {
            "id": "rec1",
            "Date": "2025-08-10",
            "NeedLabel": "Food",
            "NeedAmount": 15,
            "AmountContributed": 5,
            "MonthTag": "2025-08",
            "Contributor": "Bob",
        }
    )
    assert entry.id == "rec1"
    assert entry.need_label == "Food"
    assert entry.contributor == "Bob"
    assert entry.need_amount == 15
    assert entry.amount_contributed == 5
    assert entry.month_tag == "2025-08"
    assert format_date(entry.date) == "2025-08-10"