from datetime import datetime, timedelta, timezone

from vitaltrack.models import Medicine, StockEntry, parse_date
from vitaltrack.stockcalc import current_stock_at, out_of_stock_date_at


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def test_current_stock_with_refill_on_today():
    now = utc(2025, 6, 4)
    med = Medicine(
        id="med123",
        name="Paracetamol",
        start_date=utc(2025, 6, 1),
        initial_stock=10,
        daily_dose=1,
        unit_per_box=10,
    )
    entries = [StockEntry(medicine_id=["med123"], quantity=1.0, unit="box", date=now)]
    assert current_stock_at(med, entries, now) == 10 - 3 + 10


def test_current_stock_with_multiple_entry_dates():
    med = Medicine(
        id="med1",
        name="TestMed",
        unit_per_box=10,
        daily_dose=1.0,
        start_date=utc(2025, 6, 1),
        initial_stock=5,
    )
    today = parse_date("2025-06-04")
    entries = [
        StockEntry(medicine_id=["med1"], quantity=1.0, unit="box", date=today),
        StockEntry(medicine_id=["med1"], quantity=5.0, unit="pill", date=today),
        StockEntry(medicine_id=["med1"], quantity=5.0, unit="pill", date=today + timedelta(days=1)),
        StockEntry(medicine_id=["med1"], quantity=5.0, unit="pill", date=today - timedelta(days=1)),
    ]
    assert current_stock_at(med, entries, today) == 5.0 + 20.0 - 3.0


def test_out_of_stock_date():
    now = utc(2025, 6, 4)
    med = Medicine(id="med123", daily_dose=2)
    assert out_of_stock_date_at(med, 10.0, now) == now + timedelta(days=5)


def test_current_stock_with_rfc3339_start_date():
    now = utc(2025, 6, 4)
    med = Medicine(
        id="medRFC",
        name="RFCMed",
        start_date=parse_date("2025-06-01T00:00:00Z"),
        initial_stock=10,
        daily_dose=1,
        unit_per_box=10,
    )
    entries = [StockEntry(medicine_id=["medRFC"], quantity=1.0, unit="box", date=now)]
    assert current_stock_at(med, entries, now) == 10 - 3 + 10


def test_current_stock_entry_date_rfc3339_match():
    now = utc(2025, 6, 4, 12)
    med = Medicine(
        id="med2",
        name="AdvancedMed",
        start_date=parse_date("2025-06-01"),
        initial_stock=5,
        daily_dose=1,
        unit_per_box=10,
    )
    entries = [StockEntry(medicine_id=["med2"], quantity=1.0, unit="box", date=utc(2025, 6, 4, 12))]
    assert current_stock_at(med, entries, now) == 5.0 - 3.0 + 10.0


def test_entries_for_other_medicines_and_undated_are_ignored():
    now = utc(2025, 6, 4)
    med = Medicine(id="a", start_date=now, initial_stock=4, daily_dose=1, unit_per_box=10)
    entries = [
        StockEntry(medicine_id=["b"], quantity=1, unit="box", date=now),
        StockEntry(medicine_id=[], quantity=1, unit="box", date=now),
        StockEntry(medicine_id=["a"], quantity=1, unit="box", date=None),
    ]
    assert current_stock_at(med, entries, now) == 4


def test_stock_never_negative():
    now = utc(2025, 6, 4)
    med = Medicine(id="a", start_date=utc(2025, 5, 1), initial_stock=2, daily_dose=1)
    assert current_stock_at(med, [], now) == 0


def test_start_in_future_consumes_nothing():
    now = utc(2025, 6, 4)
    med = Medicine(id="a", start_date=utc(2025, 6, 10), initial_stock=7, daily_dose=1)
    assert current_stock_at(med, [], now) == 7


def test_zero_dose_is_a_century_away():
    now = utc(2025, 6, 4)
    med = Medicine(id="z", daily_dose=0)
    assert out_of_stock_date_at(med, 5, now) == utc(2125, 6, 4)


def test_partial_dose_floors_days():
    now = utc(2025, 6, 4)
    med = Medicine(id="p", daily_dose=0.25)
    assert out_of_stock_date_at(med, 1, now) == now + timedelta(days=4)