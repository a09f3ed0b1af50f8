import threading
from datetime import datetime, timedelta

import pytest

from vitaltrack.airtable import AirtableClient
from vitaltrack.di import Dependencies, build, new_app, start_from_env, start_telegram_polling
from vitaltrack.financial import FinancialReportService
from vitaltrack.logger import StdLogger
from vitaltrack.models import Medicine

CASES = [
    ("none", False, False),
    ("ticker_only", True, False),
    ("polling_only", False, True),
    ("both", True, True),
]

ENV = {
    "AIRTABLE_BASE_ID": "a",
    "AIRTABLE_MEDICINES_TABLE": "b",
    "AIRTABLE_ENTRIES_TABLE": "c",
    "AIRTABLE_TOKEN": "token",
    "TELEGRAM_BOT_TOKEN": "token",
    "TELEGRAM_CHAT_ID": "f",
}


class EnvMockAirtable:
    def fetch_medicines(self):
        return []

    def fetch_stock_entries(self):
        return []

    def fetch_financial_entries(self, year, month):
        return []

    def create_stock_entry(self, entry):
        pass

    def update_forecast_date(self, medicine_id, forecast_date, updated_at):
        pass

    def update_medicine_last_alerted_date(self, medicine_id, date):
        pass


class EnvMockTelegram:
    def send_telegram_message(self, text):
        pass

    def poll_for_commands(self, fetch, report_fn):
        pass


class Recorder:
    def __init__(self):
        self.ticker_calls = []
        self.ticker_deps = []
        self.ticker_now = []
        self.polling_calls = []

    def ticker(self, deps, interval, now_fn):
        self.ticker_calls.append(interval)
        self.ticker_deps.append(deps)
        self.ticker_now.append(now_fn())
        return lambda: None

    def polling(self, deps):
        self.polling_calls.append(deps)


def set_flags(monkeypatch, ticker, polling):
    for name, on in (("ENABLE_ALERT_TICKER", ticker), ("ENABLE_TELEGRAM_POLLING", polling)):
        if on:
            monkeypatch.setenv(name, "true")
        else:
            monkeypatch.delenv(name, raising=False)


def env_deps():
    return Dependencies(airtable=EnvMockAirtable(), telegram=EnvMockTelegram(), logger=StdLogger())


@pytest.mark.parametrize("name,ticker,polling", CASES)
def test_start_from_env(monkeypatch, name, ticker, polling):
    monkeypatch.delenv("ALERT_TICKER_INTERVAL", raising=False)
    set_flags(monkeypatch, ticker, polling)
    rec = Recorder()
    deps = env_deps()
    start_from_env(deps, rec.ticker, rec.polling)
    assert rec.ticker_calls == ([timedelta(hours=24)] if ticker else [])
    assert all(d is deps for d in rec.ticker_deps)
    assert all(isinstance(n, datetime) for n in rec.ticker_now)
    assert len(rec.polling_calls) == (1 if polling else 0)
    assert all(d is deps for d in rec.polling_calls)


def test_start_from_env_default_interval(monkeypatch):
    monkeypatch.delenv("ALERT_TICKER_INTERVAL", raising=False)
    set_flags(monkeypatch, True, False)
    rec = Recorder()
    start_from_env(env_deps(), rec.ticker, rec.polling)
    assert rec.ticker_calls == [timedelta(hours=24)]


@pytest.mark.parametrize(
    "value,expected",
    [
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("10ms", timedelta(milliseconds=10)),
        ("45s", timedelta(seconds=45)),
        ("abc", timedelta(hours=24)),
        ("10", timedelta(hours=24)),
    ],
)
def test_start_from_env_interval(monkeypatch, value, expected):
    monkeypatch.setenv("ALERT_TICKER_INTERVAL", value)
    set_flags(monkeypatch, True, False)
    rec = Recorder()
    start_from_env(env_deps(), rec.ticker, rec.polling)
    assert rec.ticker_calls == [expected]


@pytest.mark.parametrize("use_ticker,use_polling", [(False, True), (True, False)])
def test_start_from_env_with_missing_starter(monkeypatch, use_ticker, use_polling):
    monkeypatch.delenv("ALERT_TICKER_INTERVAL", raising=False)
    set_flags(monkeypatch, True, True)
    rec = Recorder()
    deps = env_deps()
    start_from_env(
        deps,
        rec.ticker if use_ticker else None,
        rec.polling if use_polling else None,
    )
    assert rec.ticker_calls == ([timedelta(hours=24)] if use_ticker else [])
    assert rec.polling_calls == ([deps] if use_polling else [])


@pytest.fixture
def configured_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ALERT_TICKER_INTERVAL", raising=False)
    monkeypatch.delenv("ENABLE_ENTRY_POST", raising=False)
    for key, value in ENV.items():
        monkeypatch.setenv(key, value)


@pytest.mark.parametrize("name,ticker,polling", CASES)
def test_new_app(monkeypatch, configured_env, name, ticker, polling):
    set_flags(monkeypatch, ticker, polling)
    rec = Recorder()
    app = new_app(rec.ticker, rec.polling)
    rules = {rule.rule for rule in app.url_map.iter_rules()}
    assert "/check" in rules
    assert "/api/medicines/<medicine_id>/stock" in rules
    assert bool(rec.ticker_calls) == ticker
    assert bool(rec.polling_calls) == polling


def test_build(configured_env):
    app, deps = build()
    rules = {rule.rule for rule in app.url_map.iter_rules()}
    assert "/check" not in rules
    assert isinstance(deps.airtable, AirtableClient)
    assert deps.medicine_service.repo is deps.airtable
    assert deps.stock_checker.telegram is deps.telegram


class PollingAirtable(EnvMockAirtable):
    def __init__(self):
        self.meds_called = False
        self.entries_called = False

    def fetch_medicines(self):
        self.meds_called = True
        return [Medicine(id="1")]

    def fetch_stock_entries(self):
        self.entries_called = True
        return []


class FinanceRepo:
    def __init__(self):
        self.called = False

    def fetch_financial_entries(self, year, month):
        self.called = True
        return []


class PollingTelegram(EnvMockTelegram):
    def __init__(self):
        self.done = threading.Event()
        self.fetched = None
        self.report = None

    def poll_for_commands(self, fetch, report_fn):
        self.fetched = fetch()
        self.report = report_fn(2024, 6)
        self.done.set()


def test_start_telegram_polling():
    airtable = PollingAirtable()
    repo = FinanceRepo()
    telegram = PollingTelegram()
    deps = Dependencies(
        airtable=airtable,
        telegram=telegram,
        logger=StdLogger(),
        financial_service=FinancialReportService(repo=repo),
    )
    start_telegram_polling(deps)
    assert telegram.done.wait(1.0), "polling not invoked"
    assert airtable.meds_called and airtable.entries_called
    assert repo.called
    medicines, entries = telegram.fetched
    assert [m.id for m in medicines] == ["1"]
    assert entries == []
    assert (telegram.report.year, telegram.report.month) == (2024, 6)