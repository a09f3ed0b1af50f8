# vitaltrack

vitaltrack follows how much of each medicine is left, predicts the day it will run out, and sends
Telegram alerts when a refill is due. It also builds a monthly financial report of contributions
toward shared needs. Medicines, stock entries and contributions are kept in Airtable; the package
keeps no data of its own.

## Installation

```
pip install vitaltrack
```

## Configuration

Settings come from the environment. A `.env` file in the working directory is read at start-up.

| Variable                   | Purpose                                               |
| -------------------------- | ----------------------------------------------------- |
| `AIRTABLE_BASE_ID`         | Airtable base identifier (required)                   |
| `AIRTABLE_MEDICINES_TABLE` | Table holding medicines (required)                    |
| `AIRTABLE_ENTRIES_TABLE`   | Table holding stock entries (required)                |
| `AIRTABLE_FINANCIAL_TABLE` | Table holding financial contributions                 |
| `AIRTABLE_TOKEN`           | Airtable access token (required)                      |
| `AIRTABLE_API_BASE_URL`    | Override of the Airtable API address                  |
| `TELEGRAM_BOT_TOKEN`       | Telegram bot token (required)                         |
| `TELEGRAM_CHAT_ID`         | Chat that receives alerts (required)                  |
| `TELEGRAM_API_BASE_URL`    | Override of the Telegram API address                  |
| `ENABLE_ALERT_TICKER`      | `true` to run the periodic low-stock check            |
| `ALERT_TICKER_INTERVAL`    | Interval of that check, e.g. `24h` or `30m` (default `24h`) |
| `ENABLE_TELEGRAM_POLLING`  | `true` to answer the `/stock` and `/finance` commands |
| `ENABLE_ENTRY_POST`        | `true` to allow new stock entries over HTTP           |

If a required variable is missing, the server reports a configuration error and exits with
status 1.

Example `.env`:

```
AIRTABLE_BASE_ID=placeholder
AIRTABLE_MEDICINES_TABLE=Medicines
AIRTABLE_ENTRIES_TABLE=Entries
AIRTABLE_FINANCIAL_TABLE=Finance
AIRTABLE_TOKEN=token
TELEGRAM_BOT_TOKEN=token
TELEGRAM_CHAT_ID=placeholder
ENABLE_ALERT_TICKER=true
ENABLE_TELEGRAM_POLLING=true
```

## Running the server

```
vitaltrack
```

By default the server listens on `0.0.0.0`, port 8787. Use `--host` and `--port` to change that:

```
vitaltrack --host 127.0.0.1 --port 9000
```

Endpoints:

- `GET /check`: checks stock levels, sends low-stock alerts for medicines at most ten days from
  running out (once per day each) and reports refills recorded today.
- `GET /api/medicines/<id>/stock`: returns the initial, consumed and current stock of a medicine
  with its forecast out-of-stock date; answers 404 for an unknown ID. When fewer than ten pills are
  left, a Telegram alert is sent as well.
- `POST /api/medicines/<id>/entries`: records a refill. The body is
  `{"quantity": 1, "unit": "box", "date": "2025-06-02"}`; the unit is `box` or `pill` and the date
  is `YYYY-MM-DD` or RFC 3339. Only present with `ENABLE_ENTRY_POST=true`.
- `GET /debug/medicines`, `GET /debug/entries`: return the raw records.
- `GET /debug/outofstock`: sends the out-of-stock forecast to Telegram.

With `ENABLE_ALERT_TICKER=true` a background check runs every `ALERT_TICKER_INTERVAL`, sending a
refill alert for each medicine at most ten days from running out and a notice for each refill
recorded today.

## Telegram commands

When polling is on, the bot answers these commands:

- `/stock`: lists each medicine that has stock and a daily dose, with the day it runs out and the
  pills left, soonest first.
- `/finance [YYYY-MM]`: sends the financial report for the given month, or for the current month
  if none is given. Amounts are shown in MGA.

## Library use

The calculations can be used without the server:

```python
from datetime import datetime, timezone

from vitaltrack.models import Medicine, parse_date
from vitaltrack.stockcalc import current_stock_at, out_of_stock_date_at

med = Medicine(
    id="m1",
    name="Paracetamol",
    start_date=parse_date("2025-06-01"),
    initial_stock=10,
    daily_dose=1,
    unit_per_box=10,
)
now = datetime(2025, 6, 4, tzinfo=timezone.utc)
stock = current_stock_at(med, [], now)            # 7.0
runs_out = out_of_stock_date_at(med, stock, now)  # 2025-06-11
```

Other building blocks:

- `vitaltrack.forecast.generate_out_of_stock_forecast_message` builds the Markdown forecast table.
- `vitaltrack.financial.FinancialReportService` groups financial entries by need and contributor.
- `vitaltrack.medicine.MedicineService` returns a `StockInfo` for one medicine.
- `vitaltrack.alerts.StockChecker` runs the low-stock and refill alerts.
- `vitaltrack.airtable.AirtableClient` and `vitaltrack.telegram.TelegramClient` talk to the two
  services; both have a `from_env()` constructor.
- `vitaltrack.markdown.escape_markdown` escapes text for Telegram MarkdownV2.

## Tests

```
pip install "vitaltrack[test]"
pytest
```