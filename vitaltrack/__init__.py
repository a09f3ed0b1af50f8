"""Medicine stock tracking, refill forecasts, Telegram alerts and monthly financial reports."""

__version__ = "0.1.0"