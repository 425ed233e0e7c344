# backend/stockpos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Calendar used for "today" in sales counters and summaries
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "UTC")

    # Alert rules
    HIGH_SELLING_THRESHOLD = int(os.environ.get("HIGH_SELLING_THRESHOLD", "20"))
    EXPIRY_ALERT_WINDOW_DAYS = int(os.environ.get("EXPIRY_ALERT_WINDOW_DAYS", "3"))
    EXPIRING_FILTER_DAYS = int(os.environ.get("EXPIRING_FILTER_DAYS", "10"))
    DEFAULT_LOW_STOCK_THRESHOLD = int(os.environ.get("DEFAULT_LOW_STOCK_THRESHOLD", "5"))

    # 0 disables suppression of repeated identical notifications
    NOTIFICATION_DEDUP_SECONDS = int(os.environ.get("NOTIFICATION_DEDUP_SECONDS", "0"))

    CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "₦")

    SALE_COMMIT_ATTEMPTS = int(os.environ.get("SALE_COMMIT_ATTEMPTS", "3"))
