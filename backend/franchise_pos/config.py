# backend/franchise_pos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/franchise_pos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///franchise_pos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Products in this category are reported as beverage sales in the cash summary
    BEVERAGE_CATEGORY_ID = int(os.environ.get("BEVERAGE_CATEGORY_ID", "2"))

    # Upper bound for the per-day breakdown of a summary request
    MAX_SUMMARY_DAYS = int(os.environ.get("MAX_SUMMARY_DAYS", "366"))
