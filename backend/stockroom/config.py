# backend/stockroom/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockroom.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockroom.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Document numbering (e.g. "SALE-20260101120000-4F2A1C")
    SALE_NUMBER_PREFIX = os.environ.get("SALE_NUMBER_PREFIX", "SALE")
    TRANSFER_NUMBER_PREFIX = os.environ.get("TRANSFER_NUMBER_PREFIX", "TRANS")
    DOCUMENT_NUMBER_ATTEMPTS = int(os.environ.get("DOCUMENT_NUMBER_ATTEMPTS", "5"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
