# backend/fineledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/fines.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///fines.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Reference numbers look like TF-2026-000042
    FINE_REFERENCE_PREFIX = os.environ.get("FINE_REFERENCE_PREFIX", "TF")

    # Bounded retry for lock conflicts and stale versions
    LEDGER_RETRY_ATTEMPTS = int(os.environ.get("LEDGER_RETRY_ATTEMPTS", "3"))
    LEDGER_RETRY_BACKOFF = float(os.environ.get("LEDGER_RETRY_BACKOFF", "0.05"))

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Shared secret the payment gateway presents on callbacks
    GATEWAY_CALLBACK_TOKEN = os.environ.get("GATEWAY_CALLBACK_TOKEN", "dev-gateway-token")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
