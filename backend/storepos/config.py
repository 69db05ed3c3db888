# backend/storepos/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # Local SQLite file unless DATABASE_URL points elsewhere
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///storepos.sqlite3")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Cash drawer reconciliation: |counted - expected| above this raises a discrepancy (PHP 50.00)
    CASH_DIFF_TOLERANCE_CENTS = _env_int("CASH_DIFF_TOLERANCE_CENTS", 5000)

    # Refund items need a reason at least this long (after trimming)
    REFUND_REASON_MIN_LENGTH = _env_int("REFUND_REASON_MIN_LENGTH", 3)

    # Flat tax rate applied to the sale subtotal, in basis points (1200 = 12%)
    TAX_RATE_BPS = _env_int("TAX_RATE_BPS", 0)

    RECEIPT_PREFIX = os.environ.get("RECEIPT_PREFIX", "RCP")
    RETURN_PREFIX = os.environ.get("RETURN_PREFIX", "RET")

    # Parked carts stop showing up after this many hours
    PARKED_ORDER_TTL_HOURS = _env_int("PARKED_ORDER_TTL_HOURS", 24)

    # Audit/notification hand-off: "thread" (background workers) or "sync" (after commit, inline)
    SIDE_EFFECTS_MODE = os.environ.get("SIDE_EFFECTS_MODE", "thread")
    SIDE_EFFECTS_MAX_WORKERS = _env_int("SIDE_EFFECTS_MAX_WORKERS", 2)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
