"""
Centralized configuration for the sabong/karera settlement service.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _parse_int(env_var: str, default: int) -> int:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_float(env_var: str, default: float) -> float:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _parse_bool(env_var: str, default: bool) -> bool:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _parse_str_list(env_var: str, default: list[str]) -> list[str]:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    items = [x.strip() for x in raw.split(",") if x.strip()]
    return items or default


DB_PATH = os.getenv("DB_PATH", "sabong.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Plasada (house commission) taken from the gross pool. Overridden at runtime
# by the `plasada_rate` row in app_settings.
_raw_plasada = _parse_float("PLASADA_RATE", 0.04)
PLASADA_RATE = _raw_plasada if 0.0 <= _raw_plasada < 1.0 else 0.04

# Commission split of the plasada across the downline (fractions of the pool)
COMMISSION_AGENT_DIRECT = _parse_float("COMMISSION_AGENT_DIRECT", 0.01)
COMMISSION_MASTER_OVERRIDE = _parse_float("COMMISSION_MASTER_OVERRIDE", 0.005)
COMMISSION_ADMIN_SHARE = _parse_float("COMMISSION_ADMIN_SHARE", 0.025)

# Sabong selections
SABONG_SELECTIONS = _parse_str_list("SABONG_SELECTIONS", ["meron", "wala", "draw"])
MIN_BET_AMOUNT = _parse_float("MIN_BET_AMOUNT", 1.0)

# Karera ticket pricing (per combination unit)
KARERA_UNIT_COST_STANDARD = _parse_float("KARERA_UNIT_COST_STANDARD", 5.0)
KARERA_UNIT_COST_EXOTIC = _parse_float("KARERA_UNIT_COST_EXOTIC", 2.0)
KARERA_DIVIDEND_BASE = _parse_float("KARERA_DIVIDEND_BASE", 50000.0)
KARERA_DIVIDEND_FLOOR = _parse_float("KARERA_DIVIDEND_FLOOR", 1.1)

# Karera ticket promo (percent of the stake shown as a bonus on the receipt).
# Overridden at runtime by the karera_promo_* rows in app_settings.
KARERA_PROMO_ENABLED = _parse_bool("KARERA_PROMO_ENABLED", False)
KARERA_PROMO_PERCENT = _parse_float("KARERA_PROMO_PERCENT", 0.0)

# Payout audit: max allowed |theoretical - actual| odds difference
PAYOUT_AUDIT_TOLERANCE = _parse_float("PAYOUT_AUDIT_TOLERANCE", 0.01)
PAYOUT_AUDIT_MATCH_LIMIT = _parse_int("PAYOUT_AUDIT_MATCH_LIMIT", 5)

# Verify pool buckets against bet rows before every settlement
VERIFY_LEDGER_ON_SETTLE = _parse_bool("VERIFY_LEDGER_ON_SETTLE", True)
