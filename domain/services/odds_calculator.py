"""
Pari-mutuel odds calculator.

Pure functions, no I/O. The same calculate_odds() feeds the live odds board
and settlement, so displayed odds always match what a winning bet is paid
for the same pool and rate.
"""

import math

from services.exceptions import ValidationError

# Malay odds between 0 and 1 (exclusive) do not exist: short prices are
# negative, long prices equal the Hong Kong price.
_MALAY_GAP = (0.0, 1.0)


def _require_amount(name: str, value: float) -> float:
    if value is None or not math.isfinite(value):
        raise ValidationError(f"{name} must be a finite number, got {value!r}")
    if value < 0:
        raise ValidationError(f"{name} must not be negative, got {value}")
    return float(value)


def _require_rate(commission_rate: float) -> float:
    if commission_rate is None or not math.isfinite(commission_rate):
        raise ValidationError(f"commission_rate must be a finite number, got {commission_rate!r}")
    if not 0.0 <= commission_rate < 1.0:
        raise ValidationError(f"commission_rate must be in [0, 1), got {commission_rate}")
    return float(commission_rate)


def floor_centavo(amount: float) -> float:
    """Floor a peso amount to whole centavos."""
    # round() first so 159.99999999999997 is not floored to 159.99
    return math.floor(round(amount * 100, 6)) / 100


def fallback_odds(commission_rate: float) -> float:
    """Even-money price net of commission, shown before a side has action."""
    return 2 * (1 - _require_rate(commission_rate))


def net_pool(total_pool: float, commission_rate: float) -> float:
    """Pool left for winners after the plasada is taken."""
    return _require_amount("total_pool", total_pool) * (1 - _require_rate(commission_rate))


def calculate_odds(side_total: float, total_pool: float, commission_rate: float) -> float:
    """
    Decimal payout multiplier for one selection.

    Args:
        side_total: Stakes on the selection
        total_pool: Stakes on all selections
        commission_rate: Plasada as a fraction in [0, 1)

    Returns:
        net_pool / side_total, or the fallback price when the side or the
        pool is empty.
    """
    side_total = _require_amount("side_total", side_total)
    total_pool = _require_amount("total_pool", total_pool)
    rate = _require_rate(commission_rate)
    if side_total > 0 and total_pool > 0:
        return total_pool * (1 - rate) / side_total
    return fallback_odds(rate)


def payout_for_stake(
    stake: float, side_total: float, total_pool: float, commission_rate: float
) -> float:
    """
    Settlement payout (stake included) for a winning bet.

    Computed as stake * net_pool / side_total rather than stake * odds to keep
    a single division. Returns 0 when nobody backed the side, since the
    fallback price is display-only.
    """
    stake = _require_amount("stake", stake)
    side_total = _require_amount("side_total", side_total)
    pool = net_pool(total_pool, commission_rate)
    if side_total <= 0:
        return 0.0
    return floor_centavo(stake * pool / side_total)


def to_hong_kong(decimal_odds: float) -> float:
    """Hong Kong odds: profit per unit staked, floored at 0."""
    decimal_odds = _require_amount("decimal_odds", decimal_odds)
    return max(decimal_odds - 1, 0.0)


def to_malay(decimal_odds: float) -> float:
    """
    Malay odds from decimal odds.

    HK >= 1 is quoted as-is, 0 < HK < 1 as -1/HK. HK == 0 has no Malay
    equivalent and is reported as 0.
    """
    hk = to_hong_kong(decimal_odds)
    if hk == 0:
        return 0.0
    return hk if hk >= 1 else -1 / hk


def hong_kong_to_decimal(hk_odds: float) -> float:
    return _require_amount("hk_odds", hk_odds) + 1


def malay_to_decimal(malay_odds: float) -> float:
    """Inverse of to_malay(). Malay 0 maps back to even money (1.0)."""
    if malay_odds is None or not math.isfinite(malay_odds):
        raise ValidationError(f"malay_odds must be a finite number, got {malay_odds!r}")
    if malay_odds == 0:
        return 1.0
    if _MALAY_GAP[0] < malay_odds < _MALAY_GAP[1]:
        raise ValidationError(f"Malay odds between 0 and 1 are not valid, got {malay_odds}")
    if malay_odds < 0:
        return -1 / malay_odds + 1
    return malay_odds + 1


def odds_board(snapshot_totals: dict[str, float], commission_rate: float) -> dict[str, float]:
    """Decimal odds for every selection of a pool."""
    total = sum(snapshot_totals.values())
    return {
        selection: calculate_odds(side, total, commission_rate)
        for selection, side in snapshot_totals.items()
    }
