"""
Shared formatting helpers for odds boards, tickets and receipts.

Display only: settlement never reads these strings back.
"""

from collections.abc import Mapping

from domain.services.odds_calculator import to_hong_kong, to_malay

ODDS_FORMATS = ("decimal", "percent", "hk", "malay")

SELECTION_LABELS = {
    "meron": "Meron",
    "wala": "Wala",
    "draw": "Draw",
}


def format_peso(amount: float) -> str:
    """Return a peso amount with thousands separators (e.g. '₱1,234.50')."""
    sign = "-" if amount < 0 else ""
    return f"{sign}₱{abs(amount):,.2f}"


def format_odds(decimal_odds: float, odds_format: str = "decimal") -> str:
    """
    Format decimal odds for display.

    percent is the payout per 100 staked ('185.0%'), hk and malay use two
    decimals with an 'HK' / 'MY' suffix.
    """
    if odds_format == "percent":
        return f"{decimal_odds * 100:.1f}%"
    if odds_format == "hk":
        return f"{to_hong_kong(decimal_odds):.2f} HK"
    if odds_format == "malay":
        return f"{to_malay(decimal_odds):.2f} MY"
    if odds_format == "decimal":
        return f"{decimal_odds:.2f}"
    raise ValueError(f"Unknown odds format '{odds_format}'. Use one of {ODDS_FORMATS}.")


def format_selection(selection: str) -> str:
    return SELECTION_LABELS.get(selection, selection.replace("_", " ").title())


def format_odds_board(
    totals: Mapping[str, float], odds: Mapping[str, float], odds_format: str = "decimal"
) -> list[str]:
    """One line per selection: name, pool total and odds."""
    return [
        f"{format_selection(selection)}: {format_peso(totals.get(selection, 0.0))} "
        f"({format_odds(odds[selection], odds_format)})"
        for selection in odds
    ]
