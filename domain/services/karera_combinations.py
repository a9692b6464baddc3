"""
Karera ticket math: combination counts, units and winning combinations.

Ticket payloads are plain dicts as submitted by the betting client:
    win/place:            {"horses": [1, 4]}
    forecast/trifecta/..: {"positions": [[1, 4], [2], [3, 5]]}
    multi-leg:            {"legs": [{"race_id": 7, "horses": [1, 2]}, ...]}
"""

from __future__ import annotations

import json
import math
from typing import Any

import config
from domain.models.karera import PROGRAM_LABELS, KareraBetType
from services.exceptions import ValidationError


def _to_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            n = float(value.replace(",", ""))
        except ValueError:
            return None
        return int(n) if math.isfinite(n) else None
    return None


def normalize_horse_numbers(values: Any) -> list[int]:
    """Positive, de-duplicated, sorted horse numbers. Garbage entries are dropped."""
    if not isinstance(values, (list, tuple)):
        return []
    out: set[int] = set()
    for item in values:
        n = _to_int(item)
        if n and n > 0:
            out.add(n)
    return sorted(out)


def compute_order_combos(positions: list[list[int]]) -> int:
    """Number of ordered finishes with distinct horses across the positions."""
    if not positions or any(not pos for pos in positions):
        return 0

    used: set[int] = set()

    def walk(idx: int) -> int:
        if idx >= len(positions):
            return 1
        total = 0
        for horse in positions[idx]:
            if horse in used:
                continue
            used.add(horse)
            total += walk(idx + 1)
            used.discard(horse)
        return total

    return walk(0)


def _positions(combinations: dict) -> list[list[int]]:
    raw = combinations.get("positions") if isinstance(combinations, dict) else None
    if not isinstance(raw, list):
        return []
    return [normalize_horse_numbers(p) for p in raw]


def _legs(combinations: dict) -> list[dict]:
    raw = combinations.get("legs") if isinstance(combinations, dict) else None
    if not isinstance(raw, list):
        return []
    legs = []
    for leg in raw:
        if not isinstance(leg, dict):
            legs.append({"race_id": None, "horses": []})
            continue
        legs.append(
            {
                "race_id": _to_int(leg.get("race_id")),
                "horses": normalize_horse_numbers(leg.get("horses")),
            }
        )
    return legs


def normalize_combinations(bet_type: KareraBetType, combinations: dict) -> dict:
    """Canonical form of a ticket payload, as stored."""
    if bet_type in (KareraBetType.WIN, KareraBetType.PLACE):
        return {"horses": normalize_horse_numbers((combinations or {}).get("horses"))}
    if bet_type.positions:
        return {"positions": _positions(combinations or {})}
    return {"legs": _legs(combinations or {})}


def compute_karera_combos(bet_type: KareraBetType, combinations: dict) -> int:
    """Number of combinations a ticket covers. 0 means the ticket is empty/invalid."""
    combos = normalize_combinations(bet_type, combinations)
    if "horses" in combos:
        return len(combos["horses"])
    if "positions" in combos:
        if len(combos["positions"]) != bet_type.positions:
            return 0
        return compute_order_combos(combos["positions"])
    legs = combos["legs"]
    if not legs:
        return 0
    if bet_type.leg_count is not None and len(legs) != bet_type.leg_count:
        return 0
    total = 1
    for leg in legs:
        if not leg["horses"]:
            return 0
        total *= len(leg["horses"])
    return total


def unit_cost_for(bet_type: KareraBetType) -> float:
    if bet_type.uses_standard_unit:
        return config.KARERA_UNIT_COST_STANDARD
    return config.KARERA_UNIT_COST_EXOTIC


def derive_units(amount: float, combos: int, unit_cost: float) -> int:
    """
    Units per combination bought by a ticket amount.

    Always at least 1; exact multiples are rounded to absorb float noise,
    anything else is floored.
    """
    denom = combos * unit_cost
    if not math.isfinite(amount) or amount <= 0 or denom <= 0:
        return 1
    raw = amount / denom
    rounded = round(raw)
    if abs(raw - rounded) < 1e-6:
        return max(1, int(rounded))
    return max(1, math.floor(raw))


def is_exact_ticket_amount(amount: float, combos: int, unit_cost: float) -> bool:
    """True if amount buys a whole number of units on every combination."""
    denom = combos * unit_cost
    if denom <= 0 or amount <= 0:
        return False
    raw = amount / denom
    return abs(raw - round(raw)) < 1e-6 and round(raw) >= 1


def horses_referenced(combinations: dict, race_id: int | None = None) -> set[int]:
    """
    Horses a stored ticket depends on.

    For multi-leg tickets only the legs run in race_id count (all legs when
    race_id is None).
    """
    if "horses" in combinations:
        return set(combinations["horses"])
    if "positions" in combinations:
        return {h for pos in combinations["positions"] for h in pos}
    return {
        h
        for leg in combinations.get("legs", [])
        if race_id is None or leg.get("race_id") == race_id
        for h in leg.get("horses", [])
    }


def winning_combos(bet_type: KareraBetType, combinations: dict, finish_order: list[int]) -> int:
    """
    Winning combinations of a single-race ticket for a declared finish.

    Place pays each of the first two finishers the ticket holds; ordered bets
    can hit at most once because finishers are distinct.
    """
    if bet_type.is_multi_leg:
        raise ValidationError(f"{bet_type.value} is settled leg by leg")

    if bet_type is KareraBetType.WIN:
        return 1 if finish_order and finish_order[0] in combinations["horses"] else 0

    if bet_type is KareraBetType.PLACE:
        return len(set(finish_order[:2]) & set(combinations["horses"]))

    needed = bet_type.positions
    if len(finish_order) < needed:
        raise ValidationError(
            f"{bet_type.value} needs {needed} finishers, got {len(finish_order)}"
        )
    positions = combinations["positions"]
    hit = all(finish_order[i] in positions[i] for i in range(needed))
    return 1 if hit else 0


def leg_hit(combinations: dict, race_id: int, winner: int) -> bool:
    """Whether every leg of a multi-leg ticket run in race_id contains the winner."""
    legs = [leg for leg in combinations.get("legs", []) if leg.get("race_id") == race_id]
    return bool(legs) and all(winner in leg["horses"] for leg in legs)


def leg_race_ids(combinations: dict) -> list[int]:
    return [leg["race_id"] for leg in combinations.get("legs", [])]


def estimate_horse_dividend(row_total: Any) -> float:
    """Indicative win dividend from a horse's total sales, for the board."""
    total = _to_int(row_total) if not isinstance(row_total, (int, float)) else row_total
    if total is None or not math.isfinite(total):
        total = 0
    dividend = max(config.KARERA_DIVIDEND_FLOOR, config.KARERA_DIVIDEND_BASE / (total + 100))
    return round(dividend, 2)


def program_label(bet_type: KareraBetType) -> str | None:
    return PROGRAM_LABELS.get(bet_type)


def format_selection_lines(
    bet_type: KareraBetType, combinations: dict, race_names: dict[int, str] | None = None
) -> list[str]:
    """Human-readable ticket lines for receipts."""
    race_names = race_names or {}
    combos = normalize_combinations(bet_type, combinations)

    if "horses" in combos:
        horses = combos["horses"]
        return [f"HORSES: {', '.join(map(str, horses)) if horses else '-'}"]

    if "positions" in combos:
        labels = ["1ST", "2ND", "3RD", "4TH"]
        lines = []
        for idx, pos in enumerate(combos["positions"]):
            label = labels[idx] if idx < len(labels) else f"POS {idx + 1}"
            lines.append(f"{label}: {', '.join(map(str, pos)) if pos else '-'}")
        return lines

    if combos["legs"]:
        lines = []
        for idx, leg in enumerate(combos["legs"]):
            rid = leg["race_id"]
            name = race_names.get(rid) or (f"RACE {rid}" if rid else f"LEG {idx + 1}")
            horses = leg["horses"]
            lines.append(
                f"LEG {idx + 1} ({name}): {', '.join(map(str, horses)) if horses else '-'}"
            )
        return lines

    return [f"SELECTIONS: {json.dumps(combinations, default=str)}"]


def promo_bonus(amount: float, promo_percent: float) -> float:
    """Receipt bonus for a ticket bought under the promo (percent of the amount)."""
    if not promo_percent or promo_percent <= 0:
        return 0.0
    return round(amount * promo_percent / 100, 2)
