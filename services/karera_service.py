"""
Karera (horse racing) service: race program, tickets, scratches and results.
"""

import logging
import math

from domain.models.karera import KareraBetType, required_places
from domain.models.match import MatchStatus, can_transition
from domain.services.karera_combinations import (
    compute_karera_combos,
    derive_units,
    estimate_horse_dividend,
    format_selection_lines,
    is_exact_ticket_amount,
    leg_race_ids,
    normalize_combinations,
    program_label,
    promo_bonus,
    unit_cost_for,
)
from repositories.interfaces import IKareraRepository
from services import error_codes
from services.exceptions import InvalidStateTransition, NotFoundError, ValidationError
from services.settings_service import SettingsService
from utils.formatting import format_peso

logger = logging.getLogger("sabong.karera")


def _parse_bet_type(bet_type: str) -> KareraBetType:
    try:
        return KareraBetType((bet_type or "").strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown bet type '{bet_type}'.")


class KareraService:
    """
    Race lifecycle and ticket settlement.

    Races follow the same status machine as sabong matches. Tickets are
    priced per combination unit and paid from the odds declared with the
    result. While the promo is on, each ticket keeps the promo percent it
    was bought under and its receipt shows the bonus.
    """

    def __init__(
        self, karera_repo: IKareraRepository, settings_service: SettingsService | None = None
    ):
        self.karera_repo = karera_repo
        self.settings_service = settings_service

    def create_race(
        self,
        name: str,
        bet_types: list[str],
        horses: list[tuple[int, str]],
        racing_time: str | None = None,
    ) -> int:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Race name is required.")
        parsed = []
        for bet_type in bet_types or []:
            bt = _parse_bet_type(bet_type)
            if bt not in parsed:
                parsed.append(bt)
        if not parsed:
            raise ValidationError("A race must offer at least one bet type.")
        race_id = self.karera_repo.create_race(
            name, [bt.value for bt in parsed], list(horses), racing_time
        )
        logger.info(f"Race {race_id} '{name}' opened with {len(horses)} horses")
        return race_id

    def get_race(self, race_id: int) -> dict:
        race = self.karera_repo.get_race(race_id)
        if not race:
            raise NotFoundError(f"Race {race_id} not found.", code=error_codes.RACE_NOT_FOUND)
        return race

    def dividend_board(self, race_id: int) -> list[dict]:
        """Active horses with their win sales and indicative dividend."""
        self.get_race(race_id)
        return [
            {
                "horse_number": horse["horse_number"],
                "horse_name": horse["horse_name"],
                "total_bet": horse["total_bet"],
                "dividend": estimate_horse_dividend(horse["total_bet"]),
            }
            for horse in self.karera_repo.get_horses(race_id)
            if horse["status"] == "active"
        ]

    def set_last_call(self, race_id: int) -> None:
        self._transition(race_id, MatchStatus.LAST_CALL)

    def close_betting(self, race_id: int) -> None:
        self._transition(race_id, MatchStatus.CLOSED)

    def start_race(self, race_id: int) -> None:
        self._transition(race_id, MatchStatus.ONGOING)

    def place_karera_bet(
        self, user_id: int, race_id: int, bet_type: str, combinations: dict, amount: float
    ) -> int:
        """
        Buy a ticket.

        The amount must buy a whole number of units on every combination
        (amount = units * combos * unit_cost).

        Returns:
            The new bet_id
        """
        bt = _parse_bet_type(bet_type)
        if amount is None or not math.isfinite(amount) or amount <= 0:
            raise ValidationError("Ticket amount must be positive.")
        normalized = normalize_combinations(bt, combinations)
        combos = compute_karera_combos(bt, normalized)
        if combos == 0:
            raise ValidationError(f"The {bt.value} ticket does not cover any combination.")
        unit_cost = unit_cost_for(bt)
        if not is_exact_ticket_amount(amount, combos, unit_cost):
            raise ValidationError(
                f"Amount {amount:.2f} is not a whole number of {unit_cost:.2f} units "
                f"on {combos} combination(s)."
            )
        units = derive_units(amount, combos, unit_cost)
        promo_percent = (
            self.settings_service.get_karera_promo_percent() if self.settings_service else 0.0
        )

        bet_id = self.karera_repo.place_bet_atomic(
            user_id=user_id,
            race_id=race_id,
            bet_type=bt.value,
            combinations=normalized,
            amount=amount,
            units=units,
            unit_cost=unit_cost,
            combos=combos,
            promo_percent=promo_percent,
        )
        logger.info(
            f"Karera ticket {bet_id}: user={user_id} race={race_id} {bt.value} "
            f"combos={combos} units={units} amount={amount:.2f} promo={promo_percent}%"
        )
        return bet_id

    def scratch_horse(self, race_id: int, horse_number: int) -> dict:
        """Scratch a horse and refund every pending ticket that depends on it."""
        summary = self.karera_repo.scratch_horse_atomic(race_id, horse_number)
        logger.info(
            f"Horse {horse_number} scratched from race {race_id}: "
            f"{summary['refunded']} tickets refunded ({summary['refund_total']:.2f})"
        )
        return summary

    def announce_karera_winner(
        self, race_id: int, finish_order: list[int], odds_map: dict[str, float]
    ) -> dict:
        """
        Declare the finish order and settle the race's tickets.

        Returns:
            Dict with settled, won, lost and payout_total
        """
        race = self.get_race(race_id)
        finishers = []
        for horse in finish_order or []:
            if isinstance(horse, bool) or not isinstance(horse, int) or horse <= 0:
                raise ValidationError(f"Invalid finisher {horse!r}.")
            finishers.append(horse)
        needed = required_places([KareraBetType(bt) for bt in race["bet_types"]])
        if len(finishers) < needed:
            raise ValidationError(f"Race {race_id} needs {needed} finishers declared.")

        odds = {}
        for key, value in (odds_map or {}).items():
            bt = _parse_bet_type(key)
            if value is None or not math.isfinite(value) or value <= 0:
                raise ValidationError(f"Odds for {bt.value} must be positive.")
            odds[bt.value] = float(value)

        summary = self.karera_repo.announce_winner_atomic(race_id, finishers, odds)
        logger.info(
            f"Race {race_id} result {finishers}: {summary['settled']} tickets "
            f"({summary['won']} won, {summary['lost']} lost), paid {summary['payout_total']:.2f}"
        )
        return summary

    def cancel_race(self, race_id: int) -> int:
        """
        Cancel a race, refunding its tickets and any multi-leg ticket with a leg on it.

        Returns:
            Number of tickets refunded
        """
        summary = self.karera_repo.cancel_race_atomic(race_id)
        logger.info(
            f"Race {race_id} cancelled: {summary['refunded']} tickets refunded "
            f"({summary['refund_total']:.2f})"
        )
        return summary["refunded"]

    def ticket_lines(self, bet_id: int) -> list[str]:
        """
        Receipt lines for a ticket, naming each leg's race.

        Program bets get a heading. Tickets bought under the promo end with
        the bonus and the promo total.
        """
        bet = self.karera_repo.get_bet(bet_id)
        if not bet:
            raise NotFoundError(f"Ticket {bet_id} not found.")
        bt = KareraBetType(bet["bet_type"])
        race_ids = leg_race_ids(bet["combinations"]) if bt.is_multi_leg else [bet["race_id"]]
        races = self.karera_repo.get_races(race_ids)
        names = {race_id: race["name"] for race_id, race in races.items()}
        lines = format_selection_lines(bt, bet["combinations"], names)
        label = program_label(bt)
        if label:
            lines = [label.upper(), *lines]
        bonus = promo_bonus(bet["amount"], bet["promo_percent"])
        if bonus > 0:
            lines += [
                f"PROMO: +{bet['promo_percent']:g}% PER BET",
                f"BONUS: +{format_peso(bonus)}",
                f"TOTAL (PROMO): {format_peso(bet['amount'] + bonus)}",
            ]
        return lines

    def _transition(self, race_id: int, target: MatchStatus) -> None:
        race = self.get_race(race_id)
        current = MatchStatus(race["status"])
        if not can_transition(current, target):
            raise InvalidStateTransition(
                f"Race {race_id} cannot move from '{current.value}' to '{target.value}'."
            )
        if not self.karera_repo.transition_status(race_id, [current.value], target.value):
            raise InvalidStateTransition(f"Race {race_id} changed status concurrently.")
        logger.info(f"Race {race_id}: {current.value} -> {target.value}")
