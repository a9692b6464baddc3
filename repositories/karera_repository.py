"""
Repository for karera (horse racing) races, horses and tickets.
"""

import json
import logging

from domain.models.karera import KareraBetType
from domain.models.match import BetStatus, MatchStatus, TransactionType
from domain.services.karera_combinations import (
    horses_referenced,
    leg_hit,
    leg_race_ids,
    winning_combos,
)
from domain.services.odds_calculator import floor_centavo
from repositories.base_repository import BaseRepository
from repositories.interfaces import IKareraRepository
from services import error_codes
from services.exceptions import InvalidStateTransition, NotFoundError, ValidationError

logger = logging.getLogger("sabong.repositories.karera")

HORSE_ACTIVE = "active"
HORSE_SCRATCHED = "scratched"


class KareraRepository(BaseRepository, IKareraRepository):
    """
    Handles karera database operations.

    Responsibilities:
    - Race program (bet types, horses, scratches)
    - Atomic ticket placement, including multi-leg tickets
    - Scratch refunds, winner announcement and cancellation
    """

    def create_race(
        self,
        name: str,
        bet_types: list[str],
        horses: list[tuple[int, str]],
        racing_time: str | None = None,
    ) -> int:
        numbers = [number for number, _ in horses]
        if not horses or len(set(numbers)) != len(numbers):
            raise ValidationError("A race needs horses with unique numbers.")
        if any(number <= 0 for number in numbers):
            raise ValidationError("Horse numbers must be positive.")
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO karera_races (name, racing_time, status, bet_types)
                VALUES (?, ?, ?, ?)
                """,
                (name, racing_time, MatchStatus.OPEN.value, json.dumps(bet_types)),
            )
            race_id = cursor.lastrowid
            cursor.executemany(
                """
                INSERT INTO karera_horses (race_id, horse_number, horse_name, status)
                VALUES (?, ?, ?, ?)
                """,
                [(race_id, number, horse_name, HORSE_ACTIVE) for number, horse_name in horses],
            )
            return race_id

    def get_race(self, race_id: int) -> dict | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM karera_races WHERE race_id = ?", (race_id,))
            row = cursor.fetchone()
            return self._row_to_race(row) if row else None

    def get_races(self, race_ids: list[int]) -> dict[int, dict]:
        if not race_ids:
            return {}
        placeholders = ",".join("?" * len(race_ids))
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT * FROM karera_races WHERE race_id IN ({placeholders})", tuple(race_ids)
            )
            return {row["race_id"]: self._row_to_race(row) for row in cursor.fetchall()}

    def get_horses(self, race_id: int) -> list[dict]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT race_id, horse_number, horse_name, status, total_bet
                FROM karera_horses
                WHERE race_id = ?
                ORDER BY horse_number
                """,
                (race_id,),
            )
            return [dict(row) for row in cursor.fetchall()]

    def transition_status(self, race_id: int, from_statuses: list[str], to_status: str) -> bool:
        placeholders = ",".join("?" * len(from_statuses))
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"UPDATE karera_races SET status = ? WHERE race_id = ? AND status IN ({placeholders})",
                (to_status, race_id, *from_statuses),
            )
            return cursor.rowcount > 0

    def place_bet_atomic(
        self,
        *,
        user_id: int,
        race_id: int,
        bet_type: str,
        combinations: dict,
        amount: float,
        units: int,
        unit_cost: float,
        combos: int,
        promo_percent: float = 0.0,
    ) -> int:
        """
        Atomically place a karera ticket.

        combinations must already be normalized. Multi-leg tickets are keyed
        on their first leg's race and linked to every leg in karera_bet_legs.
        """
        bt = KareraBetType(bet_type)
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            race = self._fetch_race(cursor, race_id)
            if bet_type not in json.loads(race["bet_types"]):
                raise ValidationError(f"Race {race_id} does not offer {bet_type}.")

            if bt.is_multi_leg:
                legs = leg_race_ids(combinations)
                if not legs or legs[0] != race_id:
                    raise ValidationError("The first leg must be the race the ticket is bought on.")
                if len(set(legs)) != len(legs):
                    raise ValidationError("Each leg must be a different race.")
                for leg_race_id in legs:
                    self._check_open(self._fetch_race(cursor, leg_race_id))
                    self._check_horses(
                        cursor, leg_race_id, horses_referenced(combinations, leg_race_id)
                    )
            else:
                legs = []
                self._check_open(race)
                self._check_horses(cursor, race_id, horses_referenced(combinations))

            self._require_active_bettor(cursor, user_id)
            cursor.execute(
                """
                INSERT INTO karera_bets (race_id, user_id, bet_type, combinations_json, amount,
                                         units, unit_cost, combos, status, promo_percent)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    race_id,
                    user_id,
                    bet_type,
                    json.dumps(combinations, sort_keys=True),
                    amount,
                    units,
                    unit_cost,
                    combos,
                    BetStatus.PENDING.value,
                    promo_percent,
                ),
            )
            bet_id = cursor.lastrowid

            self._apply_balance_delta(
                cursor,
                user_id=user_id,
                delta=-amount,
                tx_type=TransactionType.BET.value,
                sender_id=user_id,
                receiver_id=None,
                reference=f"karera_bet:{bet_id}",
            )
            if legs:
                cursor.executemany(
                    "INSERT INTO karera_bet_legs (bet_id, leg_index, race_id) VALUES (?, ?, ?)",
                    [(bet_id, idx, leg_race_id) for idx, leg_race_id in enumerate(legs)],
                )
            if bt is KareraBetType.WIN:
                self._add_win_sales(cursor, race_id, combinations["horses"], units * unit_cost)
            return bet_id

    def get_bet(self, bet_id: int) -> dict | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM karera_bets WHERE bet_id = ?", (bet_id,))
            row = cursor.fetchone()
            return self._row_to_bet(row) if row else None

    def scratch_horse_atomic(self, race_id: int, horse_number: int) -> dict:
        """
        Scratch a horse and refund, right away, every pending ticket that names it.

        Multi-leg tickets are refunded when the horse appears in their leg on
        this race. Scratching an already scratched horse refunds nothing.
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            race = self._fetch_race(cursor, race_id)
            if MatchStatus(race["status"]).is_terminal:
                raise InvalidStateTransition(
                    f"Cannot scratch a horse from race {race_id} in status '{race['status']}'."
                )
            cursor.execute(
                "SELECT status FROM karera_horses WHERE race_id = ? AND horse_number = ?",
                (race_id, horse_number),
            )
            horse = cursor.fetchone()
            if not horse:
                raise NotFoundError(f"Horse {horse_number} is not in race {race_id}.")
            if horse["status"] == HORSE_SCRATCHED:
                return {"refunded": 0, "refund_total": 0.0, "bet_ids": []}

            cursor.execute(
                """
                UPDATE karera_horses SET status = ?
                WHERE race_id = ? AND horse_number = ?
                """,
                (HORSE_SCRATCHED, race_id, horse_number),
            )

            affected = [
                bet
                for bet in self._pending_bets_touching(cursor, race_id)
                if horse_number in horses_referenced(bet["combinations"], race_id)
            ]
            refund_total = self._refund_bets(cursor, affected)
            cursor.execute(
                "UPDATE karera_horses SET total_bet = 0 WHERE race_id = ? AND horse_number = ?",
                (race_id, horse_number),
            )

        return {
            "refunded": len(affected),
            "refund_total": refund_total,
            "bet_ids": [bet["bet_id"] for bet in affected],
        }

    def announce_winner_atomic(
        self, race_id: int, finish_order: list[int], odds_map: dict[str, float]
    ) -> dict:
        """
        Atomically settle a race from its declared finish.

        Single-race tickets are won or lost. Multi-leg tickets lose on a missed
        leg and win once every leg race has finished with a hit; otherwise they
        stay pending. Every outcome is computed before anything is written, so
        missing odds for a winning bet type leave the race untouched.
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            race = self._fetch_race(cursor, race_id)
            status = MatchStatus(race["status"])
            if status is MatchStatus.FINISHED:
                previous = json.loads(race["result_json"] or "{}")
                if previous.get("finish_order") != finish_order:
                    raise InvalidStateTransition(
                        f"Race {race_id} already finished with a different result."
                    )
            elif not status.can_settle:
                raise InvalidStateTransition(
                    f"Cannot announce race {race_id} in status '{status.value}'."
                )
            self._check_finishers(cursor, race_id, finish_order)

            winner = finish_order[0]
            outcomes: list[tuple[dict, str, float]] = []
            still_pending = 0
            leg_results: dict[int, int | None] = {}
            for bet in self._pending_bets_touching(cursor, race_id):
                bt = KareraBetType(bet["bet_type"])
                if bt.is_multi_leg:
                    if not leg_hit(bet["combinations"], race_id, winner):
                        outcomes.append((bet, BetStatus.LOST.value, 0.0))
                        continue
                    verdict = self._multi_leg_verdict(cursor, bet, race_id, leg_results)
                    if verdict is None:
                        still_pending += 1
                        continue
                    hits = 1 if verdict else 0
                else:
                    hits = winning_combos(bt, bet["combinations"], finish_order)

                if hits == 0:
                    outcomes.append((bet, BetStatus.LOST.value, 0.0))
                    continue
                if bt.value not in odds_map:
                    raise ValidationError(
                        f"Missing odds for winning bet type {bt.value}.",
                        code=error_codes.MISSING_ODDS,
                    )
                payout = floor_centavo(
                    hits * bet["units"] * bet["unit_cost"] * odds_map[bt.value]
                )
                outcomes.append((bet, BetStatus.WON.value, payout))

            won = lost = 0
            payout_total = 0.0
            for bet, bet_status, payout in outcomes:
                cursor.execute(
                    """
                    UPDATE karera_bets
                    SET status = ?, payout = ?, settled_at = CURRENT_TIMESTAMP
                    WHERE bet_id = ? AND status = 'pending'
                    """,
                    (bet_status, payout, bet["bet_id"]),
                )
                if bet_status == BetStatus.WON.value:
                    won += 1
                    payout_total += payout
                    if payout > 0:
                        self._apply_balance_delta(
                            cursor,
                            user_id=bet["user_id"],
                            delta=payout,
                            tx_type=TransactionType.PAYOUT.value,
                            sender_id=None,
                            receiver_id=bet["user_id"],
                            reference=f"karera_bet:{bet['bet_id']}",
                        )
                else:
                    lost += 1

            summary = {
                "settled": len(outcomes),
                "won": won,
                "lost": lost,
                "payout_total": round(payout_total, 2),
                "pending_multi_leg": still_pending,
            }
            if status is not MatchStatus.FINISHED:
                result = {"finish_order": finish_order, "odds": odds_map, **summary}
                cursor.execute(
                    """
                    UPDATE karera_races
                    SET status = ?, result_json = ?, settled_at = CURRENT_TIMESTAMP
                    WHERE race_id = ?
                    """,
                    (MatchStatus.FINISHED.value, json.dumps(result, sort_keys=True), race_id),
                )
        return summary

    def cancel_race_atomic(self, race_id: int) -> dict:
        """Cancel a race, refunding its pending tickets and every multi-leg ticket with a leg on it."""
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            race = self._fetch_race(cursor, race_id)
            status = MatchStatus(race["status"])
            if status is MatchStatus.CANCELLED:
                return {"refunded": 0, "refund_total": 0.0}
            if status.is_terminal:
                raise InvalidStateTransition(
                    f"Cannot cancel race {race_id} in status '{status.value}'."
                )
            bets = self._pending_bets_touching(cursor, race_id)
            refund_total = self._refund_bets(cursor, bets)
            cursor.execute(
                "UPDATE karera_races SET status = ?, settled_at = CURRENT_TIMESTAMP WHERE race_id = ?",
                (MatchStatus.CANCELLED.value, race_id),
            )
        return {"refunded": len(bets), "refund_total": refund_total}

    # --- helpers (caller owns the cursor) ---

    @staticmethod
    def _fetch_race(cursor, race_id: int):
        cursor.execute("SELECT * FROM karera_races WHERE race_id = ?", (race_id,))
        row = cursor.fetchone()
        if not row:
            raise NotFoundError(f"Race {race_id} not found.", code=error_codes.RACE_NOT_FOUND)
        return row

    @staticmethod
    def _check_open(race) -> None:
        if not MatchStatus(race["status"]).accepts_bets:
            raise InvalidStateTransition(
                f"Betting is closed for race {race['race_id']}.", code=error_codes.BETTING_CLOSED
            )

    @staticmethod
    def _check_horses(cursor, race_id: int, horses: set[int]) -> None:
        cursor.execute(
            "SELECT horse_number, status FROM karera_horses WHERE race_id = ?", (race_id,)
        )
        statuses = {row["horse_number"]: row["status"] for row in cursor.fetchall()}
        for horse in sorted(horses):
            if horse not in statuses:
                raise ValidationError(
                    f"Horse {horse} is not in race {race_id}.", code=error_codes.INVALID_SELECTION
                )
            if statuses[horse] == HORSE_SCRATCHED:
                raise ValidationError(
                    f"Horse {horse} in race {race_id} is scratched.",
                    code=error_codes.HORSE_SCRATCHED,
                )

    def _check_finishers(self, cursor, race_id: int, finish_order: list[int]) -> None:
        if not finish_order:
            raise ValidationError("Finish order cannot be empty.")
        if len(set(finish_order)) != len(finish_order):
            raise ValidationError("Finishers must be unique.")
        self._check_horses(cursor, race_id, set(finish_order))

    @staticmethod
    def _add_win_sales(cursor, race_id: int, horses: list[int], per_horse: float) -> None:
        cursor.executemany(
            """
            UPDATE karera_horses SET total_bet = total_bet + ?
            WHERE race_id = ? AND horse_number = ?
            """,
            [(per_horse, race_id, horse) for horse in horses],
        )

    def _pending_bets_touching(self, cursor, race_id: int) -> list[dict]:
        cursor.execute(
            """
            SELECT * FROM karera_bets
            WHERE status = ?
              AND (race_id = ? OR bet_id IN (SELECT bet_id FROM karera_bet_legs WHERE race_id = ?))
            ORDER BY bet_id
            """,
            (BetStatus.PENDING.value, race_id, race_id),
        )
        return [self._row_to_bet(row) for row in cursor.fetchall()]

    def _refund_bets(self, cursor, bets: list[dict]) -> float:
        refund_total = 0.0
        for bet in bets:
            self._apply_balance_delta(
                cursor,
                user_id=bet["user_id"],
                delta=bet["amount"],
                tx_type=TransactionType.REFUND.value,
                sender_id=None,
                receiver_id=bet["user_id"],
                reference=f"karera_bet:{bet['bet_id']}",
            )
            cursor.execute(
                """
                UPDATE karera_bets
                SET status = ?, settled_at = CURRENT_TIMESTAMP
                WHERE bet_id = ? AND status = 'pending'
                """,
                (BetStatus.CANCELLED.value, bet["bet_id"]),
            )
            if bet["bet_type"] == KareraBetType.WIN.value:
                self._add_win_sales(
                    cursor,
                    bet["race_id"],
                    bet["combinations"]["horses"],
                    -bet["units"] * bet["unit_cost"],
                )
            refund_total += bet["amount"]
        return round(refund_total, 2)

    def _multi_leg_verdict(
        self, cursor, bet: dict, race_id: int, leg_results: dict[int, int | None]
    ) -> bool | None:
        """
        True when every other leg finished with a hit, False on a missed leg,
        None while some leg race is still to be run.
        """
        unresolved = False
        for leg in bet["combinations"].get("legs", []):
            leg_race_id = leg["race_id"]
            if leg_race_id == race_id:
                continue
            if leg_race_id not in leg_results:
                race = self._fetch_race(cursor, leg_race_id)
                result = json.loads(race["result_json"] or "{}")
                finish = result.get("finish_order") or []
                finished = race["status"] == MatchStatus.FINISHED.value and finish
                leg_results[leg_race_id] = finish[0] if finished else None
            leg_winner = leg_results[leg_race_id]
            if leg_winner is None:
                unresolved = True
            elif leg_winner not in leg["horses"]:
                return False
        return None if unresolved else True

    @staticmethod
    def _row_to_race(row) -> dict:
        race = dict(row)
        race["bet_types"] = json.loads(race["bet_types"])
        race["result"] = json.loads(race["result_json"]) if race.get("result_json") else None
        return race

    @staticmethod
    def _row_to_bet(row) -> dict:
        bet = dict(row)
        bet["combinations"] = json.loads(bet["combinations_json"])
        return bet
