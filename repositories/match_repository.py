"""
Repository for sabong matches, their pool ledger and bets.
"""

import json
import logging
import math

from domain.models.match import BetSource, BetStatus, MatchStatus, TransactionType
from domain.models.pool import PoolSnapshot, SelectionTotals
from domain.services.commission_split import split_commission
from domain.services.odds_calculator import payout_for_stake
from repositories.base_repository import SOURCE_COLUMNS, BaseRepository
from repositories.interfaces import IMatchRepository
from services import error_codes
from services.exceptions import (
    InvalidStateTransition,
    LedgerInconsistency,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger("sabong.repositories.match")

# Float noise allowed when comparing summed peso amounts
LEDGER_EPSILON = 1e-6


class MatchRepository(BaseRepository, IMatchRepository):
    """
    Handles match, pool and bet database operations.

    Responsibilities:
    - Match lifecycle rows and the frozen pool snapshot
    - Pool buckets (user/bot/injection/grand) per selection
    - Atomic bet placement, settlement and cancellation
    """

    def create_match(self, meron_name: str, wala_name: str, selections: list[str]) -> int:
        if not selections or len(set(selections)) != len(selections):
            raise ValidationError("A match needs at least one selection, without duplicates.")
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO matches (meron_name, wala_name, status) VALUES (?, ?, ?)",
                (meron_name, wala_name, MatchStatus.OPEN.value),
            )
            match_id = cursor.lastrowid
            cursor.executemany(
                "INSERT INTO match_pools (match_id, selection) VALUES (?, ?)",
                [(match_id, selection) for selection in selections],
            )
            return match_id

    def get_match(self, match_id: int) -> dict | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM matches WHERE match_id = ?", (match_id,))
            row = cursor.fetchone()
            return dict(row) if row else None

    def get_recent_finished(self, limit: int = 5) -> list[dict]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT * FROM matches
                WHERE status = ?
                ORDER BY settled_at DESC, match_id DESC
                LIMIT ?
                """,
                (MatchStatus.FINISHED.value, limit),
            )
            return [dict(row) for row in cursor.fetchall()]

    def get_results_sequence(self, limit: int | None = None) -> list[dict]:
        """Finished and cancelled matches, oldest first. With a limit, only the latest ones."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT match_id, status, winner, settled_at FROM matches
                WHERE status IN (?, ?)
                ORDER BY match_id DESC
                LIMIT ?
                """,
                (MatchStatus.FINISHED.value, MatchStatus.CANCELLED.value, limit or -1),
            )
            rows = [dict(row) for row in cursor.fetchall()]
        rows.reverse()
        return rows

    def transition_status(self, match_id: int, from_statuses: list[str], to_status: str) -> bool:
        """Compare-and-set the status. Returns False if the match was not in from_statuses."""
        placeholders = ",".join("?" * len(from_statuses))
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"UPDATE matches SET status = ? WHERE match_id = ? AND status IN ({placeholders})",
                (to_status, match_id, *from_statuses),
            )
            return cursor.rowcount > 0

    def close_betting_atomic(
        self,
        match_id: int,
        commission_rate: float,
        commission_shares: dict[str, float] | None = None,
    ) -> PoolSnapshot:
        """
        Stop accepting bets and freeze the pool with the plasada rate in effect.

        The agent commission shares are frozen alongside the rate and paid
        from them at settlement.

        The snapshot is read under the same write lock that flips the status,
        so no stake can land between the two.
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            match = self._fetch_match(cursor, match_id)
            status = MatchStatus(match["status"])
            if not status.accepts_bets:
                raise InvalidStateTransition(
                    f"Cannot close betting on match {match_id} in status '{status.value}'."
                )
            snapshot = self._read_snapshot(cursor, match_id, commission_rate)
            cursor.execute(
                """
                UPDATE matches
                SET status = ?, commission_rate = ?, snapshot_json = ?, commission_shares_json = ?,
                    closed_at = CURRENT_TIMESTAMP
                WHERE match_id = ?
                """,
                (
                    MatchStatus.CLOSED.value,
                    commission_rate,
                    snapshot.to_json(),
                    json.dumps(commission_shares or {}),
                    match_id,
                ),
            )
            return snapshot

    def place_bet_atomic(
        self,
        *,
        match_id: int,
        user_id: int | None,
        selection: str,
        amount: float,
        source: str = "user",
    ) -> int:
        """
        Atomically place a stake:
        - ensure the match is still accepting bets
        - for user stakes, ensure the bettor is active and debit the wallet
        - insert the bet row
        - increment the source bucket and the grand total of the selection

        House stakes (bot/injection) carry no user_id and move no wallet.
        """
        if source not in SOURCE_COLUMNS:
            raise ValidationError(f"Unknown stake source '{source}'.")
        if amount is None or not math.isfinite(amount) or amount <= 0:
            raise ValidationError("Bet amount must be positive.")
        is_house = BetSource(source).is_house
        if is_house and user_id is not None:
            raise ValidationError("House stakes cannot belong to a user.")
        if not is_house and user_id is None:
            raise ValidationError("User stakes need a user_id.")

        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            match = self._fetch_match(cursor, match_id)
            if not MatchStatus(match["status"]).accepts_bets:
                raise InvalidStateTransition(
                    f"Betting is closed for match {match_id}.", code=error_codes.BETTING_CLOSED
                )
            cursor.execute(
                "SELECT 1 FROM match_pools WHERE match_id = ? AND selection = ?",
                (match_id, selection),
            )
            if not cursor.fetchone():
                raise ValidationError(
                    f"Invalid selection '{selection}'.", code=error_codes.INVALID_SELECTION
                )
            if user_id is not None:
                self._require_active_bettor(cursor, user_id)

            cursor.execute(
                """
                INSERT INTO bets (match_id, user_id, selection, amount, source, status)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (match_id, user_id, selection, amount, source, BetStatus.PENDING.value),
            )
            bet_id = cursor.lastrowid

            if user_id is not None:
                self._apply_balance_delta(
                    cursor,
                    user_id=user_id,
                    delta=-amount,
                    tx_type=TransactionType.BET.value,
                    sender_id=user_id,
                    receiver_id=None,
                    reference=f"bet:{bet_id}",
                )
            self._increment_pool(cursor, match_id, selection, amount, source)
            return bet_id

    def get_pool_snapshot(self, match_id: int, commission_rate: float) -> PoolSnapshot:
        with self.connection() as conn:
            cursor = conn.cursor()
            self._fetch_match(cursor, match_id)
            return self._read_snapshot(cursor, match_id, commission_rate)

    def verify_pool(self, match_id: int) -> None:
        """Raise LedgerInconsistency if the pool buckets disagree with each other or the bets."""
        with self.connection() as conn:
            cursor = conn.cursor()
            self._fetch_match(cursor, match_id)
            self._verify_pool(cursor, match_id)

    def get_bets(self, match_id: int, status: str | None = None) -> list[dict]:
        with self.connection() as conn:
            cursor = conn.cursor()
            if status is None:
                cursor.execute(
                    "SELECT * FROM bets WHERE match_id = ? ORDER BY bet_id", (match_id,)
                )
            else:
                cursor.execute(
                    "SELECT * FROM bets WHERE match_id = ? AND status = ? ORDER BY bet_id",
                    (match_id, status),
                )
            return [dict(row) for row in cursor.fetchall()]

    def get_user_bets(self, user_id: int, limit: int = 50) -> list[dict]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM bets WHERE user_id = ? ORDER BY bet_id DESC LIMIT ?",
                (user_id, limit),
            )
            return [dict(row) for row in cursor.fetchall()]

    def settle_match_atomic(self, match_id: int, winner: str, verify_ledger: bool = True) -> dict:
        """
        Atomically settle every pending bet of a match against the frozen snapshot.

        A finished match with the same winner is resumed: only bets still
        pending are touched, so a repeat call credits nothing new.

        Returns:
            Dict with settled/won/lost counts, payout_total (all winning bets),
            credited_total (human wallets only) and commission_total (uplines)
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            match = self._fetch_match(cursor, match_id)
            status = MatchStatus(match["status"])
            if status is MatchStatus.FINISHED:
                if match["winner"] != winner:
                    raise InvalidStateTransition(
                        f"Match {match_id} already finished with winner '{match['winner']}'."
                    )
            elif not status.can_settle:
                raise InvalidStateTransition(
                    f"Cannot announce a winner for match {match_id} in status '{status.value}'."
                )

            if not match["snapshot_json"]:
                raise LedgerInconsistency(f"Match {match_id} has no frozen pool snapshot.")
            snapshot = PoolSnapshot.from_json(match["snapshot_json"])
            if winner not in snapshot.selections:
                raise ValidationError(
                    f"Invalid winner '{winner}'.", code=error_codes.INVALID_SELECTION
                )

            if verify_ledger:
                self._verify_pool(cursor, match_id)
                self._verify_snapshot(cursor, snapshot)

            side_total = snapshot.side_total(winner)
            total_pool = snapshot.total_pool

            cursor.execute(
                """
                SELECT bet_id, user_id, selection, amount, source
                FROM bets
                WHERE match_id = ? AND status = ?
                """,
                (match_id, BetStatus.PENDING.value),
            )
            bets = cursor.fetchall()

            shares = json.loads(match["commission_shares_json"] or "{}")
            chains: dict[int, list[dict]] = {}

            updates: list[tuple[str, float, int]] = []
            won = lost = 0
            payout_total = credited_total = commission_total = 0.0
            for bet in bets:
                if bet["user_id"] is not None and shares:
                    commission_total += self._pay_commissions(cursor, bet, shares, chains)
                if bet["selection"] == winner:
                    payout = payout_for_stake(
                        bet["amount"], side_total, total_pool, snapshot.commission_rate
                    )
                    updates.append((BetStatus.WON.value, payout, bet["bet_id"]))
                    won += 1
                    payout_total += payout
                    if bet["user_id"] is not None and payout > 0:
                        self._apply_balance_delta(
                            cursor,
                            user_id=bet["user_id"],
                            delta=payout,
                            tx_type=TransactionType.PAYOUT.value,
                            sender_id=None,
                            receiver_id=bet["user_id"],
                            reference=f"bet:{bet['bet_id']}",
                        )
                        credited_total += payout
                else:
                    updates.append((BetStatus.LOST.value, 0.0, bet["bet_id"]))
                    lost += 1

            if updates:
                cursor.executemany(
                    """
                    UPDATE bets
                    SET status = ?, payout = ?, settled_at = CURRENT_TIMESTAMP
                    WHERE bet_id = ? AND status = 'pending'
                    """,
                    updates,
                )

            cursor.execute(
                """
                UPDATE matches
                SET status = ?, winner = ?, settled_at = COALESCE(settled_at, CURRENT_TIMESTAMP)
                WHERE match_id = ?
                """,
                (MatchStatus.FINISHED.value, winner, match_id),
            )

        return {
            "settled": len(updates),
            "won": won,
            "lost": lost,
            "payout_total": round(payout_total, 2),
            "credited_total": round(credited_total, 2),
            "commission_total": round(commission_total, 2),
        }

    def cancel_match_atomic(self, match_id: int) -> dict:
        """
        Atomically cancel a match and refund every pending bet its full stake.

        Refunded stakes are also taken back out of the pool buckets so the
        pool keeps matching the non-cancelled bets. A cancelled match refunds
        nothing on a repeat call.
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            match = self._fetch_match(cursor, match_id)
            status = MatchStatus(match["status"])
            if status is MatchStatus.CANCELLED:
                return {"refunded": 0, "refund_total": 0.0}
            if status.is_terminal:
                raise InvalidStateTransition(
                    f"Cannot cancel match {match_id} in status '{status.value}'."
                )

            cursor.execute(
                """
                SELECT bet_id, user_id, selection, amount, source
                FROM bets
                WHERE match_id = ? AND status = ?
                """,
                (match_id, BetStatus.PENDING.value),
            )
            bets = cursor.fetchall()

            refund_total = 0.0
            for bet in bets:
                if bet["user_id"] is not None:
                    self._apply_balance_delta(
                        cursor,
                        user_id=bet["user_id"],
                        delta=bet["amount"],
                        tx_type=TransactionType.REFUND.value,
                        sender_id=None,
                        receiver_id=bet["user_id"],
                        reference=f"bet:{bet['bet_id']}",
                    )
                    refund_total += bet["amount"]
                self._increment_pool(
                    cursor, match_id, bet["selection"], -bet["amount"], bet["source"]
                )

            if bets:
                cursor.executemany(
                    """
                    UPDATE bets
                    SET status = ?, settled_at = CURRENT_TIMESTAMP
                    WHERE bet_id = ? AND status = 'pending'
                    """,
                    [(BetStatus.CANCELLED.value, bet["bet_id"]) for bet in bets],
                )

            cursor.execute(
                "UPDATE matches SET status = ?, settled_at = CURRENT_TIMESTAMP WHERE match_id = ?",
                (MatchStatus.CANCELLED.value, match_id),
            )

        return {"refunded": len(bets), "refund_total": round(refund_total, 2)}

    # --- helpers (caller owns the cursor) ---

    def _pay_commissions(self, cursor, bet, shares: dict, chains: dict) -> float:
        """Credit the bettor's uplines their shares of one settled stake."""
        user_id = bet["user_id"]
        if user_id not in chains:
            chains[user_id] = self._fetch_upline_chain(cursor, user_id)
        paid = 0.0
        for recipient_id, _key, amount in split_commission(bet["amount"], shares, chains[user_id]):
            self._apply_balance_delta(
                cursor,
                user_id=recipient_id,
                delta=amount,
                tx_type=TransactionType.COMMISSION.value,
                sender_id=user_id,
                receiver_id=recipient_id,
                reference=f"bet:{bet['bet_id']}",
            )
            paid += amount
        return paid

    @staticmethod
    def _fetch_upline_chain(cursor, user_id: int) -> list[dict]:
        """Profiles above a user, nearest first. Depth is capped against upline cycles."""
        cursor.execute(
            """
            WITH RECURSIVE chain(user_id, depth) AS (
                SELECT upline_id, 1 FROM profiles
                WHERE user_id = ? AND upline_id IS NOT NULL
                UNION ALL
                SELECT p.upline_id, c.depth + 1
                FROM profiles p JOIN chain c ON p.user_id = c.user_id
                WHERE p.upline_id IS NOT NULL AND c.depth < 16
            )
            SELECT p.user_id, p.role
            FROM chain c JOIN profiles p ON p.user_id = c.user_id
            ORDER BY c.depth
            """,
            (user_id,),
        )
        return [dict(row) for row in cursor.fetchall()]

    @staticmethod
    def _fetch_match(cursor, match_id: int):
        cursor.execute("SELECT * FROM matches WHERE match_id = ?", (match_id,))
        row = cursor.fetchone()
        if not row:
            raise NotFoundError(f"Match {match_id} not found.", code=error_codes.MATCH_NOT_FOUND)
        return row

    @staticmethod
    def _increment_pool(cursor, match_id: int, selection: str, amount: float, source: str) -> None:
        """Single-statement bucket increment; no read-modify-write."""
        column = SOURCE_COLUMNS[source]
        cursor.execute(
            f"""
            UPDATE match_pools
            SET {column} = {column} + ?, grand_total = grand_total + ?
            WHERE match_id = ? AND selection = ?
            """,
            (amount, amount, match_id, selection),
        )
        if cursor.rowcount != 1:
            raise ValidationError(
                f"Invalid selection '{selection}'.", code=error_codes.INVALID_SELECTION
            )

    @staticmethod
    def _read_snapshot(cursor, match_id: int, commission_rate: float) -> PoolSnapshot:
        cursor.execute(
            """
            SELECT selection, user_total, bot_total, injection_total, grand_total
            FROM match_pools
            WHERE match_id = ?
            ORDER BY rowid
            """,
            (match_id,),
        )
        selections = {
            row["selection"]: SelectionTotals(
                user=row["user_total"],
                bot=row["bot_total"],
                injection=row["injection_total"],
                grand=row["grand_total"],
            )
            for row in cursor.fetchall()
        }
        return PoolSnapshot(match_id=match_id, commission_rate=commission_rate, selections=selections)

    def _verify_pool(self, cursor, match_id: int) -> None:
        snapshot = self._read_snapshot(cursor, match_id, 0.0)
        cursor.execute(
            """
            SELECT selection, COALESCE(SUM(amount), 0) AS staked
            FROM bets
            WHERE match_id = ? AND status != ?
            GROUP BY selection
            """,
            (match_id, BetStatus.CANCELLED.value),
        )
        staked = {row["selection"]: row["staked"] for row in cursor.fetchall()}

        problems = []
        for selection in staked.keys() - snapshot.selections.keys():
            problems.append(f"bets on unknown selection '{selection}'")
        for selection, totals in snapshot.selections.items():
            if abs(totals.grand - totals.bucket_sum) > LEDGER_EPSILON:
                problems.append(
                    f"{selection}: grand {totals.grand} != buckets {totals.bucket_sum}"
                )
            bet_sum = staked.get(selection, 0.0)
            if abs(totals.grand - bet_sum) > LEDGER_EPSILON:
                problems.append(f"{selection}: grand {totals.grand} != bets {bet_sum}")
        if problems:
            raise LedgerInconsistency(
                f"Pool ledger mismatch for match {match_id}: " + "; ".join(sorted(problems))
            )

    def _verify_snapshot(self, cursor, snapshot: PoolSnapshot) -> None:
        live = self._read_snapshot(cursor, snapshot.match_id, snapshot.commission_rate)
        for selection, totals in snapshot.selections.items():
            if abs(live.side_total(selection) - totals.grand) > LEDGER_EPSILON:
                raise LedgerInconsistency(
                    f"Pool for match {snapshot.match_id} moved after closing on '{selection}'."
                )
