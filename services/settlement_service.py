"""
Sabong settlement engine: match lifecycle, winner announcement and cancellation.
"""

import logging

import config
from domain.models.match import MatchStatus, can_transition
from domain.models.pool import PoolSnapshot
from repositories.interfaces import IMatchRepository
from services import error_codes
from services.exceptions import InvalidStateTransition, LedgerInconsistency, NotFoundError, ValidationError
from services.settings_service import SettingsService

logger = logging.getLogger("sabong.settlement")


class SettlementService:
    """
    Drives a match through open -> last_call -> closed -> ongoing -> finished,
    or to cancelled from any non-terminal status.

    Settlement pays from the pool snapshot frozen when betting closed, with
    the plasada rate in effect at that moment.
    """

    def __init__(
        self,
        match_repo: IMatchRepository,
        settings_service: SettingsService,
        selections: list[str] | None = None,
        verify_ledger: bool | None = None,
    ):
        self.match_repo = match_repo
        self.settings_service = settings_service
        self.selections = selections or list(config.SABONG_SELECTIONS)
        self.verify_ledger = (
            verify_ledger if verify_ledger is not None else config.VERIFY_LEDGER_ON_SETTLE
        )

    def create_match(
        self, meron_name: str, wala_name: str, selections: list[str] | None = None
    ) -> int:
        meron_name = (meron_name or "").strip()
        wala_name = (wala_name or "").strip()
        if not meron_name or not wala_name:
            raise ValidationError("Both corners need an entry name.")
        selections = [(s or "").strip().lower() for s in (selections or self.selections)]
        if not all(selections):
            raise ValidationError(
                "Selection names cannot be blank.", code=error_codes.INVALID_SELECTION
            )
        match_id = self.match_repo.create_match(meron_name, wala_name, selections)
        logger.info(f"Match {match_id} opened: {meron_name} vs {wala_name}")
        return match_id

    def get_match(self, match_id: int) -> dict:
        match = self.match_repo.get_match(match_id)
        if not match:
            raise NotFoundError(f"Match {match_id} not found.", code=error_codes.MATCH_NOT_FOUND)
        return match

    def set_last_call(self, match_id: int) -> None:
        self._transition(match_id, MatchStatus.LAST_CALL)

    def close_betting(self, match_id: int) -> PoolSnapshot:
        """Stop new stakes and freeze the pool with the current plasada rate and commission split."""
        rate = self.settings_service.get_plasada_rate()
        shares = self.settings_service.get_commission_shares()
        snapshot = self.match_repo.close_betting_atomic(match_id, rate, shares)
        logger.info(
            f"Betting closed on match {match_id}: pool={snapshot.total_pool:.2f} "
            f"(injected {snapshot.injected_total:.2f}) rate={rate}"
        )
        return snapshot

    def start_fight(self, match_id: int) -> None:
        self._transition(match_id, MatchStatus.ONGOING)

    def announce_winner(self, match_id: int, winner: str) -> dict:
        """
        Declare the winning selection and settle every pending bet.

        Safe to call again with the same winner: bets already settled are
        never touched, so the repeat credits nothing.

        Returns:
            Dict with settled, won, lost, payout_total, credited_total and
            commission_total (paid to the bettors' uplines)
        """
        winner = (winner or "").strip().lower()
        try:
            summary = self.match_repo.settle_match_atomic(
                match_id, winner, verify_ledger=self.verify_ledger
            )
        except LedgerInconsistency as exc:
            logger.error(f"Settlement aborted for match {match_id}: {exc}")
            raise
        logger.info(
            f"Match {match_id} settled, winner={winner}: {summary['settled']} bets "
            f"({summary['won']} won, {summary['lost']} lost), paid {summary['payout_total']:.2f}"
            f", commission {summary['commission_total']:.2f}"
        )
        return summary

    def cancel_match(self, match_id: int) -> int:
        """
        Cancel a match and refund every pending bet its exact stake.

        Returns:
            Number of bets refunded
        """
        summary = self.match_repo.cancel_match_atomic(match_id)
        logger.info(
            f"Match {match_id} cancelled: {summary['refunded']} bets refunded "
            f"({summary['refund_total']:.2f} to wallets)"
        )
        return summary["refunded"]

    def results_trend(self, limit: int | None = None) -> dict:
        """
        Tally the results board over finished and cancelled matches.

        Args:
            limit: Only the latest N results; all of them when None

        Returns:
            Dict with counts (one per selection plus cancelled) and sequence,
            the bead road of (match_id, result) oldest first
        """
        counts = {selection: 0 for selection in self.selections}
        counts[MatchStatus.CANCELLED.value] = 0
        sequence = []
        for row in self.match_repo.get_results_sequence(limit):
            if row["status"] == MatchStatus.CANCELLED.value:
                result = MatchStatus.CANCELLED.value
            else:
                result = row["winner"]
            counts[result] = counts.get(result, 0) + 1
            sequence.append({"match_id": row["match_id"], "result": result})
        return {"counts": counts, "sequence": sequence}

    def _transition(self, match_id: int, target: MatchStatus) -> None:
        match = self.get_match(match_id)
        current = MatchStatus(match["status"])
        if not can_transition(current, target):
            raise InvalidStateTransition(
                f"Match {match_id} cannot move from '{current.value}' to '{target.value}'."
            )
        if not self.match_repo.transition_status(match_id, [current.value], target.value):
            raise InvalidStateTransition(f"Match {match_id} changed status concurrently.")
        logger.info(f"Match {match_id}: {current.value} -> {target.value}")
