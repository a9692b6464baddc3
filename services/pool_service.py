"""
Pool ledger service: house liquidity, snapshots and live odds.

User stakes go through BettingService; bot and injected stakes enter the
same pool buckets here, tagged with their source.
"""

from __future__ import annotations

import logging

from domain.models.match import BetSource, MatchStatus
from domain.models.pool import PoolSnapshot
from domain.services.odds_calculator import odds_board
from repositories.interfaces import IMatchRepository
from services import error_codes
from services.exceptions import LedgerInconsistency, NotFoundError
from services.settings_service import SettingsService
from utils.formatting import format_odds_board

logger = logging.getLogger("sabong.pool")


class PoolService:
    """Reads and feeds the per-selection pool buckets of sabong matches."""

    def __init__(self, match_repo: IMatchRepository, settings_service: SettingsService):
        self.match_repo = match_repo
        self.settings_service = settings_service

    def record_stake(
        self,
        match_id: int,
        selection: str,
        amount: float,
        source: BetSource,
        user_id: int | None = None,
    ) -> int:
        """
        Book a stake into the pool under its source bucket.

        Returns:
            The bet_id created for the stake
        """
        bet_id = self.match_repo.place_bet_atomic(
            match_id=match_id,
            user_id=user_id,
            selection=selection,
            amount=amount,
            source=source.value,
        )
        logger.info(
            f"Stake recorded: match={match_id} selection={selection} "
            f"amount={amount:.2f} source={source.value} bet={bet_id}"
        )
        return bet_id

    def place_bot_bet(self, match_id: int, selection: str, amount: float) -> int:
        return self.record_stake(match_id, selection, amount, BetSource.BOT)

    def inject(self, match_id: int, selection: str, amount: float) -> int:
        """Seed house liquidity on a selection."""
        return self.record_stake(match_id, selection, amount, BetSource.INJECTION)

    def commission_rate_for(self, match: dict) -> float:
        """Frozen rate once betting closed, the live plasada rate before that."""
        if match["commission_rate"] is not None and not MatchStatus(match["status"]).accepts_bets:
            return float(match["commission_rate"])
        return self.settings_service.get_plasada_rate()

    def snapshot(self, match_id: int) -> PoolSnapshot:
        match = self._require_match(match_id)
        return self.match_repo.get_pool_snapshot(match_id, self.commission_rate_for(match))

    def verify(self, match_id: int) -> None:
        """
        Raises:
            LedgerInconsistency: If buckets, grand totals and bet rows disagree
        """
        try:
            self.match_repo.verify_pool(match_id)
        except LedgerInconsistency as exc:
            logger.error(f"Pool ledger check failed for match {match_id}: {exc}")
            raise

    def live_odds(self, match_id: int) -> dict[str, float]:
        """Decimal odds per selection, computed the same way settlement pays."""
        snap = self.snapshot(match_id)
        totals = {selection: snap.side_total(selection) for selection in snap.selections}
        return odds_board(totals, snap.commission_rate)

    def odds_lines(self, match_id: int, odds_format: str = "decimal") -> list[str]:
        snap = self.snapshot(match_id)
        totals = {selection: snap.side_total(selection) for selection in snap.selections}
        return format_odds_board(totals, odds_board(totals, snap.commission_rate), odds_format)

    def _require_match(self, match_id: int) -> dict:
        match = self.match_repo.get_match(match_id)
        if not match:
            raise NotFoundError(f"Match {match_id} not found.", code=error_codes.MATCH_NOT_FOUND)
        return match
