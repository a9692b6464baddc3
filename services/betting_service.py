"""
Handles user betting on sabong matches.
"""

import logging
import math

import config
from domain.models.match import BetSource
from repositories.interfaces import IMatchRepository
from services import error_codes
from services.exceptions import ValidationError
from services.pool_service import PoolService

logger = logging.getLogger("sabong.betting")


class BettingService:
    """Validates user stakes and books them into the pool with the wallet debit."""

    def __init__(
        self,
        match_repo: IMatchRepository,
        pool_service: PoolService,
        min_bet: float | None = None,
    ):
        self.match_repo = match_repo
        self.pool_service = pool_service
        self.min_bet = min_bet if min_bet is not None else config.MIN_BET_AMOUNT

    def place_bet(self, user_id: int, match_id: int, selection: str, amount: float) -> int:
        """
        Place a user bet.

        The balance check, wallet debit, bet insert and pool increment happen
        in one transaction; a bet arriving after betting closed is rejected.

        Returns:
            The new bet_id
        """
        if amount is None or not math.isfinite(amount) or amount <= 0:
            raise ValidationError("Bet amount must be positive.")
        if amount < self.min_bet:
            raise ValidationError(f"Minimum bet is {self.min_bet:.2f}.")
        if round(amount, 2) != amount:
            raise ValidationError("Bet amount cannot have fractions of a centavo.")
        selection = (selection or "").strip().lower()
        if not selection:
            raise ValidationError("Selection is required.", code=error_codes.INVALID_SELECTION)

        return self.pool_service.record_stake(
            match_id, selection, amount, BetSource.USER, user_id=user_id
        )

    def get_user_bets(self, user_id: int, limit: int = 50) -> list[dict]:
        return self.match_repo.get_user_bets(user_id, limit)
