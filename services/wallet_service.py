"""
Wallet ledger: balances backed by an append-only transaction log.
"""

import logging
import math

from domain.models.match import SENDER_DEBIT_TYPES, TransactionType
from repositories.interfaces import IProfileRepository
from services.exceptions import ValidationError

logger = logging.getLogger("sabong.wallet")

# Types that put money into the receiving wallet
CREDIT_TYPES = (
    TransactionType.LOAD,
    TransactionType.PAYOUT,
    TransactionType.REFUND,
)


def _require_positive(amount: float) -> float:
    if amount is None or not math.isfinite(amount) or amount <= 0:
        raise ValidationError(f"Amount must be a positive number, got {amount!r}")
    return float(amount)


class WalletService:
    """Credits, debits and transfers, each paired with exactly one ledger row."""

    def __init__(self, profile_repo: IProfileRepository):
        self.profile_repo = profile_repo

    def get_balance(self, user_id: int) -> float:
        return self.profile_repo.get_balance(user_id)

    def credit(
        self,
        user_id: int,
        amount: float,
        tx_type: TransactionType = TransactionType.LOAD,
        sender_id: int | None = None,
        reference: str | None = None,
    ) -> float:
        """Add funds to a wallet. Returns the new balance."""
        amount = _require_positive(amount)
        if tx_type not in CREDIT_TYPES:
            raise ValidationError(f"{tx_type.value} is not a credit transaction type")
        balance = self.profile_repo.apply_balance_change(
            user_id,
            amount,
            tx_type.value,
            sender_id=sender_id,
            receiver_id=user_id,
            reference=reference,
        )
        logger.info(f"Credited {amount:.2f} ({tx_type.value}) to user {user_id}")
        return balance

    def debit(
        self,
        user_id: int,
        amount: float,
        tx_type: TransactionType = TransactionType.WITHDRAW,
        reference: str | None = None,
    ) -> float:
        """
        Take funds out of a wallet. Returns the new balance.

        Raises:
            InsufficientBalance: If the wallet holds less than amount
        """
        amount = _require_positive(amount)
        if tx_type not in SENDER_DEBIT_TYPES or tx_type is TransactionType.TRANSFER:
            raise ValidationError(f"{tx_type.value} is not a debit transaction type")
        balance = self.profile_repo.apply_balance_change(
            user_id,
            -amount,
            tx_type.value,
            sender_id=user_id,
            receiver_id=None,
            reference=reference,
        )
        logger.info(f"Debited {amount:.2f} ({tx_type.value}) from user {user_id}")
        return balance

    def transfer(
        self, sender_id: int, receiver_id: int, amount: float, reference: str | None = None
    ) -> tuple[float, float]:
        """Move funds between two wallets. Returns (sender_balance, receiver_balance)."""
        amount = _require_positive(amount)
        balances = self.profile_repo.transfer_atomic(sender_id, receiver_id, amount, reference)
        logger.info(f"Transferred {amount:.2f} from {sender_id} to {receiver_id}")
        return balances

    def get_transactions(self, user_id: int, limit: int = 50) -> list[dict]:
        return self.profile_repo.get_transactions(user_id, limit)

    def commission_summary(self, user_id: int) -> dict:
        """
        Settlement commission earned by an agent, master agent or admin.

        Returns:
            Dict with total and by_source (user_id, username, total, bets per bettor)
        """
        self.profile_repo.get_balance(user_id)  # NotFoundError for unknown users
        by_source = self.profile_repo.get_commission_earnings(user_id)
        return {
            "user_id": user_id,
            "total": round(sum(row["total"] for row in by_source), 2),
            "by_source": by_source,
        }

    def reconcile(self, user_id: int) -> dict:
        """
        Compare the stored balance with the ledger net (credits - debits).

        Returns:
            Dict with balance, credits, debits, ledger_net, difference and
            consistent (difference below one centavo)
        """
        totals = self.profile_repo.get_ledger_totals(user_id)
        balance = self.profile_repo.get_balance(user_id)
        ledger_net = round(totals["credits"] - totals["debits"], 2)
        difference = round(balance - ledger_net, 2)
        consistent = abs(difference) < 0.01
        if not consistent:
            logger.warning(
                f"Wallet {user_id} out of balance: stored {balance:.2f}, ledger {ledger_net:.2f}"
            )
        return {
            "user_id": user_id,
            "balance": balance,
            "credits": totals["credits"],
            "debits": totals["debits"],
            "ledger_net": ledger_net,
            "difference": difference,
            "consistent": consistent,
        }
