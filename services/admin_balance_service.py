"""
Admin balance adjustments: loading credits and transferring from the admin wallet.

The balance change is the operation; the transaction row and the admin log
entry that follow are best-effort. If either write fails the call still
succeeds and reports a warning, so an operator can repair the trail.
"""

import logging
import math

from domain.models.match import TransactionType
from repositories.interfaces import IAdminLogRepository, IProfileRepository
from services import error_codes
from services.exceptions import SettlementError
from services.permissions import is_admin
from services.result import Result

logger = logging.getLogger("sabong.admin_balance")


class AdminBalanceService:
    """Balance operations reserved for admins."""

    def __init__(self, profile_repo: IProfileRepository, admin_log_repo: IAdminLogRepository):
        self.profile_repo = profile_repo
        self.admin_log_repo = admin_log_repo

    def add_balance(self, requester_id: int, target_id: int, amount: float) -> Result:
        """Mint credits into a user's wallet (a load)."""
        problem = self._check_request(requester_id, amount)
        if problem is not None:
            return problem
        target = self.profile_repo.get_by_id(target_id)
        if not target:
            return Result.fail("Target user not found.", code=error_codes.USER_NOT_FOUND)

        try:
            new_balance = self.profile_repo.adjust_balance(target_id, amount)
        except SettlementError as exc:
            return Result.fail(str(exc), code=exc.code)
        logger.info(f"Admin {requester_id} loaded {amount:.2f} to user {target_id}")

        warnings = []
        self._record_transaction(
            warnings,
            tx_type=TransactionType.LOAD,
            amount=amount,
            sender_id=requester_id,
            receiver_id=target_id,
            balance_after=new_balance,
        )
        self._log_action(warnings, requester_id, "add_balance", target, amount, new_balance)
        return Result.ok({"user_id": target_id, "new_balance": new_balance}, warnings=warnings)

    def transfer_balance(self, requester_id: int, target_id: int, amount: float) -> Result:
        """Move credits from the admin's own wallet to a user."""
        problem = self._check_request(requester_id, amount)
        if problem is not None:
            return problem
        if requester_id == target_id:
            return Result.fail("Cannot transfer to yourself.", code=error_codes.VALIDATION_ERROR)
        target = self.profile_repo.get_by_id(target_id)
        if not target:
            return Result.fail("Target user not found.", code=error_codes.USER_NOT_FOUND)

        try:
            sender_balance, receiver_balance = self.profile_repo.move_balance(
                requester_id, target_id, amount
            )
        except SettlementError as exc:
            return Result.fail(str(exc), code=exc.code)
        logger.info(f"Admin {requester_id} transferred {amount:.2f} to user {target_id}")

        warnings = []
        self._record_transaction(
            warnings,
            tx_type=TransactionType.TRANSFER,
            amount=amount,
            sender_id=requester_id,
            receiver_id=target_id,
            balance_after=sender_balance,
        )
        self._log_action(warnings, requester_id, "transfer_balance", target, amount, receiver_balance)
        return Result.ok(
            {
                "user_id": target_id,
                "new_balance": receiver_balance,
                "sender_balance": sender_balance,
            },
            warnings=warnings,
        )

    def _check_request(self, requester_id: int, amount: float) -> Result | None:
        requester = self.profile_repo.get_by_id(requester_id)
        if not is_admin(requester):
            return Result.fail("Only admins can adjust balances.", code=error_codes.PERMISSION_DENIED)
        if amount is None or not math.isfinite(amount) or amount <= 0:
            return Result.fail("Amount must be positive.", code=error_codes.VALIDATION_ERROR)
        return None

    def _record_transaction(
        self,
        warnings: list[str],
        *,
        tx_type: TransactionType,
        amount: float,
        sender_id: int,
        receiver_id: int,
        balance_after: float,
    ) -> None:
        try:
            self.profile_repo.record_transaction(
                tx_type.value,
                amount,
                sender_id,
                receiver_id,
                balance_after=balance_after,
                reference="admin",
            )
        except Exception as exc:
            logger.warning(f"Balance changed but {tx_type.value} transaction not recorded: {exc}")
            warnings.append("Balance updated but the transaction record could not be written.")

    def _log_action(
        self,
        warnings: list[str],
        admin_id: int,
        action_type: str,
        target: dict,
        amount: float,
        new_balance: float,
    ) -> None:
        try:
            self.admin_log_repo.log_action(
                admin_id,
                action_type,
                target_id=target["user_id"],
                target_name=target["username"],
                details={"amount": amount, "new_balance": new_balance},
            )
        except Exception as exc:
            logger.warning(f"Failed to write admin log for {action_type}: {exc}")
            warnings.append("Balance updated but the admin log entry could not be written.")
