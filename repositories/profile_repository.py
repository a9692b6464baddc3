"""
Repository for profiles (wallet owners) and the transaction ledger.
"""

import logging

from domain.models.match import SENDER_DEBIT_TYPES, TransactionType
from repositories.base_repository import BaseRepository
from repositories.interfaces import IProfileRepository
from services.exceptions import ValidationError

logger = logging.getLogger("sabong.repositories.profile")

_PROFILE_COLUMNS = "user_id, username, role, upline_id, balance, COALESCE(is_banned, 0) AS is_banned, created_at"


class ProfileRepository(BaseRepository, IProfileRepository):
    """
    Handles profile and wallet database operations.

    Responsibilities:
    - Profile CRUD and the agent downline tree
    - Balance changes paired with transaction rows
    - Ledger totals for reconciliation
    """

    def add(
        self,
        username: str,
        role: str = "user",
        upline_id: int | None = None,
        balance: float = 0.0,
    ) -> int:
        """
        Create a profile.

        Returns:
            The new user_id
        """
        if balance < 0:
            raise ValidationError("Opening balance cannot be negative.")
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM profiles WHERE username = ?", (username,))
            if cursor.fetchone():
                raise ValidationError(f"Username '{username}' is already taken.")
            cursor.execute(
                """
                INSERT INTO profiles (username, role, upline_id, balance)
                VALUES (?, ?, ?, 0)
                """,
                (username, role, upline_id),
            )
            user_id = cursor.lastrowid
            # Opening balances go through the ledger like any other load
            if balance > 0:
                self._apply_balance_delta(
                    cursor,
                    user_id=user_id,
                    delta=balance,
                    tx_type=TransactionType.LOAD.value,
                    sender_id=None,
                    receiver_id=user_id,
                    reference="opening_balance",
                )
            return user_id

    def get_by_id(self, user_id: int) -> dict | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_PROFILE_COLUMNS} FROM profiles WHERE user_id = ?", (user_id,))
            row = cursor.fetchone()
            return self._row_to_profile(row) if row else None

    def get_direct_downline(self, upline_id: int) -> list[dict]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_PROFILE_COLUMNS} FROM profiles WHERE upline_id = ? ORDER BY user_id",
                (upline_id,),
            )
            return [self._row_to_profile(row) for row in cursor.fetchall()]

    def get_all_downline(self, upline_id: int) -> list[dict]:
        """Every profile below upline_id in the agent tree, nearest levels first."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                WITH RECURSIVE downline(user_id, depth) AS (
                    SELECT user_id, 1 FROM profiles WHERE upline_id = ?
                    UNION
                    SELECT p.user_id, d.depth + 1
                    FROM profiles p JOIN downline d ON p.upline_id = d.user_id
                )
                SELECT p.user_id, p.username, p.role, p.upline_id, p.balance,
                       COALESCE(p.is_banned, 0) AS is_banned, p.created_at, d.depth
                FROM downline d JOIN profiles p ON p.user_id = d.user_id
                ORDER BY d.depth, p.user_id
                """,
                (upline_id,),
            )
            return [self._row_to_profile(row) for row in cursor.fetchall()]

    def set_banned(self, user_id: int, banned: bool) -> bool:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE profiles
                SET is_banned = ?, updated_at = CURRENT_TIMESTAMP
                WHERE user_id = ?
                """,
                (1 if banned else 0, user_id),
            )
            return cursor.rowcount > 0

    def get_balance(self, user_id: int) -> float:
        with self.connection() as conn:
            return self._fetch_balance(conn.cursor(), user_id)

    def apply_balance_change(
        self,
        user_id: int,
        delta: float,
        tx_type: str,
        sender_id: int | None = None,
        receiver_id: int | None = None,
        reference: str | None = None,
    ) -> float:
        """
        Atomically change a balance and append the matching transaction row.

        Returns:
            The balance after the change
        """
        with self.atomic_transaction() as conn:
            return self._apply_balance_delta(
                conn.cursor(),
                user_id=user_id,
                delta=delta,
                tx_type=tx_type,
                sender_id=sender_id,
                receiver_id=receiver_id,
                reference=reference,
            )

    def adjust_balance(self, user_id: int, delta: float) -> float:
        """Change a balance without a transaction row. Callers record it separately."""
        with self.atomic_transaction() as conn:
            return self._adjust_balance(conn.cursor(), user_id, delta)

    def move_balance(self, sender_id: int, receiver_id: int, amount: float) -> tuple[float, float]:
        """
        Atomically move amount from sender to receiver.

        Returns:
            (sender_balance, receiver_balance) after the move
        """
        if amount <= 0:
            raise ValidationError("Transfer amount must be positive.")
        if sender_id == receiver_id:
            raise ValidationError("Cannot transfer to the same account.")
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            self._fetch_balance(cursor, receiver_id)
            sender_balance = self._adjust_balance(cursor, sender_id, -amount)
            receiver_balance = self._adjust_balance(cursor, receiver_id, amount)
            return sender_balance, receiver_balance

    def transfer_atomic(
        self, sender_id: int, receiver_id: int, amount: float, reference: str | None = None
    ) -> tuple[float, float]:
        """
        Atomically move amount between wallets with a single transfer row.

        balance_after on the row is the sender's balance.
        """
        if amount <= 0:
            raise ValidationError("Transfer amount must be positive.")
        if sender_id == receiver_id:
            raise ValidationError("Cannot transfer to the same account.")
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            self._fetch_balance(cursor, receiver_id)
            sender_balance = self._adjust_balance(cursor, sender_id, -amount)
            receiver_balance = self._adjust_balance(cursor, receiver_id, amount)
            self._insert_transaction(
                cursor,
                tx_type=TransactionType.TRANSFER.value,
                amount=amount,
                sender_id=sender_id,
                receiver_id=receiver_id,
                balance_after=sender_balance,
                reference=reference,
            )
            return sender_balance, receiver_balance

    def record_transaction(
        self,
        tx_type: str,
        amount: float,
        sender_id: int | None,
        receiver_id: int | None,
        balance_after: float | None = None,
        reference: str | None = None,
    ) -> int:
        with self.connection() as conn:
            return self._insert_transaction(
                conn.cursor(),
                tx_type=tx_type,
                amount=amount,
                sender_id=sender_id,
                receiver_id=receiver_id,
                balance_after=balance_after,
                reference=reference,
            )

    def get_transactions(self, user_id: int, limit: int = 50) -> list[dict]:
        """Most recent ledger rows where the user is sender or receiver."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT tx_id, type, sender_id, receiver_id, amount, balance_after,
                       reference, created_at
                FROM transactions
                WHERE sender_id = ? OR receiver_id = ?
                ORDER BY tx_id DESC
                LIMIT ?
                """,
                (user_id, user_id, limit),
            )
            return [dict(row) for row in cursor.fetchall()]

    def get_ledger_totals(self, user_id: int) -> dict:
        """
        Credits and debits recorded for a wallet.

        Credits are rows received by the user. Debits are rows sent by the
        user whose type actually draws on the sender's wallet (loads are
        minted, not debited).
        """
        debit_types = [t.value for t in SENDER_DEBIT_TYPES]
        placeholders = ",".join("?" * len(debit_types))
        with self.connection() as conn:
            cursor = conn.cursor()
            self._fetch_balance(cursor, user_id)
            cursor.execute(
                "SELECT COALESCE(SUM(amount), 0) AS total FROM transactions WHERE receiver_id = ?",
                (user_id,),
            )
            credits = float(cursor.fetchone()["total"])
            cursor.execute(
                f"""
                SELECT COALESCE(SUM(amount), 0) AS total
                FROM transactions
                WHERE sender_id = ? AND type IN ({placeholders})
                """,
                (user_id, *debit_types),
            )
            debits = float(cursor.fetchone()["total"])
        return {"credits": round(credits, 2), "debits": round(debits, 2)}

    def get_commission_earnings(self, user_id: int) -> list[dict]:
        """Commission received by a user, grouped by the bettor it came from, largest first."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT t.sender_id AS user_id, p.username,
                       ROUND(SUM(t.amount), 2) AS total, COUNT(*) AS bets
                FROM transactions t
                LEFT JOIN profiles p ON p.user_id = t.sender_id
                WHERE t.receiver_id = ? AND t.type = ?
                GROUP BY t.sender_id
                ORDER BY total DESC, t.sender_id
                """,
                (user_id, TransactionType.COMMISSION.value),
            )
            return [dict(row) for row in cursor.fetchall()]

    @staticmethod
    def _row_to_profile(row) -> dict:
        profile = dict(row)
        profile["is_banned"] = bool(profile.get("is_banned"))
        profile["balance"] = float(profile["balance"])
        return profile
