"""
Base repository with common database operations.
"""

import logging
import sqlite3
from abc import ABC
from contextlib import contextmanager

from database import Database
from services import error_codes
from services.exceptions import InsufficientBalance, NotFoundError, ValidationError

logger = logging.getLogger("sabong.repositories")

# Pool bucket columns a stake may be booked into
SOURCE_COLUMNS = {
    "user": "user_total",
    "bot": "bot_total",
    "injection": "injection_total",
}


class BaseRepository(ABC):
    """
    Base class for all repositories.

    Provides common database connection management and the wallet ledger
    primitives shared by every money-moving repository.
    """

    # Track DB paths that have already had schema initialization performed
    _schema_initialized_paths = set()

    def __init__(self, db_path: str):
        """
        Initialize repository with database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        # Ensure schema is initialized for this database path (idempotent)
        if db_path not in type(self)._schema_initialized_paths:
            Database(db_path)
            type(self)._schema_initialized_paths.add(db_path)

    def get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory enabled."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
        return conn

    @contextmanager
    def connection(self):
        """
        Context manager for database connections.

        Automatically commits on success, rolls back on exception,
        and always closes the connection.
        """
        conn = self.get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def atomic_transaction(self):
        """
        Context manager for atomic transactions with immediate write lock.

        Uses BEGIN IMMEDIATE to acquire a write lock immediately, preventing
        concurrent writes from interleaving. Every balance change and pool
        increment goes through here so a concurrent bet cannot double-spend
        or lose an update.

        Usage:
            with self.atomic_transaction() as conn:
                cursor = conn.cursor()
                cursor.execute(...)

        The transaction commits on success and rolls back on exception.
        """
        conn = self.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # --- Wallet ledger primitives (caller owns the transaction) ---

    @staticmethod
    def _fetch_balance(cursor, user_id: int) -> float:
        cursor.execute("SELECT balance FROM profiles WHERE user_id = ?", (user_id,))
        row = cursor.fetchone()
        if not row:
            raise NotFoundError(f"User {user_id} not found.", code=error_codes.USER_NOT_FOUND)
        return float(row["balance"])

    @staticmethod
    def _require_active_bettor(cursor, user_id: int) -> None:
        cursor.execute(
            "SELECT COALESCE(is_banned, 0) AS is_banned FROM profiles WHERE user_id = ?",
            (user_id,),
        )
        row = cursor.fetchone()
        if not row:
            raise NotFoundError(f"User {user_id} not found.", code=error_codes.USER_NOT_FOUND)
        if row["is_banned"]:
            raise ValidationError("Banned accounts cannot place bets.", code=error_codes.USER_BANNED)

    def _adjust_balance(self, cursor, user_id: int, delta: float) -> float:
        """Change a wallet balance without writing a transaction row."""
        if delta == 0:
            raise ValidationError("Balance change must be non-zero.")
        balance = self._fetch_balance(cursor, user_id)
        new_balance = round(balance + delta, 2)
        if new_balance < 0:
            raise InsufficientBalance(
                f"Insufficient balance. Have {balance:.2f}, need {abs(delta):.2f}."
            )
        cursor.execute(
            """
            UPDATE profiles
            SET balance = ROUND(balance + ?, 2), updated_at = CURRENT_TIMESTAMP
            WHERE user_id = ?
            """,
            (delta, user_id),
        )
        return new_balance

    def _apply_balance_delta(
        self,
        cursor,
        *,
        user_id: int,
        delta: float,
        tx_type: str,
        sender_id: int | None,
        receiver_id: int | None,
        reference: str | None = None,
    ) -> float:
        """
        Move money in or out of one wallet and append the transaction row.

        Must run inside atomic_transaction(). Negative deltas are debits and
        fail with InsufficientBalance if the wallet would go below zero.

        Returns:
            The wallet balance after the change
        """
        new_balance = self._adjust_balance(cursor, user_id, delta)
        self._insert_transaction(
            cursor,
            tx_type=tx_type,
            amount=abs(delta),
            sender_id=sender_id,
            receiver_id=receiver_id,
            balance_after=new_balance,
            reference=reference,
        )
        return new_balance

    @staticmethod
    def _insert_transaction(
        cursor,
        *,
        tx_type: str,
        amount: float,
        sender_id: int | None,
        receiver_id: int | None,
        balance_after: float | None,
        reference: str | None,
    ) -> int:
        cursor.execute(
            """
            INSERT INTO transactions (type, sender_id, receiver_id, amount, balance_after, reference)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (tx_type, sender_id, receiver_id, amount, balance_after, reference),
        )
        return cursor.lastrowid
