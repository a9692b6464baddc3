"""
Abstract repository interfaces for data access.

These interfaces define the contracts implemented by concrete repositories.
"""

from abc import ABC, abstractmethod

from domain.models.pool import PoolSnapshot


class IProfileRepository(ABC):
    @abstractmethod
    def add(
        self,
        username: str,
        role: str = "user",
        upline_id: int | None = None,
        balance: float = 0.0,
    ) -> int: ...

    @abstractmethod
    def get_by_id(self, user_id: int) -> dict | None: ...

    @abstractmethod
    def get_direct_downline(self, upline_id: int) -> list[dict]: ...

    @abstractmethod
    def get_all_downline(self, upline_id: int) -> list[dict]: ...

    @abstractmethod
    def set_banned(self, user_id: int, banned: bool) -> bool: ...

    @abstractmethod
    def get_balance(self, user_id: int) -> float: ...

    @abstractmethod
    def apply_balance_change(
        self,
        user_id: int,
        delta: float,
        tx_type: str,
        sender_id: int | None = None,
        receiver_id: int | None = None,
        reference: str | None = None,
    ) -> float: ...

    @abstractmethod
    def adjust_balance(self, user_id: int, delta: float) -> float: ...

    @abstractmethod
    def move_balance(self, sender_id: int, receiver_id: int, amount: float) -> tuple[float, float]: ...

    @abstractmethod
    def transfer_atomic(
        self, sender_id: int, receiver_id: int, amount: float, reference: str | None = None
    ) -> tuple[float, float]: ...

    @abstractmethod
    def record_transaction(
        self,
        tx_type: str,
        amount: float,
        sender_id: int | None,
        receiver_id: int | None,
        balance_after: float | None = None,
        reference: str | None = None,
    ) -> int: ...

    @abstractmethod
    def get_transactions(self, user_id: int, limit: int = 50) -> list[dict]: ...

    @abstractmethod
    def get_ledger_totals(self, user_id: int) -> dict: ...

    @abstractmethod
    def get_commission_earnings(self, user_id: int) -> list[dict]: ...


class IMatchRepository(ABC):
    @abstractmethod
    def create_match(self, meron_name: str, wala_name: str, selections: list[str]) -> int: ...

    @abstractmethod
    def get_match(self, match_id: int) -> dict | None: ...

    @abstractmethod
    def get_recent_finished(self, limit: int = 5) -> list[dict]: ...

    @abstractmethod
    def get_results_sequence(self, limit: int | None = None) -> list[dict]: ...

    @abstractmethod
    def transition_status(self, match_id: int, from_statuses: list[str], to_status: str) -> bool: ...

    @abstractmethod
    def close_betting_atomic(
        self,
        match_id: int,
        commission_rate: float,
        commission_shares: dict[str, float] | None = None,
    ) -> PoolSnapshot: ...

    @abstractmethod
    def place_bet_atomic(
        self,
        *,
        match_id: int,
        user_id: int | None,
        selection: str,
        amount: float,
        source: str = "user",
    ) -> int: ...

    @abstractmethod
    def get_pool_snapshot(self, match_id: int, commission_rate: float) -> PoolSnapshot: ...

    @abstractmethod
    def verify_pool(self, match_id: int) -> None: ...

    @abstractmethod
    def get_bets(self, match_id: int, status: str | None = None) -> list[dict]: ...

    @abstractmethod
    def get_user_bets(self, user_id: int, limit: int = 50) -> list[dict]: ...

    @abstractmethod
    def settle_match_atomic(self, match_id: int, winner: str, verify_ledger: bool = True) -> dict: ...

    @abstractmethod
    def cancel_match_atomic(self, match_id: int) -> dict: ...


class IKareraRepository(ABC):
    @abstractmethod
    def create_race(
        self,
        name: str,
        bet_types: list[str],
        horses: list[tuple[int, str]],
        racing_time: str | None = None,
    ) -> int: ...

    @abstractmethod
    def get_race(self, race_id: int) -> dict | None: ...

    @abstractmethod
    def get_races(self, race_ids: list[int]) -> dict[int, dict]: ...

    @abstractmethod
    def get_horses(self, race_id: int) -> list[dict]: ...

    @abstractmethod
    def transition_status(self, race_id: int, from_statuses: list[str], to_status: str) -> bool: ...

    @abstractmethod
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
    ) -> int: ...

    @abstractmethod
    def get_bet(self, bet_id: int) -> dict | None: ...

    @abstractmethod
    def scratch_horse_atomic(self, race_id: int, horse_number: int) -> dict: ...

    @abstractmethod
    def announce_winner_atomic(
        self, race_id: int, finish_order: list[int], odds_map: dict[str, float]
    ) -> dict: ...

    @abstractmethod
    def cancel_race_atomic(self, race_id: int) -> dict: ...


class ISettingsRepository(ABC):
    @abstractmethod
    def get(self, key: str) -> str | None: ...

    @abstractmethod
    def get_all(self) -> dict[str, str]: ...

    @abstractmethod
    def set_many(self, values: dict[str, str], descriptions: dict[str, str] | None = None) -> None: ...


class IAdminLogRepository(ABC):
    @abstractmethod
    def log_action(
        self,
        admin_id: int,
        action_type: str,
        target_id: int | None = None,
        target_name: str | None = None,
        details: dict | None = None,
    ) -> int: ...

    @abstractmethod
    def get_logs(self, limit: int = 50, admin_id: int | None = None) -> list[dict]: ...
