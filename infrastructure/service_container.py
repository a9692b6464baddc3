"""
Service container for dependency injection and initialization.

This module centralizes repository and service creation so entry points
(scripts, an admin API, tests) share one wiring.

Usage:
    container = ServiceContainer(ServiceConfig(db_path="sabong.db"))
    container.initialize()

    settlement = container.settlement_service
    wallet = container.wallet_service
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import config

if TYPE_CHECKING:
    from services.admin_balance_service import AdminBalanceService
    from services.betting_service import BettingService
    from services.karera_service import KareraService
    from services.payout_audit_service import PayoutAuditService
    from services.pool_service import PoolService
    from services.profile_service import ProfileService
    from services.settings_service import SettingsService
    from services.settlement_service import SettlementService
    from services.wallet_service import WalletService

from database import Database

# Repositories
from repositories.admin_log_repository import AdminLogRepository
from repositories.karera_repository import KareraRepository
from repositories.match_repository import MatchRepository
from repositories.profile_repository import ProfileRepository
from repositories.settings_repository import SettingsRepository

logger = logging.getLogger("sabong.infrastructure.container")


@dataclass
class RepositoryContainer:
    """Container for all repositories."""

    profile: ProfileRepository | None = None
    match: MatchRepository | None = None
    karera: KareraRepository | None = None
    settings: SettingsRepository | None = None
    admin_log: AdminLogRepository | None = None


@dataclass
class ServiceConfig:
    """Configuration for service initialization."""

    # Database
    db_path: str = config.DB_PATH

    # Sabong
    selections: list[str] = field(default_factory=lambda: list(config.SABONG_SELECTIONS))
    min_bet: float = config.MIN_BET_AMOUNT
    verify_ledger_on_settle: bool = config.VERIFY_LEDGER_ON_SETTLE

    # Payout audit
    audit_tolerance: float = config.PAYOUT_AUDIT_TOLERANCE
    audit_match_limit: int = config.PAYOUT_AUDIT_MATCH_LIMIT


class ServiceContainer:
    """
    Central container for all application services.

    Handles initialization order and dependency injection. Services are
    created once by initialize() and cached.
    """

    def __init__(self, config: ServiceConfig | None = None):
        self.config = config or ServiceConfig()
        self._initialized = False
        self._repos = RepositoryContainer()

        self._database: Database | None = None
        self._services: dict[str, Any] = {}

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """
        Initialize all services in dependency order.

        This method is idempotent - calling it multiple times has no effect.
        """
        if self._initialized:
            logger.debug("ServiceContainer already initialized, skipping")
            return

        logger.info("Initializing ServiceContainer...")

        self._init_database()
        self._init_repositories()
        self._init_core_services()
        self._init_settlement_services()

        self._initialized = True
        logger.info("ServiceContainer initialization complete")

    def _init_database(self) -> None:
        """Create the schema and apply migrations."""
        logger.debug(f"Initializing database at {self.config.db_path}")
        self._database = Database(self.config.db_path)

    def _init_repositories(self) -> None:
        logger.debug("Initializing repositories")

        db_path = self.config.db_path
        self._repos.profile = ProfileRepository(db_path)
        self._repos.match = MatchRepository(db_path)
        self._repos.karera = KareraRepository(db_path)
        self._repos.settings = SettingsRepository(db_path)
        self._repos.admin_log = AdminLogRepository(db_path)

    def _init_core_services(self) -> None:
        """Settings, wallets and account management."""
        logger.debug("Initializing core services")

        from services.admin_balance_service import AdminBalanceService
        from services.profile_service import ProfileService
        from services.settings_service import SettingsService
        from services.wallet_service import WalletService

        self._services["settings"] = SettingsService(
            self._repos.settings,
            profile_repo=self._repos.profile,
            admin_log_repo=self._repos.admin_log,
        )
        self._services["wallet"] = WalletService(self._repos.profile)
        self._services["profile"] = ProfileService(
            self._repos.profile, admin_log_repo=self._repos.admin_log
        )
        self._services["admin_balance"] = AdminBalanceService(
            self._repos.profile, self._repos.admin_log
        )

    def _init_settlement_services(self) -> None:
        """Pools, bets, settlement, karera and the payout audit."""
        logger.debug("Initializing settlement services")

        from services.betting_service import BettingService
        from services.karera_service import KareraService
        from services.payout_audit_service import PayoutAuditService
        from services.pool_service import PoolService
        from services.settlement_service import SettlementService

        settings = self._services["settings"]
        pool = PoolService(self._repos.match, settings)
        self._services["pool"] = pool
        self._services["betting"] = BettingService(
            self._repos.match, pool, min_bet=self.config.min_bet
        )
        self._services["settlement"] = SettlementService(
            self._repos.match,
            settings,
            selections=self.config.selections,
            verify_ledger=self.config.verify_ledger_on_settle,
        )
        self._services["karera"] = KareraService(self._repos.karera, settings)
        self._services["payout_audit"] = PayoutAuditService(
            self._repos.match,
            tolerance=self.config.audit_tolerance,
            default_limit=self.config.audit_match_limit,
        )

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def database(self) -> Database | None:
        return self._database

    @property
    def profile_repo(self) -> ProfileRepository:
        return self._repos.profile

    @property
    def match_repo(self) -> MatchRepository:
        return self._repos.match

    @property
    def karera_repo(self) -> KareraRepository:
        return self._repos.karera

    @property
    def settings_repo(self) -> SettingsRepository:
        return self._repos.settings

    @property
    def admin_log_repo(self) -> AdminLogRepository:
        return self._repos.admin_log

    @property
    def settings_service(self) -> "SettingsService | None":
        return self._services.get("settings")

    @property
    def wallet_service(self) -> "WalletService | None":
        return self._services.get("wallet")

    @property
    def profile_service(self) -> "ProfileService | None":
        return self._services.get("profile")

    @property
    def admin_balance_service(self) -> "AdminBalanceService | None":
        return self._services.get("admin_balance")

    @property
    def pool_service(self) -> "PoolService | None":
        return self._services.get("pool")

    @property
    def betting_service(self) -> "BettingService | None":
        return self._services.get("betting")

    @property
    def settlement_service(self) -> "SettlementService | None":
        return self._services.get("settlement")

    @property
    def karera_service(self) -> "KareraService | None":
        return self._services.get("karera")

    @property
    def payout_audit_service(self) -> "PayoutAuditService | None":
        return self._services.get("payout_audit")
