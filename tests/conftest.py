"""
Pytest fixtures for tests.

Performance optimization: Uses a session-scoped schema template to avoid running
the migrations for every test. Instead, we run them once and copy the resulting
database file (~1ms) instead of re-initializing.
"""

import shutil

import pytest

from database import Database
from repositories.admin_log_repository import AdminLogRepository
from repositories.karera_repository import KareraRepository
from repositories.match_repository import MatchRepository
from repositories.profile_repository import ProfileRepository
from repositories.settings_repository import SettingsRepository
from services.betting_service import BettingService
from services.karera_service import KareraService
from services.pool_service import PoolService
from services.settings_service import SettingsService
from services.settlement_service import SettlementService
from services.wallet_service import WalletService

TEST_PLASADA_RATE = 0.04
"""Plasada used by service fixtures, pinned so env overrides cannot leak in."""


@pytest.fixture(scope="session")
def _schema_template_path(tmp_path_factory):
    """
    Create a schema template database once per test session.

    Migrations run ONCE here. Tests copy from this template instead of
    running schema initialization each time.
    """
    template_dir = tmp_path_factory.mktemp("schema_template")
    template_path = str(template_dir / "template.db")
    Database(template_path)
    yield template_path


@pytest.fixture
def repo_db_path(_schema_template_path, tmp_path):
    """
    Create a temporary database with initialized schema for repository tests.

    Fast: file copy instead of schema initialization.
    """
    test_db_path = str(tmp_path / "test.db")
    shutil.copy2(_schema_template_path, test_db_path)
    yield test_db_path


@pytest.fixture
def profile_repository(repo_db_path):
    return ProfileRepository(repo_db_path)


@pytest.fixture
def match_repository(repo_db_path):
    return MatchRepository(repo_db_path)


@pytest.fixture
def karera_repository(repo_db_path):
    return KareraRepository(repo_db_path)


@pytest.fixture
def settings_repository(repo_db_path):
    return SettingsRepository(repo_db_path)


@pytest.fixture
def admin_log_repository(repo_db_path):
    return AdminLogRepository(repo_db_path)


@pytest.fixture
def settings_service(settings_repository, profile_repository, admin_log_repository):
    settings_repository.set_many(
        {
            "plasada_rate": repr(TEST_PLASADA_RATE),
            "commission_agent_direct": "0.01",
            "commission_master_override": "0.005",
            "commission_admin_share": "0.025",
            "karera_promo_enabled": "false",
        }
    )
    return SettingsService(
        settings_repository,
        profile_repo=profile_repository,
        admin_log_repo=admin_log_repository,
    )


@pytest.fixture
def pool_service(match_repository, settings_service):
    return PoolService(match_repository, settings_service)


@pytest.fixture
def betting_service(match_repository, pool_service):
    return BettingService(match_repository, pool_service, min_bet=1.0)


@pytest.fixture
def settlement_service(match_repository, settings_service):
    return SettlementService(
        match_repository,
        settings_service,
        selections=["meron", "wala", "draw"],
        verify_ledger=True,
    )


@pytest.fixture
def karera_service(karera_repository, settings_service):
    return KareraService(karera_repository, settings_service)


@pytest.fixture
def wallet_service(profile_repository):
    return WalletService(profile_repository)


@pytest.fixture
def admin_id(profile_repository):
    """An admin account with a funded wallet."""
    return profile_repository.add("admin", role="admin", balance=10000.0)


@pytest.fixture
def make_user(profile_repository):
    """Factory creating bettor accounts: make_user("juan", balance=500.0)."""

    def _make(username: str, balance: float = 1000.0, role: str = "user", upline_id=None) -> int:
        return profile_repository.add(username, role=role, upline_id=upline_id, balance=balance)

    return _make
