"""
Tests for AdminBalanceService: loads, transfers and best-effort audit writes.
"""

import pytest

from services import error_codes
from services.admin_balance_service import AdminBalanceService


class FailingAdminLogRepository:
    """Admin log stub whose writes always fail."""

    def log_action(self, *args, **kwargs):
        raise RuntimeError("admin_logs is locked")

    def get_logs(self, limit=50, admin_id=None):
        return []


@pytest.fixture
def admin_balance_service(profile_repository, admin_log_repository):
    return AdminBalanceService(profile_repository, admin_log_repository)


class TestAddBalance:
    def test_load_credits_target_and_logs(
        self, admin_balance_service, profile_repository, admin_log_repository, admin_id, make_user
    ):
        user = make_user("juan", balance=0)
        result = admin_balance_service.add_balance(admin_id, user, 300)

        assert result.success
        assert not result.has_warnings
        assert result.value == {"user_id": user, "new_balance": 300}
        assert profile_repository.get_balance(admin_id) == 10000

        rows = profile_repository.get_transactions(user)
        assert rows[0]["type"] == "load"
        assert rows[0]["sender_id"] == admin_id

        logs = admin_log_repository.get_logs(admin_id=admin_id)
        assert logs[0]["action_type"] == "add_balance"
        assert logs[0]["details"] == {"amount": 300, "new_balance": 300}

    def test_requires_admin(self, admin_balance_service, profile_repository, make_user):
        agent = make_user("agent1", role="agent")
        user = make_user("juan")
        result = admin_balance_service.add_balance(agent, user, 100)
        assert not result.success
        assert result.error_code == error_codes.PERMISSION_DENIED
        assert profile_repository.get_balance(user) == 1000

    @pytest.mark.parametrize("amount", [0, -50, float("inf")])
    def test_requires_positive_amount(
        self, admin_balance_service, profile_repository, admin_id, make_user, amount
    ):
        user = make_user("juan")
        result = admin_balance_service.add_balance(admin_id, user, amount)
        assert not result.success
        assert result.error_code == error_codes.VALIDATION_ERROR
        assert profile_repository.get_balance(user) == 1000

    def test_unknown_target(self, admin_balance_service, admin_id):
        result = admin_balance_service.add_balance(admin_id, 999, 10)
        assert result.error_code == error_codes.USER_NOT_FOUND


class TestTransferBalance:
    def test_transfer_from_admin_wallet(self, admin_balance_service, profile_repository, admin_id, make_user):
        user = make_user("juan", balance=0)
        result = admin_balance_service.transfer_balance(admin_id, user, 2500)

        assert result.success
        assert result.value["new_balance"] == 2500
        assert result.value["sender_balance"] == 7500
        assert profile_repository.get_balance(admin_id) == 7500

        transfer = profile_repository.get_transactions(user)[0]
        assert transfer["type"] == "transfer"
        assert transfer["balance_after"] == 7500

    def test_transfer_beyond_admin_balance(self, admin_balance_service, profile_repository, admin_id, make_user):
        user = make_user("juan", balance=0)
        result = admin_balance_service.transfer_balance(admin_id, user, 10000.01)
        assert result.error_code == error_codes.INSUFFICIENT_FUNDS
        assert profile_repository.get_balance(user) == 0

    def test_non_admin_cannot_transfer(self, admin_balance_service, profile_repository, make_user):
        agent = make_user("agent1", balance=500, role="agent")
        user = make_user("juan", balance=0)

        result = admin_balance_service.transfer_balance(agent, user, 200)

        assert not result.success
        assert result.error_code == error_codes.PERMISSION_DENIED
        assert profile_repository.get_balance(agent) == 500
        assert profile_repository.get_balance(user) == 0
        assert profile_repository.get_transactions(user) == []

    def test_transfer_to_self(self, admin_balance_service, admin_id):
        result = admin_balance_service.transfer_balance(admin_id, admin_id, 5)
        assert result.error_code == error_codes.VALIDATION_ERROR


class TestBestEffortAudit:
    """Balance changes stand even when the audit trail cannot be written."""

    def test_failed_log_becomes_warning(self, profile_repository, admin_id, make_user):
        service = AdminBalanceService(profile_repository, FailingAdminLogRepository())
        user = make_user("juan", balance=0)

        result = service.add_balance(admin_id, user, 100)

        assert result.success
        assert result.has_warnings
        assert any("admin log" in w for w in result.warnings)
        assert profile_repository.get_balance(user) == 100

    def test_failed_transaction_row_becomes_warning(
        self, profile_repository, admin_log_repository, admin_id, make_user, monkeypatch
    ):
        service = AdminBalanceService(profile_repository, admin_log_repository)
        user = make_user("juan", balance=0)

        def broken_record(*args, **kwargs):
            raise RuntimeError("disk I/O error")

        monkeypatch.setattr(profile_repository, "record_transaction", broken_record)
        result = service.transfer_balance(admin_id, user, 100)

        assert result.success
        assert any("transaction record" in w for w in result.warnings)
        assert profile_repository.get_balance(user) == 100
        assert profile_repository.get_balance(admin_id) == 9900
