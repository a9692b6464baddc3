"""
Tests for SettingsService (plasada rate, commission split and karera promo).
"""

import pytest

import config
from services import error_codes
from services.settings_service import (
    COMMISSION_ADMIN_SHARE,
    COMMISSION_AGENT_DIRECT,
    COMMISSION_MASTER_OVERRIDE,
    KARERA_PROMO_ENABLED,
    KARERA_PROMO_PERCENT,
    PLASADA_RATE,
    SettingsService,
    default_settings,
    validate_financial_settings,
)


class TestValidation:
    def test_defaults_are_valid(self):
        assert validate_financial_settings(default_settings()) is None

    def test_plasada_must_be_below_one(self):
        message, code = validate_financial_settings({PLASADA_RATE: 1.0})
        assert code == error_codes.INVALID_SETTING

    def test_out_of_range(self):
        _, code = validate_financial_settings({PLASADA_RATE: -0.1})
        assert code == error_codes.INVALID_SETTING

    def test_unknown_key(self):
        _, code = validate_financial_settings({"jackpot_rate": 0.1})
        assert code == error_codes.INVALID_SETTING

    def test_commissions_cannot_exceed_plasada(self):
        values = {
            PLASADA_RATE: 0.04,
            COMMISSION_AGENT_DIRECT: 0.02,
            COMMISSION_ADMIN_SHARE: 0.03,
        }
        _, code = validate_financial_settings(values)
        assert code == error_codes.COMMISSION_EXCEEDS_PLASADA

    def test_commissions_may_equal_plasada(self):
        values = {
            PLASADA_RATE: 0.05,
            COMMISSION_AGENT_DIRECT: 0.01,
            COMMISSION_ADMIN_SHARE: 0.04,
        }
        assert validate_financial_settings(values) is None


class TestSettingsService:
    def test_falls_back_to_config_defaults(self, settings_repository):
        service = SettingsService(settings_repository)
        assert service.get_financial_settings() == default_settings()
        assert service.get_plasada_rate() == config.PLASADA_RATE

    def test_stored_values_win(self, settings_repository):
        settings_repository.set_many({PLASADA_RATE: "0.05"})
        assert SettingsService(settings_repository).get_plasada_rate() == pytest.approx(0.05)

    def test_unreadable_stored_value_ignored(self, settings_repository):
        settings_repository.set_many({PLASADA_RATE: "five percent", COMMISSION_AGENT_DIRECT: "2"})
        settings = SettingsService(settings_repository).get_financial_settings()
        assert settings[PLASADA_RATE] == config.PLASADA_RATE
        assert settings[COMMISSION_AGENT_DIRECT] == config.COMMISSION_AGENT_DIRECT

    def test_admin_update(self, settings_service, settings_repository, admin_log_repository, admin_id):
        result = settings_service.update_financial_settings(admin_id, {PLASADA_RATE: 0.05})

        assert result.success
        assert result.value[PLASADA_RATE] == 0.05
        assert settings_service.get_plasada_rate() == pytest.approx(0.05)
        assert settings_repository.get(PLASADA_RATE) == "0.05"
        assert admin_log_repository.get_logs()[0]["action_type"] == "update_financial_settings"

    def test_non_admin_rejected(self, settings_service, make_user):
        agent = make_user("agent1", role="agent")
        result = settings_service.update_financial_settings(agent, {PLASADA_RATE: 0.05})
        assert result.error_code == error_codes.PERMISSION_DENIED

    def test_invalid_merge_rejected(self, settings_service, settings_repository, admin_id):
        """Lowering the plasada below the existing commission split is refused."""
        result = settings_service.update_financial_settings(admin_id, {PLASADA_RATE: 0.01})
        assert result.error_code == error_codes.COMMISSION_EXCEEDS_PLASADA
        assert settings_service.get_plasada_rate() == pytest.approx(0.04)

    def test_empty_update_rejected(self, settings_service, admin_id):
        result = settings_service.update_financial_settings(admin_id, {})
        assert result.error_code == error_codes.VALIDATION_ERROR

    def test_commission_shares(self, settings_service):
        assert settings_service.get_commission_shares() == {
            COMMISSION_AGENT_DIRECT: pytest.approx(0.01),
            COMMISSION_MASTER_OVERRIDE: pytest.approx(0.005),
            COMMISSION_ADMIN_SHARE: pytest.approx(0.025),
        }


class TestKareraPromo:
    def test_off_by_default(self, settings_service):
        assert settings_service.get_karera_promo_percent() == 0

    def test_config_default_applies_without_stored_rows(self, settings_repository, monkeypatch):
        monkeypatch.setattr(config, "KARERA_PROMO_ENABLED", True)
        monkeypatch.setattr(config, "KARERA_PROMO_PERCENT", 5.0)
        assert SettingsService(settings_repository).get_karera_promo_percent() == 5.0

    def test_admin_enables_promo(
        self, settings_service, settings_repository, admin_log_repository, admin_id
    ):
        result = settings_service.update_karera_promo(admin_id, True, 10)

        assert result.success
        assert settings_service.get_karera_promo_percent() == 10.0
        assert settings_repository.get(KARERA_PROMO_ENABLED) == "true"
        assert settings_repository.get(KARERA_PROMO_PERCENT) == "10.0"
        assert admin_log_repository.get_logs()[0]["action_type"] == "update_karera_promo"

    def test_disabled_promo_keeps_no_bonus(self, settings_service, admin_id):
        settings_service.update_karera_promo(admin_id, False, 10)
        assert settings_service.get_karera_promo_percent() == 0

    def test_non_admin_rejected(self, settings_service, settings_repository, make_user):
        agent = make_user("agent1", role="agent")
        result = settings_service.update_karera_promo(agent, True, 10)
        assert result.error_code == error_codes.PERMISSION_DENIED
        assert settings_repository.get(KARERA_PROMO_PERCENT) is None

    @pytest.mark.parametrize("percent", [-1, 100.5, float("nan"), True, "10"])
    def test_invalid_percent_rejected(self, settings_service, admin_id, percent):
        result = settings_service.update_karera_promo(admin_id, True, percent)
        assert result.error_code == error_codes.INVALID_SETTING
        assert settings_service.get_karera_promo_percent() == 0

    def test_unreadable_stored_percent_disables_promo(self, settings_service, settings_repository):
        settings_repository.set_many({KARERA_PROMO_ENABLED: "true", KARERA_PROMO_PERCENT: "ten"})
        assert settings_service.get_karera_promo_percent() == 0
