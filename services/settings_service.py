"""
Service for the financial settings (plasada rate and commission split) and
the karera ticket promo.

This service wraps SettingsRepository so callers never parse raw
app_settings strings themselves.
"""

import logging
import math

import config
from domain.services import commission_split
from repositories.interfaces import IAdminLogRepository, IProfileRepository, ISettingsRepository
from services import error_codes
from services.permissions import is_admin
from services.result import Result

logger = logging.getLogger("sabong.settings")

PLASADA_RATE = "plasada_rate"
COMMISSION_AGENT_DIRECT = commission_split.AGENT_DIRECT
COMMISSION_MASTER_OVERRIDE = commission_split.MASTER_OVERRIDE
COMMISSION_ADMIN_SHARE = commission_split.ADMIN_SHARE

COMMISSION_KEYS = commission_split.SHARE_KEYS

KARERA_PROMO_ENABLED = "karera_promo_enabled"
KARERA_PROMO_PERCENT = "karera_promo_percent"

DESCRIPTIONS = {
    PLASADA_RATE: "House commission taken from every pool",
    COMMISSION_AGENT_DIRECT: "Share of the pool paid to the direct agent",
    COMMISSION_MASTER_OVERRIDE: "Share of the pool paid to the master agent",
    COMMISSION_ADMIN_SHARE: "Share of the pool paid to the admin",
}

PROMO_DESCRIPTIONS = {
    KARERA_PROMO_ENABLED: "Whether karera tickets carry the promo bonus",
    KARERA_PROMO_PERCENT: "Promo bonus as a percent of the ticket amount",
}

_TRUE_VALUES = ("1", "true", "yes", "on")


def default_settings() -> dict[str, float]:
    return {
        PLASADA_RATE: config.PLASADA_RATE,
        COMMISSION_AGENT_DIRECT: config.COMMISSION_AGENT_DIRECT,
        COMMISSION_MASTER_OVERRIDE: config.COMMISSION_MASTER_OVERRIDE,
        COMMISSION_ADMIN_SHARE: config.COMMISSION_ADMIN_SHARE,
    }


def validate_financial_settings(values: dict[str, float]) -> tuple[str, str] | None:
    """
    Check a full settings set.

    Returns:
        None if valid, otherwise (error message, error code)
    """
    for key, value in values.items():
        if key not in DESCRIPTIONS:
            return f"Unknown setting '{key}'.", error_codes.INVALID_SETTING
        if not isinstance(value, (int, float)) or not math.isfinite(value):
            return f"{key} must be a number.", error_codes.INVALID_SETTING
        if not 0 <= value <= 1:
            return f"{key} must be between 0 and 1.", error_codes.INVALID_SETTING
    if values.get(PLASADA_RATE, 0) >= 1:
        return "plasada_rate must be below 1.", error_codes.INVALID_SETTING
    commission_total = sum(values.get(key, 0) for key in COMMISSION_KEYS)
    if commission_total > values.get(PLASADA_RATE, 0) + 1e-9:
        return (
            f"Commission shares ({commission_total:.4f}) exceed the plasada rate "
            f"({values.get(PLASADA_RATE, 0):.4f}).",
            error_codes.COMMISSION_EXCEEDS_PLASADA,
        )
    return None


class SettingsService:
    """
    Reads and updates the financial settings.

    Values stored in app_settings win over config defaults; unreadable
    stored values fall back to the default with a warning.
    """

    def __init__(
        self,
        settings_repo: ISettingsRepository,
        profile_repo: IProfileRepository | None = None,
        admin_log_repo: IAdminLogRepository | None = None,
    ):
        self.settings_repo = settings_repo
        self.profile_repo = profile_repo
        self.admin_log_repo = admin_log_repo

    def get_financial_settings(self) -> dict[str, float]:
        settings = default_settings()
        for key, raw in self.settings_repo.get_all().items():
            if key not in settings:
                continue
            try:
                value = float(raw)
            except ValueError:
                logger.warning(f"Ignoring unreadable setting {key}={raw!r}")
                continue
            if not math.isfinite(value) or not 0 <= value <= 1:
                logger.warning(f"Ignoring out-of-range setting {key}={raw!r}")
                continue
            settings[key] = value
        if settings[PLASADA_RATE] >= 1:
            logger.warning("Stored plasada_rate is not below 1, using default")
            settings[PLASADA_RATE] = config.PLASADA_RATE
        return settings

    def get_plasada_rate(self) -> float:
        return self.get_financial_settings()[PLASADA_RATE]

    def get_commission_shares(self) -> dict[str, float]:
        """The downline commission split, keyed the way settlement pays it."""
        settings = self.get_financial_settings()
        return {key: settings[key] for key in COMMISSION_KEYS}

    def get_karera_promo_percent(self) -> float:
        """
        Promo bonus percent for new karera tickets, 0 when the promo is off.

        An unreadable or out-of-range stored percent disables the promo.
        """
        raw_enabled = self.settings_repo.get(KARERA_PROMO_ENABLED)
        if raw_enabled is None:
            enabled = config.KARERA_PROMO_ENABLED
        else:
            enabled = raw_enabled.strip().lower() in _TRUE_VALUES
        if not enabled:
            return 0.0

        raw_percent = self.settings_repo.get(KARERA_PROMO_PERCENT)
        if raw_percent is None:
            percent = config.KARERA_PROMO_PERCENT
        else:
            try:
                percent = float(raw_percent)
            except ValueError:
                logger.warning(f"Ignoring unreadable setting {KARERA_PROMO_PERCENT}={raw_percent!r}")
                return 0.0
        if not math.isfinite(percent) or not 0 <= percent <= 100:
            logger.warning(f"Ignoring out-of-range karera promo percent {percent!r}")
            return 0.0
        return percent

    def update_financial_settings(self, requester_id: int, updates: dict[str, float]) -> Result:
        """
        Update one or more settings as an admin.

        The merged result (current values plus updates) must be valid as a
        whole, so lowering the plasada below the commission split is refused.
        """
        denied = self._check_admin(requester_id, "change financial settings")
        if denied:
            return denied
        if not updates:
            return Result.fail("No settings to update.", code=error_codes.VALIDATION_ERROR)

        merged = {**self.get_financial_settings(), **updates}
        problem = validate_financial_settings(merged)
        if problem:
            message, code = problem
            return Result.fail(message, code=code)

        self.settings_repo.set_many(
            {key: repr(float(value)) for key, value in updates.items()},
            descriptions={key: DESCRIPTIONS[key] for key in updates},
        )
        logger.info(f"Financial settings updated by {requester_id}: {updates}")
        warnings = self._log_admin_action(
            requester_id, "update_financial_settings", {"updates": updates}
        )
        return Result.ok(merged, warnings=warnings)

    def update_karera_promo(self, requester_id: int, enabled: bool, percent: float) -> Result:
        """Turn the karera promo on or off and set its bonus percent (0-100) as an admin."""
        denied = self._check_admin(requester_id, "change the karera promo")
        if denied:
            return denied
        if (
            isinstance(percent, bool)
            or not isinstance(percent, (int, float))
            or not math.isfinite(percent)
            or not 0 <= percent <= 100
        ):
            return Result.fail(
                "Promo percent must be a number between 0 and 100.",
                code=error_codes.INVALID_SETTING,
            )

        values = {
            KARERA_PROMO_ENABLED: "true" if enabled else "false",
            KARERA_PROMO_PERCENT: repr(float(percent)),
        }
        self.settings_repo.set_many(values, descriptions=PROMO_DESCRIPTIONS)
        logger.info(f"Karera promo updated by {requester_id}: enabled={enabled} percent={percent}")
        warnings = self._log_admin_action(requester_id, "update_karera_promo", values)
        return Result.ok(values, warnings=warnings)

    def _check_admin(self, requester_id: int, action: str) -> Result | None:
        if self.profile_repo is None:
            return None
        if not is_admin(self.profile_repo.get_by_id(requester_id)):
            return Result.fail(f"Only admins can {action}.", code=error_codes.PERMISSION_DENIED)
        return None

    def _log_admin_action(self, requester_id: int, action: str, details: dict) -> list[str]:
        """Write the admin log entry. Returns warnings when it could not be written."""
        if self.admin_log_repo is None:
            return []
        try:
            self.admin_log_repo.log_action(requester_id, action, details=details)
        except Exception as exc:
            logger.warning(f"Failed to write admin log for {action}: {exc}")
            return ["Settings saved but the admin log entry could not be written."]
        return []
