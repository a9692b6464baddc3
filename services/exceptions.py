"""
Exception taxonomy for money-moving operations.

All errors subclass ValueError so callers that only catch ValueError keep
working, and each carries an error code from services.error_codes.
"""

from services import error_codes


class SettlementError(ValueError):
    """Base class for service-level failures."""

    default_code = error_codes.VALIDATION_ERROR

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code or self.default_code


class ValidationError(SettlementError):
    """Malformed or out-of-range input. Raised before any state mutation."""

    default_code = error_codes.VALIDATION_ERROR


class NotFoundError(SettlementError):
    default_code = error_codes.NOT_FOUND


class PermissionDenied(SettlementError):
    default_code = error_codes.PERMISSION_DENIED


class InsufficientBalance(SettlementError):
    """A debit would take the wallet below zero."""

    default_code = error_codes.INSUFFICIENT_FUNDS


class InvalidStateTransition(SettlementError):
    """Action attempted against a match or race in an ineligible status."""

    default_code = error_codes.INVALID_TRANSITION


class LedgerInconsistency(SettlementError):
    """
    Pool sub-totals disagree with the grand total or with the bet rows.

    Fatal for the settlement run of that match: nothing is written and an
    operator has to investigate.
    """

    default_code = error_codes.LEDGER_INCONSISTENCY
