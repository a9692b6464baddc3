"""
Standard error codes for service layer.

Callers (HTTP handlers, scripts) switch on these instead of parsing messages.

Usage:
    from services.error_codes import INSUFFICIENT_FUNDS
    from services.exceptions import InsufficientBalance

    raise InsufficientBalance("Insufficient balance for bet")
    ...
    except SettlementError as e:
        if e.code == INSUFFICIENT_FUNDS: ...
"""

# General errors
NOT_FOUND = "not_found"
VALIDATION_ERROR = "validation_error"
STATE_ERROR = "state_error"
PERMISSION_DENIED = "permission_denied"

# Wallet errors
INSUFFICIENT_FUNDS = "insufficient_funds"
USER_NOT_FOUND = "user_not_found"
USER_BANNED = "user_banned"

# Match / race errors
MATCH_NOT_FOUND = "match_not_found"
RACE_NOT_FOUND = "race_not_found"
BETTING_CLOSED = "betting_closed"
INVALID_SELECTION = "invalid_selection"
INVALID_TRANSITION = "invalid_transition"
HORSE_SCRATCHED = "horse_scratched"
MISSING_ODDS = "missing_odds"

# Ledger errors
LEDGER_INCONSISTENCY = "ledger_inconsistency"

# Settings errors
INVALID_SETTING = "invalid_setting"
COMMISSION_EXCEEDS_PLASADA = "commission_exceeds_plasada"
