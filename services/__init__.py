"""
Application services layer.

Services orchestrate business operations using repositories and domain services.
Concrete services are imported from their own modules; this package only
re-exports the shared error and result types.
"""

from services import error_codes
from services.exceptions import (
    InsufficientBalance,
    InvalidStateTransition,
    LedgerInconsistency,
    NotFoundError,
    PermissionDenied,
    SettlementError,
    ValidationError,
)
from services.permissions import can_create_role, can_manage, is_admin
from services.result import Result

__all__ = [
    # Errors
    "error_codes",
    "SettlementError",
    "ValidationError",
    "NotFoundError",
    "PermissionDenied",
    "InsufficientBalance",
    "InvalidStateTransition",
    "LedgerInconsistency",
    # Permissions
    "can_create_role",
    "can_manage",
    "is_admin",
    # Result type
    "Result",
]
