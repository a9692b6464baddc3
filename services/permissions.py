"""
Role hierarchy checks for operator actions.
"""

ROLE_RANKS = {
    "admin": 4,
    "master_agent": 3,
    "agent": 2,
    "loader": 1,
    "user": 0,
}

VALID_ROLES = frozenset(ROLE_RANKS)


def role_rank(role: str) -> int:
    """Rank of a role; unknown roles rank below user."""
    return ROLE_RANKS.get(role, -1)


def is_admin(profile: dict | None) -> bool:
    return bool(profile) and profile.get("role") == "admin"


def can_create_role(requester_role: str, new_role: str) -> bool:
    """
    Check if a requester may open an account with the given role.

    Accounts can only be created strictly below the requester, so an agent
    can open loaders and users but never another agent.
    """
    if new_role not in VALID_ROLES or requester_role not in VALID_ROLES:
        return False
    return role_rank(requester_role) > role_rank(new_role)


def can_manage(requester: dict | None, target: dict | None) -> bool:
    """
    Check if requester may ban/unban or otherwise manage target.

    Admins manage everyone except other admins; anyone else only manages
    their own direct downline.
    """
    if not requester or not target or requester["user_id"] == target["user_id"]:
        return False
    if role_rank(requester["role"]) <= role_rank(target["role"]):
        return False
    return is_admin(requester) or target.get("upline_id") == requester["user_id"]
