"""
Account management along the agent hierarchy.
"""

import logging
import re

from repositories.interfaces import IAdminLogRepository, IProfileRepository
from services import error_codes
from services.exceptions import NotFoundError, PermissionDenied, ValidationError
from services.permissions import VALID_ROLES, can_create_role, can_manage

logger = logging.getLogger("sabong.profiles")

USERNAME_PATTERN = re.compile(r"^[a-z0-9_.]{3,32}$")


class ProfileService:
    """Creates downline accounts, bans/unbans them and lists the tree below a user."""

    def __init__(
        self, profile_repo: IProfileRepository, admin_log_repo: IAdminLogRepository | None = None
    ):
        self.profile_repo = profile_repo
        self.admin_log_repo = admin_log_repo

    def get_profile(self, user_id: int) -> dict:
        profile = self.profile_repo.get_by_id(user_id)
        if not profile:
            raise NotFoundError(f"User {user_id} not found.", code=error_codes.USER_NOT_FOUND)
        return profile

    def create_account(self, requester_id: int, username: str, role: str = "user") -> dict:
        """
        Open an account directly below the requester.

        Raises:
            PermissionDenied: If the requester does not outrank the new role
            ValidationError: On a malformed username, unknown role or taken name
        """
        requester = self.get_profile(requester_id)
        username = (username or "").strip().lower()
        if not USERNAME_PATTERN.match(username):
            raise ValidationError(
                "Username must be 3-32 characters of letters, digits, '_' or '.'."
            )
        if role not in VALID_ROLES:
            raise ValidationError(f"Unknown role '{role}'.")
        if requester["is_banned"] or not can_create_role(requester["role"], role):
            raise PermissionDenied(f"A {requester['role']} cannot create a {role} account.")

        user_id = self.profile_repo.add(username, role=role, upline_id=requester_id)
        logger.info(f"{requester['username']} created {role} account '{username}' ({user_id})")
        self._log(requester_id, "create_user", user_id, username, {"role": role})
        return self.get_profile(user_id)

    def ban_user(self, requester_id: int, target_id: int) -> dict:
        return self._set_banned(requester_id, target_id, True)

    def unban_user(self, requester_id: int, target_id: int) -> dict:
        return self._set_banned(requester_id, target_id, False)

    def get_downline(self, user_id: int, recursive: bool = True) -> list[dict]:
        self.get_profile(user_id)
        if recursive:
            return self.profile_repo.get_all_downline(user_id)
        return self.profile_repo.get_direct_downline(user_id)

    def _set_banned(self, requester_id: int, target_id: int, banned: bool) -> dict:
        requester = self.get_profile(requester_id)
        target = self.get_profile(target_id)
        if not can_manage(requester, target):
            raise PermissionDenied(f"{requester['username']} cannot manage {target['username']}.")
        self.profile_repo.set_banned(target_id, banned)
        action = "ban_user" if banned else "unban_user"
        verb = "banned" if banned else "unbanned"
        logger.info(f"{requester['username']} {verb} {target['username']}")
        self._log(requester_id, action, target_id, target["username"], None)
        return self.get_profile(target_id)

    def _log(
        self, admin_id: int, action: str, target_id: int, target_name: str, details: dict | None
    ) -> None:
        if self.admin_log_repo is None:
            return
        try:
            self.admin_log_repo.log_action(admin_id, action, target_id, target_name, details)
        except Exception as exc:
            logger.warning(f"Failed to write admin log for {action}: {exc}")
