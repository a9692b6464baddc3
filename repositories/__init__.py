"""
Repository layer for data access.
"""

from repositories.admin_log_repository import AdminLogRepository
from repositories.base_repository import BaseRepository
from repositories.karera_repository import KareraRepository
from repositories.match_repository import MatchRepository
from repositories.profile_repository import ProfileRepository
from repositories.settings_repository import SettingsRepository

__all__ = [
    "AdminLogRepository",
    "BaseRepository",
    "KareraRepository",
    "MatchRepository",
    "ProfileRepository",
    "SettingsRepository",
]
