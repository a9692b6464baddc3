"""
Repository for app-wide financial settings.
"""

from repositories.base_repository import BaseRepository
from repositories.interfaces import ISettingsRepository


class SettingsRepository(BaseRepository, ISettingsRepository):
    """
    Key/value access to the app_settings table.
    """

    def get(self, key: str) -> str | None:
        """Get a single setting value."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT value FROM app_settings WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row["value"] if row else None

    def get_all(self) -> dict[str, str]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT key, value FROM app_settings ORDER BY key")
            return {row["key"]: row["value"] for row in cursor.fetchall()}

    def set_many(self, values: dict[str, str], descriptions: dict[str, str] | None = None) -> None:
        """Upsert several settings in one transaction."""
        descriptions = descriptions or {}
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.executemany(
                """
                INSERT INTO app_settings (key, value, description)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    description = COALESCE(excluded.description, app_settings.description),
                    updated_at = CURRENT_TIMESTAMP
                """,
                [(key, value, descriptions.get(key)) for key, value in values.items()],
            )
