"""
Repository for the admin action audit log.
"""

import json

from repositories.base_repository import BaseRepository
from repositories.interfaces import IAdminLogRepository


class AdminLogRepository(BaseRepository, IAdminLogRepository):
    """
    Append-only writes to admin_logs.
    """

    def log_action(
        self,
        admin_id: int,
        action_type: str,
        target_id: int | None = None,
        target_name: str | None = None,
        details: dict | None = None,
    ) -> int:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO admin_logs (admin_id, action_type, target_id, target_name, details_json)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    admin_id,
                    action_type,
                    target_id,
                    target_name,
                    json.dumps(details, sort_keys=True) if details is not None else None,
                ),
            )
            return cursor.lastrowid

    def get_logs(self, limit: int = 50, admin_id: int | None = None) -> list[dict]:
        """Most recent log entries, optionally for a single admin."""
        with self.connection() as conn:
            cursor = conn.cursor()
            if admin_id is None:
                cursor.execute(
                    "SELECT * FROM admin_logs ORDER BY log_id DESC LIMIT ?", (limit,)
                )
            else:
                cursor.execute(
                    "SELECT * FROM admin_logs WHERE admin_id = ? ORDER BY log_id DESC LIMIT ?",
                    (admin_id, limit),
                )
            rows = []
            for row in cursor.fetchall():
                entry = dict(row)
                entry["details"] = json.loads(entry["details_json"]) if entry["details_json"] else None
                rows.append(entry)
            return rows
