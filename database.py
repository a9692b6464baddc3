"""
Database bootstrap.

Thin facade that makes sure the schema exists for a given SQLite path.
Data access itself lives in the repositories package.
"""

import logging

from infrastructure.schema_manager import SchemaManager

logger = logging.getLogger("sabong.database")


class Database:
    """Schema-initialized handle to a SQLite database file."""

    def __init__(self, db_path: str = "sabong.db"):
        self.db_path = db_path
        self.use_uri = db_path.startswith("file:")
        SchemaManager(db_path, use_uri=self.use_uri).initialize()
        logger.debug(f"Schema ready at {db_path}")
