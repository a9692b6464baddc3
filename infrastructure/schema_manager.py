"""
Schema and migration management for SQLite database.
"""

import logging
import sqlite3

logger = logging.getLogger("sabong.schema")


class SchemaManager:
    """
    Owns schema creation and migrations.

    Call initialize() to ensure schema is present and migrations are applied.
    """

    def __init__(self, db_path: str, use_uri: bool = False):
        self.db_path = db_path
        self.use_uri = use_uri

    def initialize(self) -> None:
        """Create base schema and apply migrations."""
        logger.info(f"Initializing database schema: {self.db_path}")
        with self._connect() as conn:
            cursor = conn.cursor()
            self._create_base_schema(cursor)
            self._create_schema_migrations_table(cursor)
            self._run_migrations(cursor)
            conn.commit()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, uri=self.use_uri)
        conn.row_factory = sqlite3.Row
        if not self.use_uri:  # Skip WAL for in-memory databases
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA busy_timeout=5000")
        return conn

    def _create_base_schema(self, cursor) -> None:
        # Wallet owners and the agent hierarchy
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS profiles (
                user_id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL UNIQUE,
                role TEXT NOT NULL DEFAULT 'user',
                upline_id INTEGER,
                balance REAL NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (upline_id) REFERENCES profiles(user_id)
            )
            """
        )

        # Append-only money ledger
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS transactions (
                tx_id INTEGER PRIMARY KEY AUTOINCREMENT,
                type TEXT NOT NULL,
                sender_id INTEGER,
                receiver_id INTEGER,
                amount REAL NOT NULL,
                balance_after REAL,
                reference TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

        # Sabong fights
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS matches (
                match_id INTEGER PRIMARY KEY AUTOINCREMENT,
                meron_name TEXT NOT NULL,
                wala_name TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'open',
                winner TEXT,
                commission_rate REAL,
                snapshot_json TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                closed_at TIMESTAMP,
                settled_at TIMESTAMP
            )
            """
        )

        # Pool ledger buckets, one row per (match, selection)
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS match_pools (
                match_id INTEGER NOT NULL,
                selection TEXT NOT NULL,
                user_total REAL NOT NULL DEFAULT 0,
                bot_total REAL NOT NULL DEFAULT 0,
                injection_total REAL NOT NULL DEFAULT 0,
                grand_total REAL NOT NULL DEFAULT 0,
                PRIMARY KEY (match_id, selection),
                FOREIGN KEY (match_id) REFERENCES matches(match_id)
            )
            """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS bets (
                bet_id INTEGER PRIMARY KEY AUTOINCREMENT,
                match_id INTEGER NOT NULL,
                user_id INTEGER,
                selection TEXT NOT NULL,
                amount REAL NOT NULL,
                source TEXT NOT NULL DEFAULT 'user',
                status TEXT NOT NULL DEFAULT 'pending',
                payout REAL NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                settled_at TIMESTAMP,
                FOREIGN KEY (match_id) REFERENCES matches(match_id),
                FOREIGN KEY (user_id) REFERENCES profiles(user_id)
            )
            """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS app_settings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                description TEXT,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

    def _add_column_if_not_exists(self, cursor, table: str, column: str, column_type: str) -> None:
        try:
            cursor.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type}")
        except sqlite3.OperationalError:
            pass

    def _create_schema_migrations_table(self, cursor) -> None:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                name TEXT PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

    def _run_migrations(self, cursor) -> None:
        applied = {row["name"] for row in cursor.execute("SELECT name FROM schema_migrations")}
        for name, action in self._get_migrations():
            if name in applied:
                continue
            logger.info(f"Applying migration: {name}")
            action(cursor)
            cursor.execute(
                "INSERT INTO schema_migrations (name) VALUES (?)",
                (name,),
            )

    def _get_migrations(self):
        return [
            ("add_indexes_v1", self._migration_add_indexes_v1),
            ("add_profile_is_banned", self._migration_add_profile_is_banned),
            ("create_admin_logs_table", self._migration_create_admin_logs_table),
            ("create_karera_tables", self._migration_create_karera_tables),
            ("create_karera_bet_legs_table", self._migration_create_karera_bet_legs_table),
            ("add_karera_indexes", self._migration_add_karera_indexes),
            ("add_match_commission_shares", self._migration_add_match_commission_shares),
            ("add_karera_bet_promo", self._migration_add_karera_bet_promo),
        ]

    # --- Migrations ---

    def _migration_add_indexes_v1(self, cursor) -> None:
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_bets_match_status ON bets(match_id, status)"
        )
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_bets_user ON bets(user_id)")
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_transactions_receiver ON transactions(receiver_id)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_transactions_sender ON transactions(sender_id)"
        )
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_matches_status ON matches(status)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_profiles_upline ON profiles(upline_id)")

    def _migration_add_profile_is_banned(self, cursor) -> None:
        self._add_column_if_not_exists(cursor, "profiles", "is_banned", "INTEGER DEFAULT 0")

    def _migration_create_admin_logs_table(self, cursor) -> None:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS admin_logs (
                log_id INTEGER PRIMARY KEY AUTOINCREMENT,
                admin_id INTEGER NOT NULL,
                action_type TEXT NOT NULL,
                target_id INTEGER,
                target_name TEXT,
                details_json TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

    def _migration_create_karera_tables(self, cursor) -> None:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS karera_races (
                race_id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                racing_time TEXT,
                status TEXT NOT NULL DEFAULT 'open',
                bet_types TEXT NOT NULL,
                result_json TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                settled_at TIMESTAMP
            )
            """
        )
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS karera_horses (
                race_id INTEGER NOT NULL,
                horse_number INTEGER NOT NULL,
                horse_name TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'active',
                total_bet REAL NOT NULL DEFAULT 0,
                PRIMARY KEY (race_id, horse_number),
                FOREIGN KEY (race_id) REFERENCES karera_races(race_id)
            )
            """
        )
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS karera_bets (
                bet_id INTEGER PRIMARY KEY AUTOINCREMENT,
                race_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                bet_type TEXT NOT NULL,
                combinations_json TEXT NOT NULL,
                amount REAL NOT NULL,
                units INTEGER NOT NULL,
                unit_cost REAL NOT NULL,
                combos INTEGER NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending',
                payout REAL NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                settled_at TIMESTAMP,
                FOREIGN KEY (race_id) REFERENCES karera_races(race_id),
                FOREIGN KEY (user_id) REFERENCES profiles(user_id)
            )
            """
        )

    def _migration_create_karera_bet_legs_table(self, cursor) -> None:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS karera_bet_legs (
                bet_id INTEGER NOT NULL,
                leg_index INTEGER NOT NULL,
                race_id INTEGER NOT NULL,
                PRIMARY KEY (bet_id, leg_index),
                FOREIGN KEY (bet_id) REFERENCES karera_bets(bet_id),
                FOREIGN KEY (race_id) REFERENCES karera_races(race_id)
            )
            """
        )

    def _migration_add_karera_indexes(self, cursor) -> None:
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_karera_bets_race_status ON karera_bets(race_id, status)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_karera_bet_legs_race ON karera_bet_legs(race_id)"
        )

    def _migration_add_match_commission_shares(self, cursor) -> None:
        self._add_column_if_not_exists(cursor, "matches", "commission_shares_json", "TEXT")

    def _migration_add_karera_bet_promo(self, cursor) -> None:
        self._add_column_if_not_exists(
            cursor, "karera_bets", "promo_percent", "REAL NOT NULL DEFAULT 0"
        )
