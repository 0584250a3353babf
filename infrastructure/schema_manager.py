"""
Schema and migration management for SQLite database.
"""

import logging
import sqlite3

logger = logging.getLogger("stakes_bot.schema")


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
        # Events table
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS events (
                event_id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL DEFAULT 0,
                name TEXT NOT NULL,
                description TEXT,
                event_type TEXT NOT NULL DEFAULT 'custom',
                location TEXT,
                choices TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending',
                paused_from TEXT,
                scheduled_time INTEGER,
                min_bet INTEGER NOT NULL,
                max_bet INTEGER NOT NULL,
                limit_per_user INTEGER NOT NULL,
                fee_percent INTEGER NOT NULL,
                total_bets_amount INTEGER NOT NULL DEFAULT 0,
                total_bets_count INTEGER NOT NULL DEFAULT 0,
                created_by INTEGER NOT NULL,
                created_at INTEGER NOT NULL,
                updated_at INTEGER
            )
            """
        )

        # Bets table
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS bets (
                bet_id INTEGER PRIMARY KEY AUTOINCREMENT,
                event_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                user_tag TEXT,
                amount INTEGER NOT NULL CHECK (amount > 0),
                choice_index INTEGER NOT NULL,
                choice_name TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'active',
                is_winner INTEGER NOT NULL DEFAULT 0,
                winning_amount INTEGER,
                bet_time INTEGER NOT NULL,
                FOREIGN KEY (event_id) REFERENCES events(event_id) ON DELETE CASCADE
            )
            """
        )

    # --- Migration helpers ---

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
            ("add_settlement_columns", self._migration_add_settlement_columns),
            ("add_announcement_columns", self._migration_add_announcement_columns),
            ("add_bet_odds_and_cancellation", self._migration_add_bet_odds_and_cancellation),
            ("create_payouts_table", self._migration_create_payouts_table),
            ("create_audit_log_table", self._migration_create_audit_log_table),
            ("create_guild_config_table", self._migration_create_guild_config_table),
            ("add_indexes_v1", self._migration_add_indexes_v1),
        ]

    # --- Migrations ---

    def _migration_add_settlement_columns(self, cursor) -> None:
        """Add winner/settlement tracking to events."""
        self._add_column_if_not_exists(cursor, "events", "winner_approved", "INTEGER NOT NULL DEFAULT 0")
        self._add_column_if_not_exists(cursor, "events", "winning_choice", "TEXT")
        self._add_column_if_not_exists(cursor, "events", "result_summary", "TEXT")
        self._add_column_if_not_exists(cursor, "events", "total_payout", "INTEGER NOT NULL DEFAULT 0")
        self._add_column_if_not_exists(cursor, "events", "finalized_at", "INTEGER")
        self._add_column_if_not_exists(cursor, "events", "finalized_by", "INTEGER")

    def _migration_add_announcement_columns(self, cursor) -> None:
        """Track where the event announcement was posted so it can be edited."""
        self._add_column_if_not_exists(cursor, "events", "channel_id", "INTEGER")
        self._add_column_if_not_exists(cursor, "events", "announcement_message_id", "INTEGER")

    def _migration_add_bet_odds_and_cancellation(self, cursor) -> None:
        """Record odds at placement and who cancelled a bet."""
        self._add_column_if_not_exists(cursor, "bets", "odds", "REAL")
        self._add_column_if_not_exists(cursor, "bets", "cancelled_at", "INTEGER")
        self._add_column_if_not_exists(cursor, "bets", "cancelled_by", "INTEGER")
        self._add_column_if_not_exists(cursor, "bets", "meta", "TEXT")

    def _migration_create_payouts_table(self, cursor) -> None:
        """Create payouts table; one row per winning bet, ever."""
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS payouts (
                payout_id INTEGER PRIMARY KEY AUTOINCREMENT,
                event_id INTEGER NOT NULL,
                bet_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                user_tag TEXT,
                amount INTEGER NOT NULL,
                fee_amount INTEGER NOT NULL DEFAULT 0,
                status TEXT NOT NULL DEFAULT 'pending',
                method TEXT,
                account_id TEXT,
                transaction_id TEXT,
                processed_at INTEGER,
                processed_by INTEGER,
                expires_at INTEGER,
                notes TEXT,
                created_at INTEGER NOT NULL,
                FOREIGN KEY (event_id) REFERENCES events(event_id) ON DELETE CASCADE,
                FOREIGN KEY (bet_id) REFERENCES bets(bet_id) ON DELETE CASCADE
            )
            """
        )
        cursor.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_payouts_bet ON payouts(bet_id)")

    def _migration_create_audit_log_table(self, cursor) -> None:
        """Durable record of operator actions against events, bets and payouts."""
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS audit_log (
                log_id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL DEFAULT 0,
                event_id INTEGER,
                actor_id INTEGER,
                action TEXT NOT NULL,
                status_before TEXT,
                status_after TEXT,
                details TEXT,
                created_at INTEGER NOT NULL
            )
            """
        )

    def _migration_create_guild_config_table(self, cursor) -> None:
        """Create table for per-guild betting defaults."""
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS guild_config (
                guild_id INTEGER PRIMARY KEY,
                min_bet INTEGER,
                max_bet INTEGER,
                limit_per_user INTEGER,
                fee_percent INTEGER,
                suspicious_bet_threshold INTEGER,
                announcement_channel_id INTEGER,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

    def _migration_add_indexes_v1(self, cursor) -> None:
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_events_guild_status ON events(guild_id, status)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_bets_event_status ON bets(event_id, status)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_bets_event_user ON bets(event_id, user_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_payouts_event ON payouts(event_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_payouts_user ON payouts(user_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_audit_log_event ON audit_log(event_id)")
