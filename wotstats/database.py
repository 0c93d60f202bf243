# wotstats/database.py

import logging
import os
import sqlite3
import threading
import time
from pathlib import Path
from typing import List, Optional, Sequence

from wotstats.errors import StorageError, UserNotFoundError
from wotstats.models import StatisticEntry, StatKind, User

logger = logging.getLogger(__name__)


class Database:
    """Handle all database operations."""

    def __init__(self, db_path: str = 'data/wotstats.db'):
        self.db_path = self._resolve_db_path(db_path)
        self.conn = None
        self._lock = threading.RLock()
        self.init_database()

    @staticmethod
    def _resolve_db_path(db_path: str) -> str:
        """Return an absolute database path anchored to project root when relative."""
        if db_path == ':memory:':
            return db_path
        path = Path(db_path)
        if path.is_absolute():
            return str(path)

        project_root = Path(__file__).resolve().parents[1]
        return str(project_root / path)

    def init_database(self):
        """Create tables if they don't exist."""
        try:
            db_dir = os.path.dirname(self.db_path)
            if db_dir:
                try:
                    os.makedirs(db_dir, exist_ok=True)
                except OSError as e:
                    raise StorageError(f"Failed to create database directory '{db_dir}': {e}")

            # Shared by request threads; every operation holds self._lock.
            self.conn = sqlite3.connect(self.db_path, timeout=30.0, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA busy_timeout = 30000")
            self.conn.execute("PRAGMA foreign_keys = ON")
            self._set_wal_mode_best_effort()

            cursor = self.conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    telegram_id INTEGER UNIQUE NOT NULL,
                    nickname TEXT,
                    wargaming_id INTEGER,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP
                )
            """)

            # One row per statistic of a user's current snapshot
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS stats (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    position INTEGER NOT NULL,
                    type TEXT NOT NULL,
                    name TEXT NOT NULL,
                    value TEXT,
                    html_id TEXT NOT NULL,
                    trend_img BLOB,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_stats_user_id ON stats(user_id, position)")

            self._commit_with_retry(context="init schema commit")
        except sqlite3.Error as e:
            raise StorageError(f"Failed to initialize database at '{self.db_path}': {e}")

    def _commit_with_retry(self, retries: int = 8, delay_seconds: float = 0.25, context: str = "commit") -> None:
        """
        Retry commit on transient SQLITE_BUSY/locked errors.
        """
        last_error = None
        for attempt in range(retries):
            try:
                self.conn.commit()
                return
            except sqlite3.OperationalError as e:
                last_error = e
                if "locked" not in str(e).lower() and "busy" not in str(e).lower():
                    raise
                if attempt == retries - 1:
                    break
                time.sleep(delay_seconds)
        raise StorageError(
            f"Failed to {context}: database remained locked after {retries} attempts ({last_error})"
        )

    def _set_wal_mode_best_effort(self, retries: int = 5, delay_seconds: float = 0.2) -> None:
        """Try to enable WAL without failing startup if the DB is temporarily locked."""
        for attempt in range(retries):
            try:
                self.conn.execute("PRAGMA journal_mode = WAL")
                return
            except sqlite3.OperationalError as e:
                msg = str(e).lower()
                if "locked" not in msg and "busy" not in msg:
                    raise
                if attempt == retries - 1:
                    logger.warning("Could not enable WAL mode (database locked); continuing. (%s)", e)
                    return
                time.sleep(delay_seconds)

    # --- Users ---

    def upsert_user(
        self,
        telegram_id: int,
        nickname: Optional[str] = None,
        wargaming_id: Optional[int] = None,
    ) -> User:
        """Create a user or update it, keeping stored values where None is passed."""
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute("""
                    INSERT INTO users (telegram_id, nickname, wargaming_id)
                    VALUES (?, ?, ?)
                    ON CONFLICT (telegram_id) DO UPDATE SET
                        nickname = COALESCE(excluded.nickname, users.nickname),
                        wargaming_id = COALESCE(excluded.wargaming_id, users.wargaming_id),
                        updated_at = CURRENT_TIMESTAMP
                """, (telegram_id, nickname, wargaming_id))
                self.conn.commit()
            except sqlite3.Error as e:
                self.conn.rollback()
                logger.error("Error upserting user %s: %s", telegram_id, e)
                raise StorageError(f"Failed to upsert user {telegram_id}: {e}") from e

            return self.get_user_by_telegram_id(telegram_id)

    def get_user_by_telegram_id(self, telegram_id: int) -> User:
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute(
                    "SELECT id, telegram_id, nickname, wargaming_id, created_at, updated_at "
                    "FROM users WHERE telegram_id = ?",
                    (telegram_id,),
                )
                row = cursor.fetchone()
            except sqlite3.Error as e:
                logger.error("Error getting user %s: %s", telegram_id, e)
                raise StorageError(f"Failed to get user {telegram_id}: {e}") from e

        if row is None:
            raise UserNotFoundError(f"User with telegram_id {telegram_id} not found")
        return User(**dict(row))

    def user_exists(self, user_id: int) -> bool:
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute("SELECT 1 FROM users WHERE id = ?", (user_id,))
                return cursor.fetchone() is not None
            except sqlite3.Error as e:
                logger.error("Error checking user %s: %s", user_id, e)
                raise StorageError(f"Failed to check user {user_id}: {e}") from e

    # --- Stats snapshot ---

    def get_stats(self, user_id: int) -> List[StatisticEntry]:
        """Return the stored snapshot of ``user_id`` in page order."""
        with self._lock:
            if not self.user_exists(user_id):
                raise UserNotFoundError(f"User {user_id} not found")
            return self._select_stats(user_id)

    def replace_stats(self, user_id: int, entries: Sequence[StatisticEntry]) -> List[StatisticEntry]:
        """
        Atomically replace the stats snapshot of ``user_id``.

        Deletes every stored row of the user and inserts ``entries`` in one
        transaction. On any database error the transaction is rolled back and
        the previous snapshot stays visible. Lock waits are bounded by
        ``busy_timeout``; a failed commit is reported, not retried.

        Returns:
            The committed rows, re-read from the database

        Raises:
            UserNotFoundError: If the user does not exist
            StorageError: If the transaction or the re-read fails
        """
        rows = [
            (user_id, position, entry.kind.value, entry.name, entry.value, entry.anchor_id, entry.image)
            for position, entry in enumerate(entries)
        ]

        with self._lock:
            if not self.user_exists(user_id):
                raise UserNotFoundError(f"User {user_id} not found")

            try:
                cursor = self.conn.cursor()
                cursor.execute("BEGIN IMMEDIATE")
                cursor.execute("DELETE FROM stats WHERE user_id = ?", (user_id,))
                cursor.executemany("""
                    INSERT INTO stats (user_id, position, type, name, value, html_id, trend_img)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """, rows)
                self.conn.commit()
            except sqlite3.Error as e:
                self._rollback_quietly()
                logger.error("Error replacing stats for user %s: %s", user_id, e)
                raise StorageError(f"Failed to replace stats for user {user_id}: {e}") from e

            logger.debug("Replaced stats for user %s with %d rows", user_id, len(rows))
            return self._select_stats(user_id)

    def _select_stats(self, user_id: int) -> List[StatisticEntry]:
        try:
            cursor = self.conn.cursor()
            cursor.execute("""
                SELECT id, user_id, type, name, value, html_id, trend_img, created_at
                FROM stats
                WHERE user_id = ?
                ORDER BY position, id
            """, (user_id,))
            rows = cursor.fetchall()
        except sqlite3.Error as e:
            logger.error("Error selecting stats for user %s: %s", user_id, e)
            raise StorageError(f"Failed to get stats for user {user_id}: {e}") from e

        return [self._row_to_entry(row) for row in rows]

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> StatisticEntry:
        image = row["trend_img"]
        return StatisticEntry(
            kind=StatKind(row["type"]),
            name=row["name"],
            value=row["value"],
            anchor_id=row["html_id"],
            image=bytes(image) if image is not None else None,
            id=row["id"],
            user_id=row["user_id"],
            created_at=row["created_at"],
        )

    def _rollback_quietly(self) -> None:
        try:
            self.conn.rollback()
        except sqlite3.Error as e:
            logger.error("Error while rolling back transaction: %s", e)

    def close(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
