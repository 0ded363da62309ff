"""
SQLite persistence for seasons, NFL teams and NFL games.

This module implements the NFLDataStore contract on SQLite. Schema setup and
small administrative helpers run over a thread-safe synchronous connection
pool with versioned migrations; the contract methods used by the sync engine
are async and run over aiosqlite.
"""

import sqlite3
import logging
import threading
import time
import uuid
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from contextlib import contextmanager, asynccontextmanager
from queue import Queue, Empty, Full
from dataclasses import dataclass

import aiosqlite

from .errors import DuplicateGameError, StorageError

logger = logging.getLogger(__name__)

TEAM_COLUMNS = (
    "team_code", "team_name", "team_city", "team_conference", "team_division",
    "team_logo", "team_primary_color", "team_secondary_color",
)

GAME_COLUMNS = (
    "season_id", "week", "home_team_id", "away_team_id", "home_score", "away_score",
    "game_date", "start_time", "status", "season_type", "scores_updated_at",
)

# Columns a sync run may change on an existing game
GAME_UPDATABLE_COLUMNS = (
    "home_score", "away_score", "status", "game_date", "start_time",
    "season_type", "scores_updated_at",
)


def _now() -> str:
    return datetime.now(UTC).isoformat()


@dataclass
class ConnectionPoolConfig:
    """Sizing and timeouts for the admin connection pool."""
    max_connections: int = 3
    busy_timeout: float = 30.0
    ping_interval: float = 60.0


class SQLiteConnectionPool:
    """Small thread-safe pool of synchronous connections.

    Only schema setup and admin helpers use it; sync runs go through
    aiosqlite. Idle connections are pinged at most once per ping_interval
    and replaced when the ping fails.
    """

    def __init__(self, db_path: str, config: ConnectionPoolConfig):
        self.db_path = db_path
        self.config = config
        self._idle: Queue = Queue(maxsize=config.max_connections)
        self._lock = threading.RLock()
        self._open = 0
        self._last_ping = 0.0

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.config.busy_timeout, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute(f"PRAGMA busy_timeout={int(self.config.busy_timeout * 1000)}")
        return conn

    def _checkout(self) -> sqlite3.Connection:
        try:
            conn = self._idle.get_nowait()
        except Empty:
            with self._lock:
                if self._open < self.config.max_connections:
                    conn = self._connect()
                    self._open += 1
                    return conn
            conn = self._idle.get(timeout=self.config.busy_timeout)

        if self._ping_due() and not self._alive(conn):
            logger.warning(f"Replacing dead connection to {self.db_path}")
            conn.close()
            conn = self._connect()
        return conn

    def _ping_due(self) -> bool:
        now = time.monotonic()
        with self._lock:
            if now - self._last_ping < self.config.ping_interval:
                return False
            self._last_ping = now
            return True

    @staticmethod
    def _alive(conn: sqlite3.Connection) -> bool:
        try:
            conn.execute("SELECT 1")
        except sqlite3.Error:
            return False
        return True

    @contextmanager
    def connection(self):
        conn = self._checkout()
        try:
            yield conn
        finally:
            try:
                self._idle.put_nowait(conn)
            except Full:
                conn.close()
                with self._lock:
                    self._open -= 1

    def close(self) -> None:
        with self._lock:
            while True:
                try:
                    self._idle.get_nowait().close()
                except Empty:
                    break
            self._open = 0


class PickemDatabase:
    """SQLite store for seasons, teams and games implementing NFLDataStore."""

    CURRENT_SCHEMA_VERSION = 2

    def __init__(self, db_path: str = "pickem.db", pool_config: Optional[ConnectionPoolConfig] = None):
        """
        Initialize the database.

        Args:
            db_path: Path to the SQLite database file
            pool_config: Configuration for connection pooling
        """
        self.db_path = Path(db_path)
        self.pool_config = pool_config or ConnectionPoolConfig()
        self._pool = SQLiteConnectionPool(str(self.db_path), self.pool_config)
        self._ensure_database()

    def _ensure_database(self) -> None:
        """Create database and tables if they don't exist, run migrations."""
        with self._pool.connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
            """)

            cursor = conn.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
            row = cursor.fetchone()
            current_version = row[0] if row else 0

            self._run_migrations(conn, current_version)

            conn.commit()

    def _run_migrations(self, conn: sqlite3.Connection, from_version: int) -> None:
        """Run database migrations from the current version to the latest."""
        migrations = {
            1: self._migration_v1_initial_schema,
            2: self._migration_v2_lookup_indexes,
        }

        for version in range(from_version + 1, self.CURRENT_SCHEMA_VERSION + 1):
            if version in migrations:
                logger.info(f"Running migration to version {version}")
                migrations[version](conn)
                conn.execute(
                    "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (version, _now())
                )

    def _migration_v1_initial_schema(self, conn: sqlite3.Connection) -> None:
        """Migration v1: seasons, teams and games."""
        conn.execute("""
            CREATE TABLE IF NOT EXISTS seasons (
                id TEXT PRIMARY KEY,
                season TEXT NOT NULL,
                is_current INTEGER NOT NULL DEFAULT 0,
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS nfl_teams (
                id TEXT PRIMARY KEY,
                team_code TEXT UNIQUE NOT NULL,
                team_name TEXT NOT NULL,
                team_city TEXT NOT NULL,
                team_conference TEXT NOT NULL,
                team_division TEXT NOT NULL,
                team_logo TEXT,
                team_primary_color TEXT,
                team_secondary_color TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS nfl_games (
                id TEXT PRIMARY KEY,
                season_id TEXT NOT NULL,
                week INTEGER NOT NULL,
                home_team_id TEXT NOT NULL,
                away_team_id TEXT NOT NULL,
                home_score INTEGER DEFAULT 0,
                away_score INTEGER DEFAULT 0,
                game_date TEXT,
                start_time TEXT,
                status TEXT DEFAULT 'scheduled',
                season_type INTEGER DEFAULT 2,
                scores_updated_at TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY (season_id) REFERENCES seasons (id),
                FOREIGN KEY (home_team_id) REFERENCES nfl_teams (id),
                FOREIGN KEY (away_team_id) REFERENCES nfl_teams (id)
            )
        """)

        # At most one game per season/week/home/away
        conn.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS idx_nfl_games_natural_key
            ON nfl_games (season_id, week, home_team_id, away_team_id)
        """)

    def _migration_v2_lookup_indexes(self, conn: sqlite3.Connection) -> None:
        """Migration v2: indexes for week listings and staleness checks."""
        conn.execute("CREATE INDEX IF NOT EXISTS idx_nfl_games_season_week ON nfl_games (season_id, week)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_nfl_games_scores_updated ON nfl_games (scores_updated_at)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_seasons_current ON seasons (is_current)")

    @contextmanager
    def _get_connection(self):
        with self._pool.connection() as conn:
            yield conn

    @asynccontextmanager
    async def _get_async_connection(self):
        """Get an async connection; SQLite failures surface as StorageError."""
        try:
            async with aiosqlite.connect(str(self.db_path)) as conn:
                await conn.execute("PRAGMA journal_mode=WAL")
                await conn.execute(f"PRAGMA busy_timeout={int(self.pool_config.busy_timeout * 1000)}")
                conn.row_factory = aiosqlite.Row
                yield conn
        except sqlite3.Error as e:
            raise StorageError(f"Database error on {self.db_path}: {e}") from e

    def health_check(self) -> Dict[str, Union[bool, int, str]]:
        """Check connectivity and report row counts."""
        try:
            with self._get_connection() as conn:
                team_count = conn.execute("SELECT COUNT(*) FROM nfl_teams").fetchone()[0]
                game_count = conn.execute("SELECT COUNT(*) FROM nfl_games").fetchone()[0]
                last_scores_update = conn.execute("SELECT MAX(scores_updated_at) FROM nfl_games").fetchone()[0]
            return {
                "healthy": True,
                "team_count": team_count,
                "game_count": game_count,
                "last_scores_update": last_scores_update,
                "schema_version": self.CURRENT_SCHEMA_VERSION,
                "database_path": str(self.db_path),
                "last_check": _now(),
            }
        except sqlite3.Error as e:
            logger.error(f"Database health check failed: {e}")
            return {"healthy": False, "error": str(e), "last_check": _now()}

    def close(self) -> None:
        """Close the database connection pool."""
        self._pool.close()

    # ------------------------------------------------------------------
    # Synchronous administrative helpers
    # ------------------------------------------------------------------
    def create_season(self, season: str, is_current: bool = True, is_active: bool = True) -> Dict[str, Any]:
        """Create a season; marking it current clears the flag on every other season."""
        season_id = str(uuid.uuid4())
        now = _now()
        with self._get_connection() as conn:
            try:
                if is_current:
                    conn.execute("UPDATE seasons SET is_current = 0, updated_at = ?", (now,))
                conn.execute(
                    "INSERT INTO seasons (id, season, is_current, is_active, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (season_id, str(season), int(is_current), int(is_active), now, now)
                )
                conn.commit()
            except sqlite3.Error:
                conn.rollback()
                raise
            row = conn.execute("SELECT * FROM seasons WHERE id = ?", (season_id,)).fetchone()
            return dict(row)

    def get_team_count(self) -> int:
        with self._get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM nfl_teams").fetchone()[0]

    def get_game_count(self, season_id: Optional[str] = None) -> int:
        with self._get_connection() as conn:
            if season_id is None:
                return conn.execute("SELECT COUNT(*) FROM nfl_games").fetchone()[0]
            return conn.execute(
                "SELECT COUNT(*) FROM nfl_games WHERE season_id = ?", (season_id,)
            ).fetchone()[0]

    def get_all_games(self) -> List[Dict[str, Any]]:
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM nfl_games ORDER BY week, created_at").fetchall()
            return [dict(row) for row in rows]

    # ------------------------------------------------------------------
    # NFLDataStore contract
    # ------------------------------------------------------------------
    async def get_team_by_code(self, team_code: str) -> Optional[Dict[str, Any]]:
        async with self._get_async_connection() as conn:
            cursor = await conn.execute("SELECT * FROM nfl_teams WHERE team_code = ?", (team_code,))
            row = await cursor.fetchone()
            return dict(row) if row else None

    async def create_or_update_team(self, team_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a team keyed by team_code, or update the supplied columns.

        Args:
            team_data: Column values; ``team_code`` is required

        Returns:
            The stored team row
        """
        team_code = team_data.get("team_code")
        if not team_code:
            raise ValueError("team_code is required")

        values = {k: v for k, v in team_data.items() if k in TEAM_COLUMNS}
        now = _now()

        async with self._get_async_connection() as conn:
            cursor = await conn.execute("SELECT id FROM nfl_teams WHERE team_code = ?", (team_code,))
            existing = await cursor.fetchone()

            if existing:
                updates = {k: v for k, v in values.items() if k != "team_code"}
                if updates:
                    assignments = ", ".join(f"{column} = ?" for column in updates)
                    await conn.execute(
                        f"UPDATE nfl_teams SET {assignments}, updated_at = ? WHERE id = ?",
                        (*updates.values(), now, existing["id"])
                    )
            else:
                row = {
                    "team_name": team_code,
                    "team_city": "",
                    "team_conference": "Unknown",
                    "team_division": "Unknown",
                    **{k: v for k, v in values.items() if v is not None},
                }
                columns = ["id", *row.keys(), "created_at", "updated_at"]
                placeholders = ", ".join("?" for _ in columns)
                # A concurrent sync may insert the same code between the
                # SELECT above and this INSERT; its row wins.
                cursor = await conn.execute(
                    f"INSERT INTO nfl_teams ({', '.join(columns)}) VALUES ({placeholders}) "
                    "ON CONFLICT(team_code) DO NOTHING",
                    (str(uuid.uuid4()), *row.values(), now, now)
                )
                if cursor.rowcount == 0:
                    logger.info(f"Team {team_code} was created concurrently; using the stored row")

            await conn.commit()
            cursor = await conn.execute("SELECT * FROM nfl_teams WHERE team_code = ?", (team_code,))
            return dict(await cursor.fetchone())

    async def find_football_game(
        self, season_id: str, week: int, home_team_id: str, away_team_id: str
    ) -> Optional[Dict[str, Any]]:
        async with self._get_async_connection() as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM nfl_games
                WHERE season_id = ? AND week = ? AND home_team_id = ? AND away_team_id = ?
                """,
                (season_id, week, home_team_id, away_team_id)
            )
            row = await cursor.fetchone()
            return dict(row) if row else None

    async def create_football_game(self, game_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a game.

        Raises:
            DuplicateGameError: A game with the same season/week/home/away exists
        """
        now = _now()
        game_id = game_data.get("id") or str(uuid.uuid4())
        row = {
            "home_score": 0,
            "away_score": 0,
            "status": "scheduled",
            "season_type": 2,
            "scores_updated_at": now,
            **{k: v for k, v in game_data.items() if k in GAME_COLUMNS and v is not None},
        }
        columns = ["id", *row.keys(), "created_at", "updated_at"]
        placeholders = ", ".join("?" for _ in columns)

        async with self._get_async_connection() as conn:
            try:
                await conn.execute(
                    f"INSERT INTO nfl_games ({', '.join(columns)}) VALUES ({placeholders})",
                    (game_id, *row.values(), now, now)
                )
                await conn.commit()
            except sqlite3.IntegrityError as e:
                raise DuplicateGameError(
                    f"Game already exists for season {row.get('season_id')} week {row.get('week')} "
                    f"({row.get('away_team_id')} at {row.get('home_team_id')})"
                ) from e
            cursor = await conn.execute("SELECT * FROM nfl_games WHERE id = ?", (game_id,))
            return dict(await cursor.fetchone())

    async def update_football_game(self, game_id: str, updates: Dict[str, Any]) -> None:
        values = {k: v for k, v in updates.items() if k in GAME_UPDATABLE_COLUMNS}
        if not values:
            return
        assignments = ", ".join(f"{column} = ?" for column in values)
        async with self._get_async_connection() as conn:
            await conn.execute(
                f"UPDATE nfl_games SET {assignments}, updated_at = ? WHERE id = ?",
                (*values.values(), _now(), game_id)
            )
            await conn.commit()

    async def get_current_season(self) -> Optional[Dict[str, Any]]:
        async with self._get_async_connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM seasons WHERE is_current = 1 ORDER BY updated_at DESC LIMIT 1"
            )
            row = await cursor.fetchone()
            return dict(row) if row else None

    async def get_games_by_season_and_week(self, season_id: str, week: int) -> List[Dict[str, Any]]:
        async with self._get_async_connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM nfl_games WHERE season_id = ? AND week = ? ORDER BY start_time",
                (season_id, week)
            )
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]
