"""SQLite offline queue for workout data captured without connectivity.

Sets logged mid-workout land in ``pending_sets`` first and are replayed to
Supabase once the device is back online. Social actions carry a ``synced``
flag that the uploader flips after a successful push.
"""

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..config import get_settings


logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS pending_sets (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL,
    exercise TEXT NOT NULL,
    weight REAL NOT NULL,
    reps INTEGER NOT NULL,
    rpe INTEGER,
    tempo TEXT,
    velocity REAL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS workout_sessions (
    id TEXT PRIMARY KEY,
    athlete_id TEXT NOT NULL,
    name TEXT,
    start_time TEXT NOT NULL,
    end_time TEXT,
    status TEXT DEFAULT 'active',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS workout_sets (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL,
    exercise TEXT NOT NULL,
    set_number INTEGER NOT NULL,
    weight REAL,
    reps INTEGER,
    rpe INTEGER,
    tempo TEXT,
    velocity REAL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS nutrition_logs (
    id TEXT PRIMARY KEY,
    athlete_id TEXT NOT NULL,
    meal_type TEXT,
    food_item TEXT NOT NULL,
    calories REAL,
    protein REAL,
    carbs REAL,
    fat REAL,
    logged_at TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS feed_posts (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    content TEXT,
    media_url TEXT,
    session_id TEXT,
    synced INTEGER DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS club_memberships (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    club_id TEXT NOT NULL,
    role TEXT DEFAULT 'member',
    joined_at TEXT NOT NULL,
    synced INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS challenge_participants (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    challenge_id TEXT NOT NULL,
    progress REAL DEFAULT 0,
    completed INTEGER DEFAULT 0,
    joined_at TEXT NOT NULL,
    synced INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS meet_rsvps (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    meet_id TEXT NOT NULL,
    status TEXT DEFAULT 'pending',
    rsvp_at TEXT NOT NULL,
    synced INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS session_finishers (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL,
    protocol_id TEXT NOT NULL,
    status TEXT DEFAULT 'assigned',
    completed_at TEXT,
    synced INTEGER DEFAULT 0,
    created_at TEXT NOT NULL
);
"""

# Tables carrying a ``synced`` flag
SYNCABLE_TABLES = frozenset({
    "feed_posts",
    "club_memberships",
    "challenge_participants",
    "meet_rsvps",
    "session_finishers",
})


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class PendingSet:
    """A set logged offline and waiting to be uploaded."""

    id: str
    session_id: str
    exercise: str
    weight: float
    reps: int
    rpe: Optional[int] = None
    tempo: Optional[str] = None
    velocity: Optional[float] = None
    created_at: str = ""

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "PendingSet":
        return cls(**{key: row[key] for key in row.keys()})

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "exercise": self.exercise,
            "weight": self.weight,
            "reps": self.reps,
            "rpe": self.rpe,
            "tempo": self.tempo,
            "velocity": self.velocity,
            "created_at": self.created_at,
        }


class LocalStore:
    """SQLite store backing the offline workout queue."""

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize the local store.

        Args:
            db_path: Path to the SQLite file. Defaults to the configured
                     ``local_store_path``.
        """
        if db_path:
            self.db_path = Path(db_path)
        else:
            self.db_path = Path(get_settings().local_store_path)

        self.initialize()

    def initialize(self) -> None:
        """Create all tables if they do not exist."""
        with self._get_connection() as conn:
            conn.executescript(SCHEMA)
        logger.debug(f"Local store ready at {self.db_path}")

    @contextmanager
    def _get_connection(self):
        """Get database connection with context manager."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # === Pending sets ===

    def add_pending_set(
        self,
        session_id: str,
        exercise: str,
        weight: float,
        reps: int,
        rpe: Optional[int] = None,
        tempo: Optional[str] = None,
        velocity: Optional[float] = None,
    ) -> str:
        """Queue a set for upload and return its local id."""
        set_id = _new_id()
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO pending_sets
                    (id, session_id, exercise, weight, reps, rpe, tempo, velocity, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (set_id, session_id, exercise, weight, reps, rpe, tempo, velocity, _now()),
            )
        return set_id

    def get_pending_sets(self, session_id: Optional[str] = None) -> List[PendingSet]:
        """Pending sets, oldest first."""
        with self._get_connection() as conn:
            if session_id:
                rows = conn.execute(
                    "SELECT * FROM pending_sets WHERE session_id = ? ORDER BY created_at ASC, rowid ASC",
                    (session_id,),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM pending_sets ORDER BY created_at ASC, rowid ASC"
                ).fetchall()
        return [PendingSet.from_row(row) for row in rows]

    def remove_pending_set(self, set_id: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM pending_sets WHERE id = ?", (set_id,))
            return cursor.rowcount > 0

    def clear_pending_sets(self) -> int:
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM pending_sets")
            return cursor.rowcount

    # === Workout sessions ===

    def start_session(self, athlete_id: str, name: Optional[str] = None) -> str:
        session_id = _new_id()
        now = _now()
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO workout_sessions (id, athlete_id, name, start_time, status, created_at)
                VALUES (?, ?, ?, ?, 'active', ?)
                """,
                (session_id, athlete_id, name, now, now),
            )
        return session_id

    def end_session(self, session_id: str, status: str = "completed") -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE workout_sessions SET end_time = ?, status = ? WHERE id = ?",
                (_now(), status, session_id),
            )
            return cursor.rowcount > 0

    def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM workout_sessions WHERE id = ?", (session_id,)
            ).fetchone()
        return dict(row) if row else None

    def add_workout_set(
        self,
        session_id: str,
        exercise: str,
        weight: Optional[float] = None,
        reps: Optional[int] = None,
        rpe: Optional[int] = None,
        tempo: Optional[str] = None,
        velocity: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Record a completed set. Set numbers count per exercise within the session."""
        set_id = _new_id()
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM workout_sets WHERE session_id = ? AND exercise = ?",
                (session_id, exercise),
            ).fetchone()
            set_number = row[0] + 1
            conn.execute(
                """
                INSERT INTO workout_sets
                    (id, session_id, exercise, set_number, weight, reps, rpe, tempo, velocity, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (set_id, session_id, exercise, set_number, weight, reps, rpe, tempo, velocity, _now()),
            )
        return {"id": set_id, "set_number": set_number}

    def get_session_sets(self, session_id: str) -> List[Dict[str, Any]]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM workout_sets WHERE session_id = ? ORDER BY created_at ASC, set_number ASC",
                (session_id,),
            ).fetchall()
        return [dict(row) for row in rows]

    # === Nutrition and social ===

    def log_nutrition(
        self,
        athlete_id: str,
        food_item: str,
        meal_type: Optional[str] = None,
        calories: Optional[float] = None,
        protein: Optional[float] = None,
        carbs: Optional[float] = None,
        fat: Optional[float] = None,
        logged_at: Optional[str] = None,
    ) -> str:
        log_id = _new_id()
        now = _now()
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO nutrition_logs
                    (id, athlete_id, meal_type, food_item, calories, protein, carbs, fat, logged_at, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (log_id, athlete_id, meal_type, food_item, calories, protein, carbs, fat, logged_at or now, now),
            )
        return log_id

    def get_nutrition_logs(self, athlete_id: str) -> List[Dict[str, Any]]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM nutrition_logs WHERE athlete_id = ? ORDER BY logged_at ASC",
                (athlete_id,),
            ).fetchall()
        return [dict(row) for row in rows]

    def queue_feed_post(
        self,
        user_id: str,
        content: Optional[str] = None,
        media_url: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> str:
        post_id = _new_id()
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO feed_posts (id, user_id, content, media_url, session_id, synced, created_at)
                VALUES (?, ?, ?, ?, ?, 0, ?)
                """,
                (post_id, user_id, content, media_url, session_id, _now()),
            )
        return post_id

    def queue_finisher(self, session_id: str, protocol_id: str) -> str:
        finisher_id = _new_id()
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO session_finishers (id, session_id, protocol_id, status, synced, created_at)
                VALUES (?, ?, ?, 'assigned', 0, ?)
                """,
                (finisher_id, session_id, protocol_id, _now()),
            )
        return finisher_id

    # === Sync bookkeeping ===

    def get_unsynced(self, table: str) -> List[Dict[str, Any]]:
        """Rows of a syncable table that have not been pushed yet."""
        self._check_syncable(table)
        with self._get_connection() as conn:
            rows = conn.execute(f"SELECT * FROM {table} WHERE synced = 0").fetchall()
        return [dict(row) for row in rows]

    def mark_synced(self, table: str, ids: Sequence[str]) -> int:
        self._check_syncable(table)
        if not ids:
            return 0
        placeholders = ", ".join("?" for _ in ids)
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"UPDATE {table} SET synced = 1 WHERE id IN ({placeholders})",
                tuple(ids),
            )
            return cursor.rowcount

    def _check_syncable(self, table: str) -> None:
        # Table names cannot be bound as parameters, so only known names pass
        if table not in SYNCABLE_TABLES:
            raise ValueError(f"Table '{table}' has no sync flag")

    def get_stats(self) -> Dict[str, int]:
        """Row counts of the queue tables."""
        with self._get_connection() as conn:
            return {
                "pending_sets": conn.execute("SELECT COUNT(*) FROM pending_sets").fetchone()[0],
                "workout_sessions": conn.execute("SELECT COUNT(*) FROM workout_sessions").fetchone()[0],
                "unsynced_posts": conn.execute(
                    "SELECT COUNT(*) FROM feed_posts WHERE synced = 0"
                ).fetchone()[0],
            }
