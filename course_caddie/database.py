"""
SQLite database layer for Course Caddie.
Handles persistence of clubs, shots, course geometry and the game plan cache.
"""

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import get_config
from .models import (
    CachedPlanRecord,
    Club,
    Coordinate,
    Course,
    CourseHole,
    GamePlan,
    Hazard,
    PlanHistoryEntry,
    Shot,
    StrategyMode,
    Target,
    plan_cache_id,
)

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 100


class DatabaseError(Exception):
    """Raised when the database cannot be opened or initialized."""


class Database:
    """SQLite database manager."""

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize database connection."""
        config = get_config()
        self.db_path = Path(db_path or config.db_path)
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_db()
        except PermissionError as e:
            raise DatabaseError(f"Permission denied: {self.db_path}") from e
        except sqlite3.OperationalError as e:
            message = str(e).lower()
            if "permission" in message or "readonly" in message:
                raise DatabaseError(f"Permission denied: {self.db_path}") from e
            if "disk" in message and "full" in message:
                raise DatabaseError(f"Disk full: cannot write to {self.db_path}") from e
            if "unable to open" in message:
                raise DatabaseError(f"Cannot open database: {self.db_path}") from e
            raise DatabaseError(f"Database initialization failed: {e}") from e

    @contextmanager
    def _connection(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self):
        """Initialize database schema."""
        with self._connection() as conn:
            cursor = conn.cursor()

            # Bag
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS clubs (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    category TEXT NOT NULL,
                    loft REAL,
                    manual_carry REAL,
                    manual_total REAL,
                    preferred_shape TEXT,
                    sort_order INTEGER DEFAULT 0
                )
            """)

            # Practice shots
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS shots (
                    id TEXT PRIMARY KEY,
                    club_id TEXT NOT NULL REFERENCES clubs(id) ON DELETE CASCADE,
                    carry_yards REAL NOT NULL,
                    total_yards REAL,
                    ball_speed REAL,
                    launch_angle REAL,
                    spin_rate REAL,
                    spin_axis REAL,
                    apex_height REAL,
                    descent_angle REAL,
                    offline_yards REAL,
                    shape TEXT,
                    quality TEXT,
                    recorded_at TEXT
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS courses (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    updated_at TEXT
                )
            """)

            # Hole geometry (center line, targets, hazards, polygons) as JSON
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS course_holes (
                    course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
                    hole_number INTEGER NOT NULL,
                    par INTEGER NOT NULL,
                    yardages_json TEXT,
                    plays_like_json TEXT,
                    tee_lat REAL NOT NULL,
                    tee_lng REAL NOT NULL,
                    tee_elevation REAL DEFAULT 0,
                    pin_lat REAL NOT NULL,
                    pin_lng REAL NOT NULL,
                    pin_elevation REAL DEFAULT 0,
                    geometry_json TEXT,
                    PRIMARY KEY (course_id, hole_number)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS game_plan_cache (
                    id TEXT PRIMARY KEY,
                    course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
                    tee_box TEXT NOT NULL,
                    mode TEXT NOT NULL,
                    plan_json TEXT,
                    stale INTEGER DEFAULT 0,
                    stale_reason TEXT,
                    stale_generation INTEGER DEFAULT 0,
                    created_at TEXT,
                    updated_at TEXT,
                    UNIQUE(course_id, tee_box, mode)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS game_plan_history (
                    id TEXT PRIMARY KEY,
                    course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
                    tee_box TEXT NOT NULL,
                    mode TEXT NOT NULL,
                    total_expected REAL,
                    plan_json TEXT,
                    trigger_reason TEXT,
                    created_at TEXT NOT NULL
                )
            """)

            # Advisory locks for the regeneration sweep
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS plan_locks (
                    name TEXT PRIMARY KEY,
                    holder TEXT NOT NULL,
                    acquired_at TEXT NOT NULL
                )
            """)

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_shots_club ON shots(club_id)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_cache_stale ON game_plan_cache(stale)")
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_history_key
                ON game_plan_history(course_id, tee_box, mode, created_at)
            """)

    # =========================================================================
    # Club operations
    # =========================================================================

    def save_club(self, club: Club):
        """Save or update a club."""
        with self._connection() as conn:
            conn.execute("""
                INSERT INTO clubs
                (id, name, category, loft, manual_carry, manual_total, preferred_shape, sort_order)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    category = excluded.category,
                    loft = excluded.loft,
                    manual_carry = excluded.manual_carry,
                    manual_total = excluded.manual_total,
                    preferred_shape = excluded.preferred_shape,
                    sort_order = excluded.sort_order
            """, (
                club.id,
                club.name,
                club.category,
                club.loft,
                club.manual_carry,
                club.manual_total,
                club.preferred_shape,
                club.sort_order,
            ))

    def get_clubs(self) -> List[Club]:
        """Get the bag, in display order."""
        with self._connection() as conn:
            rows = conn.execute("SELECT * FROM clubs ORDER BY sort_order, name").fetchall()
            return [self._row_to_club(row) for row in rows]

    def _row_to_club(self, row: sqlite3.Row) -> Club:
        return Club(
            id=row["id"],
            name=row["name"],
            category=row["category"],
            loft=row["loft"],
            manual_carry=row["manual_carry"],
            manual_total=row["manual_total"],
            preferred_shape=row["preferred_shape"],
            sort_order=row["sort_order"] or 0,
        )

    # =========================================================================
    # Shot operations
    # =========================================================================

    def save_shots(self, shots: List[Shot]) -> int:
        """Record shots. Shots without an id get one. Returns the number saved."""
        recorded_at = datetime.now().isoformat()
        with self._connection() as conn:
            conn.executemany("""
                INSERT OR REPLACE INTO shots
                (id, club_id, carry_yards, total_yards, ball_speed, launch_angle, spin_rate,
                 spin_axis, apex_height, descent_angle, offline_yards, shape, quality, recorded_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, [
                (
                    shot.id or str(uuid.uuid4()),
                    shot.club_id,
                    shot.carry_yards,
                    shot.total_yards,
                    shot.ball_speed,
                    shot.launch_angle,
                    shot.spin_rate,
                    shot.spin_axis,
                    shot.apex_height,
                    shot.descent_angle,
                    shot.offline_yards,
                    shot.shape,
                    shot.quality,
                    recorded_at,
                )
                for shot in shots
            ])
        return len(shots)

    def get_shots(self, club_id: Optional[str] = None) -> List[Shot]:
        """Get all shots, or one club's shots."""
        with self._connection() as conn:
            if club_id:
                rows = conn.execute(
                    "SELECT * FROM shots WHERE club_id = ? ORDER BY recorded_at, rowid", (club_id,)
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM shots ORDER BY recorded_at, rowid").fetchall()
            return [self._row_to_shot(row) for row in rows]

    def _row_to_shot(self, row: sqlite3.Row) -> Shot:
        return Shot(
            club_id=row["club_id"],
            carry_yards=row["carry_yards"],
            id=row["id"],
            total_yards=row["total_yards"],
            ball_speed=row["ball_speed"],
            launch_angle=row["launch_angle"],
            spin_rate=row["spin_rate"],
            spin_axis=row["spin_axis"],
            apex_height=row["apex_height"],
            descent_angle=row["descent_angle"],
            offline_yards=row["offline_yards"],
            shape=row["shape"],
            quality=row["quality"],
        )

    # =========================================================================
    # Course operations
    # =========================================================================

    def save_course(self, course: Course):
        """Save a course, replacing all of its holes."""
        with self._connection() as conn:
            conn.execute("""
                INSERT INTO courses (id, name, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET name = excluded.name, updated_at = excluded.updated_at
            """, (course.id, course.name, datetime.now().isoformat()))
            conn.execute("DELETE FROM course_holes WHERE course_id = ?", (course.id,))
            conn.executemany("""
                INSERT INTO course_holes
                (course_id, hole_number, par, yardages_json, plays_like_json,
                 tee_lat, tee_lng, tee_elevation, pin_lat, pin_lng, pin_elevation, geometry_json)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, [
                (
                    course.id,
                    hole.hole_number,
                    hole.par,
                    json.dumps(hole.yardages),
                    json.dumps(hole.plays_like_yards) if hole.plays_like_yards else None,
                    hole.tee.lat,
                    hole.tee.lng,
                    hole.tee.elevation,
                    hole.pin.lat,
                    hole.pin.lng,
                    hole.pin.elevation,
                    json.dumps(self._hole_geometry(hole)),
                )
                for hole in course.holes
            ])

    def get_course(self, course_id: str) -> Optional[Course]:
        """Get a course with its holes ordered by number."""
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM courses WHERE id = ?", (course_id,)).fetchone()
            if not row:
                return None
            hole_rows = conn.execute(
                "SELECT * FROM course_holes WHERE course_id = ? ORDER BY hole_number",
                (course_id,),
            ).fetchall()
            return Course(
                id=row["id"],
                name=row["name"],
                holes=[self._row_to_hole(h) for h in hole_rows],
            )

    def get_all_courses(self) -> List[Course]:
        """Get every course (holes included)."""
        with self._connection() as conn:
            ids = [row["id"] for row in conn.execute("SELECT id FROM courses ORDER BY name")]
        return [c for c in (self.get_course(i) for i in ids) if c]

    def delete_course(self, course_id: str) -> bool:
        """Delete a course. Holes, cached plans and history go with it."""
        with self._connection() as conn:
            cursor = conn.execute("DELETE FROM courses WHERE id = ?", (course_id,))
            return cursor.rowcount > 0

    def _hole_geometry(self, hole: CourseHole) -> Dict[str, Any]:
        return {
            "center_line": [p.to_dict() for p in hole.center_line],
            "targets": [t.to_dict() for t in hole.targets],
            "hazards": [h.to_dict() for h in hole.hazards],
            "fairway": [p.to_dict() for p in hole.fairway],
            "green": [p.to_dict() for p in hole.green],
        }

    def _row_to_hole(self, row: sqlite3.Row) -> CourseHole:
        """Convert database row to CourseHole. Malformed geometry loads as empty."""
        hole = CourseHole(
            hole_number=row["hole_number"],
            par=row["par"],
            yardages=json.loads(row["yardages_json"] or "{}"),
            tee=Coordinate(row["tee_lat"], row["tee_lng"], row["tee_elevation"] or 0.0),
            pin=Coordinate(row["pin_lat"], row["pin_lng"], row["pin_elevation"] or 0.0),
            plays_like_yards=json.loads(row["plays_like_json"]) if row["plays_like_json"] else None,
        )
        try:
            geometry = json.loads(row["geometry_json"] or "{}")
            hole.center_line = [Coordinate.from_dict(p) for p in geometry.get("center_line") or []]
            hole.targets = [Target.from_dict(t) for t in geometry.get("targets") or []]
            hole.hazards = [Hazard.from_dict(h) for h in geometry.get("hazards") or []]
            hole.fairway = [Coordinate.from_dict(p) for p in geometry.get("fairway") or []]
            hole.green = [Coordinate.from_dict(p) for p in geometry.get("green") or []]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(
                f"Malformed geometry for {row['course_id']} hole {row['hole_number']}: {e}"
            )
            hole.center_line, hole.targets, hole.hazards = [], [], []
            hole.fairway, hole.green = [], []
        return hole

    # =========================================================================
    # Game plan cache operations
    # =========================================================================

    def get_cached_plan(self, course_id: str, tee_box: str, mode: StrategyMode) -> Optional[CachedPlanRecord]:
        """Get the cached plan for a key."""
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM game_plan_cache WHERE course_id = ? AND tee_box = ? AND mode = ?",
                (course_id, tee_box, mode.value),
            ).fetchone()
            if row:
                return self._row_to_cached_plan(row)
        return None

    def upsert_cached_plan(self, course_id: str, tee_box: str, mode: StrategyMode, plan: GamePlan) -> str:
        """Store a fresh plan for a key, clearing any stale flag. Returns the update time."""
        now = datetime.now().isoformat()
        with self._connection() as conn:
            conn.execute("""
                INSERT INTO game_plan_cache
                (id, course_id, tee_box, mode, plan_json, stale, stale_reason, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, 0, NULL, ?, ?)
                ON CONFLICT(course_id, tee_box, mode) DO UPDATE SET
                    plan_json = excluded.plan_json,
                    stale = 0,
                    stale_reason = NULL,
                    updated_at = excluded.updated_at
            """, (
                plan_cache_id(course_id, tee_box, mode),
                course_id,
                tee_box,
                mode.value,
                json.dumps(plan.to_dict()),
                now,
                now,
            ))
        return now

    def purge_course_plans(self, course_id: str) -> int:
        """Drop every cached plan for a course. History is kept."""
        with self._connection() as conn:
            cursor = conn.execute("DELETE FROM game_plan_cache WHERE course_id = ?", (course_id,))
            return cursor.rowcount

    def mark_stale(self, reason: str, course_id: Optional[str] = None) -> int:
        """
        Flip fresh cache rows to stale. Returns the number of rows flipped.

        Every matching row also gets its stale generation bumped, including rows
        that were already stale, so a regeneration started before this call
        cannot mark them fresh.
        """
        scope, params = ("WHERE course_id = ?", (course_id,)) if course_id else ("WHERE 1 = 1", ())
        with self._connection() as conn:
            cursor = conn.execute(
                f"UPDATE game_plan_cache SET stale = 1, stale_reason = ? {scope} AND stale = 0",
                (reason,) + params,
            )
            flipped = cursor.rowcount
            conn.execute(
                f"UPDATE game_plan_cache SET stale_generation = stale_generation + 1 {scope}",
                params,
            )
            return flipped

    def complete_regeneration(
        self,
        record: CachedPlanRecord,
        plan: GamePlan,
    ) -> Optional[PlanHistoryEntry]:
        """
        Store a regenerated plan and its history snapshot in one transaction.

        Only succeeds while the row is still at the stale generation it was read
        at. Returns None, leaving the row stale, when it was marked stale again
        or purged in the meantime.
        """
        now = datetime.now().isoformat()
        entry = self._history_entry(
            record.course_id, record.tee_box, record.mode, plan, record.stale_reason
        )
        with self._connection() as conn:
            cursor = conn.execute("""
                UPDATE game_plan_cache
                SET plan_json = ?, stale = 0, stale_reason = NULL, updated_at = ?
                WHERE course_id = ? AND tee_box = ? AND mode = ?
                  AND stale = 1 AND stale_generation = ?
            """, (
                json.dumps(plan.to_dict()),
                now,
                record.course_id,
                record.tee_box,
                record.mode.value,
                record.stale_generation,
            ))
            if cursor.rowcount == 0:
                return None
            self._insert_history(conn, entry)
        return entry

    def get_stale_plans(self) -> List[CachedPlanRecord]:
        """Get all cache rows awaiting regeneration."""
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM game_plan_cache WHERE stale = 1 ORDER BY updated_at"
            ).fetchall()
            return [self._row_to_cached_plan(row) for row in rows]

    def _row_to_cached_plan(self, row: sqlite3.Row) -> CachedPlanRecord:
        return CachedPlanRecord(
            course_id=row["course_id"],
            tee_box=row["tee_box"],
            mode=StrategyMode(row["mode"]),
            plan=self._load_plan(row["plan_json"]),
            stale=bool(row["stale"]),
            stale_reason=row["stale_reason"],
            stale_generation=row["stale_generation"] or 0,
            created_at=row["created_at"] or "",
            updated_at=row["updated_at"] or "",
        )

    def _load_plan(self, raw: Optional[str]) -> Optional[GamePlan]:
        if not raw:
            return None
        try:
            return GamePlan.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Could not decode stored game plan: {e}")
            return None

    # =========================================================================
    # Game plan history operations
    # =========================================================================

    def append_plan_history(
        self,
        course_id: str,
        tee_box: str,
        mode: StrategyMode,
        plan: GamePlan,
        trigger_reason: Optional[str] = None,
    ) -> PlanHistoryEntry:
        """Append a snapshot of a regenerated plan."""
        entry = self._history_entry(course_id, tee_box, mode, plan, trigger_reason)
        with self._connection() as conn:
            self._insert_history(conn, entry)
        return entry

    def _history_entry(
        self,
        course_id: str,
        tee_box: str,
        mode: StrategyMode,
        plan: GamePlan,
        trigger_reason: Optional[str],
    ) -> PlanHistoryEntry:
        return PlanHistoryEntry(
            id=str(uuid.uuid4()),
            course_id=course_id,
            tee_box=tee_box,
            mode=mode,
            total_expected=plan.total_expected,
            trigger_reason=trigger_reason,
            created_at=datetime.now().isoformat(),
            plan=plan,
        )

    def _insert_history(self, conn: sqlite3.Connection, entry: PlanHistoryEntry):
        conn.execute("""
            INSERT INTO game_plan_history
            (id, course_id, tee_box, mode, total_expected, plan_json, trigger_reason, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            entry.id,
            entry.course_id,
            entry.tee_box,
            entry.mode.value,
            entry.total_expected,
            json.dumps(entry.plan.to_dict()),
            entry.trigger_reason,
            entry.created_at,
        ))

    def list_plan_history(
        self,
        course_id: str,
        tee_box: str,
        mode: StrategyMode,
        limit: int = HISTORY_LIMIT,
    ) -> List[PlanHistoryEntry]:
        """History summaries for a key, newest first. Payloads are not loaded."""
        with self._connection() as conn:
            rows = conn.execute("""
                SELECT id, course_id, tee_box, mode, total_expected, trigger_reason, created_at
                FROM game_plan_history
                WHERE course_id = ? AND tee_box = ? AND mode = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
            """, (course_id, tee_box, mode.value, limit)).fetchall()
            return [self._row_to_history(row) for row in rows]

    def get_plan_history_entry(self, entry_id: str) -> Optional[PlanHistoryEntry]:
        """Get one history snapshot with its full plan."""
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM game_plan_history WHERE id = ?", (entry_id,)).fetchone()
            if row:
                entry = self._row_to_history(row)
                entry.plan = self._load_plan(row["plan_json"])
                return entry
        return None

    def _row_to_history(self, row: sqlite3.Row) -> PlanHistoryEntry:
        return PlanHistoryEntry(
            id=row["id"],
            course_id=row["course_id"],
            tee_box=row["tee_box"],
            mode=StrategyMode(row["mode"]),
            total_expected=row["total_expected"],
            trigger_reason=row["trigger_reason"],
            created_at=row["created_at"],
        )
