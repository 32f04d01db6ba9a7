"""
Stale-plan cache manager for Course Caddie.

Cached game plans go stale when practice data or course geometry changes.
Marking plans stale schedules a debounced background sweep that rebuilds
them under a lock, so only one process regenerates at a time.
"""

import functools
import logging
import threading
import time
from typing import Callable, List, Optional

from .config import Config, get_config
from .database import Database
from .distributions import build_bag_distributions
from .game_plan import generate_game_plan
from .locks import DistributedLock, SqliteAdvisoryLock
from .models import CachedPlanRecord, GamePlan, PlanHistoryEntry, StrategyMode
from .simulator import Simulator, get_simulator

logger = logging.getLogger(__name__)


class RegenerationScheduler:
    """
    Debounces regeneration requests into a single delayed call.

    Each schedule() cancels the pending timer and starts a new one, so a burst
    of requests runs the callback once, `delay` seconds after the last request.
    """

    def __init__(
        self,
        callback: Callable[[], object],
        delay: float,
        timer_factory: Callable = threading.Timer,
    ):
        self._callback = callback
        self.delay = delay
        self._timer_factory = timer_factory
        self._timer = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def schedule(self):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._timer = self._timer_factory(self.delay, functools.partial(self._fire, self._generation))
            self._timer.daemon = True
            self._timer.start()

    def cancel(self):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._generation += 1

    def _fire(self, generation: int):
        with self._lock:
            # A timer replaced or cancelled after it started firing
            if generation != self._generation:
                return
            self._timer = None
        try:
            self._callback()
        except Exception:
            logger.exception("Scheduled plan regeneration failed")


class PlanCacheManager:
    """Owns the game plan cache: staleness, regeneration and history."""

    def __init__(
        self,
        db: Optional[Database] = None,
        lock: Optional[DistributedLock] = None,
        config: Optional[Config] = None,
        simulator_factory: Optional[Callable[[], Simulator]] = None,
        timer_factory: Callable = threading.Timer,
    ):
        self.config = config or get_config()
        self.db = db or Database(self.config.db_path)
        self.lock = lock or SqliteAdvisoryLock(self.db, self.config.lock_ttl_seconds)
        self.simulator_factory = simulator_factory or get_simulator
        self.scheduler = RegenerationScheduler(
            self.regenerate_stale_plans,
            self.config.regen_debounce_seconds,
            timer_factory,
        )

    # =========================================================================
    # Staleness and regeneration
    # =========================================================================

    def mark_plans_stale(self, reason: str, course_id: Optional[str] = None) -> int:
        """
        Flag cached plans as stale and schedule a debounced regeneration.
        Without a course id every cached plan is flagged (e.g. new practice data).
        """
        count = self.db.mark_stale(reason, course_id)
        scope = f"course {course_id}" if course_id else "all courses"
        logger.info(f"Marked {count} plan(s) stale for {scope}: {reason}")
        self.scheduler.schedule()
        return count

    def regenerate_stale_plans(self) -> int:
        """
        Rebuild every stale plan. Returns the number regenerated.

        Skips immediately when another worker holds the lock. A failure on one
        plan leaves that row stale and moves on to the next. Plans marked stale
        while the sweep runs stay stale and get another pass scheduled.
        """
        lock_name = self.config.regen_lock_name
        if not self.lock.try_acquire(lock_name):
            logger.debug(f"Lock '{lock_name}' held elsewhere, skipping regeneration")
            return 0

        start = time.monotonic()
        regenerated = 0
        changed = False
        try:
            stale = self.db.get_stale_plans()
            if not stale:
                return 0

            logger.info(f"Regenerating {len(stale)} stale plan(s)")

            distributions = build_bag_distributions(
                self.db.get_clubs(),
                self.db.get_shots(),
                self.config.dispersion_floor_yards,
            )
            if not distributions:
                logger.info("No distributions available, skipping regeneration")
                return 0

            simulator = self.simulator_factory()
            for record in stale:
                if not self.lock.refresh(lock_name):
                    logger.warning(f"Lost lock '{lock_name}', stopping regeneration")
                    break
                if self._regenerate_one(record, distributions, simulator):
                    regenerated += 1

            changed = self._changed_since(stale)
            logger.info(f"Done in {time.monotonic() - start:.1f}s")
        except Exception:
            logger.exception("Fatal error during plan regeneration")
        finally:
            self.lock.release(lock_name)

        if changed:
            logger.info("Plans went stale during regeneration, scheduling another pass")
            self.scheduler.schedule()
        return regenerated

    def _changed_since(self, records: List[CachedPlanRecord]) -> bool:
        """True if any row went stale, or stale again, after `records` were read."""
        seen = {r.cache_id: r.stale_generation for r in records}
        return any(seen.get(r.cache_id) != r.stale_generation for r in self.db.get_stale_plans())

    def _regenerate_one(self, record: CachedPlanRecord, distributions, simulator: Simulator) -> bool:
        key = f"{record.course_id}/{record.tee_box}/{record.mode.value}"
        try:
            course = self.db.get_course(record.course_id)
            if course is None or not course.holes:
                logger.debug(f"Skipping {key}: course missing or has no holes")
                return False

            plan = generate_game_plan(course, record.tee_box, distributions, record.mode, simulator)
            if self.db.complete_regeneration(record, plan) is None:
                logger.info(f"{key} changed during regeneration, left stale")
                return False
            logger.info(f"{course.name} ({record.tee_box}/{record.mode.value}): {plan.total_expected:.1f} xS")
            return True
        except Exception:
            logger.exception(f"Failed for {key}")
            return False

    # =========================================================================
    # Direct cache access
    # =========================================================================

    def generate_plan(
        self,
        course_id: str,
        tee_box: str,
        mode: StrategyMode = StrategyMode.SCORING,
        simulator: Optional[Simulator] = None,
    ) -> Optional[GamePlan]:
        """Build a plan now and store it fresh in the cache. None if the course is unknown."""
        course = self.db.get_course(course_id)
        if course is None:
            return None

        distributions = build_bag_distributions(
            self.db.get_clubs(),
            self.db.get_shots(),
            self.config.dispersion_floor_yards,
        )
        plan = generate_game_plan(
            course, tee_box, distributions, mode, simulator or self.simulator_factory()
        )
        self.db.upsert_cached_plan(course_id, tee_box, mode, plan)
        return plan

    def get_cached_plan(self, course_id: str, tee_box: str, mode: StrategyMode) -> Optional[CachedPlanRecord]:
        return self.db.get_cached_plan(course_id, tee_box, mode)

    def purge_course_plans(self, course_id: str) -> int:
        return self.db.purge_course_plans(course_id)

    def list_history(self, course_id: str, tee_box: str, mode: StrategyMode) -> List[PlanHistoryEntry]:
        return self.db.list_plan_history(course_id, tee_box, mode)

    def get_history_entry(self, entry_id: str) -> Optional[PlanHistoryEntry]:
        return self.db.get_plan_history_entry(entry_id)
