import threading
from typing import Callable, Optional

from dailyrank import dates, socketio


class CleanupScheduler:
    """Per-process cleanup context for the daily leaderboard.

    - ``on_boundary_tick``: at UTC+8 hour 0, once per day, purge other days and trim today
    - ``on_trim_tick``: periodic safety trim of today's rows
    - ``on_startup``: one purge+trim after boot to recover from downtime over midnight

    ``is_cleaning`` guards against overlapping passes inside this process only.
    A tick arriving while a pass runs is dropped, never queued.
    """

    IDLE = 'idle'
    CLEANING = 'cleaning'
    # Re-check interval while a dropped boundary tick is still owed
    BOUNDARY_RETRY_SEC = 60

    def __init__(self, app, engine_factory: Optional[Callable] = None,
                 clock: Callable = dates.utc_now):
        self.app = app
        self.clock = clock
        self.last_cleanup_day: Optional[str] = None
        self._guard = threading.Lock()
        self._stopped = threading.Event()
        self._started = False
        if engine_factory is None:
            from .engine import build_engine

            def engine_factory():
                return build_engine(app, clock=clock)
        self.engine_factory = engine_factory

    @property
    def is_cleaning(self) -> bool:
        return self._guard.locked()

    @property
    def state(self) -> str:
        return self.CLEANING if self.is_cleaning else self.IDLE

    def purge_stale_days(self, engine, today: str) -> int:
        try:
            removed = engine.store.delete_where_not(today)
        except Exception:
            self.app.logger.exception(f"[cleanup-purge] failed today={today}")
            return 0
        if removed:
            self.app.logger.info(f"[cleanup-purge] removed {removed} stale rows, today={today}")
        else:
            self.app.logger.info(f"[cleanup-purge] nothing to remove, today={today}")
        return removed

    def run_cleanup(self, today: Optional[str] = None, reason: str = 'manual') -> Optional[dict]:
        """Purge stale days and trim today. Returns None if a pass is already running."""
        today = today or dates.today(self.clock())
        if not self._guard.acquire(blocking=False):
            self.app.logger.info(f"[cleanup-skip] reason={reason} pass already running")
            return None
        result = {'date': today, 'purged': 0, 'trimmed': 0}
        try:
            with self.app.app_context():
                engine = self.engine_factory()
                result['purged'] = self.purge_stale_days(engine, today)
                result['trimmed'] = engine.trim(today)
        except Exception:
            self.app.logger.exception(f"[cleanup-trim] failed today={today} reason={reason}")
        finally:
            self._guard.release()
        return result

    def on_boundary_tick(self) -> bool:
        now = self.clock()
        today = dates.today(now)
        if dates.hour_of_day(now) != 0 or self.last_cleanup_day == today or self.is_cleaning:
            return False
        self.app.logger.info(f"[timer-fire] day boundary reached, today={today}")
        self.last_cleanup_day = today
        self.run_cleanup(today, reason='boundary')
        return True

    def on_trim_tick(self) -> bool:
        if self.is_cleaning:
            return False
        today = dates.today(self.clock())
        try:
            with self.app.app_context():
                self.engine_factory().trim(today)
        except Exception:
            self.app.logger.exception(f"[cleanup-trim] safety trim failed today={today}")
        return True

    def on_startup(self) -> None:
        today = dates.today(self.clock())
        self.app.logger.info(f"[cleanup-startup] initial check, today={today}")
        self.run_cleanup(today, reason='startup')
        self.last_cleanup_day = today

    # ---- background timers ----

    def start(self) -> None:
        """Arm the startup, boundary and safety-trim timers.

        No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set, and
        when already started.
        """
        config = self.app.config
        if config.get('TESTING') and not config.get('ENABLE_SCHEDULER_IN_TESTS'):
            return
        if self._started:
            return
        self._started = True
        self._stopped.clear()
        socketio.start_background_task(self._startup_worker, int(config.get('CLEANUP_STARTUP_DELAY_SEC', 10)))
        socketio.start_background_task(self._boundary_worker, int(config.get('BOUNDARY_SLACK_SEC', 1)))
        socketio.start_background_task(self._trim_worker, int(config.get('TRIM_INTERVAL_SEC', 300)))

    def stop(self) -> None:
        self._stopped.set()
        self._started = False

    def _startup_worker(self, delay: int) -> None:
        if self._stopped.wait(delay):
            return
        self.on_startup()

    def boundary_pending(self) -> bool:
        """True inside hour 0 while today's boundary pass has not run."""
        now = self.clock()
        return dates.hour_of_day(now) == 0 and self.last_cleanup_day != dates.today(now)

    def _boundary_worker(self, slack: int) -> None:
        # Single-shot wait to the next midnight, re-armed after each firing.
        # A tick dropped while busy is retried shortly for the rest of hour 0.
        delay = None
        while not self._stopped.is_set():
            if delay is None:
                delay = dates.seconds_until_next_midnight(self.clock()) + slack
            self.app.logger.info(f"[timer-set] boundary cleanup in {delay:.0f}s")
            if self._stopped.wait(delay):
                return
            delay = None
            if not self.on_boundary_tick() and self.boundary_pending():
                self.app.logger.info("[timer-retry] boundary tick dropped while busy")
                delay = self.BOUNDARY_RETRY_SEC

    def _trim_worker(self, interval: int) -> None:
        while not self._stopped.wait(interval):
            self.on_trim_tick()
