import threading
import logging
from typing import Callable, Dict, List, Optional

from conversion_tracker.core.clock import Clock, elapsed_ms, utcnow
from conversion_tracker.core.job_registry import JobRegistry
from conversion_tracker.core.notifications import NotificationHub

logger = logging.getLogger(__name__)

TimerFactory = Callable[..., threading.Timer]


class RetentionSweeper:
    """Reclaims finished jobs from the registry and the notification hub.

    Two paths lead here: a one-shot timer armed when a job completes, and
    ``cleanup_older_than`` which scans every terminal job. Both go through
    ``reclaim``, which is a no-op for ids that are already gone.
    """

    def __init__(
        self,
        registry: JobRegistry,
        hub: NotificationHub,
        retention_window: Optional[float] = 3600,
        clock: Clock = utcnow,
        timer_factory: TimerFactory = threading.Timer,
    ):
        self._registry = registry
        self._hub = hub
        self._retention_window = retention_window
        self._clock = clock
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timers: Dict[str, threading.Timer] = {}
        self._stop_event = threading.Event()
        self._sweep_thread: Optional[threading.Thread] = None

    @property
    def retention_window(self) -> Optional[float]:
        return self._retention_window

    def schedule(self, job_id: str, delay_seconds: Optional[float] = None) -> bool:
        """
        ジョブの削除タイマーを設定する

        Args:
            job_id: ジョブID
            delay_seconds: 削除までの秒数 (省略時はリテンション期間)

        Returns:
            タイマーを設定した場合は True、リテンションが無効なら False
        """
        delay = self._retention_window if delay_seconds is None else delay_seconds
        if delay is None or delay <= 0:
            return False

        timer = self._timer_factory(delay, self._fire, args=(job_id,))
        timer.daemon = True
        with self._lock:
            previous = self._timers.pop(job_id, None)
            self._timers[job_id] = timer
        if previous is not None:
            previous.cancel()
        timer.start()
        logger.debug(f"Scheduled cleanup of job {job_id} in {delay}s")
        return True

    def cancel(self, job_id: str) -> bool:
        with self._lock:
            timer = self._timers.pop(job_id, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def pending(self) -> List[str]:
        with self._lock:
            return list(self._timers)

    def reclaim(self, job_id: str) -> bool:
        """Remove a job from the registry, owner index and hub. Returns False if it was already gone."""
        self.cancel(job_id)
        lock = self._registry.lock_for(job_id)
        if lock is None:
            self._hub.drop(job_id)
            return False
        with lock:
            removed = self._registry.remove(job_id)
            self._hub.drop(job_id)
        if removed is None:
            return False
        logger.info(f"ジョブ {job_id} を削除しました ({removed.status.value})")
        return True

    def cleanup_older_than(self, max_age_ms: int) -> int:
        """Reclaim every terminal job whose last update is at least ``max_age_ms`` old."""
        now = self._clock()
        cleaned = 0
        for job in self._registry.all():
            if not job.is_terminal:
                continue
            if elapsed_ms(job.updated_at, now) < max_age_ms:
                continue
            if self.reclaim(job.id):
                cleaned += 1
        if cleaned:
            logger.info(f"Cleaned up {cleaned} conversion job(s) older than {max_age_ms}ms")
        return cleaned

    def start_periodic(self, interval_seconds: float, max_age_ms: int) -> bool:
        """Run ``cleanup_older_than`` on a daemon thread every ``interval_seconds``."""
        if interval_seconds <= 0:
            return False
        if self._sweep_thread is not None and self._sweep_thread.is_alive():
            return False

        self._stop_event.clear()

        def _loop():
            while not self._stop_event.wait(interval_seconds):
                try:
                    self.cleanup_older_than(max_age_ms)
                except Exception:
                    logger.exception("Periodic conversion cleanup failed")

        self._sweep_thread = threading.Thread(target=_loop, name="conversion-sweeper", daemon=True)
        self._sweep_thread.start()
        logger.info(f"Periodic cleanup started: interval={interval_seconds}s max_age={max_age_ms}ms")
        return True

    def shutdown(self) -> None:
        """Stop the periodic sweep and cancel every pending timer."""
        self._stop_event.set()
        thread = self._sweep_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5)
        self._sweep_thread = None

        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        if timers:
            logger.info(f"Cancelled {len(timers)} pending cleanup timer(s)")

    def _fire(self, job_id: str) -> None:
        with self._lock:
            self._timers.pop(job_id, None)
        self.reclaim(job_id)
