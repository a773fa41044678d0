import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from conversion_tracker.core.clock import Clock, utcnow
from conversion_tracker.core.config import Settings, get_settings
from conversion_tracker.core.job_registry import JobRegistry
from conversion_tracker.core.lifecycle import LifecycleController, ResultInput, new_job_id
from conversion_tracker.core.notifications import NotificationHub, ProgressListener, Subscription
from conversion_tracker.models.schemas import ConversionJob, ConversionStats
from conversion_tracker.services.cleanup import RetentionSweeper, TimerFactory
from conversion_tracker.services.progress_query import ProgressQueryService, estimate_remaining

logger = logging.getLogger(__name__)


class ConversionTracker:
    """Process-wide engine bundling the registry, lifecycle, hub, sweeper and queries.

    Construct one per process and pass it to whatever needs it; executors use
    ``create``/``advance``/``complete``/``fail`` and observers use the query
    methods, ``subscribe`` and ``cancel``.
    """

    def __init__(
        self,
        retention_window: Optional[float] = 3600,
        clock: Clock = utcnow,
        id_factory: Callable[[], str] = new_job_id,
        timer_factory: TimerFactory = threading.Timer,
        recent_limit: int = 10,
    ):
        self.clock = clock
        self.registry = JobRegistry()
        self.hub = NotificationHub()
        self.sweeper = RetentionSweeper(
            self.registry,
            self.hub,
            retention_window=retention_window,
            clock=clock,
            timer_factory=timer_factory,
        )
        self.lifecycle = LifecycleController(
            self.registry,
            self.hub,
            sweeper=self.sweeper,
            clock=clock,
            id_factory=id_factory,
        )
        self.queries = ProgressQueryService(self.registry, recent_limit=recent_limit)

    # --- executor side ---

    def create(self, owner_id: str, label: str, kind: str, extra: Optional[Dict[str, Any]] = None) -> ConversionJob:
        return self.lifecycle.create(owner_id, label, kind, extra=extra)

    def advance(
        self,
        job_id: str,
        progress_percent: float,
        step_label: Optional[str] = None,
        step_index: Optional[int] = None,
        extra_merge: Optional[Dict[str, Any]] = None,
    ) -> Optional[ConversionJob]:
        return self.lifecycle.advance(
            job_id,
            progress_percent,
            step_label=step_label,
            step_index=step_index,
            extra_merge=extra_merge,
        )

    def complete(self, job_id: str, result: ResultInput = None) -> Optional[ConversionJob]:
        return self.lifecycle.complete(job_id, result)

    def fail(self, job_id: str, error_message: str) -> Optional[ConversionJob]:
        return self.lifecycle.fail(job_id, error_message)

    # --- observer side ---

    def cancel(self, job_id: str) -> Optional[ConversionJob]:
        return self.lifecycle.cancel(job_id)

    def get(self, job_id: str) -> Optional[ConversionJob]:
        return self.registry.get(job_id)

    def subscribe(self, job_id: str, listener: ProgressListener) -> Optional[Subscription]:
        """Register a listener for a known job. Returns None if the job does not exist."""
        lock = self.registry.lock_for(job_id)
        if lock is None:
            return None
        # ジョブロック内で登録し、削除処理との競合で孤立したリスナーを残さない
        with lock:
            if job_id not in self.registry:
                return None
            return self.hub.subscribe(job_id, listener)

    def list_by_owner(self, owner_id: str) -> List[ConversionJob]:
        return self.queries.list_by_owner(owner_id)

    def list_active_by_owner(self, owner_id: str) -> List[ConversionJob]:
        return self.queries.list_active_by_owner(owner_id)

    def list_recent_by_owner(self, owner_id: str, limit: Optional[int] = None) -> List[ConversionJob]:
        return self.queries.list_recent_by_owner(owner_id, limit)

    def aggregate_stats(self, owner_id: Optional[str] = None) -> ConversionStats:
        return self.queries.aggregate_stats(owner_id)

    @staticmethod
    def estimate_remaining(progress_percent: float, elapsed_ms: float) -> Optional[int]:
        return estimate_remaining(progress_percent, elapsed_ms)

    # --- maintenance ---

    def cleanup_older_than(self, max_age_ms: int) -> int:
        return self.sweeper.cleanup_older_than(max_age_ms)

    def shutdown(self) -> None:
        self.sweeper.shutdown()


def build_tracker(settings: Optional[Settings] = None) -> ConversionTracker:
    """設定値からトラッカーを構築"""
    settings = settings or get_settings()
    tracker = ConversionTracker(
        retention_window=settings.retention_window,
        recent_limit=settings.recent_limit,
    )
    logger.info(
        f"Conversion tracker initialized (retention_window={settings.retention_window}, "
        f"recent_limit={settings.recent_limit})"
    )
    return tracker
