import uuid
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Union

from conversion_tracker.core.clock import Clock, elapsed_ms, utcnow
from conversion_tracker.core.job_registry import JobRegistry
from conversion_tracker.core.notifications import NotificationHub
from conversion_tracker.core.steps import COMPLETED_STEP_LABEL, get_steps
from conversion_tracker.models.schemas import ConversionJob, ConversionResult, JobStatus
from conversion_tracker.services.cleanup import RetentionSweeper

logger = logging.getLogger(__name__)

ResultInput = Union[ConversionResult, Mapping[str, Any], None]


def new_job_id() -> str:
    return str(uuid.uuid4())


def clamp_progress(value: float) -> int:
    return int(round(min(100.0, max(0.0, float(value)))))


class LifecycleController:
    """State machine for conversion jobs.

    All writes go through here. Every transition runs under the job's lock,
    stores a fresh snapshot in the registry and publishes it before
    returning. Unknown ids yield None; transitions against a job that is
    already completed, failed or cancelled are ignored and the stored
    snapshot is returned unchanged.
    """

    def __init__(
        self,
        registry: JobRegistry,
        hub: NotificationHub,
        sweeper: Optional[RetentionSweeper] = None,
        clock: Clock = utcnow,
        id_factory: Callable[[], str] = new_job_id,
    ):
        self._registry = registry
        self._hub = hub
        self._sweeper = sweeper
        self._clock = clock
        self._id_factory = id_factory

    def create(
        self,
        owner_id: str,
        label: str,
        kind: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> ConversionJob:
        """
        新しい変換ジョブを作成する

        Args:
            owner_id: 依頼ユーザーのID
            label: 元ファイル名
            kind: 変換種別 (未知の種別はデフォルトのステップを使用)
            extra: 実行系固有のメタデータ

        Returns:
            queued 状態のジョブ
        """
        steps = get_steps(kind)
        now = self._clock()
        job = ConversionJob(
            id=self._id_factory(),
            owner_id=owner_id,
            label=label,
            kind=kind,
            status=JobStatus.QUEUED,
            progress_percent=0,
            current_step_label=steps[0],
            current_step_index=0,
            total_steps=len(steps),
            created_at=now,
            updated_at=now,
            extra=dict(extra or {}),
        )
        self._registry.put(job)
        logger.info(f"ジョブ {job.id} を作成: kind={kind} owner={owner_id} steps={job.total_steps}")

        lock = self._registry.lock_for(job.id)
        if lock is None:
            return job
        with lock:
            self._hub.publish(job.id, job)
        return job

    def get(self, job_id: str) -> Optional[ConversionJob]:
        return self._registry.get(job_id)

    def advance(
        self,
        job_id: str,
        progress_percent: float,
        step_label: Optional[str] = None,
        step_index: Optional[int] = None,
        extra_merge: Optional[Dict[str, Any]] = None,
    ) -> Optional[ConversionJob]:
        """Record executor progress and move the job to ``processing``.

        Progress is clamped into [0, 100] and never moves backwards.
        """
        def _advance(job: ConversionJob, now) -> ConversionJob:
            update: Dict[str, Any] = {
                "status": JobStatus.PROCESSING,
                "progress_percent": max(job.progress_percent, clamp_progress(progress_percent)),
                "updated_at": now,
            }
            if step_label is not None:
                update["current_step_label"] = step_label
            if step_index is not None:
                update["current_step_index"] = min(job.total_steps, max(0, int(step_index)))
            if extra_merge:
                update["extra"] = {**job.extra, **extra_merge}
            return job.model_copy(update=update)

        job = self._transition(job_id, "advance", _advance)
        if job is not None and job.status == JobStatus.PROCESSING:
            logger.debug(f"ジョブ {job_id} の進捗を更新: {job.progress_percent}% ({job.current_step_label})")
        return job

    def complete(self, job_id: str, result: ResultInput = None) -> Optional[ConversionJob]:
        """Mark the job completed, record its processing time and schedule its reclaim."""
        if isinstance(result, ConversionResult):
            payload = result.model_dump(exclude_none=True)
        else:
            payload = ConversionResult.model_validate(dict(result or {})).model_dump(exclude_none=True)

        def _complete(job: ConversionJob, now) -> ConversionJob:
            payload["processing_time_ms"] = elapsed_ms(job.created_at, now)
            return job.model_copy(update={
                "status": JobStatus.COMPLETED,
                "progress_percent": 100,
                "current_step_label": COMPLETED_STEP_LABEL,
                "current_step_index": job.total_steps,
                "completed_at": now,
                "updated_at": now,
                "result": ConversionResult(**payload),
            })

        job = self._transition(job_id, "complete", _complete)
        if job is not None and job.status == JobStatus.COMPLETED and self._sweeper is not None:
            self._sweeper.schedule(job_id)
        return job

    def fail(self, job_id: str, error_message: str) -> Optional[ConversionJob]:
        def _fail(job: ConversionJob, now) -> ConversionJob:
            return job.model_copy(update={
                "status": JobStatus.FAILED,
                "error_message": error_message,
                "completed_at": now,
                "updated_at": now,
            })

        return self._transition(job_id, "fail", _fail)

    def cancel(self, job_id: str) -> Optional[ConversionJob]:
        """Record a cancellation request. The executor is expected to notice and stop."""
        def _cancel(job: ConversionJob, now) -> ConversionJob:
            return job.model_copy(update={
                "status": JobStatus.CANCELLED,
                "completed_at": now,
                "updated_at": now,
            })

        return self._transition(job_id, "cancel", _cancel)

    def _transition(
        self,
        job_id: str,
        action: str,
        apply: Callable[[ConversionJob, Any], ConversionJob],
    ) -> Optional[ConversionJob]:
        lock = self._registry.lock_for(job_id)
        if lock is None:
            logger.debug(f"{action}: job {job_id} not found")
            return None

        with lock:
            job = self._registry.get(job_id)
            if job is None:
                # 待機中に削除された
                logger.debug(f"{action}: job {job_id} was reclaimed")
                return None
            if job.is_terminal:
                logger.debug(f"{action}: job {job_id} is already {job.status.value}, ignoring")
                return job

            updated = apply(job, self._clock())
            self._registry.put(updated)
            if updated.status != job.status:
                logger.info(f"ジョブ {job_id} のステータスを更新: {job.status.value} -> {updated.status.value}")
            self._hub.publish(job_id, updated)
            return updated
