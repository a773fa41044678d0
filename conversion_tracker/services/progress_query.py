from typing import List, Optional

from conversion_tracker.core.job_registry import JobRegistry
from conversion_tracker.models.schemas import ConversionJob, ConversionStats, JobStatus


def estimate_remaining(progress_percent: float, elapsed_ms: float) -> Optional[int]:
    """
    経過時間と進捗率から残り時間を推定する

    Args:
        progress_percent: 進捗率 (0-100)
        elapsed_ms: 経過時間 (ミリ秒)

    Returns:
        残り時間 (ミリ秒)。進捗が 0 以下なら推定できないため None
    """
    if progress_percent <= 0:
        return None
    estimated_total = elapsed_ms * 100 / progress_percent
    return max(0, round(estimated_total - elapsed_ms))


class ProgressQueryService:
    """Read-only views over the registry. Every call works on fresh snapshots."""

    def __init__(self, registry: JobRegistry, recent_limit: int = 10):
        self._registry = registry
        self.recent_limit = recent_limit

    def list_by_owner(self, owner_id: str) -> List[ConversionJob]:
        jobs = self._registry.list_by_owner(owner_id)
        return sorted(jobs, key=lambda job: job.created_at, reverse=True)

    def list_active_by_owner(self, owner_id: str) -> List[ConversionJob]:
        return [job for job in self.list_by_owner(owner_id) if job.is_active]

    def list_recent_by_owner(self, owner_id: str, limit: Optional[int] = None) -> List[ConversionJob]:
        """Newest jobs first, at most ``limit`` of them (``recent_limit`` when omitted)."""
        if limit is None:
            limit = self.recent_limit
        if limit <= 0:
            return []
        return self.list_by_owner(owner_id)[:limit]

    def aggregate_stats(self, owner_id: Optional[str] = None) -> ConversionStats:
        """Status counts and average processing time, for one owner or globally."""
        jobs = self._registry.all() if owner_id is None else self._registry.list_by_owner(owner_id)

        counts = {status: 0 for status in JobStatus}
        total_processing_ms = 0
        timed_count = 0
        for job in jobs:
            counts[job.status] += 1
            if job.status == JobStatus.COMPLETED and job.result is not None \
                    and job.result.processing_time_ms is not None:
                total_processing_ms += job.result.processing_time_ms
                timed_count += 1

        average = round(total_processing_ms / timed_count) if timed_count else 0
        return ConversionStats(
            total=len(jobs),
            queued=counts[JobStatus.QUEUED],
            processing=counts[JobStatus.PROCESSING],
            completed=counts[JobStatus.COMPLETED],
            failed=counts[JobStatus.FAILED],
            cancelled=counts[JobStatus.CANCELLED],
            average_processing_time_ms=average,
        )
