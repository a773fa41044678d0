import random
import time
import logging
from typing import Callable, Optional

from conversion_tracker.core.steps import get_steps
from conversion_tracker.core.tracker import ConversionTracker
from conversion_tracker.models.schemas import ConversionJob, JobStatus

logger = logging.getLogger(__name__)


def simulate_conversion(
    tracker: ConversionTracker,
    job_id: str,
    duration_seconds: float = 5.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Optional[ConversionJob]:
    """
    ステップカタログに沿って変換処理を模擬し、進捗を報告する

    Args:
        tracker: 進捗を報告するトラッカー
        job_id: ジョブID
        duration_seconds: 全体の所要時間
        sleep: 待機関数 (テストで差し替え可能)

    Returns:
        最終的なジョブの状態。キャンセル・削除された場合はその時点の状態
    """
    job = tracker.get(job_id)
    if job is None:
        return None

    steps = get_steps(job.kind)
    step_duration = duration_seconds / len(steps)
    logger.info(f"Simulating {job.kind} conversion for job {job_id} ({len(steps)} steps)")

    for i, step in enumerate(steps):
        current = tracker.get(job_id)
        if current is None or current.status == JobStatus.CANCELLED:
            logger.info(f"Simulation for job {job_id} stopped: job cancelled or removed")
            return current

        tracker.advance(
            job_id,
            progress_percent=round((i + 1) / len(steps) * 100),
            step_label=step,
            step_index=i + 1,
        )
        sleep(step_duration)

    return tracker.complete(job_id, {
        "output_url": f"/api/files/output_{job_id}.pdf",
        "output_size": random.randint(100_000, 1_099_999),
        "page_count": random.randint(1, 20),
    })
