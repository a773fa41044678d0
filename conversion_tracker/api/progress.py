from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from typing import Optional
import asyncio
import json
import logging

from conversion_tracker.core.config import get_settings
from conversion_tracker.core.tracker import ConversionTracker
from conversion_tracker.models.schemas import (
    CleanupResponse,
    CompleteConversionRequest,
    ConversionJob,
    CreateConversionRequest,
    EstimateResponse,
    FailConversionRequest,
    ProgressUpdateRequest,
    SimulateConversionRequest,
)
from conversion_tracker.services.simulator import simulate_conversion

# ロガーの設定
logger = logging.getLogger(__name__)

router = APIRouter()

# SSE 接続を維持するための送信間隔 (秒)
KEEPALIVE_SECONDS = 15.0


def get_tracker(request: Request) -> ConversionTracker:
    return request.app.state.tracker


def _job_payload(job: ConversionJob) -> dict:
    return job.model_dump(mode="json")


def _found(job: Optional[ConversionJob], job_id: str) -> dict:
    if job is None:
        raise HTTPException(status_code=404, detail=f"Conversion {job_id} not found")
    return _job_payload(job)


@router.post("/conversions")
def create_conversion(request: CreateConversionRequest, tracker: ConversionTracker = Depends(get_tracker)):
    """変換ジョブを登録"""
    job = tracker.create(request.owner_id, request.label, request.kind, extra=request.extra)
    return _job_payload(job)


@router.get("/conversions/{job_id}")
def get_conversion(job_id: str, tracker: ConversionTracker = Depends(get_tracker)):
    return _found(tracker.get(job_id), job_id)


@router.post("/conversions/{job_id}/progress")
def update_progress(job_id: str, update: ProgressUpdateRequest, tracker: ConversionTracker = Depends(get_tracker)):
    job = tracker.advance(
        job_id,
        update.progress_percent,
        step_label=update.step_label,
        step_index=update.step_index,
        extra_merge=update.extra_merge,
    )
    return _found(job, job_id)


@router.post("/conversions/{job_id}/complete")
def complete_conversion(
    job_id: str,
    request: Optional[CompleteConversionRequest] = None,
    tracker: ConversionTracker = Depends(get_tracker),
):
    result = request.result if request is not None else None
    return _found(tracker.complete(job_id, result), job_id)


@router.post("/conversions/{job_id}/fail")
def fail_conversion(job_id: str, request: FailConversionRequest, tracker: ConversionTracker = Depends(get_tracker)):
    return _found(tracker.fail(job_id, request.error_message), job_id)


@router.post("/conversions/{job_id}/cancel")
def cancel_conversion(job_id: str, tracker: ConversionTracker = Depends(get_tracker)):
    return _found(tracker.cancel(job_id), job_id)


@router.post("/conversions/{job_id}/simulate")
def start_simulation(
    job_id: str,
    background_tasks: BackgroundTasks,
    request: Optional[SimulateConversionRequest] = None,
    tracker: ConversionTracker = Depends(get_tracker),
):
    """変換処理の模擬実行をバックグラウンドで開始"""
    job = tracker.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Conversion {job_id} not found")
    duration = None if request is None else request.duration_seconds
    if duration is None:
        duration = get_settings().simulation_duration_seconds

    background_tasks.add_task(simulate_conversion, tracker, job_id, duration)
    logger.info(f"Simulation scheduled for job {job_id} ({duration}s)")
    return {"status": "processing", "message": "Simulation started", "job_id": job_id}


@router.get("/conversions/{job_id}/events")
async def stream_conversion(job_id: str, tracker: ConversionTracker = Depends(get_tracker)):
    """ジョブの進捗を購読してSSEで配信"""
    loop = asyncio.get_running_loop()
    queue: "asyncio.Queue[ConversionJob]" = asyncio.Queue()

    def _listener(job: ConversionJob) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, job)

    subscription = tracker.subscribe(job_id, _listener)
    current = tracker.get(job_id)
    if subscription is None or current is None:
        if subscription is not None:
            subscription.unsubscribe()
        raise HTTPException(status_code=404, detail=f"Conversion {job_id} not found")

    async def event_generator():
        last = current
        try:
            yield f"data: {json.dumps(_job_payload(last))}\n\n"
            while not last.is_terminal:
                try:
                    job = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    if tracker.get(job_id) is None:
                        break
                    yield ": keep-alive\n\n"
                    continue
                if job.updated_at < last.updated_at:
                    continue
                last = job
                yield f"data: {json.dumps(_job_payload(last))}\n\n"
        finally:
            subscription.unsubscribe()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        }
    )


@router.get("/users/{owner_id}/conversions")
def list_conversions(
    owner_id: str,
    limit: Optional[int] = Query(default=None, ge=1),
    tracker: ConversionTracker = Depends(get_tracker),
):
    if limit is None:
        jobs = tracker.list_by_owner(owner_id)
    else:
        jobs = tracker.list_recent_by_owner(owner_id, limit)
    return [_job_payload(job) for job in jobs]


@router.get("/users/{owner_id}/conversions/recent")
def list_recent_conversions(
    owner_id: str,
    limit: Optional[int] = Query(default=None, ge=0),
    tracker: ConversionTracker = Depends(get_tracker),
):
    return [_job_payload(job) for job in tracker.list_recent_by_owner(owner_id, limit)]


@router.get("/users/{owner_id}/conversions/active")
def list_active_conversions(owner_id: str, tracker: ConversionTracker = Depends(get_tracker)):
    return [_job_payload(job) for job in tracker.list_active_by_owner(owner_id)]


@router.get("/stats")
def conversion_stats(owner_id: Optional[str] = None, tracker: ConversionTracker = Depends(get_tracker)):
    return tracker.aggregate_stats(owner_id).model_dump()


@router.get("/estimate", response_model=EstimateResponse)
def estimate(
    progress_percent: float,
    elapsed_ms: int = Query(ge=0),
    tracker: ConversionTracker = Depends(get_tracker),
):
    return EstimateResponse(
        progress_percent=progress_percent,
        elapsed_ms=elapsed_ms,
        remaining_ms=tracker.estimate_remaining(progress_percent, elapsed_ms),
    )


@router.get("/conversions/{job_id}/estimate", response_model=EstimateResponse)
def estimate_conversion(job_id: str, tracker: ConversionTracker = Depends(get_tracker)):
    """ジョブの経過時間と現在の進捗から残り時間を推定"""
    job = tracker.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Conversion {job_id} not found")
    elapsed = job.elapsed_ms(job.completed_at or tracker.clock())
    return EstimateResponse(
        progress_percent=job.progress_percent,
        elapsed_ms=elapsed,
        remaining_ms=tracker.estimate_remaining(job.progress_percent, elapsed),
    )


@router.post("/maintenance/cleanup", response_model=CleanupResponse)
def cleanup(
    max_age_ms: Optional[int] = Query(default=None, ge=0),
    tracker: ConversionTracker = Depends(get_tracker),
):
    if max_age_ms is None:
        max_age_ms = get_settings().sweep_max_age_ms
    return CleanupResponse(removed=tracker.cleanup_older_than(max_age_ms))
