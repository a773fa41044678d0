from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, Optional
from datetime import datetime


class JobStatus(str, Enum):
    """Lifecycle states of a conversion job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})
ACTIVE_STATUSES = frozenset({JobStatus.QUEUED, JobStatus.PROCESSING})


class ConversionResult(BaseModel):
    """Output payload of a finished conversion. Unknown keys are kept as-is."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True, alias_generator=to_camel)

    output_url: Optional[str] = None
    output_size: Optional[int] = None
    page_count: Optional[int] = None
    processing_time_ms: Optional[int] = None


class ConversionJob(BaseModel):
    """Snapshot of a tracked conversion job.

    Every transition produces a new snapshot. The registry and the hub hand
    out private deep copies, so changing one never reaches stored state.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    owner_id: str
    label: str                      # 元ファイル名
    kind: str                       # 変換種別 (ステップカタログのキー)
    status: JobStatus = JobStatus.QUEUED
    progress_percent: int = 0       # 0-100
    current_step_label: str
    current_step_index: int = 0
    total_steps: int = Field(ge=1)
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    result: Optional[ConversionResult] = None
    extra: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def elapsed_ms(self, now: datetime) -> int:
        return max(0, int((now - self.created_at).total_seconds() * 1000))


class ConversionStats(BaseModel):
    total: int = 0
    queued: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0
    average_processing_time_ms: int = 0


# --- API request/response models ---

class CreateConversionRequest(BaseModel):
    owner_id: str
    label: str
    kind: str = "DEFAULT"
    extra: Optional[Dict[str, Any]] = None


class ProgressUpdateRequest(BaseModel):
    progress_percent: float
    step_label: Optional[str] = None
    step_index: Optional[int] = None
    extra_merge: Optional[Dict[str, Any]] = None


class CompleteConversionRequest(BaseModel):
    result: Optional[ConversionResult] = None


class FailConversionRequest(BaseModel):
    error_message: str


class SimulateConversionRequest(BaseModel):
    duration_seconds: Optional[float] = Field(default=None, ge=0)


class EstimateResponse(BaseModel):
    progress_percent: float
    elapsed_ms: int
    remaining_ms: Optional[int] = None


class CleanupResponse(BaseModel):
    removed: int
