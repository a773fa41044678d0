import threading
import logging
from typing import Dict, List, Optional, Set

from conversion_tracker.models.schemas import ConversionJob

logger = logging.getLogger(__name__)


class JobRegistry:
    """Canonical in-memory store of conversion jobs.

    Holds one snapshot per job id plus an owner index used only as a lookup
    aid. Snapshots are deep-copied on the way in and on the way out, so no
    caller ever holds a reference to stored state. The registry lock guards
    dictionary access and is never held while a transition is being
    computed; transitions on a single job are serialized by the per-job lock
    returned from ``lock_for``.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._jobs: Dict[str, ConversionJob] = {}
        self._job_locks: Dict[str, threading.RLock] = {}
        self._owner_index: Dict[str, Set[str]] = {}

    def put(self, job: ConversionJob) -> None:
        """ジョブのスナップショットを登録または置換 (呼び出し側とは共有しないコピーを保持)"""
        stored = job.model_copy(deep=True)
        with self._lock:
            self._jobs[job.id] = stored
            if job.id not in self._job_locks:
                self._job_locks[job.id] = threading.RLock()
            self._owner_index.setdefault(job.owner_id, set()).add(job.id)

    def get(self, job_id: str) -> Optional[ConversionJob]:
        with self._lock:
            job = self._jobs.get(job_id)
        return None if job is None else job.model_copy(deep=True)

    def lock_for(self, job_id: str) -> Optional[threading.RLock]:
        """Return the per-job transition lock, or None if the job is unknown."""
        with self._lock:
            return self._job_locks.get(job_id)

    def remove(self, job_id: str) -> Optional[ConversionJob]:
        """ジョブを削除し、オーナー索引からも取り除く (未登録なら何もしない)"""
        with self._lock:
            job = self._jobs.pop(job_id, None)
            self._job_locks.pop(job_id, None)
            if job is None:
                return None
            self._discard_owner_entry(job.owner_id, job_id)
        logger.debug(f"Removed job {job_id} from registry")
        return job

    def remove_from_owner_index(self, owner_id: str, job_id: str) -> None:
        with self._lock:
            self._discard_owner_entry(owner_id, job_id)

    def list_by_owner(self, owner_id: str) -> List[ConversionJob]:
        """Snapshots of every job the owner still has in the registry (unordered)."""
        with self._lock:
            job_ids = self._owner_index.get(owner_id, ())
            jobs = [self._jobs[job_id] for job_id in job_ids if job_id in self._jobs]
        return [job.model_copy(deep=True) for job in jobs]

    def all(self) -> List[ConversionJob]:
        with self._lock:
            jobs = list(self._jobs.values())
        return [job.model_copy(deep=True) for job in jobs]

    def owner_count(self) -> int:
        with self._lock:
            return len(self._owner_index)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._jobs

    def _discard_owner_entry(self, owner_id: str, job_id: str) -> None:
        # 空になったオーナーのセットは残さない
        job_ids = self._owner_index.get(owner_id)
        if job_ids is None:
            return
        job_ids.discard(job_id)
        if not job_ids:
            del self._owner_index[owner_id]
