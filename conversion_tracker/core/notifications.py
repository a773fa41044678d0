import threading
import logging
from typing import Callable, Dict, List

from conversion_tracker.models.schemas import ConversionJob

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ConversionJob], None]


class Subscription:
    """Handle returned by ``NotificationHub.subscribe``.

    Revocation is idempotent. Delivery runs under the subscription's own
    lock, so once ``unsubscribe()`` returns the listener is never invoked
    again. The lock is re-entrant so a listener may unsubscribe itself.
    """

    def __init__(self, hub: "NotificationHub", job_id: str, listener: ProgressListener):
        self.job_id = job_id
        self._hub = hub
        self._listener = listener
        self._lock = threading.RLock()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
        self._hub._discard(self)

    def _deliver(self, job: ConversionJob) -> bool:
        with self._lock:
            if not self._active:
                return False
            # 各リスナーには専用のコピーを渡す
            self._listener(job.model_copy(deep=True))
            return True

    def _deactivate(self) -> None:
        with self._lock:
            self._active = False


class NotificationHub:
    """Per-job fan-out of job snapshots to registered listeners."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: Dict[str, List[Subscription]] = {}

    def subscribe(self, job_id: str, listener: ProgressListener) -> Subscription:
        subscription = Subscription(self, job_id, listener)
        with self._lock:
            self._subscriptions.setdefault(job_id, []).append(subscription)
        logger.debug(f"Listener subscribed to job {job_id}")
        return subscription

    def publish(self, job_id: str, job: ConversionJob) -> int:
        """
        ジョブの状態変更を購読者全員に配信する

        Args:
            job_id: ジョブID
            job: 配信するスナップショット

        Returns:
            配信に成功したリスナーの数
        """
        with self._lock:
            subscriptions = list(self._subscriptions.get(job_id, ()))

        delivered = 0
        for subscription in subscriptions:
            try:
                if subscription._deliver(job):
                    delivered += 1
            except Exception:
                logger.warning(f"Error in progress listener for job {job_id}", exc_info=True)
        return delivered

    def drop(self, job_id: str) -> int:
        """Remove every listener of a job and deactivate their subscriptions."""
        with self._lock:
            subscriptions = self._subscriptions.pop(job_id, [])
        for subscription in subscriptions:
            subscription._deactivate()
        if subscriptions:
            logger.debug(f"Dropped {len(subscriptions)} listener(s) for job {job_id}")
        return len(subscriptions)

    def listener_count(self, job_id: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(job_id, ()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _discard(self, subscription: Subscription) -> None:
        with self._lock:
            subscriptions = self._subscriptions.get(subscription.job_id)
            if subscriptions is None:
                return
            if subscription in subscriptions:
                subscriptions.remove(subscription)
            if not subscriptions:
                del self._subscriptions[subscription.job_id]
