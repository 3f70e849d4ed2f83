import threading
import time
from typing import Callable, Dict, List, Optional

from artisan_sync.base_utils import BaseUtils
from artisan_sync.entities import Notification, NotificationLink, NotificationType
from artisan_sync.google_helpers import NOTIFICATION_TTL_SECONDS


Scheduler = Callable[[float, Callable[[], None]], object]


def _timer_scheduler(delay: float, fn: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, fn)
    timer.daemon = True
    timer.start()
    return timer


class NotificationCenter(BaseUtils):
    """
    In-memory, process-local user notifications with:
    - fixed TTL (removed ttl_seconds after creation, whether or not dismissed)
    - thread-safe operations (watch callbacks arrive on listener threads)

    Removal is scheduled with a timer; reads also prune anything past its
    deadline so a late timer never leaves a stale entry visible.
    """

    def __init__(
        self,
        ttl_seconds: float = NOTIFICATION_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        scheduler: Optional[Scheduler] = None,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._scheduler = scheduler or _timer_scheduler
        self._lock = threading.Lock()
        # notification_id -> {"notification": Notification, "expires_at": float}
        self._items: Dict[str, Dict[str, object]] = {}

    def add(self, message: str, type: NotificationType, link: Optional[NotificationLink] = None) -> Notification:
        notification = Notification(id=self.make_local_id(), message=message, type=type, link=link)
        with self._lock:
            while notification.id in self._items:
                notification = notification.model_copy(update={"id": self.make_local_id()})
            self._items[notification.id] = {
                "notification": notification,
                "expires_at": self._clock() + self.ttl_seconds,
            }
        self._scheduler(self.ttl_seconds, lambda: self.remove(notification.id))
        return notification

    def remove(self, notification_id: str) -> bool:
        """
        Returns False when the id is unknown (already expired or dismissed).
        """
        with self._lock:
            return self._items.pop(notification_id, None) is not None

    def _prune_unlocked(self) -> int:
        now = self._clock()
        expired = [k for k, v in self._items.items() if float(v["expires_at"]) <= now]
        for k in expired:
            del self._items[k]
        return len(expired)

    def snapshot(self) -> List[Notification]:
        with self._lock:
            self._prune_unlocked()
            return [v["notification"] for v in self._items.values()]  # type: ignore[misc]

    def sweep_expired(self) -> int:
        with self._lock:
            return self._prune_unlocked()

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
