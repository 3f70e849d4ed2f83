# artisan_sync/degraded_mode.py

import logging
import threading
from typing import Optional

from google.api_core.exceptions import FailedPrecondition, Forbidden, PermissionDenied


logger = logging.getLogger("artisan_sync")

DEGRADED_MESSAGE = (
    "Could not connect to live database. Using sample data. "
    "Please check your Firebase configuration and security rules."
)

_PERMISSION_MARKERS = ("Missing or insufficient permissions", "permission-denied", "PERMISSION_DENIED")
_INDEX_MARKERS = ("requires an index",)


def is_fallback_error(error: BaseException) -> bool:
    """
    True for permission-denied, missing-permissions and missing-index
    failures. Anything else is logged by the caller and otherwise ignored.
    """
    if isinstance(error, (PermissionDenied, Forbidden)):
        return True
    message = str(error) or ""
    if isinstance(error, FailedPrecondition) and any(m in message for m in _INDEX_MARKERS):
        return True
    if getattr(error, "code", None) == "permission-denied":
        return True
    return any(m in message for m in _PERMISSION_MARKERS + _INDEX_MARKERS)


class FallbackLatch:
    """
    One-way flag for the lifetime of a session.

    - trip() succeeds at most once; later calls return False.
    - There is no reset: recovery means a fresh session.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tripped = False
        self._message: Optional[str] = None
        self._source: Optional[str] = None

    @property
    def tripped(self) -> bool:
        return self._tripped

    @property
    def message(self) -> Optional[str]:
        return self._message

    @property
    def source(self) -> Optional[str]:
        return self._source

    def trip(self, source: str, message: str = DEGRADED_MESSAGE) -> bool:
        with self._lock:
            if self._tripped:
                return False
            self._tripped = True
            self._message = message
            self._source = source
        logger.warning(
            f"Firestore permission denied or index required ({source}). "
            "Falling back to initial local data. Check the Firestore security rules to enable real-time features."
        )
        return True
