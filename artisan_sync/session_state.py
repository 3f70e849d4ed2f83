# artisan_sync/session_state.py

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from artisan_sync.entities import User


logger = logging.getLogger("artisan_sync")


class SessionState(str, Enum):
    SIGNED_OUT = "signed-out"
    AUTHENTICATING = "authenticating"
    PROFILE_LOADING = "profile-loading"
    READY = "ready"


class SessionTransitionError(RuntimeError):
    pass


@dataclass(frozen=True)
class Identity:
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None


# allowed (from -> to) pairs; guest bypass reuses AUTHENTICATING -> READY
_TRANSITIONS = {
    SessionState.SIGNED_OUT: {SessionState.AUTHENTICATING, SessionState.PROFILE_LOADING},
    SessionState.AUTHENTICATING: {SessionState.PROFILE_LOADING, SessionState.READY, SessionState.SIGNED_OUT},
    SessionState.PROFILE_LOADING: {SessionState.READY, SessionState.SIGNED_OUT},
    SessionState.READY: {SessionState.SIGNED_OUT},
}


class SessionStateMachine:
    """
    Identity / session lifecycle:

        signed-out -> authenticating -> profile-loading -> ready -> signed-out

    - guest: entered from authenticating straight to ready, no store identity
    - degraded: overlay read from the fallback latch, independent of state
    - a restored identity may go signed-out -> profile-loading directly
    """

    def __init__(self, degraded: Callable[[], bool] = lambda: False) -> None:
        self._lock = threading.RLock()
        self._degraded = degraded
        self.state = SessionState.SIGNED_OUT
        self.identity: Optional[Identity] = None
        self.profile: Optional[User] = None
        self.is_guest = False
        self.is_initial_login = False
        self._listeners: List[Callable[[SessionState], None]] = []

    @property
    def degraded(self) -> bool:
        return bool(self._degraded())

    @property
    def is_authenticated(self) -> bool:
        return self.state in (SessionState.PROFILE_LOADING, SessionState.READY)

    @property
    def auth_loading(self) -> bool:
        return self.state in (SessionState.AUTHENTICATING, SessionState.PROFILE_LOADING)

    def add_listener(self, fn: Callable[[SessionState], None]) -> Callable[[], None]:
        self._listeners.append(fn)
        return lambda: self._listeners.remove(fn) if fn in self._listeners else None

    def _move(self, target: SessionState) -> None:
        with self._lock:
            if target not in _TRANSITIONS[self.state]:
                raise SessionTransitionError(f"Illegal session transition {self.state.value} -> {target.value}")
            logger.debug(f"[SESSION] {self.state.value} -> {target.value}")
            self.state = target
        for fn in list(self._listeners):
            fn(target)

    # -------- transitions --------
    def begin_authentication(self) -> None:
        self._move(SessionState.AUTHENTICATING)

    def authentication_failed(self) -> None:
        with self._lock:
            if self.state == SessionState.AUTHENTICATING:
                self._move(SessionState.SIGNED_OUT)

    def identity_established(self, identity: Identity) -> None:
        with self._lock:
            self.identity = identity
            self.is_guest = False
            self.is_initial_login = True
            self._move(SessionState.PROFILE_LOADING)

    def profile_loaded(self, profile: Optional[User]) -> None:
        """
        First snapshot moves profile-loading -> ready; later snapshots only
        replace the profile.
        """
        with self._lock:
            self.profile = profile
            if self.state == SessionState.PROFILE_LOADING:
                self._move(SessionState.READY)

    def enter_guest(self, profile: User) -> None:
        with self._lock:
            self.identity = None
            self.profile = profile
            self.is_guest = True
            self._move(SessionState.READY)

    def replace_profile(self, profile: Optional[User]) -> None:
        """
        Same-state profile swap (guest profile edits, role switch).
        """
        with self._lock:
            if self.state != SessionState.READY:
                raise SessionTransitionError(f"Cannot replace profile while {self.state.value}")
            self.profile = profile

    def signed_out(self) -> None:
        with self._lock:
            if self.state == SessionState.SIGNED_OUT:
                return
            self.identity = None
            self.profile = None
            self.is_guest = False
            self.is_initial_login = False
            self._move(SessionState.SIGNED_OUT)
