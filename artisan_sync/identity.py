# artisan_sync/identity.py

import logging
import threading
from typing import Callable, List, Optional

import requests

from artisan_sync.google_helpers import FIREBASE_API_KEY
from artisan_sync.session_state import Identity


logger = logging.getLogger("artisan_sync")

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1/accounts"

IdentityListener = Callable[[Optional[Identity]], None]


class IdentityError(Exception):
    pass


class FirebaseIdentityProvider:
    """
    Firebase Auth over the Identity Toolkit REST API.

    Keeps the signed-in identity in memory and tells subscribers about every
    change, the same way the browser SDK's auth-state listener does.
    """

    def __init__(self, api_key: str = FIREBASE_API_KEY, timeout: float = 10.0, http: Optional[requests.Session] = None):
        self.api_key = api_key
        self.timeout = timeout
        self._http = http or requests.Session()
        self._lock = threading.Lock()
        self._listeners: List[IdentityListener] = []
        self.current: Optional[Identity] = None

    # -------- REST --------
    def _post(self, action: str, body: dict) -> dict:
        if not self.api_key:
            raise IdentityError("FIREBASE_API_KEY is not configured")
        resp = self._http.post(
            f"{IDENTITY_TOOLKIT_URL}:{action}",
            params={"key": self.api_key},
            json=body,
            timeout=self.timeout,
        )
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code >= 400:
            message = (data.get("error") or {}).get("message") or f"HTTP {resp.status_code}"
            raise IdentityError(message)
        return data

    def _identity_from(self, data: dict) -> Identity:
        return Identity(
            uid=data["localId"],
            email=data.get("email"),
            display_name=data.get("displayName") or None,
            id_token=data.get("idToken"),
            refresh_token=data.get("refreshToken"),
        )

    # -------- session --------
    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _set_current(self, identity: Optional[Identity]) -> None:
        with self._lock:
            self.current = identity
            listeners = list(self._listeners)
        for listener in listeners:
            listener(identity)

    def sign_in_with_password(self, email: str, password: str) -> Identity:
        data = self._post("signInWithPassword", {"email": email, "password": password, "returnSecureToken": True})
        identity = self._identity_from(data)
        self._set_current(identity)
        return identity

    def sign_in_with_provider(self, provider_id: str, id_token: str, request_uri: str = "http://localhost") -> Identity:
        data = self._post(
            "signInWithIdp",
            {
                "postBody": f"id_token={id_token}&providerId={provider_id}",
                "requestUri": request_uri,
                "returnIdpCredential": True,
                "returnSecureToken": True,
            },
        )
        identity = self._identity_from(data)
        self._set_current(identity)
        return identity

    def create_identity(self, email: str, password: str) -> Identity:
        data = self._post("signUp", {"email": email, "password": password, "returnSecureToken": True})
        identity = self._identity_from(data)
        self._set_current(identity)
        return identity

    def update_display_name(self, display_name: str) -> Identity:
        current = self.current
        if current is None or not current.id_token:
            raise IdentityError("No signed-in identity")
        self._post("update", {"idToken": current.id_token, "displayName": display_name, "returnSecureToken": False})
        updated = Identity(
            uid=current.uid,
            email=current.email,
            display_name=display_name,
            id_token=current.id_token,
            refresh_token=current.refresh_token,
        )
        with self._lock:
            self.current = updated
        return updated

    def sign_out(self) -> None:
        logger.debug("[AUTH] sign out")
        self._set_current(None)
