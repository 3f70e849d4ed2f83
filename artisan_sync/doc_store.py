# artisan_sync/doc_store.py
"""
Thin adapter over google-cloud-firestore.

Everything above this module speaks in collection paths, document ids and
plain dicts; only this module touches Firestore references. A query filter
is a `(field, op, value)` tuple using Firestore operators ("==",
"array-contains", ...).

Firestore's Python listeners run on background threads and have no error
callback, so `watch_query` / `watch_document` probe the target once with a
regular read before attaching the listener; permission and missing-index
failures surface through `on_error` from that probe.
"""

import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from google.api_core.exceptions import GoogleAPICallError
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter


logger = logging.getLogger("artisan_sync")

Filter = Tuple[str, str, Any]
SnapshotCallback = Callable[[List[Dict[str, Any]]], None]
DocumentCallback = Callable[[Optional[Dict[str, Any]]], None]
ErrorCallback = Callable[[Exception], None]

SERVER_TIMESTAMP = firestore.SERVER_TIMESTAMP


def _with_id(snapshot) -> Dict[str, Any]:
    return {**(snapshot.to_dict() or {}), "id": snapshot.id}


class WatchHandle:
    """
    Cancellation handle for one live listener. `unsubscribe()` is idempotent.
    """

    def __init__(self, unsubscribe: Optional[Callable[[], None]] = None, label: str = "") -> None:
        self._lock = threading.Lock()
        self._unsubscribe = unsubscribe
        self.label = label
        self.closed = False

    def unsubscribe(self) -> None:
        with self._lock:
            if self.closed:
                return
            self.closed = True
            fn, self._unsubscribe = self._unsubscribe, None
        if fn is not None:
            fn()


class StoreBatch:
    def __init__(self, client: firestore.Client) -> None:
        self._client = client
        self._batch = client.batch()

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        self._batch.set(self._client.collection(collection).document(doc_id), data, merge=merge)

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        self._batch.update(self._client.collection(collection).document(doc_id), fields)

    def commit(self) -> None:
        self._batch.commit()


class FirestoreStore:
    SERVER_TIMESTAMP = SERVER_TIMESTAMP

    def __init__(self, client: firestore.Client) -> None:
        self.client = client

    def _query(self, collection: str, filters: Iterable[Filter] = (), order_by: Optional[str] = None):
        q = self.client.collection(collection)
        for field, op, value in filters:
            q = q.where(filter=FieldFilter(field, op, value))
        if order_by:
            q = q.order_by(order_by, direction=firestore.Query.ASCENDING)
        return q

    # -------- reads --------
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        snap = self.client.collection(collection).document(doc_id).get()
        if not snap.exists:
            return None
        return _with_id(snap)

    def query(self, collection: str, filters: Iterable[Filter] = (), order_by: Optional[str] = None) -> List[Dict[str, Any]]:
        return [_with_id(s) for s in self._query(collection, filters, order_by).stream()]

    # -------- writes --------
    def new_id(self, collection: str) -> str:
        return self.client.collection(collection).document().id

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        _, ref = self.client.collection(collection).add(data)
        return ref.id

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        self.client.collection(collection).document(doc_id).set(data, merge=merge)

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        self.client.collection(collection).document(doc_id).update(fields)

    def batch(self) -> StoreBatch:
        return StoreBatch(self.client)

    # -------- live listeners --------
    def watch_query(
        self,
        collection: str,
        filters: Iterable[Filter],
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        order_by: Optional[str] = None,
    ) -> WatchHandle:
        filters = list(filters)
        q = self._query(collection, filters, order_by)
        label = f"{collection}{filters if filters else ''}"
        try:
            list(q.limit(1).stream())
        except GoogleAPICallError as e:
            on_error(e)
            return WatchHandle(label=label)

        def _callback(docs, changes, read_time):
            try:
                on_snapshot([_with_id(d) for d in docs])
            except Exception:
                logger.exception(f"[FS] snapshot handler failed for {label}")

        watch = q.on_snapshot(_callback)
        return WatchHandle(watch.unsubscribe, label=label)

    def watch_document(
        self,
        collection: str,
        doc_id: str,
        on_snapshot: DocumentCallback,
        on_error: ErrorCallback,
    ) -> WatchHandle:
        ref = self.client.collection(collection).document(doc_id)
        label = f"{collection}/{doc_id}"
        try:
            ref.get()
        except GoogleAPICallError as e:
            on_error(e)
            return WatchHandle(label=label)

        def _callback(docs, changes, read_time):
            try:
                snap = docs[0] if docs else None
                on_snapshot(_with_id(snap) if snap is not None and snap.exists else None)
            except Exception:
                logger.exception(f"[FS] document handler failed for {label}")

        watch = ref.on_snapshot(_callback)
        return WatchHandle(watch.unsubscribe, label=label)
