# artisan_sync/subscriptions.py

import logging
import threading
from typing import Any, Callable, Dict, Hashable, List, Optional, Union

from artisan_sync.doc_store import WatchHandle
from artisan_sync.entities import ChatMessage, Conversation


logger = logging.getLogger("artisan_sync")

Starter = Callable[[], Union[WatchHandle, List[WatchHandle]]]


class SubscriptionManager:
    """
    Registry of live watches, one entry per logical domain.

    - open() with the same scope keeps the running watch.
    - open() with a different scope closes the old watch BEFORE starting the
      new one, so a domain never has two overlapping watches.
    - a scope of None closes the domain.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        # domain -> {"scope": Hashable, "handles": [WatchHandle, ...]}
        self._entries: Dict[str, Dict[str, Any]] = {}

    def open(self, domain: str, scope: Optional[Hashable], starter: Starter) -> List[WatchHandle]:
        with self._lock:
            existing = self._entries.get(domain)
            if existing is not None and existing["scope"] == scope:
                return existing["handles"]
            if existing is not None:
                self._close_unlocked(domain)
            if scope is None:
                return []

            # registered before starting: a starter that delivers synchronously sees the domain as open
            entry = {"scope": scope, "handles": []}
            self._entries[domain] = entry
            try:
                started = starter()
            except Exception:
                if self._entries.get(domain) is entry:
                    del self._entries[domain]
                raise
            handles = started if isinstance(started, list) else [started]
            if self._entries.get(domain) is entry:
                entry["handles"] = handles
            else:
                for h in handles:
                    h.unsubscribe()
            logger.debug(f"[WATCH] opened {domain} scope={scope!r} ({len(handles)} listener(s))")
            return handles

    def _close_unlocked(self, domain: str) -> bool:
        entry = self._entries.pop(domain, None)
        if entry is None:
            return False
        for h in entry["handles"]:
            h.unsubscribe()
        logger.debug(f"[WATCH] closed {domain} scope={entry['scope']!r}")
        return True

    def close(self, domain: str) -> bool:
        with self._lock:
            return self._close_unlocked(domain)

    def close_all(self) -> None:
        with self._lock:
            for domain in list(self._entries):
                self._close_unlocked(domain)

    def scope_of(self, domain: str) -> Optional[Hashable]:
        with self._lock:
            entry = self._entries.get(domain)
            return entry["scope"] if entry else None

    def is_open(self, domain: str) -> bool:
        with self._lock:
            return domain in self._entries

    def domains(self) -> List[str]:
        with self._lock:
            return list(self._entries)


InnerStarter = Callable[[str, Callable[[List[Dict[str, Any]]], None]], WatchHandle]


class ConversationWatch:
    """
    Two-level watch: the outer membership query drives one message watch per
    conversation.

    Every outer snapshot is reconciled by conversation id: listeners for ids
    that left the result set are cancelled, new ids get a listener, the rest
    are left alone together with their buffered messages.

    The lock is shared with the owner of the view model so listener threads
    cannot interleave an outer reconcile with an inner update.
    """

    def __init__(
        self,
        start_inner: InnerStarter,
        on_change: Callable[[List[Conversation]], None],
        lock: Optional[threading.RLock] = None,
    ) -> None:
        self._start_inner = start_inner
        self._on_change = on_change
        self._lock = lock or threading.RLock()
        # conversation_id -> {"handle": WatchHandle | None, "messages": [ChatMessage, ...]}
        self._listeners: Dict[str, Dict[str, Any]] = {}
        self._conversations: List[Conversation] = []
        self.closed = False

    @property
    def listener_ids(self) -> List[str]:
        with self._lock:
            return list(self._listeners)

    def conversations(self) -> List[Conversation]:
        with self._lock:
            out = []
            for conv in self._conversations:
                entry = self._listeners.get(conv.id)
                messages = list(entry["messages"]) if entry else []
                out.append(conv.model_copy(update={"messages": messages}))
            return out

    def on_outer_snapshot(self, docs: List[Dict[str, Any]]) -> None:
        with self._lock:
            if self.closed:
                return
            desired = [d["id"] for d in docs]
            desired_set = set(desired)

            for conv_id in [c for c in self._listeners if c not in desired_set]:
                entry = self._listeners.pop(conv_id)
                if entry["handle"] is not None:
                    entry["handle"].unsubscribe()
                logger.debug(f"[WATCH] message listener removed for conversation {conv_id}")

            self._conversations = [Conversation.from_doc(d["id"], {k: v for k, v in d.items() if k not in ("id", "messages")}) for d in docs]

            for conv_id in desired:
                if conv_id in self._listeners:
                    continue
                entry = {"handle": None, "messages": []}
                self._listeners[conv_id] = entry
                handle = self._start_inner(conv_id, lambda msgs, cid=conv_id: self.on_messages(cid, msgs))
                if self._listeners.get(conv_id) is entry:
                    entry["handle"] = handle
                else:
                    handle.unsubscribe()
                logger.debug(f"[WATCH] message listener added for conversation {conv_id}")

            self._on_change(self.conversations())

    def on_messages(self, conversation_id: str, docs: List[Dict[str, Any]]) -> None:
        with self._lock:
            entry = self._listeners.get(conversation_id)
            if self.closed or entry is None:
                return
            entry["messages"] = [ChatMessage.from_doc(d["id"], d) for d in docs]
            self._on_change(self.conversations())

    def close(self) -> None:
        with self._lock:
            self.closed = True
            for entry in self._listeners.values():
                if entry["handle"] is not None:
                    entry["handle"].unsubscribe()
            self._listeners.clear()
            self._conversations = []
