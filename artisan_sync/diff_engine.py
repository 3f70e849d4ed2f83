# artisan_sync/diff_engine.py

import logging
from typing import Callable, Dict, Iterable, List, Optional

from artisan_sync.entities import (
    BargainRequest,
    ConnectionRequest,
    Notification,
    NotificationLink,
    NotificationType,
    User,
    Volunteer,
)


logger = logging.getLogger("artisan_sync")

Notify = Callable[[str, NotificationType, Optional[NotificationLink]], Notification]

DOMAIN_VOLUNTEERS = "volunteers"
DOMAIN_BARGAIN_REQUESTS = "bargain_requests"
DOMAIN_CONNECTION_REQUESTS = "connection_requests"


def chat_page_for(user: Optional[User]) -> str:
    return "customer-chat" if user is not None and user.role == "customer" else "chat"


def merge_by_id(*result_sets: Iterable) -> List:
    """
    Union of several result sets keyed by document id; a later set wins for
    a duplicated id, first-seen order is kept.
    """
    merged: Dict[str, object] = {}
    for result_set in result_sets:
        for item in result_set:
            merged[item.id] = item
    return list(merged.values())


class DiffNotificationEngine:
    """
    Turns consecutive snapshots of a watched domain into notifications.

    Each domain keeps its own last-seen snapshot. Nothing is compared until
    a non-empty snapshot has been seen since the last (re)subscribe, so the
    first delivery only primes the tracker even when a domain is fed by
    several watches that report in any order. Comparisons are keyed by
    document id, never list position.
    """

    def __init__(self, notify: Notify) -> None:
        self._notify = notify
        self.last_seen_volunteers: Optional[Dict[str, Volunteer]] = None
        self.last_seen_bargain_requests: Optional[Dict[str, BargainRequest]] = None
        self.last_seen_connection_requests: Optional[Dict[str, ConnectionRequest]] = None

    def reset(self, domain: Optional[str] = None) -> None:
        if domain in (None, DOMAIN_VOLUNTEERS):
            self.last_seen_volunteers = None
        if domain in (None, DOMAIN_BARGAIN_REQUESTS):
            self.last_seen_bargain_requests = None
        if domain in (None, DOMAIN_CONNECTION_REQUESTS):
            self.last_seen_connection_requests = None

    # -----------------------
    # Volunteers
    # -----------------------

    def on_volunteers(self, current_user: Optional[User], volunteers: List[Volunteer]) -> List[Notification]:
        emitted = []
        previous = self.last_seen_volunteers
        if previous and current_user is not None and current_user.role == "volunteer":
            old_profile = previous.get(current_user.id)
            new_profile = next((v for v in volunteers if v.id == current_user.id), None)
            if old_profile is not None and new_profile is not None:
                old_count = len(old_profile.completedProjects or [])
                new_count = len(new_profile.completedProjects or [])
                if new_count > old_count:
                    newest = new_profile.completedProjects[-1]
                    emitted.append(self._notify(
                        f'You\'ve received a certificate for "{newest.projectName}"!',
                        "success",
                        NotificationLink(text="View My Certifications", page="volunteers"),
                    ))
        self.last_seen_volunteers = {v.id: v for v in volunteers}
        return emitted

    # -----------------------
    # Bargain requests
    # -----------------------

    def on_bargain_requests(self, current_user: Optional[User], requests: List[BargainRequest]) -> List[Notification]:
        emitted = []
        previous = self.last_seen_bargain_requests
        if previous and current_user is not None and current_user.role == "customer":
            for new_req in requests:
                old_req = previous.get(new_req.id)
                if old_req is None or old_req.status != "pending":
                    continue
                if new_req.status == "accepted":
                    emitted.append(self._notify(
                        f'Offer accepted for "{new_req.productName}"!',
                        "success",
                        NotificationLink(text="View My Offers", page="customer-offers"),
                    ))
                elif new_req.status == "rejected":
                    emitted.append(self._notify(
                        f'Your offer for "{new_req.productName}" was not accepted.',
                        "info",
                        None,
                    ))
        self.last_seen_bargain_requests = {r.id: r for r in requests}
        return emitted

    # -----------------------
    # Connection requests
    # -----------------------

    def on_connection_requests(
        self,
        current_user: Optional[User],
        requests: List[ConnectionRequest],
        people: Iterable[User] = (),
    ) -> List[Notification]:
        """
        `requests` must already be the id-merged union of the received and
        sent result sets. `people` resolves the counterpart's display name.
        """
        emitted = []
        previous = self.last_seen_connection_requests
        if previous and current_user is not None:
            names = {u.id: u.name for u in people}
            for new_req in requests:
                old_req = previous.get(new_req.id)

                if old_req is None and new_req.receiverId == current_user.id and new_req.status == "pending":
                    page = "customer-offers" if current_user.role == "customer" else "dashboard"
                    emitted.append(self._notify(
                        f"{new_req.senderName} wants to connect.",
                        "info",
                        NotificationLink(text="View Requests", page=page),
                    ))

                if old_req is not None and old_req.status == "pending" and new_req.senderId == current_user.id:
                    receiver_name = names.get(new_req.receiverId) or "The user"
                    if new_req.status == "accepted":
                        emitted.append(self._notify(
                            f"{receiver_name} accepted your connection request!",
                            "success",
                            NotificationLink(text="Go to Chat", page=chat_page_for(current_user)),
                        ))
                    elif new_req.status == "rejected":
                        emitted.append(self._notify(
                            f"{receiver_name} declined your connection request.",
                            "info",
                            None,
                        ))
        self.last_seen_connection_requests = {r.id: r for r in requests}
        return emitted
