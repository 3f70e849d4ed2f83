# artisan_sync/view_model.py

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from artisan_sync.entities import (
    Artisan,
    BargainRequest,
    CartItem,
    Certificate,
    Collaboration,
    ConnectionRequest,
    Conversation,
    ParticipantDetails,
    Product,
    Project,
    ProjectApplication,
    User,
    Volunteer,
)


@dataclass
class AppState:
    """
    Read model owned by SyncSession.

    Collections are replaced, never mutated in place: readers on other
    threads may hold on to a list while a snapshot swaps in the next one.
    """
    current_user: Optional[User] = None
    products: List[Product] = field(default_factory=list)
    projects: List[Project] = field(default_factory=list)
    artisans: List[Artisan] = field(default_factory=list)
    volunteers: List[Volunteer] = field(default_factory=list)
    certificates: List[Certificate] = field(default_factory=list)
    conversations: List[Conversation] = field(default_factory=list)
    bargain_requests: List[BargainRequest] = field(default_factory=list)
    connection_requests: List[ConnectionRequest] = field(default_factory=list)
    project_applications: List[ProjectApplication] = field(default_factory=list)
    collaborations: List[Collaboration] = field(default_factory=list)
    cart: List[CartItem] = field(default_factory=list)
    favorites: List[str] = field(default_factory=list)
    start_chat_with: Optional[ParticipantDetails] = None
    firestore_error: Optional[str] = None
    blocking_alert: Optional[str] = None

    def find_user(self, user_id: str) -> Optional[User]:
        for u in list(self.artisans) + list(self.volunteers):
            if u.id == user_id:
                return u
        return None

    def to_dict(self) -> Dict[str, Any]:
        def dump(items):
            return [i.model_dump(mode="json") for i in items]

        return {
            "currentUser": self.current_user.model_dump(mode="json") if self.current_user else None,
            "products": dump(self.products),
            "projects": dump(self.projects),
            "artisans": dump(self.artisans),
            "volunteers": dump(self.volunteers),
            "certificates": dump(self.certificates),
            "conversations": dump(self.conversations),
            "bargainRequests": dump(self.bargain_requests),
            "connectionRequests": dump(self.connection_requests),
            "projectApplications": dump(self.project_applications),
            "collaborations": dump(self.collaborations),
            "cart": dump(self.cart),
            "favorites": list(self.favorites),
            "startChatWith": self.start_chat_with.model_dump(mode="json") if self.start_chat_with else None,
            "firestoreError": self.firestore_error,
            "blockingAlert": self.blocking_alert,
        }
