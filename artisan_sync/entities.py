# artisan_sync/entities.py
from typing import Any, Dict, List, Literal, Optional, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

DocId: TypeAlias = str
# Firestore returns DatetimeWithNanoseconds for server timestamps, ISO strings elsewhere
Timestamp: TypeAlias = Any

Role = Literal["artisan", "volunteer", "customer"]
ProjectStatus = Literal["Open", "In Progress", "Completed"]
BargainStatus = Literal["pending", "accepted", "rejected", "completed"]
ConnectionStatus = Literal["pending", "accepted", "rejected"]
ApplicationStatus = Literal["pending", "accepted", "declined"]
CollaborationStatus = Literal["in-progress", "completed"]
NotificationType = Literal["success", "info", "error"]

PROJECT_STATUS_ORDER = ("Open", "In Progress", "Completed")


class Document(BaseModel):
    """
    Base for every stored document.

    Unknown keys are kept so a round trip through the view model never
    drops fields written by other clients.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: DocId = ""

    @classmethod
    def from_doc(cls, doc_id: str, data: Optional[Dict[str, Any]]):
        return cls.model_validate({**(data or {}), "id": doc_id})

    def to_doc(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"id"}, exclude_none=True)


class Testimonial(BaseModel):
    quote: str
    artisanName: str
    artisanAvatar: Optional[str] = None


class CompletedProject(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: DocId
    projectName: str
    artisanName: str
    artisanAvatar: Optional[str] = None
    certificateText: str = ""
    skills: List[str] = Field(default_factory=list)
    issuedDate: Optional[str] = None


class User(Document):
    name: str = ""
    role: Role = "customer"
    avatar: Optional[str] = None
    profileComplete: bool = False

    @property
    def is_guest(self) -> bool:
        return self.id.startswith("guest_")


class Artisan(User):
    role: Role = "artisan"
    craft: Optional[str] = None
    location: Optional[str] = None
    bio: Optional[str] = None
    portfolio: List[Dict[str, Any]] = Field(default_factory=list)


class Volunteer(User):
    role: Role = "volunteer"
    skills: List[str] = Field(default_factory=list)
    projectsCompleted: int = 0
    completedProjects: List[CompletedProject] = Field(default_factory=list)
    testimonials: List[Testimonial] = Field(default_factory=list)


def user_from_doc(doc_id: str, data: Optional[Dict[str, Any]]) -> User:
    role = (data or {}).get("role")
    if role == "artisan":
        return Artisan.from_doc(doc_id, data)
    if role == "volunteer":
        return Volunteer.from_doc(doc_id, data)
    return User.from_doc(doc_id, data)


class Product(Document):
    name: str = ""
    artisanId: DocId = ""
    price: float = 0
    image: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    dateAdded: Optional[str] = None
    certificateId: Optional[DocId] = None


class Project(Document):
    title: str = ""
    description: str = ""
    skillsNeeded: List[str] = Field(default_factory=list)
    postedBy: str = ""
    status: ProjectStatus = "Open"


class Certificate(Document):
    artistName: str = ""
    assignedToProductId: Optional[DocId] = None


class BargainRequest(Document):
    productId: DocId
    productName: str = ""
    productImage: Optional[str] = None
    customerId: DocId
    customerName: str = ""
    artisanId: DocId
    originalPrice: float = 0
    offerPrice: float = 0
    status: BargainStatus = "pending"
    requestDate: Timestamp = None


class ConnectionRequest(Document):
    senderId: DocId
    receiverId: DocId
    senderName: str = ""
    senderAvatar: Optional[str] = None
    senderRole: Optional[Role] = None
    status: ConnectionStatus = "pending"
    timestamp: Timestamp = None


class ProjectApplication(Document):
    projectId: DocId
    volunteerId: DocId
    artisanId: DocId
    status: ApplicationStatus = "pending"
    applicationDate: Optional[str] = None


class Collaboration(Document):
    projectId: DocId
    volunteerId: DocId
    artisanId: DocId
    startDate: Optional[str] = None
    status: CollaborationStatus = "in-progress"
    endDate: Optional[str] = None
    feedback: Optional[str] = None
    rating: Optional[int] = None


class ParticipantDetails(BaseModel):
    id: DocId
    name: str = ""
    avatar: Optional[str] = None


class ChatMessage(Document):
    senderId: DocId = ""
    text: str = ""
    timestamp: Timestamp = None


class Conversation(Document):
    participantIds: List[DocId] = Field(default_factory=list)
    participants: Dict[DocId, Dict[str, Any]] = Field(default_factory=dict)
    lastMessage: Optional[Dict[str, Any]] = None
    messages: List[ChatMessage] = Field(default_factory=list)


class NotificationLink(BaseModel):
    text: str
    page: str


class Notification(BaseModel):
    """Process-local only, never written to the store."""
    id: str
    message: str
    type: NotificationType
    link: Optional[NotificationLink] = None


class CartItem(BaseModel):
    product: Product
    quantity: int = 1
    offerPrice: float = 0
