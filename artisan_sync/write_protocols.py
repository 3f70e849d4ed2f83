# artisan_sync/write_protocols.py
"""
Multi-document write protocols.

Every protocol checks its preconditions (role, referenced documents,
allowed status transition) BEFORE building a batch, and a failed check
returns False without a single write. Everything one logical event touches
goes into one batch commit, so watchers see either none or all of it.

Batch commit errors propagate to the caller; nothing here retries.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from google.api_core.exceptions import GoogleAPICallError

from artisan_sync.base_utils import BaseUtils
from artisan_sync.certificate_text import CertificateGenerationError
from artisan_sync.degraded_mode import FallbackLatch
from artisan_sync.diff_engine import chat_page_for
from artisan_sync.entities import (
    PROJECT_STATUS_ORDER,
    BargainRequest,
    Certificate,
    Collaboration,
    CompletedProject,
    ConnectionRequest,
    NotificationLink,
    ParticipantDetails,
    Product,
    Project,
    ProjectApplication,
    Testimonial,
    User,
    Volunteer,
)
from artisan_sync.google_helpers import (
    COLLECTION_BARGAIN_REQUESTS,
    COLLECTION_CERTIFICATES,
    COLLECTION_COLLABORATIONS,
    COLLECTION_CONNECTION_REQUESTS,
    COLLECTION_CONVERSATIONS,
    COLLECTION_PRODUCTS,
    COLLECTION_PROJECT_APPLICATIONS,
    COLLECTION_PROJECTS,
    COLLECTION_USERS,
    messages_path,
)
from artisan_sync.view_model import AppState


logger = logging.getLogger("artisan_sync")

CERTIFICATE_HOURS = 40
CONVERSATION_ID_SEPARATOR = "-"


def conversation_id(a: str, b: str) -> str:
    """Same id for (a, b) and (b, a)."""
    return CONVERSATION_ID_SEPARATOR.join(sorted([a, b]))


def _advances(current: str, target: str) -> bool:
    return PROJECT_STATUS_ORDER.index(target) > PROJECT_STATUS_ORDER.index(current)


class WriteProtocols(BaseUtils):
    def __init__(
        self,
        store,
        state: Callable[[], AppState],
        notify: Callable[..., Any],
        on_store_error: Callable[[Exception, str], None],
        latch: FallbackLatch,
        text_generator=None,
        language: Callable[[], str] = lambda: "en",
    ):
        self.store = store
        self._state = state
        self._notify = notify
        self._on_store_error = on_store_error
        self.latch = latch
        self.text_generator = text_generator
        self._language = language

    # -----------------------
    # Preconditions
    # -----------------------

    def _actor(self, role: Optional[str] = None) -> Optional[User]:
        user = self._state().current_user
        if user is None:
            logger.debug("write refused: no current user")
            return None
        if role is not None and user.role != role:
            logger.debug(f"write refused: role {user.role} is not {role}")
            return None
        return user

    def _resolve_volunteer(self, volunteer_id: str) -> Optional[Volunteer]:
        loaded = next((v for v in self._state().volunteers if v.id == volunteer_id), None)
        if loaded is not None:
            return loaded
        data = self.store.get(COLLECTION_USERS, volunteer_id)
        if data and data.get("role") == "volunteer":
            return Volunteer.from_doc(volunteer_id, data)
        return None

    def _get_project(self, project_id: str) -> Optional[Project]:
        data = self.store.get(COLLECTION_PROJECTS, project_id)
        return Project.from_doc(project_id, data) if data else None

    def _resolve_project(self, project_id: str) -> Optional[Project]:
        loaded = next((p for p in self._state().projects if p.id == project_id), None)
        return loaded or self._get_project(project_id)

    # -----------------------
    # Project applications & collaborations
    # -----------------------

    def apply_for_project(self, project: Project) -> bool:
        user = self._actor("volunteer")
        if user is None:
            return False
        artisan = next((a for a in self._state().artisans if a.name == project.postedBy), None)
        if artisan is None:
            logger.info(f"apply_for_project: no artisan named {project.postedBy!r}")
            return False

        application = ProjectApplication(
            projectId=project.id,
            volunteerId=user.id,
            artisanId=artisan.id,
            status="pending",
            applicationDate=self.now_iso(),
        )
        self.store.add(COLLECTION_PROJECT_APPLICATIONS, application.to_doc())
        self._notify(f'Application sent for "{project.title}"!', "success")
        return True

    def respond_to_application(self, application: ProjectApplication, response: str) -> bool:
        user = self._actor("artisan")
        if user is None or application.artisanId != user.id:
            return False
        if response == "declined":
            return self._decline_application(application)
        if response != "accepted":
            raise ValueError(f"Unknown application response: {response}")
        return self._accept_application(user, application)

    def _decline_application(self, application: ProjectApplication) -> bool:
        current = self.store.get(COLLECTION_PROJECT_APPLICATIONS, application.id)
        if current is None or current.get("status") != "pending":
            self._notify("This application is no longer pending.", "info")
            return False
        self.store.update(COLLECTION_PROJECT_APPLICATIONS, application.id, {"status": "declined"})
        volunteer = next((v for v in self._state().volunteers if v.id == application.volunteerId), None)
        self._notify(f"Application for {volunteer.name if volunteer else 'the volunteer'} declined.", "info")
        return True

    def _accept_application(self, artisan: User, application: ProjectApplication) -> bool:
        volunteer = self._resolve_volunteer(application.volunteerId)
        project = self._get_project(application.projectId)
        if volunteer is None or project is None:
            self._notify("Could not find volunteer or project details.", "error")
            return False

        current = self.store.get(COLLECTION_PROJECT_APPLICATIONS, application.id)
        if current is None or current.get("status") != "pending":
            self._notify("This application is no longer pending.", "info")
            return False
        if not _advances(project.status, "In Progress"):
            self._notify(f'"{project.title}" is no longer open for applications.', "info")
            return False

        # read siblings first: the batch must carry every decline
        siblings = self.store.query(
            COLLECTION_PROJECT_APPLICATIONS,
            [("projectId", "==", application.projectId), ("status", "==", "pending")],
        )
        collaboration_id = self.store.new_id(COLLECTION_COLLABORATIONS)
        collaboration = Collaboration(
            projectId=application.projectId,
            volunteerId=application.volunteerId,
            artisanId=artisan.id,
            startDate=self.now_iso(),
            status="in-progress",
        )

        batch = self.store.batch()
        batch.update(COLLECTION_PROJECT_APPLICATIONS, application.id, {"status": "accepted"})
        batch.set(COLLECTION_COLLABORATIONS, collaboration_id, collaboration.to_doc())
        batch.update(COLLECTION_PROJECTS, application.projectId, {"status": "In Progress"})
        for sibling in siblings:
            if sibling["id"] != application.id:
                batch.update(COLLECTION_PROJECT_APPLICATIONS, sibling["id"], {"status": "declined"})
        batch.commit()

        self._notify(f"You have accepted {volunteer.name}'s application.", "success")
        return True

    def end_collaboration(self, collaboration: Collaboration, feedback: str, rating: int) -> bool:
        user = self._actor("artisan")
        if user is None or collaboration.artisanId != user.id:
            return False
        volunteer = self._resolve_volunteer(collaboration.volunteerId)
        if volunteer is None:
            return False

        current = self.store.get(COLLECTION_COLLABORATIONS, collaboration.id)
        if current is None or current.get("status") != "in-progress":
            self._notify("This collaboration has already ended.", "info")
            return False
        project = self._get_project(collaboration.projectId)
        if project is None:
            self._notify("Could not find volunteer or project details.", "error")
            return False

        # the testimonial append needs the stored array, so read before batching
        volunteer_doc = None
        if (feedback or "").strip():
            volunteer_doc = self.store.get(COLLECTION_USERS, volunteer.id)
            if volunteer_doc is None:
                return False

        batch = self.store.batch()
        batch.update(COLLECTION_COLLABORATIONS, collaboration.id, {
            "status": "completed",
            "endDate": self.now_iso(),
            "feedback": feedback,
            "rating": rating,
        })
        if _advances(project.status, "Completed"):
            batch.update(COLLECTION_PROJECTS, collaboration.projectId, {"status": "Completed"})
        if volunteer_doc is not None:
            testimonial = Testimonial(quote=feedback, artisanName=user.name, artisanAvatar=user.avatar)
            batch.update(COLLECTION_USERS, volunteer.id, {
                "testimonials": list(volunteer_doc.get("testimonials") or []) + [testimonial.model_dump(exclude_none=True)],
            })
        batch.commit()

        self._notify(f"Collaboration with {volunteer.name} ended.", "success")
        return True

    def issue_certificate(self, collaboration: Collaboration) -> bool:
        user = self._actor("artisan")
        if user is None or collaboration.artisanId != user.id:
            return False

        volunteer = self._resolve_volunteer(collaboration.volunteerId)
        project = self._resolve_project(collaboration.projectId)
        if volunteer is None or project is None:
            self._notify("Could not find volunteer or project details.", "error")
            return False
        if any(cp.id == collaboration.id for cp in volunteer.completedProjects or []):
            self._notify("A certificate has already been issued for this project.", "info")
            return False

        try:
            if self.text_generator is None:
                raise CertificateGenerationError("No text generator configured")
            certificate_text = self.text_generator.generate(
                user.name,
                volunteer.name,
                project.title,
                CERTIFICATE_HOURS,
                project.skillsNeeded,
                self._language(),
            )

            # last-write-wins: re-check on the freshest copy right before writing
            fresh = self.store.get(COLLECTION_USERS, volunteer.id)
            if fresh is None:
                self._notify("Could not find volunteer or project details.", "error")
                return False
            fresh_volunteer = Volunteer.from_doc(volunteer.id, fresh)
            if any(cp.id == collaboration.id for cp in fresh_volunteer.completedProjects):
                self._notify("A certificate has already been issued for this project.", "info")
                return False

            completed = CompletedProject(
                id=collaboration.id,
                projectName=project.title,
                artisanName=user.name,
                artisanAvatar=user.avatar,
                certificateText=certificate_text,
                skills=list(project.skillsNeeded),
                issuedDate=self.now_iso(),
            )
            self.store.update(COLLECTION_USERS, volunteer.id, {
                "projectsCompleted": (fresh_volunteer.projectsCompleted or 0) + 1,
                "completedProjects": [cp.model_dump(exclude_none=True) for cp in fresh_volunteer.completedProjects]
                + [completed.model_dump(exclude_none=True)],
            })
        except (CertificateGenerationError, GoogleAPICallError) as e:
            logger.error(f"Error issuing certificate: {e}")
            self._notify("Failed to generate or issue certificate.", "error")
            return False

        self._notify(f"Certificate issued to {volunteer.name}!", "success")
        return True

    # -----------------------
    # Products, projects, certificates
    # -----------------------

    def add_product(self, product_data: Dict[str, Any], certificate_id: Optional[str] = None) -> bool:
        user = self._actor("artisan")
        if user is None:
            return False
        if certificate_id and self.store.get(COLLECTION_CERTIFICATES, certificate_id) is None:
            self._notify("The selected certificate could not be found.", "error")
            return False

        product_id = self.store.new_id(COLLECTION_PRODUCTS)
        fields = {k: v for k, v in product_data.items() if k not in ("id", "artisanId", "dateAdded", "certificateId")}
        product = Product(
            **fields,
            artisanId=user.id,
            dateAdded=self.now_iso(),
            certificateId=certificate_id or None,
        )

        batch = self.store.batch()
        batch.set(COLLECTION_PRODUCTS, product_id, product.to_doc())
        if certificate_id:
            batch.update(COLLECTION_CERTIFICATES, certificate_id, {"assignedToProductId": product_id})
        try:
            batch.commit()
        except GoogleAPICallError as e:
            logger.error(f"Error adding product and updating certificate: {e}")
            self._on_store_error(e, "products/certificates")
            return False
        return True

    def post_new_project(self, title: str, description: str, skills_needed: List[str]) -> bool:
        user = self._actor("artisan")
        if user is None:
            return False
        project = Project(
            title=title,
            description=description,
            skillsNeeded=list(skills_needed),
            postedBy=user.name,
            status="Open",
        )
        try:
            self.store.add(COLLECTION_PROJECTS, project.to_doc())
        except GoogleAPICallError as e:
            logger.error(f"Error adding project: {e}")
            self._on_store_error(e, "projects")
            return False
        return True

    def add_certificate(self, certificate: Certificate) -> bool:
        user = self._actor("artisan")
        if user is None:
            return False
        try:
            self.store.add(COLLECTION_CERTIFICATES, certificate.to_doc())
        except GoogleAPICallError as e:
            logger.error(f"Error adding certificate: {e}")
            self._on_store_error(e, "certificates")
            return False
        return True

    def get_certificate(self, certificate_id: str) -> Optional[Certificate]:
        if self.latch.tripped:
            logger.warning("Firestore connection failed. Cannot fetch individual certificate.")
            return None
        try:
            data = self.store.get(COLLECTION_CERTIFICATES, certificate_id)
        except GoogleAPICallError as e:
            logger.error(f"Error fetching certificate: {e}")
            self._on_store_error(e, "certificates")
            return None
        return Certificate.from_doc(certificate_id, data) if data else None

    # -----------------------
    # Chat
    # -----------------------

    def create_or_select_conversation(self, participant: ParticipantDetails) -> str:
        user = self._actor()
        if user is None:
            return ""
        sorted_ids = sorted([user.id, participant.id])
        conv_id = conversation_id(user.id, participant.id)

        if self.store.get(COLLECTION_CONVERSATIONS, conv_id) is None:
            self.store.set(COLLECTION_CONVERSATIONS, conv_id, {
                "participantIds": sorted_ids,
                "participants": {
                    user.id: {"name": user.name, "avatar": user.avatar},
                    participant.id: {"name": participant.name, "avatar": participant.avatar},
                },
            })
        return conv_id

    def send_message(self, conv_id: str, text: str) -> bool:
        user = self._actor()
        if user is None or not (text or "").strip():
            return False
        if self.store.get(COLLECTION_CONVERSATIONS, conv_id) is None:
            logger.info(f"send_message: conversation {conv_id} does not exist")
            return False

        path = messages_path(conv_id)
        batch = self.store.batch()
        batch.set(path, self.store.new_id(path), {
            "senderId": user.id,
            "text": text,
            "timestamp": self.store.SERVER_TIMESTAMP,
        })
        batch.update(COLLECTION_CONVERSATIONS, conv_id, {
            "lastMessage": {"text": text, "timestamp": self.store.SERVER_TIMESTAMP},
        })
        batch.commit()
        return True

    # -----------------------
    # Bargaining
    # -----------------------

    def create_bargain_request(self, product: Product, offer_price: float) -> bool:
        user = self._actor("customer")
        if user is None or offer_price <= 0:
            return False
        live = self.store.get(COLLECTION_PRODUCTS, product.id)
        if live is None or not live.get("artisanId"):
            self._notify("This product is no longer available.", "error")
            return False
        live_product = Product.from_doc(product.id, live)

        request = BargainRequest(
            productId=live_product.id,
            productName=live_product.name,
            productImage=live_product.image,
            customerId=user.id,
            customerName=user.name,
            artisanId=live_product.artisanId,
            originalPrice=live_product.price,
            offerPrice=offer_price,
            status="pending",
        )
        doc = request.to_doc()
        doc["requestDate"] = self.store.SERVER_TIMESTAMP
        self.store.add(COLLECTION_BARGAIN_REQUESTS, doc)
        return True

    def update_bargain_request_status(self, request_id: str, status: str) -> bool:
        if status not in ("accepted", "rejected"):
            raise ValueError(f"Unknown bargain response: {status}")
        user = self._actor("artisan")
        if user is None:
            return False
        current = self.store.get(COLLECTION_BARGAIN_REQUESTS, request_id)
        if current is None or current.get("artisanId") != user.id or current.get("status") != "pending":
            return False
        self.store.update(COLLECTION_BARGAIN_REQUESTS, request_id, {"status": status})
        return True

    def complete_bargain_request(self, request_id: str) -> bool:
        user = self._actor()
        if user is None:
            return False
        current = self.store.get(COLLECTION_BARGAIN_REQUESTS, request_id)
        if current is None or current.get("status") != "accepted":
            return False
        if user.id not in (current.get("customerId"), current.get("artisanId")):
            return False
        self.store.update(COLLECTION_BARGAIN_REQUESTS, request_id, {"status": "completed"})
        return True

    # -----------------------
    # Connections
    # -----------------------

    def send_connection_request(self, receiver: User) -> bool:
        user = self._actor()
        if user is None or receiver.id == user.id:
            return False
        request = ConnectionRequest(
            senderId=user.id,
            receiverId=receiver.id,
            senderName=user.name,
            senderAvatar=user.avatar,
            senderRole=user.role,
            status="pending",
        )
        doc = request.to_doc()
        doc["timestamp"] = self.store.SERVER_TIMESTAMP
        self.store.add(COLLECTION_CONNECTION_REQUESTS, doc)
        return True

    def respond_to_connection_request(self, request: ConnectionRequest, response: str) -> bool:
        if response not in ("accepted", "rejected"):
            raise ValueError(f"Unknown connection response: {response}")
        user = self._actor()
        if user is None or request.receiverId != user.id:
            return False
        current = self.store.get(COLLECTION_CONNECTION_REQUESTS, request.id)
        if current is None or current.get("status") != "pending":
            return False

        self.store.update(COLLECTION_CONNECTION_REQUESTS, request.id, {"status": response})
        if response == "accepted":
            self.create_or_select_conversation(
                ParticipantDetails(id=request.senderId, name=request.senderName, avatar=request.senderAvatar)
            )
            self._notify(
                f"You are now connected with {request.senderName}.",
                "success",
                NotificationLink(text="Go to Chat", page=chat_page_for(user)),
            )
        return True
