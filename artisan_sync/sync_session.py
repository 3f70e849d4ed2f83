# artisan_sync/sync_session.py

import json
import logging
import threading
import time
import traceback
from typing import Any, Callable, Dict, Hashable, List, Optional

from artisan_sync.base_utils import BaseUtils
from artisan_sync.degraded_mode import FallbackLatch, is_fallback_error
from artisan_sync.diff_engine import (
    DOMAIN_BARGAIN_REQUESTS,
    DOMAIN_CONNECTION_REQUESTS,
    DOMAIN_VOLUNTEERS,
    DiffNotificationEngine,
    merge_by_id,
)
from artisan_sync.doc_store import WatchHandle
from artisan_sync.entities import (
    Artisan,
    BargainRequest,
    CartItem,
    Certificate,
    Collaboration,
    ConnectionRequest,
    Conversation,
    NotificationLink,
    ParticipantDetails,
    Product,
    Project,
    ProjectApplication,
    User,
    Volunteer,
    user_from_doc,
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
    SEED_ON_START,
    messages_path,
)
from artisan_sync.notifications import NotificationCenter
from artisan_sync.seed_data import (
    INITIAL_ARTISANS,
    INITIAL_PRODUCTS,
    INITIAL_PROJECTS,
    INITIAL_VOLUNTEERS,
    copies,
    seed_database,
)
from artisan_sync.session_state import Identity, SessionState, SessionStateMachine
from artisan_sync.subscriptions import ConversationWatch, SubscriptionManager
from artisan_sync.view_model import AppState
from artisan_sync.write_protocols import WriteProtocols


logger = logging.getLogger("artisan_sync")

GLOBAL = "global"

DOMAIN_PRODUCTS = "products"
DOMAIN_PROJECTS = "projects"
DOMAIN_USERS = "users"
DOMAIN_PROFILE = "profile"
DOMAIN_CERTIFICATES = "certificates"
DOMAIN_CONVERSATIONS = "conversations"
DOMAIN_BARGAINS = "bargain_requests"
DOMAIN_CONNECTIONS = "connection_requests"
DOMAIN_APPLICATIONS = "project_applications"
DOMAIN_COLLABORATIONS = "collaborations"

PROFILE_SAVE_ALERT = (
    "Error: Could not save your profile. "
    "Please check your network connection and Firestore security rules."
)


class SyncSession(BaseUtils):
    """
    Owner of the live view model for one viewer.

    - one re-entrant lock serializes every listener callback and every
      view-model mutation (Firestore delivers snapshots on its own threads)
    - watches are (re)scoped from the current user on every identity change
    - once the fallback latch trips every callback is a no-op
    """

    def __init__(
        self,
        store,
        identity=None,
        text_generator=None,
        notifications: Optional[NotificationCenter] = None,
        language: str = "en",
        seed_on_start: bool = SEED_ON_START,
    ):
        self._lock = threading.RLock()
        self.store = store
        self.identity = identity
        self.language = language
        self.seed_on_start = seed_on_start

        self.latch = FallbackLatch()
        self.notifications = notifications or NotificationCenter()
        self.state = AppState()
        self.session = SessionStateMachine(degraded=lambda: self.latch.tripped)
        self.subscriptions = SubscriptionManager()
        self.diff = DiffNotificationEngine(self.notify)
        self.protocols = WriteProtocols(
            store,
            state=lambda: self.state,
            notify=self.notify,
            on_store_error=self.handle_store_error,
            latch=self.latch,
            text_generator=text_generator,
            language=lambda: self.language,
        )

        self._identity_unsubscribe: Optional[Callable[[], None]] = None
        self._conversation_watch: Optional[ConversationWatch] = None
        self._connection_sets: Dict[str, List[ConnectionRequest]] = {"received": [], "sent": []}

    # -----------------------
    # Lifecycle
    # -----------------------

    def start(self) -> None:
        if self.seed_on_start:
            seed_database(self.store)
        with self._lock:
            self.subscriptions.open(DOMAIN_PRODUCTS, GLOBAL, self._start_products)
            self.subscriptions.open(DOMAIN_PROJECTS, GLOBAL, self._start_projects)
            self._rescope()
        if self.identity is not None:
            self._identity_unsubscribe = self.identity.subscribe(self._on_identity_changed)
            if self.identity.current is not None:
                self._on_identity_changed(self.identity.current)

    def stop(self) -> None:
        if self._identity_unsubscribe is not None:
            self._identity_unsubscribe()
            self._identity_unsubscribe = None
        with self._lock:
            self.subscriptions.close_all()
            self._conversation_watch = None

    def notify(self, message: str, type: str, link: Optional[NotificationLink] = None):
        return self.notifications.add(message, type, link)

    # -----------------------
    # Callback plumbing
    # -----------------------

    def _guarded(self, domain: str, scope: Hashable, handler: Callable[[Any], None]) -> Callable[[Any], None]:
        """
        Wrap a listener callback: no-op once latched, and no-op for a watch
        whose scope has since been replaced.
        """
        def _callback(payload):
            if self.latch.tripped:
                return
            with self._lock:
                if self.latch.tripped or self.subscriptions.scope_of(domain) != scope:
                    return
                handler(payload)
        return _callback

    def _on_error(self, domain: str) -> Callable[[Exception], None]:
        return lambda error: self.handle_store_error(error, domain)

    def handle_store_error(self, error: Exception, domain: str) -> None:
        """
        Single error route for every watch (and the writes that opt in):
        log, then trip the fallback latch on permission / index failures.
        """
        logger.error(f"Error fetching {domain}: {error}")
        if not is_fallback_error(error) or not self.latch.trip(domain):
            return
        with self._lock:
            self.state.firestore_error = self.latch.message
            self.state.products = copies(INITIAL_PRODUCTS)
            self.state.projects = copies(INITIAL_PROJECTS)
            self.state.artisans = copies(INITIAL_ARTISANS)
            self.state.volunteers = copies(INITIAL_VOLUNTEERS)
            if self.session.state == SessionState.PROFILE_LOADING:
                self.session.profile_loaded(None)
        self.color_print(f"[DEGRADED] {self.latch.message}", color="yellow")

    # -----------------------
    # Scoping
    # -----------------------

    def _scopes(self, user: Optional[User]) -> Dict[str, Optional[Hashable]]:
        latched = self.latch.tripped
        uid = user.id if user is not None else None
        signed_in = user is not None and not user.is_guest
        role = user.role if user is not None else None
        return {
            DOMAIN_USERS: ("viewer", uid or ""),
            DOMAIN_CERTIFICATES: ("artisan", user.name) if role == "artisan" and not latched else None,
            DOMAIN_CONVERSATIONS: uid if signed_in else None,
            DOMAIN_BARGAINS: (role, uid) if role in ("customer", "artisan") else None,
            DOMAIN_CONNECTIONS: uid if signed_in else None,
            DOMAIN_APPLICATIONS: (role, uid) if role in ("artisan", "volunteer") and not latched else None,
            DOMAIN_COLLABORATIONS: (role, uid) if role in ("artisan", "volunteer") and not latched else None,
        }

    def _rescope(self) -> None:
        starters = {
            DOMAIN_USERS: self._start_users,
            DOMAIN_CERTIFICATES: self._start_certificates,
            DOMAIN_CONVERSATIONS: self._start_conversations,
            DOMAIN_BARGAINS: self._start_bargains,
            DOMAIN_CONNECTIONS: self._start_connections,
            DOMAIN_APPLICATIONS: self._start_applications,
            DOMAIN_COLLABORATIONS: self._start_collaborations,
        }
        with self._lock:
            for domain, scope in self._scopes(self.state.current_user).items():
                if self.subscriptions.scope_of(domain) == scope and (scope is None or self.subscriptions.is_open(domain)):
                    continue
                self.subscriptions.close(domain)
                self._reset_domain(domain)
                if scope is not None:
                    self.subscriptions.open(domain, scope, lambda s=scope, d=domain: starters[d](s))

    def _reset_domain(self, domain: str) -> None:
        if domain == DOMAIN_USERS:
            self.diff.reset(DOMAIN_VOLUNTEERS)
        elif domain == DOMAIN_CERTIFICATES:
            self.state.certificates = []
        elif domain == DOMAIN_CONVERSATIONS:
            self._conversation_watch = None
            self.state.conversations = []
        elif domain == DOMAIN_BARGAINS:
            self.diff.reset(DOMAIN_BARGAIN_REQUESTS)
            self.state.bargain_requests = []
        elif domain == DOMAIN_CONNECTIONS:
            self.diff.reset(DOMAIN_CONNECTION_REQUESTS)
            self._connection_sets = {"received": [], "sent": []}
            self.state.connection_requests = []
        elif domain == DOMAIN_APPLICATIONS:
            self.state.project_applications = []
        elif domain == DOMAIN_COLLABORATIONS:
            self.state.collaborations = []

    def _set_current_user_local(self, user: Optional[User]) -> None:
        with self._lock:
            self.state.current_user = user
            self._rescope()

    # -----------------------
    # Watch starters + handlers
    # -----------------------

    def _start_products(self) -> WatchHandle:
        return self.store.watch_query(
            COLLECTION_PRODUCTS, [],
            self._guarded(DOMAIN_PRODUCTS, GLOBAL, self._on_products),
            self._on_error(DOMAIN_PRODUCTS),
        )

    def _on_products(self, docs: List[Dict[str, Any]]) -> None:
        products = [Product.from_doc(d["id"], d) for d in docs]
        self.state.products = products or copies(INITIAL_PRODUCTS)

    def _start_projects(self) -> WatchHandle:
        return self.store.watch_query(
            COLLECTION_PROJECTS, [],
            self._guarded(DOMAIN_PROJECTS, GLOBAL, self._on_projects),
            self._on_error(DOMAIN_PROJECTS),
        )

    def _on_projects(self, docs: List[Dict[str, Any]]) -> None:
        projects = [Project.from_doc(d["id"], d) for d in docs]
        self.state.projects = projects or copies(INITIAL_PROJECTS)

    def _start_users(self, scope) -> WatchHandle:
        return self.store.watch_query(
            COLLECTION_USERS, [],
            self._guarded(DOMAIN_USERS, scope, self._on_users),
            self._on_error(DOMAIN_USERS),
        )

    def _on_users(self, docs: List[Dict[str, Any]]) -> None:
        users = [user_from_doc(d["id"], d) for d in docs]
        artisans = [u for u in users if isinstance(u, Artisan)]
        volunteers = [u for u in users if isinstance(u, Volunteer)]
        self.state.artisans = artisans or copies(INITIAL_ARTISANS)
        self.state.volunteers = volunteers or copies(INITIAL_VOLUNTEERS)
        self.diff.on_volunteers(self.state.current_user, volunteers)

    def _start_profile(self, uid: str) -> WatchHandle:
        return self.store.watch_document(
            COLLECTION_USERS, uid,
            self._guarded(DOMAIN_PROFILE, uid, self._on_profile),
            self._on_profile_error,
        )

    def _on_profile(self, doc: Optional[Dict[str, Any]]) -> None:
        profile = user_from_doc(doc["id"], doc) if doc else None
        self.session.profile_loaded(profile)
        self._set_current_user_local(profile)

    def _on_profile_error(self, error: Exception) -> None:
        logger.error(f"Error listening to user profile: {error}")
        self.handle_store_error(error, DOMAIN_PROFILE)
        with self._lock:
            if self.session.state == SessionState.PROFILE_LOADING:
                self.session.profile_loaded(None)
                self._set_current_user_local(None)

    def _start_certificates(self, scope) -> WatchHandle:
        _, artisan_name = scope
        return self.store.watch_query(
            COLLECTION_CERTIFICATES, [("artistName", "==", artisan_name)],
            self._guarded(DOMAIN_CERTIFICATES, scope, self._on_certificates),
            self._on_error(DOMAIN_CERTIFICATES),
        )

    def _on_certificates(self, docs: List[Dict[str, Any]]) -> None:
        self.state.certificates = [Certificate.from_doc(d["id"], d) for d in docs]

    def _start_conversations(self, scope) -> WatchHandle:
        uid = scope

        def _start_messages(conv_id: str, on_messages) -> WatchHandle:
            return self.store.watch_query(
                messages_path(conv_id), [],
                self._guarded(DOMAIN_CONVERSATIONS, scope, on_messages),
                self._on_error(f"messages ({conv_id})"),
                order_by="timestamp",
            )

        conv_watch = ConversationWatch(_start_messages, self._on_conversations, lock=self._lock)
        self._conversation_watch = conv_watch
        outer = self.store.watch_query(
            COLLECTION_CONVERSATIONS, [("participantIds", "array-contains", uid)],
            self._guarded(DOMAIN_CONVERSATIONS, scope, conv_watch.on_outer_snapshot),
            self._on_error(DOMAIN_CONVERSATIONS),
        )

        def _close() -> None:
            outer.unsubscribe()
            conv_watch.close()

        return WatchHandle(_close, label=f"conversations[{uid}]")

    def _on_conversations(self, conversations: List[Conversation]) -> None:
        self.state.conversations = conversations

    def _start_bargains(self, scope) -> WatchHandle:
        role, uid = scope
        field = "customerId" if role == "customer" else "artisanId"
        return self.store.watch_query(
            COLLECTION_BARGAIN_REQUESTS, [(field, "==", uid)],
            self._guarded(DOMAIN_BARGAINS, scope, self._on_bargains),
            self._on_error(DOMAIN_BARGAINS),
        )

    def _on_bargains(self, docs: List[Dict[str, Any]]) -> None:
        requests = [BargainRequest.from_doc(d["id"], d) for d in docs]
        self.diff.on_bargain_requests(self.state.current_user, requests)
        self.state.bargain_requests = requests

    def _start_connections(self, scope) -> List[WatchHandle]:
        uid = scope
        self._connection_sets = {"received": [], "sent": []}

        def _on_set(which: str):
            def _handler(docs: List[Dict[str, Any]]) -> None:
                self._connection_sets[which] = [ConnectionRequest.from_doc(d["id"], d) for d in docs]
                self._combine_connections()
            return _handler

        received = self.store.watch_query(
            COLLECTION_CONNECTION_REQUESTS, [("receiverId", "==", uid)],
            self._guarded(DOMAIN_CONNECTIONS, scope, _on_set("received")),
            self._on_error("connectionRequests (received)"),
        )
        sent = self.store.watch_query(
            COLLECTION_CONNECTION_REQUESTS, [("senderId", "==", uid)],
            self._guarded(DOMAIN_CONNECTIONS, scope, _on_set("sent")),
            self._on_error("connectionRequests (sent)"),
        )
        return [received, sent]

    def _combine_connections(self) -> None:
        unique = merge_by_id(self._connection_sets["received"], self._connection_sets["sent"])
        people = list(self.state.artisans) + list(self.state.volunteers)
        self.diff.on_connection_requests(self.state.current_user, unique, people)
        self.state.connection_requests = unique

    def _start_applications(self, scope) -> WatchHandle:
        role, uid = scope
        field = "artisanId" if role == "artisan" else "volunteerId"
        return self.store.watch_query(
            COLLECTION_PROJECT_APPLICATIONS, [(field, "==", uid)],
            self._guarded(DOMAIN_APPLICATIONS, scope, self._on_applications),
            self._on_error(DOMAIN_APPLICATIONS),
        )

    def _on_applications(self, docs: List[Dict[str, Any]]) -> None:
        self.state.project_applications = [ProjectApplication.from_doc(d["id"], d) for d in docs]

    def _start_collaborations(self, scope) -> WatchHandle:
        role, uid = scope
        field = "artisanId" if role == "artisan" else "volunteerId"
        return self.store.watch_query(
            COLLECTION_COLLABORATIONS, [(field, "==", uid)],
            self._guarded(DOMAIN_COLLABORATIONS, scope, self._on_collaborations),
            self._on_error(DOMAIN_COLLABORATIONS),
        )

    def _on_collaborations(self, docs: List[Dict[str, Any]]) -> None:
        self.state.collaborations = [Collaboration.from_doc(d["id"], d) for d in docs]

    # -----------------------
    # Identity / session
    # -----------------------

    def _on_identity_changed(self, identity: Optional[Identity]) -> None:
        with self._lock:
            if identity is None:
                if self.session.is_guest:
                    return
                self.subscriptions.close(DOMAIN_PROFILE)
                self.session.signed_out()
                self._set_current_user_local(None)
                return

            current = self.session.identity
            if current is not None and current.uid == identity.uid and self.subscriptions.is_open(DOMAIN_PROFILE):
                return
            if self.session.state in (SessionState.PROFILE_LOADING, SessionState.READY):
                self.subscriptions.close(DOMAIN_PROFILE)
                self.session.signed_out()
            self.session.identity_established(identity)
            if self.latch.tripped:
                # listener callbacks are no-ops from here on; do not wait for a profile
                self.subscriptions.close(DOMAIN_PROFILE)
                self.session.profile_loaded(None)
                self._set_current_user_local(None)
                return
            self.subscriptions.open(DOMAIN_PROFILE, identity.uid, lambda: self._start_profile(identity.uid))

    def _authenticate(self, fn: Callable[[], Identity]) -> Identity:
        if self.identity is None:
            raise RuntimeError("No identity provider configured")
        self.session.begin_authentication()
        try:
            return fn()
        except Exception:
            self.session.authentication_failed()
            raise

    def login(self, email: str, password: str) -> Identity:
        return self._authenticate(lambda: self.identity.sign_in_with_password(email, password))

    def login_with_provider(self, provider_id: str, id_token: str) -> Identity:
        return self._authenticate(lambda: self.identity.sign_in_with_provider(provider_id, id_token))

    def signup(self, name: str, email: str, password: str) -> Identity:
        def _create() -> Identity:
            self.identity.create_identity(email, password)
            return self.identity.update_display_name(name)
        return self._authenticate(_create)

    def bypass_login(self) -> User:
        with self._lock:
            self.session.begin_authentication()
            template = INITIAL_ARTISANS[0].model_dump()
            template.update({
                "id": f"guest_{int(time.time() * 1000)}",
                "name": "Guest User",
                "profileComplete": False,
            })
            guest = Artisan.model_validate(template)
            self.session.enter_guest(guest)
            self._set_current_user_local(guest)
            return guest

    def logout(self) -> None:
        with self._lock:
            if self.session.is_guest:
                self.session.signed_out()
                self.state.cart = []
                self.state.favorites = []
                self._set_current_user_local(None)
                return
        if self.identity is not None:
            self.identity.sign_out()
        else:
            self._on_identity_changed(None)

    def set_current_user(self, user: Optional[User]) -> bool:
        """
        Persist a freshly completed profile for the signed-in identity. The
        profile watch, not this call, moves it into the view model.
        """
        if user is None:
            self._set_current_user_local(None)
            return True
        if user.is_guest:
            with self._lock:
                self.session.replace_profile(user)
                self._set_current_user_local(user)
            return True
        identity = self.session.identity
        if identity is None:
            return False
        return self._write_profile(identity.uid, {**user.to_doc(), "id": identity.uid})

    def update_user_profile(self, profile_data: Dict[str, Any]) -> bool:
        current = self.state.current_user
        if current is not None and current.is_guest:
            with self._lock:
                merged = user_from_doc(current.id, {**current.model_dump(), **profile_data, "profileComplete": True})
                self.session.replace_profile(merged)
                self._set_current_user_local(merged)
            return True
        identity = self.session.identity
        if identity is None:
            return False
        return self._write_profile(identity.uid, {**profile_data, "profileComplete": True})

    def _write_profile(self, uid: str, data: Dict[str, Any]) -> bool:
        try:
            self.store.set(COLLECTION_USERS, uid, data, merge=True)
        except Exception as e:
            logger.critical(f"CRITICAL: Failed to write user profile to Firestore: {e}")
            with self._lock:
                self.state.blocking_alert = PROFILE_SAVE_ALERT
            return False
        return True

    def dismiss_alert(self) -> None:
        with self._lock:
            self.state.blocking_alert = None

    # -----------------------
    # Cart & favorites (local only)
    # -----------------------

    def add_to_cart(self, product: Product, offer_price: float) -> None:
        with self._lock:
            cart = list(self.state.cart)
            for i, item in enumerate(cart):
                if item.product.id == product.id:
                    cart[i] = item.model_copy(update={"quantity": item.quantity + 1, "offerPrice": offer_price})
                    break
            else:
                cart.append(CartItem(product=product, quantity=1, offerPrice=offer_price))
            self.state.cart = cart

    def remove_from_cart(self, product_id: str) -> None:
        with self._lock:
            self.state.cart = [item for item in self.state.cart if item.product.id != product_id]

    def update_cart_quantity(self, product_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove_from_cart(product_id)
            return
        with self._lock:
            self.state.cart = [
                item.model_copy(update={"quantity": quantity}) if item.product.id == product_id else item
                for item in self.state.cart
            ]

    def toggle_favorite(self, product_id: str) -> None:
        with self._lock:
            if product_id in self.state.favorites:
                self.state.favorites = [f for f in self.state.favorites if f != product_id]
            else:
                self.state.favorites = list(self.state.favorites) + [product_id]

    def is_favorite(self, product_id: str) -> bool:
        return product_id in self.state.favorites

    # -----------------------
    # Chat helpers
    # -----------------------

    def start_chat(self, participant: ParticipantDetails) -> None:
        with self._lock:
            self.state.start_chat_with = participant

    def clear_start_chat(self) -> None:
        with self._lock:
            self.state.start_chat_with = None

    # -----------------------
    # Outward surface
    # -----------------------

    def view(self) -> Dict[str, Any]:
        with self._lock:
            data = self.state.to_dict()
            data["session"] = {
                "state": self.session.state.value,
                "isAuthenticated": self.session.is_authenticated,
                "authLoading": self.session.auth_loading,
                "isGuest": self.session.is_guest,
                "isInitialLogin": self.session.is_initial_login,
                "degraded": self.session.degraded,
            }
            data["language"] = self.language
        data["notifications"] = [n.model_dump(mode="json") for n in self.notifications.snapshot()]
        return data

    def _find(self, items: list, item_id: str, label: str):
        for item in items:
            if item.id == item_id:
                return item
        raise ValueError(f"Unknown {label}: {item_id}")

    def process_request(self, request_data: dict) -> dict:
        """
        Typed request dispatch for the HTTP surface. Entities are referenced
        by id and resolved from the loaded view model.
        """
        request_type = request_data.get("type")
        payload = request_data.get("payload") or {}

        try:
            preview = json.dumps(request_data, indent=2)
        except Exception:
            preview = str(request_data)
        logger.debug(f"process_request request {preview}")

        p = self.protocols
        s = self.state
        handlers: Dict[str, Callable[[], Any]] = {
            "login": lambda: self.login(payload["email"], payload["password"]).uid,
            "login_with_provider": lambda: self.login_with_provider(payload["providerId"], payload["idToken"]).uid,
            "signup": lambda: self.signup(payload["name"], payload["email"], payload["password"]).uid,
            "logout": lambda: self.logout(),
            "bypass_login": lambda: self.bypass_login().id,
            "update_user_profile": lambda: self.update_user_profile(payload.get("profile") or {}),
            "add_to_cart": lambda: self.add_to_cart(self._find(s.products, payload["productId"], "product"), float(payload["offerPrice"])),
            "remove_from_cart": lambda: self.remove_from_cart(payload["productId"]),
            "update_cart_quantity": lambda: self.update_cart_quantity(payload["productId"], int(payload["quantity"])),
            "toggle_favorite": lambda: self.toggle_favorite(payload["productId"]),
            "create_or_select_conversation": lambda: p.create_or_select_conversation(ParticipantDetails.model_validate(payload["participant"])),
            "send_message": lambda: p.send_message(payload["conversationId"], payload["text"]),
            "create_bargain_request": lambda: p.create_bargain_request(self._find(s.products, payload["productId"], "product"), float(payload["offerPrice"])),
            "update_bargain_request_status": lambda: p.update_bargain_request_status(payload["requestId"], payload["status"]),
            "complete_bargain_request": lambda: p.complete_bargain_request(payload["requestId"]),
            "send_connection_request": lambda: p.send_connection_request(self._find(list(s.artisans) + list(s.volunteers), payload["receiverId"], "user")),
            "respond_to_connection_request": lambda: p.respond_to_connection_request(self._find(s.connection_requests, payload["requestId"], "connection request"), payload["response"]),
            "apply_for_project": lambda: p.apply_for_project(self._find(s.projects, payload["projectId"], "project")),
            "respond_to_application": lambda: p.respond_to_application(self._find(s.project_applications, payload["applicationId"], "application"), payload["response"]),
            "end_collaboration": lambda: p.end_collaboration(self._find(s.collaborations, payload["collaborationId"], "collaboration"), payload.get("feedback", ""), int(payload.get("rating", 0))),
            "issue_certificate": lambda: p.issue_certificate(self._find(s.collaborations, payload["collaborationId"], "collaboration")),
            "add_product": lambda: p.add_product(payload.get("product") or {}, payload.get("certificateId")),
            "post_new_project": lambda: p.post_new_project(payload["title"], payload.get("description", ""), payload.get("skillsNeeded") or []),
            "add_certificate": lambda: p.add_certificate(Certificate.model_validate(payload.get("certificate") or {})),
            "get_certificate": lambda: (lambda c: c.model_dump(mode="json") if c else None)(p.get_certificate(payload["certificateId"])),
            "remove_notification": lambda: self.notifications.remove(payload["id"]),
            "set_language": lambda: setattr(self, "language", payload["language"]),
        }

        response_data = {"status": "success", "message": "", "type": request_type}
        handler = handlers.get(request_type)
        if handler is None:
            response_data["status"] = "error"
            response_data["message"] = f"Unknown request type: {request_type}"
            return response_data

        try:
            response_data["data"] = handler()
        except Exception as e:
            logger.info(f"Error while processing request data: {e}")
            traceback.print_exc()
            raise
        return response_data
