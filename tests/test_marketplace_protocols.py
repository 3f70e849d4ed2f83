from datetime import datetime

from google.api_core.exceptions import PermissionDenied

from artisan_sync.entities import Certificate, ParticipantDetails
from artisan_sync.write_protocols import conversation_id
from fakes import messages


def _product(session, product_id="1"):
    return next(p for p in session.state.products if p.id == product_id)


# -------- bargaining --------

def test_customer_is_told_when_offer_is_accepted(make_session):
    customer = make_session("customer_1")
    artisan = make_session("artisan_1")

    assert customer.protocols.create_bargain_request(_product(customer), 600)

    request = artisan.state.bargain_requests[0]
    assert request.status == "pending"
    assert request.customerName == "Priya Nair"
    assert request.originalPrice == 800
    assert isinstance(request.requestDate, datetime)

    assert artisan.protocols.update_bargain_request_status(request.id, "accepted")

    assert messages(customer) == ['Offer accepted for "Cobalt Blue Vase"!']
    notification = customer.notifications.snapshot()[0]
    assert notification.type == "success"
    assert notification.link.text == "View My Offers"
    assert notification.link.page == "customer-offers"
    assert messages(artisan) == []


def test_customer_is_told_when_offer_is_rejected(make_session):
    customer = make_session("customer_1")
    artisan = make_session("artisan_1")
    customer.protocols.create_bargain_request(_product(customer), 500)

    artisan.protocols.update_bargain_request_status(artisan.state.bargain_requests[0].id, "rejected")

    assert messages(customer) == ['Your offer for "Cobalt Blue Vase" was not accepted.']
    assert customer.notifications.snapshot()[0].type == "info"


def test_offers_decided_before_sign_in_are_not_announced(store, make_session):
    store.collection("bargainRequests")["old"] = {
        "productId": "1", "productName": "Cobalt Blue Vase", "customerId": "customer_1",
        "artisanId": "artisan_1", "offerPrice": 600, "status": "accepted",
    }

    customer = make_session("customer_1")

    assert [r.id for r in customer.state.bargain_requests] == ["old"]
    assert messages(customer) == []


def test_offer_status_is_owned_by_the_product_artisan(make_session):
    customer = make_session("customer_1")
    other = make_session("artisan_2")
    customer.protocols.create_bargain_request(_product(customer), 600)
    request_id = customer.state.bargain_requests[0].id

    assert not other.protocols.update_bargain_request_status(request_id, "accepted")
    assert customer.state.bargain_requests[0].status == "pending"


def test_accepted_offer_can_be_completed(make_session):
    customer = make_session("customer_1")
    artisan = make_session("artisan_1")
    customer.protocols.create_bargain_request(_product(customer), 600)
    request_id = customer.state.bargain_requests[0].id

    assert not customer.protocols.complete_bargain_request(request_id)
    artisan.protocols.update_bargain_request_status(request_id, "accepted")
    assert customer.protocols.complete_bargain_request(request_id)

    assert customer.state.bargain_requests[0].status == "completed"
    assert messages(customer) == ['Offer accepted for "Cobalt Blue Vase"!']


def test_only_customers_make_offers(make_session):
    artisan = make_session("artisan_1")

    assert not artisan.protocols.create_bargain_request(_product(artisan), 600)


# -------- products, projects, certificates --------

def test_add_product_assigns_the_certificate(store, make_session):
    artisan = make_session("artisan_1")
    certificate_id = store.add("certificates", {"artistName": "Ravi Kumar"})
    assert [c.id for c in artisan.state.certificates] == [certificate_id]

    assert artisan.protocols.add_product({"name": "Blue Tile", "price": 250, "category": "Pottery"}, certificate_id)

    product_id = store.collection("certificates")[certificate_id]["assignedToProductId"]
    product = store.collection("products")[product_id]
    assert product["certificateId"] == certificate_id
    assert product["artisanId"] == "artisan_1"
    assert product_id in [p.id for p in artisan.state.products]


def test_add_product_with_unknown_certificate_writes_nothing(store, make_session):
    artisan = make_session("artisan_1")
    before = dict(store.collection("products"))

    assert not artisan.protocols.add_product({"name": "Blue Tile", "price": 250}, "missing")

    assert store.collection("products") == before


def test_permission_failure_on_write_enters_degraded_mode(store, make_session):
    artisan = make_session("artisan_1")
    store.fail_writes["products"] = PermissionDenied("Missing or insufficient permissions.")

    assert not artisan.protocols.add_product({"name": "Blue Tile", "price": 250})

    assert artisan.latch.tripped
    assert artisan.latch.source == "products/certificates"
    assert artisan.protocols.get_certificate("anything") is None


def test_post_new_project_is_open_and_signed_by_the_artisan(store, make_session):
    artisan = make_session("artisan_1")

    assert artisan.protocols.post_new_project("Packaging Design", "Eco packaging for vases.", ["Design"])

    posted = next(p for p in artisan.state.projects if p.title == "Packaging Design")
    assert posted.status == "Open"
    assert posted.postedBy == "Ravi Kumar"


def test_certificates_are_scoped_to_the_artisan_name(store, make_session):
    artisan = make_session("artisan_1")
    store.add("certificates", {"artistName": "Meera Devi"})

    assert artisan.protocols.add_certificate(Certificate(artistName="Ravi Kumar"))

    assert [c.artistName for c in artisan.state.certificates] == ["Ravi Kumar"]
    fetched = artisan.protocols.get_certificate(artisan.state.certificates[0].id)
    assert fetched.artistName == "Ravi Kumar"


# -------- chat --------

def test_conversation_id_is_order_independent():
    assert conversation_id("customer_1", "artisan_1") == "artisan_1-customer_1"
    assert conversation_id("artisan_1", "customer_1") == "artisan_1-customer_1"


def test_message_reaches_both_participants(store, make_session):
    customer = make_session("customer_1")
    artisan = make_session("artisan_1")

    conv_id = customer.protocols.create_or_select_conversation(ParticipantDetails(id="artisan_1", name="Ravi Kumar"))
    assert customer.protocols.send_message(conv_id, "Is the vase still available?")
    assert artisan.protocols.send_message(conv_id, "Yes, it is.")

    conversation = artisan.state.conversations[0]
    assert conversation.id == "artisan_1-customer_1"
    assert [m.text for m in conversation.messages] == ["Is the vase still available?", "Yes, it is."]
    assert conversation.lastMessage["text"] == "Yes, it is."
    assert [m.senderId for m in customer.state.conversations[0].messages] == ["customer_1", "artisan_1"]


def test_create_or_select_conversation_is_idempotent(store, make_session):
    customer = make_session("customer_1")
    participant = ParticipantDetails(id="artisan_1", name="Ravi Kumar")

    first = customer.protocols.create_or_select_conversation(participant)
    customer.protocols.send_message(first, "Hello")
    second = customer.protocols.create_or_select_conversation(participant)

    assert first == second
    assert store.collection("conversations")[first]["lastMessage"]["text"] == "Hello"
    assert len(customer.state.conversations) == 1


def test_message_needs_an_existing_conversation(make_session):
    customer = make_session("customer_1")

    assert not customer.protocols.send_message("artisan_1-customer_1", "Hello?")
    assert not customer.protocols.send_message("artisan_1-customer_1", "   ")


def test_start_chat_is_a_one_shot_hint(make_session):
    customer = make_session("customer_1")

    customer.start_chat(ParticipantDetails(id="artisan_1", name="Ravi Kumar"))
    assert customer.view()["startChatWith"]["id"] == "artisan_1"

    customer.clear_start_chat()
    assert customer.state.start_chat_with is None


# -------- connections --------

def _earlier_request(store, receiver="artisan_1"):
    # an artisan with no request history primes on its first non-empty snapshot
    store.add("connectionRequests", {
        "senderId": "customer_1", "receiverId": receiver, "senderName": "Priya Nair",
        "senderAvatar": "", "status": "rejected",
    })


def _pending(session):
    return next(r for r in session.state.connection_requests if r.status == "pending")


def test_connection_request_round_trip(store, make_session):
    _earlier_request(store)
    artisan = make_session("artisan_1")
    volunteer = make_session("volunteer_2")

    assert volunteer.protocols.send_connection_request(volunteer.state.find_user("artisan_1"))

    assert messages(artisan) == ["Karan Mehta wants to connect."]
    assert artisan.notifications.snapshot()[0].link.page == "dashboard"

    request = _pending(artisan)
    assert artisan.protocols.respond_to_connection_request(request, "accepted")

    assert messages(volunteer) == ["Ravi Kumar accepted your connection request!"]
    assert volunteer.notifications.snapshot()[0].link.page == "chat"
    assert "You are now connected with Karan Mehta." in messages(artisan)
    assert [c.id for c in volunteer.state.conversations] == ["artisan_1-volunteer_2"]


def test_declined_connection_is_announced_to_sender(store, make_session):
    _earlier_request(store)
    artisan = make_session("artisan_1")
    volunteer = make_session("volunteer_2")
    volunteer.protocols.send_connection_request(volunteer.state.find_user("artisan_1"))

    assert artisan.protocols.respond_to_connection_request(_pending(artisan), "rejected")

    assert messages(volunteer) == ["Ravi Kumar declined your connection request."]
    assert artisan.state.conversations == []


def test_only_the_receiver_answers_a_connection(make_session):
    artisan = make_session("artisan_1")
    volunteer = make_session("volunteer_2")
    volunteer.protocols.send_connection_request(volunteer.state.find_user("artisan_1"))
    request = volunteer.state.connection_requests[0]

    assert not volunteer.protocols.respond_to_connection_request(request, "accepted")
    assert artisan.state.connection_requests[0].status == "pending"
