import pytest
from fastapi.testclient import TestClient

import server


@pytest.fixture
def client(make_session):
    session = make_session()
    server.app.dependency_overrides[server.get_session] = lambda: session
    yield TestClient(server.app), session
    server.app.dependency_overrides.clear()


def test_state_reflects_live_collections(client):
    http, _ = client

    body = http.get("/state").json()

    assert [p["name"] for p in body["products"]][0] == "Cobalt Blue Vase"
    assert body["currentUser"] is None
    assert body["session"]["state"] == "signed-out"


def test_guest_events_drive_the_view(client):
    http, session = client

    started = http.post("/events", json={"type": "bypass_login"}).json()
    assert started["status"] == "success"
    assert started["data"].startswith("guest_")

    http.post("/events", json={"type": "add_to_cart", "payload": {"productId": "2", "offerPrice": 1400}})
    http.post("/events", json={"type": "toggle_favorite", "payload": {"productId": "2"}})

    body = http.get("/state").json()
    assert body["currentUser"]["name"] == "Guest User"
    assert body["cart"][0]["product"]["id"] == "2"
    assert body["favorites"] == ["2"]


def test_signed_in_events(client, store):
    http, session = client
    session.identity.register("ravi@example.com", "pw", "artisan_1")

    assert http.post("/events", json={"type": "login", "payload": {"email": "ravi@example.com", "password": "pw"}}).status_code == 200
    response = http.post("/events", json={
        "type": "post_new_project",
        "payload": {"title": "Kiln Repair Fund", "description": "Crowdfunding page.", "skillsNeeded": ["Writing"]},
    })

    assert response.json()["data"] is True
    assert "Kiln Repair Fund" in [p["title"] for p in http.get("/state").json()["projects"]]


def test_bad_login_is_unauthorized(client):
    http, session = client
    session.identity.register("ravi@example.com", "pw", "artisan_1")

    response = http.post("/events", json={"type": "login", "payload": {"email": "ravi@example.com", "password": "bad"}})

    assert response.status_code == 401


def test_unknown_entity_is_a_bad_request(client):
    http, _ = client
    http.post("/events", json={"type": "bypass_login"})

    response = http.post("/events", json={"type": "apply_for_project", "payload": {"projectId": "404"}})

    assert response.status_code == 400


def test_unknown_event_type(client):
    http, _ = client

    body = http.post("/events", json={"type": "launch_rocket"}).json()

    assert body["status"] == "error"


def test_notifications_can_be_dismissed(client):
    http, session = client
    notification = session.notify("Hello", "info")

    assert [n["id"] for n in http.get("/notifications").json()] == [notification.id]
    assert http.delete(f"/notifications/{notification.id}").json()["removed"] is True
    assert http.delete(f"/notifications/{notification.id}").json()["removed"] is False
    assert http.get("/notifications").json() == []
