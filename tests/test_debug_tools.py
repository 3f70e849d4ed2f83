import pytest

from artisan_sync.debug_tools import MOCK_CUSTOMER_ID, switch_user_role


def test_switch_to_customer_rescopes_watches(make_session):
    session = make_session("artisan_1")

    user = switch_user_role(session, "customer")

    assert user.id == MOCK_CUSTOMER_ID
    assert session.state.current_user.role == "customer"
    assert session.subscriptions.scope_of("bargain_requests") == ("customer", MOCK_CUSTOMER_ID)
    assert not session.subscriptions.is_open("certificates")


def test_switch_to_another_artisan(make_session):
    session = make_session("artisan_1")

    user = switch_user_role(session, "artisan")

    assert user.id != "artisan_1"
    assert session.subscriptions.scope_of("certificates") == ("artisan", user.name)


def test_switch_needs_a_ready_session(make_session):
    session = make_session()

    assert switch_user_role(session, "volunteer") is None
    with pytest.raises(ValueError):
        switch_user_role(make_session("artisan_1"), "admin")
