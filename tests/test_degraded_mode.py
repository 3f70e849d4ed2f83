from google.api_core.exceptions import FailedPrecondition, NotFound, PermissionDenied, ServiceUnavailable

from artisan_sync.degraded_mode import DEGRADED_MESSAGE, FallbackLatch, is_fallback_error
from artisan_sync.seed_data import INITIAL_ARTISANS, copies, seed_database
from fakes import InMemoryStore


def test_fallback_errors():
    assert is_fallback_error(PermissionDenied("Missing or insufficient permissions."))
    assert is_fallback_error(FailedPrecondition("The query requires an index. You can create it here: ..."))
    assert is_fallback_error(RuntimeError("7 PERMISSION_DENIED: Missing or insufficient permissions."))


def test_other_errors_are_not_fallback():
    assert not is_fallback_error(ServiceUnavailable("backend unavailable"))
    assert not is_fallback_error(NotFound("no such document"))
    assert not is_fallback_error(FailedPrecondition("document was modified"))


def test_latch_trips_once_and_stays():
    latch = FallbackLatch()

    assert latch.trip("products")
    assert not latch.trip("projects")

    assert latch.tripped
    assert latch.source == "products"
    assert latch.message == DEGRADED_MESSAGE


def test_seed_writes_only_into_an_empty_store():
    store = InMemoryStore()

    assert seed_database(store)
    assert not seed_database(store)

    assert set(store.collection("products")) == {"1", "2", "3"}
    assert store.collection("users")["volunteer_1"]["completedProjects"][0]["id"] == "seed_collab_1"
    assert store.commits == 1


def test_seed_failure_is_logged_not_raised():
    store = InMemoryStore()
    store.fail_writes["users"] = ServiceUnavailable("offline")

    assert not seed_database(store)
    assert store.collection("products") == {}


def test_sample_copies_are_independent():
    artisans = copies(INITIAL_ARTISANS)
    artisans[0].name = "Changed"

    assert INITIAL_ARTISANS[0].name == "Ravi Kumar"
