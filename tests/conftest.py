import pytest

from artisan_sync.notifications import NotificationCenter
from artisan_sync.seed_data import seed_database
from artisan_sync.sync_session import SyncSession
from fakes import FakeIdentity, FakeTextGenerator, InMemoryStore, ManualClock, ManualScheduler


CUSTOMER = {"name": "Priya Nair", "role": "customer", "profileComplete": True}


@pytest.fixture
def store():
    s = InMemoryStore()
    seed_database(s)
    s.collection("users")["customer_1"] = dict(CUSTOMER)
    return s


@pytest.fixture
def text_generator():
    return FakeTextGenerator()


@pytest.fixture
def make_session(store, text_generator):
    """
    Build a started session for one viewer. With `uid` the viewer signs in
    through a fake identity registered as <uid>@example.com / "pw".
    """
    sessions = []

    def _make(uid=None, seed=True):
        identity = FakeIdentity()
        clock = ManualClock()
        notifications = NotificationCenter(ttl_seconds=6, clock=clock, scheduler=ManualScheduler())
        session = SyncSession(
            store,
            identity=identity,
            text_generator=text_generator,
            notifications=notifications,
            seed_on_start=seed,
        )
        session.start()
        if uid is not None:
            identity.register(f"{uid}@example.com", "pw", uid)
            session.login(f"{uid}@example.com", "pw")
        sessions.append(session)
        return session

    yield _make
    for session in sessions:
        session.stop()
