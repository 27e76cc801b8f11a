import pytest
from fastapi.testclient import TestClient

from main import create_app
from storage import InMemoryStorage


def profile(email, gender="male", name=None, **extra):
    data = {
        "email": email,
        "password": "secret123",
        "name": name or email.split("@")[0],
        "age": 30,
        "gender": gender,
        "location": "Paris",
    }
    data.update(extra)
    return data


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def app(storage, tmp_path):
    return create_app(storage=storage, upload_dir=str(tmp_path / "uploads"))


@pytest.fixture
def make_client(app):
    """Build a client registered as a fresh user; each client keeps its own session cookie."""
    clients = []

    def _make(email, gender="male", **extra):
        client = TestClient(app)
        resp = client.post("/api/auth/register", json=profile(email, gender, **extra))
        assert resp.status_code == 200, resp.text
        client.user = resp.json()
        clients.append(client)
        return client

    yield _make
    for c in clients:
        c.close()


@pytest.fixture
def alice(make_client):
    return make_client("alice@amour.io", gender="female")


@pytest.fixture
def bob(make_client):
    return make_client("bob@amour.io", gender="male")


def add_user(storage, email, gender="male"):
    fields = profile(email, gender)
    fields["password"] = "not-a-real-hash"
    return storage.create_user(fields)


@pytest.fixture
def users(storage):
    """Three stored users: u1 (male), u2 (female), u3 (female)."""
    return [
        add_user(storage, "u1@amour.io", "male"),
        add_user(storage, "u2@amour.io", "female"),
        add_user(storage, "u3@amour.io", "female"),
    ]
