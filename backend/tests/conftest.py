import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from settleup.database import Base, get_db
from settleup.main import app

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def post_raw(client, auth_headers):
    """POST a hand-written JSON body, e.g. one containing NaN or Infinity."""
    def _post(url, body):
        return client.post(url, content=body, headers={**auth_headers, "Content-Type": "application/json"})
    return _post


def _register(client, email, name):
    res = client.post("/api/auth/register", json={
        "email": email, "password": "testpass123", "name": name
    })
    return res.json()


@pytest.fixture
def auth_user(client):
    return _register(client, "test@example.com", "Test User")


@pytest.fixture
def auth_headers(auth_user):
    return {"Authorization": f"Bearer {auth_user['access_token']}"}


@pytest.fixture
def user_id(auth_user):
    return auth_user["user"]["id"]


@pytest.fixture
def second_user(client):
    return _register(client, "user2@example.com", "User Two")["user"]


@pytest.fixture
def third_user(client):
    return _register(client, "user3@example.com", "User Three")["user"]


@pytest.fixture
def make_group(client, auth_headers):
    """Create a group owned by the test user, with the given emails added."""
    def _make(*emails, name="Trip"):
        gid = client.post("/api/groups", json={"name": name}, headers=auth_headers).json()["id"]
        for email in emails:
            client.post(f"/api/groups/{gid}/members", json={"email": email}, headers=auth_headers)
        return gid
    return _make


@pytest.fixture
def add_expense(client, auth_headers):
    def _add(group_id, payer_id, amount, participant_ids, description="Dinner", **extra):
        res = client.post("/api/expenses", json={
            "group_id": group_id, "payer_id": payer_id, "amount": amount,
            "description": description, "participant_ids": participant_ids, **extra,
        }, headers=auth_headers)
        assert res.status_code == 201, res.text
        return res.json()
    return _add
