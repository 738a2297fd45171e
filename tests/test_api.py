"""Tests for the JSON API."""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from main import app, get_db


@pytest.fixture
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        session = TestingSession()
        try:
            yield session
            session.commit()
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def sign_up(client: TestClient, email: str) -> dict:
    response = client.post(
        "/auth/signup", json={"email": email, "password": "hunter22", "full_name": "Test"}
    )
    assert response.status_code == 201
    body = response.json()
    client.headers["X-CSRF-Token"] = body["csrf_token"]
    return body["user"]


def test_root_and_health(client) -> None:
    assert client.get("/").json()["app"] == "Shared Finances"
    assert client.get("/health").json() == {"status": "ok"}


def test_requires_session(client) -> None:
    assert client.get("/api/transactions").status_code == 401
    assert client.get("/api/dashboard").status_code == 401


def test_signup_login_and_me(client) -> None:
    user = sign_up(client, "alice@example.com")
    me = client.get("/auth/me").json()
    assert me["user"]["id"] == user["id"]

    duplicate = client.post(
        "/auth/signup", json={"email": "alice@example.com", "password": "hunter22"}
    )
    assert duplicate.status_code == 400

    bad = client.post(
        "/auth/login", json={"email": "alice@example.com", "password": "nope"}
    )
    assert bad.status_code == 401
    good = client.post(
        "/auth/login", json={"email": "alice@example.com", "password": "hunter22"}
    )
    assert good.status_code == 200
    assert good.json()["csrf_token"]


def test_mutations_require_csrf_header(client) -> None:
    sign_up(client, "alice@example.com")
    token = client.headers.pop("X-CSRF-Token")
    payload = {
        "type": "expense",
        "date": "2024-05-10",
        "description": "Lunch",
        "amount": "12.50",
        "category": "food",
    }
    assert client.post("/api/transactions", json=payload).status_code == 400
    response = client.post(
        "/api/transactions", json=payload, headers={"X-CSRF-Token": token}
    )
    assert response.status_code == 201


def test_transaction_crud_and_dashboard(client) -> None:
    sign_up(client, "alice@example.com")
    for payload in [
        {"type": "income", "date": "2024-05-01", "description": "Salary", "amount": "1000", "category": "salary"},
        {"type": "expense", "date": "2024-05-10", "description": "Groceries", "amount": "300", "category": "Food"},
        {"type": "expense", "date": "2024-04-10", "description": "Groceries", "amount": "200", "category": "food"},
    ]:
        assert client.post("/api/transactions", json=payload).status_code == 201

    may = client.get("/api/transactions", params={"month": "2024-05"}).json()["items"]
    assert [item["amount"] for item in may] == [300.0, 1000.0]

    dashboard = client.get("/api/dashboard", params={"month": "2024-05"}).json()
    assert dashboard["totals"] == {"income": 1000.0, "expense": 300.0, "balance": 700.0}
    assert dashboard["variations"]["expense"] == 50.0
    assert dashboard["categories"]["expense"][0]["category"] == "food"

    insights = client.get("/api/insights", params={"month": "2024-05"}).json()
    assert [i["title"] for i in insights] == [
        "Top expense category",
        "Significant increase in expenses",
    ]

    history = client.get(
        "/api/categories/food/history",
        params={"type": "expense", "month": "2024-05", "window": 2},
    ).json()
    assert history["history"] == [
        {"month": "2024-05", "total": 300.0},
        {"month": "2024-04", "total": 200.0},
    ]

    txn_id = may[0]["id"]
    patched = client.patch(f"/api/transactions/{txn_id}", json={"amount": "250"})
    assert patched.status_code == 200
    assert patched.json()["amount"] == 250.0
    assert client.delete(f"/api/transactions/{txn_id}").status_code == 204
    assert client.get(f"/api/transactions/{txn_id}").status_code == 404


def test_validation_errors(client) -> None:
    sign_up(client, "alice@example.com")
    negative = {
        "type": "expense",
        "date": "2024-05-10",
        "description": "Refund",
        "amount": "-5",
        "category": "food",
    }
    assert client.post("/api/transactions", json=negative).status_code == 422
    future = dict(negative, amount="5", date="2999-01-01")
    assert client.post("/api/transactions", json=future).status_code == 400
    assert client.get("/api/dashboard", params={"month": "2024-13"}).status_code == 400


def test_categories_endpoint(client) -> None:
    sign_up(client, "alice@example.com")
    options = client.get("/api/categories", params={"type": "expense"}).json()
    assert {"value": "recurring", "label": "Recurring Payment"} in options


def test_groups_flow(client) -> None:
    sign_up(client, "bob@example.com")
    alice = sign_up(client, "alice@example.com")

    group = client.post("/api/groups", json={"name": "Home"}).json()
    assert group["created_by"] == alice["id"]

    invited = client.post(
        f"/api/groups/{group['id']}/invite", json={"email": "bob@example.com"}
    )
    assert invited.status_code == 201
    assert invited.json()["role"] == "member"
    again = client.post(
        f"/api/groups/{group['id']}/invite", json={"email": "bob@example.com"}
    )
    assert again.status_code == 400
    unknown = client.post(
        f"/api/groups/{group['id']}/invite", json={"email": "nobody@example.com"}
    )
    assert unknown.status_code == 404

    shared = {
        "type": "expense",
        "date": "2024-05-03",
        "description": "Power",
        "amount": "80",
        "category": "utilities",
        "group_id": group["id"],
    }
    assert client.post("/api/transactions", json=shared).status_code == 201

    listed = client.get("/api/groups").json()
    assert listed[0]["summary"]["expense"] == 80.0
    assert len(listed[0]["members"]) == 2

    sign_up(client, "carol@example.com")
    forbidden = client.get(f"/api/groups/{group['id']}/transactions")
    assert forbidden.status_code == 403
    assert client.get("/api/transactions").json()["items"] == []


def test_logout_clears_session(client) -> None:
    sign_up(client, "alice@example.com")
    assert client.post("/auth/logout").status_code == 204
    assert client.get("/auth/me").status_code == 401


def test_overlong_password_login_is_unauthorized(client) -> None:
    sign_up(client, "alice@example.com")
    response = client.post(
        "/auth/login", json={"email": "alice@example.com", "password": "x" * 100}
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"

    too_long = client.post(
        "/auth/signup", json={"email": "bob@example.com", "password": "x" * 73}
    )
    assert too_long.status_code == 422


def test_category_history_accepts_display_name(client) -> None:
    sign_up(client, "alice@example.com")
    payload = {
        "type": "expense",
        "date": "2024-05-02",
        "description": "Dinner",
        "amount": "10",
        "category": "Eating Out",
    }
    assert client.post("/api/transactions", json=payload).status_code == 201

    body = client.get(
        "/api/categories/Eating Out/history",
        params={"type": "expense", "month": "2024-05", "window": 1},
    ).json()
    assert body["category"] == "eating-out"
    assert body["history"] == [{"month": "2024-05", "total": 10.0}]
