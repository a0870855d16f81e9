"""
BizOps test configuration.

An in-memory SQLite database replaces PostgreSQL; the request viewer comes
from the demo headers (AUTH_MODE=demo).
"""
import os
import uuid

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_MODE"] = "demo"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from bizops.database import Base, get_db
from bizops.models import audit_log, employee, notification, project, task, timesheet, user, work_paper  # noqa: F401
from main import app


ORG_ID = "11111111-1111-1111-1111-111111111111"

# one fixed user id per role so team membership can be expressed in tests
USER_IDS = {
    "ceo": "aaaaaaaa-0000-0000-0000-000000000001",
    "deputy_director": "aaaaaaaa-0000-0000-0000-000000000002",
    "procurement": "aaaaaaaa-0000-0000-0000-000000000003",
    "partner": "aaaaaaaa-0000-0000-0000-000000000004",
    "manager_2": "aaaaaaaa-0000-0000-0000-000000000005",
    "assistant_1": "aaaaaaaa-0000-0000-0000-000000000006",
    "hr": "aaaaaaaa-0000-0000-0000-000000000007",
    "admin": "aaaaaaaa-0000-0000-0000-000000000008",
}


def headers_for(role: str, user_id: str = None, org_id: str = ORG_ID) -> dict:
    return {
        "X-User-Id": user_id or USER_IDS.get(role) or str(uuid.uuid4()),
        "X-Org-Id": org_id,
        "X-User-Role": role,
    }


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def _override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def as_role():
    return headers_for


@pytest.fixture
def project_payload():
    return {
        "name": "Audit of Kazakh Grain 2025",
        "project_type": "financial_audit",
        "client_name": "Kazakh Grain LLP",
        "contract_number": "FA-2025-001",
        "service_start_date": "2025-01-10",
        "service_end_date": "2025-06-30",
        "amount_without_vat": 1_000_000,
        "vat_rate": 12,
        "currency": "KZT",
        "pre_expense_percent": 30,
        "contractors": [{"name": "Field support", "amount": 100_000}],
    }


@pytest.fixture
def make_project(client, project_payload):
    """Create a project as procurement, optionally pushing it through the workflow."""

    def _make(stage: str = "new", team=None, **overrides):
        payload = {**project_payload, **overrides}
        resp = client.post("/api/v1/projects/", json=payload, headers=headers_for("procurement"))
        assert resp.status_code == 200, resp.text
        pid = resp.json()["id"]
        if stage == "new":
            return pid

        assert client.post(f"/api/v1/projects/{pid}/approve", headers=headers_for("ceo")).status_code == 200
        if stage == "approved":
            return pid

        members = team or [
            {"person_id": USER_IDS["partner"], "name": "Partner", "role": "partner", "bonus_percent": 40},
            {"person_id": USER_IDS["manager_2"], "name": "Manager", "role": "manager_2", "bonus_percent": 35},
            {"person_id": USER_IDS["assistant_1"], "name": "Assistant", "role": "assistant_1", "bonus_percent": 25},
        ]
        resp = client.post(f"/api/v1/projects/{pid}/assign-team", json={"team": members},
                           headers=headers_for("deputy_director"))
        assert resp.status_code == 200, resp.text
        if stage == "team_assembled":
            return pid

        resp = client.post(f"/api/v1/projects/{pid}/start", headers=headers_for("partner"))
        assert resp.status_code == 200, resp.text
        if stage == "in_progress":
            return pid

        resp = client.post(f"/api/v1/projects/{pid}/complete", headers=headers_for("partner"))
        assert resp.status_code == 200, resp.text
        return pid

    return _make
