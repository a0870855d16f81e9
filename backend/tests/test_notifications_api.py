"""Tests for notifications: event fan-out, deadline checks, read state."""

import uuid

import pytest

from bizops.models.user import Profile

from conftest import ORG_ID, USER_IDS, headers_for

BASE = "/api/v1/notifications"


@pytest.fixture
def team_profiles(db):
    for role in ("partner", "manager_2", "deputy_director"):
        db.add(Profile(id=uuid.UUID(USER_IDS[role]), org_id=uuid.UUID(ORG_ID), role=role, full_name=role))
    db.commit()


class TestEvents:

    def test_approval_notifies_creator(self, client, make_project):
        make_project("approved")
        data = client.get(f"{BASE}/", headers=headers_for("procurement")).json()
        assert data["unread"] == 1
        assert data["items"][0]["title"].startswith("Project approved")
        assert data["items"][0]["type"] == "success"

    def test_submission_notifies_approvers(self, client, team_profiles, project_payload):
        client.post("/api/v1/projects/", json={**project_payload, "submit_for_approval": True},
                    headers=headers_for("procurement"))
        data = client.get(f"{BASE}/", headers=headers_for("deputy_director")).json()
        assert [n["title"] for n in data["items"]] == ["New project awaiting approval"]

    def test_team_members_hear_about_assignment(self, client, team_profiles, make_project):
        make_project("team_assembled")
        titles = [n["title"] for n in client.get(f"{BASE}/", headers=headers_for("manager_2")).json()["items"]]
        assert "You have been added to a project team" in titles


class TestDeadlines:

    def test_warning_then_overdue(self, client, team_profiles, make_project):
        make_project("in_progress")
        h = headers_for("partner")

        resp = client.post(f"{BASE}/check-deadlines", params={"today": "2025-06-25"}, headers=h)
        assert resp.json()["created"] == 2

        items = client.get(f"{BASE}/", headers=h).json()["items"]
        warnings = [n for n in items if n["type"] == "warning"]
        assert warnings[0]["title"].startswith("Project deadline approaching")

        resp = client.post(f"{BASE}/check-deadlines", params={"today": "2025-07-05"}, headers=h)
        assert resp.json()["created"] == 2
        items = client.get(f"{BASE}/", headers=h).json()["items"]
        assert any(n["type"] == "error" and n["title"].startswith("Project overdue") for n in items)

    def test_same_day_check_is_deduplicated(self, client, team_profiles, make_project):
        make_project("in_progress")
        h = headers_for("partner")
        assert client.post(f"{BASE}/check-deadlines", params={"today": "2025-06-25"}, headers=h).json()["created"] == 2
        assert client.post(f"{BASE}/check-deadlines", params={"today": "2025-06-25"}, headers=h).json()["created"] == 0

    def test_far_deadline_is_quiet(self, client, team_profiles, make_project):
        make_project("in_progress")
        resp = client.post(f"{BASE}/check-deadlines", params={"today": "2025-02-01"}, headers=headers_for("partner"))
        assert resp.json()["created"] == 0


class TestReadState:

    def test_mark_read_and_delete(self, client, make_project):
        make_project("approved")
        h = headers_for("procurement")
        nid = client.get(f"{BASE}/", headers=h).json()["items"][0]["id"]

        assert client.post(f"{BASE}/{nid}/read", headers=h).status_code == 200
        assert client.get(f"{BASE}/unread-count", headers=h).json() == {"unread": 0}
        assert client.get(f"{BASE}/", params={"unread_only": True}, headers=h).json()["items"] == []

        assert client.delete(f"{BASE}/{nid}", headers=h).status_code == 200
        assert client.get(f"{BASE}/", headers=h).json()["items"] == []

    def test_other_users_cannot_touch(self, client, make_project):
        make_project("approved")
        nid = client.get(f"{BASE}/", headers=headers_for("procurement")).json()["items"][0]["id"]
        assert client.post(f"{BASE}/{nid}/read", headers=headers_for("partner")).status_code == 404
        assert client.delete(f"{BASE}/{nid}", headers=headers_for("partner")).status_code == 404

    def test_read_all(self, client, make_project):
        make_project("approved")
        make_project("approved")
        h = headers_for("procurement")
        assert client.post(f"{BASE}/read-all", headers=h).json()["updated"] == 2
        assert client.get(f"{BASE}/unread-count", headers=h).json()["unread"] == 0
