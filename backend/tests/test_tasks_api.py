"""Tests for project tasks."""

import pytest

from conftest import USER_IDS, headers_for


@pytest.fixture
def project_id(make_project):
    return make_project("in_progress")


def _url(pid, suffix=""):
    return f"/api/v1/projects/{pid}/tasks/{suffix}"


def _create(client, pid, **body):
    payload = {"title": "Inventory count", **body}
    resp = client.post(_url(pid), json=payload, headers=headers_for("manager_2"))
    assert resp.status_code == 200, resp.text
    return resp.json()


class TestTasks:

    def test_create_and_list(self, client, project_id):
        task = _create(client, project_id, assignees=[USER_IDS["assistant_1"]], priority="high")
        assert task["status"] == "backlog"
        assert task["reporter_id"] == USER_IDS["manager_2"]

        listed = client.get(_url(project_id), params={"assignee": USER_IDS["assistant_1"]},
                            headers=headers_for("assistant_1")).json()
        assert [t["id"] for t in listed] == [task["id"]]

    def test_assistant_cannot_create(self, client, project_id):
        resp = client.post(_url(project_id), json={"title": "x"}, headers=headers_for("assistant_1"))
        assert resp.status_code == 403

    def test_unknown_priority_is_422(self, client, project_id):
        resp = client.post(_url(project_id), json={"title": "x", "priority": "urgent"},
                           headers=headers_for("manager_2"))
        assert resp.status_code == 422

    def test_required_checklist_blocks_done(self, client, project_id):
        task = _create(client, project_id, assignees=[USER_IDS["assistant_1"]], checklist=[
            {"text": "Sign-off", "required": True},
            {"text": "Nice to have"},
        ])
        h = headers_for("assistant_1")

        resp = client.put(_url(project_id, task["id"]), json={"status": "done"}, headers=h)
        assert resp.status_code == 400
        assert "Sign-off" in resp.json()["detail"]

        resp = client.put(_url(project_id, task["id"]), json={
            "status": "done",
            "checklist": [{"text": "Sign-off", "required": True, "done": True}, {"text": "Nice to have"}],
        }, headers=h)
        assert resp.status_code == 200
        assert resp.json()["completed_at"] is not None

        resp = client.put(_url(project_id, task["id"]), json={"status": "in_review"}, headers=h)
        assert resp.json()["completed_at"] is None

    def test_done_task_cannot_untick_required_item(self, client, project_id):
        ticked = [{"text": "Sign-off", "required": True, "done": True}]
        task = _create(client, project_id, assignees=[USER_IDS["assistant_1"]], checklist=ticked)
        h = headers_for("assistant_1")
        done = client.put(_url(project_id, task["id"]), json={"status": "done"}, headers=h).json()

        resp = client.put(_url(project_id, task["id"]), json={
            "checklist": [{"text": "Sign-off", "required": True, "done": False}],
        }, headers=h)
        assert resp.status_code == 400
        assert "Sign-off" in resp.json()["detail"]

        after = client.get(_url(project_id, task["id"]), headers=h).json()
        assert after["checklist"][0]["done"] is True
        assert after["completed_at"] == done["completed_at"]

        # a plain edit on a done task keeps the original completion time
        resp = client.put(_url(project_id, task["id"]), json={"title": "Renamed"}, headers=h)
        assert resp.status_code == 200
        assert resp.json()["completed_at"] == done["completed_at"]

    def test_non_assignee_cannot_update(self, client, project_id):
        task = _create(client, project_id)
        resp = client.put(_url(project_id, task["id"]), json={"title": "mine now"},
                          headers=headers_for("assistant_1"))
        assert resp.status_code == 403

    def test_delete_requires_manage_tasks(self, client, project_id):
        task = _create(client, project_id)
        assert client.delete(_url(project_id, task["id"]), headers=headers_for("assistant_1")).status_code == 403
        assert client.delete(_url(project_id, task["id"]), headers=headers_for("partner")).status_code == 200
        assert client.get(_url(project_id, task["id"]), headers=headers_for("partner")).status_code == 404

    def test_cancelled_project_rejects_tasks(self, client, make_project):
        pid = make_project("approved")
        client.post(f"/api/v1/projects/{pid}/cancel", json={}, headers=headers_for("ceo"))
        resp = client.post(_url(pid), json={"title": "x"}, headers=headers_for("manager_2"))
        assert resp.status_code == 400
