"""Tests for employee records and user administration."""

import uuid

from bizops.models.audit_log import AuditLog
from bizops.models.user import Profile

from conftest import ORG_ID, USER_IDS, headers_for

EMPLOYEES = "/api/v1/employees"
USERS = "/api/v1/users"


def _hire(client, **body):
    payload = {"name": "Saule Nurlanova", "email": "Saule@Example.com", "role": "manager_2",
               "department": "Audit", **body}
    return client.post(f"{EMPLOYEES}/", json=payload, headers=headers_for("hr"))


class TestEmployees:

    def test_create_normalises_email(self, client):
        resp = _hire(client)
        assert resp.status_code == 200
        assert resp.json()["email"] == "saule@example.com"

    def test_duplicate_email_is_409(self, client):
        assert _hire(client).status_code == 200
        assert _hire(client, name="Other", email="SAULE@example.com").status_code == 409

    def test_invalid_role_is_422(self, client):
        assert _hire(client, role="manager_9").status_code == 422

    def test_partner_cannot_manage(self, client):
        resp = client.post(f"{EMPLOYEES}/", json={"name": "X"}, headers=headers_for("partner"))
        assert resp.status_code == 403

    def test_filters(self, client):
        _hire(client)
        _hire(client, name="Yerlan", email="y@example.com", department="Tax")
        h = headers_for("partner")
        assert len(client.get(f"{EMPLOYEES}/", params={"department": "Tax"}, headers=h).json()) == 1
        assert len(client.get(f"{EMPLOYEES}/", params={"search": "saule"}, headers=h).json()) == 1

    def test_update_and_terminate(self, client, db):
        emp = _hire(client).json()
        h = headers_for("hr")
        resp = client.put(f"{EMPLOYEES}/{emp['id']}", json={"position": "Senior manager"}, headers=h)
        assert resp.json()["position"] == "Senior manager"

        resp = client.post(f"{EMPLOYEES}/{emp['id']}/terminate",
                           json={"termination_date": "2025-09-30", "reason": "Relocation"}, headers=h)
        data = resp.json()
        assert data["status"] == "terminated"
        assert data["termination_date"] == "2025-09-30"
        assert "Relocation" in data["notes"]

        again = client.post(f"{EMPLOYEES}/{emp['id']}/terminate", json={}, headers=h)
        assert again.status_code == 400

        actions = [a.action for a in db.query(AuditLog).filter(AuditLog.resource_id == emp["id"]).all()]
        assert sorted(actions) == ["create", "terminate", "update"]


class TestUsers:

    def _profile(self, db, role="assistant_1", **kwargs):
        p = Profile(org_id=uuid.UUID(ORG_ID), role=role, full_name="Someone", **kwargs)
        db.add(p)
        db.commit()
        return str(p.id)

    def test_roles_catalogue(self, client):
        roles = client.get(f"{USERS}/roles", headers=headers_for("assistant_1")).json()
        assert {"role": "manager_2", "family": "manager", "level": 2, "label": "Manager 2"} in roles

    def test_list_requires_manage_users(self, client, db):
        self._profile(db)
        assert client.get(f"{USERS}/", headers=headers_for("partner")).status_code == 403
        users = client.get(f"{USERS}/", headers=headers_for("hr")).json()
        assert len(users) == 1
        assert users[0]["role_label"] == "Assistant 1"

    def test_change_role_takes_effect(self, client, db):
        uid = self._profile(db)
        resp = client.put(f"{USERS}/{uid}/role", json={"role": "supervisor_3"}, headers=headers_for("hr"))
        assert resp.status_code == 200
        me = client.get(f"{USERS}/me/permissions", headers=headers_for("assistant_1", user_id=uid)).json()
        assert me["role"] == "supervisor_3"
        assert "MANAGE_TASKS" in me["permissions"]

    def test_bad_role_is_422(self, client, db):
        uid = self._profile(db)
        assert client.put(f"{USERS}/{uid}/role", json={"role": "emperor"}, headers=headers_for("hr")).status_code == 422

    def test_deactivate(self, client, db):
        uid = self._profile(db)
        assert client.post(f"{USERS}/{uid}/deactivate", headers=headers_for("hr")).json()["is_active"] is False
        resp = client.get(f"{USERS}/me/permissions", headers=headers_for("assistant_1", user_id=uid))
        assert resp.status_code == 401
        assert client.post(f"{USERS}/{uid}/activate", headers=headers_for("hr")).json()["is_active"] is True

    def test_cannot_deactivate_self(self, client, db):
        hr_id = self._profile(db, role="hr", id=uuid.UUID(USER_IDS["hr"]))
        resp = client.post(f"{USERS}/{hr_id}/deactivate", headers=headers_for("hr"))
        assert resp.status_code == 400

    def test_link_employee(self, client, db):
        uid = self._profile(db)
        other = self._profile(db)
        emp = _hire(client).json()
        h = headers_for("hr")

        resp = client.put(f"{USERS}/{uid}/employee", json={"employee_id": emp["id"]}, headers=h)
        assert resp.json()["employee_id"] == emp["id"]
        assert client.put(f"{USERS}/{other}/employee", json={"employee_id": emp["id"]}, headers=h).status_code == 409
        missing = str(uuid.uuid4())
        assert client.put(f"{USERS}/{other}/employee", json={"employee_id": missing}, headers=h).status_code == 404

        me = client.get(f"{USERS}/me/permissions", headers=headers_for("assistant_1", user_id=uid)).json()
        assert me["person_id"] == emp["id"]
