"""Tests for the projects API: gate enforcement, redaction, lifecycle, import/export."""

import io

import openpyxl
import pytest

from bizops.services.project_import import COLUMNS

from conftest import USER_IDS, headers_for

BASE = "/api/v1/projects"


class TestCreateAndList:

    def test_procurement_creates_new_project(self, client, project_payload):
        resp = client.post(f"{BASE}/", json=project_payload, headers=headers_for("procurement"))
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "new"
        assert data["status_label"] == "awaiting partner approval"

    def test_partner_cannot_create(self, client, project_payload):
        resp = client.post(f"{BASE}/", json=project_payload, headers=headers_for("partner"))
        assert resp.status_code == 403

    def test_invalid_vat_rate_is_422(self, client, project_payload):
        resp = client.post(f"{BASE}/", json={**project_payload, "vat_rate": 20}, headers=headers_for("procurement"))
        assert resp.status_code == 422

    def test_submit_on_create(self, client, project_payload):
        resp = client.post(f"{BASE}/", json={**project_payload, "submit_for_approval": True},
                           headers=headers_for("procurement"))
        assert resp.json()["status"] == "pending_approval"

    def test_new_project_hidden_from_default_list(self, client, make_project):
        pid = make_project("new")
        listed = client.get(f"{BASE}/", headers=headers_for("deputy_director")).json()
        assert pid not in [p["id"] for p in listed]

        queue = client.get(f"{BASE}/approval-queue", headers=headers_for("deputy_director")).json()
        assert [p["id"] for p in queue] == [pid]

        assert client.get(f"{BASE}/approval-queue", headers=headers_for("partner")).json() == []

    def test_running_project_is_listed(self, client, make_project):
        pid = make_project("in_progress")
        listed = client.get(f"{BASE}/", headers=headers_for("assistant_1")).json()
        assert [p["id"] for p in listed] == [pid]
        assert listed[0]["status_label"] == "in progress"

    def test_search_and_filters(self, client, make_project):
        make_project("in_progress", name="Tax review", contract_number="TX-1")
        make_project("in_progress", name="IT audit", contract_number="IT-9", project_type="it_audit")
        h = headers_for("ceo")
        assert len(client.get(f"{BASE}/", params={"search": "tx-"}, headers=h).json()) == 1
        assert len(client.get(f"{BASE}/", params={"project_type": "it_audit"}, headers=h).json()) == 1
        assert len(client.get(f"{BASE}/", params={"status": "completed"}, headers=h).json()) == 0


class TestGate:

    def test_awaiting_project_visible_to_approvers_and_creator(self, client, make_project):
        pid = make_project("new")
        assert client.get(f"{BASE}/{pid}", headers=headers_for("partner")).status_code == 403
        assert client.get(f"{BASE}/{pid}", headers=headers_for("ceo")).status_code == 200
        assert client.get(f"{BASE}/{pid}", headers=headers_for("procurement")).status_code == 200

    def test_awaiting_team_only_deputy_assigns(self, client, make_project):
        pid = make_project("approved")
        gate = client.get(f"{BASE}/{pid}/gate", headers=headers_for("deputy_director")).json()
        assert gate["label"] == "awaiting team assignment"
        assert gate["can_assign_team"] is True

        team = {"team": [{"person_id": USER_IDS["partner"], "role": "partner"}]}
        resp = client.post(f"{BASE}/{pid}/assign-team", json=team, headers=headers_for("ceo"))
        assert resp.status_code == 403

    def test_partner_cannot_approve(self, client, make_project):
        pid = make_project("new")
        resp = client.post(f"{BASE}/{pid}/approve", headers=headers_for("partner"))
        assert resp.status_code == 403

    def test_unknown_project_404(self, client):
        resp = client.get(f"{BASE}/00000000-0000-0000-0000-00000000abcd", headers=headers_for("ceo"))
        assert resp.status_code == 404


class TestFinanceRedaction:

    def test_partner_sees_figures(self, client, make_project):
        pid = make_project("in_progress")
        data = client.get(f"{BASE}/{pid}", headers=headers_for("partner")).json()
        assert data["amount_without_vat"] == 1_000_000
        assert data["finances"]["bonus_base"] == 600_000
        assert data["finances"]["team_bonuses"][USER_IDS["partner"]]["amount"] == 240_000

    @pytest.mark.parametrize("role", ["deputy_director", "ceo", "manager_2"])
    def test_others_see_status_but_no_money(self, client, make_project, role):
        pid = make_project("in_progress")
        data = client.get(f"{BASE}/{pid}", headers=headers_for(role)).json()
        assert data["amount_without_vat"] is None
        assert data["finances"] is None
        assert data["team_size"] == 3
        assert data["status"] == "in_progress"

        assert client.get(f"{BASE}/{pid}/finances", headers=headers_for(role)).status_code == 403

    def test_visibility_list_narrows_partners(self, client, make_project):
        pid = make_project("in_progress", financial_visibility={"enabled": True, "visible_to": ["someone-else"]})
        h = headers_for("partner")
        assert client.get(f"{BASE}/{pid}", headers=h).json()["finances"] is None
        assert client.get(f"{BASE}/{pid}/finances", headers=h).status_code == 403

    def test_excluded_partner_cannot_lift_restriction(self, client, make_project):
        pid = make_project("in_progress", financial_visibility={"enabled": True, "visible_to": ["someone-else"]})
        h = headers_for("partner")
        resp = client.put(f"{BASE}/{pid}", json={"financial_visibility": None}, headers=h)
        assert resp.status_code == 422
        assert client.get(f"{BASE}/{pid}/finances", headers=h).status_code == 403

    def test_approver_sets_visibility(self, client, make_project):
        pid = make_project("new")
        body = {"comment": "ok", "financial_visibility": {"enabled": True, "visible_to": [USER_IDS["partner"]]}}
        resp = client.post(f"{BASE}/{pid}/approve", json=body, headers=headers_for("deputy_director"))
        assert resp.status_code == 200

        gate = client.get(f"{BASE}/{pid}/gate", headers=headers_for("partner")).json()
        assert gate["can_view_finances"] is True
        other = client.get(f"{BASE}/{pid}/gate", headers=headers_for("partner", user_id=USER_IDS["ceo"])).json()
        assert other["can_view_finances"] is False

    def test_finance_detail(self, client, make_project):
        pid = make_project("in_progress", is_multi_year=True,
                           yearly_amounts=[{"year": 2025, "amount": 600_000}, {"year": 2026, "amount": 300_000}])
        data = client.get(f"{BASE}/{pid}/finances", headers=headers_for("partner")).json()
        assert data["frozen"] is False
        assert data["finances"]["amount_with_vat"] == 1_120_000
        assert data["yearly_check"]["mismatch"] is True
        assert data["yearly_check"]["difference"] == -100_000


class TestLifecycle:

    def test_complete_freezes_bonuses(self, client, make_project):
        pid = make_project("completed")
        detail = client.get(f"{BASE}/{pid}/finances", headers=headers_for("partner")).json()
        assert detail["frozen"] is True
        assert detail["finances"]["total_bonus_amount"] == 600_000
        assert detail["finances"]["profit_margin"] == 0

        resp = client.put(f"{BASE}/{pid}", json={"name": "Renamed"}, headers=headers_for("partner"))
        assert resp.status_code == 400

    def test_non_member_manager_cannot_complete(self, client, make_project):
        pid = make_project("in_progress")
        resp = client.post(f"{BASE}/{pid}/complete", headers=headers_for("manager_1"))
        assert resp.status_code == 403

    def test_assistant_cannot_edit(self, client, make_project):
        pid = make_project("in_progress")
        resp = client.put(f"{BASE}/{pid}", json={"completion_percent": 50}, headers=headers_for("assistant_1"))
        assert resp.status_code == 403

    def test_member_manager_updates_progress(self, client, make_project):
        pid = make_project("in_progress")
        resp = client.put(f"{BASE}/{pid}", json={"completion_percent": 50}, headers=headers_for("manager_2"))
        assert resp.status_code == 200
        assert resp.json()["completion_percent"] == 50

    def test_wrong_transition_is_400(self, client, make_project):
        pid = make_project("in_progress")
        resp = client.post(f"{BASE}/{pid}/approve", headers=headers_for("ceo"))
        assert resp.status_code == 400

    def test_cancel(self, client, make_project):
        pid = make_project("approved")
        resp = client.post(f"{BASE}/{pid}/cancel", json={"comment": "client withdrew"},
                           headers=headers_for("deputy_director"))
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"


class TestAmendments:

    def test_amount_change_applies_and_is_redacted(self, client, make_project):
        pid = make_project("in_progress")
        body = {"number": "A-1", "date": "2025-03-01", "type": "amount_change", "new_amount": 2_000_000}
        resp = client.post(f"{BASE}/{pid}/amendments", json=body, headers=headers_for("procurement"))
        assert resp.status_code == 200

        partner_view = client.get(f"{BASE}/{pid}", headers=headers_for("partner")).json()
        assert partner_view["amount_without_vat"] == 2_000_000
        assert partner_view["finances"]["bonus_base"] == 1_300_000

        amendments = client.get(f"{BASE}/{pid}/amendments", headers=headers_for("deputy_director")).json()
        assert amendments[0]["new_amount"] is None
        amendments = client.get(f"{BASE}/{pid}/amendments", headers=headers_for("partner")).json()
        assert amendments[0]["new_amount"] == 2_000_000

    def test_prolongation_moves_effective_end_date(self, client, make_project):
        pid = make_project("in_progress")
        body = {"number": "A-2", "date": "2025-05-01", "type": "prolongation", "new_end_date": "2025-12-31"}
        client.post(f"{BASE}/{pid}/amendments", json=body, headers=headers_for("procurement"))
        data = client.get(f"{BASE}/{pid}", headers=headers_for("ceo")).json()
        assert data["effective_end_date"] == "2025-12-31"
        assert data["service_end_date"] == "2025-06-30"

    def test_missing_amount_is_400(self, client, make_project):
        pid = make_project("in_progress")
        body = {"number": "A-3", "date": "2025-05-01", "type": "amount_change"}
        resp = client.post(f"{BASE}/{pid}/amendments", json=body, headers=headers_for("procurement"))
        assert resp.status_code == 400


class TestStagesAndServices:

    STAGES = [{"name": "Interim audit", "start_date": "2025-02-01", "end_date": "2025-04-30"}]
    SERVICES = [{"name": "Training", "description": "IFRS 16", "cost": 150_000}]

    def test_created_with_project_and_cost_redacted(self, client, make_project):
        pid = make_project("in_progress", stages=self.STAGES, additional_services=self.SERVICES)

        data = client.get(f"{BASE}/{pid}", headers=headers_for("partner")).json()
        assert data["stages"][0]["name"] == "Interim audit"
        assert data["stages"][0]["end_date"] == "2025-04-30"
        assert data["stages"][0]["id"]
        assert data["additional_services"][0]["cost"] == 150_000

        data = client.get(f"{BASE}/{pid}", headers=headers_for("manager_2")).json()
        assert data["stages"][0]["name"] == "Interim audit"
        assert data["additional_services"][0]["name"] == "Training"
        assert data["additional_services"][0]["cost"] is None

    def test_member_updates_stages_and_null_clears(self, client, make_project):
        pid = make_project("in_progress", stages=self.STAGES)
        h = headers_for("manager_2")
        stages = [*self.STAGES, {"name": "Final audit", "start_date": "2025-11-01"}]

        resp = client.put(f"{BASE}/{pid}", json={"stages": stages}, headers=h)
        assert resp.status_code == 200, resp.text
        assert [s["name"] for s in resp.json()["stages"]] == ["Interim audit", "Final audit"]

        resp = client.put(f"{BASE}/{pid}", json={"stages": None}, headers=h)
        assert resp.status_code == 200, resp.text
        assert resp.json()["stages"] == []

    def test_negative_service_cost_is_422(self, client, project_payload):
        payload = {**project_payload, "additional_services": [{"name": "Seminar", "cost": -1}]}
        resp = client.post(f"{BASE}/", json=payload, headers=headers_for("procurement"))
        assert resp.status_code == 422


class TestImportExport:

    def test_bad_rows_do_not_block_good_ones(self, client):
        csv_text = "\n".join([
            ",".join(COLUMNS),
            "Audit A,Client A,C-1,,1000,12,KZT,,,,",
            ",,C-2,,500,12,KZT,,,,",
            "Audit C,,C-3,,2000,0,USD,,,,",
        ])
        resp = client.post(
            f"{BASE}/import",
            files={"file": ("projects.csv", csv_text.encode("utf-8"), "text/csv")},
            headers=headers_for("procurement"),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["created"] == 2
        assert data["errors"] == [{"row": 3, "errors": ["Project name or client is required"]}]
        assert {p["status"] for p in data["projects"]} == {"new"}

        queue = client.get(f"{BASE}/approval-queue", headers=headers_for("ceo")).json()
        assert len(queue) == 2

    def test_overflowing_cells_are_rejected_per_row(self, client):
        huge = "9" * 400
        csv_text = "\n".join([
            ",".join(COLUMNS),
            "Audit A,Client A,C-1,,1000,12,KZT,,,,",
            f"Audit B,Client B,C-2,,1000,{huge},KZT,,,,",
            f"Audit C,Client C,C-3,,{huge},12,KZT,,,,",
        ])
        resp = client.post(
            f"{BASE}/import",
            files={"file": ("projects.csv", csv_text.encode("utf-8"), "text/csv")},
            headers=headers_for("procurement"),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["created"] == 1
        assert [e["row"] for e in data["errors"]] == [3, 4]

    def test_import_requires_permission(self, client):
        resp = client.post(
            f"{BASE}/import",
            files={"file": ("p.csv", b"x", "text/csv")},
            headers=headers_for("partner"),
        )
        assert resp.status_code == 403

    def test_unreadable_file(self, client):
        resp = client.post(
            f"{BASE}/import",
            files={"file": ("p.xlsx", b"definitely not a zip", XLSX)},
            headers=headers_for("procurement"),
        )
        assert resp.status_code == 400

    def test_export_blanks_amounts_for_directors(self, client, make_project):
        make_project("in_progress")
        resp = client.get(f"{BASE}/export", headers=headers_for("deputy_director"))
        assert resp.status_code == 200
        rows = list(openpyxl.load_workbook(io.BytesIO(resp.content)).active.iter_rows(values_only=True))
        assert list(rows[0]) == COLUMNS
        assert rows[1][4] is None

        resp = client.get(f"{BASE}/export", headers=headers_for("partner"))
        rows = list(openpyxl.load_workbook(io.BytesIO(resp.content)).active.iter_rows(values_only=True))
        assert rows[1][4] == 1_000_000

    def test_template(self, client):
        resp = client.get(f"{BASE}/import/template", headers=headers_for("procurement"))
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith(XLSX)


XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
