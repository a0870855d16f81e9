"""Tests for the bonus ledger and analytics endpoints."""

import pytest

from conftest import USER_IDS, headers_for


class TestBonusLedger:

    @pytest.mark.parametrize("role", ["partner", "manager_2", "procurement", "hr"])
    def test_ledger_restricted(self, client, role):
        assert client.get("/api/v1/bonuses/", headers=headers_for(role)).status_code == 403

    def test_completed_and_running_projects(self, client, make_project):
        make_project("completed")
        make_project("in_progress", amount_without_vat=2_000_000)

        data = client.get("/api/v1/bonuses/", headers=headers_for("ceo")).json()
        assert len(data["records"]) == 6
        assert data["approved_amount"] == 600_000
        assert data["pending_amount"] == 1_300_000
        assert data["total_amount"] == 1_900_000

        partner = next(g for g in data["by_employee"] if g["employee_id"] == USER_IDS["partner"])
        assert partner["projects_count"] == 2
        assert partner["employee_name"] == "Partner"

    def test_status_filter(self, client, make_project):
        make_project("completed")
        make_project("in_progress")
        h = headers_for("deputy_director")
        approved = client.get("/api/v1/bonuses/", params={"status": "approved"}, headers=h).json()
        assert {r["status"] for r in approved["records"]} == {"approved"}
        assert client.get("/api/v1/bonuses/", params={"status": "paid"}, headers=h).status_code == 400

    def test_cancelled_projects_are_left_out(self, client, make_project):
        pid = make_project("team_assembled")
        client.post(f"/api/v1/projects/{pid}/cancel", json={}, headers=headers_for("ceo"))
        assert client.get("/api/v1/bonuses/", headers=headers_for("ceo")).json()["records"] == []

    def test_partner_sees_own_bonuses(self, client, make_project):
        make_project("completed")
        data = client.get("/api/v1/bonuses/mine", headers=headers_for("partner")).json()
        assert [r["employee_id"] for r in data["records"]] == [USER_IDS["partner"]]
        assert data["total_amount"] == 240_000


class TestAnalytics:

    def test_requires_permission(self, client):
        assert client.get("/api/v1/analytics/dashboard", headers=headers_for("assistant_1")).status_code == 403

    def test_counts_without_money_for_directors(self, client, make_project):
        make_project("new")
        make_project("completed")
        data = client.get("/api/v1/analytics/dashboard", headers=headers_for("deputy_director")).json()
        assert data["total_projects"] == 2
        assert data["completed_projects"] == 1
        assert data["projects_by_status"] == {"new": 1, "completed": 1}
        assert data["revenue"] is None

    def test_revenue_for_ceo(self, client, make_project):
        make_project("completed")
        make_project("in_progress")
        client.post("/api/v1/timesheets/", json={"date": "2025-03-03", "hours": 7.5},
                    headers=headers_for("assistant_1"))
        data = client.get("/api/v1/analytics/dashboard", headers=headers_for("ceo")).json()
        assert data["revenue"]["total_amount_without_vat"] == 2_000_000
        assert data["revenue"]["total_amount_with_vat"] == 2_240_000
        assert data["revenue"]["average_budget"] == 1_000_000
        assert data["revenue"]["total_bonuses"] == 1_200_000
        assert data["timesheet_hours"] == 7.5
        assert data["average_completion"] == 50.0
