"""Tests for the project status / role gate."""

from types import SimpleNamespace

import pytest

from bizops.services import access


def _project(status, team=None, financial_visibility=None):
    return SimpleNamespace(status=status, team=team or [], financial_visibility=financial_visibility)


TEAM = [{"person_id": "p-partner", "role": "partner"}, {"person_id": "p-manager", "role": "manager_2"}]


class TestAwaitingApproval:

    @pytest.mark.parametrize("status", ["new", "pending_approval"])
    @pytest.mark.parametrize("role", ["deputy_director", "ceo"])
    def test_approvers_can_act(self, status, role):
        gate = access.evaluate(status, role)
        assert gate.label == "awaiting partner approval"
        assert gate.can_act
        assert gate.can_view
        assert not gate.in_default_list

    @pytest.mark.parametrize("role", ["partner", "manager_1", "procurement", "assistant_3", "admin"])
    def test_everyone_else_is_locked_out(self, role):
        gate = access.evaluate("new", role)
        assert not gate.can_act
        assert not gate.can_view
        assert not gate.in_default_list

    def test_sub_status_takes_priority(self):
        gate = access.evaluate("active", "ceo", sub_status="pending_approval")
        assert gate.stage == "awaiting_approval"

    def test_default_list_and_queue(self):
        new = _project("new")
        running = _project("in_progress", TEAM)
        assert access.default_project_list([new, running]) == [running]
        assert access.approval_queue([new, running], "deputy_director") == [new]
        assert access.approval_queue([new, running], "partner") == []


class TestAwaitingTeam:

    def test_only_deputy_director_assigns(self):
        gate = access.evaluate("approved", "deputy_director", team=[])
        assert gate.label == "awaiting team assignment"
        assert gate.can_assign_team
        assert gate.can_act

    @pytest.mark.parametrize("role", ["ceo", "partner", "manager_3"])
    def test_others_cannot_assign(self, role):
        gate = access.evaluate("approved", role, team=[])
        assert gate.label == "awaiting team assignment"
        assert not gate.can_assign_team
        assert not gate.can_act

    def test_approved_with_team_is_in_progress(self):
        gate = access.evaluate("approved", "partner", team=TEAM)
        assert gate.stage == "in_progress"


class TestCoarseStatus:

    @pytest.mark.parametrize("role", ["partner", "manager_1", "manager_2", "manager_3"])
    def test_editors_while_in_progress(self, role):
        gate = access.evaluate("in_progress", role, team=TEAM)
        assert gate.label == "in progress"
        assert gate.can_edit
        assert gate.can_complete

    @pytest.mark.parametrize("role", ["assistant_1", "supervisor_2", "ceo", "deputy_director"])
    def test_non_editors(self, role):
        gate = access.evaluate("in_progress", role, team=TEAM)
        assert not gate.can_edit
        assert not gate.can_complete

    def test_completed_is_read_only(self):
        gate = access.evaluate("completed", "partner", team=TEAM)
        assert gate.label == "completed"
        assert not gate.can_edit

    def test_non_member_partner_cannot_edit(self):
        project = _project("in_progress", TEAM)
        assert access.evaluate_project(project, "partner", "p-partner").can_edit
        assert not access.evaluate_project(project, "partner", "someone-else").can_edit

    def test_unknown_role_gets_nothing(self):
        gate = access.evaluate("in_progress", "janitor", team=TEAM)
        assert not gate.can_edit


class TestFinanceVisibility:

    def test_partner_without_restriction(self):
        assert access.can_view_finances("partner", "p1", None)

    @pytest.mark.parametrize("restriction", [
        None,
        {"enabled": True, "visible_to": ["dd-1"]},
    ])
    def test_deputy_director_never_sees(self, restriction):
        assert not access.can_view_finances("deputy_director", "dd-1", restriction)

    def test_partner_restricted_by_list(self):
        restriction = {"enabled": True, "visible_to": ["p1"]}
        assert access.can_view_finances("partner", "p1", restriction)
        assert not access.can_view_finances("partner", "p2", restriction)

    def test_legacy_camel_case_list(self):
        assert access.can_view_finances("partner", "p1", {"visibleTo": ["p1"]})

    def test_disabled_visibility_hides(self):
        assert not access.can_view_finances("partner", "p1", {"enabled": False, "visible_to": ["p1"]})

    def test_bonuses_page(self):
        assert access.can_view_bonuses("ceo")
        assert access.can_view_bonuses("deputy_director")
        assert not access.can_view_bonuses("partner")

    def test_redaction_keeps_status_and_progress(self):
        payload = {
            "status": "in_progress",
            "completion_percent": 40,
            "team_size": 3,
            "amount_without_vat": 1000.0,
            "finances": {"gross_profit": 10},
            "yearly_amounts": [],
            "amendments": [{"number": "1", "new_amount": 2000.0}],
        }
        out = access.redact_finances(payload)
        assert out["amount_without_vat"] is None
        assert out["finances"] is None
        assert out["amendments"][0]["new_amount"] is None
        assert out["completion_percent"] == 40
        assert out["team_size"] == 3
        assert payload["finances"] == {"gross_profit": 10}
