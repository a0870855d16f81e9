"""
Legacy project rows -> normalised project fields.

Older rows kept a handful of typed columns (name, status, kpi_percentage,
start_date, deadline) and dumped the full client-side project object as a JSON
string into `notes`. The camelCase keys of that blob are read here exactly
once; nothing downstream sees them.
"""

import json
import logging
from datetime import date, datetime
from typing import Any, Optional

from pydantic import ValidationError

from bizops.schemas.project import (
    CURRENCIES,
    PROJECT_STATUSES,
    PROJECT_TYPES,
    VAT_RATES,
    AdditionalService,
    Amendment,
    Contractor,
    ProjectStage,
    TeamMember,
    YearlyAmount,
)
from bizops.services.finance import safe_number

logger = logging.getLogger(__name__)

# blob keys read by adapt_legacy_row
MAPPED_KEYS = frozenset({
    "name", "type", "projectType", "status", "companyName", "ourCompany", "completionPercent", "completion",
    "client", "clientName", "clientWebsite", "clientActivity", "clientCity",
    "contract", "contractNumber", "contractDate", "contractSubject", "serviceTerm", "isMultiYear",
    "amountWithoutVAT", "amount", "currency", "vatRate", "yearlyAmounts", "preExpensePercent",
    "finances", "contractors", "team", "amendments", "financialVisibility", "stages", "additionalServices",
})
# kept in their own tables, recomputed, or replaced by typed columns
SKIPPED_KEYS = frozenset({
    "id", "companyId", "tasks", "kpiRatings", "reportInfo", "financeChangeLogs", "files",
    "createdBy", "createdByName", "createdAt", "approvedBy", "approvedByName", "approvedAt",
    "completedAt", "updated_at", "updatedAt",
})


def _first(*values):
    """First truthy value, else None."""
    for v in values:
        if v:
            return v
    return None


def _get(d: Any, *path):
    for key in path:
        if not isinstance(d, dict):
            return None
        d = d.get(key)
    return d


def _to_date(value) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(s, "%d.%m.%Y").date()
    except ValueError:
        logger.warning("Unparseable legacy date %r", value)
        return None


def parse_notes(raw: Any) -> dict:
    if not raw:
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Legacy notes are not valid JSON; ignoring")
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _status(row: dict, notes: dict) -> str:
    s = notes.get("status")
    if s in PROJECT_STATUSES:
        return s
    if row.get("status") in ("completed", "in_progress"):
        return row["status"]
    return "new"


def _team(notes: dict) -> list[dict]:
    members = []
    for m in notes.get("team") or []:
        if not isinstance(m, dict):
            continue
        person_id = _first(m.get("userId"), m.get("employeeId"), m.get("id"))
        if not person_id:
            continue
        try:
            member = TeamMember(
                person_id=str(person_id),
                name=_first(m.get("userName"), m.get("name")),
                role=m.get("role") or "",
                bonus_percent=m.get("bonusPercent"),
            )
        except ValidationError as e:
            logger.warning("Dropping legacy team member %s: %s", person_id, e.errors()[0].get("msg"))
            continue
        members.append(member.model_dump(mode="json"))
    return members


def _amendments(notes: dict) -> list[dict]:
    out = []
    for a in notes.get("amendments") or []:
        if not isinstance(a, dict):
            continue
        fields = {
            "number": str(a.get("number") or ""),
            "date": _to_date(a.get("date")) or _to_date(a.get("createdAt")),
            "type": a.get("type") or "other",
            "description": a.get("description") or "",
            "new_amount": a.get("newAmount"),
            "new_end_date": _to_date(a.get("newEndDate")),
            "created_by": a.get("createdBy"),
            "created_at": a.get("createdAt"),
        }
        if a.get("id"):
            fields["id"] = str(a["id"])
        try:
            amendment = Amendment(**fields)
        except ValidationError:
            logger.warning("Dropping malformed legacy amendment %r", a.get("number"))
            continue
        out.append(amendment.model_dump(mode="json"))
    return out


def _contractors(notes: dict) -> list[dict]:
    raw = _first(_get(notes, "finances", "contractors"), notes.get("contractors")) or []
    out = []
    for c in raw:
        if not isinstance(c, dict) or not c.get("name"):
            continue
        out.append(Contractor(
            name=str(c["name"]),
            amount=max(0.0, safe_number(c.get("amount"))),
            description=c.get("description"),
        ).model_dump(mode="json"))
    return out


def _yearly(notes: dict) -> list[dict]:
    raw = _first(_get(notes, "contract", "yearlyAmounts"), notes.get("yearlyAmounts")) or []
    out = []
    for y in raw:
        try:
            out.append(YearlyAmount(year=y.get("year"), amount=safe_number(y.get("amount"))).model_dump())
        except (AttributeError, ValidationError):
            continue
    return out


def _financial_visibility(notes: dict) -> Optional[dict]:
    fv = notes.get("financialVisibility")
    if not isinstance(fv, dict):
        return None
    return {
        "enabled": bool(fv.get("enabled", True)),
        "visible_to": [str(v) for v in fv.get("visibleTo") or fv.get("visible_to") or []],
    }


def _stages(notes: dict) -> list[dict]:
    out = []
    for s in notes.get("stages") or []:
        if not isinstance(s, dict):
            continue
        fields = {
            "name": s.get("name") or "",
            "start_date": _to_date(s.get("startDate")),
            "end_date": _to_date(s.get("endDate")),
            "description": s.get("description"),
        }
        if s.get("id"):
            fields["id"] = str(s["id"])
        try:
            stage = ProjectStage(**fields)
        except ValidationError:
            logger.warning("Dropping malformed legacy stage %r", s.get("name"))
            continue
        out.append(stage.model_dump(mode="json"))
    return out


def _additional_services(notes: dict) -> list[dict]:
    out = []
    for s in notes.get("additionalServices") or []:
        if not isinstance(s, dict):
            continue
        cost = s.get("cost")
        fields = {
            "name": s.get("name") or "",
            "description": s.get("description"),
            "cost": None if cost is None else max(0.0, safe_number(cost)),
        }
        if s.get("id"):
            fields["id"] = str(s["id"])
        try:
            service = AdditionalService(**fields)
        except ValidationError:
            logger.warning("Dropping malformed legacy service %r", s.get("name"))
            continue
        out.append(service.model_dump(mode="json"))
    return out


def adapt_legacy_row(row: dict) -> dict:
    """Map one legacy row (typed columns + notes blob) to Project column values."""
    notes = parse_notes(row.get("notes"))
    dropped = sorted(set(notes) - MAPPED_KEYS - SKIPPED_KEYS)
    if dropped:
        logger.warning("Legacy project %s: unmapped notes keys %s", row.get("id"), ", ".join(dropped))
    contract = notes.get("contract") if isinstance(notes.get("contract"), dict) else {}
    client = notes.get("client") if isinstance(notes.get("client"), dict) else {}

    amount = _first(
        _get(notes, "finances", "amountWithoutVAT"),
        contract.get("amountWithoutVAT"),
        notes.get("amountWithoutVAT"),
        notes.get("amount"),
    )

    currency = str(_first(contract.get("currency"), notes.get("currency")) or "KZT").upper()
    if currency not in CURRENCIES:
        logger.warning("Legacy project %s has unknown currency %s; using KZT", row.get("id"), currency)
        currency = "KZT"

    vat_rate = int(safe_number(_first(contract.get("vatRate"), notes.get("vatRate"), 12)))
    if vat_rate not in VAT_RATES:
        logger.warning("Legacy project %s has VAT rate %s; using 12", row.get("id"), vat_rate)
        vat_rate = 12

    project_type = _first(notes.get("type"), notes.get("projectType")) or "other"
    if project_type not in PROJECT_TYPES:
        project_type = "other"

    pre_expense = _first(_get(notes, "finances", "preExpensePercent"), notes.get("preExpensePercent"))
    yearly = _yearly(notes)

    return {
        "name": _first(notes.get("name"), row.get("name"), client.get("name")) or "Untitled",
        "project_type": project_type,
        "status": _status(row, notes),
        "company_name": _first(notes.get("companyName"), notes.get("ourCompany")),
        "completion_percent": int(safe_number(
            _first(notes.get("completionPercent"), notes.get("completion"), row.get("kpi_percentage"))
        )),
        "client_name": _first(notes.get("clientName"), client.get("name")),
        "client_website": _first(notes.get("clientWebsite"), client.get("website")),
        "client_activity": _first(notes.get("clientActivity"), client.get("activity")),
        "client_city": _first(notes.get("clientCity"), client.get("city")),
        "contract_number": _first(notes.get("contractNumber"), contract.get("number")),
        "contract_date": _to_date(_first(notes.get("contractDate"), contract.get("date"))),
        "contract_subject": _first(contract.get("subject"), notes.get("contractSubject")),
        "service_start_date": _to_date(_first(contract.get("serviceStartDate"), row.get("start_date"))),
        "service_end_date": _to_date(_first(contract.get("serviceEndDate"), notes.get("serviceTerm"), row.get("deadline"))),
        "amount_without_vat": max(0.0, safe_number(amount)),
        "vat_rate": vat_rate,
        "currency": currency,
        "is_multi_year": bool(_first(contract.get("isMultiYear"), notes.get("isMultiYear"), len(yearly) > 1)),
        "yearly_amounts": yearly,
        "amendments": _amendments(notes),
        "team": _team(notes),
        "contractors": _contractors(notes),
        "pre_expense_percent": 30 if pre_expense is None else safe_number(pre_expense),
        "financial_visibility": _financial_visibility(notes),
        "stages": _stages(notes),
        "additional_services": _additional_services(notes),
    }
