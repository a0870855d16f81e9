"""
Project finance calculator.

Pure functions from contract terms to derived monetary figures:

  amount          = contract amount, or the newAmount of the latest amount_change amendment
  vat_amount      = amount * vat_rate / 100
  amount_with_vat = amount + vat_amount
  cost_basis      = amount * pre_expense% + contractors
  bonus_base      = amount - cost_basis
  member bonus    = bonus_base * member percent / 100
  gross_profit    = amount - cost_basis - sum(member bonuses)
  profit_margin   = gross_profit / amount * 100   (0 when amount is 0)

Nothing here raises on bad numbers: every figure goes through safe_number
and non-finite values collapse to 0.
"""

import logging
import math
import os
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field

from bizops.schemas.project import (
    Amendment,
    Contractor,
    ProjectFinances,
    TeamBonus,
    TeamMember,
    VAT_RATES,
    YearlyAmount,
    YearlyBreakdownCheck,
)
from bizops.services.roles import default_bonus_percent

logger = logging.getLogger(__name__)

DEFAULT_PRE_EXPENSE_PERCENT = float(os.getenv("DEFAULT_PRE_EXPENSE_PERCENT", "30"))

# currency minor unit
MONEY_PLACES = 2
YEARLY_TOLERANCE = 0.01


def safe_number(value: Any) -> float:
    """Coerce anything to a finite float; None, garbage, NaN and +/-inf become 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, Decimal):
        value = float(value) if value.is_finite() else 0.0
    try:
        num = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(num) or math.isinf(num):
        return 0.0
    return num


def _money(value: Any) -> float:
    return round(safe_number(value), MONEY_PLACES)


def safe_divide(numerator: Any, denominator: Any) -> float:
    den = safe_number(denominator)
    if den == 0:
        return 0.0
    return safe_number(safe_number(numerator) / den)


# ── Amendments ──


def _as_amendments(amendments: Optional[Iterable[Any]]) -> list[Amendment]:
    out = []
    for a in amendments or []:
        out.append(a if isinstance(a, Amendment) else Amendment.model_validate(a))
    return out


def _latest(amendments: list[Amendment], kind: str, attr: str) -> Optional[Amendment]:
    """Latest-dated amendment of `kind` carrying `attr`; ties go to the later created / later listed."""
    candidates = [
        # created_at may be tz-aware or naive depending on the source; compare naive
        (a.date, (a.created_at or datetime.min).replace(tzinfo=None), idx, a)
        for idx, a in enumerate(amendments)
        if a.type == kind and getattr(a, attr) is not None
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda t: t[:3])[3]


def effective_amount(contract_amount: Any, amendments: Optional[Iterable[Any]] = None) -> float:
    latest = _latest(_as_amendments(amendments), "amount_change", "new_amount")
    if latest is not None:
        return safe_number(latest.new_amount)
    return safe_number(contract_amount)


def effective_end_date(end_date: Optional[date], amendments: Optional[Iterable[Any]] = None) -> Optional[date]:
    latest = _latest(_as_amendments(amendments), "prolongation", "new_end_date")
    if latest is not None:
        return latest.new_end_date
    return end_date


# ── VAT ──


def vat_amount(amount: Any, vat_rate: Any) -> float:
    return safe_number(safe_number(amount) * safe_number(vat_rate) / 100)


def amount_with_vat(amount: Any, vat_rate: Any) -> float:
    return safe_number(safe_number(amount) + vat_amount(amount, vat_rate))


def is_allowed_vat_rate(rate: Any) -> bool:
    try:
        return int(rate) == float(rate) and int(rate) in VAT_RATES
    except (TypeError, ValueError, OverflowError):
        return False


# ── Cost basis ──


class CostBasis(BaseModel):
    """Costs deducted from the contract amount before bonuses are allocated."""

    pre_expense_percent: float = Field(default=DEFAULT_PRE_EXPENSE_PERCENT, ge=0, le=100)
    contractors_amount: float = Field(default=0, ge=0)

    @classmethod
    def from_contractors(cls, contractors: Optional[Iterable[Any]], pre_expense_percent: Any = None) -> "CostBasis":
        total = 0.0
        for c in contractors or []:
            c = c if isinstance(c, Contractor) else Contractor.model_validate(c)
            total += safe_number(c.amount)
        pct = DEFAULT_PRE_EXPENSE_PERCENT if pre_expense_percent is None else safe_number(pre_expense_percent)
        return cls(pre_expense_percent=pct, contractors_amount=total)

    def pre_expense_amount(self, amount: Any) -> float:
        return safe_number(safe_number(amount) * self.pre_expense_percent / 100)

    def amount(self, amount: Any) -> float:
        return safe_number(self.pre_expense_amount(amount) + safe_number(self.contractors_amount))


# ── Team allocation ──


def member_percent(member: TeamMember) -> float:
    if member.bonus_percent is not None:
        return safe_number(member.bonus_percent)
    return default_bonus_percent(member.role)


def allocate_team_bonuses(bonus_base: Any, team: Optional[Iterable[Any]]) -> dict[str, TeamBonus]:
    """
    Per-person share of the bonus base. Percents are taken as configured and
    are not normalised to 100.
    """
    base = safe_number(bonus_base)
    out: dict[str, TeamBonus] = {}
    for m in team or []:
        m = m if isinstance(m, TeamMember) else TeamMember.model_validate(m)
        pct = member_percent(m)
        out[m.person_id] = TeamBonus(role=m.role, percent=pct, amount=_money(base * pct / 100))
    return out


# ── Calculator ──


def calculate_finances(
    amount_without_vat: Any,
    vat_rate: Any = 0,
    *,
    amendments: Optional[Iterable[Any]] = None,
    team: Optional[Iterable[Any]] = None,
    cost_basis: Optional[CostBasis] = None,
    currency: str = "KZT",
) -> ProjectFinances:
    basis = cost_basis if cost_basis is not None else CostBasis(pre_expense_percent=0)

    amount = effective_amount(amount_without_vat, amendments)
    rate = int(safe_number(vat_rate))
    vat = vat_amount(amount, rate)

    pre_expense = basis.pre_expense_amount(amount)
    costs = basis.amount(amount)
    bonus_base = safe_number(amount - costs)

    team_bonuses = allocate_team_bonuses(bonus_base, team)
    total_bonus = safe_number(sum(b.amount for b in team_bonuses.values()))

    gross_profit = safe_number(amount - costs - total_bonus)
    margin = safe_divide(gross_profit, amount) * 100

    return ProjectFinances(
        currency=currency,
        amount_without_vat=_money(amount),
        vat_rate=rate,
        vat_amount=_money(vat),
        amount_with_vat=_money(amount + vat),
        pre_expense_percent=safe_number(basis.pre_expense_percent),
        pre_expense_amount=_money(pre_expense),
        contractors_amount=_money(basis.contractors_amount),
        cost_basis=_money(costs),
        bonus_base=_money(bonus_base),
        total_bonus_amount=_money(total_bonus),
        team_bonuses=team_bonuses,
        gross_profit=_money(gross_profit),
        profit_margin=round(safe_number(margin), 2),
    )


def finances_for_project(project) -> ProjectFinances:
    """Run the calculator over a Project row (or anything with the same attributes)."""
    basis = CostBasis.from_contractors(
        getattr(project, "contractors", None),
        getattr(project, "pre_expense_percent", None),
    )
    return calculate_finances(
        getattr(project, "amount_without_vat", 0),
        getattr(project, "vat_rate", 0),
        amendments=getattr(project, "amendments", None),
        team=getattr(project, "team", None),
        cost_basis=basis,
        currency=getattr(project, "currency", None) or "KZT",
    )


def check_yearly_breakdown(yearly_amounts: Optional[Iterable[Any]], contract_amount: Any) -> YearlyBreakdownCheck:
    """
    Compare a multi-year split with the (amendment-adjusted) contract amount.
    Only reports the mismatch; neither side is rewritten.
    """
    total = 0.0
    for y in yearly_amounts or []:
        y = y if isinstance(y, YearlyAmount) else YearlyAmount.model_validate(y)
        total += safe_number(y.amount)
    amount = safe_number(contract_amount)
    diff = _money(total - amount)
    return YearlyBreakdownCheck(
        yearly_total=_money(total),
        contract_amount=_money(amount),
        difference=diff,
        mismatch=abs(diff) > YEARLY_TOLERANCE,
    )
