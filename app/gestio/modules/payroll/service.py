from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.gestio.audit import log_action
from app.gestio.errors import AccessDenied, Conflict, NotFound
from app.gestio.models import User
from app.gestio.modules.payroll.models import Payroll
from app.gestio.rbac import is_admin, is_super_admin

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.gestio.modules.payroll.schemas import PayrollIn, PayrollUpdateIn

_REQUIRED = ("period", "year", "month", "gross_pay", "net_pay", "taxes", "issue_date")


def can_view(viewer: User, payroll: Payroll) -> bool:
    if payroll.user_id == viewer.id or is_super_admin(viewer):
        return True
    return is_admin(viewer) and payroll.user.company_id == viewer.company_id


def _ensure_unique_period(s: "Session", user_id: int, year: int, month: int, exclude_id: int | None = None) -> None:
    q = s.query(Payroll.id).filter(Payroll.user_id == user_id, Payroll.year == year, Payroll.month == month)
    if exclude_id is not None:
        q = q.filter(Payroll.id != exclude_id)
    if q.first() is not None:
        raise Conflict("A payslip already exists for this employee and period")


def create_payroll(s: "Session", payload: "PayrollIn", actor: User) -> Payroll:
    employee = s.get(User, payload.user_id)
    if employee is None:
        raise NotFound("User not found")
    if not is_super_admin(actor) and employee.company_id != actor.company_id:
        raise AccessDenied("You cannot issue payslips for another company's employees")
    _ensure_unique_period(s, employee.id, payload.year, payload.month)

    now = datetime.utcnow()
    payroll = Payroll(**payload.model_dump(), created_at=now, updated_at=now)
    s.add(payroll)
    s.flush()
    log_action(
        s,
        actor,
        "CREATE",
        "PAYROLL",
        payroll.id,
        {"userId": employee.id, "period": payroll.period, "netPay": payroll.net_pay},
    )
    return payroll


def update_payroll(s: "Session", payroll: Payroll, payload: "PayrollUpdateIn", actor: User) -> Payroll:
    data = payload.model_dump(exclude_unset=True)
    year = data.get("year") or payroll.year
    month = data.get("month") or payroll.month
    if (year, month) != (payroll.year, payroll.month):
        _ensure_unique_period(s, payroll.user_id, year, month, exclude_id=payroll.id)

    changes = {}
    for field, value in data.items():
        if value is None and field in _REQUIRED:
            continue
        if value != getattr(payroll, field):
            changes[field] = {"old": getattr(payroll, field), "new": value}
            setattr(payroll, field, value)
    payroll.updated_at = datetime.utcnow()
    log_action(s, actor, "UPDATE", "PAYROLL", payroll.id, {"changes": changes})
    return payroll


def delete_payroll(s: "Session", payroll: Payroll, actor: User) -> None:
    s.delete(payroll)
    log_action(s, actor, "DELETE", "PAYROLL", payroll.id, {"userId": payroll.user_id, "period": payroll.period})
