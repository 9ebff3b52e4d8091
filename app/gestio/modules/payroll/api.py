from __future__ import annotations

from flask import Blueprint
from sqlalchemy import or_

from app.gestio.constants import CREATE, DELETE, READ, UPDATE
from app.gestio.db import db_session
from app.gestio.errors import AccessDenied, NotFound
from app.gestio.models import User
from app.gestio.modules.payroll.models import Payroll
from app.gestio.modules.payroll.schemas import PayrollIn, PayrollOut, PayrollUpdateIn
from app.gestio.modules.payroll.service import can_view, create_payroll, delete_payroll, update_payroll
from app.gestio.rbac import (
    apply_company_scope,
    current_user,
    ensure_same_company,
    is_admin,
    require_admin,
    require_permission,
)
from app.gestio.schemas import dump, dump_many
from app.gestio.utils import arg_int, arg_str, envelope, like, page_request, paginate, parse_body

bp = Blueprint("payroll", __name__)


def _get_payroll(s, payroll_id: int) -> Payroll:
    payroll = s.get(Payroll, payroll_id)
    if not payroll:
        raise NotFound("Payslip not found")
    return payroll


@bp.get("/payrolls")
@require_permission(READ, "PAYROLL")
def payroll_list():
    user = current_user()
    s = db_session()
    q = s.query(Payroll).join(User, Payroll.user_id == User.id)
    q = apply_company_scope(q, User.company_id, user, arg_int("companyId"))

    user_id = arg_int("userId")
    if not is_admin(user):
        # Employees only ever see their own payslips.
        q = q.filter(Payroll.user_id == user.id)
    elif user_id is not None:
        q = q.filter(Payroll.user_id == user_id)
    period = arg_str("period")
    if period:
        q = q.filter(Payroll.period == period)
    year = arg_int("year")
    if year is not None:
        q = q.filter(Payroll.year == year)
    month = arg_int("month")
    if month is not None:
        q = q.filter(Payroll.month == month)
    search = arg_str("search")
    if search:
        q = q.filter(or_(Payroll.reference.ilike(like(search)), Payroll.notes.ilike(like(search))))

    rows, pagination = paginate(q.order_by(Payroll.year.desc(), Payroll.month.desc(), Payroll.id.desc()), page_request())
    return envelope("data", dump_many(PayrollOut, rows), pagination)


@bp.post("/payrolls")
@require_permission(CREATE, "PAYROLL")
def payroll_create():
    user = current_user()
    require_admin(user, "Only administrators can issue payslips")
    payload = parse_body(PayrollIn)
    s = db_session()
    payroll = create_payroll(s, payload, user)
    s.commit()
    return dump(PayrollOut, payroll), 201


@bp.get("/payrolls/<int:payroll_id>")
@require_permission(READ, "PAYROLL")
def payroll_detail(payroll_id: int):
    s = db_session()
    payroll = _get_payroll(s, payroll_id)
    if not can_view(current_user(), payroll):
        raise AccessDenied("You cannot view this payslip")
    return dump(PayrollOut, payroll)


@bp.patch("/payrolls/<int:payroll_id>")
@require_permission(UPDATE, "PAYROLL")
def payroll_update(payroll_id: int):
    user = current_user()
    require_admin(user, "Only administrators can edit payslips")
    payload = parse_body(PayrollUpdateIn)
    s = db_session()
    payroll = _get_payroll(s, payroll_id)
    ensure_same_company(user, payroll.user.company_id)
    update_payroll(s, payroll, payload, user)
    s.commit()
    return dump(PayrollOut, payroll)


@bp.delete("/payrolls/<int:payroll_id>")
@require_permission(DELETE, "PAYROLL")
def payroll_delete(payroll_id: int):
    user = current_user()
    require_admin(user, "Only administrators can delete payslips")
    s = db_session()
    payroll = _get_payroll(s, payroll_id)
    ensure_same_company(user, payroll.user.company_id)
    delete_payroll(s, payroll, user)
    s.commit()
    return {"message": "Payslip deleted"}
