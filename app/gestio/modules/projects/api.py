from __future__ import annotations

from flask import Blueprint
from sqlalchemy import or_

from app.gestio.constants import CREATE, DELETE, READ, UPDATE
from app.gestio.db import db_session
from app.gestio.errors import NotFound
from app.gestio.modules.projects.models import Payment, Project
from app.gestio.modules.projects.schemas import (
    PaymentIn,
    PaymentOut,
    PaymentUpdateIn,
    ProjectIn,
    ProjectOut,
    ProjectUpdateIn,
)
from app.gestio.modules.projects.service import (
    create_payment,
    create_project,
    delete_payment,
    delete_project,
    update_payment,
    update_project,
)
from app.gestio.rbac import apply_company_scope, current_user, ensure_same_company, require_permission, resolve_company
from app.gestio.schemas import dump, dump_many
from app.gestio.utils import arg_int, arg_str, envelope, like, page_request, paginate, parse_body

bp = Blueprint("projects", __name__)


def _get_project(s, project_id: int) -> Project:
    project = s.get(Project, project_id)
    if not project:
        raise NotFound("Project not found")
    ensure_same_company(current_user(), project.company_id)
    return project


def _get_payment(s, payment_id: int) -> Payment:
    payment = s.get(Payment, payment_id)
    if not payment:
        raise NotFound("Payment not found")
    ensure_same_company(current_user(), payment.company_id)
    return payment


@bp.get("/projects")
@require_permission(READ, "PROJECT")
def projects_list():
    s = db_session()
    q = apply_company_scope(s.query(Project), Project.company_id, current_user(), arg_int("companyId"))
    status = arg_str("status")
    if status:
        q = q.filter(Project.status == status)
    client_id = arg_int("clientId")
    if client_id is not None:
        q = q.filter(Project.client_id == client_id)
    search = arg_str("search")
    if search:
        q = q.filter(or_(Project.name.ilike(like(search)), Project.description.ilike(like(search))))
    rows, pagination = paginate(q.order_by(Project.created_at.desc()), page_request())
    return envelope("items", dump_many(ProjectOut, rows), pagination)


@bp.post("/projects")
@require_permission(CREATE, "PROJECT")
def projects_create():
    user = current_user()
    payload = parse_body(ProjectIn)
    s = db_session()
    company = resolve_company(s, user, payload.company_id)
    project = create_project(s, payload, company.id, user)
    s.commit()
    return dump(ProjectOut, project), 201


@bp.get("/projects/<int:project_id>")
@require_permission(READ, "PROJECT")
def projects_detail(project_id: int):
    s = db_session()
    return dump(ProjectOut, _get_project(s, project_id))


@bp.patch("/projects/<int:project_id>")
@require_permission(UPDATE, "PROJECT")
def projects_update(project_id: int):
    payload = parse_body(ProjectUpdateIn)
    s = db_session()
    project = _get_project(s, project_id)
    update_project(s, project, payload, current_user())
    s.commit()
    return dump(ProjectOut, project)


@bp.delete("/projects/<int:project_id>")
@require_permission(DELETE, "PROJECT")
def projects_delete(project_id: int):
    s = db_session()
    project = _get_project(s, project_id)
    delete_project(s, project, current_user())
    s.commit()
    return {"message": "Project deleted"}


@bp.get("/payments")
@require_permission(READ, "PAYMENT")
def payments_list():
    s = db_session()
    q = apply_company_scope(s.query(Payment), Payment.company_id, current_user(), arg_int("companyId"))
    for arg, column in (("paymentType", Payment.payment_type), ("status", Payment.status)):
        value = arg_str(arg)
        if value:
            q = q.filter(column == value)
    for arg, column in (("projectId", Payment.project_id), ("clientId", Payment.client_id)):
        value = arg_int(arg)
        if value is not None:
            q = q.filter(column == value)
    rows, pagination = paginate(q.order_by(Payment.date.desc()), page_request())
    return envelope("items", dump_many(PaymentOut, rows), pagination)


@bp.post("/payments")
@require_permission(CREATE, "PAYMENT")
def payments_create():
    payload = parse_body(PaymentIn)
    s = db_session()
    payment = create_payment(s, payload, current_user())
    s.commit()
    return dump(PaymentOut, payment), 201


@bp.get("/payments/<int:payment_id>")
@require_permission(READ, "PAYMENT")
def payments_detail(payment_id: int):
    s = db_session()
    return dump(PaymentOut, _get_payment(s, payment_id))


@bp.patch("/payments/<int:payment_id>")
@require_permission(UPDATE, "PAYMENT")
def payments_update(payment_id: int):
    payload = parse_body(PaymentUpdateIn)
    s = db_session()
    payment = _get_payment(s, payment_id)
    update_payment(s, payment, payload, current_user())
    s.commit()
    return dump(PaymentOut, payment)


@bp.delete("/payments/<int:payment_id>")
@require_permission(DELETE, "PAYMENT")
def payments_delete(payment_id: int):
    s = db_session()
    payment = _get_payment(s, payment_id)
    delete_payment(s, payment, current_user())
    s.commit()
    return {"message": "Payment deleted"}
