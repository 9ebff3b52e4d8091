from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.gestio.audit import log_action
from app.gestio.errors import AccessDenied, BadRequest, NotFound
from app.gestio.modules.clients.models import Client
from app.gestio.modules.contracts.models import Contract
from app.gestio.modules.projects.models import Payment, Project
from app.gestio.rbac import is_super_admin

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.gestio.models import User
    from app.gestio.modules.projects.schemas import PaymentIn, PaymentUpdateIn, ProjectIn, ProjectUpdateIn


def _check_client(s: "Session", client_id: int | None, company_id: int) -> None:
    if client_id is None:
        return
    client = s.get(Client, client_id)
    if client is None or client.company_id != company_id:
        raise NotFound("Client not found in this company")


def create_project(s: "Session", payload: "ProjectIn", company_id: int, user: "User") -> Project:
    _check_client(s, payload.client_id, company_id)
    now = datetime.utcnow()
    project = Project(
        company_id=company_id,
        client_id=payload.client_id,
        owner_user_id=user.id,
        name=payload.name,
        description=payload.description,
        status=payload.status,
        start_date=payload.start_date,
        end_date=payload.end_date,
        total_price=payload.total_price,
        currency=payload.currency,
        is_fixed_price=payload.is_fixed_price,
        created_at=now,
        updated_at=now,
    )
    s.add(project)
    s.flush()
    log_action(s, user, "CREATE", "PROJECT", project.id, {"name": project.name, "status": project.status})
    return project


def update_project(s: "Session", project: Project, payload: "ProjectUpdateIn", user: "User") -> Project:
    data = payload.model_dump(exclude_unset=True)
    if "client_id" in data:
        _check_client(s, data["client_id"], project.company_id)
    changes = {}
    for field, value in data.items():
        if value is None and field in ("name", "status", "currency", "is_fixed_price"):
            continue
        if value != getattr(project, field):
            changes[field] = {"old": getattr(project, field), "new": value}
            setattr(project, field, value)
    project.updated_at = datetime.utcnow()
    log_action(s, user, "UPDATE", "PROJECT", project.id, {"changes": changes})
    return project


def delete_project(s: "Session", project: Project, user: "User") -> None:
    payments = s.query(Payment).filter(Payment.project_id == project.id).count()
    contracts = s.query(Contract).filter(Contract.project_id == project.id).count()
    if payments or contracts:
        raise BadRequest(
            "This project cannot be deleted because it has related records",
            details={"payments": payments, "contracts": contracts},
        )
    s.delete(project)
    log_action(s, user, "DELETE", "PROJECT", project.id, {"name": project.name})


def create_payment(s: "Session", payload: "PaymentIn", user: "User") -> Payment:
    company_id: int | None = None
    if payload.client_id is not None:
        client = s.get(Client, payload.client_id)
        if client is None:
            raise NotFound("Client not found")
        company_id = client.company_id
    if payload.project_id is not None:
        project = s.get(Project, payload.project_id)
        if project is None:
            raise NotFound("Project not found")
        if company_id is not None and company_id != project.company_id:
            raise BadRequest("Client and project must belong to the same company")
        company_id = project.company_id
    if company_id is None:
        company_id = user.company_id
    if company_id is None:
        raise BadRequest("A payment must be linked to a company")
    if not is_super_admin(user) and company_id != user.company_id:
        raise AccessDenied("You cannot record payments for another company")

    payment = Payment(
        company_id=company_id,
        project_id=payload.project_id,
        client_id=payload.client_id,
        payment_type=payload.payment_type,
        amount=payload.amount,
        date=payload.date,
        description=payload.description,
        payment_method=payload.payment_method,
        status=payload.status,
        reference=payload.reference,
        is_partial=payload.is_partial,
        part_number=payload.part_number,
        total_parts=payload.total_parts,
        payee=payload.payee,
        created_at=datetime.utcnow(),
    )
    s.add(payment)
    s.flush()
    log_action(
        s,
        user,
        "CREATE",
        "PAYMENT",
        payment.id,
        {"amount": payment.amount, "paymentType": payment.payment_type, "status": payment.status},
    )
    return payment


def update_payment(s: "Session", payment: Payment, payload: "PaymentUpdateIn", user: "User") -> Payment:
    data = payload.model_dump(exclude_unset=True)
    is_partial = data.get("is_partial")
    if is_partial is None:
        is_partial = payment.is_partial
    if is_partial:
        part_number = data.get("part_number") or payment.part_number
        total_parts = data.get("total_parts") or payment.total_parts
        if not part_number or not total_parts:
            raise BadRequest("partNumber and totalParts are required for partial payments")
        if part_number > total_parts:
            raise BadRequest("partNumber cannot exceed totalParts")

    changes = {}
    for field, value in data.items():
        if value is None and field in ("amount", "date", "payment_method", "status", "is_partial"):
            continue
        if value != getattr(payment, field):
            changes[field] = {"old": getattr(payment, field), "new": value}
            setattr(payment, field, value)
    log_action(s, user, "UPDATE", "PAYMENT", payment.id, {"changes": changes})
    return payment


def delete_payment(s: "Session", payment: Payment, user: "User") -> None:
    s.delete(payment)
    log_action(
        s,
        user,
        "DELETE",
        "PAYMENT",
        payment.id,
        {"amount": payment.amount, "paymentType": payment.payment_type, "projectId": payment.project_id},
    )
