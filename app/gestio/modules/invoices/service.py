from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.gestio.audit import log_action
from app.gestio.errors import BadRequest, Conflict, NotFound
from app.gestio.models import Company
from app.gestio.modules.clients.models import Client
from app.gestio.modules.invoices.models import Invoice, InvoiceItem
from app.gestio.rbac import ensure_same_company

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.gestio.models import User
    from app.gestio.modules.invoices.schemas import InvoiceIn, InvoiceItemIn, InvoiceUpdateIn

DELETABLE_STATUSES = ("DRAFT", "CANCELLED")


def build_items(items: list["InvoiceItemIn"]) -> list[InvoiceItem]:
    """Line total defaults to quantity x unit price."""
    out = []
    for item in items:
        total = item.total if item.total is not None else item.quantity * item.unit_price
        out.append(
            InvoiceItem(
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total=round(total, 2),
            )
        )
    return out


def items_total(items: list[InvoiceItem]) -> float:
    return round(sum(i.total for i in items), 2)


def _check_client(s: "Session", client_id: int | None, company_id: int) -> None:
    if client_id is None:
        return
    client = s.get(Client, client_id)
    if client is None or client.company_id != company_id:
        raise NotFound("Client not found in this company")


def _ensure_unique_number(s: "Session", company_id: int, number: str, exclude_id: int | None = None) -> None:
    q = s.query(Invoice.id).filter(Invoice.company_id == company_id, Invoice.invoice_number == number)
    if exclude_id is not None:
        q = q.filter(Invoice.id != exclude_id)
    if q.first() is not None:
        raise Conflict("An invoice with this number already exists")


def create_invoice(s: "Session", payload: "InvoiceIn", user: "User") -> Invoice:
    ensure_same_company(user, payload.company_id, "You cannot create invoices for another company")
    if s.get(Company, payload.company_id) is None:
        raise NotFound("Company not found")
    _check_client(s, payload.client_id, payload.company_id)
    _ensure_unique_number(s, payload.company_id, payload.invoice_number)

    items = build_items(payload.items)
    now = datetime.utcnow()
    invoice = Invoice(
        company_id=payload.company_id,
        client_id=payload.client_id,
        invoice_number=payload.invoice_number,
        status=payload.status,
        total=payload.total if payload.total is not None else items_total(items),
        issue_date=payload.issue_date,
        due_date=payload.due_date,
        notes=payload.notes,
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
        items=items,
    )
    s.add(invoice)
    s.flush()
    log_action(
        s,
        user,
        "CREATE",
        "INVOICE",
        invoice.id,
        {"invoiceNumber": invoice.invoice_number, "total": invoice.total, "itemCount": len(items)},
    )
    return invoice


def update_invoice(s: "Session", invoice: Invoice, payload: "InvoiceUpdateIn", user: "User") -> Invoice:
    data = payload.model_dump(exclude_unset=True, exclude={"items"})
    changes = {}

    if data.get("invoice_number") and data["invoice_number"] != invoice.invoice_number:
        _ensure_unique_number(s, invoice.company_id, data["invoice_number"], exclude_id=invoice.id)
    if "client_id" in data and data["client_id"] != invoice.client_id:
        _check_client(s, data["client_id"], invoice.company_id)

    for field, value in data.items():
        if value is None and field in ("invoice_number", "status", "issue_date", "total"):
            continue
        if value != getattr(invoice, field):
            changes[field] = {"old": getattr(invoice, field), "new": value}
            setattr(invoice, field, value)

    if payload.items is not None:
        # Items are replaced wholesale; orphaned rows are deleted by the cascade.
        invoice.items = build_items(payload.items)
        changes["items"] = {"count": len(invoice.items)}
        if payload.total is None:
            new_total = items_total(invoice.items)
            if new_total != invoice.total:
                changes["total"] = {"old": invoice.total, "new": new_total}
            invoice.total = new_total

    invoice.updated_at = datetime.utcnow()
    log_action(s, user, "UPDATE", "INVOICE", invoice.id, {"changes": changes})
    return invoice


def delete_invoice(s: "Session", invoice: Invoice, user: "User") -> None:
    if invoice.status not in DELETABLE_STATUSES:
        raise BadRequest("Only DRAFT or CANCELLED invoices can be deleted")
    s.delete(invoice)
    log_action(s, user, "DELETE", "INVOICE", invoice.id, {"invoiceNumber": invoice.invoice_number})
