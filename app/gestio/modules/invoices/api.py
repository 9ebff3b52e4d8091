from __future__ import annotations

from flask import Blueprint

from app.gestio.constants import CREATE, DELETE, READ, UPDATE
from app.gestio.db import db_session
from app.gestio.errors import NotFound
from app.gestio.modules.invoices.models import Invoice
from app.gestio.modules.invoices.schemas import InvoiceIn, InvoiceOut, InvoiceUpdateIn
from app.gestio.modules.invoices.service import create_invoice, delete_invoice, update_invoice
from app.gestio.rbac import apply_company_scope, current_user, ensure_same_company, require_permission
from app.gestio.schemas import dump, dump_many
from app.gestio.utils import arg_int, arg_str, envelope, like, page_request, paginate, parse_body

bp = Blueprint("invoices", __name__)


def _get_invoice(s, invoice_id: int) -> Invoice:
    invoice = s.get(Invoice, invoice_id)
    if not invoice:
        raise NotFound("Invoice not found")
    ensure_same_company(current_user(), invoice.company_id)
    return invoice


@bp.get("/invoices")
@require_permission(READ, "INVOICE")
def invoices_list():
    s = db_session()
    q = apply_company_scope(s.query(Invoice), Invoice.company_id, current_user(), arg_int("companyId"))
    status = arg_str("status")
    if status:
        q = q.filter(Invoice.status == status)
    client_id = arg_int("clientId")
    if client_id is not None:
        q = q.filter(Invoice.client_id == client_id)
    search = arg_str("search")
    if search:
        q = q.filter(Invoice.invoice_number.ilike(like(search)))
    rows, pagination = paginate(q.order_by(Invoice.created_at.desc(), Invoice.id.desc()), page_request())
    return envelope("data", dump_many(InvoiceOut, rows), pagination)


@bp.post("/invoices")
@require_permission(CREATE, "INVOICE")
def invoices_create():
    payload = parse_body(InvoiceIn)
    s = db_session()
    invoice = create_invoice(s, payload, current_user())
    s.commit()
    return dump(InvoiceOut, invoice), 201


@bp.get("/invoices/<int:invoice_id>")
@require_permission(READ, "INVOICE")
def invoices_detail(invoice_id: int):
    s = db_session()
    return dump(InvoiceOut, _get_invoice(s, invoice_id))


@bp.patch("/invoices/<int:invoice_id>")
@require_permission(UPDATE, "INVOICE")
def invoices_update(invoice_id: int):
    payload = parse_body(InvoiceUpdateIn)
    s = db_session()
    invoice = _get_invoice(s, invoice_id)
    update_invoice(s, invoice, payload, current_user())
    s.commit()
    return dump(InvoiceOut, invoice)


@bp.delete("/invoices/<int:invoice_id>")
@require_permission(DELETE, "INVOICE")
def invoices_delete(invoice_id: int):
    s = db_session()
    invoice = _get_invoice(s, invoice_id)
    delete_invoice(s, invoice, current_user())
    s.commit()
    return {"message": "Invoice deleted"}
