from __future__ import annotations

from flask import Blueprint
from sqlalchemy import or_

from app.gestio.constants import CREATE, READ
from app.gestio.db import db_session
from app.gestio.errors import NotFound
from app.gestio.modules.purchasing.models import PurchaseOrder
from app.gestio.modules.purchasing.schemas import PurchaseOrderIn, PurchaseOrderOut
from app.gestio.modules.purchasing.service import create_purchase_order
from app.gestio.rbac import apply_company_scope, current_user, ensure_same_company, require_permission, resolve_company
from app.gestio.schemas import dump, dump_many
from app.gestio.utils import arg_datetime, arg_float, arg_int, arg_str, envelope, like, page_request, paginate, parse_body

bp = Blueprint("purchasing", __name__)


@bp.get("/purchase-orders")
@require_permission(READ, "PURCHASE_ORDER")
def purchase_orders_list():
    s = db_session()
    q = apply_company_scope(s.query(PurchaseOrder), PurchaseOrder.company_id, current_user(), arg_int("companyId"))

    status = arg_str("status")
    if status:
        q = q.filter(PurchaseOrder.status == status)
    supplier = arg_str("supplierName")
    if supplier:
        q = q.filter(PurchaseOrder.supplier_name.ilike(like(supplier)))
    start = arg_datetime("startDate")
    if start:
        q = q.filter(PurchaseOrder.order_date >= start)
    end = arg_datetime("endDate")
    if end:
        q = q.filter(PurchaseOrder.order_date <= end)
    min_total = arg_float("minTotal")
    if min_total is not None:
        q = q.filter(PurchaseOrder.total >= min_total)
    max_total = arg_float("maxTotal")
    if max_total is not None:
        q = q.filter(PurchaseOrder.total <= max_total)
    search = arg_str("search")
    if search:
        term = like(search)
        q = q.filter(
            or_(
                PurchaseOrder.reference.ilike(term),
                PurchaseOrder.description.ilike(term),
                PurchaseOrder.supplier_name.ilike(term),
            )
        )

    rows, pagination = paginate(q.order_by(PurchaseOrder.order_date.desc(), PurchaseOrder.id.desc()), page_request())
    return envelope("items", dump_many(PurchaseOrderOut, rows), pagination)


@bp.post("/purchase-orders")
@require_permission(CREATE, "PURCHASE_ORDER")
def purchase_orders_create():
    user = current_user()
    payload = parse_body(PurchaseOrderIn)
    s = db_session()
    company = resolve_company(s, user, payload.company_id)
    order = create_purchase_order(s, payload, company.id, user)
    s.commit()
    return dump(PurchaseOrderOut, order), 201


@bp.get("/purchase-orders/<int:order_id>")
@require_permission(READ, "PURCHASE_ORDER")
def purchase_orders_detail(order_id: int):
    s = db_session()
    order = s.get(PurchaseOrder, order_id)
    if not order:
        raise NotFound("Purchase order not found")
    ensure_same_company(current_user(), order.company_id)
    return dump(PurchaseOrderOut, order)
