from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.gestio.audit import log_action
from app.gestio.errors import AccessDenied, NotFound
from app.gestio.modules.inventory.models import Product, StockMovement, Warehouse
from app.gestio.modules.purchasing.models import PurchaseOrder, PurchaseOrderLine

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.gestio.models import User
    from app.gestio.modules.purchasing.schemas import PurchaseOrderIn, PurchaseOrderLineIn


def line_amounts(line: "PurchaseOrderLineIn") -> tuple[float, float, float]:
    """(subtotal, tax, total); tax applies after the line discount."""
    subtotal = line.quantity * line.unit_price
    taxable = subtotal - line.discount
    tax = taxable * line.tax_rate / 100
    return round(subtotal, 2), round(tax, 2), round(taxable + tax, 2)


def create_purchase_order(s: "Session", payload: "PurchaseOrderIn", company_id: int, user: "User") -> PurchaseOrder:
    product_ids = {line.product_id for line in payload.lines}
    products = {p.id: p for p in s.query(Product).filter(Product.id.in_(product_ids)).all()}
    missing = sorted(product_ids - products.keys())
    if missing:
        raise NotFound("Product not found", details={"productIds": missing})
    if any(p.company_id != company_id for p in products.values()):
        raise AccessDenied("Every product must belong to the ordering company")

    warehouse = None
    if payload.status == "RECEIVED":
        warehouse = s.get(Warehouse, payload.warehouse_id)
        if warehouse is None:
            raise NotFound("Warehouse not found")
        if warehouse.company_id != company_id:
            raise AccessDenied("The warehouse belongs to another company")

    lines = []
    subtotal = discount_total = tax_total = 0.0
    for line in payload.lines:
        line_subtotal, line_tax, line_total = line_amounts(line)
        subtotal += line_subtotal
        discount_total += line.discount
        tax_total += line_tax
        lines.append(
            PurchaseOrderLine(
                product_id=line.product_id,
                description=line.description,
                quantity=line.quantity,
                unit_price=line.unit_price,
                tax_rate=line.tax_rate,
                discount=line.discount,
                subtotal=line_subtotal,
                tax_amount=line_tax,
                total=line_total,
            )
        )

    now = datetime.utcnow()
    order = PurchaseOrder(
        company_id=company_id,
        supplier_name=payload.supplier_name,
        reference=payload.reference,
        description=payload.description,
        order_date=payload.order_date,
        expected_delivery_date=payload.expected_delivery_date,
        status=payload.status,
        notes=payload.notes,
        shipping_address=payload.shipping_address,
        billing_address=payload.billing_address,
        payment_terms=payload.payment_terms,
        subtotal=round(subtotal, 2),
        discount_total=round(discount_total, 2),
        tax_total=round(tax_total, 2),
        total=round(subtotal - discount_total + tax_total, 2),
        created_by_user_id=user.id,
        created_at=now,
        updated_at=now,
        lines=lines,
    )
    s.add(order)
    s.flush()

    if warehouse is not None:
        for line in order.lines:
            s.add(
                StockMovement(
                    product_id=line.product_id,
                    warehouse_id=warehouse.id,
                    purchase_order_id=order.id,
                    user_id=user.id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    reason="Purchase order received",
                    reference=order.reference or f"PO-{order.id}",
                    created_at=now,
                )
            )
        s.flush()

    log_action(
        s,
        user,
        "CREATE",
        "PURCHASE_ORDER",
        order.id,
        {"supplierName": order.supplier_name, "total": order.total, "lineCount": len(lines), "status": order.status},
    )
    return order
