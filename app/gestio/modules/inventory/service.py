from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Select, func, select

from app.gestio.audit import log_action
from app.gestio.errors import AccessDenied, BadRequest, Conflict, NotFound
from app.gestio.modules.inventory.models import Category, Product, StockMovement, Warehouse
from app.gestio.rbac import is_super_admin

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.gestio.models import User
    from app.gestio.modules.inventory.schemas import (
        CategoryIn,
        ProductIn,
        ProductUpdateIn,
        StockMovementIn,
        WarehouseIn,
    )


def stock_levels(s: "Session", product_ids: list[int]) -> dict[int, int]:
    """Available stock per product across all warehouses."""
    levels = {pid: 0 for pid in product_ids}
    if not product_ids:
        return levels
    rows = (
        s.query(StockMovement.product_id, func.coalesce(func.sum(StockMovement.quantity), 0))
        .filter(StockMovement.product_id.in_(product_ids))
        .group_by(StockMovement.product_id)
    )
    for pid, total in rows:
        levels[pid] = int(total)
    return levels


def available_stock(s: "Session", product_id: int, warehouse_id: int) -> int:
    total = (
        s.query(func.coalesce(func.sum(StockMovement.quantity), 0))
        .filter(StockMovement.product_id == product_id, StockMovement.warehouse_id == warehouse_id)
        .scalar()
    )
    return int(total or 0)


def create_category(s: "Session", payload: "CategoryIn", company_id: int, user: "User") -> Category:
    if s.query(Category.id).filter(Category.company_id == company_id, Category.name == payload.name).first():
        raise Conflict("A category with this name already exists")
    category = Category(company_id=company_id, name=payload.name, description=payload.description)
    s.add(category)
    s.flush()
    log_action(s, user, "CREATE", "PRODUCT_CATEGORY", category.id, {"name": category.name})
    return category


def create_warehouse(s: "Session", payload: "WarehouseIn", company_id: int, user: "User") -> Warehouse:
    data = payload.model_dump(exclude={"company_id"})
    if data.get("contact_email"):
        data["contact_email"] = str(data["contact_email"])
    warehouse = Warehouse(company_id=company_id, is_active=True, **data)
    s.add(warehouse)
    s.flush()
    log_action(s, user, "CREATE", "WAREHOUSE", warehouse.id, {"name": warehouse.name, "location": warehouse.location})
    return warehouse


def _check_category(s: "Session", category_id: int | None, company_id: int) -> None:
    if category_id is None:
        return
    category = s.get(Category, category_id)
    if category is None:
        raise NotFound("Category not found")
    if category.company_id != company_id:
        raise BadRequest("The category does not belong to this company")


def _ensure_unique_sku(s: "Session", company_id: int, sku: str | None, exclude_id: int | None = None) -> None:
    if not sku:
        return
    q = s.query(Product.id).filter(Product.company_id == company_id, Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise Conflict("A product with this SKU already exists")


def create_product(s: "Session", payload: "ProductIn", company_id: int, user: "User") -> Product:
    _check_category(s, payload.category_id, company_id)
    _ensure_unique_sku(s, company_id, payload.sku)
    now = datetime.utcnow()
    product = Product(
        company_id=company_id,
        category_id=payload.category_id,
        name=payload.name,
        description=payload.description,
        sku=payload.sku,
        barcode=payload.barcode,
        price=payload.price,
        cost=payload.cost,
        unit=payload.unit,
        weight=payload.weight,
        dimensions=payload.dimensions,
        image_url=str(payload.image_url) if payload.image_url else None,
        is_active=payload.is_active,
        min_stock_level=payload.min_stock_level,
        max_stock_level=payload.max_stock_level,
        tags=sorted(set(payload.tags)),
        created_at=now,
        updated_at=now,
    )
    s.add(product)
    s.flush()
    log_action(s, user, "CREATE", "PRODUCT", product.id, {"name": product.name, "sku": product.sku})
    return product


def update_product(s: "Session", product: Product, payload: "ProductUpdateIn", user: "User") -> Product:
    data = payload.model_dump(exclude_unset=True, exclude={"tags"})
    if data.get("sku") and data["sku"] != product.sku:
        _ensure_unique_sku(s, product.company_id, data["sku"], exclude_id=product.id)
    if "category_id" in data and data["category_id"] != product.category_id:
        _check_category(s, data["category_id"], product.company_id)
    if data.get("image_url"):
        data["image_url"] = str(data["image_url"])

    changes = {}
    for field, value in data.items():
        if value is None and field in ("name", "price", "is_active"):
            continue
        if value != getattr(product, field):
            changes[field] = {"old": getattr(product, field), "new": value}
            setattr(product, field, value)

    if payload.tags is not None:
        old_tags = set(product.tags or [])
        new_tags = set(payload.tags)
        if old_tags != new_tags:
            changes["tags"] = {"added": sorted(new_tags - old_tags), "removed": sorted(old_tags - new_tags)}
            product.tags = sorted(new_tags)

    product.updated_at = datetime.utcnow()
    log_action(s, user, "UPDATE", "PRODUCT", product.id, {"changes": changes})
    return product


def dependency_counts(s: "Session", product: Product) -> dict[str, int]:
    from app.gestio.modules.purchasing.models import PurchaseOrderLine

    return {
        "stockMovements": s.query(StockMovement).filter(StockMovement.product_id == product.id).count(),
        "purchaseOrderLines": s.query(PurchaseOrderLine).filter(PurchaseOrderLine.product_id == product.id).count(),
    }


def delete_product(s: "Session", product: Product, user: "User") -> bool:
    """
    Hard-delete a product, or deactivate it when movements or order lines
    still reference it. Returns True when the row was removed.
    """
    counts = dependency_counts(s, product)
    if any(counts.values()):
        product.is_active = False
        product.updated_at = datetime.utcnow()
        log_action(
            s,
            user,
            "UPDATE",
            "PRODUCT",
            product.id,
            {"name": product.name, "deactivated": True, "dependencies": counts},
        )
        return False
    s.delete(product)
    log_action(s, user, "DELETE", "PRODUCT", product.id, {"name": product.name})
    return True


def product_for_update(product_id: int) -> Select:
    """
    Product row locked for the rest of the transaction, so concurrent stock
    movements on one product run their availability check one at a time.
    SQLite has no row locks and ignores FOR UPDATE.
    """
    return select(Product).where(Product.id == product_id).with_for_update()


def create_stock_movement(s: "Session", payload: "StockMovementIn", user: "User") -> StockMovement:
    from app.gestio.modules.purchasing.models import PurchaseOrder

    product = s.scalars(product_for_update(payload.product_id)).one_or_none()
    if product is None:
        raise NotFound("Product not found")
    warehouse = s.get(Warehouse, payload.warehouse_id)
    if warehouse is None:
        raise NotFound("Warehouse not found")
    if not is_super_admin(user) and warehouse.company_id != user.company_id:
        raise AccessDenied("You cannot move stock in another company's warehouse")
    if product.company_id != warehouse.company_id:
        raise AccessDenied("Product and warehouse belong to different companies")

    if payload.quantity < 0:
        available = available_stock(s, product.id, warehouse.id)
        if available + payload.quantity < 0:
            raise BadRequest(
                "Insufficient stock",
                extra={"availableStock": available, "requestedQuantity": abs(payload.quantity)},
            )

    if payload.purchase_order_id is not None:
        po = s.get(PurchaseOrder, payload.purchase_order_id)
        if po is None:
            raise NotFound("Purchase order not found")
        if po.company_id != warehouse.company_id:
            raise AccessDenied("The purchase order belongs to another company")

    movement = StockMovement(
        product_id=product.id,
        warehouse_id=warehouse.id,
        purchase_order_id=payload.purchase_order_id,
        user_id=user.id,
        quantity=payload.quantity,
        unit_price=payload.unit_price,
        reason=payload.reason,
        reference=payload.reference,
        notes=payload.notes,
        created_at=datetime.utcnow(),
    )
    s.add(movement)
    s.flush()
    log_action(
        s,
        user,
        "CREATE",
        "STOCK_MOVEMENT",
        movement.id,
        {"productId": product.id, "warehouseId": warehouse.id, "quantity": movement.quantity},
    )
    return movement
