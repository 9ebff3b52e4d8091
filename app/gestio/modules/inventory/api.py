from __future__ import annotations

from flask import Blueprint
from sqlalchemy import func, or_, select

from app.gestio.constants import CREATE, DELETE, READ, UPDATE
from app.gestio.db import db_session
from app.gestio.errors import BadRequest, NotFound
from app.gestio.modules.inventory.models import Category, Product, StockMovement, Warehouse
from app.gestio.modules.inventory.schemas import (
    CategoryIn,
    CategoryOut,
    ProductIn,
    ProductOut,
    ProductUpdateIn,
    StockMovementIn,
    StockMovementOut,
    WarehouseIn,
    WarehouseOut,
)
from app.gestio.modules.inventory.service import (
    create_category,
    create_product,
    create_stock_movement,
    create_warehouse,
    delete_product,
    stock_levels,
    update_product,
)
from app.gestio.rbac import apply_company_scope, current_user, ensure_same_company, require_permission, resolve_company
from app.gestio.schemas import dump, dump_many
from app.gestio.utils import (
    arg_bool,
    arg_datetime,
    arg_float,
    arg_int,
    arg_str,
    envelope,
    like,
    page_request,
    paginate,
    parse_body,
)

bp = Blueprint("inventory", __name__)

_PRODUCT_SORTS = {"name": Product.name, "price": Product.price, "createdAt": Product.created_at}


def _get_product(s, product_id: int) -> Product:
    product = s.get(Product, product_id)
    if not product:
        raise NotFound("Product not found")
    ensure_same_company(current_user(), product.company_id)
    return product


@bp.get("/categories")
@require_permission(READ, "PRODUCT_CATEGORY")
def categories_list():
    s = db_session()
    q = apply_company_scope(s.query(Category), Category.company_id, current_user(), arg_int("companyId"))
    rows, pagination = paginate(q.order_by(Category.name.asc()), page_request())
    return envelope("items", dump_many(CategoryOut, rows), pagination)


@bp.post("/categories")
@require_permission(CREATE, "PRODUCT_CATEGORY")
def categories_create():
    user = current_user()
    payload = parse_body(CategoryIn)
    s = db_session()
    company = resolve_company(s, user, payload.company_id)
    category = create_category(s, payload, company.id, user)
    s.commit()
    return dump(CategoryOut, category), 201


@bp.get("/warehouses")
@require_permission(READ, "WAREHOUSE")
def warehouses_list():
    s = db_session()
    q = apply_company_scope(s.query(Warehouse), Warehouse.company_id, current_user(), arg_int("companyId"))
    search = arg_str("search")
    if search:
        q = q.filter(or_(Warehouse.name.ilike(like(search)), Warehouse.location.ilike(like(search))))
    rows, pagination = paginate(q.order_by(Warehouse.name.asc()), page_request())
    return envelope("items", dump_many(WarehouseOut, rows), pagination)


@bp.post("/warehouses")
@require_permission(CREATE, "WAREHOUSE")
def warehouses_create():
    user = current_user()
    payload = parse_body(WarehouseIn)
    s = db_session()
    company = resolve_company(s, user, payload.company_id)
    warehouse = create_warehouse(s, payload, company.id, user)
    s.commit()
    return dump(WarehouseOut, warehouse), 201


@bp.get("/products")
@require_permission(READ, "PRODUCT")
def products_list():
    s = db_session()
    q = apply_company_scope(s.query(Product), Product.company_id, current_user(), arg_int("companyId"))

    category_id = arg_int("categoryId")
    if category_id is not None:
        q = q.filter(Product.category_id == category_id)
    search = arg_str("search")
    if search:
        term = like(search)
        q = q.filter(or_(Product.name.ilike(term), Product.description.ilike(term), Product.sku.ilike(term)))
    min_price = arg_float("minPrice")
    if min_price is not None:
        q = q.filter(Product.price >= min_price)
    max_price = arg_float("maxPrice")
    if max_price is not None:
        q = q.filter(Product.price <= max_price)
    if arg_bool("inStock"):
        in_stock = (
            select(StockMovement.product_id)
            .group_by(StockMovement.product_id)
            .having(func.sum(StockMovement.quantity) > 0)
        )
        q = q.filter(Product.id.in_(in_stock))

    sort_by = arg_str("sortBy") or "name"
    if sort_by not in _PRODUCT_SORTS:
        raise BadRequest(f"sortBy must be one of: {', '.join(_PRODUCT_SORTS)}")
    column = _PRODUCT_SORTS[sort_by]
    order = column.desc() if (arg_str("sortOrder") or "asc").lower() == "desc" else column.asc()

    rows, pagination = paginate(q.order_by(order, Product.id.asc()), page_request())
    levels = stock_levels(s, [p.id for p in rows])
    items = [dump(ProductOut, p, availableStock=levels[p.id]) for p in rows]
    return envelope("items", items, pagination)


@bp.post("/products")
@require_permission(CREATE, "PRODUCT")
def products_create():
    user = current_user()
    payload = parse_body(ProductIn)
    s = db_session()
    company = resolve_company(s, user, payload.company_id)
    product = create_product(s, payload, company.id, user)
    s.commit()
    return dump(ProductOut, product, availableStock=0), 201


@bp.get("/products/<int:product_id>")
@require_permission(READ, "PRODUCT")
def products_detail(product_id: int):
    from app.gestio.modules.purchasing.models import PurchaseOrderLine
    from app.gestio.modules.purchasing.schemas import PurchaseOrderLineOut

    s = db_session()
    product = _get_product(s, product_id)
    recent = (
        s.query(StockMovement)
        .filter(StockMovement.product_id == product.id)
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(5)
        .all()
    )
    po_lines = s.query(PurchaseOrderLine).filter(PurchaseOrderLine.product_id == product.id).all()
    return dump(
        ProductOut,
        product,
        availableStock=stock_levels(s, [product.id])[product.id],
        stockMovements=dump_many(StockMovementOut, recent),
        purchaseOrderLines=dump_many(PurchaseOrderLineOut, po_lines),
    )


@bp.patch("/products/<int:product_id>")
@require_permission(UPDATE, "PRODUCT")
def products_update(product_id: int):
    payload = parse_body(ProductUpdateIn)
    s = db_session()
    product = _get_product(s, product_id)
    update_product(s, product, payload, current_user())
    s.commit()
    return dump(ProductOut, product)


@bp.delete("/products/<int:product_id>")
@require_permission(DELETE, "PRODUCT")
def products_delete(product_id: int):
    s = db_session()
    product = _get_product(s, product_id)
    deleted = delete_product(s, product, current_user())
    s.commit()
    if deleted:
        return {"message": "Product deleted"}
    return {
        "message": "Product is referenced by stock movements or orders; it has been deactivated instead",
        "product": dump(ProductOut, product),
    }


@bp.get("/stock-movements")
@require_permission(READ, "STOCK_MOVEMENT")
def stock_movements_list():
    s = db_session()
    q = s.query(StockMovement).join(Warehouse, StockMovement.warehouse_id == Warehouse.id)
    q = apply_company_scope(q, Warehouse.company_id, current_user(), arg_int("companyId"))

    for arg, column in (("warehouseId", StockMovement.warehouse_id), ("productId", StockMovement.product_id)):
        value = arg_int(arg)
        if value is not None:
            q = q.filter(column == value)
    movement_type = (arg_str("type") or "").upper()
    if movement_type == "IN":
        q = q.filter(StockMovement.quantity > 0)
    elif movement_type == "OUT":
        q = q.filter(StockMovement.quantity < 0)
    start = arg_datetime("startDate")
    if start:
        q = q.filter(StockMovement.created_at >= start)
    end = arg_datetime("endDate")
    if end:
        q = q.filter(StockMovement.created_at <= end)
    reference = arg_str("reference")
    if reference:
        q = q.filter(StockMovement.reference.ilike(like(reference)))

    rows, pagination = paginate(q.order_by(StockMovement.created_at.desc(), StockMovement.id.desc()), page_request())
    return envelope("items", dump_many(StockMovementOut, rows), pagination)


@bp.post("/stock-movements")
@require_permission(CREATE, "STOCK_MOVEMENT")
def stock_movements_create():
    payload = parse_body(StockMovementIn)
    s = db_session()
    movement = create_stock_movement(s, payload, current_user())
    s.commit()
    return dump(StockMovementOut, movement), 201
