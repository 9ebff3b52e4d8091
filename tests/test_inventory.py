from sqlalchemy.dialects import postgresql

from app.gestio.constants import RESOURCES
from app.gestio.modules.inventory.service import product_for_update
from conftest import API, audit_rows


def _setup_stock(c, h):
    product = c.post(f"{API}/products", json={"name": "Widget", "sku": "W-1", "price": 12.5}, headers=h)
    assert product.status_code == 201, product.json
    warehouse = c.post(f"{API}/warehouses", json={"name": "Main", "location": "Dakar"}, headers=h)
    assert warehouse.status_code == 201, warehouse.json
    return product.json, warehouse.json


def _move(c, h, product, warehouse, quantity):
    return c.post(
        f"{API}/stock-movements",
        json={"productId": product["id"], "warehouseId": warehouse["id"], "quantity": quantity},
        headers=h,
    )


def test_stock_in_and_out(login_as):
    c, h = login_as("manager@acme.test")
    product, warehouse = _setup_stock(c, h)
    assert product["availableStock"] == 0

    assert _move(c, h, product, warehouse, 10).status_code == 201
    r = _move(c, h, product, warehouse, -4)
    assert r.status_code == 201
    assert r.json["product"]["sku"] == "W-1"

    r = c.get(f"{API}/products/{product['id']}")
    assert r.json["availableStock"] == 6
    assert len(r.json["stockMovements"]) == 2

    r = c.get(f"{API}/stock-movements?type=OUT")
    assert r.json["pagination"]["total"] == 1


def test_insufficient_stock(login_as):
    c, h = login_as("manager@acme.test")
    product, warehouse = _setup_stock(c, h)
    _move(c, h, product, warehouse, 3)

    r = _move(c, h, product, warehouse, -5)
    assert r.status_code == 400
    assert r.json == {"error": "Insufficient stock", "availableStock": 3, "requestedQuantity": 5}


def test_zero_quantity_rejected(login_as):
    c, h = login_as("manager@acme.test")
    product, warehouse = _setup_stock(c, h)
    r = _move(c, h, product, warehouse, 0)
    assert r.status_code == 400
    assert "quantity" in r.json["details"]


def test_duplicate_sku_conflicts(login_as):
    c, h = login_as("manager@acme.test")
    _setup_stock(c, h)
    r = c.post(f"{API}/products", json={"name": "Widget 2", "sku": "W-1", "price": 1}, headers=h)
    assert r.status_code == 409


def test_product_with_movements_is_deactivated_not_deleted(login_as):
    c, h = login_as("manager@acme.test")
    product, warehouse = _setup_stock(c, h)
    _move(c, h, product, warehouse, 1)

    r = c.delete(f"{API}/products/{product['id']}", headers=h)
    assert r.status_code == 200
    assert r.json["product"]["isActive"] is False
    assert c.get(f"{API}/products/{product['id']}").status_code == 200

    bare = c.post(f"{API}/products", json={"name": "Unused", "price": 3}, headers=h).json
    r = c.delete(f"{API}/products/{bare['id']}", headers=h)
    assert r.json == {"message": "Product deleted"}
    assert c.get(f"{API}/products/{bare['id']}").status_code == 404


def test_cannot_move_stock_in_foreign_warehouse(login_as):
    c, h = login_as("manager@acme.test")
    product, _ = _setup_stock(c, h)

    globex, gh = login_as("admin@globex.test")
    foreign = globex.post(f"{API}/warehouses", json={"name": "Far", "location": "Lyon"}, headers=gh).json

    r = _move(c, h, product, foreign, 5)
    assert r.status_code == 403


def test_product_list_filters_and_sorting(login_as):
    c, h = login_as("manager@acme.test")
    product, warehouse = _setup_stock(c, h)
    c.post(f"{API}/products", json={"name": "Anvil", "price": 99}, headers=h)
    _move(c, h, product, warehouse, 2)

    r = c.get(f"{API}/products?sortBy=price&sortOrder=desc")
    assert [p["name"] for p in r.json["items"]] == ["Anvil", "Widget"]

    r = c.get(f"{API}/products?inStock=true")
    assert [p["name"] for p in r.json["items"]] == ["Widget"]
    assert r.json["items"][0]["availableStock"] == 2

    assert c.get(f"{API}/products?sortBy=colour").status_code == 400


def test_received_purchase_order_books_stock(login_as):
    c, h = login_as("manager@acme.test")
    product, warehouse = _setup_stock(c, h)

    r = c.post(
        f"{API}/purchase-orders",
        json={
            "supplierName": "Acme Supplies",
            "status": "RECEIVED",
            "warehouseId": warehouse["id"],
            "lines": [{"productId": product["id"], "quantity": 10, "unitPrice": 5, "taxRate": 18}],
        },
        headers=h,
    )
    assert r.status_code == 201, r.json
    assert r.json["subtotal"] == 50.0
    assert r.json["taxTotal"] == 9.0
    assert r.json["total"] == 59.0

    r = c.get(f"{API}/products/{product['id']}")
    assert r.json["availableStock"] == 10
    assert len(r.json["purchaseOrderLines"]) == 1


def test_received_purchase_order_needs_warehouse(login_as):
    c, h = login_as("manager@acme.test")
    product, _ = _setup_stock(c, h)
    r = c.post(
        f"{API}/purchase-orders",
        json={"supplierName": "Acme Supplies", "status": "RECEIVED", "lines": [{"productId": product["id"], "quantity": 1, "unitPrice": 1}]},
        headers=h,
    )
    assert r.status_code == 400
    assert "_root" in r.json["details"]


def test_category_creation_audited_under_declared_resource(app, login_as):
    c, h = login_as("manager@acme.test")
    r = c.post(f"{API}/categories", json={"name": "Hardware"}, headers=h)
    assert r.status_code == 201

    rows = audit_rows(app, action="CREATE", entity_type="PRODUCT_CATEGORY")
    assert len(rows) == 1
    assert "PRODUCT_CATEGORY" in RESOURCES

    employee, eh = login_as("employee@acme.test")
    assert employee.get(f"{API}/categories").json["pagination"]["total"] == 1
    assert employee.post(f"{API}/categories", json={"name": "Tools"}, headers=eh).status_code == 403


def test_stock_movement_locks_the_product_row():
    stmt = product_for_update(42)
    assert "FOR UPDATE" in str(stmt.compile(dialect=postgresql.dialect()))
