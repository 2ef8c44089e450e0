"""
Catalog endpoint tests: creation pairs a summary, deletion removes the ledger.
"""

import pytest

from stockledger.extensions import db
from stockledger.models import InventorySummary, StockTransaction
from stockledger.services.ledger_service import record_transaction


pytestmark = pytest.mark.products


def test_create_product_creates_zero_summary(client, db_session):
    resp = client.post(
        "/api/products",
        json={"code": "BOLT-M6", "name": "Bolt M6", "unit": "pcs", "category": "fasteners"},
    )

    assert resp.status_code == 201
    data = resp.get_json()
    assert data["id"] is not None
    assert data["code"] == "BOLT-M6"
    assert data["summary"]["product_id"] == data["id"]
    assert data["summary"]["ending_stock"] == 0.0
    assert data["summary"]["average_price"] == 0.0
    assert data["summary"]["low_stock_threshold"] == 5.0
    assert data["summary"]["is_low_stock"] is True

    assert db.session.get(InventorySummary, data["id"]) is not None


def test_create_product_with_threshold_in_body(client, db_session):
    resp = client.post(
        "/api/products",
        json={"code": "NUT-M6", "name": "Nut M6", "unit": "pcs", "low_stock_threshold": 20},
    )
    assert resp.status_code == 201
    assert resp.get_json()["summary"]["low_stock_threshold"] == 20.0


def test_create_product_with_threshold_query_param(client, db_session):
    resp = client.post(
        "/api/products?low_stock_threshold=2",
        json={"code": "WASHER", "name": "Washer", "unit": "pcs"},
    )
    assert resp.status_code == 201
    assert resp.get_json()["summary"]["low_stock_threshold"] == 2.0


@pytest.mark.parametrize(
    "body",
    [
        {"name": "No code", "unit": "pcs"},
        {"code": "X-1", "unit": "pcs"},
        {"code": "X-1", "name": "   ", "unit": "pcs"},
        {"code": "X-1", "name": "Bad threshold", "unit": "pcs", "low_stock_threshold": -1},
        {"code": "X-1", "name": "Unknown field", "unit": "pcs", "colour": "red"},
    ],
)
def test_create_product_rejects_bad_input(client, db_session, body):
    resp = client.post("/api/products", json=body)
    assert resp.status_code == 400
    assert db.session.query(InventorySummary).count() == 0


def test_duplicate_code_is_409(client, product):
    resp = client.post("/api/products", json={"code": "WIDGET-001", "name": "Other", "unit": "pcs"})
    assert resp.status_code == 409
    assert resp.get_json()["kind"] == "conflict"
    assert db.session.query(InventorySummary).count() == 1


def test_get_and_update_product(client, product):
    resp = client.get(f"/api/products/{product['id']}")
    assert resp.status_code == 200
    assert resp.get_json()["name"] == "Widget"

    resp = client.put(f"/api/products/{product['id']}", json={"name": "Widget XL", "category": "tools"})
    assert resp.status_code == 200
    assert resp.get_json()["name"] == "Widget XL"
    assert resp.get_json()["category"] == "tools"


def test_update_cannot_touch_stock_figures(client, product):
    resp = client.put(f"/api/products/{product['id']}", json={"ending_stock": 100})
    assert resp.status_code == 400


def test_update_to_taken_code_is_409(client, make_product):
    a = make_product(code="A-1")
    make_product(code="B-1")
    resp = client.put(f"/api/products/{a['id']}", json={"code": "B-1"})
    assert resp.status_code == 409


def test_unknown_product_is_404(client, db_session):
    assert client.get("/api/products/31337").status_code == 404
    assert client.put("/api/products/31337", json={"name": "x"}).status_code == 404
    assert client.delete("/api/products/31337").status_code == 404


def test_delete_removes_summary_and_transactions(client, product):
    pid = product["id"]
    record_transaction(product_id=pid, transaction_type="in", quantity=5, price_per_unit=1)
    record_transaction(product_id=pid, transaction_type="out", quantity=2)

    resp = client.delete(f"/api/products/{pid}")

    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Product deleted successfully"
    assert db.session.query(InventorySummary).filter_by(product_id=pid).count() == 0
    assert db.session.query(StockTransaction).filter_by(product_id=pid).count() == 0
    assert client.get(f"/api/inventory/{pid}/summary").status_code == 404


def test_list_by_category(client, make_product):
    make_product(name="Hammer", category="tools")
    make_product(name="Saw", category="tools")
    make_product(name="Glue", category="supplies")

    data = client.get("/api/products").get_json()
    assert data["count"] == 3
    assert [p["name"] for p in data["items"]] == ["Glue", "Hammer", "Saw"]

    tools = client.get("/api/products/category/tools").get_json()
    assert tools["count"] == 2

    filtered = client.get("/api/products?category=supplies").get_json()
    assert [p["name"] for p in filtered["items"]] == ["Glue"]

    assert client.get("/api/products/categories").get_json() == ["supplies", "tools"]
