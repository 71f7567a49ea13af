# Overview: Pytest coverage for the HTTP API; status codes, error kinds and response shapes.

"""
API Route Tests

Every test commits its fixtures before calling the client; requests run
in their own application context and session.
"""

from decimal import Decimal

import pytest

from smartmart.models import Invoice, Product, StockLedgerEntry


def _dec(value):
    return Decimal(str(value))


class TestSystemRoutes:

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"]["products"] == 0


class TestProductRoutes:

    def test_create_with_opening_qty(self, client, db_session):
        resp = client.post("/api/products", json={
            "code": "API-1", "name": "Tea", "cost_price": "2.00", "sale_price": "3.50", "opening_qty": "12",
        })
        assert resp.status_code == 201
        body = resp.get_json()
        assert _dec(body["qty"]) == Decimal("12")

        entries = db_session.query(StockLedgerEntry).filter_by(product_id=body["id"]).all()
        assert [(e.transaction_type, e.balance) for e in entries] == [("Opening", Decimal("12"))]

    def test_qty_is_not_writable(self, client, db_session):
        resp = client.post("/api/products", json={"code": "API-2", "name": "Tea", "qty": "5"})
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "validation_error"
        assert db_session.query(Product).count() == 0

    def test_missing_required_fields(self, client, db_session):
        resp = client.post("/api/products", json={"name": "No code"})
        assert resp.status_code == 400
        assert "code" in resp.get_json()["error"]

    def test_negative_sale_price(self, client, db_session):
        resp = client.post("/api/products", json={"code": "API-3", "name": "Tea", "sale_price": "-1"})
        assert resp.status_code == 400

    def test_duplicate_code(self, client, db_session, make_product):
        make_product("API-4")
        resp = client.post("/api/products", json={"code": "API-4", "name": "Again"})
        assert resp.status_code == 409
        assert resp.get_json()["kind"] == "conflict"

    def test_code_and_qty_rejected_on_update(self, client, db_session, make_product):
        p = make_product("API-5", opening_qty=3)

        assert client.put(f"/api/products/{p.id}", json={"code": "NEW"}).status_code == 400
        assert client.put(f"/api/products/{p.id}", json={"qty": "100"}).status_code == 400

        resp = client.put(f"/api/products/{p.id}", json={"name": "Renamed", "sale_price": "9.99"})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["name"] == "Renamed"
        assert body["code"] == "API-5"
        assert _dec(body["qty"]) == Decimal("3")

    def test_sale_price_cannot_drop_below_value_discount(self, client, db_session, make_product):
        p = make_product("API-6", opening_qty=5, sale="10.00")
        resp = client.post("/api/discounts/items", json={
            "product_id": p.id, "type": "Value", "description": "Eight off",
            "start_date": "2024-01-01", "end_date": "2099-12-31", "amount": "8.00",
        })
        assert resp.status_code == 201

        resp = client.put(f"/api/products/{p.id}", json={"sale_price": "5.00"})
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "invalid_sale_price"

        db_session.expire_all()
        assert db_session.get(Product, p.id).sale_price == Decimal("10.00")

        resp = client.post("/api/invoices", json={"items": [{"product_id": p.id, "quantity": "1"}]})
        assert resp.status_code == 201
        assert _dec(resp.get_json()["final_total"]) == Decimal("2.00")

        resp = client.put(f"/api/products/{p.id}", json={"sale_price": "8.00"})
        assert resp.status_code == 200
        assert _dec(resp.get_json()["sale_price"]) == Decimal("8.00")

    def test_bulk_create_is_all_or_nothing(self, client, db_session):
        resp = client.post("/api/products/bulk", json={"products": [
            {"code": "BULK-1", "name": "One", "opening_qty": "2"},
            {"code": "BULK-1", "name": "Dup"},
        ]})
        assert resp.status_code == 409
        assert db_session.query(Product).count() == 0

        resp = client.post("/api/products/bulk", json={"products": [
            {"code": "BULK-1", "name": "One", "opening_qty": "2"},
            {"code": "BULK-2", "name": "Two"},
        ]})
        assert resp.status_code == 201
        assert resp.get_json()["count"] == 2

    def test_get_unknown_product(self, client, db_session):
        resp = client.get("/api/products/9999")
        assert resp.status_code == 404
        assert resp.get_json()["kind"] == "product_not_found"

    def test_list_with_pagination(self, client, db_session, make_product):
        for i in range(3):
            make_product(f"LST-{i}")

        body = client.get("/api/products?page=1&per_page=2").get_json()
        assert body["count"] == 2
        assert body["pagination"]["total"] == 3
        assert body["pagination"]["has_next"] is True

        body = client.get("/api/products?q=LST-1").get_json()
        assert [p["code"] for p in body["items"]] == ["LST-1"]

    def test_pos_lookup(self, client, db_session, make_product):
        make_product("POS-1", opening_qty=4, sale="20.00")

        resp = client.get("/api/products/POS-1/pos")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["product"]["code"] == "POS-1"
        assert body["discounts"] == {"item_discount": None, "category_discount": None, "bill_discount": None}
        assert _dec(body["unit_price"]) == Decimal("20.00")

        assert client.get("/api/products/NOPE/pos").status_code == 404
        assert client.get("/api/products/POS-1/pos?date=2024-13-01").status_code == 400

    def test_delete_product_with_history_refused(self, client, db_session, make_product):
        with_history = make_product("DEL-1", opening_qty=1)
        without = make_product("DEL-2")

        resp = client.delete(f"/api/products/{with_history.id}")
        assert resp.status_code == 409
        assert resp.get_json()["kind"] == "conflict"

        assert client.delete(f"/api/products/{without.id}").status_code == 200
        db_session.expire_all()
        assert db_session.query(Product).count() == 1


class TestInventoryRoutes:

    def test_adjust_ledger_and_verify(self, client, db_session, make_product):
        p = make_product("INV-1", opening_qty=5)

        resp = client.post(f"/api/inventory/{p.id}/adjust", json={"target_qty": "8", "remarks": "recount"})
        assert resp.status_code == 200
        body = resp.get_json()
        assert _dec(body["product"]["qty"]) == Decimal("8")
        assert body["entry"]["transaction_type"] == "Adjustment"
        assert _dec(body["entry"]["qty_in"]) == Decimal("3")

        ledger = client.get(f"/api/inventory/{p.id}/ledger").get_json()
        assert ledger["count"] == 2
        assert [_dec(e["balance"]) for e in ledger["items"]] == [Decimal("5"), Decimal("8")]

        report = client.get(f"/api/inventory/{p.id}/verify").get_json()
        assert report["consistent"] is True

    def test_adjust_requires_target(self, client, db_session, make_product):
        p = make_product("INV-2", opening_qty=5)
        resp = client.post(f"/api/inventory/{p.id}/adjust", json={})
        assert resp.status_code == 400

    def test_adjust_unknown_product(self, client, db_session):
        resp = client.post("/api/inventory/4321/adjust", json={"target_qty": "1"})
        assert resp.status_code == 404


class TestInvoiceRoutes:

    def test_commit_sale(self, client, db_session, make_product):
        p = make_product("INVR-1", opening_qty=10)

        resp = client.post("/api/invoices", json={
            "cashier_name": "Ana",
            "items": [{"product_id": p.id, "quantity": "2", "price": "4.50"}],
        })
        assert resp.status_code == 201
        body = resp.get_json()
        assert _dec(body["final_total"]) == Decimal("9.00")
        assert len(body["items"]) == 1

        db_session.expire_all()
        assert db_session.get(Product, p.id).qty == Decimal("8")

        assert client.get(f"/api/invoices/{body['id']}").status_code == 200
        assert client.get("/api/invoices").get_json()["count"] == 1

    def test_oversell_is_409_with_kind(self, client, db_session, make_product):
        p = make_product("INVR-2", opening_qty=1)

        resp = client.post("/api/invoices", json={
            "items": [{"product_id": p.id, "quantity": "2", "price": "1.00"}],
        })
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["kind"] == "insufficient_stock"
        assert body["details"]["product_id"] == p.id

        db_session.expire_all()
        assert db_session.get(Product, p.id).qty == Decimal("1")
        assert db_session.query(Invoice).count() == 0

    @pytest.mark.parametrize("payload", [
        {},
        {"items": []},
        {"items": [{"quantity": "1"}]},
        {"items": [{"product_id": 1, "quantity": "0"}]},
        {"items": [{"product_id": 1, "quantity": "1", "qty": "1"}]},
    ])
    def test_bad_payloads(self, client, db_session, payload):
        assert client.post("/api/invoices", json=payload).status_code == 400

    def test_return(self, client, db_session, make_product):
        p = make_product("INVR-3", opening_qty=5)
        invoice = client.post("/api/invoices", json={
            "items": [{"product_id": p.id, "quantity": "2", "price": "3.00"}],
        }).get_json()
        item_id = invoice["items"][0]["id"]

        resp = client.post(f"/api/invoices/{invoice['id']}/returns", json={
            "items": [{"invoice_item_id": item_id, "quantity": "1"}],
        })
        assert resp.status_code == 200
        assert resp.get_json()["is_return"] is True

        resp = client.post(f"/api/invoices/{invoice['id']}/returns", json={
            "items": [{"invoice_item_id": item_id, "quantity": "5"}],
        })
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "invalid_invoice"


class TestPurchaseRoutes:

    def test_commit_purchase_and_payment(self, client, db_session, make_product, supplier):
        p = make_product("PURR-1", opening_qty=10, cost="5.00")

        resp = client.post("/api/purchases", json={
            "supplier_id": supplier.id,
            "items": [{"product_id": p.id, "quantity": "5", "cost_price": "8.00", "sale_price": "11.00"}],
        })
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["payment_status"] == "Pending"
        assert _dec(body["total_amount"]) == Decimal("40.00")

        product = client.get(f"/api/products/{p.id}").get_json()
        assert _dec(product["cost_price"]) == Decimal("6.00")
        assert _dec(product["sale_price"]) == Decimal("11.00")

        resp = client.patch(f"/api/purchases/{body['id']}/payment", json={"paid_amount": "40.00"})
        assert resp.status_code == 200
        assert resp.get_json()["payment_status"] == "Paid"

        resp = client.patch(f"/api/purchases/{body['id']}/payment", json={"cancel": True})
        assert resp.status_code == 400

    @pytest.mark.parametrize("sale_price", ["0", "-3.00", None])
    def test_invalid_sale_price_kind(self, client, db_session, make_product, sale_price):
        p = make_product("PURR-2", opening_qty=1)
        line = {"product_id": p.id, "quantity": "1", "cost_price": "1.00"}
        if sale_price is not None:
            line["sale_price"] = sale_price

        resp = client.post("/api/purchases", json={"items": [line]})
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "invalid_sale_price"

        db_session.expire_all()
        assert db_session.get(Product, p.id).qty == Decimal("1")

    def test_sale_price_below_value_discount_refused(self, client, db_session, make_product):
        p = make_product("PURR-3", opening_qty=2, cost="6.00", sale="10.00")
        resp = client.post("/api/discounts/items", json={
            "product_id": p.id, "type": "Value", "description": "Eight off",
            "start_date": "2024-01-01", "end_date": "2099-12-31", "amount": "8.00",
        })
        assert resp.status_code == 201

        resp = client.post("/api/purchases", json={
            "items": [{"product_id": p.id, "quantity": "3", "cost_price": "4.00", "sale_price": "5.00"}],
        })
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "invalid_sale_price"

        db_session.expire_all()
        product = db_session.get(Product, p.id)
        assert product.qty == Decimal("2")
        assert product.cost_price == Decimal("6.00")
        assert product.sale_price == Decimal("10.00")
        assert client.get("/api/purchases").get_json()["count"] == 0


class TestDiscountRoutes:

    def test_create_and_resolve(self, client, db_session, make_product, category):
        p = make_product("DSC-1", opening_qty=1, sale="100.00", category_id=category.id)

        resp = client.post("/api/discounts/items", json={
            "product_id": p.id, "type": "Percent", "description": "Spring",
            "start_date": "2024-03-01", "end_date": "2024-03-31", "amount": "5",
        })
        assert resp.status_code == 201

        resp = client.post("/api/discounts/categories", json={
            "category_id": category.id, "percent": "10",
            "start_date": "2024-03-01", "end_date": "2024-03-31",
        })
        assert resp.status_code == 201

        body = client.get(f"/api/discounts/resolve?product_id={p.id}&date=2024-03-15").get_json()
        assert body["item_discount"]["description"] == "Spring"
        assert _dec(body["category_discount"]["percent"]) == Decimal("10")
        assert _dec(body["unit_price"]) == Decimal("85.50")

        body = client.get(f"/api/discounts/resolve?product_id={p.id}&date=2024-04-01").get_json()
        assert body["item_discount"] is None
        assert _dec(body["unit_price"]) == Decimal("100.00")

    def test_invalid_discount_amount(self, client, db_session, make_product):
        p = make_product("DSC-2", sale="10.00")
        resp = client.post("/api/discounts/items", json={
            "product_id": p.id, "type": "Value", "description": "Too much",
            "start_date": "2024-03-01", "end_date": "2024-03-31", "amount": "15",
        })
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "invalid_discount_amount"

    def test_unknown_kind(self, client, db_session):
        assert client.get("/api/discounts/coupons").status_code == 404

    def test_resolve_requires_product(self, client, db_session):
        assert client.get("/api/discounts/resolve").status_code == 400


class TestCatalogRoutes:

    def test_category_crud(self, client, db_session):
        resp = client.post("/api/categories", json={"name": "Snacks"})
        assert resp.status_code == 201
        category_id = resp.get_json()["id"]

        resp = client.put(f"/api/categories/{category_id}", json={"description": "Crisps etc."})
        assert resp.status_code == 200
        assert resp.get_json()["description"] == "Crisps etc."

        assert client.get("/api/categories").get_json()["count"] == 1
        assert client.delete(f"/api/categories/{category_id}").status_code == 200
        assert client.get(f"/api/categories/{category_id}").status_code == 404

    def test_supplier_requires_phone(self, client, db_session):
        resp = client.post("/api/suppliers", json={"supplier_name": "No phone"})
        assert resp.status_code == 400

    def test_referenced_category_cannot_be_deleted(self, client, db_session, category, make_product):
        make_product("CAT-1", category_id=category.id)
        resp = client.delete(f"/api/categories/{category.id}")
        assert resp.status_code == 409

    def test_unknown_resource(self, client, db_session):
        assert client.get("/api/widgets").status_code == 404
