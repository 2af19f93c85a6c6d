# Overview: Pytest coverage for the HTTP API through the Flask test client.

from decimal import Decimal
from unittest import mock

import pytest

from invtrack.models import InventoryHistory, DailyInventorySnapshot
from invtrack.services import inventory_service
from invtrack.validation import ConcurrencyConflict


def _create(client, headers, **payload):
    body = {"sku": "SKU-1", "name": "Flour 1kg"}
    body.update(payload)
    return client.post("/api/products", json=body, headers=headers)


class TestSystemRoutes:

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["details"]["products"] == 0

    def test_version(self, client):
        data = client.get("/version").get_json()
        assert "api_version" in data
        assert data["inventory_timezone"] == "UTC"

    def test_no_session_secret_configured(self, app):
        # The API is stateless: no sessions or signed cookies
        assert app.config.get("SECRET_KEY") is None


class TestProductRoutes:

    def test_create_requires_actor(self, client, db_session):
        resp = client.post("/api/products", json={"sku": "A", "name": "A"})
        assert resp.status_code == 400
        assert "X-Actor-Id" in resp.get_json()["error"]

    def test_create_with_opening_stock(self, client, db_session, actor_headers):
        resp = _create(client, actor_headers, opening_stock=40, reorder_level=5)
        assert resp.status_code == 201
        data = resp.get_json()
        assert Decimal(data["quantity"]) == Decimal("40")
        assert data["is_low_stock"] is False

        entry = db_session.query(InventoryHistory).filter_by(product_id=data["id"]).one()
        assert entry.activity_type == "opening_stock"
        assert entry.created_by == actor_headers["X-Actor-Id"]

    def test_create_without_opening_stock_starts_at_zero(self, client, db_session, actor_headers):
        data = _create(client, actor_headers).get_json()
        assert Decimal(data["quantity"]) == 0
        assert db_session.query(InventoryHistory).count() == 0

    def test_quantity_is_not_writable(self, client, db_session, actor_headers):
        resp = _create(client, actor_headers, quantity=10)
        assert resp.status_code == 400
        assert "quantity" in resp.get_json()["error"]

    @pytest.mark.parametrize("payload, fragment", [
        ({"sku": "X"}, "Missing required fields: name"),
        ({"sku": "X", "name": "X", "cost_price_cents": -1}, "cost_price_cents"),
        ({"sku": "X", "name": "X", "reorder_level": -2}, "reorder_level"),
        ({"sku": "X", "name": "X", "opening_stock": -2}, "opening_stock"),
        ({"sku": "X", "name": "X", "opening_stock": "lots"}, "opening_stock"),
    ])
    def test_create_validation(self, client, db_session, actor_headers, payload, fragment):
        resp = client.post("/api/products", json=payload, headers=actor_headers)
        assert resp.status_code == 400
        assert fragment in resp.get_json()["error"]

    @pytest.mark.parametrize("field", ["created_at", "updated_at"])
    def test_timestamps_are_not_writable(self, client, db_session, actor_headers, field):
        resp = _create(client, actor_headers, **{field: "2026-01-01T00:00:00Z"})
        assert resp.status_code == 400
        assert f"Field not allowed: {field}" in resp.get_json()["error"]

    def test_duplicate_sku(self, client, db_session, actor_headers):
        _create(client, actor_headers)
        resp = _create(client, actor_headers)
        assert resp.status_code == 409

    def test_get_update_delete(self, client, db_session, actor_headers):
        product_id = _create(client, actor_headers, opening_stock=3).get_json()["id"]

        assert client.get(f"/api/products/{product_id}").status_code == 200

        resp = client.put(
            f"/api/products/{product_id}", json={"name": "Flour 2kg"}, headers=actor_headers
        )
        assert resp.status_code == 200
        assert resp.get_json()["name"] == "Flour 2kg"

        resp = client.delete(f"/api/products/{product_id}", headers=actor_headers)
        assert resp.status_code == 200

        db_session.expire_all()
        assert client.get(f"/api/products/{product_id}").status_code == 404
        assert db_session.query(InventoryHistory).count() == 0
        assert db_session.query(DailyInventorySnapshot).count() == 0

    def test_update_cannot_touch_stock(self, client, db_session, actor_headers):
        product_id = _create(client, actor_headers).get_json()["id"]
        resp = client.put(
            f"/api/products/{product_id}", json={"opening_stock": 5}, headers=actor_headers
        )
        assert resp.status_code == 400

    def test_update_conflict_answers_409(self, client, db_session, actor_headers):
        product_id = _create(client, actor_headers).get_json()["id"]

        with mock.patch(
            "invtrack.services.products_service.update_product",
            side_effect=ConcurrencyConflict("concurrent update conflict; please retry"),
        ):
            resp = client.put(
                f"/api/products/{product_id}", json={"name": "Flour 2kg"}, headers=actor_headers
            )

        assert resp.status_code == 409
        assert "conflict" in resp.get_json()["error"]

    def test_missing_product(self, client, db_session, actor_headers):
        assert client.get("/api/products/999").status_code == 404
        assert client.delete("/api/products/999", headers=actor_headers).status_code == 404

    def test_list_low_stock_filter(self, client, db_session, actor_headers):
        _create(client, actor_headers, sku="LOW", name="Low", opening_stock=2)
        _create(client, actor_headers, sku="OK", name="Ok", opening_stock=200)

        everything = client.get("/api/products").get_json()
        assert everything["count"] == 2

        low = client.get("/api/products?low_stock=true").get_json()
        assert [p["sku"] for p in low["items"]] == ["LOW"]

    def test_list_pagination(self, client, db_session, actor_headers):
        for i in range(3):
            _create(client, actor_headers, sku=f"P-{i}", name=f"Item {i}")

        data = client.get("/api/products?page=1&per_page=2").get_json()
        assert data["count"] == 2
        assert data["pagination"]["total"] == 3
        assert data["pagination"]["has_next"] is True


class TestInventoryRoutes:

    @pytest.fixture()
    def product_id(self, client, db_session, actor_headers):
        return _create(client, actor_headers, opening_stock=100).get_json()["id"]

    def test_business_day_flow(self, client, product_id, actor_headers):
        resp = client.post(
            f"/api/inventory/{product_id}/purchase",
            json={"quantity": 20, "purchase_order_id": "PO-1"},
            headers=actor_headers,
        )
        assert resp.status_code == 201
        data = resp.get_json()
        assert Decimal(data["previous_quantity"]) == 100
        assert data["entry"]["activity_type"] == "purchase"
        assert data["entry"]["reference_id"] == "PO-1"
        assert Decimal(data["summary"]["quantity"]) == 120

        resp = client.post(
            f"/api/inventory/{product_id}/sale", json={"quantity": 30}, headers=actor_headers
        )
        assert resp.get_json()["entry"]["activity_type"] == "sale"

        resp = client.put(
            f"/api/inventory/{product_id}/quantity", json={"quantity": 85}, headers=actor_headers
        )
        entry = resp.get_json()["entry"]
        assert entry["activity_type"] == "consumption"
        assert Decimal(entry["quantity_change"]) == -5

        resp = client.put(
            f"/api/inventory/{product_id}/quantity", json={"quantity": 95}, headers=actor_headers
        )
        assert resp.get_json()["entry"]["activity_type"] == "adjustment"

        snaps = client.get(f"/api/inventory/{product_id}/snapshots").get_json()["items"]
        assert len(snaps) == 1
        snap = snaps[0]
        assert Decimal(snap["purchases"]) == 20
        assert Decimal(snap["sales"]) == 35
        assert Decimal(snap["adjustments"]) == 10
        assert Decimal(snap["closing_stock"]) == 95
        assert Decimal(snap["max_stock"]) == 120

        history = client.get(f"/api/inventory/{product_id}/history").get_json()
        assert history["count"] == 5
        assert history["items"][0]["activity_type"] == "adjustment"

    def test_same_quantity_answers_200_without_entry(self, client, product_id, actor_headers):
        resp = client.put(
            f"/api/inventory/{product_id}/quantity", json={"quantity": 100}, headers=actor_headers
        )
        assert resp.status_code == 200
        assert resp.get_json()["entry"] is None

    def test_response_describes_own_write_when_another_writer_follows(
        self, client, product_id, actor_headers, monkeypatch
    ):
        original = inventory_service.record_purchase

        def purchase_then_rival_sale(*args, **kwargs):
            result = original(*args, **kwargs)
            inventory_service.record_sale(product_id, 20, actor="user-2", invoice_id="INV-9")
            return result

        monkeypatch.setattr(inventory_service, "record_purchase", purchase_then_rival_sale)

        resp = client.post(
            f"/api/inventory/{product_id}/purchase", json={"quantity": 20}, headers=actor_headers
        )

        assert resp.status_code == 201
        data = resp.get_json()
        assert Decimal(data["previous_quantity"]) == 100
        assert data["entry"]["activity_type"] == "purchase"
        assert data["entry"]["created_by"] == "user-1"
        assert Decimal(data["entry"]["quantity_change"]) == 20
        assert Decimal(data["entry"]["quantity_after"]) == 120
        assert Decimal(data["summary"]["quantity"]) == 100

    def test_mutations_require_actor(self, client, product_id):
        resp = client.post(f"/api/inventory/{product_id}/purchase", json={"quantity": 1})
        assert resp.status_code == 400

    def test_oversell_rejected(self, client, product_id, actor_headers):
        resp = client.post(
            f"/api/inventory/{product_id}/sale", json={"quantity": 101}, headers=actor_headers
        )
        assert resp.status_code == 400

    def test_second_opening_stock_conflicts(self, client, product_id, actor_headers):
        resp = client.post(
            f"/api/inventory/{product_id}/opening-stock", json={"quantity": 5}, headers=actor_headers
        )
        assert resp.status_code == 409

    @pytest.mark.parametrize("payload", [
        {},
        {"quantity": 0},
        {"quantity": "ten"},
        {"quantity": 1, "unit_cost_cents": 5},
        {"quantity": 1, "note": "x" * 300},
    ])
    def test_purchase_validation(self, client, product_id, actor_headers, payload):
        resp = client.post(
            f"/api/inventory/{product_id}/purchase", json=payload, headers=actor_headers
        )
        assert resp.status_code == 400

    def test_unknown_product(self, client, db_session, actor_headers):
        resp = client.post("/api/inventory/999/purchase", json={"quantity": 1}, headers=actor_headers)
        assert resp.status_code == 404
        assert client.get("/api/inventory/999/history").status_code == 404

    def test_bad_date_range(self, client, product_id):
        resp = client.get(f"/api/inventory/{product_id}/history?from=2026-02-01&to=2026-01-01")
        assert resp.status_code == 400


class TestReportRoutes:

    def test_inventory_track(self, client, db_session, actor_headers):
        product_id = _create(client, actor_headers, opening_stock=10).get_json()["id"]
        client.post(f"/api/inventory/{product_id}/purchase", json={"quantity": 5}, headers=actor_headers)

        resp = client.get(f"/api/reports/inventory-track?product_id={product_id}")
        assert resp.status_code == 200
        data = resp.get_json()
        assert Decimal(data["totals"]["purchases"]) == 5
        assert len(data["history"]) == 2

    def test_inventory_track_requires_product(self, client, db_session):
        assert client.get("/api/reports/inventory-track").status_code == 400
        assert client.get("/api/reports/inventory-track?product_id=999").status_code == 404

    def test_low_stock(self, client, db_session, actor_headers):
        _create(client, actor_headers, sku="LOW", name="Low", opening_stock=1)
        data = client.get("/api/reports/low-stock").get_json()
        assert [p["sku"] for p in data["items"]] == ["LOW"]
