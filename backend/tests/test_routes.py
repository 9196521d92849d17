# Overview: Pytest coverage for the JSON API and its error mapping.

"""
HTTP API Tests

Exercises the blueprints end to end through Flask's test client: status
codes for each error class, server-side money math and the XLSX download.
"""

from io import BytesIO

import pytest
from openpyxl import load_workbook

from marketplace.services import catalog_service, session_service, settings_service


def _create_item(client, **overrides):
    body = {"name": "Poster", "cost_price_cents": 200, "sale_price_cents": 500, "current_stock": 10}
    body.update(overrides)
    resp = client.post("/api/catalog/items", json=body)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["item"]


def _create_session(client, item_ids=(), **overrides):
    body = {"name": "Night market"}
    body.update(overrides)
    resp = client.post("/api/sessions", json=body)
    assert resp.status_code == 201, resp.get_json()
    session = resp.get_json()["session"]
    if item_ids:
        resp = client.post(f"/api/sessions/{session['id']}/items", json={"item_ids": list(item_ids)})
        assert resp.status_code == 200
    return session


class TestSystem:
    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["details"]["inventory_items"] == 0


class TestCatalogRoutes:
    def test_create_and_get_item(self, client):
        item = _create_item(client)
        assert item["margin_cents"] == 300
        resp = client.get(f"/api/catalog/items/{item['id']}")
        assert resp.status_code == 200
        assert resp.get_json()["item"]["name"] == "Poster"

    def test_negative_price_is_400(self, client):
        resp = client.post("/api/catalog/items", json={"name": "X", "cost_price_cents": -1, "sale_price_cents": 1})
        assert resp.status_code == 400
        assert "cost_price_cents" in resp.get_json()["error"]

    def test_non_object_body_is_400(self, client):
        resp = client.post("/api/catalog/items", json=[1, 2])
        assert resp.status_code == 400

    def test_unknown_item_is_404(self, client):
        assert client.get("/api/catalog/items/999").status_code == 404

    def test_adjust_stock(self, client):
        item = _create_item(client, current_stock=2)
        resp = client.post(f"/api/catalog/items/{item['id']}/adjust", json={"delta": 3})
        assert resp.status_code == 200
        assert resp.get_json()["current_stock"] == 5

    def test_adjust_below_zero_is_409_with_details(self, client):
        item = _create_item(client, current_stock=2)
        resp = client.post(f"/api/catalog/items/{item['id']}/adjust", json={"delta": -3})
        assert resp.status_code == 409
        assert resp.get_json()["details"]["available_quantity"] == 2

    def test_adjust_requires_delta(self, client):
        item = _create_item(client)
        assert client.post(f"/api/catalog/items/{item['id']}/adjust", json={}).status_code == 400

    def test_delete_listed_item_is_409(self, client):
        item = _create_item(client)
        _create_session(client, item_ids=[item["id"]])
        assert client.delete(f"/api/catalog/items/{item['id']}").status_code == 409

    def test_archive_then_list(self, client):
        item = _create_item(client)
        assert client.post(f"/api/catalog/items/{item['id']}/archive").status_code == 200
        assert client.get("/api/catalog/items").get_json()["count"] == 0
        assert client.get("/api/catalog/items?include_inactive=true").get_json()["count"] == 1

    def test_categories(self, client):
        resp = client.post("/api/catalog/categories", json={"name": "Prints"})
        assert resp.status_code == 201
        assert client.post("/api/catalog/categories", json={"name": "Prints"}).status_code == 409
        assert client.get("/api/catalog/categories").get_json()["count"] == 1

    def test_rename_category(self, client):
        prints = client.post("/api/catalog/categories", json={"name": "Prints"}).get_json()["category"]
        client.post("/api/catalog/categories", json={"name": "Zines"})
        resp = client.patch(f"/api/catalog/categories/{prints['id']}", json={"name": "Art prints"})
        assert resp.status_code == 200
        assert resp.get_json()["category"]["name"] == "Art prints"
        assert client.patch(f"/api/catalog/categories/{prints['id']}", json={"name": "Zines"}).status_code == 409
        assert client.patch("/api/catalog/categories/999", json={"name": "Cards"}).status_code == 404

    def test_adjust_with_non_string_note_is_400(self, client):
        item = _create_item(client, current_stock=2)
        resp = client.post(f"/api/catalog/items/{item['id']}/adjust", json={"delta": 1, "note": 5})
        assert resp.status_code == 400
        assert client.get(f"/api/catalog/items/{item['id']}").get_json()["item"]["current_stock"] == 2


class TestSessionRoutes:
    def test_curate_and_list(self, client):
        a = _create_item(client, name="A")
        b = _create_item(client, name="B")
        session = _create_session(client, item_ids=[a["id"], b["id"], a["id"]])
        resp = client.get(f"/api/sessions/{session['id']}/items")
        assert [i["id"] for i in resp.get_json()["items"]] == [a["id"], b["id"]]

        assert client.delete(f"/api/sessions/{session['id']}/items/{a['id']}").status_code == 204
        resp = client.get(f"/api/sessions/{session['id']}/items")
        assert [i["id"] for i in resp.get_json()["items"]] == [b["id"]]

    def test_curate_unknown_item_is_404(self, client):
        session = _create_session(client)
        resp = client.post(f"/api/sessions/{session['id']}/items", json={"item_ids": [12345]})
        assert resp.status_code == 404

    def test_invalid_session_payload(self, client):
        resp = client.post("/api/sessions", json={"name": "X", "association_type": "tour"})
        assert resp.status_code == 400


class TestSalesRoutes:
    def test_record_computes_totals_server_side(self, client):
        client.put("/api/settings/sales", json={"pst_rate": 0.07, "gst_rate": 0.05})
        item = _create_item(client)
        session = _create_session(client, item_ids=[item["id"]])

        resp = client.post(
            f"/api/sessions/{session['id']}/transactions",
            json={"line_items": [{"item_id": item["id"], "quantity": 3, "is_voucher": False}]},
        )
        assert resp.status_code == 201
        tx = resp.get_json()["transaction"]
        assert (tx["subtotal_cents"], tx["taxes_cents"], tx["total_cents"]) == (1500, 180, 1680)
        assert tx["pst_rate"] == 0.07

        listed = client.get(f"/api/sessions/{session['id']}/transactions").get_json()
        assert listed["count"] == 1
        assert client.get(f"/api/transactions/{tx['id']}").status_code == 200

    def test_insufficient_stock_is_409(self, client):
        item = _create_item(client, current_stock=1)
        session = _create_session(client, item_ids=[item["id"]])
        resp = client.post(
            f"/api/sessions/{session['id']}/transactions",
            json={"line_items": [{"item_id": item["id"], "quantity": 5}]},
        )
        assert resp.status_code == 409
        assert resp.get_json()["details"] == {
            "item_id": item["id"],
            "requested_quantity": 5,
            "available_quantity": 1,
        }
        assert client.get(f"/api/catalog/items/{item['id']}").get_json()["item"]["current_stock"] == 1

    def test_empty_lines_is_400(self, client):
        session = _create_session(client)
        resp = client.post(f"/api/sessions/{session['id']}/transactions", json={"line_items": []})
        assert resp.status_code == 400

    def test_unknown_session_is_404(self, client):
        item = _create_item(client)
        resp = client.post("/api/sessions/999/transactions", json={"line_items": [{"item_id": item["id"], "quantity": 1}]})
        assert resp.status_code == 404

    def test_void(self, client):
        item = _create_item(client)
        session = _create_session(client, item_ids=[item["id"]])
        tx = client.post(
            f"/api/sessions/{session['id']}/transactions",
            json={"line_items": [{"item_id": item["id"], "quantity": 2}]},
        ).get_json()["transaction"]

        assert client.post(f"/api/transactions/{tx['id']}/void", json={}).status_code == 400
        resp = client.post(f"/api/transactions/{tx['id']}/void", json={"reason": "wrong size"})
        assert resp.status_code == 201
        assert resp.get_json()["transaction"]["adjusts_transaction_id"] == tx["id"]
        assert client.post(f"/api/transactions/{tx['id']}/void", json={"reason": "again"}).status_code == 409


class TestReportRoutes:
    def test_report_and_sales_log(self, client):
        item = _create_item(client)
        session = _create_session(client, item_ids=[item["id"]])
        client.post(
            f"/api/sessions/{session['id']}/transactions",
            json={"line_items": [{"item_id": item["id"], "quantity": 2, "is_voucher": True}]},
        )
        report = client.get(f"/api/sessions/{session['id']}/report").get_json()
        assert report["promotional_cost_cents"] == 400
        assert report["actual_revenue_cents"] == 0
        log = client.get(f"/api/sessions/{session['id']}/sales-log").get_json()
        assert log["count"] == 1

    def test_report_unknown_session_is_404(self, client):
        assert client.get("/api/sessions/31337/report").status_code == 404

    def test_xlsx_download(self, client):
        session = _create_session(client)
        resp = client.get(f"/api/sessions/{session['id']}/report.xlsx?variant=full")
        assert resp.status_code == 200
        assert resp.mimetype.endswith("spreadsheetml.sheet")
        wb = load_workbook(BytesIO(resp.data))
        assert "Transactions" in wb.sheetnames

    def test_xlsx_bad_variant(self, client):
        session = _create_session(client)
        assert client.get(f"/api/sessions/{session['id']}/report.xlsx?variant=pdf").status_code == 400


class TestSettingsRoutes:
    def test_get_and_put(self, client):
        assert client.get("/api/settings/sales").get_json()["settings"] == {"pst_rate": 0.0, "gst_rate": 0.0}
        resp = client.put("/api/settings/sales", json={"pst_rate": 0.07})
        assert resp.status_code == 200
        assert resp.get_json()["settings"]["pst_rate"] == 0.07

    def test_negative_rate_is_400(self, client):
        assert client.put("/api/settings/sales", json={"gst_rate": -0.05}).status_code == 400

    def test_unknown_field_is_400(self, client):
        assert client.put("/api/settings/sales", json={"hst_rate": 0.13}).status_code == 400


class TestAuditRoute:
    def test_events_filtered_by_entity(self, client):
        item = _create_item(client, current_stock=1)
        client.post(f"/api/catalog/items/{item['id']}/adjust", json={"delta": 4, "note": "found a box"})
        resp = client.get(f"/api/audit?entity_type=inventory_item&entity_id={item['id']}")
        assert resp.status_code == 200
        events = resp.get_json()["items"]
        assert {e["event_type"] for e in events} == {"item.created", "stock.adjusted"}

    def test_bad_limit_is_400(self, client):
        assert client.get("/api/audit?limit=0").status_code == 400


class TestItemListRoutes:
    def test_create_filter_and_reorder(self, client):
        a = _create_item(client, name="A")
        b = _create_item(client, name="B")
        resp = client.post("/api/item-lists", json={"event_id": "evt-1", "item_ids": [a["id"], b["id"]]})
        assert resp.status_code == 201
        menu = resp.get_json()["item_list"]
        assert menu["name"] == "New Item List"
        assert menu["item_order"] == [a["id"], b["id"]]
        client.post("/api/item-lists", json={"name": "Everyday"})
        client.post("/api/item-lists", json={"name": "Other fair", "event_id": "evt-2"})

        names = {entry["name"] for entry in client.get("/api/item-lists?event_id=evt-1").get_json()["items"]}
        assert names == {"New Item List", "Everyday"}

        resp = client.put(f"/api/item-lists/{menu['id']}/order", json={"item_ids": [b["id"], a["id"]]})
        assert resp.status_code == 200
        assert resp.get_json()["item_list"]["item_order"] == [b["id"], a["id"]]

    def test_reorder_with_foreign_item_is_400(self, client):
        a = _create_item(client, name="A")
        b = _create_item(client, name="B")
        menu = client.post("/api/item-lists", json={"item_ids": [a["id"]]}).get_json()["item_list"]
        resp = client.put(f"/api/item-lists/{menu['id']}/order", json={"item_ids": [b["id"]]})
        assert resp.status_code == 400

    def test_apply_list_to_session(self, client):
        a = _create_item(client, name="A")
        menu = client.post("/api/item-lists", json={"item_ids": [a["id"]]}).get_json()["item_list"]
        session = _create_session(client)
        resp = client.post(f"/api/item-lists/{menu['id']}/apply", json={"session_id": session["id"]})
        assert resp.status_code == 200
        assert [i["id"] for i in resp.get_json()["items"]] == [a["id"]]

    def test_unknown_list_is_404(self, client):
        assert client.get("/api/item-lists/999").status_code == 404
        assert client.delete("/api/item-lists/999").status_code == 404


class TestUnexpectedErrors:
    """Listing endpoints answer an internal failure with a JSON 500."""

    @pytest.mark.parametrize(
        "url, service, name",
        [
            ("/api/catalog/categories", catalog_service, "list_categories"),
            ("/api/sessions", session_service, "list_sessions"),
            ("/api/settings/sales", settings_service, "get_sales_settings"),
        ],
    )
    def test_list_failure_is_json_500(self, client, monkeypatch, url, service, name):
        def _boom(*args, **kwargs):
            raise RuntimeError("database went away")

        monkeypatch.setattr(service, name, _boom)
        resp = client.get(url)
        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Internal server error"}
