"""API tests for the POS terminal routes."""

import pytest

API = "/api/pos"


@pytest.fixture
def place_order(client, auth_headers, pos_setup):
    """Post an order for two phos on Table 1 and return the response body."""
    def _place(**extra):
        body = {
            "tableId": pos_setup["t1"].id,
            "orderItems": [{"menuId": pos_setup["pho"].id, "quantity": 2}],
        }
        body.update(extra)
        return client.post(f"{API}/orders", json=body, headers=auth_headers)

    return _place


class TestTablesApi:

    def test_list_tables(self, client, auth_headers, pos_setup):
        res = client.get(f"{API}/tables", headers=auth_headers)
        assert res.status_code == 200
        data = res.json()
        assert data["total"] == 2
        assert [t["name"] for t in data["items"]] == ["Table 1", "Table 2"]
        assert "sortOrder" in data["items"][0]

    def test_create_table_auto_name(self, client, auth_headers, pos_setup):
        res = client.post(f"{API}/tables", json={"capacity": 6}, headers=auth_headers)
        assert res.status_code == 201
        assert res.json()["name"] == "Table 3"

    def test_create_table_bad_capacity(self, client, auth_headers):
        res = client.post(f"{API}/tables", json={"name": "Big", "capacity": 50}, headers=auth_headers)
        assert res.status_code == 400
        assert res.json()["code"] == "validation_error"

    def test_update_table_version_conflict(self, client, auth_headers, pos_setup):
        res = client.patch(
            f"{API}/tables/{pos_setup['t1'].id}",
            json={"capacity": 8, "version": 5},
            headers=auth_headers,
        )
        assert res.status_code == 409
        assert res.json()["code"] == "concurrency_conflict"

    def test_set_status(self, client, auth_headers, pos_setup):
        res = client.patch(
            f"{API}/tables/{pos_setup['t2'].id}/status", json={"status": "reserved"}, headers=auth_headers,
        )
        assert res.status_code == 200
        assert res.json()["status"] == "reserved"

    def test_get_table_shows_open_orders(self, client, auth_headers, pos_setup, place_order):
        order = place_order().json()
        res = client.get(f"{API}/tables/{pos_setup['t1'].id}", headers=auth_headers)
        assert res.status_code == 200
        data = res.json()
        assert data["status"] == "occupied"
        assert [o["id"] for o in data["activeOrders"]] == [order["id"]]

    def test_get_missing_table(self, client, auth_headers):
        res = client.get(f"{API}/tables/999", headers=auth_headers)
        assert res.status_code == 404
        assert res.json() == {"detail": "Table not found: 999", "code": "not_found"}

    def test_delete_table_with_orders(self, client, auth_headers, pos_setup, place_order):
        place_order()
        table_id = pos_setup["t1"].id
        assert client.delete(f"{API}/tables/{table_id}", headers=auth_headers).status_code == 409

        res = client.delete(f"{API}/tables/{table_id}/force", headers=auth_headers)
        assert res.status_code == 200
        assert res.json()["orders_deleted"] == 1

    def test_renumber(self, client, auth_headers, pos_setup):
        client.patch(f"{API}/tables/{pos_setup['t1'].id}", json={"name": "Window"}, headers=auth_headers)
        res = client.post(f"{API}/tables/renumber", headers=auth_headers)
        assert res.status_code == 200
        assert [t["name"] for t in res.json()["items"]] == ["Table 1", "Table 2"]

    def test_summary(self, client, auth_headers, pos_setup):
        res = client.get(f"{API}/tables/summary", headers=auth_headers)
        assert res.status_code == 200
        assert res.json()["totalTables"] == 2


class TestMenuApi:

    def test_list_menu_available_only(self, client, auth_headers, pos_setup):
        res = client.get(f"{API}/menu", params={"available_only": True}, headers=auth_headers)
        assert res.status_code == 200
        names = {i["name"] for i in res.json()["items"]}
        assert names == {"Pho", "Iced Coffee"}

    def test_create_and_update_item(self, client, auth_headers, pos_setup):
        res = client.post(
            f"{API}/menu",
            json={"name": "Banh Mi", "price": 30000, "categoryId": pos_setup["mains"].id},
            headers=auth_headers,
        )
        assert res.status_code == 201
        item_id = res.json()["id"]

        res = client.patch(f"{API}/menu/{item_id}", json={"isAvailable": False}, headers=auth_headers)
        assert res.status_code == 200
        assert res.json()["isAvailable"] is False

    @pytest.mark.parametrize("field", ["isAvailable", "isActive", "price", "name"])
    def test_null_for_required_field_rejected(self, client, auth_headers, pos_setup, field):
        res = client.patch(f"{API}/menu/{pos_setup['pho'].id}", json={field: None}, headers=auth_headers)
        assert res.status_code == 400
        assert res.json()["code"] == "validation_error"

        item = client.get(f"{API}/menu/{pos_setup['pho'].id}", headers=auth_headers).json()
        assert item["isAvailable"] is True
        assert item["price"] == 45000

    def test_null_description_clears_it(self, client, auth_headers, pos_setup):
        res = client.patch(
            f"{API}/menu/{pos_setup['pho'].id}", json={"description": None}, headers=auth_headers,
        )
        assert res.status_code == 200
        assert res.json()["description"] is None

    def test_categories(self, client, auth_headers, pos_setup):
        res = client.get(f"{API}/categories", headers=auth_headers)
        assert [c["name"] for c in res.json()["items"]] == ["Mains", "Drinks"]


class TestCartPreview:

    def test_preview_prices_lines_and_skips_unsellable(self, client, auth_headers, pos_setup):
        res = client.post(
            f"{API}/cart/preview",
            json={"orderItems": [
                {"menuId": pos_setup["pho"].id, "quantity": 2},
                {"menuId": pos_setup["sold_out"].id, "quantity": 1},
                {"menuId": pos_setup["pho"].id, "quantity": 1},
            ]},
            headers=auth_headers,
        )
        assert res.status_code == 200
        data = res.json()
        assert data["total"] == 135000
        assert data["skipped"] == [pos_setup["sold_out"].id]
        assert data["lines"][0]["quantity"] == 3
        assert data["lines"][0]["unitPrice"] == 45000


class TestOrdersApi:

    def test_create_order(self, client, place_order):
        res = place_order()
        assert res.status_code == 201
        data = res.json()
        assert data["subtotal"] == 90000
        assert data["total"] == 99000
        assert data["status"] == "PENDING"
        assert len(data["orderNumber"]) == 12
        assert data["items"][0]["unitPrice"] == 45000
        assert data["items"][0]["name"] == "Pho"

    def test_second_order_on_busy_table(self, client, place_order, pos_setup):
        first = place_order().json()

        res = place_order()
        assert res.status_code == 409
        assert res.json()["code"] == "conflict"

        res = place_order(openOrderId=first["id"])
        assert res.status_code == 201
        assert res.json()["id"] == first["id"]
        assert res.json()["subtotal"] == 180000

    def test_add_to_open_order_with_customer_and_discount(self, client, place_order, pos_setup):
        first = place_order().json()
        customer_id = pos_setup["customer"].id

        res = place_order(openOrderId=first["id"], customerId=customer_id, discount=10000)
        assert res.status_code == 201
        data = res.json()
        assert data["customerId"] == customer_id
        assert data["discount"] == 10000
        assert data["total"] == 180000 + 18000 - 10000

        res = place_order(openOrderId=first["id"], customerId=customer_id + 100)
        assert res.status_code == 409

    def test_amend_endpoint(self, client, auth_headers, place_order, pos_setup):
        first = place_order().json()
        res = client.post(
            f"{API}/tables/{pos_setup['t1'].id}/orders/amend",
            json={"orderItems": [{"menuId": pos_setup["coffee"].id, "quantity": 1}], "version": first["version"]},
            headers=auth_headers,
        )
        assert res.status_code == 200
        assert [i["round"] for i in res.json()["items"]] == [1, 2]

    def test_complete_via_status(self, client, auth_headers, place_order, pos_setup):
        order = place_order().json()
        res = client.patch(
            f"{API}/orders/{order['id']}/status",
            json={"status": "COMPLETED", "paymentMethod": "TRANSFER"},
            headers=auth_headers,
        )
        assert res.status_code == 200
        data = res.json()
        assert data["isPaid"] is True
        assert data["payments"][0]["method"] == "TRANSFER"

        table = client.get(f"{API}/tables/{pos_setup['t1'].id}", headers=auth_headers).json()
        assert table["status"] == "available"

    def test_invalid_status(self, client, auth_headers, place_order):
        order = place_order().json()
        res = client.patch(f"{API}/orders/{order['id']}/status", json={"status": "SERVED"}, headers=auth_headers)
        assert res.status_code == 400

    def test_transfer_via_patch(self, client, auth_headers, place_order, pos_setup):
        order = place_order().json()
        res = client.patch(
            f"{API}/orders/{order['id']}", json={"tableId": pos_setup["t2"].id}, headers=auth_headers,
        )
        assert res.status_code == 200
        assert res.json()["tableId"] == pos_setup["t2"].id

        tables = {t["id"]: t["status"] for t in client.get(f"{API}/tables", headers=auth_headers).json()["items"]}
        assert tables == {pos_setup["t1"].id: "available", pos_setup["t2"].id: "occupied"}

    def test_list_orders_by_table(self, client, auth_headers, place_order, pos_setup):
        place_order()
        res = client.get(f"{API}/orders", params={"tableId": pos_setup["t2"].id}, headers=auth_headers)
        assert res.json()["total"] == 0
        res = client.get(f"{API}/orders", params={"tableId": pos_setup["t1"].id}, headers=auth_headers)
        assert res.json()["total"] == 1

    def test_remove_item_and_delete(self, client, auth_headers, place_order, pos_setup):
        order = place_order().json()
        line_id = order["items"][0]["id"]

        res = client.delete(f"{API}/orders/{order['id']}/items/{line_id}", headers=auth_headers)
        assert res.status_code == 200
        assert res.json()["subtotal"] == 0

        res = client.delete(f"{API}/orders/{order['id']}", headers=auth_headers)
        assert res.status_code == 200
        assert client.get(f"{API}/orders/{order['id']}", headers=auth_headers).status_code == 404

    def test_current_order(self, client, auth_headers, place_order, pos_setup):
        res = client.get(f"{API}/tables/{pos_setup['t1'].id}/current-order", headers=auth_headers)
        assert res.status_code == 200
        assert res.json() is None

        order = place_order().json()
        res = client.get(f"{API}/tables/{pos_setup['t1'].id}/current-order", headers=auth_headers)
        assert res.json()["id"] == order["id"]

    def test_malformed_body(self, client, auth_headers):
        res = client.post(f"{API}/orders", json={"orderItems": []}, headers=auth_headers)
        assert res.status_code == 422
