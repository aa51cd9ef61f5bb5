"""API tests for customers and loyalty points."""

API = "/api/customers"


class TestCustomersApi:

    def test_create_and_search(self, client, auth_headers):
        res = client.post(API, json={"name": "Hoa Pham", "phone": "0912345678"}, headers=auth_headers)
        assert res.status_code == 201
        data = res.json()
        assert data["points"] == 0
        assert data["level"] == "BRONZE"

        res = client.get(API, params={"search": "Hoa"}, headers=auth_headers)
        assert [c["name"] for c in res.json()["items"]] == ["Hoa Pham"]

    def test_invalid_email(self, client, auth_headers):
        res = client.post(API, json={"name": "X", "phone": "1", "email": "not-an-email"}, headers=auth_headers)
        assert res.status_code == 422

    def test_update_and_delete(self, client, auth_headers, pos_setup):
        customer_id = pos_setup["customer"].id
        res = client.patch(f"{API}/{customer_id}", json={"address": "12 Le Loi"}, headers=auth_headers)
        assert res.status_code == 200
        assert res.json()["address"] == "12 Le Loi"

        assert client.delete(f"{API}/{customer_id}", headers=auth_headers).status_code == 200
        assert client.get(f"{API}/{customer_id}", headers=auth_headers).status_code == 404

    def test_points_flow(self, client, auth_headers, pos_setup):
        customer_id = pos_setup["customer"].id

        res = client.post(f"{API}/{customer_id}/points", json={"points": 700, "description": "Promo"}, headers=auth_headers)
        assert res.status_code == 200
        assert res.json()["level"] == "SILVER"

        res = client.post(
            f"{API}/{customer_id}/points",
            json={"points": -200, "type": "SPENT", "description": "Dessert"},
            headers=auth_headers,
        )
        assert res.json()["points"] == 500

        res = client.post(
            f"{API}/{customer_id}/points", json={"points": 900, "type": "SPENT"}, headers=auth_headers,
        )
        assert res.status_code == 400

        balance = client.get(f"{API}/{customer_id}/balance", headers=auth_headers).json()
        assert balance == {"customerId": customer_id, "balance": 500, "level": "SILVER"}

        history = client.get(f"{API}/{customer_id}/points", headers=auth_headers).json()
        assert [e["type"] for e in history["items"]] == ["SPENT", "EARNED"]

    def test_order_history(self, client, auth_headers, pos_setup):
        customer_id = pos_setup["customer"].id
        order = client.post("/api/pos/orders", json={
            "tableId": pos_setup["t1"].id,
            "customerId": customer_id,
            "orderItems": [{"menuId": pos_setup["pho"].id, "quantity": 2}],
        }, headers=auth_headers).json()
        client.patch(f"/api/pos/orders/{order['id']}/status", json={"status": "COMPLETED"}, headers=auth_headers)

        res = client.get(f"{API}/{customer_id}/orders", headers=auth_headers)
        assert res.status_code == 200
        data = res.json()
        assert data["totalOrders"] == 1
        assert data["totalSpent"] == 99000
        assert data["customer"]["points"] == 99
        assert data["favoriteItems"][0]["name"] == "Pho"


class TestReportsApi:

    def test_sales_report_after_completion(self, client, auth_headers, pos_setup):
        order = client.post("/api/pos/orders", json={
            "tableId": pos_setup["t1"].id,
            "orderItems": [{"menuId": pos_setup["pho"].id, "quantity": 2}],
        }, headers=auth_headers).json()
        client.patch(f"/api/pos/orders/{order['id']}/status", json={"status": "COMPLETED"}, headers=auth_headers)

        res = client.get("/api/reports/sales", headers=auth_headers)
        assert res.status_code == 200
        assert res.json()["total_revenue"] == 90000

        dashboard = client.get("/api/reports/dashboard", headers=auth_headers).json()
        assert dashboard["recent_orders"][0]["orderNumber"] == order["orderNumber"]
