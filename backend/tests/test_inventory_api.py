"""API tests for inventory: ingredients, recipes and stock on sale."""

from restopos.core.rbac import UserRole

API = "/api/inventory"


def _order(client, headers, table_id, menu_id, quantity):
    return client.post("/api/pos/orders", json={
        "tableId": table_id,
        "orderItems": [{"menuId": menu_id, "quantity": quantity}],
    }, headers=headers)


class TestInventoryApi:

    def test_ingredient_lifecycle(self, client, auth_headers):
        res = client.post(f"{API}/suppliers", json={"name": "Da Lat Farms"}, headers=auth_headers)
        assert res.status_code == 201
        supplier_id = res.json()["id"]

        res = client.post(f"{API}/ingredients", json={
            "name": "Coffee beans", "unit": "kg", "currentStock": 3, "minStock": 1,
            "costPrice": 300000, "supplierId": supplier_id,
        }, headers=auth_headers)
        assert res.status_code == 201
        ingredient = res.json()
        assert ingredient["currentStock"] == 3.0
        assert ingredient["isLowStock"] is False

        res = client.post(
            f"{API}/ingredients/{ingredient['id']}/adjust-stock",
            json={"quantity": -2.5, "reason": "waste", "notes": "Spilled"},
            headers=auth_headers,
        )
        assert res.status_code == 200
        assert res.json()["currentStock"] == 0.5
        assert res.json()["isLowStock"] is True

        low = client.get(f"{API}/low-stock", headers=auth_headers).json()
        assert [i["name"] for i in low["items"]] == ["Coffee beans"]

        movements = client.get(
            f"{API}/stock-movements", params={"ingredient_id": ingredient["id"]}, headers=auth_headers,
        ).json()
        assert [m["reason"] for m in movements["items"]] == ["waste", "purchase"]

    def test_adjust_below_zero(self, client, auth_headers, stock_setup):
        res = client.post(
            f"{API}/ingredients/{stock_setup['beef'].id}/adjust-stock", json={"quantity": -5}, headers=auth_headers,
        )
        assert res.status_code == 400
        assert res.json()["code"] == "insufficient_stock"

    def test_order_deducts_and_reports_shortage(self, client, auth_headers, stock_setup):
        beef_id, pho_id = stock_setup["beef"].id, stock_setup["pho"].id

        res = _order(client, auth_headers, stock_setup["t1"].id, pho_id, 7)
        assert res.status_code == 400
        assert res.json()["code"] == "insufficient_stock"
        assert "Beef" in res.json()["detail"]
        assert client.get(f"/api/pos/tables/{stock_setup['t1'].id}/current-order", headers=auth_headers).json() is None

        assert _order(client, auth_headers, stock_setup["t1"].id, pho_id, 2).status_code == 201
        beef = client.get(f"{API}/ingredients/{beef_id}", headers=auth_headers).json()
        assert beef["currentStock"] == 0.7

        summary = client.get(f"{API}/stock-movements/summary/{beef_id}", headers=auth_headers).json()
        assert summary["totalOut"] == 0.3
        assert summary["movementCount"] == 1

    def test_recipe_endpoints(self, client, auth_headers, stock_setup):
        coffee_id = stock_setup["coffee"].id
        res = client.post(f"{API}/recipes/{coffee_id}", json={
            "ingredientId": stock_setup["noodles"].id, "quantity": 0.05, "unit": "kg",
        }, headers=auth_headers)
        assert res.status_code == 201
        line = res.json()
        assert line["ingredientName"] == "Rice noodles"

        res = client.post(f"{API}/recipes/{coffee_id}", json={
            "ingredientId": stock_setup["noodles"].id, "quantity": 10,
        }, headers=auth_headers)
        assert res.status_code == 409

        res = client.patch(f"{API}/recipe-lines/{line['id']}", json={"quantity": 20, "unit": "g"}, headers=auth_headers)
        assert res.json()["quantity"] == 20.0

        cost = client.get(f"{API}/recipes/{coffee_id}/cost", headers=auth_headers).json()
        assert cost["totalCost"] == 800

        assert client.delete(f"{API}/recipe-lines/{line['id']}", headers=auth_headers).status_code == 200
        assert client.get(f"{API}/recipes/{coffee_id}", headers=auth_headers).json()["total"] == 0

    def test_dashboard(self, client, auth_headers, stock_setup):
        _order(client, auth_headers, stock_setup["t1"].id, stock_setup["pho"].id, 1)
        data = client.get(f"{API}/dashboard", headers=auth_headers).json()

        assert data["totalIngredients"] == 2
        assert data["totalSuppliers"] == 1
        assert len(data["recentMovements"]) == 2

    def test_delete_ingredient_in_use(self, client, auth_headers, stock_setup):
        res = client.delete(f"{API}/ingredients/{stock_setup['beef'].id}", headers=auth_headers)
        assert res.status_code == 409


class TestInventoryAccess:

    def test_kitchen_can_view_not_manage(self, client, headers_for, stock_setup):
        headers = headers_for(UserRole.KITCHEN)
        assert client.get(f"{API}/ingredients", headers=headers).status_code == 200
        res = client.post(
            f"{API}/ingredients/{stock_setup['beef'].id}/adjust-stock", json={"quantity": 1}, headers=headers,
        )
        assert res.status_code == 403

    def test_waiter_cannot_view(self, client, headers_for):
        assert client.get(f"{API}/ingredients", headers=headers_for(UserRole.WAITER)).status_code == 403
