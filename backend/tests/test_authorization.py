"""Role-based access tests.

Every role gets a real active user; the permission matrix in
``restopos.core.rbac`` decides what each one may call.
"""

import pytest

from restopos.core.rbac import Permission, UserRole, capabilities_for
from restopos.core.security import create_access_token


class TestUnauthenticatedDenied:

    def test_no_token(self, client):
        assert client.get("/api/pos/tables").status_code == 401

    def test_garbage_token(self, client):
        res = client.get("/api/pos/tables", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401

    def test_disabled_user(self, client, make_user):
        user = make_user(UserRole.WAITER, is_active=False)
        token = create_access_token({"sub": str(user.id), "email": user.email, "role": user.role.value})
        res = client.get("/api/pos/tables", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401


class TestRoleMatrix:

    def test_staff_can_read_but_not_order(self, client, headers_for, pos_setup):
        headers = headers_for(UserRole.STAFF)
        assert client.get("/api/pos/tables", headers=headers).status_code == 200
        res = client.post("/api/pos/orders", json={
            "tableId": pos_setup["t1"].id,
            "orderItems": [{"menuId": pos_setup["pho"].id, "quantity": 1}],
        }, headers=headers)
        assert res.status_code == 403
        assert "order:create" in res.json()["detail"]

    def test_kitchen_cannot_see_tables(self, client, headers_for):
        assert client.get("/api/pos/tables", headers=headers_for(UserRole.KITCHEN)).status_code == 403

    def test_waiter_cannot_delete_tables(self, client, headers_for, pos_setup):
        res = client.delete(f"/api/pos/tables/{pos_setup['t2'].id}", headers=headers_for(UserRole.WAITER))
        assert res.status_code == 403

    def test_waiter_cannot_view_reports(self, client, headers_for):
        assert client.get("/api/reports/sales", headers=headers_for(UserRole.WAITER)).status_code == 403

    def test_cashier_can_view_reports(self, client, headers_for):
        res = client.get("/api/reports/dashboard", headers=headers_for(UserRole.CASHIER))
        assert res.status_code == 200
        assert res.json()["total_orders"] == 0

    def test_manager_can_force_delete(self, client, headers_for, pos_setup):
        res = client.delete(f"/api/pos/tables/{pos_setup['t2'].id}/force", headers=headers_for(UserRole.MANAGER))
        assert res.status_code == 200


class TestRoleFromAccount:

    def test_demoted_admin_loses_access_immediately(self, client, db_session, make_user, pos_setup):
        user = make_user(UserRole.ADMIN, email="boss@example.com")
        headers = {"Authorization": f"Bearer {create_access_token({'sub': str(user.id), 'email': user.email, 'role': 'ADMIN'})}"}

        user.role = UserRole.STAFF
        db_session.commit()

        res = client.delete(f"/api/pos/tables/{pos_setup['t2'].id}", headers=headers)
        assert res.status_code == 403
        caps = client.get("/api/auth/me/capabilities", headers=headers).json()
        assert caps["role"] == "STAFF"
        assert caps["permissions"] == capabilities_for(UserRole.STAFF)

    def test_promoted_user_gains_access(self, client, db_session, make_user):
        user = make_user(UserRole.WAITER, email="rising@example.com")
        headers = {"Authorization": f"Bearer {create_access_token({'sub': str(user.id), 'email': user.email, 'role': 'WAITER'})}"}
        assert client.get("/api/reports/dashboard", headers=headers).status_code == 403

        user.role = UserRole.MANAGER
        db_session.commit()
        assert client.get("/api/reports/dashboard", headers=headers).status_code == 200

    def test_forged_role_claim_is_ignored(self, client, make_user, pos_setup):
        user = make_user(UserRole.STAFF, email="forger@example.com")
        token = create_access_token({"sub": str(user.id), "email": user.email, "role": "ADMIN"})
        res = client.delete(
            f"/api/pos/tables/{pos_setup['t2'].id}", headers={"Authorization": f"Bearer {token}"},
        )
        assert res.status_code == 403


class TestCapabilities:

    @pytest.mark.parametrize("role", list(UserRole))
    def test_capabilities_match_policy(self, client, headers_for, role):
        res = client.get("/api/auth/me/capabilities", headers=headers_for(role))
        assert res.status_code == 200
        data = res.json()
        assert data["role"] == role.value
        assert data["permissions"] == capabilities_for(role)

    def test_admin_has_everything(self):
        assert set(capabilities_for(UserRole.ADMIN)) == {p.value for p in Permission}

    def test_waiter_capabilities(self):
        caps = capabilities_for(UserRole.WAITER)
        assert "order:create" in caps
        assert "table:delete" not in caps
