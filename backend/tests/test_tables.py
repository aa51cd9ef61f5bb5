"""Tests for the table registry."""

import pytest

from restopos.core.exceptions import (
    ConcurrencyConflictError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from restopos.models.restaurant import DiningTable, Order
from restopos.services.order_service import OrderService
from restopos.services.table_service import TableService, table_number


class TestCreateTable:

    def test_create_with_name(self, db_session):
        table = TableService(db_session).create_table("Patio 1", 6, location="Terrace")
        assert table.id is not None
        assert table.status == "available"
        assert table.version == 1
        assert table.location == "Terrace"

    def test_auto_name_continues_numbering(self, db_session, pos_setup):
        table = TableService(db_session).create_table(None, 4)
        assert table.name == "Table 3"

    def test_auto_name_on_empty_floor(self, db_session):
        assert TableService(db_session).create_table(None, 2).name == "Table 1"

    @pytest.mark.parametrize("name", ["", "   "])
    def test_blank_name_rejected(self, db_session, name):
        with pytest.raises(ValidationError):
            TableService(db_session).create_table(name, 4)

    @pytest.mark.parametrize("capacity", [0, -2, 21])
    def test_capacity_bounds(self, db_session, capacity):
        with pytest.raises(ValidationError):
            TableService(db_session).create_table("T", capacity)

    def test_unknown_status_rejected(self, db_session):
        with pytest.raises(ValidationError):
            TableService(db_session).create_table("T", 4, status="closed")


class TestListTables:

    def test_natural_sort_with_unnumbered_last(self, db_session):
        service = TableService(db_session)
        for name in ["Table 10", "Bar", "Table 2", "Table 1"]:
            service.create_table(name, 4)

        assert [t.name for t in service.list_tables()] == ["Table 1", "Table 2", "Table 10", "Bar"]

    def test_filter_by_status(self, db_session, pos_setup):
        service = TableService(db_session)
        service.set_status(pos_setup["t2"].id, "reserved")
        assert [t.name for t in service.list_tables(status="reserved")] == ["Table 2"]

    def test_table_number(self):
        assert table_number("Table 12") == 12
        assert table_number("VIP") is None


class TestUpdateTable:

    def test_update_bumps_version(self, db_session, pos_setup):
        table = TableService(db_session).update_table(pos_setup["t1"].id, {"capacity": 6}, expected_version=1)
        assert table.capacity == 6
        assert table.version == 2

    def test_stale_version_conflicts(self, db_session, pos_setup):
        with pytest.raises(ConcurrencyConflictError):
            TableService(db_session).update_table(pos_setup["t1"].id, {"capacity": 6}, expected_version=7)

    def test_unknown_table(self, db_session):
        with pytest.raises(NotFoundError):
            TableService(db_session).update_table(999, {"capacity": 2})

    def test_invalid_capacity(self, db_session, pos_setup):
        with pytest.raises(ValidationError):
            TableService(db_session).update_table(pos_setup["t1"].id, {"capacity": 0})


class TestDeleteTable:

    def test_delete_free_table(self, db_session, pos_setup):
        table_id = pos_setup["t2"].id
        TableService(db_session).delete_table(table_id)
        assert db_session.get(DiningTable, table_id) is None

    def test_delete_with_orders_conflicts(self, db_session, pos_setup):
        t1 = pos_setup["t1"]
        OrderService(db_session).create_order(t1.id, [{"menu_item_id": pos_setup["pho"].id, "quantity": 1}])
        with pytest.raises(ConflictError):
            TableService(db_session).delete_table(t1.id)
        assert db_session.get(DiningTable, t1.id) is not None

    def test_force_delete_removes_orders(self, db_session, pos_setup):
        table_id = pos_setup["t1"].id
        orders = OrderService(db_session)
        order = orders.create_order(table_id, [{"menu_item_id": pos_setup["pho"].id, "quantity": 1}])
        orders.complete_order(order.id)
        orders.create_order(table_id, [{"menu_item_id": pos_setup["coffee"].id, "quantity": 2}])

        result = TableService(db_session).delete_table(table_id, force=True)

        assert result["orders_deleted"] == 2
        assert db_session.get(DiningTable, table_id) is None
        assert db_session.query(Order).filter(Order.table_id == table_id).count() == 0


class TestRenumber:

    def test_renumber_in_creation_order(self, db_session):
        service = TableService(db_session)
        for name in ["Table 5", "Patio", "Table 2"]:
            service.create_table(name, 4)

        tables = service.renumber_all()

        assert [t.name for t in tables] == ["Table 1", "Table 2", "Table 3"]
        assert [t.sort_order for t in tables] == [1, 2, 3]


class TestSummary:

    def test_counts_and_rate(self, db_session, pos_setup):
        OrderService(db_session).create_order(
            pos_setup["t1"].id, [{"menu_item_id": pos_setup["pho"].id, "quantity": 1}]
        )
        summary = TableService(db_session).summary()
        assert summary["total_tables"] == 2
        assert summary["occupied"] == 1
        assert summary["available"] == 1
        assert summary["occupancy_rate"] == 50.0
