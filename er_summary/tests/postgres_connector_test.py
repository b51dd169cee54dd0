from unittest import mock

import pandas as pd
import pytest

from er_summary.data_processing.data_types import ColumnInfo, ForeignKey
from er_summary.postgres_utils import postgres_connector as connector

ORDERS_CUSTOMER = ForeignKey("orders", "customer_id", "customers", "id", "orders_customer_id_fkey")
ITEMS_ORDER = ForeignKey("order_items", "order_id", "orders", "id", "order_items_order_id_fkey")


def test_execute_query_to_pandas_binds_parameters():
    cursor = mock.MagicMock()
    cursor.fetchall.return_value = [("orders", 1), ("customers", 2)]
    cursor.description = [("table_name",), ("n",)]
    connection = mock.MagicMock()
    connection.cursor.return_value = cursor

    df = connector._execute_query_to_pandas(connection, "SELECT 1", {"schema": "public"})

    cursor.execute.assert_called_once_with("SELECT 1", {"schema": "public"})
    cursor.close.assert_called_once()
    assert list(df.columns) == ["table_name", "n"]
    assert df["table_name"].tolist() == ["orders", "customers"]


def test_execute_query_to_pandas_closes_cursor_on_error():
    cursor = mock.MagicMock()
    cursor.execute.side_effect = RuntimeError("boom")
    connection = mock.MagicMock()
    connection.cursor.return_value = cursor

    with pytest.raises(RuntimeError):
        connector._execute_query_to_pandas(connection, "SELECT 1")
    cursor.close.assert_called_once()


def test_get_all_foreign_keys_maps_rows():
    data = pd.DataFrame(
        {
            "from_table": ["orders", "order_items"],
            "from_column": ["customer_id", "order_id"],
            "to_table": ["customers", "orders"],
            "to_column": ["id", "id"],
            "constraint_name": ["orders_customer_id_fkey", "order_items_order_id_fkey"],
        }
    )
    with mock.patch.object(connector, "_execute_query_to_pandas", return_value=data) as run:
        foreign_keys = connector.get_all_foreign_keys(mock.MagicMock(), "public")

    assert foreign_keys == [ORDERS_CUSTOMER, ITEMS_ORDER]
    assert run.call_args.args[2] == {"schema": "public"}
    assert "ORDER BY tc.table_name, kcu.column_name, tc.constraint_name" in run.call_args.args[1]


def test_get_all_foreign_keys_handles_empty_schema():
    with mock.patch.object(connector, "_execute_query_to_pandas", return_value=pd.DataFrame()):
        assert connector.get_all_foreign_keys(mock.MagicMock(), "empty") == []


def test_get_all_foreign_keys_requires_expected_columns():
    data = pd.DataFrame({"from_table": ["orders"]})
    with mock.patch.object(connector, "_execute_query_to_pandas", return_value=data):
        with pytest.raises(KeyError):
            connector.get_all_foreign_keys(mock.MagicMock(), "public")


def test_filter_foreign_keys_keeps_pairs_inside_selection():
    filtered = connector.filter_foreign_keys([ORDERS_CUSTOMER, ITEMS_ORDER], ["orders", "customers"])

    assert filtered == [ORDERS_CUSTOMER]


def test_get_column_info_reads_flags():
    data = pd.DataFrame(
        {
            "table_column": ["orders.customer_id", "order_items.order_id"],
            "is_nullable": [False, True],
            "has_unique_constraint": [False, True],
        }
    )
    with mock.patch.object(connector, "_execute_query_to_pandas", return_value=data) as run:
        info = connector.get_column_info(mock.MagicMock(), "public", [ORDERS_CUSTOMER, ITEMS_ORDER])

    assert info == {
        "orders.customer_id": ColumnInfo(is_nullable=False, has_sole_unique_constraint=False),
        "order_items.order_id": ColumnInfo(is_nullable=True, has_sole_unique_constraint=True),
    }
    params = run.call_args.args[2]
    assert params["tables"] == ["orders", "order_items"]
    assert params["columns"] == ["customer_id", "order_id"]


def test_get_column_info_skips_query_without_foreign_keys():
    with mock.patch.object(connector, "_execute_query_to_pandas") as run:
        assert connector.get_column_info(mock.MagicMock(), "public", []) == {}
    run.assert_not_called()


def test_get_table_columns_marks_keys_and_keeps_order():
    data = pd.DataFrame(
        {
            "table_name": ["customers", "orders", "orders"],
            "column_name": ["id", "id", "customer_id"],
            "data_type": ["integer", "integer", "integer"],
            "is_pk": [True, True, False],
        }
    )
    with mock.patch.object(connector, "_execute_query_to_pandas", return_value=data):
        tables = connector.get_table_columns(
            mock.MagicMock(), "public", ["orders", "customers", "audit_log"], [ORDERS_CUSTOMER]
        )

    assert [table.name for table in tables] == ["orders", "customers", "audit_log"]
    orders = tables[0]
    assert [column.name for column in orders.columns] == ["id", "customer_id"]
    assert orders.columns[0].is_primary_key and not orders.columns[0].is_foreign_key
    assert orders.columns[1].is_foreign_key and not orders.columns[1].is_primary_key
    assert tables[2].columns == ()
