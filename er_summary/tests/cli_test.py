from contextlib import contextmanager
from unittest import mock

import pytest
from typer.testing import CliRunner

from er_summary import cli
from er_summary.data_processing.data_types import Cardinality, Relationship, Table
from er_summary.relationships import NegativeCycleError
from er_summary.relationships.discovery import RelationshipDiscoveryResult, RelationshipSummary

runner = CliRunner()

BASE_CONFIG = {"conn": "", "schema": "public", "max_workers": 1, "log_level": "WARNING"}


@pytest.fixture(autouse=True)
def quiet_cli():
    with mock.patch.object(cli, "_configure_logging"), mock.patch.object(
        cli.env_vars, "build_base_connection_config", return_value=dict(BASE_CONFIG)
    ):
        yield


@pytest.fixture
def fake_connection():
    connection = mock.MagicMock()

    @contextmanager
    def _connect(conn_str):
        yield connection

    with mock.patch.object(cli, "postgres_connection", side_effect=_connect) as patched:
        yield patched, connection


def _result() -> RelationshipDiscoveryResult:
    orders, customers = Table("orders"), Table("customers")
    return RelationshipDiscoveryResult(
        relationships=[
            Relationship(
                orders,
                customers,
                Cardinality.REQUIRED_MANY,
                Cardinality.EXACTLY_ONE,
                ("orders", "customers"),
            )
        ],
        tables=[orders, customers],
        summary=RelationshipSummary(
            total_tables=2,
            total_foreign_keys=1,
            total_graph_tables=2,
            total_relationships_found=1,
            processing_time_ms=3,
        ),
    )


def test_cli_prints_diagram(fake_connection):
    patched_connect, connection = fake_connection
    with mock.patch.object(
        cli, "discover_relationships_from_schema", return_value=_result()
    ) as discover:
        result = runner.invoke(
            cli.app,
            ["--conn", "postgresql://localhost/shop", "--tables", "orders, customers", "--show-columns"],
        )

    assert result.exit_code == 0
    assert "erDiagram" in result.stdout
    assert 'orders }|--|| customers : ""' in result.stdout
    patched_connect.assert_called_once_with("postgresql://localhost/shop")
    discover.assert_called_once_with(
        connection,
        "public",
        ["orders", "customers"],
        show_columns=True,
        max_workers=1,
    )


def test_cli_options_override_environment(fake_connection):
    with mock.patch.object(
        cli, "discover_relationships_from_schema", return_value=_result()
    ) as discover:
        result = runner.invoke(
            cli.app,
            [
                "--conn",
                "postgresql://localhost/shop",
                "--tables",
                "orders,customers",
                "--schema",
                "sales",
                "--workers",
                "3",
            ],
        )

    assert result.exit_code == 0
    assert discover.call_args.args[1] == "sales"
    assert discover.call_args.kwargs["max_workers"] == 3


def test_cli_requires_connection_and_tables():
    result = runner.invoke(cli.app, ["--tables", "orders"])
    assert result.exit_code == 1

    result = runner.invoke(cli.app, ["--conn", "postgresql://localhost/shop"])
    assert result.exit_code == 1


def test_cli_reports_graph_failures(fake_connection):
    with mock.patch.object(
        cli, "discover_relationships_from_schema", side_effect=NegativeCycleError("cycle")
    ):
        result = runner.invoke(
            cli.app, ["--conn", "postgresql://localhost/shop", "--tables", "orders,customers"]
        )

    assert result.exit_code == 2


def test_cli_reports_metadata_failures(fake_connection):
    with mock.patch.object(
        cli, "discover_relationships_from_schema", side_effect=RuntimeError("permission denied")
    ):
        result = runner.invoke(
            cli.app, ["--conn", "postgresql://localhost/shop", "--tables", "orders,customers"]
        )

    assert result.exit_code == 1
