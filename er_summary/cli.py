"""Command line entry point: ``er-summary --tables orders,customers``."""

from __future__ import annotations

import shlex
import sys
from typing import Annotated, List, Optional

import typer
from loguru import logger

from er_summary.diagram.mermaid import generate_mermaid_diagram
from er_summary.postgres_utils import env_vars
from er_summary.postgres_utils.utils import postgres_connection, split_table_list
from er_summary.relationships import GraphConstructionError, discover_relationships_from_schema

app = typer.Typer(
    name="er-summary",
    help="Render a simplified Mermaid ER diagram for a subset of PostgreSQL tables.",
    add_completion=False,
)


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def _command_line(argv: Optional[List[str]] = None) -> str:
    return " ".join(shlex.quote(arg) for arg in (argv if argv is not None else sys.argv))


@app.command()
def main(
    tables: Annotated[
        str, typer.Option("--tables", "-t", help="Comma-separated list of tables")
    ] = "",
    conn: Annotated[
        Optional[str],
        typer.Option("--conn", "-c", help="PostgreSQL connection string (env: ERSUMMARY_CONN)"),
    ] = None,
    schema: Annotated[
        Optional[str], typer.Option("--schema", "-s", help="Database schema")
    ] = None,
    show_columns: Annotated[
        bool, typer.Option("--show-columns", help="Show table columns in the diagram")
    ] = False,
    workers: Annotated[
        Optional[int], typer.Option("--workers", min=1, help="Threads used to evaluate table pairs")
    ] = None,
    log_level: Annotated[
        Optional[str], typer.Option("--log-level", help="Log level written to stderr")
    ] = None,
) -> None:
    """Print a Mermaid erDiagram relating the selected tables."""
    config = env_vars.build_base_connection_config()
    _configure_logging(log_level or str(config["log_level"]))

    conn_str = conn or str(config["conn"])
    table_names = split_table_list(tables)
    if not conn_str or not table_names:
        typer.echo("Connection string and tables list are required", err=True)
        raise typer.Exit(code=1)

    schema_name = schema or str(config["schema"])
    max_workers = workers or int(config["max_workers"])

    try:
        with postgres_connection(conn_str) as connection:
            result = discover_relationships_from_schema(
                connection,
                schema_name,
                table_names,
                show_columns=show_columns,
                max_workers=max_workers,
            )
    except GraphConstructionError as exc:
        logger.error("Unable to build relationship graph: {}", exc)
        raise typer.Exit(code=2)
    except Exception as exc:
        logger.error("Error fetching schema metadata: {}", exc)
        raise typer.Exit(code=1)

    logger.info(
        "Found {} relationships between {} tables in {} ms",
        result.summary.total_relationships_found,
        result.summary.total_tables,
        result.summary.processing_time_ms,
    )
    typer.echo(generate_mermaid_diagram(result.tables, result.relationships, _command_line()), nl=False)


if __name__ == "__main__":  # pragma: no cover
    app()
