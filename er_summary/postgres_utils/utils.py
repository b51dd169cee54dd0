from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator, Iterable, List

import psycopg2
from loguru import logger


def normalize_identifier(value: Any) -> str:
    """
    Strips outer double quotes and surrounding whitespace from an identifier.
    Returns an empty string when the identifier is missing.
    """

    if value is None:
        return ""
    text = str(value).strip()
    if len(text) >= 2 and text[0] == text[-1] == '"':
        return text[1:-1]
    return text


def split_table_list(tables: str | Iterable[str]) -> List[str]:
    """
    Turns ``"orders, customers"`` (or an iterable of names) into a list of
    normalized table names, dropping blanks and repeats while keeping order.
    """

    raw = tables.split(",") if isinstance(tables, str) else list(tables)
    names: List[str] = []
    for item in raw:
        name = normalize_identifier(item)
        if name and name not in names:
            names.append(name)
    return names


def create_connection(conn_str: str) -> Any:
    """Opens a psycopg2 connection and verifies it with a round trip."""

    if not conn_str:
        raise ValueError("A PostgreSQL connection string is required")
    connection = psycopg2.connect(conn_str)
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except Exception:
        connection.close()
        raise
    logger.debug("Connected to PostgreSQL")
    return connection


@contextmanager
def postgres_connection(conn_str: str) -> Generator[Any, None, None]:
    """
    Context manager that yields a PostgreSQL connection and ensures it is closed.
    """

    connection = create_connection(conn_str)
    try:
        yield connection
    finally:
        connection.close()
