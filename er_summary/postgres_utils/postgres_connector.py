from __future__ import annotations

import time
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd
from loguru import logger

from er_summary.data_processing.data_types import Column, ColumnInfo, ForeignKey, Table

_FROM_TABLE_COL = "from_table"
_FROM_COLUMN_COL = "from_column"
_TO_TABLE_COL = "to_table"
_TO_COLUMN_COL = "to_column"
_CONSTRAINT_NAME_COL = "constraint_name"
_TABLE_COLUMN_COL = "table_column"
_IS_NULLABLE_COL = "is_nullable"
_HAS_UNIQUE_COL = "has_unique_constraint"
_TABLE_NAME_COL = "table_name"
_COLUMN_NAME_COL = "column_name"
_DATATYPE_COL = "data_type"
_IS_PRIMARY_KEY_COL = "is_pk"

_FOREIGN_KEYS_QUERY = """
SELECT
    tc.table_name AS from_table,
    kcu.column_name AS from_column,
    ccu.table_name AS to_table,
    ccu.column_name AS to_column,
    tc.constraint_name AS constraint_name
FROM information_schema.table_constraints AS tc
JOIN information_schema.key_column_usage AS kcu
  ON tc.constraint_name = kcu.constraint_name
 AND tc.table_schema = kcu.table_schema
JOIN information_schema.constraint_column_usage AS ccu
  ON ccu.constraint_name = tc.constraint_name
 AND ccu.table_schema = tc.table_schema
WHERE tc.constraint_type = 'FOREIGN KEY'
  AND tc.table_schema = %(schema)s
ORDER BY tc.table_name, kcu.column_name, tc.constraint_name
"""

# A column only counts as unique when it is the sole member of the constraint.
_COLUMN_INFO_QUERY = """
WITH fk_columns AS (
    SELECT t.table_name, t.column_name, t.table_name || '.' || t.column_name AS table_column
    FROM unnest(%(tables)s::text[], %(columns)s::text[]) AS t(table_name, column_name)
)
SELECT
    fk.table_column AS table_column,
    c.is_nullable = 'YES' AS is_nullable,
    EXISTS (
        SELECT 1
        FROM information_schema.table_constraints tc
        JOIN information_schema.key_column_usage kcu
          ON tc.constraint_name = kcu.constraint_name
         AND tc.table_schema = kcu.table_schema
        WHERE tc.table_schema = %(schema)s
          AND tc.table_name = fk.table_name
          AND kcu.column_name = fk.column_name
          AND tc.constraint_type IN ('PRIMARY KEY', 'UNIQUE')
          AND NOT EXISTS (
              SELECT 1
              FROM information_schema.key_column_usage kcu2
              WHERE kcu2.constraint_name = tc.constraint_name
                AND kcu2.table_schema = tc.table_schema
                AND kcu2.column_name <> fk.column_name
          )
    ) AS has_unique_constraint
FROM fk_columns fk
JOIN information_schema.columns c
  ON c.table_schema = %(schema)s
 AND c.table_name = fk.table_name
 AND c.column_name = fk.column_name
"""

_TABLE_COLUMNS_QUERY = """
SELECT
    c.table_name AS table_name,
    c.column_name AS column_name,
    c.data_type AS data_type,
    COALESCE(bool_or(tc.constraint_type = 'PRIMARY KEY'), false) AS is_pk
FROM information_schema.columns c
LEFT JOIN information_schema.key_column_usage kcu
  ON c.table_schema = kcu.table_schema
 AND c.table_name = kcu.table_name
 AND c.column_name = kcu.column_name
LEFT JOIN information_schema.table_constraints tc
  ON kcu.constraint_name = tc.constraint_name
 AND kcu.table_schema = tc.table_schema
 AND tc.constraint_type = 'PRIMARY KEY'
WHERE c.table_schema = %(schema)s
  AND c.table_name = ANY(%(tables)s)
GROUP BY c.table_name, c.column_name, c.data_type, c.ordinal_position
ORDER BY c.table_name, c.ordinal_position
"""


def _execute_query_to_pandas(
    connection: Any, query: str, params: Optional[Dict[str, Any]] = None
) -> pd.DataFrame:
    """
    Executes a SQL query with bound parameters on a DB-API connection and
    returns the rows as a pandas DataFrame.
    """

    logger.debug("Executing query: {}", query)

    cursor = connection.cursor()
    try:
        cursor.execute(query, params or {})
        rows = cursor.fetchall()
        columns = [col[0] for col in cursor.description or []]
    finally:
        cursor.close()
    return pd.DataFrame(rows, columns=columns)


def _value_is_true(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"true", "t", "yes", "1"}
    if value is None or pd.isna(value):
        return False
    return bool(value)


def _require_columns(df: pd.DataFrame, columns: Sequence[str], what: str) -> None:
    missing = [col for col in columns if col not in df.columns]
    if missing:
        raise KeyError(f"Expected columns {missing} in {what} result")


def get_all_foreign_keys(connection: Any, schema: str) -> List[ForeignKey]:
    """Every single-column FK in ``schema``; the whole schema, not just focus tables."""

    logger.info("Fetching all foreign keys from schema '{}'...", schema)
    start = time.perf_counter()
    df = _execute_query_to_pandas(connection, _FOREIGN_KEYS_QUERY, {"schema": schema})
    if df.empty:
        logger.warning("No foreign keys found in schema '{}'", schema)
        return []

    _require_columns(
        df,
        [_FROM_TABLE_COL, _FROM_COLUMN_COL, _TO_TABLE_COL, _TO_COLUMN_COL, _CONSTRAINT_NAME_COL],
        "foreign key",
    )
    foreign_keys = [
        ForeignKey(
            from_table=str(row[_FROM_TABLE_COL]),
            from_column=str(row[_FROM_COLUMN_COL]),
            to_table=str(row[_TO_TABLE_COL]),
            to_column=str(row[_TO_COLUMN_COL]),
            constraint_name=str(row[_CONSTRAINT_NAME_COL]),
        )
        for _, row in df.iterrows()
    ]
    logger.info(
        "Found {} foreign keys in schema '{}' (took {:.3f}s)",
        len(foreign_keys),
        schema,
        time.perf_counter() - start,
    )
    return foreign_keys


def filter_foreign_keys(foreign_keys: Iterable[ForeignKey], tables: Iterable[str]) -> List[ForeignKey]:
    """Constraints whose both ends are in ``tables``."""

    table_set = set(tables)
    all_keys = list(foreign_keys)
    filtered = [
        fk for fk in all_keys if fk.from_table in table_set and fk.to_table in table_set
    ]
    logger.info(
        "Filtered {} foreign keys for selected tables (from {} total)",
        len(filtered),
        len(all_keys),
    )
    return filtered


def get_column_info(
    connection: Any, schema: str, foreign_keys: Sequence[ForeignKey]
) -> Dict[str, ColumnInfo]:
    """Nullability and sole-uniqueness of every FK source column, keyed by ``table.column``."""

    if not foreign_keys:
        return {}

    tables = [fk.from_table for fk in foreign_keys]
    columns = [fk.from_column for fk in foreign_keys]
    logger.info("Fetching column info for {} foreign key columns...", len(foreign_keys))
    start = time.perf_counter()
    df = _execute_query_to_pandas(
        connection,
        _COLUMN_INFO_QUERY,
        {"schema": schema, "tables": tables, "columns": columns},
    )

    column_info: Dict[str, ColumnInfo] = {}
    if not df.empty:
        _require_columns(df, [_TABLE_COLUMN_COL, _IS_NULLABLE_COL, _HAS_UNIQUE_COL], "column info")
        for _, row in df.iterrows():
            column_info[str(row[_TABLE_COLUMN_COL])] = ColumnInfo(
                is_nullable=_value_is_true(row[_IS_NULLABLE_COL]),
                has_sole_unique_constraint=_value_is_true(row[_HAS_UNIQUE_COL]),
            )

    logger.info(
        "Retrieved column info for {} columns (took {:.3f}s)",
        len(column_info),
        time.perf_counter() - start,
    )
    return column_info


def get_table_columns(
    connection: Any,
    schema: str,
    tables: Sequence[str],
    foreign_keys: Iterable[ForeignKey],
) -> List[Table]:
    """
    Column details for ``tables`` in ordinal order. Tables without any
    column rows are still returned, with no columns.
    """

    fk_columns = {fk.source_column_key for fk in foreign_keys}
    logger.info("Fetching table columns for: {}", ", ".join(tables))
    start = time.perf_counter()
    df = _execute_query_to_pandas(
        connection, _TABLE_COLUMNS_QUERY, {"schema": schema, "tables": list(tables)}
    )

    columns_by_table: Dict[str, List[Column]] = {name: [] for name in tables}
    if not df.empty:
        _require_columns(
            df, [_TABLE_NAME_COL, _COLUMN_NAME_COL, _DATATYPE_COL, _IS_PRIMARY_KEY_COL], "table columns"
        )
        for _, row in df.iterrows():
            table_name = str(row[_TABLE_NAME_COL])
            if table_name not in columns_by_table:
                continue
            column_name = str(row[_COLUMN_NAME_COL])
            columns_by_table[table_name].append(
                Column(
                    name=column_name,
                    data_type=str(row[_DATATYPE_COL]),
                    is_primary_key=_value_is_true(row[_IS_PRIMARY_KEY_COL]),
                    is_foreign_key=f"{table_name}.{column_name}" in fk_columns,
                )
            )

    for name, columns in columns_by_table.items():
        if not columns:
            logger.warning("No column metadata found for table '{}' in schema '{}'", name, schema)

    result = [
        Table(name=name, schema=schema, columns=tuple(columns_by_table[name]))
        for name in tables
    ]
    logger.info(
        "Retrieved column details for {} tables (took {:.3f}s)",
        len(result),
        time.perf_counter() - start,
    )
    return result
