from __future__ import annotations

import concurrent.futures
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from er_summary.data_processing.data_types import ColumnInfo, ForeignKey, Relationship, Table
from er_summary.postgres_utils.postgres_connector import (
    filter_foreign_keys,
    get_all_foreign_keys,
    get_column_info,
    get_table_columns,
)
from er_summary.postgres_utils.utils import split_table_list
from er_summary.relationships.cardinality import (
    ForeignKeyLookup,
    build_foreign_key_lookup,
    combine_through_ancestor,
    path_cardinality,
)
from er_summary.relationships.graph import TableIndex, build_relationship_graph
from er_summary.relationships.paths import PathIndex
from er_summary.relationships.resolvers import find_common_ancestor, find_direct_path

DEFAULT_MAX_WORKERS = 1


@dataclass
class RelationshipSummary:
    total_tables: int
    total_foreign_keys: int
    total_graph_tables: int
    total_relationships_found: int
    processing_time_ms: int
    missing_tables: List[str] = field(default_factory=list)
    notes: Optional[str] = None


@dataclass
class RelationshipDiscoveryResult:
    relationships: List[Relationship]
    tables: List[Table]
    summary: RelationshipSummary


@dataclass(frozen=True)
class _InferenceContext:
    index: TableIndex
    path_index: PathIndex
    focus: frozenset
    fk_lookup: ForeignKeyLookup
    column_info: Mapping[str, ColumnInfo]
    schema: str


def _resolve_pair(context: _InferenceContext, table_a: str, table_b: str) -> Optional[Relationship]:
    ancestor = find_common_ancestor(
        table_a, table_b, context.index, context.path_index, context.focus
    )
    if ancestor is not None:
        logger.debug(
            "{} and {} connect through {} (distance {})",
            table_a,
            table_b,
            ancestor.table,
            ancestor.total_distance,
        )
        return combine_through_ancestor(
            ancestor.table,
            table_a,
            table_b,
            ancestor.path_to_a,
            ancestor.path_to_b,
            context.fk_lookup,
            context.column_info,
            context.schema,
        )

    path = find_direct_path(table_a, table_b, context.index, context.path_index, context.focus)
    if path is None:
        logger.debug("No relationship between {} and {}", table_a, table_b)
        return None
    return path_cardinality(path, context.fk_lookup, context.column_info, context.schema)


def infer_relationships(
    foreign_keys: Sequence[ForeignKey],
    column_info: Mapping[str, ColumnInfo],
    focus_tables: Iterable[str],
    *,
    schema: str = "public",
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> List[Relationship]:
    """
    Infer one relationship per pair of focus tables from whole-schema FK metadata.

    Pairs are related through the nearest connector table outside the focus
    set when one exists, otherwise through a direct FK chain. Pairs whose only
    connection crosses another focus table yield nothing.
    """

    focus = split_table_list(focus_tables)
    if not foreign_keys or len(focus) < 2:
        return []

    graph, index = build_relationship_graph(foreign_keys)
    path_index = PathIndex.build(graph)

    for table in focus:
        if table not in index:
            logger.warning("Table '{}' has no foreign keys; it will have no relationships", table)

    context = _InferenceContext(
        index=index,
        path_index=path_index,
        focus=frozenset(focus),
        fk_lookup=build_foreign_key_lookup(foreign_keys),
        column_info=column_info,
        schema=schema,
    )

    pairs: List[Tuple[str, str]] = [
        (table_a, table_b)
        for i, table_a in enumerate(focus)
        for table_b in focus[i + 1 :]
        if table_a in index and table_b in index
    ]

    if max_workers <= 1 or len(pairs) <= 1:
        results = [_resolve_pair(context, table_a, table_b) for table_a, table_b in pairs]
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_index = {
                executor.submit(_resolve_pair, context, table_a, table_b): idx
                for idx, (table_a, table_b) in enumerate(pairs)
            }
            ordered: Dict[int, Optional[Relationship]] = {}
            for future in concurrent.futures.as_completed(future_to_index):
                ordered[future_to_index[future]] = future.result()
            results = [ordered[i] for i in sorted(ordered)]

    return [relationship for relationship in results if relationship is not None]


def discover_relationships(
    foreign_keys: Sequence[ForeignKey],
    column_info: Mapping[str, ColumnInfo],
    focus_tables: Iterable[str],
    *,
    schema: str = "public",
    tables: Optional[Sequence[Table]] = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> RelationshipDiscoveryResult:
    """
    Run relationship inference on pre-fetched metadata.

    ``tables`` optionally supplies column-level Table records; otherwise the
    focus tables are reported by name and schema only.
    """
    start = time.perf_counter()
    focus = split_table_list(focus_tables)

    relationships = infer_relationships(
        foreign_keys,
        column_info,
        focus,
        schema=schema,
        max_workers=max_workers,
    )

    graph_tables = {fk.from_table for fk in foreign_keys} | {fk.to_table for fk in foreign_keys}
    missing = [name for name in focus if name not in graph_tables]
    notes: List[str] = []
    if missing:
        notes.append(f"No foreign keys reference: {', '.join(missing)}.")

    if tables is None:
        table_records = [Table(name=name, schema=schema) for name in focus]
    else:
        by_name = {table.name: table for table in tables}
        table_records = [by_name.get(name, Table(name=name, schema=schema)) for name in focus]

    end = time.perf_counter()
    summary = RelationshipSummary(
        total_tables=len(focus),
        total_foreign_keys=len(foreign_keys),
        total_graph_tables=len(graph_tables),
        total_relationships_found=len(relationships),
        processing_time_ms=int((end - start) * 1000),
        missing_tables=missing,
        notes=" ".join(notes) if notes else None,
    )

    return RelationshipDiscoveryResult(
        relationships=relationships,
        tables=table_records,
        summary=summary,
    )


def discover_relationships_from_schema(
    connection: Any,
    schema: str,
    table_names: Sequence[str] | str,
    *,
    show_columns: bool = False,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> RelationshipDiscoveryResult:
    """
    Fetch FK metadata for the whole of ``schema`` and relate ``table_names``.
    """
    focus = split_table_list(table_names)
    if not focus:
        raise ValueError("At least one table name is required")

    foreign_keys = get_all_foreign_keys(connection, schema)
    column_info = get_column_info(connection, schema, foreign_keys)

    tables: Optional[List[Table]] = None
    if show_columns:
        selected_foreign_keys = filter_foreign_keys(foreign_keys, focus)
        tables = get_table_columns(connection, schema, focus, selected_foreign_keys)

    return discover_relationships(
        foreign_keys,
        column_info,
        focus,
        schema=schema,
        tables=tables,
        max_workers=max_workers,
    )
