"""Directed table graph built from foreign-key metadata.

Edges run parent -> child, the opposite of FK declaration order, so that
reachability from a table answers "which tables depend on it, directly or
through a chain of FKs".
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import FrozenSet, Iterable, Iterator, List, Mapping, Optional, Set, Tuple

import networkx as nx
from loguru import logger

from er_summary.data_processing.data_types import ForeignKey


class GraphConstructionError(Exception):
    """Raised when the FK graph cannot be built or analysed."""


class TableIndex(Mapping[str, int]):
    """Immutable table name -> node id lookup."""

    def __init__(self, tables: Iterable[str]):
        self._ids: Mapping[str, int] = MappingProxyType(
            {name: node_id for node_id, name in enumerate(tables)}
        )

    def __getitem__(self, table: str) -> int:
        return self._ids[table]

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def get_id(self, table: str) -> Optional[int]:
        return self._ids.get(table)

    def __repr__(self) -> str:
        return f"TableIndex({dict(self._ids)!r})"


@dataclass(frozen=True)
class RelationshipGraph:
    tables: Tuple[str, ...]
    edges: FrozenSet[Tuple[int, int]]

    @property
    def node_count(self) -> int:
        return len(self.tables)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    def table_name(self, node_id: int) -> str:
        return self.tables[node_id]

    def to_networkx(self) -> nx.DiGraph:
        graph = nx.DiGraph()
        for node_id, name in enumerate(self.tables):
            graph.add_node(node_id, name=name)
        # Sorted so that path tie-breaking does not depend on set ordering.
        for parent, child in sorted(self.edges):
            graph.add_edge(parent, child, weight=1)
        return nx.freeze(graph)


def _require_name(value: str, fk: ForeignKey, field_name: str) -> str:
    name = (value or "").strip()
    if not name:
        raise GraphConstructionError(
            f"Foreign key {fk.constraint_name or '<unnamed>'} has an empty {field_name}"
        )
    return name


def build_relationship_graph(
    foreign_keys: Iterable[ForeignKey],
) -> Tuple[RelationshipGraph, TableIndex]:
    """
    Build the inverted FK graph for a whole schema.

    Every table named by any constraint becomes exactly one node, including
    tables that only appear in a self-reference. Self-references add no edge,
    and repeated constraints between the same ordered pair collapse to one.
    """

    names: Set[str] = set()
    pairs: List[Tuple[str, str]] = []
    for fk in foreign_keys:
        child = _require_name(fk.from_table, fk, "from_table")
        parent = _require_name(fk.to_table, fk, "to_table")
        names.update((child, parent))
        if fk.is_self_reference:
            logger.debug("Skipping self-reference {} on {}", fk.constraint_name, child)
            continue
        pairs.append((parent, child))

    # Node ids follow table name order so path ties never depend on row order.
    tables = tuple(sorted(names))
    index = TableIndex(tables)
    edges: Set[Tuple[int, int]] = {(index[parent], index[child]) for parent, child in pairs}
    graph = RelationshipGraph(tables=tables, edges=frozenset(edges))

    logger.debug(
        "Built relationship graph with {} tables and {} edges",
        graph.node_count,
        graph.edge_count,
    )
    return graph, index
