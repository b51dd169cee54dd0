from __future__ import annotations

import math
from typing import Dict, List, Mapping

import networkx as nx
from loguru import logger

from er_summary.relationships.graph import GraphConstructionError, RelationshipGraph


class NegativeCycleError(GraphConstructionError):
    """Floyd-Warshall produced a negative distance from a node to itself."""


class PathIndex:
    """
    All-pairs shortest paths over the relationship graph.

    Built once with Floyd-Warshall (O(V^3) time, O(V^2) space) and read-only
    afterwards, so it can be shared by concurrent pair evaluations.
    """

    def __init__(
        self,
        graph: RelationshipGraph,
        predecessors: Mapping[int, Mapping[int, int]],
        distances: Mapping[int, Mapping[int, float]],
    ):
        self._graph = graph
        self._predecessors = predecessors
        self._distances = distances

    @classmethod
    def build(cls, graph: RelationshipGraph) -> "PathIndex":
        digraph = graph.to_networkx()
        predecessors, raw_distances = nx.floyd_warshall_predecessor_and_distance(
            digraph, weight="weight"
        )

        distances: Dict[int, Dict[int, float]] = {}
        for source, row in raw_distances.items():
            distances[source] = dict(row)
            if row[source] < 0:
                raise NegativeCycleError(
                    f"Negative cycle detected through table {graph.table_name(source)!r}"
                )

        logger.debug("Computed all-pairs paths for {} tables", graph.node_count)
        return cls(
            graph,
            {source: dict(row) for source, row in predecessors.items()},
            distances,
        )

    def distance(self, source: int, target: int) -> float:
        if source == target:
            return 0.0
        return self._distances.get(source, {}).get(target, math.inf)

    def has_path(self, source: int, target: int) -> bool:
        return not math.isinf(self.distance(source, target))

    def path(self, source: int, target: int) -> List[int]:
        """Node ids from ``source`` to ``target`` inclusive; empty when unreachable."""
        if source == target:
            return [source]
        if not self.has_path(source, target):
            return []
        return nx.reconstruct_path(source, target, self._predecessors)

    def table_path(self, source: int, target: int) -> List[str]:
        return [self._graph.table_name(node_id) for node_id in self.path(source, target)]
