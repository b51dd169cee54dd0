"""Path selection between two focus tables.

Both resolvers work on the inverted graph, where a path ``X -> ... -> Y``
means ``Y`` reaches ``X`` through a chain of foreign keys.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, List, Optional, Sequence, Tuple

from loguru import logger

from er_summary.relationships.graph import TableIndex
from er_summary.relationships.paths import PathIndex


@dataclass(frozen=True)
class CommonAncestor:
    """A connector table and the two half-paths leading to it."""

    table: str
    path_from_a: Tuple[str, ...]
    path_from_b: Tuple[str, ...]
    total_distance: float

    @property
    def path_to_a(self) -> Tuple[str, ...]:
        """Half-path in true FK direction (connector first)."""
        return tuple(reversed(self.path_from_a))

    @property
    def path_to_b(self) -> Tuple[str, ...]:
        return tuple(reversed(self.path_from_b))


def is_valid_path(path: Sequence[str], focus: AbstractSet[str]) -> bool:
    """A path is valid when no focus table sits strictly between its endpoints."""
    return not any(table in focus for table in path[1:-1])


def find_common_ancestor(
    table_a: str,
    table_b: str,
    index: TableIndex,
    path_index: PathIndex,
    focus: AbstractSet[str],
) -> Optional[CommonAncestor]:
    """
    Find the nearest table outside ``focus`` with FK chains to both tables.

    Candidates whose half-paths pass through another focus table are
    rejected. The smallest combined distance wins; equal distances are
    broken by table name so results do not depend on metadata ordering.
    """

    node_a = index.get_id(table_a)
    node_b = index.get_id(table_b)
    if node_a is None or node_b is None:
        return None

    best: Optional[CommonAncestor] = None
    for candidate, node_c in index.items():
        if candidate in focus:
            continue
        if not (path_index.has_path(node_a, node_c) and path_index.has_path(node_b, node_c)):
            continue

        path_from_a = path_index.table_path(node_a, node_c)
        path_from_b = path_index.table_path(node_b, node_c)
        if not (is_valid_path(path_from_a, focus) and is_valid_path(path_from_b, focus)):
            logger.debug(
                "Rejecting connector {} for {}/{}: path crosses another focus table",
                candidate,
                table_a,
                table_b,
            )
            continue

        total = path_index.distance(node_a, node_c) + path_index.distance(node_b, node_c)
        if best is None or (total, candidate) < (best.total_distance, best.table):
            best = CommonAncestor(
                table=candidate,
                path_from_a=tuple(path_from_a),
                path_from_b=tuple(path_from_b),
                total_distance=total,
            )

    return best


def _try_direction(
    source: int,
    target: int,
    path_index: PathIndex,
    focus: AbstractSet[str],
) -> Optional[List[str]]:
    path = path_index.table_path(source, target)
    if not path or not is_valid_path(path, focus):
        return None
    return list(reversed(path))


def find_direct_path(
    table_a: str,
    table_b: str,
    index: TableIndex,
    path_index: PathIndex,
    focus: AbstractSet[str],
) -> Optional[List[str]]:
    """
    Return an FK chain between the two tables, oriented child -> parent.

    ``A`` depending on ``B`` is tried first, then the converse.
    """

    node_a = index.get_id(table_a)
    node_b = index.get_id(table_b)
    if node_a is None or node_b is None:
        return None

    return _try_direction(node_b, node_a, path_index, focus) or _try_direction(
        node_a, node_b, path_index, focus
    )
