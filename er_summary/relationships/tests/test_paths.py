from __future__ import annotations

import math

import pytest

from er_summary.data_processing.data_types import ForeignKey
from er_summary.relationships import paths
from er_summary.relationships.graph import GraphConstructionError, build_relationship_graph
from er_summary.relationships.paths import NegativeCycleError, PathIndex


def _chain():
    # region <- nation <- customer, declared child first.
    return build_relationship_graph(
        [
            ForeignKey("nation", "region_id", "region", "id", "nation_region_fkey"),
            ForeignKey("customer", "nation_id", "nation", "id", "customer_nation_fkey"),
        ]
    )


def test_paths_follow_inverted_edges() -> None:
    graph, index = _chain()
    path_index = PathIndex.build(graph)

    region, customer = index["region"], index["customer"]
    assert path_index.table_path(region, customer) == ["region", "nation", "customer"]
    assert path_index.distance(region, customer) == 2
    assert path_index.has_path(region, customer)


def test_unreachable_pairs_have_no_path() -> None:
    graph, index = _chain()
    path_index = PathIndex.build(graph)

    customer, region = index["customer"], index["region"]
    assert not path_index.has_path(customer, region)
    assert math.isinf(path_index.distance(customer, region))
    assert path_index.path(customer, region) == []


def test_path_to_self_is_single_node() -> None:
    graph, index = _chain()
    path_index = PathIndex.build(graph)

    nation = index["nation"]
    assert path_index.path(nation, nation) == [nation]
    assert path_index.distance(nation, nation) == 0


def test_shortest_path_is_chosen() -> None:
    graph, index = build_relationship_graph(
        [
            ForeignKey("b", "a_id", "a", "id", "b_a"),
            ForeignKey("c", "b_id", "b", "id", "c_b"),
            ForeignKey("d", "c_id", "c", "id", "d_c"),
            ForeignKey("d", "a_id", "a", "id", "d_a"),
        ]
    )
    path_index = PathIndex.build(graph)

    assert path_index.table_path(index["a"], index["d"]) == ["a", "d"]


def test_negative_cycle_is_reported(monkeypatch: pytest.MonkeyPatch) -> None:
    graph, _ = build_relationship_graph([ForeignKey("b", "a_id", "a", "id", "b_a")])

    def _fake_floyd_warshall(digraph, weight="weight"):
        return {}, {0: {0: -1.0, 1: 1.0}, 1: {1: 0.0}}

    monkeypatch.setattr(
        paths.nx, "floyd_warshall_predecessor_and_distance", _fake_floyd_warshall
    )

    with pytest.raises(NegativeCycleError) as excinfo:
        PathIndex.build(graph)
    assert isinstance(excinfo.value, GraphConstructionError)
    assert "'a'" in str(excinfo.value)
