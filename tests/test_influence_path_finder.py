import pytest

from engine.config import PathfinderConfig
from engine.graph_snapshot import build_snapshot
from engine.influence_path_finder import InfluencePathFinder
from models.enums import RelationType
from models.snapshot import Edge, Node


def _nodes(*ids):
    return [Node(id=i, name=i.upper()) for i in ids]


def _edge(edge_id, source, target, impact=0.9, certainty=0.8, relation=RelationType.DIRECT_CONTROL):
    return Edge(
        id=edge_id,
        source_id=source,
        target_id=target,
        relation_type=relation,
        certainty=certainty,
        impact_factor=impact,
    )


class _FakeClock:
    def __init__(self, step):
        self.now = 0.0
        self.step = step

    def __call__(self):
        self.now += self.step
        return self.now


def test_single_edge_produces_one_path():
    snapshot = build_snapshot(_nodes("a", "t"), [_edge("e1", "a", "t", impact=0.8, certainty=0.9)])

    result = InfluencePathFinder().find_paths(snapshot, "t")

    assert len(result.paths) == 1
    path = result.paths[0]
    assert path.node_ids == ("a", "t")
    assert path.total_strength == pytest.approx(0.8)
    assert path.certainty == pytest.approx(0.9)
    assert path.depth == 1
    assert not path.is_feedback_loop
    assert not result.truncated


def test_multi_hop_strength_is_product_and_certainty_is_mean():
    snapshot = build_snapshot(
        _nodes("a", "b", "t"),
        [_edge("e1", "a", "b", impact=0.5, certainty=0.6), _edge("e2", "b", "t", impact=0.8, certainty=1.0)],
    )

    paths = InfluencePathFinder().find_paths(snapshot, "t").paths

    assert [p.node_ids for p in paths] == [("b", "t"), ("a", "b", "t")]
    assert paths[1].total_strength == pytest.approx(0.4)
    assert paths[1].certainty == pytest.approx(0.8)
    assert paths[1].relation_types == (RelationType.DIRECT_CONTROL, RelationType.DIRECT_CONTROL)


def test_three_node_cycle_yields_exactly_one_loop_path():
    snapshot = build_snapshot(
        _nodes("a", "b", "c"),
        [_edge("ab", "a", "b"), _edge("bc", "b", "c"), _edge("ca", "c", "a")],
    )

    paths = InfluencePathFinder().find_paths(snapshot, "a").paths

    loops = [p for p in paths if p.is_feedback_loop]
    assert len(loops) == 1
    assert loops[0].node_ids == ("a", "b", "c", "a")
    assert loops[0].influencer_id == "a"


def test_paths_below_threshold_are_pruned():
    snapshot = build_snapshot(
        _nodes("a", "b", "t"),
        [_edge("e1", "a", "b", impact=0.2), _edge("e2", "b", "t", impact=0.4)],
    )

    paths = InfluencePathFinder().find_paths(snapshot, "t").paths

    # 0.4 * 0.2 = 0.08 < 0.1
    assert [p.node_ids for p in paths] == [("b", "t")]


def test_depth_never_exceeds_max_depth():
    ids = [f"n{i}" for i in range(8)]
    edges = [_edge(f"e{i}", ids[i], ids[i + 1], impact=1.0) for i in range(7)]
    snapshot = build_snapshot(_nodes(*ids), edges)

    paths = InfluencePathFinder(PathfinderConfig(max_depth=3)).find_paths(snapshot, "n7").paths

    assert max(p.depth for p in paths) == 3
    assert len(paths) == 3


def test_path_count_is_capped_and_flagged():
    sources = [f"s{i}" for i in range(20)]
    edges = [_edge(f"e{i}", s, "t") for i, s in enumerate(sources)]
    snapshot = build_snapshot(_nodes("t", *sources), edges)

    result = InfluencePathFinder(PathfinderConfig(max_paths=5)).find_paths(snapshot, "t")

    assert len(result.paths) == 5
    assert [p.influencer_id for p in result.paths] == sources[:5]
    assert result.path_limit_reached
    assert result.truncated


def test_enumeration_is_deterministic():
    edges = [
        _edge("e1", "a", "t", impact=0.7),
        _edge("e2", "b", "t", impact=0.6),
        _edge("e3", "a", "b", impact=0.9),
        _edge("e4", "c", "a", impact=0.8),
        _edge("e5", "t", "c", impact=0.9),
    ]

    first = InfluencePathFinder().find_paths(build_snapshot(_nodes("a", "b", "c", "t"), edges), "t")
    second = InfluencePathFinder().find_paths(build_snapshot(_nodes("a", "b", "c", "t"), edges), "t")

    assert [p.to_dict() for p in first.paths] == [p.to_dict() for p in second.paths]


def test_no_incoming_edges_is_not_an_error():
    snapshot = build_snapshot(_nodes("a", "t"), [_edge("e1", "t", "a")])

    result = InfluencePathFinder().find_paths(snapshot, "t")

    assert result.paths == []
    assert not result.truncated


def test_wall_time_limit_stops_search_between_expansions():
    ids = [f"n{i}" for i in range(6)]
    edges = [_edge(f"e{i}", ids[i], ids[i + 1], impact=1.0) for i in range(5)]
    snapshot = build_snapshot(_nodes(*ids), edges)
    # Deadline set at t=1 + 0.0025; every later check advances the clock by 1s.
    finder = InfluencePathFinder(PathfinderConfig(max_wall_time_ms=2.5), clock=_FakeClock(step=1.0))

    result = finder.find_paths(snapshot, "n5")

    assert result.deadline_exceeded
    assert result.truncated
    assert result.paths == []
