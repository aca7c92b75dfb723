import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set

import networkx as nx

from models.snapshot import Edge, Node

logger = logging.getLogger(__name__)


@dataclass
class GraphSnapshot:
    """
    In-memory view of the influence graph for a single analysis run.

    ``forward`` and ``reverse`` keep each bucket in the order the edges were
    supplied, which is what makes path enumeration reproducible. ``graph``
    mirrors the same data as a networkx multigraph for order-independent
    structural queries.
    """
    nodes: Dict[str, Node] = field(default_factory=dict)
    forward: Dict[str, List[Edge]] = field(default_factory=dict)
    reverse: Dict[str, List[Edge]] = field(default_factory=dict)
    graph: nx.MultiDiGraph = field(default_factory=nx.MultiDiGraph)
    dropped_edges: int = 0

    @property
    def edge_count(self) -> int:
        return self.graph.number_of_edges()

    def incoming(self, node_id: str) -> List[Edge]:
        return self.reverse.get(node_id, [])

    def outgoing(self, node_id: str) -> List[Edge]:
        return self.forward.get(node_id, [])

    def upstream_of(self, node_id: str) -> Set[str]:
        """Every other object with at least one directed path into ``node_id``."""
        if node_id not in self.graph:
            return set()
        return nx.ancestors(self.graph, node_id)

    def statistics(self) -> Dict[str, float]:
        edges = [e for bucket in self.forward.values() for e in bucket]
        average_certainty = sum(e.certainty for e in edges) / len(edges) if edges else 0.0
        return {
            "total_objects": len(self.nodes),
            "total_relations": len(edges),
            "average_certainty": average_certainty,
        }


def build_snapshot(nodes: Iterable[Node], edges: Iterable[Edge]) -> GraphSnapshot:
    """
    Indexes nodes and active edges into forward/reverse adjacency. Edges whose
    endpoints are not in the node set, or that have been superseded, are left
    out of traversal entirely.
    """
    snapshot = GraphSnapshot()

    for node in nodes:
        snapshot.nodes[node.id] = node
        snapshot.forward[node.id] = []
        snapshot.reverse[node.id] = []
        snapshot.graph.add_node(node.id)

    for edge in edges:
        if not edge.is_active:
            snapshot.dropped_edges += 1
            continue
        if edge.source_id not in snapshot.nodes or edge.target_id not in snapshot.nodes:
            snapshot.dropped_edges += 1
            continue
        snapshot.forward[edge.source_id].append(edge)
        snapshot.reverse[edge.target_id].append(edge)
        snapshot.graph.add_edge(
            edge.source_id,
            edge.target_id,
            key=edge.id,
            impact=edge.impact_factor,
            certainty=edge.certainty,
            relation_type=edge.relation_type,
        )

    if snapshot.dropped_edges:
        logger.debug("Dropped %d edges with unknown endpoints or superseded status", snapshot.dropped_edges)
    logger.debug("Snapshot built: %d objects, %d relations", len(snapshot.nodes), snapshot.edge_count)
    return snapshot
