import logging
from typing import Dict, Iterable, List

from models.enums import RelationType
from models.steering import InfluencePath, InfluentialNode
from .graph_snapshot import GraphSnapshot

logger = logging.getLogger(__name__)

# Per-occurrence factor of each relation type on the feedback multiplier.
# Built from the enum so a new relation type is neutral until scored here.
FEEDBACK_FACTORS: Dict[RelationType, float] = {relation: 1.0 for relation in RelationType}
FEEDBACK_FACTORS.update({
    RelationType.POSITIVE_FEEDBACK: 1.5,
    RelationType.NEGATIVE_FEEDBACK: 0.7,
})


def feedback_multiplier(relation_types: Iterable[RelationType]) -> float:
    multiplier = 1.0
    for relation in relation_types:
        multiplier *= FEEDBACK_FACTORS[relation]
    return multiplier


def control_leverage(available_power: float, influence: float, certainty: float) -> float:
    """Power × influence × certainty, never negative."""
    return max(0.0, available_power * influence * certainty)


def aggregate_influences(paths: Iterable[InfluencePath], snapshot: GraphSnapshot) -> List[InfluentialNode]:
    """
    Collapses paths into one InfluentialNode per originating object and ranks
    them by control leverage, highest first. Objects with equal leverage keep
    the order in which their first path was discovered.
    """
    grouped: Dict[str, List[InfluencePath]] = {}
    for path in paths:
        if path.depth < 1:
            continue
        grouped.setdefault(path.influencer_id, []).append(path)

    influential: List[InfluentialNode] = []
    for object_id, group in grouped.items():
        node = snapshot.nodes.get(object_id)
        if node is None:
            continue

        path_count = len(group)
        influence = sum(p.total_strength for p in group) / path_count
        certainty = sum(p.certainty for p in group) / path_count
        multiplier = feedback_multiplier(r for p in group for r in p.relation_types)
        power = node.available_power

        influential.append(InfluentialNode(
            object_id=object_id,
            object_name=node.name,
            influence_strength=influence,
            path_count=path_count,
            feedback_multiplier=multiplier,
            available_power=power,
            certainty_score=certainty,
            control_leverage=control_leverage(power, influence * multiplier, certainty),
            paths=tuple(group),
        ))

    ranked = sorted(influential, key=lambda n: n.control_leverage, reverse=True)
    logger.debug("Aggregated %d influential objects", len(ranked))
    return ranked
