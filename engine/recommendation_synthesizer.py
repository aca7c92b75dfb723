from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from models.enums import SteeringGoal
from models.snapshot import Node
from models.steering import InfluentialNode, Recommendation
from .config import PathfinderConfig

LOW_CONFIDENCE_THRESHOLD = 0.5
LOW_POWER_THRESHOLD = 1.0

_ACTION_VERBS: Dict[SteeringGoal, str] = {
    SteeringGoal.STRENGTHEN: "Strengthen",
    SteeringGoal.WEAKEN: "Weaken",
}


@dataclass
class RecommendationSet:
    primary: Optional[Recommendation] = None
    alternatives: List[Recommendation] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def describe_feedback(multiplier: float) -> str:
    if multiplier > 1.0:
        return "net positive (amplifying) feedback"
    if multiplier < 1.0:
        return "net negative (damping) feedback"
    return "no feedback amplification"


def build_rationale(node: InfluentialNode) -> str:
    return (
        f"Object carries {describe_feedback(node.feedback_multiplier)} "
        f"(multiplier {node.feedback_multiplier:.2f}) over {node.path_count} influence path(s). "
        f"Control leverage: {node.control_leverage:.2f} "
        f"(power: {node.available_power:.2f}, influence: {node.influence_strength:.2f}, "
        f"certainty: {node.certainty_score:.2f})."
    )


def to_recommendation(node: InfluentialNode, goal: SteeringGoal) -> Recommendation:
    return Recommendation(
        object_id=node.object_id,
        object_name=node.object_name,
        action=f'{_ACTION_VERBS[goal]} "{node.object_name}"',
        rationale=build_rationale(node),
        expected_impact=min(node.influence_strength * node.feedback_multiplier, 1.0),
        confidence=node.certainty_score,
    )


class RecommendationSynthesizer:
    """
    Turns the leverage ranking into a primary recommendation, alternatives
    and warnings.
    """

    def __init__(self, config: Optional[PathfinderConfig] = None):
        self.config = config or PathfinderConfig()

    def synthesize(
        self,
        ranked: Sequence[InfluentialNode],
        target: Node,
        goal: SteeringGoal,
        upstream_count: int = 0,
    ) -> RecommendationSet:
        goal = SteeringGoal(goal)

        if not ranked:
            return RecommendationSet(warnings=[self._isolation_warning(target, upstream_count)])

        top = ranked[0]
        primary = to_recommendation(top, goal)
        alternatives = [
            to_recommendation(node, goal)
            for node in ranked[1:1 + self.config.top_alternatives]
        ]

        warnings: List[str] = []
        if primary.confidence < LOW_CONFIDENCE_THRESHOLD:
            warnings.append(
                f"Low reliability: mean certainty of the paths through \"{top.object_name}\" "
                f"is {primary.confidence:.2f}. Verify the underlying relations before acting."
            )
        if top.available_power < LOW_POWER_THRESHOLD:
            warnings.append(
                f"Limited available power: \"{top.object_name}\" has {top.available_power:.2f} "
                f"available. The effect may be constrained."
            )
        return RecommendationSet(primary=primary, alternatives=alternatives, warnings=warnings)

    def _isolation_warning(self, target: Node, upstream_count: int) -> str:
        if upstream_count == 0:
            return f"Target \"{target.name}\" is isolated in the relation graph: no object influences it."
        return (
            f"Target \"{target.name}\" is isolated within the search bound: {upstream_count} upstream "
            f"object(s) exist, but no path reaches influence {self.config.min_influence_threshold:.2f} "
            f"within depth {self.config.max_depth}."
        )
