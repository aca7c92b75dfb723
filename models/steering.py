from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .enums import RelationType, SteeringGoal


@dataclass(frozen=True)
class InfluencePath:
    """
    Chain of correlations from an influencer (``node_ids[0]``) to the
    analysis target (``node_ids[-1]``).
    """
    node_ids: Tuple[str, ...]
    relation_types: Tuple[RelationType, ...]
    certainties: Tuple[float, ...]
    total_strength: float
    certainty: float
    depth: int
    is_feedback_loop: bool = False

    @property
    def influencer_id(self) -> str:
        return self.node_ids[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": list(self.node_ids),
            "relation_types": [r.value for r in self.relation_types],
            "certainties": list(self.certainties),
            "total_strength": self.total_strength,
            "certainty_score": self.certainty,
            "depth": self.depth,
            "is_feedback_loop": self.is_feedback_loop,
        }


@dataclass(frozen=True)
class InfluentialNode:
    object_id: str
    object_name: str
    influence_strength: float
    path_count: int
    feedback_multiplier: float
    available_power: float
    certainty_score: float
    control_leverage: float
    paths: Tuple[InfluencePath, ...] = ()

    def to_dict(self, include_paths: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "object_id": self.object_id,
            "object_name": self.object_name,
            "influence_strength": self.influence_strength,
            "path_count": self.path_count,
            "feedback_multiplier": self.feedback_multiplier,
            "available_power": self.available_power,
            "certainty_score": self.certainty_score,
            "control_leverage": self.control_leverage,
        }
        if include_paths:
            payload["paths"] = [p.to_dict() for p in self.paths]
        return payload


@dataclass(frozen=True)
class Recommendation:
    object_id: str
    object_name: str
    action: str
    rationale: str
    expected_impact: float
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "object_id": self.object_id,
            "object_name": self.object_name,
            "action": self.action,
            "rationale": self.rationale,
            "expected_impact": self.expected_impact,
            "confidence": self.confidence,
        }


@dataclass
class SteeringResult:
    """
    Response of one steering simulation. ``analysis_metadata`` always holds
    ``paths_analyzed``, ``max_depth`` and ``elapsed_ms``; the rest is context.
    """
    target_node_id: str
    target_node_name: Optional[str]
    goal: SteeringGoal
    ranked_influential_nodes: List[InfluentialNode] = field(default_factory=list)
    primary_recommendation: Optional[Recommendation] = None
    alternative_recommendations: List[Recommendation] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    analysis_metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self, include_paths: bool = False) -> Dict[str, Any]:
        return {
            "target_node_id": self.target_node_id,
            "target_node_name": self.target_node_name,
            "goal": self.goal.value,
            "ranked_influential_nodes": [
                n.to_dict(include_paths=include_paths) for n in self.ranked_influential_nodes
            ],
            "primary_recommendation": (
                self.primary_recommendation.to_dict() if self.primary_recommendation else None
            ),
            "alternative_recommendations": [r.to_dict() for r in self.alternative_recommendations],
            "warnings": list(self.warnings),
            "analysis_metadata": dict(self.analysis_metadata),
        }
