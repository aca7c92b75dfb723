from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .enums import ContradictionType, RecommendedAction
from .snapshot import Edge


@dataclass(frozen=True)
class Contradiction:
    """A disagreement between a newly asserted edge and a prior one on the same pair."""
    existing: Edge
    new: Edge
    contradiction_type: ContradictionType
    severity: float
    description: str
    impact_diff: float = 0.0
    certainty_diff: float = 0.0
    alert_worthy: bool = False

    @property
    def source_name(self) -> Optional[str]:
        return self.new.source_name

    def details(self) -> Dict[str, Any]:
        return {
            "relation_type_conflict": {
                "existing": self.existing.relation_type.value,
                "new": self.new.relation_type.value,
            },
            "impact_factor_diff": self.impact_diff,
            "certainty_score_diff": self.certainty_diff,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "existing_relation_id": self.existing.id,
            "new_relation_id": self.new.id,
            "source_id": self.new.source_id,
            "target_id": self.new.target_id,
            "source_name": self.source_name,
            "type": self.contradiction_type.value,
            "severity": self.severity,
            "description": self.description,
            "alert_worthy": self.alert_worthy,
            "details": self.details(),
        }


@dataclass
class ContradictionSummary:
    total_contradictions: int = 0
    by_type: Dict[str, int] = field(default_factory=dict)
    max_severity: float = 0.0
    affected_sources: List[str] = field(default_factory=list)
    recommended_action: RecommendedAction = RecommendedAction.NONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_contradictions": self.total_contradictions,
            "by_type": dict(self.by_type),
            "max_severity": self.max_severity,
            "affected_sources": list(self.affected_sources),
            "recommended_action": self.recommended_action.value,
        }


@dataclass
class ContradictionReport:
    contradictions: List[Contradiction] = field(default_factory=list)
    summary: ContradictionSummary = field(default_factory=ContradictionSummary)
    alert_ids: List[str] = field(default_factory=list)
    penalized_sources: Dict[str, float] = field(default_factory=dict)
    history_unavailable: List[str] = field(default_factory=list)
    write_failures: int = 0

    @property
    def detected(self) -> bool:
        return bool(self.contradictions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detected": self.detected,
            "contradictions": [c.to_dict() for c in self.contradictions],
            "summary": self.summary.to_dict(),
            "alert_ids": list(self.alert_ids),
            "penalized_sources": dict(self.penalized_sources),
            "history_unavailable": list(self.history_unavailable),
            "write_failures": self.write_failures,
        }
