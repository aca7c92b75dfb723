"""
Consistency verification for newly asserted correlations.

Every new edge is compared with the active history of the same ordered
(source, target) pair. Disagreements are classified, scored, escalated to
alerts when severe enough, and charged against the asserting source's
reliability. The engine is advisory: it never rejects an edge, and a failed
history read or write is logged rather than raised.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple

from models.base import utcnow
from models.contradiction import Contradiction, ContradictionReport, ContradictionSummary
from models.enums import ContradictionType, RecommendedAction, RelationType
from models.snapshot import Edge
from .config import ContradictionDetectionConfig
from .errors import UpstreamReadError, UpstreamWriteError
from .graph_store import GraphStore

logger = logging.getLogger(__name__)

OPPOSITE_RELATION_PAIRS: Mapping[RelationType, Tuple[RelationType, ...]] = {
    RelationType.POSITIVE_FEEDBACK: (RelationType.NEGATIVE_FEEDBACK,),
    RelationType.SUPPLY: (RelationType.DRAIN, RelationType.BLOCK),
    RelationType.SUPPORT: (RelationType.OPPOSE, RelationType.CONTRADICT),
    RelationType.AMPLIFY: (RelationType.DAMPEN, RelationType.SUPPRESS),
    RelationType.ENABLE: (RelationType.DISABLE, RelationType.PREVENT),
}


def build_opposite_map(
    pairs: Mapping[RelationType, Iterable[RelationType]]
) -> Dict[RelationType, FrozenSet[RelationType]]:
    """Symmetric closure of ``pairs``: if a opposes b then b opposes a."""
    opposites: Dict[RelationType, Set[RelationType]] = {}
    for relation, others in pairs.items():
        for other in others:
            if other == relation:
                raise ValueError(f"{relation.value} cannot be its own opposite")
            opposites.setdefault(relation, set()).add(other)
            opposites.setdefault(other, set()).add(relation)
    return {relation: frozenset(others) for relation, others in opposites.items()}


OPPOSITE_RELATIONS: Dict[RelationType, FrozenSet[RelationType]] = build_opposite_map(OPPOSITE_RELATION_PAIRS)


def are_relations_opposite(a: RelationType, b: RelationType) -> bool:
    return b in OPPOSITE_RELATIONS.get(a, frozenset())


def contradiction_severity(impact_diff: float, certainty_diff: float, is_opposite: bool) -> float:
    """
    0.8 for opposite relation types, plus 0.3 per unit of impact change,
    plus 0.2 per unit of certainty lost. A certainty gain adds nothing.
    """
    severity = 0.8 if is_opposite else 0.0
    severity += abs(impact_diff) * 0.3
    if certainty_diff < 0:
        severity += abs(certainty_diff) * 0.2
    return max(0.0, min(1.0, severity))


def classify_contradiction(
    new: Edge, existing: Edge, config: ContradictionDetectionConfig
) -> Optional[Contradiction]:
    if new.id == existing.id:
        return None

    opposite = config.check_opposite_relations and are_relations_opposite(new.relation_type, existing.relation_type)
    impact_diff = abs(new.impact_factor - existing.impact_factor)
    certainty_diff = new.certainty - existing.certainty
    impact_reversal = impact_diff >= config.impact_diff_threshold
    certainty_drop = certainty_diff < -config.certainty_diff_threshold

    if opposite and impact_diff >= config.narrative_reversal_impact_diff:
        kind = ContradictionType.NARRATIVE_REVERSAL
        severity = 1.0
        description = (
            f"Full narrative reversal: relation type flipped "
            f"\"{existing.relation_type.value}\" -> \"{new.relation_type.value}\" "
            f"and impact changed {existing.impact_factor:.2f} -> {new.impact_factor:.2f}"
        )
    elif opposite:
        kind = ContradictionType.OPPOSITE_RELATION
        severity = contradiction_severity(impact_diff, certainty_diff, True)
        description = (
            f"Opposite relation types: \"{existing.relation_type.value}\" -> \"{new.relation_type.value}\""
        )
    elif impact_reversal:
        kind = ContradictionType.IMPACT_REVERSAL
        severity = contradiction_severity(impact_diff, certainty_diff, False)
        description = (
            f"Impact changed sharply: {existing.impact_factor:.2f} -> {new.impact_factor:.2f} "
            f"(difference {impact_diff:.2f})"
        )
    elif certainty_drop:
        kind = ContradictionType.CERTAINTY_DROP
        severity = contradiction_severity(impact_diff, certainty_diff, False)
        description = f"Certainty dropped: {existing.certainty:.0%} -> {new.certainty:.0%}"
    else:
        return None

    return Contradiction(
        existing=existing,
        new=new,
        contradiction_type=kind,
        severity=severity,
        description=description,
        impact_diff=impact_diff,
        certainty_diff=certainty_diff,
        alert_worthy=severity >= config.min_severity_for_alert,
    )


def summarize(contradictions: List[Contradiction]) -> ContradictionSummary:
    if not contradictions:
        return ContradictionSummary(by_type={t.value: 0 for t in ContradictionType})

    by_type = {t.value: 0 for t in ContradictionType}
    sources: List[str] = []
    for c in contradictions:
        by_type[c.contradiction_type.value] += 1
        if c.source_name and c.source_name not in sources:
            sources.append(c.source_name)
    max_severity = max(c.severity for c in contradictions)

    if max_severity >= 0.9:
        action = RecommendedAction.REJECT_NEW
    elif max_severity >= 0.7 or len(contradictions) >= 3:
        action = RecommendedAction.LOWER_RELIABILITY
    else:
        action = RecommendedAction.FLAG_FOR_REVIEW

    return ContradictionSummary(
        total_contradictions=len(contradictions),
        by_type=by_type,
        max_severity=max_severity,
        affected_sources=sources,
        recommended_action=action,
    )


class ContradictionEngine:
    """
    Runs verification for a batch of new edges against ``store``.

    Each edge is compared only with relations asserted before it: history
    is bounded by the edge's own ``created_at``, and a later member of the
    same batch is never treated as history of an earlier one.
    """

    def __init__(self, store: GraphStore, config: Optional[ContradictionDetectionConfig] = None):
        self.store = store
        self.config = config or ContradictionDetectionConfig()

    def detect(self, new_edges: Iterable[Edge], as_of: Optional[datetime] = None) -> ContradictionReport:
        cfg = self.config
        since = (as_of or utcnow()) - timedelta(days=cfg.lookback_days)
        report = ContradictionReport()
        batch = list(new_edges)
        position = {edge.id: i for i, edge in enumerate(batch)}

        for index, new in enumerate(batch):
            try:
                history = self.store.list_prior_edges(
                    new.source_id, new.target_id, since, before=new.created_at, exclude_id=new.id
                )
            except UpstreamReadError:
                logger.warning(
                    "History for relation %s unavailable, verifying it as having no history",
                    new.id, exc_info=True,
                )
                report.history_unavailable.append(new.id)
                continue

            for existing in history:
                if position.get(existing.id, -1) > index:
                    continue
                contradiction = classify_contradiction(new, existing, cfg)
                if contradiction is None:
                    continue
                logger.warning(
                    "Contradiction %s (severity %.2f) between %s and %s from source %s",
                    contradiction.contradiction_type.value, contradiction.severity,
                    existing.id, new.id, new.source_name,
                )
                report.contradictions.append(contradiction)
                self._escalate(contradiction, report)

        report.summary = summarize(report.contradictions)
        logger.info(
            "Verified %d relations: %d contradictions, %d alerts, recommended action %s",
            len(batch), len(report.contradictions), len(report.alert_ids),
            report.summary.recommended_action.value,
        )
        return report

    def _escalate(self, contradiction: Contradiction, report: ContradictionReport) -> None:
        cfg = self.config

        if contradiction.alert_worthy:
            try:
                alert = self.store.insert_alert(contradiction)
                report.alert_ids.append(alert.id)
            except UpstreamWriteError:
                logger.exception("Failed to record alert for relation %s", contradiction.new.id)
                report.write_failures += 1

        source_name = contradiction.source_name
        if cfg.auto_penalize_source and source_name:
            try:
                report.penalized_sources[source_name] = self.store.penalize_source(
                    source_name, cfg.reliability_penalty, cfg.initial_source_reliability
                )
            except UpstreamWriteError:
                logger.exception("Failed to penalize source %s", source_name)
                report.write_failures += 1
