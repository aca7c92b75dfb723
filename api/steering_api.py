"""
Steering API Layer
==================
Audited facade over the steering and consistency engines. **Every public
method**:

  1. Resolves the current algorithm version for the operation.
  2. Delegates to the store and engine(s).
  3. Builds a structured response with a causal explanation that quotes
     the numbers behind the result.
  4. Writes an AuditLogEntry before returning.

Failures never escape as exceptions: they come back as error envelopes with
``error_type`` and ``retryable`` in the metadata, and are audited too.

Public operations
~~~~~~~~~~~~~~~~~
  - ``register_object``      – add a cybernetic object to the graph.
  - ``ingest_relations``     – persist correlations, then verify them
                               against history.
  - ``verify_relations``     – re-run verification for stored correlations.
  - ``supersede_relation``   – retire a correlation.
  - ``simulate_steering``    – rank influencers of a target and recommend
                               where to act.
  - ``list_alerts`` / ``update_alert_status`` – contradiction alert lifecycle.
  - ``source_reliability``   – current trust score of an asserting source.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from engine.config import ContradictionDetectionConfig, PathfinderConfig
from engine.contradiction_engine import ContradictionEngine
from engine.errors import SteeringError
from engine.graph_store import GraphStore, edge_from_row
from engine.steering_simulation_engine import SteeringSimulationEngine
from models.contradiction import ContradictionReport
from models.enums import ControlType, RelationType, SteeringGoal, SystemClass
from models.steering import SteeringResult

from api.audit_log import AuditLogger
from api.algorithm_registry import AlgorithmVersionDescriptor, get_current_version
from api.response_envelope import ApiResponse, error_envelope, success_envelope

logger = logging.getLogger(__name__)


def _error_kind(exc: Exception):
    if isinstance(exc, SteeringError):
        return exc.error_type, exc.retryable
    if isinstance(exc, (ValueError, KeyError)):
        return "invalid_request", False
    return "internal_error", False


def _describe_steering(result: SteeringResult) -> str:
    meta = result.analysis_metadata
    head = (
        f"Analysed {meta['paths_analyzed']} influence path(s) into "
        f"'{result.target_node_name or result.target_node_id}' up to depth {meta['max_depth']}"
    )
    primary = result.primary_recommendation
    if primary is None:
        return f"{head}. No recommendation: {' '.join(result.warnings)}"
    top = result.ranked_influential_nodes[0]
    return (
        f"{head}. {primary.action} to {result.goal.value} the target: control leverage "
        f"{top.control_leverage:.2f} (power {top.available_power:.2f}, influence "
        f"{top.influence_strength:.2f}, feedback x{top.feedback_multiplier:.2f}, certainty "
        f"{top.certainty_score:.2f}), expected impact {primary.expected_impact:.2f}. "
        f"{len(result.alternative_recommendations)} alternative(s) ranked."
    )


def _describe_verification(report: ContradictionReport, checked: int) -> str:
    summary = report.summary
    if not report.detected:
        text = f"{checked} relation(s) verified against history; no contradictions found."
    else:
        kinds = ", ".join(f"{k}: {v}" for k, v in summary.by_type.items() if v)
        text = (
            f"{checked} relation(s) verified against history; {summary.total_contradictions} "
            f"contradiction(s) found ({kinds}), max severity {summary.max_severity:.2f}. "
            f"{len(report.alert_ids)} alert(s) raised, recommended action: "
            f"{summary.recommended_action.value}."
        )
        if report.penalized_sources:
            scores = ", ".join(f"{s} -> {v:.2f}" for s, v in report.penalized_sources.items())
            text += f" Source reliability lowered: {scores}."
    if report.history_unavailable:
        text += f" History unavailable for {len(report.history_unavailable)} relation(s)."
    return text


class SteeringAPI:
    """
    Unified API surface for influence steering and consistency verification.
    """

    def __init__(self,
                 session: Session,
                 caller_identity: Optional[str] = None,
                 pathfinder_config: Optional[PathfinderConfig] = None,
                 detection_config: Optional[ContradictionDetectionConfig] = None):
        self.session = session
        self.caller_identity = caller_identity

        self._store = GraphStore(session)
        self._steering = SteeringSimulationEngine(pathfinder_config)
        self._contradictions = ContradictionEngine(self._store, detection_config)
        self._audit = AuditLogger(session)

    # =====================================================================
    #  Graph maintenance
    # =====================================================================
    def register_object(
        self,
        name: str,
        system_class: str = SystemClass.AUTONOMOUS.value,
        control_type: str = ControlType.COGNITIVE.value,
        energy: Optional[Dict[str, float]] = None,
        description: Optional[str] = None,
    ) -> ApiResponse:
        op = "register_object"
        ver = get_current_version(op)
        t0 = time.perf_counter()
        request_payload = {
            "name": name,
            "system_class": system_class,
            "control_type": control_type,
            "energy": energy,
            "description": description,
        }

        try:
            obj = self._store.add_object(
                name=name,
                system_class=system_class,
                control_type=control_type,
                energy=energy,
                description=description,
            )
            data = {
                "id": obj.id,
                "name": obj.name,
                "description": obj.description,
                "system_class": obj.system_class,
                "control_system_type": obj.control_system_type,
                "energy_params": obj.energy_params,
                "created_at": obj.created_at.isoformat() if obj.created_at else None,
            }
            explanation = (
                f"Object '{name}' registered as {obj.system_class} under {obj.control_system_type} "
                f"control with {obj.energy_params['available_power']:.2f} available power."
            )
            return self._succeed(op, ver, t0, request_payload, data, explanation)
        except Exception as exc:
            return self._fail(op, ver, t0, request_payload, exc)

    def ingest_relations(self, relations: List[Dict[str, Any]]) -> ApiResponse:
        """
        Persist correlations and verify each against the pair's history.

        Each descriptor::

            {"source_id": "...", "target_id": "...", "relation_type": "supply",
             "impact_factor": 0.8, "certainty_score": 0.9, "source_name": "...",
             "evidence": {...}}

        The batch is validated as a whole before anything is written, and
        committed as one unit: a failed insert leaves no relation behind.
        Verification is advisory: contradictions are reported, alerted and
        penalized, but the relations are stored regardless.
        """
        op = "ingest_relations"
        ver = get_current_version(op)
        t0 = time.perf_counter()
        request_payload = {"relations": relations}

        try:
            if not relations:
                raise ValueError("At least one relation is required")
            for rel in relations:
                RelationType(rel["relation_type"])
                float(rel["impact_factor"])
                self._store.get_object(rel["source_id"])
                self._store.get_object(rel["target_id"])

            rows = [
                self._store.add_correlation(
                    source_id=rel["source_id"],
                    target_id=rel["target_id"],
                    relation_type=rel["relation_type"],
                    impact_factor=rel["impact_factor"],
                    certainty_score=rel.get("certainty_score", 1.0),
                    source_name=rel.get("source_name"),
                    evidence=rel.get("evidence"),
                    commit=False,
                )
                for rel in relations
            ]
            self._store.commit()
            edges = [edge_from_row(r) for r in rows]
            report = self._contradictions.detect(edges)

            data = {
                "relations": [e.to_dict() for e in edges],
                "verification": report.to_dict(),
            }
            explanation = (
                f"{len(edges)} relation(s) stored. " + _describe_verification(report, len(edges))
            )
            return self._succeed(op, ver, t0, request_payload, data, explanation)
        except Exception as exc:
            return self._fail(op, ver, t0, request_payload, exc)

    def verify_relations(self, relation_ids: List[str], as_of: Optional[datetime] = None) -> ApiResponse:
        op = "verify_relations"
        ver = get_current_version(op)
        t0 = time.perf_counter()
        request_payload = {"relation_ids": relation_ids, "as_of": as_of}

        try:
            edges = [edge_from_row(self._store.get_correlation(rid)) for rid in relation_ids]
            report = self._contradictions.detect(edges, as_of=as_of)
            data = report.to_dict()
            explanation = _describe_verification(report, len(edges))
            return self._succeed(op, ver, t0, request_payload, data, explanation)
        except Exception as exc:
            return self._fail(op, ver, t0, request_payload, exc)

    def supersede_relation(self, relation_id: str, superseded_by: Optional[str] = None) -> ApiResponse:
        op = "supersede_relation"
        ver = get_current_version(op)
        t0 = time.perf_counter()
        request_payload = {"relation_id": relation_id, "superseded_by": superseded_by}

        try:
            if superseded_by is not None:
                self._store.get_correlation(superseded_by)
            row = self._store.supersede_correlation(relation_id, superseded_by)
            data = {
                "id": row.id,
                "superseded_at": row.superseded_at.isoformat(),
                "superseded_by": row.superseded_by,
            }
            explanation = (
                f"Relation {relation_id[:8]} retired"
                + (f" in favour of {superseded_by[:8]}" if superseded_by else "")
                + "; it no longer takes part in steering or verification."
            )
            return self._succeed(op, ver, t0, request_payload, data, explanation)
        except Exception as exc:
            return self._fail(op, ver, t0, request_payload, exc)

    # =====================================================================
    #  Steering
    # =====================================================================
    def simulate_steering(
        self,
        target_node_id: str,
        goal: str = SteeringGoal.STRENGTHEN.value,
        include_paths: bool = False,
    ) -> ApiResponse:
        """
        Rank the objects that influence ``target_node_id`` and recommend the
        one to strengthen or weaken.

        Returns
        -------
        ApiResponse
            ``data`` is the steering result: ranked influential objects,
            primary and alternative recommendations, warnings and analysis
            metadata.
        """
        op = "simulate_steering"
        ver = get_current_version(op)
        t0 = time.perf_counter()
        request_payload = {"target_node_id": target_node_id, "goal": goal, "include_paths": include_paths}

        try:
            result = self._steering.simulate_from_store(self._store, target_node_id, SteeringGoal(goal))
            data = result.to_dict(include_paths=include_paths)
            explanation = _describe_steering(result)
            return self._succeed(op, ver, t0, request_payload, data, explanation)
        except Exception as exc:
            return self._fail(op, ver, t0, request_payload, exc)

    # =====================================================================
    #  Alerts and sources
    # =====================================================================
    def list_alerts(self, status: Optional[str] = None, limit: int = 50) -> ApiResponse:
        op = "list_alerts"
        ver = get_current_version(op)
        t0 = time.perf_counter()
        request_payload = {"status": status, "limit": limit}

        try:
            alerts = self._store.list_alerts(status=status, limit=limit)
            data = [_alert_to_dict(a) for a in alerts]
            explanation = (
                f"{len(data)} {status or 'any-status'} alert(s); highest severity "
                f"{max((a.severity for a in alerts), default=0.0):.2f}."
            )
            return self._succeed(op, ver, t0, request_payload, data, explanation)
        except Exception as exc:
            return self._fail(op, ver, t0, request_payload, exc)

    def update_alert_status(self, alert_id: str, status: str) -> ApiResponse:
        op = "update_alert_status"
        ver = get_current_version(op)
        t0 = time.perf_counter()
        request_payload = {"alert_id": alert_id, "status": status}

        try:
            alert = self._store.update_alert_status(alert_id, status, resolved_by=self.caller_identity)
            data = _alert_to_dict(alert)
            explanation = (
                f"Alert {alert_id[:8]} ({alert.title}, severity {alert.severity:.2f}) marked "
                f"{alert.status} by {alert.resolved_by or 'anonymous caller'}."
            )
            return self._succeed(op, ver, t0, request_payload, data, explanation)
        except Exception as exc:
            return self._fail(op, ver, t0, request_payload, exc)

    def source_reliability(self, source_name: str) -> ApiResponse:
        op = "source_reliability"
        ver = get_current_version(op)
        t0 = time.perf_counter()
        request_payload = {"source_name": source_name}

        try:
            record = self._store.get_source_reliability(source_name)
            if record is None:
                initial = self._contradictions.config.initial_source_reliability
                data = {
                    "source_name": source_name,
                    "reliability_index": initial,
                    "last_verified_at": None,
                    "known": False,
                }
                explanation = (
                    f"Source '{source_name}' has no contradiction record; it is rated at the "
                    f"initial reliability of {initial:.2f}."
                )
            else:
                data = {
                    "source_name": record.source_name,
                    "reliability_index": record.reliability_index,
                    "last_verified_at": record.last_verified_at.isoformat(),
                    "known": True,
                }
                explanation = (
                    f"Source '{source_name}' has reliability {record.reliability_index:.2f}, "
                    f"last adjusted {record.last_verified_at.isoformat()}."
                )
            return self._succeed(op, ver, t0, request_payload, data, explanation)
        except Exception as exc:
            return self._fail(op, ver, t0, request_payload, exc)

    # =====================================================================
    #  Audit
    # =====================================================================
    def query_audit_log(
        self,
        operation: Optional[str] = None,
        since: Optional[datetime] = None,
        status: Optional[str] = None,
        limit: int = 50,
    ) -> List[Dict[str, Any]]:
        entries = self._audit.query_log(operation=operation, since=since, status=status, limit=limit)
        return [e.to_dict() for e in entries]

    # ------------------------------------------------------------------
    def _succeed(
        self,
        op: str,
        ver: AlgorithmVersionDescriptor,
        t0: float,
        request_payload: Dict[str, Any],
        data: Any,
        explanation: str,
    ) -> ApiResponse:
        duration = (time.perf_counter() - t0) * 1000
        audit = self._audit.log(
            operation=op,
            algorithm_version=ver.version,
            request_payload=request_payload,
            response_payload=data,
            duration_ms=duration,
            caller_identity=self.caller_identity,
        )
        self.session.commit()
        return success_envelope(
            operation=op,
            api_version=ver.version,
            data=data,
            causal_explanation=explanation,
            audit_id=audit.id,
        )

    def _fail(
        self,
        op: str,
        ver: AlgorithmVersionDescriptor,
        t0: float,
        request_payload: Dict[str, Any],
        exc: Exception,
    ) -> ApiResponse:
        error_type, retryable = _error_kind(exc)
        if error_type == "internal_error":
            logger.exception("%s failed", op)
        else:
            logger.warning("%s rejected (%s): %s", op, error_type, exc)

        self.session.rollback()
        duration = (time.perf_counter() - t0) * 1000
        audit = self._audit.log(
            operation=op,
            algorithm_version=ver.version,
            request_payload=request_payload,
            response_payload=None,
            duration_ms=duration,
            caller_identity=self.caller_identity,
            status="error",
            error_type=error_type,
            error_detail=str(exc),
        )
        self.session.commit()
        return error_envelope(
            operation=op,
            api_version=ver.version,
            error_message=str(exc),
            audit_id=audit.id,
            error_type=error_type,
            retryable=retryable,
        )


def _alert_to_dict(alert) -> Dict[str, Any]:
    return {
        "id": alert.id,
        "alert_type": alert.alert_type,
        "severity": alert.severity,
        "title": alert.title,
        "description": alert.description,
        "conflicting_relation_ids": alert.conflicting_relation_ids,
        "affected_object_ids": alert.affected_object_ids,
        "source_name": alert.source_name,
        "metadata": alert.alert_metadata,
        "status": alert.status,
        "resolved_at": alert.resolved_at.isoformat() if alert.resolved_at else None,
        "resolved_by": alert.resolved_by,
        "created_at": alert.created_at.isoformat() if alert.created_at else None,
    }
