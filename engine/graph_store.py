import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.base import utcnow
from models.contradiction import Contradiction
from models.enums import AlertStatus, ControlType, RelationType, SystemClass
from models.homeostat import SourceReliability, SystemAlert
from models.influence_graph import CyberneticObject, Correlation
from models.snapshot import Edge, EnergyProfile, Node, clamp_unit
from .errors import (
    AlertNotFoundError,
    NodeNotFoundError,
    RelationNotFoundError,
    UpstreamReadError,
    UpstreamWriteError,
)

logger = logging.getLogger(__name__)


def node_from_row(row: CyberneticObject) -> Node:
    return Node(
        id=row.id,
        name=row.name,
        system_class=row.system_class,
        control_type=row.control_system_type,
        energy=EnergyProfile.from_dict(row.energy_params),
    )


def edge_from_row(row: Correlation) -> Edge:
    return Edge(
        id=row.id,
        source_id=row.source_id,
        target_id=row.target_id,
        relation_type=row.relation_type,
        certainty=row.certainty_score,
        impact_factor=row.impact_factor,
        source_name=row.source_name,
        created_at=row.created_at,
        superseded_at=row.superseded_at,
    )


class GraphStore:
    """
    SQLAlchemy-backed persistence for objects, correlations, alerts and
    source reliability. Reads hand back detached ``Node``/``Edge`` values;
    database failures surface as ``UpstreamReadError``/``UpstreamWriteError``.
    """

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Objects and correlations
    # ------------------------------------------------------------------
    def add_object(self,
                   name: str,
                   system_class: str = SystemClass.AUTONOMOUS.value,
                   control_type: str = ControlType.COGNITIVE.value,
                   energy: Optional[Dict[str, Any]] = None,
                   description: Optional[str] = None) -> CyberneticObject:
        obj = CyberneticObject(
            name=name,
            description=description,
            system_class=SystemClass(system_class).value,
            control_system_type=ControlType(control_type).value,
            energy_params=EnergyProfile.from_dict(energy).to_dict(),
        )
        self._write(obj)
        return obj

    def get_object(self, object_id: str) -> CyberneticObject:
        obj = self.session.get(CyberneticObject, object_id)
        if obj is None:
            raise NodeNotFoundError(object_id)
        return obj

    def add_correlation(self,
                        source_id: str,
                        target_id: str,
                        relation_type: str,
                        impact_factor: float,
                        certainty_score: float = 1.0,
                        source_name: Optional[str] = None,
                        evidence: Optional[Dict[str, Any]] = None,
                        created_at: Optional[datetime] = None,
                        commit: bool = True) -> Correlation:
        """
        With ``commit=False`` the row is only flushed; the caller commits the
        unit of work once the rest of it has been written.
        """
        self.get_object(source_id)
        self.get_object(target_id)
        correlation = Correlation(
            source_id=source_id,
            target_id=target_id,
            relation_type=RelationType(relation_type).value,
            certainty_score=clamp_unit(certainty_score),
            impact_factor=clamp_unit(impact_factor),
            source_name=source_name,
            evidence_data=evidence,
            created_at=created_at or utcnow(),
        )
        self._write(correlation, commit=commit)
        return correlation

    def get_correlation(self, correlation_id: str) -> Correlation:
        correlation = self.session.get(Correlation, correlation_id)
        if correlation is None:
            raise RelationNotFoundError(correlation_id)
        return correlation

    def supersede_correlation(self, correlation_id: str, superseded_by: Optional[str] = None) -> Correlation:
        correlation = self.get_correlation(correlation_id)
        if correlation.superseded_at is not None:
            raise ValueError(f"Correlation {correlation_id} is already superseded")
        correlation.superseded_at = utcnow()
        correlation.superseded_by = superseded_by
        self._write(correlation)
        return correlation

    def list_nodes(self) -> List[Node]:
        try:
            rows = (
                self.session.query(CyberneticObject)
                .order_by(CyberneticObject.created_at, CyberneticObject.id)
                .all()
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise UpstreamReadError("Failed to load objects") from exc
        return [node_from_row(r) for r in rows]

    def list_active_edges(self) -> List[Edge]:
        try:
            rows = (
                self.session.query(Correlation)
                .filter(Correlation.superseded_at.is_(None))
                .order_by(Correlation.created_at, Correlation.id)
                .all()
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise UpstreamReadError("Failed to load correlations") from exc
        return [edge_from_row(r) for r in rows]

    def list_prior_edges(self,
                         source_id: str,
                         target_id: str,
                         since: datetime,
                         before: Optional[datetime] = None,
                         exclude_id: Optional[str] = None) -> List[Edge]:
        """
        Active correlations on the ordered pair created at or after ``since``
        and, when given, no later than ``before``. Newest first.
        """
        try:
            q = self.session.query(Correlation).filter(
                Correlation.source_id == source_id,
                Correlation.target_id == target_id,
                Correlation.superseded_at.is_(None),
                Correlation.created_at >= since,
            )
            if before is not None:
                q = q.filter(Correlation.created_at <= before)
            if exclude_id is not None:
                q = q.filter(Correlation.id != exclude_id)
            rows = (
                q.order_by(Correlation.created_at.desc(), Correlation.id)
                .all()
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise UpstreamReadError(f"Failed to load history for {source_id} -> {target_id}") from exc
        return [edge_from_row(r) for r in rows]

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------
    def insert_alert(self, contradiction: Contradiction) -> SystemAlert:
        new = contradiction.new
        alert = SystemAlert(
            alert_type="contradiction",
            severity=contradiction.severity,
            title=f"Contradiction: {contradiction.contradiction_type.value}",
            description=contradiction.description,
            conflicting_relation_ids=[contradiction.existing.id, new.id],
            affected_object_ids=[new.source_id, new.target_id],
            source_name=new.source_name,
            alert_metadata={
                "contradiction_type": contradiction.contradiction_type.value,
                "details": contradiction.details(),
            },
            status=AlertStatus.ACTIVE.value,
        )
        self._write(alert)
        return alert

    def list_alerts(self, status: Optional[str] = None, limit: int = 50) -> List[SystemAlert]:
        q = self.session.query(SystemAlert)
        if status:
            q = q.filter(SystemAlert.status == AlertStatus(status).value)
        try:
            return q.order_by(SystemAlert.created_at.desc()).limit(limit).all()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise UpstreamReadError("Failed to load alerts") from exc

    def update_alert_status(self, alert_id: str, status: str, resolved_by: Optional[str] = None) -> SystemAlert:
        status = AlertStatus(status)
        if status == AlertStatus.ACTIVE:
            raise ValueError("An alert can only be moved to resolved or dismissed")
        try:
            alert = self.session.get(SystemAlert, alert_id)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise UpstreamReadError(f"Failed to load alert {alert_id}") from exc
        if alert is None:
            raise AlertNotFoundError(alert_id)
        if alert.status != AlertStatus.ACTIVE.value:
            raise ValueError(f"Alert {alert_id} is already {alert.status}")
        alert.status = status.value
        alert.resolved_at = utcnow()
        alert.resolved_by = resolved_by
        self._write(alert)
        return alert

    # ------------------------------------------------------------------
    # Source reliability
    # ------------------------------------------------------------------
    def penalize_source(self, source_name: str, penalty: float, initial_reliability: float = 0.5) -> float:
        """
        Lowers a source's reliability index by ``penalty``, floored at 0.
        A source seen for the first time starts from ``initial_reliability``.
        The row is locked for the read-modify-write so concurrent penalties
        on the same source are applied one after another.
        """
        try:
            record = (
                self.session.query(SourceReliability)
                .filter(SourceReliability.source_name == source_name)
                .with_for_update()
                .one_or_none()
            )
            now = utcnow()
            if record is None:
                record = SourceReliability(
                    source_name=source_name,
                    reliability_index=max(0.0, initial_reliability - penalty),
                    last_verified_at=now,
                )
                self.session.add(record)
            else:
                record.reliability_index = max(0.0, record.reliability_index - penalty)
                record.last_verified_at = now
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise UpstreamWriteError(f"Failed to update reliability of {source_name}") from exc
        return record.reliability_index

    def get_source_reliability(self, source_name: str) -> Optional[SourceReliability]:
        try:
            return self.session.get(SourceReliability, source_name)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise UpstreamReadError(f"Failed to load reliability of {source_name}") from exc

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise UpstreamWriteError("Failed to commit pending writes") from exc

    def _write(self, instance, commit: bool = True) -> None:
        try:
            self.session.add(instance)
            if commit:
                self.session.commit()
            else:
                self.session.flush()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise UpstreamWriteError(f"Failed to persist {type(instance).__name__}") from exc
