import uuid
from sqlalchemy import Column, String, Float, DateTime, JSON

from .base import Base, utcnow


class SystemAlert(Base):
    """
    Persisted escalation of a contradiction severe enough to need a human.
    """
    __tablename__ = 'system_alerts'

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    alert_type = Column(String, nullable=False, default="contradiction")
    severity = Column(Float, nullable=False)
    title = Column(String, nullable=False)
    description = Column(String, nullable=False)

    # Correlation ids [existing, new] and object ids [source, target]
    conflicting_relation_ids = Column(JSON, nullable=False)
    affected_object_ids = Column(JSON, nullable=False)

    source_name = Column(String, nullable=True, index=True)

    # {"contradiction_type": ..., "details": {...}}
    alert_metadata = Column(JSON, nullable=True)

    status = Column(String, nullable=False, default="active")  # models.enums.AlertStatus value
    resolved_at = Column(DateTime, nullable=True)
    resolved_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<SystemAlert(id={self.id[:8]}, severity={self.severity:.2f}, status={self.status})>"


class SourceReliability(Base):
    """
    Trust score of an asserting source, kept in [0, 1] and lowered every
    time one of its assertions contradicts its own history.
    """
    __tablename__ = 'source_intelligence'

    source_name = Column(String, primary_key=True)
    reliability_index = Column(Float, nullable=False, default=0.5)
    last_verified_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<SourceReliability(source={self.source_name}, reliability={self.reliability_index:.2f})>"
