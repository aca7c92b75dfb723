import uuid
from sqlalchemy import Column, String, Float, DateTime, JSON, ForeignKey
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class CyberneticObject(Base):
    """
    An object of the influence graph: an organization, actor or concept
    extracted from text, with its classification tags and energy profile.
    """
    __tablename__ = 'cybernetic_objects'

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False, index=True)
    description = Column(String, nullable=True)
    system_class = Column(String, nullable=False)  # models.enums.SystemClass value
    control_system_type = Column(String, nullable=False)  # models.enums.ControlType value

    # {"working_power": ..., "idle_power": ..., "available_power": ...}
    energy_params = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    outgoing_correlations = relationship("Correlation", foreign_keys="Correlation.source_id", back_populates="source")
    incoming_correlations = relationship("Correlation", foreign_keys="Correlation.target_id", back_populates="target")

    def __repr__(self):
        return f"<CyberneticObject(id={self.id[:8]}, name={self.name}, class={self.system_class})>"


class Correlation(Base):
    """
    A directed, typed assertion that one object affects another, made by a
    named source at a point in time. Superseded rows stay in the table but
    drop out of every analysis.
    """
    __tablename__ = 'correlations'

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    source_id = Column(String, ForeignKey('cybernetic_objects.id'), nullable=False, index=True)
    target_id = Column(String, ForeignKey('cybernetic_objects.id'), nullable=False, index=True)

    relation_type = Column(String, nullable=False)  # models.enums.RelationType value
    certainty_score = Column(Float, nullable=False, default=1.0)  # reliability of the assertion, 0-1
    impact_factor = Column(Float, nullable=False)  # strength of the effect, 0-1

    source_name = Column(String, nullable=True, index=True)
    evidence_data = Column(JSON, nullable=True)

    superseded_at = Column(DateTime, nullable=True)
    superseded_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    source = relationship("CyberneticObject", foreign_keys=[source_id], back_populates="outgoing_correlations")
    target = relationship("CyberneticObject", foreign_keys=[target_id], back_populates="incoming_correlations")

    def __repr__(self):
        return (
            f"<Correlation(source={self.source_id[:8]}, target={self.target_id[:8]}, "
            f"type={self.relation_type}, impact={self.impact_factor})>"
        )
