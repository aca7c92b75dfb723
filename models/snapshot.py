"""
Immutable inputs of one analysis run.

``Node`` and ``Edge`` are detached copies of store rows. Range clamping and
enum parsing happen here, once, so every engine downstream can rely on
certainty and impact being inside [0, 1].
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from .enums import ControlType, RelationType, SystemClass


def clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


@dataclass(frozen=True)
class EnergyProfile:
    working_power: float = 0.0
    idle_power: float = 0.0
    available_power: float = 0.0

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "EnergyProfile":
        raw = raw or {}
        return cls(
            working_power=float(raw.get("working_power") or 0.0),
            idle_power=float(raw.get("idle_power") or 0.0),
            available_power=float(raw.get("available_power") or 0.0),
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "working_power": self.working_power,
            "idle_power": self.idle_power,
            "available_power": self.available_power,
        }


@dataclass(frozen=True)
class Node:
    id: str
    name: str
    system_class: SystemClass = SystemClass.AUTONOMOUS
    control_type: ControlType = ControlType.COGNITIVE
    energy: EnergyProfile = EnergyProfile()

    def __post_init__(self):
        object.__setattr__(self, "system_class", SystemClass(self.system_class))
        object.__setattr__(self, "control_type", ControlType(self.control_type))

    @property
    def available_power(self) -> float:
        return self.energy.available_power


@dataclass(frozen=True)
class Edge:
    id: str
    source_id: str
    target_id: str
    relation_type: RelationType
    certainty: float
    impact_factor: float
    source_name: Optional[str] = None
    created_at: Optional[datetime] = None
    superseded_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "relation_type", RelationType(self.relation_type))
        object.__setattr__(self, "certainty", clamp_unit(self.certainty))
        object.__setattr__(self, "impact_factor", clamp_unit(self.impact_factor))

    @property
    def is_active(self) -> bool:
        return self.superseded_at is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "target_id": self.target_id,
            "relation_type": self.relation_type.value,
            "certainty_score": self.certainty,
            "impact_factor": self.impact_factor,
            "source_name": self.source_name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
