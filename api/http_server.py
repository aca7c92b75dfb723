from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Query
from pydantic import BaseModel, Field
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from api.steering_api import SteeringAPI
from engine.config import ContradictionDetectionConfig, PathfinderConfig
from models.base import Base
from models.enums import AlertStatus, ControlType, RelationType, SteeringGoal, SystemClass


DATABASE_URL = os.getenv("STEERING_DB_URL", "sqlite:///influence_steering.db")

_engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)

PATHFINDER_CONFIG = PathfinderConfig()
DETECTION_CONFIG = ContradictionDetectionConfig()

logging.basicConfig(level=os.getenv("STEERING_LOG_LEVEL", "INFO").upper())


def init_db() -> None:
    Base.metadata.create_all(bind=_engine)


def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class EnergyProfileModel(BaseModel):
    working_power: float = 0.0
    idle_power: float = 0.0
    available_power: float = 0.0


class RegisterObjectRequest(BaseModel):
    name: str = Field(min_length=1)
    system_class: SystemClass = SystemClass.AUTONOMOUS
    control_type: ControlType = ControlType.COGNITIVE
    energy: EnergyProfileModel = Field(default_factory=EnergyProfileModel)
    description: Optional[str] = None
    caller_identity: Optional[str] = None


class RelationDescriptor(BaseModel):
    source_id: str
    target_id: str
    relation_type: RelationType
    impact_factor: float = Field(ge=0.0, le=1.0)
    certainty_score: float = Field(default=1.0, ge=0.0, le=1.0)
    source_name: Optional[str] = None
    evidence: Optional[Dict[str, Any]] = None


class IngestRelationsRequest(BaseModel):
    relations: List[RelationDescriptor] = Field(min_length=1)
    caller_identity: Optional[str] = None


class VerifyRelationsRequest(BaseModel):
    relation_ids: List[str] = Field(min_length=1)
    as_of: Optional[datetime] = None
    caller_identity: Optional[str] = None


class SupersedeRelationRequest(BaseModel):
    superseded_by: Optional[str] = None
    caller_identity: Optional[str] = None


class SteeringSimulationRequest(BaseModel):
    target_node_id: str
    goal: SteeringGoal = SteeringGoal.STRENGTHEN
    include_paths: bool = False
    caller_identity: Optional[str] = None


class AlertStatusRequest(BaseModel):
    status: AlertStatus
    caller_identity: Optional[str] = None


class AuditQueryRequest(BaseModel):
    operation: Optional[str] = None
    since: Optional[datetime] = None
    status: Optional[str] = None
    limit: int = Field(default=50, ge=1, le=500)
    caller_identity: Optional[str] = None


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="Influence Steering API",
    version="1.0.0",
    description=(
        "Steering simulation over the influence graph, relation ingestion with "
        "contradiction verification, alert lifecycle and source reliability."
    ),
    lifespan=lifespan,
)


def _service(db: Session, caller_identity: Optional[str]) -> SteeringAPI:
    return SteeringAPI(
        session=db,
        caller_identity=caller_identity,
        pathfinder_config=PATHFINDER_CONFIG,
        detection_config=DETECTION_CONFIG,
    )


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/v1/objects")
def register_object(payload: RegisterObjectRequest, db: Session = Depends(get_db)) -> Dict[str, Any]:
    service = _service(db, payload.caller_identity)
    response = service.register_object(
        name=payload.name,
        system_class=payload.system_class.value,
        control_type=payload.control_type.value,
        energy=payload.energy.model_dump(),
        description=payload.description,
    )
    return response.to_dict()


@app.post("/v1/relations")
def ingest_relations(payload: IngestRelationsRequest, db: Session = Depends(get_db)) -> Dict[str, Any]:
    service = _service(db, payload.caller_identity)
    response = service.ingest_relations([x.model_dump(mode="json") for x in payload.relations])
    return response.to_dict()


@app.post("/v1/relations/verifications")
def verify_relations(payload: VerifyRelationsRequest, db: Session = Depends(get_db)) -> Dict[str, Any]:
    service = _service(db, payload.caller_identity)
    response = service.verify_relations(relation_ids=payload.relation_ids, as_of=payload.as_of)
    return response.to_dict()


@app.post("/v1/relations/{relation_id}/supersede")
def supersede_relation(
    relation_id: str, payload: SupersedeRelationRequest, db: Session = Depends(get_db)
) -> Dict[str, Any]:
    service = _service(db, payload.caller_identity)
    response = service.supersede_relation(relation_id=relation_id, superseded_by=payload.superseded_by)
    return response.to_dict()


@app.post("/v1/steering-simulations")
def simulate_steering(payload: SteeringSimulationRequest, db: Session = Depends(get_db)) -> Dict[str, Any]:
    service = _service(db, payload.caller_identity)
    response = service.simulate_steering(
        target_node_id=payload.target_node_id,
        goal=payload.goal.value,
        include_paths=payload.include_paths,
    )
    return response.to_dict()


@app.get("/v1/alerts")
def list_alerts(
    status: Optional[AlertStatus] = None,
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    service = _service(db, None)
    response = service.list_alerts(status=status.value if status else None, limit=limit)
    return response.to_dict()


@app.post("/v1/alerts/{alert_id}/status")
def update_alert_status(alert_id: str, payload: AlertStatusRequest, db: Session = Depends(get_db)) -> Dict[str, Any]:
    service = _service(db, payload.caller_identity)
    response = service.update_alert_status(alert_id=alert_id, status=payload.status.value)
    return response.to_dict()


@app.get("/v1/sources/{source_name}/reliability")
def source_reliability(source_name: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    service = _service(db, None)
    response = service.source_reliability(source_name=source_name)
    return response.to_dict()


@app.post("/v1/audit-log")
def query_audit_log(payload: AuditQueryRequest, db: Session = Depends(get_db)) -> Dict[str, Any]:
    service = _service(db, payload.caller_identity)
    records = service.query_audit_log(
        operation=payload.operation, since=payload.since, status=payload.status, limit=payload.limit
    )
    return {"status": "ok", "records": records}
