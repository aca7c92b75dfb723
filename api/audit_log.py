"""
Audit ledger for API operations.

One row per facade call, successful or not: operation, algorithm version,
request and response as JSON, duration, caller and outcome. Rows live in the
same database as the graph, so a steering recommendation and the graph state
it was computed from can be reviewed together.
"""

import json
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import Column, String, Float, DateTime, Text
from sqlalchemy.orm import Session

from models.base import Base, utcnow


class AuditLogEntry(Base):
    __tablename__ = "api_audit_log"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    operation = Column(String, nullable=False, index=True)
    algorithm_version = Column(String, nullable=False)
    request_payload = Column(Text, nullable=False)  # JSON
    response_payload = Column(Text, nullable=False)  # JSON
    duration_ms = Column(Float, nullable=False)
    caller_identity = Column(String, nullable=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False)
    status = Column(String, nullable=False, default="success")  # success | error
    error_type = Column(String, nullable=True)
    error_detail = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLogEntry(op={self.operation}, v={self.algorithm_version}, status={self.status})>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "operation": self.operation,
            "algorithm_version": self.algorithm_version,
            "request_payload": json.loads(self.request_payload) if self.request_payload else None,
            "response_payload": json.loads(self.response_payload) if self.response_payload else None,
            "duration_ms": self.duration_ms,
            "caller_identity": self.caller_identity,
            "status": self.status,
            "error_type": self.error_type,
            "error_detail": self.error_detail,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


class AuditLogger:
    def __init__(self, session: Session):
        self.session = session

    def log(
        self,
        operation: str,
        algorithm_version: str,
        request_payload: Any,
        response_payload: Any,
        duration_ms: float,
        caller_identity: Optional[str] = None,
        status: str = "success",
        error_type: Optional[str] = None,
        error_detail: Optional[str] = None,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            operation=operation,
            algorithm_version=algorithm_version,
            request_payload=json.dumps(request_payload, default=str),
            response_payload=json.dumps(response_payload, default=str),
            duration_ms=duration_ms,
            caller_identity=caller_identity,
            status=status,
            error_type=error_type,
            error_detail=error_detail,
        )
        self.session.add(entry)
        # Committed by the caller together with the operation's own writes.
        return entry

    def query_log(
        self,
        operation: Optional[str] = None,
        since: Optional[datetime] = None,
        status: Optional[str] = None,
        limit: int = 50,
    ) -> List[AuditLogEntry]:
        q = self.session.query(AuditLogEntry)
        if operation:
            q = q.filter(AuditLogEntry.operation == operation)
        if since:
            q = q.filter(AuditLogEntry.timestamp >= since)
        if status:
            q = q.filter(AuditLogEntry.status == status)
        return q.order_by(AuditLogEntry.timestamp.desc()).limit(limit).all()
