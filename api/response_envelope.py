"""
Uniform response envelope for the steering API.

``data`` holds the structured result, ``causal_explanation`` a plain-language
account of it that always quotes the numbers behind the verdict, and
``audit_id`` points at the ledger row for the call. Failed calls carry the
error message as explanation and ``error_type``/``retryable`` in metadata.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from models.base import utcnow


def _timestamp() -> str:
    return utcnow().isoformat() + "Z"


@dataclass
class ApiResponse:
    operation: str
    api_version: str
    status: str  # "ok" | "error"
    data: Any
    causal_explanation: str
    audit_id: str
    timestamp: str = field(default_factory=_timestamp)
    metadata: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "operation": self.operation,
            "api_version": self.api_version,
            "status": self.status,
            "data": self.data,
            "causal_explanation": self.causal_explanation,
            "audit_id": self.audit_id,
            "timestamp": self.timestamp,
        }
        if self.metadata:
            payload["metadata"] = self.metadata
        return payload


def success_envelope(
    operation: str,
    api_version: str,
    data: Any,
    causal_explanation: str,
    audit_id: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> ApiResponse:
    return ApiResponse(
        operation=operation,
        api_version=api_version,
        status="ok",
        data=data,
        causal_explanation=causal_explanation,
        audit_id=audit_id,
        metadata=metadata,
    )


def error_envelope(
    operation: str,
    api_version: str,
    error_message: str,
    audit_id: str,
    error_type: str = "internal_error",
    retryable: bool = False,
) -> ApiResponse:
    return ApiResponse(
        operation=operation,
        api_version=api_version,
        status="error",
        data=None,
        causal_explanation=error_message,
        audit_id=audit_id,
        metadata={"error_type": error_type, "retryable": retryable},
    )
