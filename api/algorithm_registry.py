"""
Algorithm Version Registry
==========================
Maps each API operation to the versioned algorithm that serves it. The
version string ends up in every response envelope and audit entry, so a
past steering recommendation or contradiction verdict can be traced back to
the scoring rules that produced it.

The latest non-deprecated version whose ``effective_from`` has passed wins.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from models.base import utcnow


@dataclass(frozen=True)
class AlgorithmVersionDescriptor:
    version: str
    description: str
    effective_from: datetime = field(default_factory=utcnow)
    deprecated_at: Optional[datetime] = None


_REGISTRY: Dict[str, List[AlgorithmVersionDescriptor]] = {
    "simulate_steering": [
        AlgorithmVersionDescriptor(
            version="1.0.0",
            description=(
                "Backward BFS over incoming correlations with impact-product pruning, "
                "feedback multipliers (1.5 positive, 0.7 negative) and "
                "power x influence x certainty leverage ranking."
            ),
        ),
    ],
    "ingest_relations": [
        AlgorithmVersionDescriptor(
            version="1.0.0",
            description="Correlation ingestion followed by advisory contradiction verification.",
        ),
    ],
    "verify_relations": [
        AlgorithmVersionDescriptor(
            version="1.0.0",
            description=(
                "Pairwise history comparison: opposite relation, impact reversal, "
                "certainty drop and narrative reversal with additive severity."
            ),
        ),
    ],
    "register_object": [
        AlgorithmVersionDescriptor(
            version="1.0.0",
            description="Cybernetic object registration with energy profile.",
        ),
    ],
    "supersede_relation": [
        AlgorithmVersionDescriptor(
            version="1.0.0",
            description="Soft retirement of a correlation in favour of a replacement.",
        ),
    ],
    "list_alerts": [
        AlgorithmVersionDescriptor(
            version="1.0.0",
            description="Alert listing by status, newest first.",
        ),
    ],
    "update_alert_status": [
        AlgorithmVersionDescriptor(
            version="1.0.0",
            description="Alert resolution or dismissal with resolver identity.",
        ),
    ],
    "source_reliability": [
        AlgorithmVersionDescriptor(
            version="1.0.0",
            description="Source reliability lookup with initial score for unseen sources.",
        ),
    ],
}


def get_current_version(operation: str) -> AlgorithmVersionDescriptor:
    versions = _REGISTRY.get(operation)
    if not versions:
        raise KeyError(f"Unknown operation: {operation}")

    now = utcnow()
    candidates = [
        v for v in versions
        if v.effective_from <= now and v.deprecated_at is None
    ]
    if not candidates:
        raise RuntimeError(f"No active algorithm version for operation '{operation}'")
    return max(candidates, key=lambda v: v.effective_from)


def register_version(
    operation: str,
    version: str,
    description: str,
    effective_from: Optional[datetime] = None,
) -> AlgorithmVersionDescriptor:
    """
    Appends a version for ``operation``. A future ``effective_from`` keeps it
    dormant until then.
    """
    desc = AlgorithmVersionDescriptor(
        version=version,
        description=description,
        effective_from=effective_from or utcnow(),
    )
    _REGISTRY.setdefault(operation, []).append(desc)
    return desc


def deprecate_version(operation: str, version: str) -> None:
    versions = _REGISTRY.get(operation, [])
    for i, v in enumerate(versions):
        if v.version == version and v.deprecated_at is None:
            versions[i] = AlgorithmVersionDescriptor(
                version=v.version,
                description=v.description,
                effective_from=v.effective_from,
                deprecated_at=utcnow(),
            )
            return
    raise KeyError(f"Active version '{version}' not found for operation '{operation}'")


def list_versions(operation: str) -> List[AlgorithmVersionDescriptor]:
    return list(_REGISTRY.get(operation, []))
