"""
Engine options loaded through pydantic-settings.

Both configs are frozen and validated on construction, so a bad threshold
fails when the engine is wired up rather than halfway through a request.
Unset fields are read from the environment under a prefix, e.g.
``STEERING_MAX_DEPTH`` or ``HOMEOSTAT_LOOKBACK_DAYS``; explicit keyword
arguments win over the environment.
"""

from typing import Any, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


def _describe(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}" for err in exc.errors()
    )


class _EngineSettings(BaseSettings):
    model_config = SettingsConfigDict(frozen=True, extra="ignore")

    def __init__(self, **values: Any) -> None:
        try:
            super().__init__(**values)
        except ValidationError as exc:
            raise ConfigurationError(_describe(exc)) from exc


class PathfinderConfig(_EngineSettings):
    model_config = SettingsConfigDict(env_prefix="STEERING_", frozen=True, extra="ignore")

    max_depth: int = Field(5, ge=1)
    max_paths: int = Field(100, ge=1)
    min_influence_threshold: float = Field(0.1, ge=0.0, le=1.0)
    top_alternatives: int = Field(4, ge=0)
    top_ranked: int = Field(10, ge=1)
    # Secondary latency guard, checked between frontier expansions.
    max_wall_time_ms: Optional[float] = Field(None, gt=0)


class ContradictionDetectionConfig(_EngineSettings):
    model_config = SettingsConfigDict(env_prefix="HOMEOSTAT_", frozen=True, extra="ignore")

    impact_diff_threshold: float = Field(0.5, ge=0.0, le=1.0)
    certainty_diff_threshold: float = Field(0.3, ge=0.0, le=1.0)
    # Opposite relation plus at least this impact change reads as a full reversal.
    narrative_reversal_impact_diff: float = Field(0.4, ge=0.0, le=1.0)
    check_opposite_relations: bool = True
    lookback_days: int = Field(365, ge=0)
    min_severity_for_alert: float = Field(0.5, ge=0.0, le=1.0)
    auto_penalize_source: bool = True
    reliability_penalty: float = Field(0.1, ge=0.0, le=1.0)
    initial_source_reliability: float = Field(0.5, ge=0.0, le=1.0)
