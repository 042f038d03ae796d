"""
Race Data Models — Access points, races, warnings, and run summaries.

Race is frozen: each pipeline phase returns a new, more complete Race via
model_copy(update=...). Output keys are camelCase (hasMitigation, totalRaces...)
when dumped with by_alias=True.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from racewatch.models.mitigation_models import Mitigation

_WIRE_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

REAL_SCOPES: frozenset[str] = frozenset({"global", "module", "closure", "external", "singleton"})
LOCAL_SCOPES: frozenset[str] = frozenset({"local", "function"})


class AccessPoint(BaseModel):
    """One read/write reference to a shared-state item. Never mutated after creation."""

    model_config = _WIRE_CONFIG

    atom: str = Field(..., description="Owning atom ID '<filePath>::<name>'")
    atom_name: str = ""
    file: str = "unknown"
    module: str = "unknown"
    line: int = 0
    is_async: bool = False
    is_exported: bool = False
    type: str = Field(default="unknown", description="Access kind: read, write, initialization...")
    operation: str | None = None
    variable: str | None = None
    risk: str | None = Field(default=None, description="Capture risk for closure-captured accesses")
    code: str | None = Field(default=None, description="Optional inline source context")


class PatternMatch(BaseModel):
    """A named bug pattern reported by a PatternMatcher."""

    model_config = ConfigDict(frozen=True)

    key: str
    name: str


class Race(BaseModel):
    """A candidate race condition: two or more accesses on one shared-state key."""

    model_config = _WIRE_CONFIG

    id: str = ""
    type: str = "OTHER"
    state_key: str = ""
    state_type: str = ""
    accesses: list[AccessPoint] = Field(default_factory=list)
    description: str = ""

    # Phase 3
    pattern: str | None = None
    pattern_name: str | None = None
    all_patterns: list[str] | None = None

    # Phase 4
    has_mitigation: bool = False
    mitigation_type: str | None = None
    mitigation: Mitigation | None = None

    # Phase 5 (strategies may pre-assign)
    severity: str | None = None


class DetectionWarning(BaseModel):
    """A non-fatal observation made while running the pipeline."""

    model_config = ConfigDict(frozen=True)

    kind: str = Field(..., description="'tracker_skipped' or 'malformed_race'")
    message: str
    source: str = ""


class RaceSummary(BaseModel):
    """Aggregate statistics for one detection run."""

    model_config = _WIRE_CONFIG

    total_races: int = 0
    total_warnings: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    by_severity: dict[str, int] = Field(default_factory=dict)
    shared_state_items: int = 0
    trackers_used: int = 0
    strategies_used: int = 0
    analyzed_at: str = ""


class DetectionResult(BaseModel):
    """Pipeline output handed to the storage/reporting layer."""

    model_config = _WIRE_CONFIG

    races: list[Race] = Field(default_factory=list)
    warnings: list[DetectionWarning] = Field(default_factory=list)
    summary: RaceSummary = Field(default_factory=RaceSummary)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class AccessSummary(BaseModel):
    """Flattened view of one access inside a StateReport."""

    model_config = _WIRE_CONFIG

    function: str = ""
    module: str = "unknown"
    file: str = "unknown"
    type: str = "unknown"
    line: int = 0


class StateReport(BaseModel):
    """Every reported race on one shared-state key."""

    model_config = _WIRE_CONFIG

    state_key: str
    race_count: int = 0
    severity: str | None = Field(default=None, description="Highest known severity among the races")
    accesses: list[AccessSummary] = Field(default_factory=list)
    suggested_fix: str = ""


class AuditEntry(BaseModel):
    """Audit metadata for one detection run."""

    run_id: str
    trackers_used: int = 0
    strategies_used: int = 0
    shared_state_items: int = 0
    races_found: int = 0
    races_suppressed: int = 0
    warnings: int = 0
    by_severity: dict[str, int] = Field(default_factory=dict)
    duration_ms: float = 0.0
