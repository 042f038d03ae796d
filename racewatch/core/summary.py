"""
Summary Aggregation — Phase 6.

Pure fold over the final race list. trackers_used / strategies_used count
configured components, not components that produced output.
"""

from __future__ import annotations

import time

from racewatch.models.race_models import DetectionWarning, Race, RaceSummary

UNSCORED = "pending"


def build_summary(
    races: list[Race],
    warnings: list[DetectionWarning] | None = None,
    shared_state_items: int = 0,
    trackers_used: int = 0,
    strategies_used: int = 0,
) -> RaceSummary:
    """Count races by type and severity and attach run statistics."""
    by_type: dict[str, int] = {}
    by_severity: dict[str, int] = {}

    for race in races:
        by_type[race.type] = by_type.get(race.type, 0) + 1
        severity = race.severity or UNSCORED
        by_severity[severity] = by_severity.get(severity, 0) + 1

    return RaceSummary(
        total_races=len(races),
        total_warnings=len(warnings or []),
        by_type=by_type,
        by_severity=by_severity,
        shared_state_items=shared_state_items,
        trackers_used=trackers_used,
        strategies_used=strategies_used,
        analyzed_at=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
    )
