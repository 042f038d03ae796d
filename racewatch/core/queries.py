"""
Race Queries — Read-side helpers over a DetectionResult.
"""

from __future__ import annotations

from racewatch.models.race_models import AccessSummary, DetectionResult, Race, StateReport

SEVERITY_ORDER: tuple[str, ...] = ("low", "medium", "high", "critical")

SUGGESTED_FIXES: dict[str, str] = {
    "WW": "Use atomic operations or implement locking mechanism",
    "RW": "Add synchronization before write operations or use immutable updates",
    "IE": "Use singleton pattern with proper initialization check or lazy initialization with locks",
    "EH": "Ensure event handlers are properly synchronized or use event queue",
}
DEFAULT_FIX = "Review concurrent access patterns and consider adding synchronization"


def races_by_module(module_name: str, result: DetectionResult | None) -> list[Race]:
    if result is None:
        return []
    return [r for r in result.races if any(a.module == module_name for a in r.accesses)]


def races_by_file(file_path: str, result: DetectionResult | None) -> list[Race]:
    if result is None:
        return []
    return [r for r in result.races if any(a.file == file_path for a in r.accesses)]


def races_by_function(atom_id: str, result: DetectionResult | None) -> list[Race]:
    if result is None:
        return []
    return [r for r in result.races if any(a.atom == atom_id for a in r.accesses)]


def suggested_fix(race: Race) -> str:
    return SUGGESTED_FIXES.get(race.type, DEFAULT_FIX)


def highest_severity(races: list[Race]) -> str | None:
    """Most severe known label; unknown labels and missing severities are ignored."""
    ranked = [SEVERITY_ORDER.index(r.severity) for r in races if r.severity in SEVERITY_ORDER]
    return SEVERITY_ORDER[max(ranked)] if ranked else None


def state_report(state_key: str, result: DetectionResult | None) -> StateReport | None:
    """Summarize every race on one key, or None if the key has no races."""
    if result is None:
        return None
    races = [r for r in result.races if r.state_key == state_key]
    if not races:
        return None

    return StateReport(
        state_key=state_key,
        race_count=len(races),
        severity=highest_severity(races),
        accesses=[
            AccessSummary(
                function=access.atom_name,
                module=access.module,
                file=access.file,
                type=access.type,
                line=access.line,
            )
            for race in races
            for access in race.accesses
        ],
        suggested_fix=suggested_fix(races[0]),
    )
