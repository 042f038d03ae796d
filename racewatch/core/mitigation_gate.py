"""
Mitigation Gate — Phase 4 suppression policy.

For each race with >= 2 accesses:
- compute a fresh verdict (only when a checker exists, i.e. the project is non-empty)
- stamp has_mitigation / mitigation_type from the fresh verdict, else keep the
  strategy's own flags
- drop the race if it carries any mitigation, UNLESS its severity is
  'critical' or the mitigation is partial ('partial-...')

Races with fewer than two accesses pass through untouched. The policy trades
recall for precision everywhere except the critical class.
"""

from __future__ import annotations

import logging

from racewatch.core.mitigation.checker import MitigationChecker
from racewatch.models.race_models import DetectionWarning, Race

logger = logging.getLogger("racewatch.core.mitigation_gate")

CRITICAL = "critical"
PARTIAL_PREFIX = "partial-"


def apply_mitigation_gate(
    races: list[Race],
    checker: MitigationChecker | None,
) -> tuple[list[Race], list[DetectionWarning]]:
    """
    Stamp mitigation verdicts and suppress sufficiently mitigated races.

    Args:
        races: Pattern-enriched races from Phase 3.
        checker: None disables fresh mitigation detection for the whole run.

    Returns:
        (surviving races, warnings for malformed races)
    """
    kept: list[Race] = []
    warnings: list[DetectionWarning] = []
    suppressed = 0

    for race in races:
        if len(race.accesses) < 2:
            warnings.append(
                DetectionWarning(
                    kind="malformed_race",
                    message=f"Race has {len(race.accesses)} access(es); mitigation check skipped",
                    source=race.id or race.state_key,
                )
            )
            kept.append(race)
            continue

        stamped = stamp_mitigation(race, checker)
        if should_suppress(stamped):
            suppressed += 1
            logger.debug(f"Suppressed {stamped.id or stamped.state_key}: {stamped.mitigation_type}")
            continue
        kept.append(stamped)

    if suppressed:
        logger.info(f"Mitigation gate suppressed {suppressed} of {len(races)} races")
    return kept, warnings


def stamp_mitigation(race: Race, checker: MitigationChecker | None) -> Race:
    """Return the race with has_mitigation / mitigation_type filled in, if any signal exists."""
    mitigation = checker.find_mitigation(race) if checker is not None else None
    if mitigation is not None:
        return race.model_copy(
            update={
                "has_mitigation": True,
                "mitigation_type": mitigation.type.value,
                "mitigation": mitigation,
            }
        )
    if race.has_mitigation or race.mitigation_type:
        return race.model_copy(update={"has_mitigation": True})
    return race


def should_suppress(race: Race) -> bool:
    """Mitigated races are dropped unless critical or only partially mitigated."""
    if not race.has_mitigation:
        return False
    if race.severity == CRITICAL:
        return False
    return not (race.mitigation_type or "").startswith(PARTIAL_PREFIX)
