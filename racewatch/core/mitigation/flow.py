"""
Flow Checker — are two accesses always sequential in the same business logic?

The lowest-confidence checker. A strategy-supplied same_business_flow()
takes precedence; the default only recognises two accesses inside one atom
that sit within a few lines of each other.
"""

from __future__ import annotations

from racewatch.config import settings
from racewatch.models.race_models import AccessPoint

CHECKER_ID = "flow"

SEQUENTIAL_DESCRIPTION = "Accesses run sequentially in the same business flow"


def same_business_flow(
    access1: AccessPoint,
    access2: AccessPoint,
    line_window: int | None = None,
) -> bool:
    """Same file and same atom, with access lines at most line_window apart."""
    window = line_window if line_window is not None else settings.flow_line_window
    if access1.file != access2.file:
        return False
    if access1.atom != access2.atom:
        return False
    return abs(access1.line - access2.line) <= window
