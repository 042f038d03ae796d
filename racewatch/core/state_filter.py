"""
State Filter + Strategy Dispatch — Phase 2.

filter_shared_state() is the primary false-positive gate: state scoped to a
single invocation ('local:', 'function:') cannot race, so it never reaches a
strategy no matter how many trackers reported it. Unrecognized scopes are
dropped too.
"""

from __future__ import annotations

import logging

from racewatch.core.strategies.base import RaceStrategy
from racewatch.core.trackers.base import SharedStateMap
from racewatch.models.project_models import Project
from racewatch.models.race_models import REAL_SCOPES, Race

logger = logging.getLogger("racewatch.core.state_filter")


def key_scope(state_key: str) -> str:
    """Text before the first ':' of a SharedStateKey."""
    return state_key.split(":", 1)[0]


def filter_shared_state(shared_state: SharedStateMap) -> SharedStateMap:
    """Keep only keys scoped global/module/closure/external/singleton. Never adds keys."""
    filtered: SharedStateMap = {}
    dropped = 0
    for state_key, accesses in shared_state.items():
        if key_scope(state_key) in REAL_SCOPES:
            filtered[state_key] = accesses
        else:
            dropped += 1
    if dropped:
        logger.debug(f"Filtered out {dropped} locally-scoped or unrecognized keys")
    return filtered


def dispatch_strategies(
    strategies: list[RaceStrategy],
    filtered_state: SharedStateMap,
    project: Project | None,
) -> list[Race]:
    """
    Run every strategy in registration order and concatenate their races.

    Strategy exceptions propagate to the caller. Identical races reported by
    two strategies are both kept.
    """
    races: list[Race] = []
    for strategy in strategies:
        found = strategy.detect(filtered_state, project)
        logger.debug(f"{getattr(strategy, 'name', type(strategy).__name__)}: {len(found)} races")
        races.extend(found)
    return races
