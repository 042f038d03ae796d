"""
Concurrent Access Strategy — The default RaceStrategy.

For every key with two or more accesses, each pair that can run concurrently
(per TimingAnalyzer) becomes one Race. The race type follows the access kinds:

    WW     both accesses write
    RW     one write, one read
    IE     an initialization is involved
    EH     an event handler is involved
    OTHER  anything else
"""

from __future__ import annotations

import logging
import uuid

from racewatch.config import settings
from racewatch.core.state_filter import key_scope
from racewatch.core.strategies.base import RaceStrategy
from racewatch.core.strategies.timing import TimingAnalyzer
from racewatch.core.trackers.base import SharedStateMap
from racewatch.models.project_models import Project
from racewatch.models.race_models import AccessPoint, Race

logger = logging.getLogger("racewatch.core.strategies")

WRITE_KINDS = frozenset({"write", "STATE_WRITE"})
READ_KINDS = frozenset({"read", "STATE_READ", "ACCESS"})
EVENT_KINDS = frozenset({"event", "EVENT"})

TYPE_NAMES: dict[str, str] = {
    "WW": "Write-Write",
    "RW": "Read-Write",
    "IE": "Initialization Error",
    "EH": "Event Handler",
    "OTHER": "Unknown",
}


def determine_race_type(access1: AccessPoint, access2: AccessPoint) -> str:
    kinds = {access1.type, access2.type}
    if kinds <= WRITE_KINDS:
        return "WW"
    if kinds & WRITE_KINDS and kinds & READ_KINDS:
        return "RW"
    if "initialization" in kinds:
        return "IE"
    if kinds & EVENT_KINDS:
        return "EH"
    return "OTHER"


def describe_race(state_key: str, access1: AccessPoint, access2: AccessPoint, race_type: str) -> str:
    return (
        f"{TYPE_NAMES.get(race_type, race_type)} race detected on {state_key}: "
        f"{access1.atom_name} ({access1.type}) vs {access2.atom_name} ({access2.type})"
    )


class ConcurrentAccessStrategy(RaceStrategy):
    """Pairwise concurrency check over every shared-state key."""

    name = "concurrent_access"

    def __init__(
        self,
        timing: TimingAnalyzer | None = None,
        max_reported_accesses: int | None = None,
    ) -> None:
        self.timing = timing or TimingAnalyzer()
        limit = (
            max_reported_accesses
            if max_reported_accesses is not None
            else settings.max_reported_accesses
        )
        self.max_reported_accesses = max(limit, 2)

    def detect(self, shared_state: SharedStateMap, project: Project | None) -> list[Race]:
        races: list[Race] = []
        for state_key, accesses in shared_state.items():
            if len(accesses) < 2:
                continue
            for i, access1 in enumerate(accesses):
                for access2 in accesses[i + 1 :]:
                    if self.timing.can_run_concurrently(access1, access2, project):
                        races.append(self.create_race(state_key, access1, access2, accesses))
        logger.debug(f"{self.name}: {len(races)} races over {len(shared_state)} keys")
        return races

    def create_race(
        self,
        state_key: str,
        access1: AccessPoint,
        access2: AccessPoint,
        all_accesses: list[AccessPoint] | None = None,
    ) -> Race:
        """
        Build a Race for one concurrent pair.

        The pair always comes first. When max_reported_accesses allows more,
        further accesses on the same key are appended in tracker order.
        """
        race_type = determine_race_type(access1, access2)
        accesses = [access1, access2]
        for other in all_accesses or []:
            if len(accesses) >= self.max_reported_accesses:
                break
            if other is not access1 and other is not access2:
                accesses.append(other)

        return Race(
            id=f"race_{uuid.uuid4().hex[:12]}",
            type=race_type,
            state_key=state_key,
            state_type=key_scope(state_key),
            accesses=accesses,
            description=describe_race(state_key, access1, access2, race_type),
        )

    def same_business_flow(
        self, access1: AccessPoint, access2: AccessPoint, project: Project | None
    ) -> bool:
        return self.timing.same_business_flow(access1, access2, project)
