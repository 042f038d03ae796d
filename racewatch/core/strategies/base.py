"""
Race Strategy interface — pluggable deciders of what counts as a race.

Strategies are trusted producers: the pipeline neither catches their
exceptions nor de-duplicates their output.

To add a strategy, subclass RaceStrategy, implement detect(), and register an
instance with RaceDetectionPipeline(strategies=[...]). Overriding
same_business_flow() replaces the mitigation checker's default flow rule.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from racewatch.core.trackers.base import SharedStateMap
from racewatch.models.project_models import Project
from racewatch.models.race_models import AccessPoint, Race

FlowJudge = Callable[[AccessPoint, AccessPoint, Project | None], bool | None]


class RaceStrategy(ABC):
    """Base class for race detection strategies."""

    name: str = "strategy"

    @abstractmethod
    def detect(self, shared_state: SharedStateMap, project: Project | None) -> list[Race]:
        """Return the races found in the filtered shared-state map."""

    def same_business_flow(
        self, access1: AccessPoint, access2: AccessPoint, project: Project | None
    ) -> bool | None:
        """
        Judge whether two accesses run sequentially within one business flow.

        Return True or False to decide, or None to leave the decision to the
        mitigation checker's line-window rule. The base implementation has no
        opinion.
        """
        return None


def overrides_flow(strategy: RaceStrategy) -> bool:
    return type(strategy).same_business_flow is not RaceStrategy.same_business_flow


def flow_override(strategies: list[RaceStrategy] | None) -> FlowJudge | None:
    """same_business_flow of the first strategy that overrides it, or None."""
    for strategy in strategies or []:
        if overrides_flow(strategy):
            return strategy.same_business_flow
    return None
