"""
Tracker interface — producers of shared-state access maps.

A tracker is registered into the pipeline at construction time and asked,
with no arguments, for a mapping of SharedStateKey ('<scope>:<name>') to the
AccessPoints it observed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from racewatch.models.race_models import AccessPoint

SharedStateMap = dict[str, list[AccessPoint]]


class Tracker(ABC):
    """Base class for shared-state trackers."""

    #: Short identifier used in logs and warnings
    name: str = "tracker"

    @abstractmethod
    def track(self) -> SharedStateMap:
        """Return SharedStateKey -> AccessPoints observed by this tracker."""


def make_key(scope: str, name: str) -> str:
    return f"{scope}:{name}"


def add_access(state: SharedStateMap, scope: str, name: str, access: AccessPoint) -> None:
    state.setdefault(make_key(scope, name), []).append(access)
