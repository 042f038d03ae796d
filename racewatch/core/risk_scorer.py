"""
Risk Scoring — Phase 5 severity enrichment.

RiskScorer is the injected interface; its label is stored on the race verbatim.
WeightedRiskScorer is the default:

    score = 0.25 × type + 0.20 × async + 0.20 × data_integrity
          + 0.15 × scope + 0.15 × impact + 0.05 × frequency

    score >= 0.8 → critical, >= 0.6 → high, >= 0.4 → medium, else low
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from typing import Any

from racewatch.models.project_models import Project
from racewatch.models.race_models import Race


class RiskScorer(ABC):
    """Assigns an opaque severity label to a race."""

    @abstractmethod
    def calculate(self, race: Race, project: Project | None) -> str:
        """Return a severity label; only 'critical' is special to the pipeline."""


def enrich_severity(races: list[Race], scorer: RiskScorer, project: Project | None) -> list[Race]:
    """Phase 5: stamp each race with the scorer's label."""
    return [race.model_copy(update={"severity": scorer.calculate(race, project)}) for race in races]


DEFAULT_WEIGHTS: dict[str, dict[str, float]] = {
    "type": {"WW": 1.0, "RW": 0.8, "IE": 0.9, "EH": 0.7, "OTHER": 0.5},
    "async": {"both": 1.0, "one": 0.8, "none": 0.3},
    "data_integrity": {"critical": 1.0, "high": 0.8, "medium": 0.5, "low": 0.2},
    "scope": {"global": 1.0, "module": 0.7, "external": 0.9, "singleton": 0.8, "closure": 0.4},
}

FACTOR_WEIGHTS: dict[str, float] = {
    "type": 0.25,
    "async": 0.20,
    "data_integrity": 0.20,
    "scope": 0.15,
    "impact": 0.15,
    "frequency": 0.05,
}

# State scope -> data-integrity tier
INTEGRITY_BY_SCOPE: dict[str, str] = {
    "global": "high",
    "external": "critical",
    "singleton": "high",
    "module": "medium",
    "closure": "low",
}

TESTING_ADVICE: dict[str, dict[str, Any]] = {
    "critical": {"level": "mandatory", "tests": ["unit", "integration", "e2e", "stress"], "priority": "P0"},
    "high": {"level": "recommended", "tests": ["unit", "integration", "stress"], "priority": "P1"},
    "medium": {"level": "optional", "tests": ["unit", "integration"], "priority": "P2"},
    "low": {"level": "documentation", "tests": ["unit"], "priority": "P3"},
}


class WeightedRiskScorer(RiskScorer):
    """Default scorer: six weighted factors mapped onto four severity tiers."""

    def __init__(self, weights: dict[str, dict[str, float]] | None = None) -> None:
        self.weights = copy.deepcopy(DEFAULT_WEIGHTS)
        if weights:
            self.set_weights(weights)

    def set_weights(self, weights: dict[str, dict[str, float]]) -> None:
        for group, values in weights.items():
            self.weights.setdefault(group, {}).update(values)

    def calculate(self, race: Race | None, project: Project | None) -> str:
        if race is None:
            return "low"
        return self.score_to_severity(self.score(race, project))

    def score(self, race: Race, project: Project | None) -> float:
        factors = self.factor_scores(race, project)
        return sum(FACTOR_WEIGHTS[name] * value for name, value in factors.items())

    def factor_scores(self, race: Race, project: Project | None) -> dict[str, float]:
        return {
            "type": self.score_type(race),
            "async": self.score_async(race),
            "data_integrity": self.score_data_integrity(race),
            "scope": self.score_scope(race),
            "impact": self.score_impact(race, project),
            "frequency": self.score_frequency(race),
        }

    # ── Factors ──

    def score_type(self, race: Race) -> float:
        return self.weights["type"].get(race.type, 0.5)

    def score_async(self, race: Race) -> float:
        flags = [access.is_async for access in race.accesses[:2]]
        if len(flags) == 2 and all(flags):
            return self.weights["async"]["both"]
        if any(flags):
            return self.weights["async"]["one"]
        return self.weights["async"]["none"]

    def score_data_integrity(self, race: Race) -> float:
        tier = INTEGRITY_BY_SCOPE.get(race.state_type, "medium")
        base = self.weights["data_integrity"][tier]
        if race.type == "WW":
            base = min(base * 1.2, 1.0)
        elif race.type == "IE":
            base = min(base * 1.1, 1.0)
        return base

    def score_scope(self, race: Race) -> float:
        return self.weights["scope"].get(race.state_type, 0.5)

    def score_impact(self, race: Race, project: Project | None) -> float:
        impact = 0.5
        flows = affected_business_flows(race, project)
        if flows:
            impact += 0.2 * min(len(flows) / 3, 1.0)
        entries = affected_entry_points(race, project)
        if entries:
            impact += 0.2 * min(len(entries) / 2, 1.0)
        if any(access.is_exported for access in race.accesses):
            impact += 0.1
        return min(impact, 1.0)

    def score_frequency(self, race: Race) -> float:
        count = len(race.accesses)
        if count > 2:
            return min(0.8 + (count - 2) * 0.05, 1.0)
        return 0.5

    @staticmethod
    def score_to_severity(score: float) -> str:
        if score >= 0.8:
            return "critical"
        if score >= 0.6:
            return "high"
        if score >= 0.4:
            return "medium"
        return "low"

    # ── Explainability ──

    def explain_score(self, race: Race, project: Project | None) -> list[str]:
        """Human-readable reasons behind a high score."""
        scores = self.factor_scores(race, project)
        factors: list[str] = []
        if scores["type"] >= 0.8:
            factors.append(f"{race.type} race type is highly dangerous")
        if scores["async"] >= 0.8:
            factors.append("Async access on at least one side, high concurrency risk")
        if scores["data_integrity"] >= 0.8:
            factors.append("High risk of data corruption or loss")
        if scores["scope"] >= 0.8:
            factors.append(f"Global/external state: {race.state_key}")
        if scores["impact"] >= 0.7:
            factors.append("Affects critical business flows or entry points")
        return factors

    @staticmethod
    def suggest_testing_level(severity: str) -> dict[str, Any]:
        advice = TESTING_ADVICE.get(severity)
        if advice is None:
            return {"level": "unknown", "tests": [], "priority": "P3"}
        return copy.deepcopy(advice)


def affected_business_flows(race: Race, project: Project | None) -> list[str]:
    """Names of business flows with a step running one of the race's atoms."""
    if project is None or project.system is None:
        return []
    atom_ids = {access.atom for access in race.accesses}
    return [
        flow.name
        for flow in project.system.business_flows
        if any(step.function in atom_ids for step in flow.steps if step.function)
    ]


def affected_entry_points(race: Race, project: Project | None) -> list[str]:
    """Entry points declared in one of the race's modules."""
    if project is None or project.system is None:
        return []
    modules = {access.module for access in race.accesses}
    return [
        entry.handler or entry.type
        for entry in project.system.entry_points
        if entry.module and entry.module in modules
    ]
