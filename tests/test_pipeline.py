"""
Tests for the full race detection pipeline — end-to-end runs, summary invariants, audit trail.
"""

import json

import pytest

from racewatch.audit.logger import RunAuditLogger
from racewatch.core.pattern_matcher import RacePatternMatcher
from racewatch.core.risk_scorer import RiskScorer, WeightedRiskScorer
from racewatch.core.strategies.base import RaceStrategy
from racewatch.core.strategies.concurrent_access import ConcurrentAccessStrategy
from racewatch.core.summary import build_summary
from racewatch.core.trackers.base import Tracker
from racewatch.engine.pipeline import RaceDetectionPipeline, detect_race_conditions
from racewatch.models.project_models import Atom, Project
from racewatch.models.race_models import Race

ASYNC_INC = """async function inc() {
  await tick();
  global.counter = global.counter + 1;
}"""


class StaticTracker(Tracker):
    name = "static"

    def __init__(self, state):
        self.state = state

    def track(self):
        return self.state


class PairStrategy(RaceStrategy):
    """Reports the first two accesses of every key with two or more accesses."""

    name = "pair"

    def __init__(self, **race_fields):
        self.race_fields = race_fields

    def detect(self, shared_state, project):
        return [
            Race(
                id=f"pair-{key}",
                type="WW",
                state_key=key,
                state_type=key.split(":")[0],
                accesses=accesses[:2],
                **self.race_fields,
            )
            for key, accesses in shared_state.items()
            if len(accesses) >= 2
        ]


class SingleAccessStrategy(RaceStrategy):
    def detect(self, shared_state, project):
        return [Race(id="lonely", state_key=key, accesses=accesses[:1]) for key, accesses in shared_state.items()]


class ConstantScorer(RiskScorer):
    def __init__(self, label):
        self.label = label

    def calculate(self, race, project):
        return self.label


def _assert_summary_invariants(result):
    summary = result.summary
    assert sum(summary.by_type.values()) == summary.total_races
    assert sum(summary.by_severity.values()) == summary.total_races
    assert summary.total_races == len(result.races)
    assert summary.total_warnings == len(result.warnings)


def test_end_to_end_unmitigated_counter(counter_project, counter_accesses):
    pipeline = RaceDetectionPipeline(
        counter_project,
        trackers=[StaticTracker({"global:counter": counter_accesses})],
        strategies=[PairStrategy()],
    )
    result = pipeline.run()
    assert len(result.races) == 1
    race = result.races[0]
    assert [a.atom for a in race.accesses] == ["a.js::inc", "b.js::inc"]
    assert not race.has_mitigation
    assert race.mitigation_type is None
    _assert_summary_invariants(result)
    assert result.summary.shared_state_items == 1
    assert result.summary.trackers_used == 1
    assert result.summary.strategies_used == 1
    assert result.summary.by_severity == {"pending": 1}


def test_shared_state_items_counted_before_filtering(counter_accesses):
    pipeline = RaceDetectionPipeline(
        None,
        trackers=[StaticTracker({"local:tmp": counter_accesses, "global:counter": counter_accesses})],
        strategies=[PairStrategy()],
    )
    result = pipeline.run()
    assert result.summary.shared_state_items == 2
    assert [r.state_key for r in result.races] == ["global:counter"]


def test_empty_project_honors_only_preassigned_flags(counter_accesses):
    state = {"global:counter": counter_accesses}
    suppressed = RaceDetectionPipeline(
        Project(), trackers=[StaticTracker(state)], strategies=[PairStrategy(mitigation_type="queue")]
    ).run()
    kept = RaceDetectionPipeline(
        Project(), trackers=[StaticTracker(state)], strategies=[PairStrategy()]
    ).run()
    assert suppressed.races == []
    assert len(kept.races) == 1


def test_gate_sees_strategy_severity_not_scorer_label(make_project, make_access):
    locked = "async function w() {\n  await lock.acquire();\n  shared.n = 1;\n}"
    atom1 = Atom(id="a.js::w", name="w", code=locked, is_async=True)
    atom2 = Atom(id="b.js::w", name="w", code=locked, is_async=True)
    project = make_project({"a.js": [atom1], "b.js": [atom2]})
    state = {"global:shared.n": [make_access(atom1, "a.js"), make_access(atom2, "b.js")]}

    result = RaceDetectionPipeline(
        project,
        trackers=[StaticTracker(state)],
        strategies=[PairStrategy(severity="critical")],
        risk_scorer=ConstantScorer("low"),
    ).run()
    assert len(result.races) == 1
    assert result.races[0].mitigation_type == "lock"
    assert result.races[0].severity == "low"

    dropped = RaceDetectionPipeline(
        project,
        trackers=[StaticTracker(state)],
        strategies=[PairStrategy()],
        risk_scorer=ConstantScorer("critical"),
    ).run()
    assert dropped.races == []


def test_malformed_races_are_kept_with_warning(counter_project, counter_accesses):
    result = RaceDetectionPipeline(
        counter_project,
        trackers=[StaticTracker({"global:counter": counter_accesses}), None],
        strategies=[SingleAccessStrategy()],
    ).run()
    assert [r.id for r in result.races] == ["lonely"]
    assert sorted(w.kind for w in result.warnings) == ["malformed_race", "tracker_skipped"]
    _assert_summary_invariants(result)


def test_no_trackers_no_races():
    result = RaceDetectionPipeline(None, trackers=[], strategies=[PairStrategy()]).run()
    assert result.races == []
    assert result.summary.shared_state_items == 0
    assert result.summary.total_races == 0


def test_strategy_exception_aborts_run(counter_project, counter_accesses):
    class Exploding(RaceStrategy):
        def detect(self, shared_state, project):
            raise RuntimeError("strategy failed")

    pipeline = RaceDetectionPipeline(
        counter_project,
        trackers=[StaticTracker({"global:counter": counter_accesses})],
        strategies=[Exploding()],
    )
    with pytest.raises(RuntimeError):
        pipeline.run()


def test_default_components_end_to_end(make_project):
    project = make_project(
        {
            "a.js": [Atom(id="a.js::inc", name="inc", code=ASYNC_INC, is_async=True, line=1)],
            "b.js": [Atom(id="b.js::inc", name="inc", code=ASYNC_INC, is_async=True, line=1)],
        }
    )
    result = RaceDetectionPipeline(
        project,
        trackers=[StaticTracker({})],
        strategies=[ConcurrentAccessStrategy()],
        pattern_matcher=RacePatternMatcher(project),
        risk_scorer=WeightedRiskScorer(),
    ).run()
    assert result.races == []

    result = detect_race_conditions(project)
    counter_races = [r for r in result.races if r.state_key == "global:counter"]
    assert len(counter_races) == 1
    race = counter_races[0]
    assert race.type == "WW"
    assert race.pattern == "counter"
    assert race.severity == "critical"
    assert not race.has_mitigation
    _assert_summary_invariants(result)
    assert result.summary.trackers_used == 5


def test_result_serializes_with_camel_case_keys(counter_project, counter_accesses):
    result = RaceDetectionPipeline(
        counter_project,
        trackers=[StaticTracker({"global:counter": counter_accesses})],
        strategies=[PairStrategy()],
    ).run()
    payload = result.to_dict()
    assert "totalRaces" in payload["summary"]
    assert payload["races"][0]["stateKey"] == "global:counter"
    assert payload["races"][0]["hasMitigation"] is False
    assert "atomName" in payload["races"][0]["accesses"][0]


def test_build_summary_counts():
    races = [
        Race(type="WW", severity="high"),
        Race(type="WW", severity="critical"),
        Race(type="RW"),
    ]
    summary = build_summary(races, shared_state_items=4, trackers_used=2, strategies_used=1)
    assert summary.by_type == {"WW": 2, "RW": 1}
    assert summary.by_severity == {"high": 1, "critical": 1, "pending": 1}
    assert summary.total_warnings == 0
    assert summary.analyzed_at.endswith("Z")


def test_pipeline_writes_audit_entry(tmp_path, counter_project, counter_accesses):
    log_path = tmp_path / "audit.jsonl"
    RaceDetectionPipeline(
        counter_project,
        trackers=[StaticTracker({"global:counter": counter_accesses})],
        strategies=[PairStrategy()],
        audit_logger=RunAuditLogger(log_path),
    ).run()
    lines = log_path.read_text().strip().splitlines()
    assert len(lines) == 1
    record = json.loads(lines[0])
    assert record["races_found"] == 1
    assert record["races_suppressed"] == 0
    assert record["shared_state_items"] == 1
    assert "recorded_at" in record
