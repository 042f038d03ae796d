"""
Tests for the Phase 4 suppression policy.
"""

from racewatch.core.mitigation.checker import MitigationChecker
from racewatch.core.mitigation_gate import apply_mitigation_gate, should_suppress, stamp_mitigation
from racewatch.models.project_models import Atom
from racewatch.models.race_models import Race

LOCKED = """async function write() {
  await lock.acquire();
  shared.total = shared.total + 1;
  lock.release();
}"""


def _locked_race(make_project, make_access, severity):
    atom1 = Atom(id="a.js::write", name="write", code=LOCKED, is_async=True)
    atom2 = Atom(id="b.js::write", name="write", code=LOCKED, is_async=True)
    project = make_project({"a.js": [atom1], "b.js": [atom2]})
    race = Race(
        id=f"race-{severity}",
        type="WW",
        state_key="global:shared.total",
        state_type="global",
        accesses=[make_access(atom1, "a.js"), make_access(atom2, "b.js")],
        severity=severity,
    )
    return project, race


def test_critical_race_survives_full_mitigation(make_project, make_access):
    project, race = _locked_race(make_project, make_access, "critical")
    kept, warnings = apply_mitigation_gate([race], MitigationChecker(project))
    assert [r.id for r in kept] == ["race-critical"]
    assert kept[0].has_mitigation is True
    assert kept[0].mitigation_type == "lock"
    assert warnings == []


def test_medium_race_is_suppressed(make_project, make_access):
    project, race = _locked_race(make_project, make_access, "medium")
    kept, _ = apply_mitigation_gate([race], MitigationChecker(project))
    assert kept == []


def test_unmitigated_race_kept_unmodified(counter_project, counter_accesses):
    race = Race(id="r", type="WW", state_key="global:counter", accesses=counter_accesses)
    kept, _ = apply_mitigation_gate([race], MitigationChecker(counter_project))
    assert kept == [race]
    assert not kept[0].has_mitigation


def test_partial_lock_is_kept(lock_project, make_access):
    locked = lock_project.modules[0].files[0].atoms[0]
    unlocked = lock_project.modules[0].files[1].atoms[0]
    race = Race(
        id="r",
        type="WW",
        state_key="global:state.value",
        accesses=[make_access(locked, "locked.js"), make_access(unlocked, "open.js")],
        severity="low",
    )
    kept, _ = apply_mitigation_gate([race], MitigationChecker(lock_project))
    assert len(kept) == 1
    assert kept[0].mitigation_type == "partial-lock"
    assert kept[0].mitigation.confidence.value == "low"


def test_without_checker_preassigned_flags_are_honored(counter_accesses):
    flagged = Race(id="flagged", accesses=counter_accesses, mitigation_type="queue", severity="high")
    partial = Race(id="partial", accesses=counter_accesses, mitigation_type="partial-lock")
    plain = Race(id="plain", accesses=counter_accesses)
    kept, _ = apply_mitigation_gate([flagged, partial, plain], None)
    assert [r.id for r in kept] == ["partial", "plain"]
    assert kept[0].has_mitigation is True


def test_fresh_verdict_overrides_preassigned_type(make_project, make_access):
    project, race = _locked_race(make_project, make_access, "critical")
    race = race.model_copy(update={"has_mitigation": True, "mitigation_type": "queue"})
    stamped = stamp_mitigation(race, MitigationChecker(project))
    assert stamped.mitigation_type == "lock"


def test_malformed_race_passes_through(counter_project, counter_accesses):
    race = Race(id="lonely", accesses=counter_accesses[:1], has_mitigation=True, mitigation_type="lock")
    kept, warnings = apply_mitigation_gate([race], MitigationChecker(counter_project))
    assert kept == [race]
    assert len(warnings) == 1
    assert warnings[0].kind == "malformed_race"
    assert warnings[0].source == "lonely"


def test_stamping_does_not_mutate_input(make_project, make_access):
    project, race = _locked_race(make_project, make_access, "critical")
    stamp_mitigation(race, MitigationChecker(project))
    assert race.has_mitigation is False
    assert race.mitigation_type is None


def test_should_suppress_rules():
    assert not should_suppress(Race(has_mitigation=False))
    assert should_suppress(Race(has_mitigation=True, mitigation_type="atomic", severity="high"))
    assert not should_suppress(Race(has_mitigation=True, mitigation_type="atomic", severity="critical"))
    assert not should_suppress(Race(has_mitigation=True, mitigation_type="partial-lock", severity="high"))


def test_comment_naming_a_lock_does_not_suppress(make_project, make_access):
    code = "async function write() {\n  // FIXME: no semaphore here, this races\n  shared.total = await next();\n}"
    atom1 = Atom(id="a.js::write", name="write", code=code, is_async=True)
    atom2 = Atom(id="b.js::write", name="write", code=code, is_async=True)
    project = make_project({"a.js": [atom1], "b.js": [atom2]})
    race = Race(
        id="race-commented",
        type="WW",
        state_key="global:shared.total",
        accesses=[make_access(atom1, "a.js"), make_access(atom2, "b.js")],
        severity="high",
    )
    kept, _ = apply_mitigation_gate([race], MitigationChecker(project))
    assert [r.id for r in kept] == ["race-commented"]
    assert kept[0].has_mitigation is False
