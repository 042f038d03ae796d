"""
Tests for read-side race queries and state reports.
"""

from racewatch.core.queries import (
    DEFAULT_FIX,
    highest_severity,
    races_by_file,
    races_by_function,
    races_by_module,
    state_report,
    suggested_fix,
)
from racewatch.models.race_models import AccessPoint, DetectionResult, Race


def _result():
    billing = AccessPoint(atom="billing/pay.js::charge", atom_name="charge", file="billing/pay.js", module="billing", type="write", line=4)
    stock = AccessPoint(atom="stock/res.js::reserve", atom_name="reserve", file="stock/res.js", module="stock", type="read", line=9)
    audit = AccessPoint(atom="audit/log.js::record", atom_name="record", file="audit/log.js", module="audit", type="write", line=2)
    return DetectionResult(
        races=[
            Race(id="r1", type="RW", state_key="global:balance", accesses=[billing, stock], severity="medium"),
            Race(id="r2", type="WW", state_key="global:balance", accesses=[billing, audit], severity="critical"),
            Race(id="r3", type="IE", state_key="singleton:client", accesses=[stock, audit]),
        ]
    )


def test_races_by_module():
    assert [r.id for r in races_by_module("billing", _result())] == ["r1", "r2"]
    assert races_by_module("billing", None) == []


def test_races_by_file():
    assert [r.id for r in races_by_file("audit/log.js", _result())] == ["r2", "r3"]


def test_races_by_function():
    assert [r.id for r in races_by_function("stock/res.js::reserve", _result())] == ["r1", "r3"]
    assert races_by_function("nowhere.js::f", _result()) == []


def test_state_report():
    report = state_report("global:balance", _result())
    assert report.race_count == 2
    assert report.severity == "critical"
    assert [a.function for a in report.accesses] == ["charge", "reserve", "charge", "record"]
    assert report.suggested_fix == "Add synchronization before write operations or use immutable updates"


def test_state_report_for_unknown_key():
    assert state_report("global:nothing", _result()) is None
    assert state_report("global:balance", None) is None


def test_state_report_without_known_severity():
    assert state_report("singleton:client", _result()).severity is None


def test_highest_severity_ignores_unknown_labels():
    assert highest_severity([Race(severity="banana"), Race(severity="low")]) == "low"
    assert highest_severity([]) is None


def test_suggested_fix_defaults():
    assert suggested_fix(Race(type="WW")) == "Use atomic operations or implement locking mechanism"
    assert suggested_fix(Race(type="OTHER")) == DEFAULT_FIX
