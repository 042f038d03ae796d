"""
Race Detection Pipeline — Main orchestrator for the detector.

Full pipeline (strictly linear, each phase consumes the previous one's output):
1. Collect shared state from all trackers
2. Filter locally-scoped keys, dispatch strategies → candidate races
3. Tag races with named bug patterns
4. Stamp mitigation verdicts, suppress mitigated non-critical races
5. Assign severity labels
6. Aggregate the run summary
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from racewatch.audit.logger import RunAuditLogger
from racewatch.config import settings
from racewatch.core.collector import collect_shared_state
from racewatch.core.mitigation.checker import MitigationChecker
from racewatch.core.mitigation_gate import apply_mitigation_gate
from racewatch.core.pattern_matcher import PatternMatcher, RacePatternMatcher, enrich_patterns
from racewatch.core.risk_scorer import RiskScorer, WeightedRiskScorer, enrich_severity
from racewatch.core.state_filter import dispatch_strategies, filter_shared_state
from racewatch.core.strategies.base import RaceStrategy
from racewatch.core.strategies.concurrent_access import ConcurrentAccessStrategy
from racewatch.core.summary import build_summary
from racewatch.core.trackers.project_trackers import default_trackers
from racewatch.models.project_models import Project
from racewatch.models.race_models import AuditEntry, DetectionResult

logger = logging.getLogger("racewatch.engine.pipeline")


class RaceDetectionPipeline:
    """
    Race detection orchestrator.

    All collaborators are injected at construction time. A missing pattern
    matcher or risk scorer skips its phase; races then carry no pattern or
    keep whatever severity their strategy assigned.
    """

    def __init__(
        self,
        project: Project | None,
        trackers: list[Any] | None = None,
        strategies: list[RaceStrategy] | None = None,
        pattern_matcher: PatternMatcher | None = None,
        risk_scorer: RiskScorer | None = None,
        audit_logger: RunAuditLogger | None = None,
        flow_line_window: int | None = None,
        atomic_max_statement_lines: int | None = None,
    ) -> None:
        self.project = project
        self.trackers = list(trackers or [])
        self.strategies = list(strategies or [])
        self.pattern_matcher = pattern_matcher
        self.risk_scorer = risk_scorer
        self.audit_logger = audit_logger
        self.flow_line_window = flow_line_window
        self.atomic_max_statement_lines = atomic_max_statement_lines

    def build_checker(self) -> MitigationChecker | None:
        """A checker over the project, or None when there is nothing to inspect."""
        if self.project is None or self.project.is_empty:
            logger.info("Project is empty or absent; mitigation detection disabled for this run")
            return None
        return MitigationChecker(
            self.project,
            strategies=self.strategies,
            flow_line_window=self.flow_line_window,
            atomic_max_statement_lines=self.atomic_max_statement_lines,
        )

    def run(self) -> DetectionResult:
        """
        Execute all six phases once.

        Strategy exceptions propagate to the caller.
        """
        start_time = time.monotonic()
        logger.info(
            f"Race detection starting with {len(self.trackers)} trackers, "
            f"{len(self.strategies)} strategies"
        )

        # ── Phase 1: Collect ──
        shared_state, warnings = collect_shared_state(self.trackers)
        shared_state_items = len(shared_state)

        # ── Phase 2: Filter + dispatch ──
        filtered = filter_shared_state(shared_state)
        races = dispatch_strategies(self.strategies, filtered, self.project)
        logger.info(
            f"Detection: {shared_state_items} shared-state keys, "
            f"{len(filtered)} after filtering, {len(races)} candidate races"
        )

        # ── Phase 3: Patterns ──
        if self.pattern_matcher is not None:
            races = enrich_patterns(races, self.pattern_matcher)

        # ── Phase 4: Mitigation gate ──
        candidates = len(races)
        races, gate_warnings = apply_mitigation_gate(races, self.build_checker())
        warnings.extend(gate_warnings)

        # ── Phase 5: Severity ──
        if self.risk_scorer is not None:
            races = enrich_severity(races, self.risk_scorer, self.project)

        # ── Phase 6: Summary ──
        summary = build_summary(
            races,
            warnings,
            shared_state_items=shared_state_items,
            trackers_used=len(self.trackers),
            strategies_used=len(self.strategies),
        )
        result = DetectionResult(races=races, warnings=warnings, summary=summary)

        elapsed = (time.monotonic() - start_time) * 1000
        logger.info(
            f"Race detection complete in {elapsed:.0f}ms — "
            f"{summary.total_races} races, {summary.total_warnings} warnings"
        )

        if self.audit_logger is not None:
            self.audit_logger.log(
                AuditEntry(
                    run_id=uuid.uuid4().hex[:12],
                    trackers_used=summary.trackers_used,
                    strategies_used=summary.strategies_used,
                    shared_state_items=shared_state_items,
                    races_found=summary.total_races,
                    races_suppressed=candidates - len(races),
                    warnings=summary.total_warnings,
                    by_severity=summary.by_severity,
                    duration_ms=elapsed,
                )
            )

        return result


def detect_race_conditions(project: Project) -> DetectionResult:
    """Run the pipeline with the default trackers, strategy, matcher and scorer."""
    audit_logger = RunAuditLogger() if settings.audit_log_path else None
    pipeline = RaceDetectionPipeline(
        project,
        trackers=default_trackers(project),
        strategies=[ConcurrentAccessStrategy()],
        pattern_matcher=RacePatternMatcher(project),
        risk_scorer=WeightedRiskScorer(),
        audit_logger=audit_logger,
    )
    return pipeline.run()
