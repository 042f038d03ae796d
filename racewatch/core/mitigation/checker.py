"""
Mitigation Checker — Combines six independent checkers into one verdict per race.

Evaluation order (first decisive match wins):
1. both locked            -> lock / high      (exactly one locked: remember partial-lock / low)
2. same transaction       -> transaction / high
3. both atomic            -> atomic / high
4. both queued, same queue-> queue / high
5. same business flow     -> sequential / medium
6. both immutable         -> immutable / medium
7. remembered partial-lock, else None

Only the first two accesses of a race are inspected, even when more are
present.
"""

from __future__ import annotations

import logging
from typing import Callable

from racewatch.config import settings
from racewatch.core.atom_utils import find_atom_by_id
from racewatch.core.mitigation import atomic, flow, immutable, lock, queue, transaction
from racewatch.core.strategies.base import RaceStrategy, flow_override
from racewatch.models.mitigation_models import (
    CatalogueEntry,
    Confidence,
    Mitigation,
    MitigationType,
)
from racewatch.models.project_models import Atom, Project
from racewatch.models.race_models import AccessPoint, Race

logger = logging.getLogger("racewatch.core.mitigation")

# Type for a per-access catalogue check
CheckerFn = Callable[[Atom | None], CatalogueEntry | None]


class MitigationChecker:
    """
    Mitigation detection over a read-only project.

    Checkers are pure predicates over each access's owning atom source. The
    project is never modified, so one checker may be reused across runs.
    """

    def __init__(
        self,
        project: Project,
        strategies: list[RaceStrategy] | None = None,
        flow_line_window: int | None = None,
        atomic_max_statement_lines: int | None = None,
    ) -> None:
        self.project = project
        self.flow_line_window = (
            flow_line_window if flow_line_window is not None else settings.flow_line_window
        )
        self.atomic_max_statement_lines = (
            atomic_max_statement_lines
            if atomic_max_statement_lines is not None
            else settings.atomic_max_statement_lines
        )
        self._flow_override = flow_override(strategies)
        self._atoms: dict[str, Atom | None] = {}

        self.checkers: dict[str, CheckerFn] = {
            lock.CHECKER_ID: lock.detect,
            atomic.CHECKER_ID: lambda atom: atomic.detect(atom, self.atomic_max_statement_lines),
            transaction.CHECKER_ID: transaction.detect,
            queue.CHECKER_ID: queue.detect,
            immutable.CHECKER_ID: immutable.detect,
        }

    # ── Per-access checks ──

    def atom_for(self, access: AccessPoint) -> Atom | None:
        if access.atom not in self._atoms:
            self._atoms[access.atom] = find_atom_by_id(access.atom, self.project)
        return self._atoms[access.atom]

    def run_single_checker(self, checker_id: str, access: AccessPoint) -> CatalogueEntry | None:
        """Run one catalogue checker against one access."""
        if checker_id not in self.checkers:
            raise ValueError(f"Unknown mitigation checker: {checker_id}")
        return self.checkers[checker_id](self.atom_for(access))

    def is_locked(self, access: AccessPoint) -> bool:
        return self.run_single_checker(lock.CHECKER_ID, access) is not None

    def is_atomic(self, access: AccessPoint) -> bool:
        return self.run_single_checker(atomic.CHECKER_ID, access) is not None

    def is_in_transaction(self, access: AccessPoint) -> bool:
        return self.run_single_checker(transaction.CHECKER_ID, access) is not None

    def has_queue(self, access: AccessPoint) -> bool:
        return self.run_single_checker(queue.CHECKER_ID, access) is not None

    def is_immutable(self, access: AccessPoint) -> bool:
        return self.run_single_checker(immutable.CHECKER_ID, access) is not None

    # ── Pairwise checks ──

    def same_transaction(self, access1: AccessPoint, access2: AccessPoint) -> bool:
        return transaction.same_transaction(
            access1, self.atom_for(access1), access2, self.atom_for(access2)
        )

    def same_queue(self, access1: AccessPoint, access2: AccessPoint) -> bool:
        return queue.same_queue(access1, self.atom_for(access1), access2, self.atom_for(access2))

    def same_business_flow(self, access1: AccessPoint, access2: AccessPoint) -> bool:
        if self._flow_override is not None:
            verdict = self._flow_override(access1, access2, self.project)
            if verdict is not None:
                return bool(verdict)
        return flow.same_business_flow(access1, access2, self.flow_line_window)

    # ── Orchestration ──

    def find_mitigation(self, race: Race) -> Mitigation | None:
        """Strongest mitigation verdict for a race's first two accesses, or None."""
        if len(race.accesses) < 2:
            return None
        access1, access2 = race.accesses[0], race.accesses[1]

        partial: Mitigation | None = None
        lock1 = self.run_single_checker(lock.CHECKER_ID, access1)
        lock2 = self.run_single_checker(lock.CHECKER_ID, access2)
        if lock1 and lock2:
            return Mitigation(
                type=MitigationType.LOCK,
                confidence=Confidence.HIGH,
                description=f"Both accesses are lock-protected ({_labels(lock1, lock2)})",
            )
        if lock1 or lock2:
            guarded, entry = (access1, lock1) if lock1 else (access2, lock2)
            partial = Mitigation(
                type=MitigationType.PARTIAL_LOCK,
                confidence=Confidence.LOW,
                description=(
                    f"Only {guarded.atom_name or guarded.atom} is lock-protected "
                    f"({entry.label}); the other access is unguarded"
                ),
            )

        if self.same_transaction(access1, access2):
            entry = self.run_single_checker(transaction.CHECKER_ID, access1)
            return Mitigation(
                type=MitigationType.TRANSACTION,
                confidence=Confidence.HIGH,
                description=f"Both accesses run inside the same transaction ({entry.label})",
            )

        atomic1 = self.run_single_checker(atomic.CHECKER_ID, access1)
        atomic2 = self.run_single_checker(atomic.CHECKER_ID, access2)
        if atomic1 and atomic2:
            return Mitigation(
                type=MitigationType.ATOMIC,
                confidence=Confidence.HIGH,
                description=f"Both accesses are atomic operations ({_labels(atomic1, atomic2)})",
            )

        queue1 = self.run_single_checker(queue.CHECKER_ID, access1)
        queue2 = self.run_single_checker(queue.CHECKER_ID, access2)
        if queue1 and queue2 and self.same_queue(access1, access2):
            return Mitigation(
                type=MitigationType.QUEUE,
                confidence=Confidence.HIGH,
                description=f"Both accesses are serialized through one queue ({_labels(queue1, queue2)})",
            )

        if self.same_business_flow(access1, access2):
            return Mitigation(
                type=MitigationType.SEQUENTIAL,
                confidence=Confidence.MEDIUM,
                description=flow.SEQUENTIAL_DESCRIPTION,
            )

        frozen1 = self.run_single_checker(immutable.CHECKER_ID, access1)
        frozen2 = self.run_single_checker(immutable.CHECKER_ID, access2)
        if frozen1 and frozen2:
            return Mitigation(
                type=MitigationType.IMMUTABLE,
                confidence=Confidence.MEDIUM,
                description=f"Both accesses touch immutable data ({_labels(frozen1, frozen2)})",
            )

        return partial

    def is_fully_mitigated(self, race: Race) -> bool:
        """A non-partial verdict with high confidence."""
        mitigation = self.find_mitigation(race)
        return (
            mitigation is not None
            and not mitigation.is_partial
            and mitigation.confidence == Confidence.HIGH
        )


def _labels(entry1: CatalogueEntry, entry2: CatalogueEntry) -> str:
    if entry1.label == entry2.label:
        return entry1.label
    return f"{entry1.label} / {entry2.label}"
