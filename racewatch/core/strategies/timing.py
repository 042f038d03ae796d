"""
Timing Analysis — Can two accesses actually overlap in time?

Call-graph reasoning over the read-only project tree:
- callers of an atom are atoms whose `calls` name it
- entry points are found by walking callers upward; a caller whose name starts
  with an upper-case character (or any character without case) is an entry point
- two accesses are in the same business flow when they share a caller that
  awaits them close together, or share an entry point and an await context
"""

from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass, field

from racewatch.core.atom_utils import find_atom_by_id, iter_atoms, split_atom_id
from racewatch.models.project_models import Project
from racewatch.models.race_models import AccessPoint

# Awaited calls at most this many lines apart count as sequential
SEQUENTIAL_AWAIT_LINES = 3
# Lines scanned after an await for a follow-up await
AWAIT_LOOKAHEAD = 5

PARALLEL_MARKERS = ("Promise.all", "Promise.allSettled")


@dataclass
class TimingAnalysis:
    """Concurrency summary for a set of accesses on one key."""

    total_accesses: int
    pairs: list[tuple[AccessPoint, AccessPoint]] = field(default_factory=list)

    @property
    def concurrent_pairs(self) -> int:
        return len(self.pairs)

    @property
    def is_concurrent(self) -> bool:
        return bool(self.pairs)


class TimingAnalyzer:
    """Stateless apart from a per-project caller cache."""

    def __init__(self) -> None:
        self._callers: dict[tuple[int, str], list[str]] = {}

    # ── Concurrency ──

    def can_run_concurrently(
        self, access1: AccessPoint, access2: AccessPoint, project: Project | None
    ) -> bool:
        if access1.atom == access2.atom:
            return False
        if not access1.is_async and not access2.is_async:
            if self.same_business_flow(access1, access2, project):
                return False
        if access1.is_async or access2.is_async:
            return True
        return not self.same_entry_point(access1, access2, project)

    def analyze_timing(
        self, accesses: list[AccessPoint], project: Project | None
    ) -> TimingAnalysis:
        analysis = TimingAnalysis(total_accesses=len(accesses))
        for i, first in enumerate(accesses):
            for second in accesses[i + 1 :]:
                if self.can_run_concurrently(first, second, project):
                    analysis.pairs.append((first, second))
        return analysis

    # ── Flow ──

    def same_business_flow(
        self, access1: AccessPoint, access2: AccessPoint, project: Project | None
    ) -> bool:
        """True when the two accesses are serialized by one business flow."""
        if access1.file == access2.file and access1.atom == access2.atom:
            return True

        callers2 = self.get_atom_callers(access2.atom, project)
        shared = [c for c in self.get_atom_callers(access1.atom, project) if c in callers2]
        for caller_id in shared:
            if self.are_sequential_in_caller(caller_id, access1, access2, project):
                return True

        entries2 = self.find_entry_points(access2.atom, project)
        if not any(ep in entries2 for ep in self.find_entry_points(access1.atom, project)):
            return False

        if access1.is_async and access2.is_async:
            return self.have_same_await_context(access1, access2, project)
        return True

    def same_entry_point(
        self, access1: AccessPoint, access2: AccessPoint, project: Project | None
    ) -> bool:
        if access1.module == access2.module and access1.is_exported == access2.is_exported:
            return True
        entries2 = self.find_entry_points(access2.atom, project)
        return any(ep in entries2 for ep in self.find_entry_points(access1.atom, project))

    def are_sequential_in_caller(
        self,
        caller_id: str,
        access1: AccessPoint,
        access2: AccessPoint,
        project: Project | None,
    ) -> bool:
        caller = find_atom_by_id(caller_id, project)
        if caller is None or not caller.code:
            return False

        name1 = split_atom_id(access1.atom)[1]
        name2 = split_atom_id(access2.atom)[1]
        line1 = line2 = -1
        for index, line in enumerate(caller.code.split("\n")):
            if "await" not in line:
                continue
            if name1 in line:
                line1 = index
            if name2 in line:
                line2 = index

        # Order unknown: assume concurrent
        if line1 == -1 or line2 == -1:
            return False
        if check_dependency_chain(caller.code, name1, name2):
            return True
        return abs(line1 - line2) <= SEQUENTIAL_AWAIT_LINES

    def have_same_await_context(
        self, access1: AccessPoint, access2: AccessPoint, project: Project | None
    ) -> bool:
        callers2 = self.get_atom_callers(access2.atom, project)
        for caller_id in self.get_atom_callers(access1.atom, project):
            if caller_id not in callers2:
                continue
            caller = find_atom_by_id(caller_id, project)
            if caller is None or not caller.code:
                continue
            if any(marker in caller.code for marker in PARALLEL_MARKERS):
                return False
            if has_sequential_await(caller.code):
                return True
        return False

    # ── Call graph ──

    def get_atom_callers(self, atom_id: str, project: Project | None) -> list[str]:
        """IDs of atoms that call the named atom, deduplicated, in tree order."""
        if project is None:
            return []
        cache_key = (id(project), atom_id)
        if cache_key not in self._callers:
            name = split_atom_id(atom_id)[1]
            callers: list[str] = []
            for _, _, atom in iter_atoms(project):
                if atom.id not in callers and any(call.name == name for call in atom.calls):
                    callers.append(atom.id)
            self._callers[cache_key] = callers
        return self._callers[cache_key]

    def find_entry_points(self, atom_id: str, project: Project | None) -> list[str]:
        """Breadth-first walk up the caller graph, collecting entry-point callers."""
        entry_points: list[str] = []
        visited: set[str] = set()
        pending = deque([atom_id])
        while pending:
            current = pending.popleft()
            if current in visited:
                continue
            visited.add(current)
            for caller in self.get_atom_callers(current, project):
                name = split_atom_id(caller)[1]
                if name and name[0] == name[0].upper():
                    entry_points.append(caller)
                else:
                    pending.append(caller)
        return entry_points


def check_dependency_chain(code: str, name1: str, name2: str) -> bool:
    """Is the awaited result of name1 passed as the first argument to name2?"""
    pattern = re.compile(
        rf"(?:const|let|var)\s+(\w+)\s*=\s*await\s+{re.escape(name1)}.*?"
        rf"{re.escape(name2)}\s*\(\s*\1",
        re.DOTALL,
    )
    return pattern.search(code) is not None


def has_sequential_await(code: str) -> bool:
    """Does some await have another await within the next few lines?"""
    lines = code.split("\n")
    for index, line in enumerate(lines):
        if "await" not in line:
            continue
        if any("await" in follow for follow in lines[index + 1 : index + AWAIT_LOOKAHEAD]):
            return True
    return False
