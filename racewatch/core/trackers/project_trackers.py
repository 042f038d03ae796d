"""
Project Trackers — Default shared-state trackers over the Atom/Molecule/Project tree.

Each tracker reads the project it was constructed with and reports
'<scope>:<name>' keys:
- GlobalVariableTracker   global:    global./window./globalThis./process.env accesses
- ModuleStateTracker      module:    module-level state writes
- ExternalResourceTracker external:  database / cache / file resources touched by external calls
- SingletonTracker        singleton: lazily initialised singletons
- ClosureTracker          closure:   shared state captured by nested callables
"""

from __future__ import annotations

import re

from racewatch.core.closure_analyzer import find_captured_variables
from racewatch.core.atom_utils import iter_atoms
from racewatch.core.trackers.base import SharedStateMap, Tracker, add_access
from racewatch.models.project_models import Atom, Molecule, Project, ProjectModule
from racewatch.models.race_models import AccessPoint

GLOBAL_INDICATORS: tuple[str, ...] = ("global.", "window.", "globalThis.", "process.env")
GLOBAL_WRITE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bglobal\.(\w+)\s*=(?!=)"),
    re.compile(r"\bwindow\.(\w+)\s*=(?!=)"),
    re.compile(r"\bglobalThis\.(\w+)\s*=(?!=)"),
)

RESOURCE_MARKERS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("database", ("db.", "database.", "query", "insert", "update", "delete")),
    ("cache", ("cache.", "redis.", "memcached")),
    ("file", ("fs.", "readFile", "writeFile")),
)

SINGLETON_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"if\s*\(\s*!\w+\s*\)\s*\{[^}]*=\s*await\s+"),
    re.compile(r"if\s*\(\s*\w+\s*===\s*null\s*\)\s*\{"),
    re.compile(r"if\s*\(\s*typeof\s+\w+\s*===?\s*['\"]undefined['\"]\s*\)\s*\{"),
)
SINGLETON_VARIABLE_RE = re.compile(r"if\s*\(\s*!?(\w+)\s*\)")
SINGLETON_VARIABLE_FALLBACK_RE = re.compile(r"if\s*\(\s*(?:typeof\s+)?(\w+)\s*===?")


def make_access(
    atom: Atom,
    module: ProjectModule,
    molecule: Molecule,
    access_type: str,
    line: int = 0,
    operation: str | None = None,
    variable: str | None = None,
) -> AccessPoint:
    """Build an AccessPoint owned by `atom`."""
    return AccessPoint(
        atom=atom.id,
        atom_name=atom.name,
        file=molecule.file_path or module.module_path or "unknown",
        module=module.module_name or "unknown",
        line=line,
        is_async=atom.is_async,
        is_exported=atom.is_exported,
        type=access_type or "unknown",
        operation=operation,
        variable=variable,
    )


class ProjectTracker(Tracker):
    """A tracker bound to one project at construction time."""

    def __init__(self, project: Project) -> None:
        self.project = project


class GlobalVariableTracker(ProjectTracker):
    name = "global_variables"

    def track(self) -> SharedStateMap:
        state: SharedStateMap = {}
        for module, molecule, atom in iter_atoms(self.project):
            for effect in atom.data_flow.side_effects:
                if _is_global_access(effect.variable, effect.target):
                    name = effect.variable or effect.target or ""
                    add_access(
                        state, "global", name,
                        make_access(atom, module, molecule, effect.type, effect.line, variable=name),
                    )
            for variable, line in find_global_writes(atom.code):
                add_access(
                    state, "global", variable,
                    make_access(atom, module, molecule, "write", line, variable=variable),
                )
        return state


class ModuleStateTracker(ProjectTracker):
    name = "module_state"

    def track(self) -> SharedStateMap:
        state: SharedStateMap = {}
        for module, molecule, atom in iter_atoms(self.project):
            for effect in atom.data_flow.side_effects:
                target = effect.target or ""
                if effect.type == "module_state_write" or "module." in target:
                    name = target or effect.variable or ""
                    access_type = "write" if effect.type == "module_state_write" else effect.type
                    add_access(
                        state, "module", name,
                        make_access(atom, module, molecule, access_type, effect.line, variable=name),
                    )
        return state


class ExternalResourceTracker(ProjectTracker):
    name = "external_resources"

    def track(self) -> SharedStateMap:
        state: SharedStateMap = {}
        for module, molecule, atom in iter_atoms(self.project):
            for call in atom.calls:
                if call.type != "external":
                    continue
                resource = identify_external_resource(call.name)
                if resource:
                    add_access(
                        state, "external", resource,
                        make_access(atom, module, molecule, "call", call.line, operation=call.name),
                    )
        return state


class SingletonTracker(ProjectTracker):
    name = "singletons"

    def track(self) -> SharedStateMap:
        state: SharedStateMap = {}
        for module, molecule, atom in iter_atoms(self.project):
            if not is_singleton_pattern(atom.code):
                continue
            variable = extract_singleton_variable(atom.code)
            if variable:
                add_access(
                    state, "singleton", variable,
                    make_access(atom, module, molecule, "initialization", atom.line, variable=variable),
                )
        return state


class ClosureTracker(ProjectTracker):
    name = "closures"

    def track(self) -> SharedStateMap:
        state: SharedStateMap = {}
        for module, molecule, atom in iter_atoms(self.project):
            captured = find_captured_variables(
                atom, file_path=molecule.file_path, module=module.module_name
            )
            for access in captured:
                add_access(state, "closure", access.variable or "", access)
        return state


def default_trackers(project: Project) -> list[Tracker]:
    """The standard tracker set, in merge order."""
    return [
        GlobalVariableTracker(project),
        ModuleStateTracker(project),
        ExternalResourceTracker(project),
        SingletonTracker(project),
        ClosureTracker(project),
    ]


# ── Helpers ──


def _is_global_access(variable: str | None, target: str | None) -> bool:
    return any(
        (variable and indicator in variable) or (target and indicator in target)
        for indicator in GLOBAL_INDICATORS
    )


def find_global_writes(code: str | None) -> list[tuple[str, int]]:
    """(variable, 1-based line) for each textual global./window./globalThis. assignment."""
    writes: list[tuple[str, int]] = []
    if not code:
        return writes
    for index, line in enumerate(code.split("\n")):
        for pattern in GLOBAL_WRITE_PATTERNS:
            match = pattern.search(line)
            if match:
                writes.append((match.group(1), index + 1))
    return writes


def identify_external_resource(call_name: str | None) -> str | None:
    """Map an external call name onto a resource key such as 'database:db.query'."""
    name = call_name or ""
    for kind, markers in RESOURCE_MARKERS:
        if any(marker in name for marker in markers):
            return f"{kind}:{name}"
    return None


def is_singleton_pattern(code: str | None) -> bool:
    return bool(code) and any(pattern.search(code) for pattern in SINGLETON_PATTERNS)


def extract_singleton_variable(code: str | None) -> str | None:
    if not code:
        return None
    match = SINGLETON_VARIABLE_RE.search(code) or SINGLETON_VARIABLE_FALLBACK_RE.search(code)
    return match.group(1) if match else None
