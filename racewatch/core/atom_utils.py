"""
Atom Utilities — Read-only lookups into the Project tree and naming heuristics.

Nothing here mutates the Project; every helper is safe to call from any phase.
"""

from __future__ import annotations

import re
from typing import Iterator

from racewatch.models.project_models import Atom, Molecule, Project, ProjectModule

ID_SEPARATOR = "::"

# Prefixes that mark a name as living outside any single invocation
SHARED_STATE_PREFIXES: tuple[str, ...] = (
    "window.",
    "global.",
    "globalthis.",
    "localstorage",
    "sessionstorage",
    "document.",
    "process.",
)
SHARED_STATE_FRAGMENTS: tuple[str, ...] = ("shared", "cache", "state")

# Roots whose first member is reported together with the root (window.counter)
GLOBAL_ROOTS: frozenset[str] = frozenset(
    {"window", "global", "globalThis", "document", "process"}
)

KEYWORDS: frozenset[str] = frozenset(
    {
        "async", "await", "break", "case", "catch", "class", "const", "continue",
        "debugger", "default", "delete", "do", "else", "export", "extends", "false",
        "finally", "for", "from", "function", "if", "import", "in", "instanceof",
        "let", "new", "null", "of", "return", "static", "super", "switch", "this",
        "throw", "true", "try", "typeof", "undefined", "var", "void", "while",
        "with", "yield", "console", "Promise", "Object", "Array", "JSON", "Math",
        "String", "Number", "Boolean", "Date", "Error", "Map", "Set",
    }
)

# Naming patterns that bind a queue-like object to a variable
QUEUE_NAME_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"new\s+(?:Queue|Worker)\s*\(\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*=\s*new\s+(?:PQueue|Queue|Bottleneck|Bull)\b"),
    re.compile(r"(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*=\s*(?:pLimit|async\.queue|fastq)\s*\("),
    re.compile(r"\b([A-Za-z_$][\w$]*[Qq]ueue)\s*\.\s*(?:add|push|enqueue|put)\s*\("),
)

# Comments are group 1; string and template literals are group 2
_SOURCE_NOISE_RE = re.compile(
    r"(//[^\n]*|/\*.*?\*/)|('(?:\\.|[^'\\\n])*'|\"(?:\\.|[^\"\\\n])*\"|`(?:\\.|[^`\\])*`)",
    re.DOTALL,
)


def iter_atoms(project: Project | None) -> Iterator[tuple[ProjectModule, Molecule, Atom]]:
    """Yield (module, molecule, atom) for every atom, in tree order."""
    if project is None:
        return
    for module in project.modules:
        for molecule in module.files:
            for atom in molecule.atoms:
                yield module, molecule, atom


def split_atom_id(atom_id: str) -> tuple[str, str]:
    """Split '<filePath>::<name>' into (file_path, name). Bare names give ('', name)."""
    if ID_SEPARATOR not in atom_id:
        return "", atom_id
    file_path, name = atom_id.split(ID_SEPARATOR, 1)
    return file_path, name


def find_atom_by_id(atom_id: str, project: Project | None) -> Atom | None:
    """
    Look up an atom by its id.

    Two modes, selected by the presence of '::':
      - '<path>::<name>': a molecule whose file_path ends with <path>, and an
        atom in it whose name is <name> or whose id is the full string.
      - bare '<name>': any atom with that name across all files.

    First match in tree order wins. A bare name shared by several files
    therefore resolves to the first file that defines it.
    """
    if not atom_id or project is None:
        return None

    if ID_SEPARATOR in atom_id:
        file_path, name = split_atom_id(atom_id)
        for _, molecule, atom in iter_atoms(project):
            if not molecule.file_path.endswith(file_path):
                continue
            if atom.name == name or atom.id == atom_id:
                return atom
        return None

    for _, _, atom in iter_atoms(project):
        if atom.name == atom_id:
            return atom
    return None


def is_shared_state_variable(name: str) -> bool:
    """Naming heuristic: does this identifier look like cross-invocation state?"""
    if not name:
        return False
    lowered = name.lower()
    if lowered.startswith(SHARED_STATE_PREFIXES):
        return True
    return any(fragment in lowered for fragment in SHARED_STATE_FRAGMENTS)


def is_keyword(token: str) -> bool:
    return token in KEYWORDS


def extract_queue_name(code: str | None) -> str | None:
    """Return the first queue-variable or queue name found in the source, if any."""
    if not code:
        return None
    code = strip_comments(code)
    for pattern in QUEUE_NAME_PATTERNS:
        match = pattern.search(code)
        if match:
            return match.group(1)
    return None


def _blank(text: str) -> str:
    return re.sub(r"[^\n]", " ", text)


def strip_comments(code: str) -> str:
    """Blank line and block comments, keeping string literals and offsets intact."""
    return _SOURCE_NOISE_RE.sub(
        lambda m: _blank(m.group(0)) if m.group(1) is not None else m.group(0), code
    )


def blank_noise(code: str) -> str:
    """Blank comments and string literals, preserving offsets and newlines."""
    return _SOURCE_NOISE_RE.sub(lambda m: _blank(m.group(0)), code)
