"""
Atomic Checker — hardware atomics, database atomic updates, and single-statement increments.

The last case is structural rather than textual: a non-async atom of at most
a few lines whose block body holds exactly one statement, and that statement
is a compound assignment on a primitive-looking operand (counter++, total += n).
Such an atom runs to completion without yielding, so it cannot interleave with
another caller on an event loop.
"""

from __future__ import annotations

import re

from racewatch.config import settings
from racewatch.core.atom_utils import strip_comments
from racewatch.core.mitigation.catalogue import match_catalogue
from racewatch.models.mitigation_models import CatalogueEntry, Confidence
from racewatch.models.project_models import Atom

CHECKER_ID = "atomic"

CATALOGUE: tuple[CatalogueEntry, ...] = (
    CatalogueEntry(
        r"\bAtomics\.(?:add|sub|and|or|xor|exchange|compareExchange|store|load)\s*\(",
        "Atomics API",
    ),
    CatalogueEntry(r"\bAtomic(?:Integer|Long|Boolean|Reference)\b|\bstd::atomic\b", "atomic type"),
    CatalogueEntry(r"\$inc\b|\$push\b|\$addToSet\b", "MongoDB atomic update operator"),
    CatalogueEntry(r"\bfindOneAndUpdate\s*\(|\bfindAndModify\s*\(", "find-and-modify"),
    CatalogueEntry(r"\bupsert\b", "upsert"),
    CatalogueEntry(r"\bON\s+CONFLICT\b|\bON\s+DUPLICATE\s+KEY\s+UPDATE\b", "SQL upsert"),
    CatalogueEntry(r"\.(?:h?incr(?:by)?|decr(?:by)?)\s*\(", "Redis atomic counter"),
    CatalogueEntry(r"\.(?:increment|decrement)\s*\(", "ORM atomic increment", Confidence.MEDIUM),
)

_ID = r"[A-Za-z_$][\w$]*"

COMPOUND_ASSIGNMENT_RE = re.compile(
    rf"(?<![\w$.]){_ID}(?:\.{_ID})*\s*"
    rf"(?:\+\+|--|[-+*/%]=\s*(?:\d[\w.]*|{_ID}(?:\.{_ID})*)\s*(?=;|\}}|$))"
    rf"|(?:\+\+|--){_ID}",
    re.MULTILINE,
)

STRUCTURAL_ENTRY = CatalogueEntry(
    COMPOUND_ASSIGNMENT_RE.pattern, "single-statement compound assignment", Confidence.MEDIUM
)

_STATEMENT_SEPARATOR_RE = re.compile(r"[;\n]")


def detect(atom: Atom | None, max_statement_lines: int | None = None) -> CatalogueEntry | None:
    """Atomic signature in the atom's source, or the structural single-statement rule."""
    if atom is None:
        return None
    entry = match_catalogue(atom.code, CATALOGUE)
    if entry is not None:
        return entry
    if is_single_statement_update(atom, max_statement_lines):
        return STRUCTURAL_ENTRY
    return None


def statement_body(code: str) -> str:
    """Text between the outermost braces, or the whole code when there is no block."""
    start, end = code.find("{"), code.rfind("}")
    if start != -1 and end > start:
        return code[start + 1 : end]
    return code


def count_statements(body: str) -> int:
    return sum(1 for part in _STATEMENT_SEPARATOR_RE.split(body) if part.strip())


def is_single_statement_update(atom: Atom, max_statement_lines: int | None = None) -> bool:
    """Non-async, short, and a body of exactly one statement that is a compound assignment."""
    if atom.is_async or not atom.code:
        return False
    limit = max_statement_lines if max_statement_lines is not None else settings.atomic_max_statement_lines
    code = strip_comments(atom.code)
    lines = [line for line in code.splitlines() if line.strip()]
    if not lines or len(lines) > limit:
        return False
    if "await" in code:
        return False
    body = statement_body(code)
    if count_statements(body) != 1:
        return False
    return len(COMPOUND_ASSIGNMENT_RE.findall(body)) == 1
