"""
Closure Capture Analyzer — Flags free variables of nested callables that look like shared state.

Works on raw atom source text, without a parse tree. Three independent scans:
1. Arrow literals "(params) => { body }": declared = bindings in params + body.
2. Function literals "function name(params) { body }": declared = bindings in
   body only. Parameters are NOT subtracted, so a parameter named like shared
   state is reported. Known limitation.
3. Continuation callbacks ".then(...)", ".catch(...)", ".finally(...)":
   reference extraction only, no declared-name subtraction.

Captured names are filtered through is_shared_state_variable(). The results are
best-effort heuristics, not a scoping guarantee.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from racewatch.core.atom_utils import (
    GLOBAL_ROOTS,
    blank_noise,
    is_keyword,
    is_shared_state_variable,
    split_atom_id,
)
from racewatch.models.project_models import Atom
from racewatch.models.race_models import AccessPoint

logger = logging.getLogger("racewatch.core.closure_analyzer")

ACCESS_TYPE = "closure-captured"

_IDENT = r"[A-Za-z_$][\w$]*"

ARROW_RE = re.compile(rf"(?:\(([^()]*)\)|\b({_IDENT}))\s*=>\s*\{{")
FUNCTION_RE = re.compile(rf"\bfunction\b\s*\*?\s*(?:{_IDENT})?\s*\(([^()]*)\)\s*\{{")
CONTINUATION_RE = re.compile(r"\.\s*(?:then|catch|finally)\s*\(")

_DECLARATION_RES: tuple[re.Pattern[str], ...] = (
    re.compile(rf"\b(?:const|let|var)\s+({_IDENT})"),
    re.compile(rf"\bfunction\s*\*?\s*({_IDENT})"),
    re.compile(rf"\bcatch\s*\(\s*({_IDENT})"),
    re.compile(rf"\b({_IDENT})\s*=>"),
)
_DESTRUCTURING_RE = re.compile(r"\b(?:const|let|var)\s*[\{\[]([^}\]]*)[\}\]]")
_NESTED_PARAMS_RE = re.compile(r"\(([^()]*)\)\s*=>")
_REFERENCE_RE = re.compile(rf"(?<![\w$.])({_IDENT})(?:\s*\.\s*({_IDENT}))?")


@dataclass
class CapturedName:
    """A shared-state-looking name referenced, but not bound, inside a nested callable."""

    name: str
    offset: int  # character offset of the enclosing literal in the atom source
    scan: str  # 'arrow', 'function' or 'continuation'


def find_captured_variables(
    atom: Atom,
    file_path: str | None = None,
    module: str | None = None,
) -> list[AccessPoint]:
    """
    Report closure-captured shared state for one atom.

    Each name is reported once per atom; when several scans find it, the
    first scan (arrow, then function, then continuation) wins.
    """
    code = atom.code or ""
    if not code.strip():
        return []

    found: dict[str, CapturedName] = {}
    for scan in (scan_arrow_functions, scan_function_literals, scan_continuation_callbacks):
        for captured in scan(code):
            found.setdefault(captured.name, captured)

    if not found:
        return []

    resolved_file = file_path or split_atom_id(atom.id)[0] or "unknown"
    base_line = atom.line if atom.line > 0 else 1

    accesses = [
        AccessPoint(
            atom=atom.id,
            atom_name=atom.name,
            file=resolved_file,
            module=module or "unknown",
            line=base_line + code.count("\n", 0, captured.offset),
            is_async=atom.is_async,
            is_exported=atom.is_exported,
            type=ACCESS_TYPE,
            operation=captured.scan,
            variable=captured.name,
            risk=calculate_capture_risk(captured.name, atom),
        )
        for captured in found.values()
    ]
    logger.debug(f"{atom.id}: {len(accesses)} captured variable(s)")
    return accesses


def calculate_capture_risk(name: str, atom: Atom) -> str:
    """'high' for async owners or state-like names, otherwise 'medium'. Never 'low'."""
    if atom.is_async:
        return "high"
    lowered = name.lower()
    if any(marker in lowered for marker in ("state", "cache", "shared", "global")):
        return "high"
    return "medium"


# ── Scans ──


def scan_arrow_functions(code: str) -> list[CapturedName]:
    """Arrow literals: subtract names bound in parameters and body."""
    text = blank_noise(code)
    results: list[CapturedName] = []
    for match in ARROW_RE.finditer(text):
        params = match.group(1) if match.group(1) is not None else match.group(2)
        body = _block_body(text, match.end() - 1)
        declared = _parameter_names(params) | _declared_names(body)
        results.extend(_captures(body, declared, match.start(), "arrow"))
    return results


def scan_function_literals(code: str) -> list[CapturedName]:
    """Function literals: subtract names bound in the body only."""
    text = blank_noise(code)
    results: list[CapturedName] = []
    for match in FUNCTION_RE.finditer(text):
        body = _block_body(text, match.end() - 1)
        declared = _declared_names(body)
        results.extend(_captures(body, declared, match.start(), "function"))
    return results


def scan_continuation_callbacks(code: str) -> list[CapturedName]:
    """Continuation callbacks: every shared-looking reference counts."""
    text = blank_noise(code)
    results: list[CapturedName] = []
    for match in CONTINUATION_RE.finditer(text):
        open_idx = match.end() - 1
        args = text[open_idx + 1 : _matching_close(text, open_idx, "(", ")")]
        body = _callback_body(args)
        results.extend(_captures(body, set(), match.start(), "continuation"))
    return results


# ── Helpers ──


def _captures(body: str, declared: set[str], offset: int, scan: str) -> list[CapturedName]:
    results: list[CapturedName] = []
    seen: set[str] = set()
    for root, display in extract_references(body):
        if root in declared or display in seen:
            continue
        if is_shared_state_variable(display):
            seen.add(display)
            results.append(CapturedName(name=display, offset=offset, scan=scan))
    return results


def extract_references(body: str) -> list[tuple[str, str]]:
    """
    Identifier-like tokens in a body, as (root, display_name) pairs.

    Property names after a dot are not references. Chains rooted at a global
    object keep their first member (window.counter); other chains collapse to
    their root (sharedCache.set -> sharedCache).
    """
    refs: list[tuple[str, str]] = []
    for match in _REFERENCE_RE.finditer(body):
        root, member = match.group(1), match.group(2)
        if is_keyword(root):
            continue
        if member and root in GLOBAL_ROOTS:
            refs.append((root, f"{root}.{member}"))
        else:
            refs.append((root, root))
    return refs


def _declared_names(text: str) -> set[str]:
    names: set[str] = set()
    for pattern in _DECLARATION_RES:
        names.update(pattern.findall(text))
    for group in _DESTRUCTURING_RE.findall(text):
        names.update(_parameter_names(group))
    for group in _NESTED_PARAMS_RE.findall(text):
        names.update(_parameter_names(group))
    return names


def _parameter_names(params: str | None) -> set[str]:
    """Names bound by a parameter list, ignoring default-value expressions."""
    if not params:
        return set()
    names: set[str] = set()
    for segment in params.split(","):
        binding = segment.split("=", 1)[0]
        binding = binding.replace("...", " ").strip("{}[] \t\n")
        # "key: alias" in destructuring binds the alias
        if ":" in binding:
            binding = binding.split(":", 1)[1]
        names.update(re.findall(_IDENT, binding))
    return names


def _callback_body(args: str) -> str:
    if "=>" in args:
        after = args.split("=>", 1)[1].lstrip()
        if after.startswith("{"):
            return _block_body(after, 0)
        return after
    brace = args.find("{")
    if brace != -1:
        return _block_body(args, brace)
    return args


def _block_body(text: str, open_idx: int) -> str:
    return text[open_idx + 1 : _matching_close(text, open_idx, "{", "}")]


def _matching_close(text: str, open_idx: int, opener: str, closer: str) -> int:
    """Index of the bracket closing text[open_idx]; len(text) if unbalanced."""
    depth = 0
    for idx in range(open_idx, len(text)):
        char = text[idx]
        if char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return idx
    return len(text)
