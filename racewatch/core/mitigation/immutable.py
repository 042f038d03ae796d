"""
Immutable Checker — immutable-collection libraries, freezing, read-only types.
"""

from __future__ import annotations

from racewatch.core.mitigation.catalogue import match_catalogue
from racewatch.models.mitigation_models import CatalogueEntry, Confidence
from racewatch.models.project_models import Atom

CHECKER_ID = "immutable"

CATALOGUE: tuple[CatalogueEntry, ...] = (
    CatalogueEntry(r"\bObject\.freeze\s*\(|\bdeepFreeze\s*\(", "Object.freeze"),
    CatalogueEntry(
        r"\bImmutable\.(?:Map|List|Set|Record|fromJS)\b|from\s+['\"]immutable['\"]|require\(\s*['\"]immutable['\"]\s*\)",
        "Immutable.js",
    ),
    CatalogueEntry(r"\bseamless-immutable\b", "seamless-immutable"),
    CatalogueEntry(r"from\s+['\"]immer['\"]|\bproduce\s*\(", "immer", Confidence.MEDIUM),
    CatalogueEntry(r"\bReadonly(?:Array|Map|Set)?<|\breadonly\s+[A-Za-z_$][\w$]*\s*[:\[]", "read-only type"),
    CatalogueEntry(r"\bas\s+const\b", "const assertion", Confidence.MEDIUM),
    CatalogueEntry(r"\bfrozenset\s*\(|\bMappingProxyType\s*\(|@dataclass\(\s*frozen\s*=\s*True", "Python frozen type"),
)


def detect(atom: Atom | None) -> CatalogueEntry | None:
    """First immutability signature found in the atom's source, else None."""
    if atom is None:
        return None
    return match_catalogue(atom.code, CATALOGUE)
