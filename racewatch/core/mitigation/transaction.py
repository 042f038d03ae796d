"""
Transaction Checker — transaction-boundary vocabulary across common data-access idioms.

Covers raw statement-level SQL transactions plus Sequelize, Knex, Prisma,
TypeORM and MongoDB/Mongoose sessions, with a generic '.transaction(' fallback.
"""

from __future__ import annotations

import re

from racewatch.core.atom_utils import strip_comments
from racewatch.core.mitigation.catalogue import match_catalogue
from racewatch.models.mitigation_models import CatalogueEntry, Confidence
from racewatch.models.project_models import Atom
from racewatch.models.race_models import AccessPoint

CHECKER_ID = "transaction"

CATALOGUE: tuple[CatalogueEntry, ...] = (
    CatalogueEntry(
        r"['\"`]\s*(?:BEGIN(?:\s+TRANSACTION)?|START\s+TRANSACTION)\s*;?\s*['\"`]|\bBEGIN\s+TRANSACTION\b",
        "SQL transaction",
    ),
    CatalogueEntry(r"\bsequelize\.transaction\s*\(", "Sequelize transaction"),
    CatalogueEntry(r"\bknex\.transaction\s*\(|\btrx\.commit\s*\(", "Knex transaction"),
    CatalogueEntry(r"\$transaction\s*\(", "Prisma transaction"),
    CatalogueEntry(
        r"\bqueryRunner\.startTransaction\s*\(|\b(?:manager|dataSource|connection)\.transaction\s*\(|@Transaction\b",
        "TypeORM transaction",
    ),
    CatalogueEntry(
        r"\bstartSession\s*\(|\bwithTransaction\s*\(|\bsession\.startTransaction\s*\(",
        "MongoDB session transaction",
    ),
    CatalogueEntry(r"\.transaction\s*\(", "transaction API", Confidence.MEDIUM),
)

# Named transaction-boundary functions: 'db.transaction', 'prisma.$transaction', 'runInTransaction'
_BOUNDARY_RES: tuple[re.Pattern[str], ...] = (
    re.compile(r"([A-Za-z_$][\w$]*)\s*\.\s*(\$?transaction|startTransaction|withTransaction)\s*\("),
    re.compile(r"(?<![\w$.])([A-Za-z_$]*[Tt]ransaction[\w$]*)\s*\("),
)


def detect(atom: Atom | None) -> CatalogueEntry | None:
    """First transaction signature found in the atom's source, else None."""
    if atom is None:
        return None
    return match_catalogue(atom.code, CATALOGUE)


def extract_transaction_boundary(code: str | None) -> str | None:
    """Name of the first transaction-boundary function the source calls."""
    if not code:
        return None
    code = strip_comments(code)
    for pattern in _BOUNDARY_RES:
        match = pattern.search(code)
        if match:
            return ".".join(match.groups())
    return None


def same_transaction(
    access1: AccessPoint,
    atom1: Atom | None,
    access2: AccessPoint,
    atom2: Atom | None,
) -> bool:
    """Both in a transaction AND (same atom, same file, or same named boundary)."""
    if detect(atom1) is None or detect(atom2) is None:
        return False
    if access1.atom == access2.atom or access1.file == access2.file:
        return True
    boundary1 = extract_transaction_boundary(atom1.code if atom1 else None)
    return boundary1 is not None and boundary1 == extract_transaction_boundary(
        atom2.code if atom2 else None
    )
