"""
Lock Checker — mutexes, semaphores, lock managers, row locks, distributed locks.
"""

from __future__ import annotations

from racewatch.core.mitigation.catalogue import match_catalogue
from racewatch.models.mitigation_models import CatalogueEntry, Confidence
from racewatch.models.project_models import Atom

CHECKER_ID = "lock"

CATALOGUE: tuple[CatalogueEntry, ...] = (
    CatalogueEntry(r"\bnew\s+Mutex\s*\(|\bMutex\s*\(", "mutex"),
    CatalogueEntry(r"\bsemaphore\b", "semaphore"),
    CatalogueEntry(r"\brunExclusive\s*\(|\bwithLock\s*\(", "async-mutex"),
    CatalogueEntry(r"\bAsyncLock\b|\bawait-lock\b", "cooperative lock manager"),
    CatalogueEntry(r"\bnavigator\.locks\.request\s*\(", "Web Locks API"),
    CatalogueEntry(
        r"\b\w*(?:lock|mutex|semaphore)\.(?:acquire|lock)\s*\(|\.acquireLock\s*\(",
        "lock acquire/release",
    ),
    CatalogueEntry(r"\bproper-lockfile\b|\blockfile\.lock\s*\(", "file lock"),
    CatalogueEntry(r"\bSELECT\b[^;]*?\bFOR\s+(?:UPDATE|SHARE)\b", "row lock (SELECT ... FOR UPDATE)"),
    CatalogueEntry(r"\bLOCK\s+TABLES?\b", "table lock"),
    CatalogueEntry(r"\bpg_(?:try_)?advisory(?:_xact)?_lock\b", "advisory lock"),
    CatalogueEntry(r"\bredlock\b", "distributed lock (Redlock)"),
    CatalogueEntry(r"\bsetnx\b|\.set\s*\([^)]*['\"]NX['\"]", "distributed lock (SET NX)"),
    CatalogueEntry(r"\bsynchronized\s*\(", "synchronized block"),
    CatalogueEntry(r"\b(?:threading|asyncio|multiprocessing)\.R?Lock\s*\(", "Python lock"),
    CatalogueEntry(r"\.lock\s*\(", "lock call", Confidence.MEDIUM),
)


def detect(atom: Atom | None) -> CatalogueEntry | None:
    """First lock signature found in the atom's source, else None."""
    if atom is None:
        return None
    return match_catalogue(atom.code, CATALOGUE)
