"""
Catalogue matching — shared first-match-wins evaluation for mitigation tables.

Comments are blanked before matching, so prose such as "no mutex here" never
counts as a mitigation. String literals are kept: SQL statements like
'BEGIN' or '... FOR UPDATE' only appear inside them.
"""

from __future__ import annotations

import re
from functools import lru_cache

from racewatch.core.atom_utils import strip_comments
from racewatch.models.mitigation_models import CatalogueEntry


@lru_cache(maxsize=None)
def compile_entry(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


def match_catalogue(
    code: str | None, catalogue: tuple[CatalogueEntry, ...]
) -> CatalogueEntry | None:
    """Return the first catalogue entry whose pattern occurs in the code, else None."""
    if not code:
        return None
    code = strip_comments(code)
    for entry in catalogue:
        if compile_entry(entry.pattern).search(code):
            return entry
    return None
