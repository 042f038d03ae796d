"""
Race Pattern Matcher — Phase 3 pattern enrichment.

PatternMatcher is the injected interface; RacePatternMatcher is the default
catalogue of known race shapes (singleton init, counters, array mutation,
cache population, lazy init, event subscription, database update, file write).
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Callable

from racewatch.core.atom_utils import find_atom_by_id
from racewatch.models.project_models import Project
from racewatch.models.race_models import AccessPoint, PatternMatch, Race

PatternDetectFn = Callable[[Race], bool]


class PatternMatcher(ABC):
    """Names known bug patterns for a race. An empty list means 'no pattern'."""

    @abstractmethod
    def detect_patterns(self, race: Race) -> list[PatternMatch]:
        """Return matching patterns, most relevant first."""


def enrich_patterns(races: list[Race], matcher: PatternMatcher) -> list[Race]:
    """Phase 3: first match becomes pattern / pattern_name, all keys go to all_patterns."""
    enriched: list[Race] = []
    for race in races:
        matches = matcher.detect_patterns(race)
        if matches:
            race = race.model_copy(
                update={
                    "pattern": matches[0].key,
                    "pattern_name": matches[0].name,
                    "all_patterns": [m.key for m in matches],
                }
            )
        enriched.append(race)
    return enriched


# ── Default matcher ──

SINGLETON_INDICATORS = (
    re.compile(r"if\s*\(\s*!\w+\s*\)\s*\{[^}]*=\s*(?:await\s+)?create", re.I),
    re.compile(r"if\s*\(\s*\w+\s*===?\s*(?:null|undefined)\s*\)\s*\{[^}]*=", re.I),
    re.compile(r"if\s*\(\s*typeof\s+\w+\s*===?\s*['\"]undefined['\"]\s*\)\s*\{[^}]*=", re.I),
    re.compile(r"\w+\s*\|\|\s*\(\s*\w+\s*=\s*(?:await\s+)?", re.I),
)
COUNTER_INDICATORS = (
    re.compile(r"\w+\+\+"),
    re.compile(r"\+\+\w+"),
    re.compile(r"\w+\s*\+=\s*\d+"),
    re.compile(r"\w+\s*=\s*\w+\s*[-+]\s*\d+"),
    re.compile(r"counter|count|total|sum|index", re.I),
)
ARRAY_INDICATORS = (
    re.compile(r"\.(?:push|pop|shift|unshift|splice|sort|reverse)\s*\("),
    re.compile(r"\[\s*\w+\s*\]\s*=\s*"),
)
CACHE_KEY_MARKERS = ("cache", "Cache", "memo", "Memo", "store", "Store")
CACHE_INDICATORS = (
    re.compile(r"(?:cache|memo|store)\[['\"]", re.I),
    re.compile(r"getOrSet|getFromCache", re.I),
)
EVENT_INDICATORS = (
    re.compile(r"\.(?:on|once)\s*\(\s*['\"]"),
    re.compile(r"\.emit\s*\("),
    re.compile(r"addEventListener|EventEmitter|dispatchEvent"),
)
DB_KEY_MARKERS = ("database", "db.", "query", "update", "insert", "delete")
DB_INDICATORS = (
    re.compile(r"(?:db|database)\.\w+\s*\("),
    re.compile(r"\.(?:update|insert|delete)\s*\("),
    re.compile(r"UPDATE\s+\w+|INSERT\s+INTO", re.I),
)
FILE_INDICATORS = (re.compile(r"fs\.write|fs\.append|writeFile|appendFile|createWriteStream"),)


class RacePatternMatcher(PatternMatcher):
    """
    Default pattern catalogue.

    Source context for an access is its inline `code`, else the owning atom's
    source looked up in the project.
    """

    def __init__(self, project: Project | None = None) -> None:
        self.project = project
        self.patterns: dict[str, tuple[str, PatternDetectFn]] = {
            "singleton": ("Singleton Initialization", self.is_singleton_pattern),
            "counter": ("Counter Increment", self.is_counter_pattern),
            "array": ("Array Modification", self.is_array_pattern),
            "cache": ("Cache Population", self.is_cache_pattern),
            "lazy_init": ("Lazy Initialization", self.is_lazy_init_pattern),
            "event_sub": ("Event Subscription", self.is_event_pattern),
            "db_update": ("Database Update", self.is_db_update_pattern),
            "file_write": ("File Write", self.is_file_write_pattern),
        }

    def detect_patterns(self, race: Race) -> list[PatternMatch]:
        return [
            PatternMatch(key=key, name=name)
            for key, (name, detect) in self.patterns.items()
            if detect(race)
        ]

    def add_pattern(self, key: str, name: str, detect: PatternDetectFn) -> None:
        self.patterns[key] = (name, detect)

    def get_patterns(self) -> list[PatternMatch]:
        return [PatternMatch(key=key, name=name) for key, (name, _) in self.patterns.items()]

    # ── Individual patterns ──

    def is_singleton_pattern(self, race: Race) -> bool:
        if race.type not in ("IE", "WW"):
            return False
        return self._any_code_matches(race, SINGLETON_INDICATORS)

    def is_counter_pattern(self, race: Race) -> bool:
        if race.type != "WW":
            return False
        return self._any_code_matches(race, COUNTER_INDICATORS)

    def is_array_pattern(self, race: Race) -> bool:
        if race.type not in ("WW", "RW"):
            return False
        return self._any_code_matches(race, ARRAY_INDICATORS)

    def is_cache_pattern(self, race: Race) -> bool:
        if any(marker in race.state_key for marker in CACHE_KEY_MARKERS):
            return True
        return self._any_code_matches(race, CACHE_INDICATORS)

    def is_lazy_init_pattern(self, race: Race) -> bool:
        if race.type != "IE":
            return False
        return any(access.type == "initialization" for access in race.accesses)

    def is_event_pattern(self, race: Race) -> bool:
        if race.type not in ("EH", "OTHER"):
            return False
        return self._any_code_matches(race, EVENT_INDICATORS)

    def is_db_update_pattern(self, race: Race) -> bool:
        if any(marker in race.state_key for marker in DB_KEY_MARKERS):
            return True
        return self._any_code_matches(race, DB_INDICATORS)

    def is_file_write_pattern(self, race: Race) -> bool:
        if race.state_key.startswith("file:") or ":file:" in race.state_key:
            return True
        return self._any_code_matches(race, FILE_INDICATORS)

    # ── Helpers ──

    def code_context(self, access: AccessPoint) -> str | None:
        if access.code:
            return access.code
        atom = find_atom_by_id(access.atom, self.project)
        return atom.code if atom and atom.code else None

    def _any_code_matches(self, race: Race, indicators: tuple[re.Pattern[str], ...]) -> bool:
        for access in race.accesses:
            code = self.code_context(access)
            if code and any(pattern.search(code) for pattern in indicators):
                return True
        return False
