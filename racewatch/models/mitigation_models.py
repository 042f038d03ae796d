"""
Mitigation Data Models — Verdicts and catalogue entries for the mitigation checkers.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict


class MitigationType(str, Enum):
    LOCK = "lock"
    TRANSACTION = "transaction"
    ATOMIC = "atomic"
    QUEUE = "queue"
    SEQUENTIAL = "sequential"
    IMMUTABLE = "immutable"
    PARTIAL_LOCK = "partial-lock"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Mitigation(BaseModel):
    """A verdict explaining why a race may be safe."""

    model_config = ConfigDict(frozen=True)

    type: MitigationType
    confidence: Confidence
    description: str = ""

    @property
    def is_partial(self) -> bool:
        return self.type.value.startswith("partial-")


@dataclass(frozen=True)
class CatalogueEntry:
    """One textual mitigation signature: regex, human label, and how much it proves."""

    pattern: str
    label: str
    confidence: Confidence = Confidence.HIGH
