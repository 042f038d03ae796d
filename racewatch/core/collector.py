"""
Shared-State Collector — Phase 1.

Merges every tracker's SharedStateKey -> AccessPoint[] map into one. Missing
trackers, trackers without a callable track(), and results that are not a
key -> list mapping are skipped and reported as warnings, never raised.
Duplicates across trackers are kept: downstream consumers count how many
sources confirmed an access.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from racewatch.core.trackers.base import SharedStateMap
from racewatch.models.race_models import DetectionWarning

logger = logging.getLogger("racewatch.core.collector")


def collect_shared_state(
    trackers: list[Any] | None,
) -> tuple[SharedStateMap, list[DetectionWarning]]:
    """
    Run all trackers and merge their results.

    Merge order: tracker-list order, then each tracker's own order.

    Returns:
        (merged shared-state map, warnings for skipped trackers)
    """
    merged: SharedStateMap = {}
    warnings: list[DetectionWarning] = []

    for index, tracker in enumerate(trackers or []):
        label = _tracker_label(tracker, index)

        if tracker is None:
            warnings.append(_skipped(label, "tracker is missing"))
            continue

        track_fn = getattr(tracker, "track", None)
        if not callable(track_fn):
            warnings.append(_skipped(label, "tracker has no callable track()"))
            continue

        result = track_fn()
        if not _is_state_map(result):
            warnings.append(
                _skipped(label, f"track() returned {type(result).__name__}, not a key -> list mapping")
            )
            continue

        for key, accesses in result.items():
            merged.setdefault(key, []).extend(accesses)
        logger.debug(f"{label}: {len(result)} shared-state keys")

    for warning in warnings:
        logger.warning(f"Skipping {warning.source}: {warning.message}")

    return merged, warnings


def _is_state_map(result: Any) -> bool:
    if not isinstance(result, Mapping):
        return False
    return all(isinstance(key, str) and isinstance(value, list) for key, value in result.items())


def _tracker_label(tracker: Any, index: int) -> str:
    name = getattr(tracker, "name", None) if tracker is not None else None
    return f"tracker[{index}]" + (f" ({name})" if isinstance(name, str) else "")


def _skipped(label: str, message: str) -> DetectionWarning:
    return DetectionWarning(kind="tracker_skipped", message=message, source=label)
