"""
Run Audit Logger — one JSON line per detection run.

Each record carries the run id, how many trackers and strategies took part,
the shared-state items collected, races found and suppressed by the
mitigation gate, the severity histogram, and the run duration. The log is
append-only; readers can pull recent runs, look one up by id, or restrict
to runs that reported races.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Iterator

from racewatch.config import settings
from racewatch.models.race_models import AuditEntry

logger = logging.getLogger("racewatch.audit")


class RunAuditLogger:
    """Appends AuditEntry records for detection runs and reads them back."""

    def __init__(self, log_path: str | Path | None = None) -> None:
        path = log_path or settings.audit_log_path
        if not path:
            raise ValueError("An audit log path is required (set RACEWATCH_AUDIT_LOG_PATH)")
        self.log_path = Path(path)

    def log(self, entry: AuditEntry) -> None:
        """Record a finished run. Write failures are logged, not raised."""
        record = {"recorded_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())}
        record.update(entry.model_dump())

        try:
            with open(self.log_path, "a") as f:
                f.write(json.dumps(record) + "\n")
        except OSError as e:
            logger.error(f"Failed to write audit log for run {entry.run_id}: {e}")
            return
        logger.debug(f"Audited run {entry.run_id}: {entry.races_found} races, {entry.races_suppressed} suppressed")

    def _records(self) -> Iterator[dict]:
        with open(self.log_path) as f:
            for lineno, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError:
                    logger.debug(f"Skipping malformed audit line {lineno} in {self.log_path}")

    def read_recent(
        self,
        count: int = 50,
        run_id: str | None = None,
        with_races_only: bool = False,
    ) -> list[dict]:
        """
        Most recent audited runs, oldest first.

        run_id keeps only records for that run; with_races_only drops runs
        that reported no races.
        """
        if not self.log_path.exists():
            return []

        try:
            runs = [
                record
                for record in self._records()
                if (run_id is None or record.get("run_id") == run_id)
                and (not with_races_only or record.get("races_found", 0) > 0)
            ]
        except OSError as e:
            logger.error(f"Failed to read audit log: {e}")
            return []

        return runs[-count:]

    def find_run(self, run_id: str) -> dict | None:
        """Latest record for one run id, or None."""
        matches = self.read_recent(count=1, run_id=run_id)
        return matches[0] if matches else None
