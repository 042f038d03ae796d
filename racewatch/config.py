"""
RaceWatch Configuration — pydantic-settings based.

All settings are read from environment variables (prefix RACEWATCH_) or a .env file.
Every component accepts explicit overrides and falls back to these values.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Detector-wide settings sourced from environment variables."""

    # ── Mitigation heuristics ──
    flow_line_window: int = Field(
        default=10,
        description="Max line distance for two same-atom accesses to count as one sequential flow",
    )
    atomic_max_statement_lines: int = Field(
        default=3,
        description="Max non-blank lines for an atom to qualify as a single-statement atomic update",
    )

    # ── Detection ──
    max_reported_accesses: int = Field(
        default=2, description="Accesses copied into each Race by the default strategy"
    )

    # ── Logging ──
    log_level: str = Field(default="INFO", description="Root log level for configure_logging()")

    # ── Audit ──
    audit_log_path: str | None = Field(
        default=None,
        description="Path to JSON-lines run audit log. Unset disables the audit trail.",
    )

    model_config = {
        "env_prefix": "RACEWATCH_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Singleton instance, imported by other modules
settings = Settings()
