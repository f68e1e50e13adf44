"""Environment-driven settings for dbhandles.

Manifesto:
    The defaults every registered connection starts from (raise on error,
    no autocommit, no error printing) and the liveness/stale-handle policy
    should be adjustable per deployment without code changes.

    - **Pydantic validation:** Type-checked when the registry is built
    - **Environment-driven:** ``DBHANDLES_*`` variables and ``.env`` files
    - **Caller wins:** Options passed to ``set_db()`` override these per key

Features:
    - **HandleSettings:** logging, liveness probing, stale-handle warnings,
      default connection options
    - **default_options():** the option mapping merged under caller options
    - **configure_logging():** apply ``log_level``/``json_logs`` to structlog

Examples:
    >>> from dbhandles.settings import HandleSettings
    >>> settings = HandleSettings(auto_commit=True)
    >>> settings.default_options()
    {'raise_error': True, 'auto_commit': True, 'print_error': False}

Tags:
    settings, configuration, pydantic, environment, dbhandles

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from dbhandles.logging import configure_logging


class HandleSettings(BaseSettings):
    """Settings shared by every registry.

    Fields
    ──────
    log_level       : Structlog log level
    json_logs       : Render logs as JSON (None → auto-detect from tty)
    ping_on_access  : Run the liveness probe every time a cached connection is handed out
    warn_on_active  : Emit ``StaleHandleWarning`` when an active statement is re-requested
    raise_error     : Default ``raise_error`` connection option
    auto_commit     : Default ``auto_commit`` connection option
    print_error     : Default ``print_error`` connection option
    """

    model_config = SettingsConfigDict(
        env_prefix="DBHANDLES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    # ── Handle policy ────────────────────────────────────────────
    ping_on_access: bool = Field(
        default=True,
        description="Probe cached connections before returning them",
    )
    warn_on_active: bool = True

    # ── Connection defaults ──────────────────────────────────────
    raise_error: bool = True
    auto_commit: bool = False
    print_error: bool = False

    def default_options(self) -> dict[str, Any]:
        """Connection options every ``set_db()`` call starts from."""
        return {
            "raise_error": self.raise_error,
            "auto_commit": self.auto_commit,
            "print_error": self.print_error,
        }

    def configure_logging(self, service: str = "dbhandles") -> None:
        """Configure structlog from ``log_level`` and ``json_logs``."""
        configure_logging(level=self.log_level, json_format=self.json_logs, service=service)


__all__ = ["HandleSettings"]
