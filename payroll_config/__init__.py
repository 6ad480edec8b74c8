"""
payroll_config -- single public entrypoint for payroll settings.

Responsibility:
    Provides ``get_active_settings()``, the way services and scripts obtain
    a validated ``PayrollSettings``.  ``PAYROLL_CONFIG`` names the YAML
    file; without it the built-in defaults apply.

Architecture position:
    Configuration -- sits above ``payroll_kernel`` and ``payroll_engines``.
    The kernel MUST NEVER import from ``payroll_config``.

Failure modes:
    - ``FileNotFoundError`` -- ``PAYROLL_CONFIG`` names a missing file.
    - ``ValueError`` / ``FormulaValidationError`` -- invalid settings.

Audit relevance:
    Every load emits a ``PAYROLL_CONFIG_TRACE`` log entry with the source
    path and formula count.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path

from payroll_config.loader import load_settings, parse_settings
from payroll_config.schema import PayrollSettings
from payroll_kernel.logging_config import get_logger

_logger = get_logger("config")

CONFIG_PATH_ENV = "PAYROLL_CONFIG"

_lock = threading.Lock()
_active: PayrollSettings | None = None


def get_active_settings(config_path: Path | str | None = None) -> PayrollSettings:
    """
    Load settings once and return the cached copy afterwards.

    ``config_path`` takes precedence over ``PAYROLL_CONFIG``; it is only
    consulted on the first call (or after ``reset_active_settings``).
    """
    global _active
    with _lock:
        if _active is not None:
            return _active

        path = config_path or os.environ.get(CONFIG_PATH_ENV)
        settings = load_settings(path) if path else parse_settings({})

        _logger.info(
            "PAYROLL_CONFIG_TRACE",
            extra={
                "trace_type": "PAYROLL_CONFIG_TRACE",
                "config_path": str(path) if path else None,
                "formula_count": len(settings.formulas),
                "reporting_currency": settings.reporting_currency,
            },
        )
        _active = settings
        return settings


def reset_active_settings() -> None:
    """Drop the cached settings.  Test-only."""
    global _active
    with _lock:
        _active = None


__all__ = [
    "PayrollSettings",
    "get_active_settings",
    "load_settings",
    "parse_settings",
    "reset_active_settings",
]
