"""Public package exports for the :mod:`avatar_etl` library."""

from __future__ import annotations

__all__ = [
    "pipeline",
    "config",
    "scheduler",
    "workers",
    "constants",
    "errors",
    "models",
    "logging_setup",
    "core",
    "telemetry",
    "clients",
]
