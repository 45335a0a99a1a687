"""Async task functions executed by the bounded scheduler."""

from __future__ import annotations

from .download import resolve_and_download

__all__ = [
    "resolve_and_download",
]
