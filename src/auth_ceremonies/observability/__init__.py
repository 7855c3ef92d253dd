"""Prometheus metrics for the authentication ceremonies."""

from __future__ import annotations

from .metrics import CeremonyMetrics

__all__: list[str] = ["CeremonyMetrics"]
