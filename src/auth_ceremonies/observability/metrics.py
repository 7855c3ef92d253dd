"""Ceremony metrics for Prometheus.

Usage:
    ```python
    from auth_ceremonies.observability import CeremonyMetrics

    CeremonyMetrics.register(dispatcher)  # count every ceremony event

    with CeremonyMetrics.operation("login.password"):
        outcome = await login.password(request, payload)
    ```

Without ``prometheus_client`` installed every helper is a no-op.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from ..events import ALL_EVENTS
from ..exceptions import CeremonyError

_logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Generator

    from ..dispatcher import EventDispatcher
    from ..events import CeremonyEvent


class _CeremonyMetricsRegistry:
    """Lazily created Prometheus collectors."""

    def __init__(self) -> None:
        self._histogram: Any = None
        self._operations: Any = None
        self._events: Any = None
        self._initialized = False

    def _ensure_initialized(self) -> None:
        if self._initialized:
            return

        try:
            from prometheus_client import Counter, Histogram

            self._histogram = Histogram(
                "auth_ceremony_duration_seconds",
                "Ceremony step duration",
                ["ceremony"],
            )
            self._operations = Counter(
                "auth_ceremony_operations_total",
                "Ceremony steps by result",
                ["ceremony", "result"],
            )
            self._events = Counter(
                "auth_ceremony_events_total",
                "Ceremony events by type",
                ["event", "credential_type"],
            )
        except ImportError:
            _logger.debug("prometheus_client not available, metrics disabled")

        self._initialized = True

    def reset(self) -> None:
        self._histogram = None
        self._operations = None
        self._events = None
        self._initialized = False

    @property
    def histogram(self) -> Any:
        self._ensure_initialized()
        return self._histogram

    @property
    def operations(self) -> Any:
        self._ensure_initialized()
        return self._operations

    @property
    def events(self) -> Any:
        self._ensure_initialized()
        return self._events


_registry = _CeremonyMetricsRegistry()


def _credential_type(event: CeremonyEvent) -> str:
    for attribute in ("credential_type", "preferred_method", "method"):
        value = getattr(event, attribute, None)
        if value is not None:
            return str(getattr(value, "value", value))
    return "none"


class CeremonyMetrics:
    """Helpers recording ceremony durations, results and events."""

    @staticmethod
    @contextmanager
    def operation(ceremony: str) -> Generator[None, None, None]:
        """Time a ceremony step.

        The result label is ``success``, the name of the raised
        :class:`~auth_ceremonies.exceptions.CeremonyError` subclass, or
        ``error`` for anything else.

        Args:
            ceremony: Step name (``login.password``, ``mfa.challenge`` ...).
        """
        result = "success"
        start = time.monotonic()

        try:
            yield
        except CeremonyError as exc:
            result = type(exc).__name__
            raise
        except Exception:
            result = "error"
            raise
        finally:
            duration = time.monotonic() - start

            if _registry.histogram:
                try:
                    _registry.histogram.labels(ceremony=ceremony).observe(duration)
                except Exception:
                    _logger.debug("Failed to record histogram")

            if _registry.operations:
                try:
                    _registry.operations.labels(ceremony=ceremony, result=result).inc()
                except Exception:
                    _logger.debug("Failed to record counter")

    @staticmethod
    def record_event(event: CeremonyEvent) -> None:
        if not _registry.events:
            return

        try:
            _registry.events.labels(
                event=type(event).__name__,
                credential_type=_credential_type(event),
            ).inc()
        except Exception:
            _logger.debug("Failed to record ceremony event metric")

    @classmethod
    def register(cls, dispatcher: EventDispatcher) -> None:
        """Count every ceremony event dispatched through ``dispatcher``."""
        dispatcher.register_all(ALL_EVENTS, cls.record_event)


__all__: list[str] = ["CeremonyMetrics"]
