"""Unit tests for ceremony metrics."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from auth_ceremonies import (
    ChallengeFailedError,
    CredentialType,
    EventDispatcher,
    Lockout,
    MultiFactorChallengeFailed,
    MultiFactorChallenged,
)
from auth_ceremonies.observability import CeremonyMetrics
from auth_ceremonies.observability import metrics as metrics_mod


@pytest.fixture(autouse=True)
def registry():
    metrics_mod._registry.reset()
    yield metrics_mod._registry
    metrics_mod._registry.reset()


@pytest.fixture
def prometheus():
    counter, histogram = MagicMock(), MagicMock()
    with (
        patch("prometheus_client.Counter", counter),
        patch("prometheus_client.Histogram", histogram),
    ):
        yield counter, histogram


class TestOperation:
    def test_success_is_recorded(self, prometheus, registry) -> None:
        with CeremonyMetrics.operation("login.password"):
            pass

        registry.operations.labels.assert_called_with(ceremony="login.password", result="success")
        registry.histogram.labels.assert_called_with(ceremony="login.password")

    def test_ceremony_errors_are_labelled_by_type(self, prometheus, registry) -> None:
        with pytest.raises(ChallengeFailedError):
            with CeremonyMetrics.operation("mfa.challenge"):
                raise ChallengeFailedError()

        registry.operations.labels.assert_called_with(
            ceremony="mfa.challenge", result="ChallengeFailedError"
        )

    def test_other_errors(self, prometheus, registry) -> None:
        with pytest.raises(RuntimeError):
            with CeremonyMetrics.operation("mfa.challenge"):
                raise RuntimeError("boom")

        registry.operations.labels.assert_called_with(ceremony="mfa.challenge", result="error")

    def test_without_prometheus(self) -> None:
        import builtins

        real_import = builtins.__import__

        def raise_for_prometheus(name, *args, **kwargs):
            if name == "prometheus_client":
                raise ImportError("No module named 'prometheus_client'")
            return real_import(name, *args, **kwargs)

        with patch("builtins.__import__", side_effect=raise_for_prometheus):
            with CeremonyMetrics.operation("login.password"):
                pass
        assert metrics_mod._registry.operations is None


class TestRecordEvent:
    @pytest.mark.parametrize(
        ("event", "credential_type"),
        [
            (Lockout(scope="login|jane|1.2.3.4"), "none"),
            (
                MultiFactorChallengeFailed(user_id="owner-1", credential_type="recovery-code"),
                "recovery-code",
            ),
            (
                MultiFactorChallenged(user_id="owner-1", preferred_method=CredentialType.TOTP),
                "totp",
            ),
        ],
    )
    def test_labels(self, prometheus, registry, event, credential_type) -> None:
        CeremonyMetrics.record_event(event)

        registry.events.labels.assert_called_with(
            event=type(event).__name__, credential_type=credential_type
        )

    @pytest.mark.asyncio
    async def test_register_counts_dispatched_events(self, prometheus, registry) -> None:
        dispatcher = EventDispatcher()
        CeremonyMetrics.register(dispatcher)

        await dispatcher.emit(Lockout(scope="k"))

        registry.events.labels.assert_called_once_with(event="Lockout", credential_type="none")
