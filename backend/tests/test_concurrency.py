# Overview: Pytest coverage for compare-and-swap retries and the per-app retry policy.

import pytest

from warung import create_app
from warung.config import TestingConfig
from warung.errors import ConcurrencyConflict
from warung.services import concurrency


class PatientConfig(TestingConfig):
    CAS_RETRY_ATTEMPTS = 7


def _always_conflicting(calls):
    def _op():
        calls.append(1)
        raise ConcurrencyConflict("products", "P-1", 1, 2)
    return _op


class TestRunWithRetry:
    def test_returns_first_success(self):
        outcomes = iter([ConcurrencyConflict("products", "P-1", 1, 2), None])

        def _op():
            outcome = next(outcomes)
            if outcome is not None:
                raise outcome
            return "saved"

        assert concurrency.run_with_retry(_op) == "saved"

    def test_reraises_after_last_attempt(self):
        calls = []
        with pytest.raises(ConcurrencyConflict):
            concurrency.run_with_retry(_always_conflicting(calls), attempts=2)
        assert len(calls) == 2


class TestPolicyPerApp:
    def test_each_app_keeps_its_own_policy(self):
        default_app = create_app(TestingConfig)
        patient_app = create_app(PatientConfig)

        with default_app.app_context():
            assert concurrency.current_policy().attempts == 3
        with patient_app.app_context():
            assert concurrency.current_policy().attempts == 7
        with default_app.app_context():
            calls = []
            with pytest.raises(ConcurrencyConflict):
                concurrency.run_with_retry(_always_conflicting(calls))
            assert len(calls) == 3

    def test_configuring_an_app_leaves_the_fallback_alone(self):
        before = concurrency.retry_policy.attempts
        create_app(PatientConfig)
        assert concurrency.retry_policy.attempts == before

    def test_outside_app_context_uses_fallback(self):
        assert concurrency.current_policy() is concurrency.retry_policy
