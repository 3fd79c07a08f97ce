from __future__ import annotations

import pytest

from partner_central_export.errors import ExtractionRetryExhaustedError, RetryExhaustedError
from partner_central_export.util.retry import retry_fixed


class _Flaky:
    def __init__(self, failures: int, result: object = "ok", exc: type[Exception] = RuntimeError) -> None:
        self.failures = failures
        self.result = result
        self.exc = exc
        self.calls = 0

    def __call__(self) -> object:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc(f"failure {self.calls}")
        return self.result


def test_returns_first_success_and_pauses_between_tries() -> None:
    pauses: list[int] = []
    fn = _Flaky(failures=2)
    assert retry_fixed(fn, attempts=3, delay_ms=250, pause=pauses.append) == "ok"
    assert fn.calls == 3
    assert pauses == [250, 250]


def test_exhaustion_raises_with_last_error() -> None:
    pauses: list[int] = []
    fn = _Flaky(failures=5)
    with pytest.raises(RetryExhaustedError) as ei:
        retry_fixed(fn, attempts=3, delay_ms=100, pause=pauses.append, label="fetch")
    assert fn.calls == 3
    assert pauses == [100, 100]  # no pause after the final attempt
    assert ei.value.attempts == 3
    assert str(ei.value.last_error) == "failure 3"
    assert "fetch" in str(ei.value)


def test_rejected_results_count_as_failures() -> None:
    results = iter(["", "", "4111"])
    out = retry_fixed(lambda: next(results), attempts=3, delay_ms=0, accept=bool, pause=lambda ms: None)
    assert out == "4111"


def test_custom_error_class() -> None:
    with pytest.raises(ExtractionRetryExhaustedError):
        retry_fixed(
            lambda: None,
            attempts=2,
            delay_ms=0,
            accept=lambda r: r is not None,
            pause=lambda ms: None,
            error_cls=ExtractionRetryExhaustedError,
        )


def test_unlisted_exceptions_propagate_immediately() -> None:
    fn = _Flaky(failures=1, exc=KeyError)
    with pytest.raises(KeyError):
        retry_fixed(fn, attempts=3, delay_ms=0, retry_on=(RuntimeError,), pause=lambda ms: None)
    assert fn.calls == 1


def test_attempts_must_be_positive() -> None:
    with pytest.raises(ValueError):
        retry_fixed(lambda: 1, attempts=0, delay_ms=0)
