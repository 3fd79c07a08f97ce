from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

from ..errors import RetryExhaustedError


logger = logging.getLogger(__name__)

T = TypeVar("T")


def _sleep_ms(ms: int) -> None:
    time.sleep(ms / 1000)


def retry_fixed(
    fn: Callable[[], T],
    *,
    attempts: int,
    delay_ms: int,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    accept: Optional[Callable[[T], bool]] = None,
    pause: Callable[[int], None] = _sleep_ms,
    error_cls: type[RetryExhaustedError] = RetryExhaustedError,
    label: str = "operation",
) -> T:
    """
    Call `fn` up to `attempts` times with a fixed `delay_ms` pause between tries.

    A try fails if it raises one of `retry_on` or if `accept(result)` is False.
    Anything not in `retry_on` propagates immediately. On exhaustion raises `error_cls`.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1 (got {attempts})")

    last_error: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        try:
            result = fn()
        except retry_on as e:
            last_error = e
            logger.debug("%s failed (attempt %d/%d): %s", label, attempt, attempts, e)
        else:
            if accept is None or accept(result):
                return result
            last_error = None
            logger.debug("%s returned an unusable result (attempt %d/%d)", label, attempt, attempts)

        if attempt < attempts and delay_ms > 0:
            pause(delay_ms)

    raise error_cls(
        f"{label} did not succeed after {attempts} attempt(s)",
        attempts=attempts,
        last_error=last_error,
    ) from last_error
