# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

import time
from typing import Callable, Optional, TypeVar

from chefsolo.utils.execution import ExecutionContext

T = TypeVar("T")


class RetryError(RuntimeError):
    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


def retry_until(
    fn: Callable[[], T],
    *,
    timeout: float,
    ctx: Optional[ExecutionContext] = None,
    initial_delay: float = 1.0,
    max_delay: float = 16.0,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[int, Exception], None] | None = None,
) -> T:
    """
    Call fn until it succeeds, the timeout elapses or ctx ends.

    timeout: overall budget in seconds
    initial_delay / max_delay: exponential backoff between attempts
    retry_on: exception types to retry
    on_retry: callback(attempt, exception)

    Raises RetryError chained to the last exception.
    """
    deadline = time.monotonic() + timeout
    delay = initial_delay
    attempt = 0
    last_exc: Exception | None = None

    while True:
        attempt += 1
        try:
            return fn()
        except retry_on as exc:
            last_exc = exc
            if on_retry:
                on_retry(attempt, exc)

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        pause = min(delay, remaining)
        if ctx is not None:
            if ctx.sleep(pause):
                break
        else:
            time.sleep(pause)
        delay = min(delay * 2, max_delay)

    raise RetryError(
        f"{getattr(fn, '__name__', 'operation')} failed after {attempt} attempts",
        attempts=attempt,
    ) from last_exc
