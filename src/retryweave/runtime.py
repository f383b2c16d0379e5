"""Executor library used by generated code.

Four builder-style executors wrap ``tenacity``: ``Retryable`` and
``RetryableWithContext`` are awaited, ``BlockingRetryable`` and
``BlockingRetryableWithContext`` expose ``call()``. Generated functions
reach this module through the ``_retryweave_runtime`` alias.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generator, Iterable, Iterator

import tenacity

logger = logging.getLogger(__name__)

Predicate = Callable[[BaseException], bool]
Notify = Callable[[BaseException, float], Any]
Adjust = Callable[[BaseException, "float | None"], "float | None"]


def _counter(max_times: int | None) -> Iterable[int]:
    if max_times is None:
        return itertools.count()
    return range(max_times)


@dataclass(frozen=True)
class ExponentialBuilder:
    """Delays growing by ``factor`` from ``min_delay``, capped at ``max_delay``."""

    min_delay: float = 1.0
    max_delay: float = 60.0
    factor: float = 2.0
    max_times: int | None = 3
    jitter: bool = False

    def __iter__(self) -> Iterator[float]:
        delay = self.min_delay
        for _ in _counter(self.max_times):
            current = min(delay, self.max_delay)
            if self.jitter:
                current += current * random.random()
            yield current
            delay *= self.factor


@dataclass(frozen=True)
class ConstantBuilder:
    delay: float = 1.0
    max_times: int | None = 3

    def __iter__(self) -> Iterator[float]:
        for _ in _counter(self.max_times):
            yield self.delay


@dataclass(frozen=True)
class FibonacciBuilder:
    min_delay: float = 1.0
    max_delay: float = 60.0
    max_times: int | None = 3

    def __iter__(self) -> Iterator[float]:
        previous, current = 0.0, self.min_delay
        for _ in _counter(self.max_times):
            yield min(current, self.max_delay)
            previous, current = current, previous + current


class _Schedule:
    """Per-run retry decisions, keyed by attempt number.

    tenacity may consult ``stop`` and ``wait`` in either order for the same
    failed attempt; both read the single memoised decision.
    """

    def __init__(
        self,
        backoff: Iterable[float],
        when: Predicate | None,
        notify: Notify | None,
        adjust: Adjust | None,
    ) -> None:
        self._delays = iter(backoff)
        self._when = when
        self._notify = notify
        self._adjust = adjust
        self._decisions: dict[int, float | None] = {}

    def retry(self, retry_state: tenacity.RetryCallState) -> bool:
        outcome = retry_state.outcome
        if outcome is None or not outcome.failed:
            return False
        error = outcome.exception()
        # cancellation and interpreter exits are never retried
        if not isinstance(error, Exception):
            return False
        if self._when is None:
            return True
        return bool(self._when(error))

    def decide(self, retry_state: tenacity.RetryCallState) -> float | None:
        attempt = retry_state.attempt_number
        if attempt not in self._decisions:
            candidate = next(self._delays, None)
            if self._adjust is not None:
                candidate = self._adjust(retry_state.outcome.exception(), candidate)
            self._decisions[attempt] = candidate
        return self._decisions[attempt]

    def stop(self, retry_state: tenacity.RetryCallState) -> bool:
        return self.decide(retry_state) is None

    def wait(self, retry_state: tenacity.RetryCallState) -> float:
        return self.decide(retry_state) or 0.0

    def before_sleep(self, retry_state: tenacity.RetryCallState) -> None:
        delay = self.decide(retry_state) or 0.0
        error = retry_state.outcome.exception()
        logger.debug("attempt %d failed with %r; retrying in %.3fs", retry_state.attempt_number, error, delay)
        if self._notify is not None:
            self._notify(error, delay)


class _RetryChain:
    def __init__(self, operation: Callable[..., Any]) -> None:
        self._operation = operation
        self._backoff: Iterable[float] | None = None
        self._when: Predicate | None = None
        self._notify: Notify | None = None
        self._adjust: Adjust | None = None
        self._sleep: Callable[[float], Any] | None = None

    def retry(self, backoff: Iterable[float]):
        self._backoff = backoff
        return self

    def when(self, predicate: Predicate):
        self._when = predicate
        return self

    def notify(self, callback: Notify):
        self._notify = callback
        return self

    def sleep(self, sleeper: Callable[[float], Any]):
        self._sleep = sleeper
        return self

    def _policy(self, default_sleep: Callable[[float], Any]) -> dict[str, Any]:
        backoff = self._backoff if self._backoff is not None else ExponentialBuilder()
        schedule = _Schedule(backoff, self._when, self._notify, self._adjust)
        return {
            "retry": schedule.retry,
            "stop": schedule.stop,
            "wait": schedule.wait,
            "before_sleep": schedule.before_sleep,
            "sleep": self._sleep or default_sleep,
            "reraise": True,
        }


class BlockingRetryable(_RetryChain):
    """Retries a zero-argument callable on the calling thread."""

    def call(self) -> Any:
        return tenacity.Retrying(**self._policy(time.sleep))(self._operation)


class Retryable(_RetryChain):
    """Retries a zero-argument coroutine function; await the builder to run it."""

    def adjust(self, hook: Adjust):
        self._adjust = hook
        return self

    async def _run(self) -> Any:
        return await tenacity.AsyncRetrying(**self._policy(asyncio.sleep))(self._operation)

    def __await__(self) -> Generator[Any, None, Any]:
        return self._run().__await__()


class BlockingRetryableWithContext(BlockingRetryable):
    """Like ``BlockingRetryable`` but the operation receives the context value.

    ``call()`` returns ``(context, result)``.
    """

    _context: Any = ()

    def context(self, value: Any):
        self._context = value
        return self

    def call(self) -> tuple[Any, Any]:
        result = tenacity.Retrying(**self._policy(time.sleep))(self._operation, self._context)
        return self._context, result


class RetryableWithContext(Retryable):
    _context: Any = ()

    def context(self, value: Any):
        self._context = value
        return self

    async def _run(self) -> tuple[Any, Any]:
        operation: Callable[[Any], Awaitable[Any]] = self._operation
        result = await tenacity.AsyncRetrying(**self._policy(asyncio.sleep))(operation, self._context)
        return self._context, result
