from __future__ import annotations

import asyncio
import logging
from pathlib import Path
import sys

import pytest


def _load():
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root / "src"))
    from retryweave import runtime

    return runtime


def _failing(times: int, error: type[Exception] = ConnectionError, result: str = "ok"):
    attempts: list[int] = []

    def operation():
        attempts.append(len(attempts) + 1)
        if len(attempts) <= times:
            raise error(f"attempt {len(attempts)}")
        return result

    return operation, attempts


def test_builders_yield_bounded_delays() -> None:
    runtime = _load()
    assert list(runtime.ExponentialBuilder()) == [1.0, 2.0, 4.0]
    assert list(runtime.ExponentialBuilder(min_delay=1, max_delay=3, max_times=4)) == [1, 2, 3, 3]
    assert list(runtime.FibonacciBuilder(max_times=5)) == [1, 1, 2, 3, 5]
    assert list(runtime.ConstantBuilder(delay=0.5, max_times=2)) == [0.5, 0.5]
    for base, delay in zip([1.0, 2.0, 4.0], runtime.ExponentialBuilder(jitter=True)):
        assert base <= delay <= 2 * base


def test_blocking_retries_until_success() -> None:
    runtime = _load()
    operation, attempts = _failing(2)
    slept: list[float] = []
    notes: list[tuple[str, float]] = []
    result = (
        runtime.BlockingRetryable(operation)
        .retry(runtime.ExponentialBuilder())
        .notify(lambda err, delay: notes.append((str(err), delay)))
        .sleep(slept.append)
        .call()
    )
    assert result == "ok"
    assert attempts == [1, 2, 3]
    assert slept == [1.0, 2.0]
    assert notes == [("attempt 1", 1.0), ("attempt 2", 2.0)]


def test_exhausted_backoff_reraises_last_error() -> None:
    runtime = _load()
    operation, attempts = _failing(10, ValueError)
    with pytest.raises(ValueError, match="attempt 3"):
        runtime.BlockingRetryable(operation).retry(
            runtime.ConstantBuilder(delay=0.0, max_times=2)
        ).sleep(lambda delay: None).call()
    assert attempts == [1, 2, 3]


def test_rejected_error_is_not_retried() -> None:
    runtime = _load()
    operation, attempts = _failing(5, KeyError)
    slept: list[float] = []
    with pytest.raises(KeyError):
        (
            runtime.BlockingRetryable(operation)
            .retry(runtime.ConstantBuilder(delay=0.0))
            .when(lambda err: isinstance(err, ConnectionError))
            .sleep(slept.append)
            .call()
        )
    assert attempts == [1]
    assert slept == []


def test_async_retry_with_async_sleep() -> None:
    runtime = _load()
    calls: list[int] = []
    naps: list[float] = []

    async def operation():
        calls.append(1)
        if len(calls) < 3:
            raise TimeoutError("slow")
        return len(calls)

    async def nap(delay: float) -> None:
        naps.append(delay)

    async def main():
        return await runtime.Retryable(operation).retry(runtime.FibonacciBuilder()).sleep(nap)

    assert asyncio.run(main()) == 3
    assert naps == [1.0, 1.0]


def test_adjust_returning_none_stops() -> None:
    runtime = _load()
    seen: list[float | None] = []
    calls: list[int] = []

    async def operation():
        calls.append(1)
        raise TimeoutError("slow")

    def adjust(err, delay):
        seen.append(delay)
        return None

    async def main():
        return await runtime.Retryable(operation).retry(
            runtime.ConstantBuilder(delay=5.0)
        ).adjust(adjust)

    with pytest.raises(TimeoutError):
        asyncio.run(main())
    assert calls == [1]
    assert seen == [5.0]


def test_adjust_overrides_delay() -> None:
    runtime = _load()
    calls: list[int] = []
    naps: list[float] = []

    async def operation():
        calls.append(1)
        if len(calls) < 2:
            raise TimeoutError("slow")
        return "done"

    async def nap(delay: float) -> None:
        naps.append(delay)

    async def main():
        return await (
            runtime.Retryable(operation)
            .retry(runtime.ConstantBuilder(delay=5.0))
            .adjust(lambda err, delay: 0.25)
            .sleep(nap)
        )

    assert asyncio.run(main()) == "done"
    assert naps == [0.25]


def test_cancellation_is_never_retried() -> None:
    runtime = _load()
    calls: list[int] = []

    async def operation():
        calls.append(1)
        raise asyncio.CancelledError()

    async def main():
        try:
            await runtime.Retryable(operation).retry(runtime.ConstantBuilder(delay=0.0))
        except asyncio.CancelledError:
            return "cancelled"
        return "finished"

    assert asyncio.run(main()) == "cancelled"
    assert calls == [1]


def test_context_executors_return_context_and_result() -> None:
    runtime = _load()

    def operation(ctx):
        (items,) = ctx
        items.append(len(items))
        if len(items) < 2:
            raise ValueError("again")
        return sum(items)

    context, result = (
        runtime.BlockingRetryableWithContext(operation)
        .retry(runtime.ConstantBuilder(delay=0.0))
        .sleep(lambda delay: None)
        .context(([],))
        .call()
    )
    assert context == ([0, 1],)
    assert result == 1

    async def async_operation(ctx):
        (count,) = ctx
        return count * 2

    async def main():
        return await runtime.RetryableWithContext(async_operation).retry(
            runtime.ConstantBuilder()
        ).context((21,))

    assert asyncio.run(main()) == ((21,), 42)


def test_retries_are_logged(caplog) -> None:
    runtime = _load()
    operation, _ = _failing(1)
    caplog.set_level(logging.DEBUG, logger="retryweave.runtime")
    runtime.BlockingRetryable(operation).retry(runtime.ConstantBuilder(delay=0.0)).sleep(
        lambda delay: None
    ).call()
    assert any("retrying in" in record.getMessage() for record in caplog.records)
