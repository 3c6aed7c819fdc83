"""
Bounded-concurrency, timeout and retry helpers.

Operations are zero-argument callables returning awaitables, so a helper
can start (or restart, for retries) them on its own schedule.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

type Operation[T] = Callable[[], Awaitable[T]]


class OperationTimeoutError(TimeoutError):
    """Raised by with_timeout when the timer wins."""

    def __init__(self, timeout: float):
        super().__init__(f"Operation timed out after {timeout}s")
        self.timeout = timeout


@dataclass
class ParallelResult[T]:
    """Outcome of one operation in a parallel batch."""

    index: int
    success: bool
    value: T | None = None
    error: BaseException | None = None


async def with_timeout[T](operation: Operation[T], timeout: float) -> T:
    """
    Await an operation with a deadline.

    The operation is cancelled when the deadline passes.

    Raises:
        OperationTimeoutError: If the operation does not finish in time
    """
    try:
        return await asyncio.wait_for(operation(), timeout)
    except TimeoutError as err:
        raise OperationTimeoutError(timeout) from err


async def with_retry[T](
    operation: Operation[T],
    *,
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: bool = True,
    on_retry: Callable[[int, BaseException], Any] | None = None,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> T:
    """
    Run an operation, retrying on failure.

    Args:
        operation: Callable started afresh on every attempt
        max_attempts: Total attempts including the first
        delay: Seconds to wait before a retry
        backoff: Wait delay * attempt instead of a constant delay
        on_retry: Called with (attempt, error) before each retry
        retry_on: Exception types worth retrying; others propagate at once

    Returns:
        The first successful result

    Raises:
        The last error once all attempts are exhausted
    """
    max_attempts = max(max_attempts, 1)
    for attempt in range(1, max_attempts):
        try:
            return await operation()
        except retry_on as err:
            logger.warning(
                "Attempt %d/%d failed: %s. Retrying...", attempt, max_attempts, err
            )
            if on_retry is not None:
                on_retry(attempt, err)
            await asyncio.sleep(delay * attempt if backoff else delay)

    # Final attempt: its error propagates unchanged
    return await operation()


async def parallel[T](
    operations: Sequence[Operation[T]],
    *,
    concurrency: int | None = None,
    continue_on_error: bool = False,
    delay: float = 0.0,
) -> list[ParallelResult[T]]:
    """
    Run operations concurrently with an optional concurrency cap.

    Args:
        operations: Operations to run
        concurrency: Maximum operations in flight (None means unbounded)
        continue_on_error: Record failures instead of aborting the batch
        delay: Seconds each operation after the first waits before starting

    Returns:
        One ParallelResult per operation, in input order

    Raises:
        The first failure, after cancelling the rest of the batch, unless
        continue_on_error is set
    """
    if not operations:
        return []

    limit = concurrency if concurrency and concurrency > 0 else len(operations)
    semaphore = asyncio.Semaphore(limit)

    async def run_one(index: int, operation: Operation[T]) -> ParallelResult[T]:
        async with semaphore:
            if delay > 0 and index > 0:
                await asyncio.sleep(delay)
            try:
                value = await operation()
            except Exception as err:
                if not continue_on_error:
                    raise
                return ParallelResult(index=index, success=False, error=err)
            return ParallelResult(index=index, success=True, value=value)

    tasks = [asyncio.ensure_future(run_one(i, op)) for i, op in enumerate(operations)]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def parallel_batch[T](
    operations: Sequence[Operation[T]], batch_size: int
) -> list[T]:
    """Run operations in fixed-size batches, one batch after another."""
    results: list[T] = []
    for start in range(0, len(operations), batch_size):
        batch = operations[start : start + batch_size]
        for outcome in await parallel(batch):
            results.append(outcome.value)  # type: ignore[arg-type]
    return results


async def parallel_map[T, R](
    items: Iterable[T],
    mapper: Callable[[T, int], Awaitable[R]],
    *,
    concurrency: int | None = None,
    continue_on_error: bool = False,
) -> list[R | None]:
    """
    Map an async function over items concurrently.

    Returns values in input order; failed items map to None when
    continue_on_error is set.
    """
    operations = [
        (lambda item=item, index=index: mapper(item, index))
        for index, item in enumerate(items)
    ]
    results = await parallel(
        operations, concurrency=concurrency, continue_on_error=continue_on_error
    )
    return [result.value if result.success else None for result in results]


async def parallel_filter[T](
    items: Iterable[T],
    predicate: Callable[[T, int], Awaitable[bool]],
    *,
    concurrency: int | None = None,
) -> list[T]:
    """Keep the items whose async predicate returns True, in input order."""
    materialized = list(items)
    verdicts = await parallel_map(materialized, predicate, concurrency=concurrency)
    return [item for item, keep in zip(materialized, verdicts, strict=True) if keep]


async def race_success[T](operations: Sequence[Operation[T]]) -> T:
    """
    Try operations one after another and return the first success.

    Raises:
        ExceptionGroup: If every operation fails (or none were given)
    """
    errors: list[Exception] = []
    for operation in operations:
        try:
            return await operation()
        except Exception as err:
            errors.append(err)

    messages = "; ".join(str(err) for err in errors)
    if not errors:
        errors.append(ValueError("No operations given"))
    raise ExceptionGroup(f"All operations failed: {messages}", errors)
