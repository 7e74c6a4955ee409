"""Bounded-concurrency helpers for fanning out over remote calls."""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def bounded_map(
    fn: Callable[[T], Awaitable[R]],
    items: Sequence[T],
    limit: int,
    deadline: float | None = None,
) -> list[R | None]:
    """
    Apply ``fn`` to every item with at most ``limit`` calls running at once.

    New calls are started only as earlier ones finish, so the number of live
    tasks never exceeds ``limit``. Results are collected by this coroutine
    alone and come back in input order.

    Args:
        fn: Coroutine function applied to each item. It should handle its own
            expected failures; an exception escaping it cancels the rest and
            propagates.
        items: Items to process
        limit: Maximum number of concurrent calls
        deadline: Event-loop time (``loop.time()``) after which unfinished
            calls are cancelled

    Returns:
        One entry per item; ``None`` for items that did not finish before the deadline
    """
    if limit < 1:
        raise ValueError("limit must be >= 1")

    loop = asyncio.get_running_loop()
    results: list[R | None] = [None] * len(items)
    pending: dict[asyncio.Task[R], int] = {}
    queue = iter(enumerate(items))

    def top_up() -> None:
        while len(pending) < limit:
            try:
                index, item = next(queue)
            except StopIteration:
                return
            pending[asyncio.ensure_future(fn(item))] = index

    top_up()
    try:
        while pending:
            timeout = None if deadline is None else deadline - loop.time()
            if timeout is not None and timeout <= 0:
                break
            done, _ = await asyncio.wait(
                pending, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
            if not done:
                break
            for task in done:
                index = pending.pop(task)
                results[index] = task.result()
            top_up()
    finally:
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    return results


async def limited(
    semaphore: asyncio.Semaphore,
    fn: Callable[..., Awaitable[R]],
    *args: Any,
    **kwargs: Any,
) -> R:
    """
    Call ``fn(*args, **kwargs)`` while holding one slot of ``semaphore``.

    The coroutine is created only once the slot is held, so a caller cancelled
    while queueing leaves nothing behind un-awaited.
    """
    async with semaphore:
        return await fn(*args, **kwargs)


async def gather_or_raise(*awaitables: Awaitable[R]) -> list[R]:
    """
    Run awaitables concurrently and raise the first failure only after all settle.

    Unlike a bare ``asyncio.gather`` this never leaves a sibling running
    unobserved when one of them fails.
    """
    outcomes = await asyncio.gather(*awaitables, return_exceptions=True)
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome
    return list(outcomes)
