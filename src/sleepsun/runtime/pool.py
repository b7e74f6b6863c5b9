"""Bounded-concurrency execution of coroutine factories."""
from typing import Any, Awaitable, Callable, List, Sequence, Set
import asyncio
import logging

logger = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[Any]]


async def run_bounded(
    factories: Sequence[TaskFactory],
    limit: int = 5,
    delay: float = 0.05,
) -> List[Any]:
    """Run coroutine factories with at most `limit` in flight.

    Before each dispatch, if `limit` tasks are outstanding, wait for any one
    to finish; after each dispatch, pause `delay` seconds. A failing task
    does not cancel its siblings: its exception takes its slot in the result.

    Args:
        factories: Zero-argument callables returning awaitables
        limit: Maximum number of outstanding tasks
        delay: Seconds to wait between dispatches

    Returns:
        One entry per factory, in dispatch order: the result or the exception
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")

    pending: Set[asyncio.Future] = set()
    tasks: List[asyncio.Future] = []

    for index, factory in enumerate(factories):
        if len(pending) >= limit:
            _, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
        task = asyncio.ensure_future(factory())
        tasks.append(task)
        pending.add(task)
        logger.debug(f"Dispatched task {index + 1}/{len(factories)} ({len(pending)} in flight)")
        if delay > 0:
            await asyncio.sleep(delay)

    return list(await asyncio.gather(*tasks, return_exceptions=True))
