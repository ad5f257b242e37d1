import asyncio
from typing import Any, Awaitable, Iterable, List


async def gather_or_cancel(aws: Iterable[Awaitable[Any]]) -> List[Any]:
    """
    Run awaitables concurrently and return their results in input order.

    On the first failure every still-running sibling is cancelled (and not
    awaited) and the earliest-listed failure is raised.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    if not tasks:
        return []
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    finally:
        for t in tasks:
            if not t.done():
                t.cancel()

    failures = [t.exception() for t in tasks if t.done() and not t.cancelled() and t.exception()]
    if failures:
        raise failures[0]
    return [t.result() for t in tasks]
