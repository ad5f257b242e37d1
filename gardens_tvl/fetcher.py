"""
Adaptive eth_getLogs range fetcher.

RPC providers cap eth_getLogs by block span, by result count, by compute
units per second, or simply time out on wide queries, and none of them
publish the limit in a machine-readable way. fetch_logs() therefore tries the
widest request first and halves any range the provider rejects:

    [from, to] --fails--> [from, mid] + [mid+1, to] --> ... --> single block

Both halves of a split are fetched concurrently and merged without ordering.
A single block that still fails aborts the whole fetch with RetrievalError;
silently dropping a range would undercount TVL.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, List, Optional

from .errors import RetrievalError
from .log_source import BlockId, LogQuery, classify_provider_error
from .tasks import gather_or_cancel

logger = logging.getLogger(__name__)


def partition(query: LogQuery, max_block_range: Optional[int]) -> List[LogQuery]:
    """Cut a closed query into contiguous windows of at most max_block_range blocks."""
    if not max_block_range or query.size <= max_block_range:
        return [query]
    windows = []
    start = query.from_block
    while start <= query.to_block:
        end = min(start + max_block_range - 1, query.to_block)
        windows.append(LogQuery(query.address, query.topic0, start, end))
        start = end + 1
    return windows


async def _fetch_adaptive(source, query: LogQuery, semaphore: Optional[asyncio.Semaphore], depth: int = 0) -> List[Any]:
    try:
        async with semaphore or contextlib.nullcontext():
            logs = await source.get_logs(query)
        logger.debug(
            "getLogs %s [%d, %d]: %d logs", query.address, query.from_block, query.to_block, len(logs)
        )
        return list(logs)
    except Exception as e:
        kind = classify_provider_error(e)
        if not kind.splittable or query.size == 1:
            raise RetrievalError(query.address, query.topic0, query.from_block, query.to_block, cause=e) from e

    left, right = query.split()
    logger.warning(
        "getLogs %s [%d, %d] rejected (%s), splitting at %d (depth %d)",
        query.address, query.from_block, query.to_block, kind.value, left.to_block, depth + 1,
    )
    halves = await gather_or_cancel([
        _fetch_adaptive(source, left, semaphore, depth + 1),
        _fetch_adaptive(source, right, semaphore, depth + 1),
    ])
    return halves[0] + halves[1]


async def fetch_logs(
    source,
    address: str,
    topic0: str,
    from_block: int,
    to_block: BlockId = "latest",
    *,
    max_block_range: Optional[int] = None,
    max_concurrency: Optional[int] = None,
) -> List[Any]:
    """
    Fetch every log emitted by `address` with `topic0` in [from_block, to_block].

    Args:
        source: log source (see log_source.py)
        address: emitting contract
        topic0: event signature hash
        from_block: first block (inclusive)
        to_block: last block (inclusive) or "latest" for the current head
        max_block_range: optional per-chain cap applied before adaptive halving
        max_concurrency: optional cap on in-flight requests for this fetch

    Returns:
        Unordered list of raw logs.

    Raises:
        RetrievalError when a range cannot be fetched even as a single block,
        or the provider fails with a non-splittable error.
    """
    if to_block == "latest":
        to_block = await source.block_number()
    if not isinstance(from_block, int) or not isinstance(to_block, int):
        raise ValueError(f"block bounds must be ints or 'latest', got {from_block!r}, {to_block!r}")
    if from_block < 0 or from_block > to_block:
        raise ValueError(f"invalid block range [{from_block}, {to_block}]")

    query = LogQuery(address, topic0, from_block, to_block)
    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None
    windows = partition(query, max_block_range)

    chunks = await gather_or_cancel(_fetch_adaptive(source, w, semaphore) for w in windows)
    logs = [log for chunk in chunks for log in chunk]
    logger.debug("fetched %d logs for %s over %d blocks", len(logs), address, query.size)
    return logs
