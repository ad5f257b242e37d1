from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from .errors import AggregationError
from .events import Pool

logger = logging.getLogger(__name__)

BALANCE_OF = "erc20:balanceOf"


def build_balance_calls(pools: Sequence[Pool]) -> List[Dict[str, Any]]:
    """One balanceOf(strategy) call on each pool's token, in pool order."""
    return [{"target": p.token, "params": [p.strategy]} for p in pools]


async def aggregate_balances(pools: Sequence[Pool], batch_caller, accumulator) -> int:
    """
    Read every pool's token balance in a single batch and feed the positive
    ones into the accumulator.

    Results come back as a list aligned with the call list, so result i
    belongs to pools[i]. None (failed read) and zero are skipped.

    Returns the number of accumulator.add() calls made.
    """
    if not pools:
        return 0

    calls = build_balance_calls(pools)
    try:
        results = await batch_caller.multi_call(BALANCE_OF, calls)
    except Exception as e:
        raise AggregationError(f"balance batch of {len(calls)} calls failed: {e}") from e

    if results is None or len(results) != len(calls):
        got = "no results" if results is None else f"{len(results)} results"
        raise AggregationError(f"balance batch returned {got} for {len(calls)} calls")

    added = 0
    for pool, bal in zip(pools, results):
        if bal and bal > 0:
            accumulator.add(pool.token, bal)
            added += 1
        elif bal is None:
            logger.debug("balanceOf(%s) on %s failed, skipped", pool.strategy, pool.token)

    logger.info("aggregated %d/%d non-zero pool balances", added, len(pools))
    return added
