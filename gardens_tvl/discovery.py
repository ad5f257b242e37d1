"""
Community and pool discovery.

factories --CommunityCreated--> communities --PoolCreated--> pools

Logs for every factory (and later every community) are fetched concurrently;
decoding and deduplication run afterwards in a single pass, in configuration
order, so the dedup tables have exactly one writer.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from eth_utils import to_checksum_address

from .config.chain_registry import ChainConfig
from .errors import DecodeError
from .events import (
    COMMUNITY_CREATED,
    POOL_CREATED,
    Pool,
    as_int,
    decode_community_created,
    decode_pool_created,
)
from .fetcher import fetch_logs
from .log_source import BlockId
from .tasks import gather_or_cancel

logger = logging.getLogger(__name__)


def _chain_order(log: Mapping[str, Any]) -> Tuple[int, int]:
    return (as_int(log.get("blockNumber")) or 0, as_int(log.get("logIndex")) or 0)


def _decode_each(logs: Sequence[Mapping[str, Any]], decoder: Callable, strict: bool) -> List[Any]:
    # Split sub-ranges come back unordered; decode in on-chain order
    out = []
    for log in sorted(logs, key=_chain_order):
        try:
            out.append(decoder(log))
        except DecodeError as e:
            if strict:
                raise
            logger.warning("skipping undecodable log: %s", e)
    return out


async def _fetch_per_emitter(
    source,
    emitters: Sequence[str],
    topic0: str,
    from_block: int,
    to_block: BlockId,
    max_block_range: Optional[int],
    max_concurrency: Optional[int],
) -> List[List[Any]]:
    return await gather_or_cancel(
        fetch_logs(
            source,
            emitter,
            topic0,
            from_block,
            to_block,
            max_block_range=max_block_range,
            max_concurrency=max_concurrency,
        )
        for emitter in emitters
    )


async def discover_communities(
    source,
    config: ChainConfig,
    to_block: BlockId = "latest",
    *,
    strict: bool = True,
    max_concurrency: Optional[int] = None,
) -> List[str]:
    """
    Return the unique community addresses created by the chain's factories.

    Order is first-seen (factory order, then log order within a factory).
    """
    if not config.factory_addresses:
        logger.info("%s: no factories configured, skipping discovery", config.chain)
        return []

    per_factory = await _fetch_per_emitter(
        source,
        config.factory_addresses,
        COMMUNITY_CREATED.topic0,
        config.deployed_block,
        to_block,
        config.max_block_range,
        max_concurrency,
    )

    communities: Dict[str, None] = {}
    for factory, logs in zip(config.factory_addresses, per_factory):
        events = _decode_each(logs, decode_community_created, strict)
        logger.info("%s: factory %s created %d communities", config.chain, factory, len(events))
        for ev in events:
            communities[to_checksum_address(ev.registry_community)] = None

    return list(communities)


async def discover_pools(
    source,
    communities: Sequence[str],
    from_block: int,
    to_block: BlockId = "latest",
    *,
    max_block_range: Optional[int] = None,
    strict: bool = True,
    max_concurrency: Optional[int] = None,
) -> List[Pool]:
    """
    Return one Pool per (strategy, token) across every community.

    When several PoolCreated logs share a (strategy, token) pair, the one
    processed last wins.
    """
    if not communities:
        return []

    per_community = await _fetch_per_emitter(
        source,
        communities,
        POOL_CREATED.topic0,
        from_block,
        to_block,
        max_block_range,
        max_concurrency,
    )

    pools: Dict[Tuple[str, str], Pool] = {}
    for community, logs in zip(communities, per_community):
        for ev in _decode_each(logs, decode_pool_created, strict):
            if ev.key in pools:
                logger.debug("pool %s overrides %s for %s", ev.pool_id, pools[ev.key].pool_id, ev.key)
            pools[ev.key] = ev
        logger.debug("community %s: %d PoolCreated logs", community, len(logs))

    return list(pools.values())
