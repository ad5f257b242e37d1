"""
Per-chain TVL entry point.

compute_tvl(chain, accumulator) runs the whole pipeline for one chain:

    configuration -> community discovery -> pool discovery -> balance aggregation

and pushes (token, amount) pairs into the accumulator. Any failure aborts
only this chain and is raised tagged with the chain and phase.
"""

from __future__ import annotations

import contextlib
import logging
from functools import partial
from typing import Any, Dict, Iterator, Optional

from .aggregator import aggregate_balances
from .config.chain_registry import ChainConfig, Settings, get_chain_config, get_settings, supported_chains
from .config.rate_limiter import RateLimiter
from .config.rpc_config import connect_rpc, get_rpc_url
from .discovery import discover_communities, discover_pools
from .errors import ConfigurationError, GardensTvlError
from .log_source import Web3LogSource
from .multicall import Web3MultiCaller

logger = logging.getLogger(__name__)

METHODOLOGY = (
    "Reads CommunityCreated events from the Gardens registry factories and PoolCreated "
    "events from every community with adaptively chunked eth_getLogs, then sums the "
    "ERC20 balances held by each pool's strategy contract."
)
START = 1640995200  # 2022-01-01T00:00:00Z


@contextlib.contextmanager
def _phase(chain: str, phase: str) -> Iterator[None]:
    try:
        yield
    except GardensTvlError as e:
        if e.chain is None:
            e.chain = chain
        if e.phase is None:
            e.phase = phase
        raise


async def compute_tvl(
    chain: str,
    accumulator,
    *,
    log_source=None,
    batch_caller=None,
    config: Optional[ChainConfig] = None,
    settings: Optional[Settings] = None,
) -> None:
    """
    Discover every Gardens pool on `chain` and add its strategy's token
    balance to `accumulator`.

    log_source / batch_caller default to AsyncWeb3-backed implementations
    built from the chain's RPC env var. Raises ConfigurationError before any
    network call when that variable is missing.
    """
    web3 = None
    with _phase(chain, "configuration"):
        config = config or get_chain_config(chain)
        settings = settings or get_settings()
        if not config.factory_addresses:
            logger.info("%s: no factories configured, nothing to do", chain)
            return
        if log_source is None or batch_caller is None:
            web3 = connect_rpc(get_rpc_url(config), settings.request_timeout)
            limiter = RateLimiter(calls_per_second=settings.requests_per_second)
            log_source = log_source or Web3LogSource(web3, limiter)
            batch_caller = batch_caller or Web3MultiCaller(web3, settings.max_concurrency, limiter)

    try:
        with _phase(chain, "community discovery"):
            head = await log_source.block_number()
            if config.deployed_block > head:
                raise ConfigurationError(
                    f"deployed_block {config.deployed_block} is past the chain head {head}"
                )
            communities = await discover_communities(
                log_source,
                config,
                head,
                strict=settings.strict_decoding,
                max_concurrency=settings.max_concurrency,
            )
        logger.info("%s: %d communities up to block %d", chain, len(communities), head)

        with _phase(chain, "pool discovery"):
            pools = await discover_pools(
                log_source,
                communities,
                config.deployed_block,
                head,
                max_block_range=config.max_block_range,
                strict=settings.strict_decoding,
                max_concurrency=settings.max_concurrency,
            )
        logger.info("%s: %d unique pools", chain, len(pools))

        with _phase(chain, "balance aggregation"):
            await aggregate_balances(pools, batch_caller, accumulator)
    finally:
        if web3 is not None:
            await web3.provider.disconnect()


CHAINS = supported_chains()

# chain -> {"tvl": coroutine function taking the accumulator}
ADAPTER: Dict[str, Dict[str, Any]] = {chain: {"tvl": partial(compute_tvl, chain)} for chain in CHAINS}
