"""
eth_getLogs access for the range fetcher.

A log source is anything with two coroutines:

    async get_logs(query: LogQuery) -> list[log]
    async block_number() -> int

get_logs must raise ProviderError(kind) when the provider rejects a request.
Web3LogSource is the AsyncWeb3 implementation; it maps the provider's error
messages (which differ per RPC vendor) onto ProviderErrorKind.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

import aiohttp
from eth_utils import to_checksum_address
from web3 import AsyncWeb3

from .config.rate_limiter import RateLimiter
from .errors import ProviderError, ProviderErrorKind

logger = logging.getLogger(__name__)

BlockId = Union[int, str]

# Substrings seen in eth_getLogs rejections across Alchemy, Infura, QuickNode,
# Ankr, publicnode, drpc and the chain-operated RPCs. Checked in this order.
_ERROR_PATTERNS: Tuple[Tuple[ProviderErrorKind, Tuple[str, ...]], ...] = (
    (ProviderErrorKind.RESULT_SET_TOO_LARGE, (
        "query returned more than",
        "response size exceeded",
        "response size should not",
        "log response size",
        "too many results",
        "too many logs",
        "result set too large",
        "results exceed",
        "limit exceeded for logs",
    )),
    (ProviderErrorKind.RANGE_TOO_LARGE, (
        "block range",
        "range is too large",
        "range too large",
        "range limit",
        "exceed maximum block range",
        "max range",
        "too many blocks",
        "blocks range",
        "range of blocks",
        "eth_getlogs is limited",
    )),
    (ProviderErrorKind.RATE_LIMITED, (
        "too many requests",
        "rate limit",
        "ratelimit",
        "compute units",
        "capacity",
        "throttl",
    )),
    (ProviderErrorKind.TIMEOUT, (
        "timeout",
        "timed out",
        "service unavailable",
        "gateway time",
        "request took too long",
    )),
)

_STATUS_KINDS = {
    429: ProviderErrorKind.RATE_LIMITED,
    502: ProviderErrorKind.TIMEOUT,
    503: ProviderErrorKind.TIMEOUT,
    504: ProviderErrorKind.TIMEOUT,
}

# A bare status code in message text; never part of a longer number or hex string
_STATUS_RE = re.compile(r"\b(429|502|503|504)\b")


def classify_provider_error(exc: BaseException) -> ProviderErrorKind:
    """Map a transport/RPC exception onto the provider error taxonomy."""
    if isinstance(exc, ProviderError):
        return exc.kind
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ProviderErrorKind.TIMEOUT
    if isinstance(exc, aiohttp.ClientResponseError) and exc.status in _STATUS_KINDS:
        return _STATUS_KINDS[exc.status]
    message = str(exc).lower()
    for kind, patterns in _ERROR_PATTERNS:
        if any(p in message for p in patterns):
            return kind
    status = _STATUS_RE.search(message)
    if status:
        return _STATUS_KINDS[int(status.group(1))]
    return ProviderErrorKind.OTHER


@dataclass(frozen=True)
class LogQuery:
    address: str
    topic0: str
    from_block: int
    to_block: BlockId = "latest"

    @property
    def size(self) -> int:
        if not isinstance(self.to_block, int):
            raise ValueError("size of an open-ended query is undefined")
        return self.to_block - self.from_block + 1

    def split(self) -> Tuple["LogQuery", "LogQuery"]:
        """Split at the midpoint into two contiguous, non-overlapping halves."""
        if self.size < 2:
            raise ValueError("cannot split a single-block query")
        mid = (self.from_block + self.to_block) // 2
        return (
            LogQuery(self.address, self.topic0, self.from_block, mid),
            LogQuery(self.address, self.topic0, mid + 1, self.to_block),
        )

    def to_filter(self) -> Dict[str, Any]:
        return {
            "fromBlock": self.from_block,
            "toBlock": self.to_block,
            "address": to_checksum_address(self.address),
            "topics": [self.topic0],
        }


class Web3LogSource:
    """Log source backed by an AsyncWeb3 client, optionally paced."""

    def __init__(self, web3: AsyncWeb3, rate_limiter: Optional[RateLimiter] = None):
        self.web3 = web3
        self.rate_limiter = rate_limiter

    async def block_number(self) -> int:
        if self.rate_limiter:
            await self.rate_limiter.wait()
        try:
            return int(await self.web3.eth.block_number)
        except Exception as e:
            raise ProviderError(classify_provider_error(e), f"eth_blockNumber failed: {e}") from e

    async def get_logs(self, query: LogQuery) -> List[Any]:
        if self.rate_limiter:
            await self.rate_limiter.wait()
        try:
            logs = await self.web3.eth.get_logs(query.to_filter())
        except Exception as e:
            kind = classify_provider_error(e)
            if kind is ProviderErrorKind.RATE_LIMITED and self.rate_limiter:
                self.rate_limiter.report_rate_limited()
            raise ProviderError(kind, str(e) or type(e).__name__) from e
        if self.rate_limiter:
            self.rate_limiter.report_success()
        return list(logs)
