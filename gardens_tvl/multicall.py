"""
Batch call service over AsyncWeb3.

multi_call(abi, calls) reads one view function on many contracts and returns
the results positionally aligned with `calls`. A call that reverts or returns
no data yields None; transport failures propagate and fail the whole batch.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from eth_utils import to_checksum_address
from web3 import AsyncWeb3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from .config.rate_limiter import RateLimiter
from .tasks import gather_or_cancel

logger = logging.getLogger(__name__)

ERC20_BALANCE_OF_ABI = {
    "constant": True,
    "inputs": [{"name": "account", "type": "address"}],
    "name": "balanceOf",
    "outputs": [{"name": "", "type": "uint256"}],
    "stateMutability": "view",
    "type": "function",
}

# "<standard>:<function>" shorthands accepted by multi_call
KNOWN_ABIS: Dict[str, Dict[str, Any]] = {
    "erc20:balanceOf": ERC20_BALANCE_OF_ABI,
}


class Web3MultiCaller:
    def __init__(
        self,
        web3: AsyncWeb3,
        max_concurrency: int = 4,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.web3 = web3
        self.rate_limiter = rate_limiter
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def _call_one(self, fn_abi: Dict[str, Any], target: str, params: Sequence[Any]) -> Any:
        contract = self.web3.eth.contract(address=to_checksum_address(target), abi=[fn_abi])
        fn = contract.functions[fn_abi["name"]](*params)
        async with self._semaphore:
            if self.rate_limiter:
                await self.rate_limiter.wait()
            try:
                return await fn.call()
            except (ContractLogicError, BadFunctionCallOutput) as e:
                logger.debug("%s.%s%s failed: %s", target, fn_abi["name"], tuple(params), e)
                return None

    async def multi_call(self, abi: str, calls: Sequence[Dict[str, Any]]) -> List[Any]:
        if abi not in KNOWN_ABIS:
            raise ValueError(f"unknown ABI shorthand {abi!r}")
        fn_abi = KNOWN_ABIS[abi]
        return await gather_or_cancel(
            self._call_one(fn_abi, c["target"], c.get("params") or []) for c in calls
        )
