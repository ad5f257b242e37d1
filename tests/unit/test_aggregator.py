"""Tests for pool balance aggregation."""

import pytest
from eth_utils import to_checksum_address

from fakes import FakeBatchCaller, RecordingAccumulator, addr
from gardens_tvl.aggregator import BALANCE_OF, aggregate_balances, build_balance_calls
from gardens_tvl.balances import Balances
from gardens_tvl.errors import AggregationError
from gardens_tvl.events import PoolCreatedEvent, PoolMetadata


def _pool(i, strategy, token):
    return PoolCreatedEvent(
        pool_id=str(i),
        strategy=to_checksum_address(strategy),
        community=to_checksum_address(addr("c1")),
        token=to_checksum_address(token),
        metadata=PoolMetadata(protocol="1", pointer="p"),
    )


POOLS = [
    _pool(0, addr("a0"), addr("b0")),
    _pool(1, addr("a1"), addr("b1")),
    _pool(2, addr("a2"), addr("b2")),
]


class TestBuildBalanceCalls:
    def test_token_target_strategy_param(self):
        calls = build_balance_calls(POOLS)
        assert calls == [{"target": p.token, "params": [p.strategy]} for p in POOLS]


class TestAggregateBalances:
    async def test_skips_zero_and_failed_reads(self):
        caller = FakeBatchCaller(results=[500, 0, None])
        acc = RecordingAccumulator()

        added = await aggregate_balances(POOLS, caller, acc)

        assert added == 1
        assert acc.added == [(POOLS[0].token, 500)]
        abi, calls = caller.calls[0]
        assert abi == BALANCE_OF
        assert len(calls) == 3

    async def test_single_batch(self):
        caller = FakeBatchCaller(results=[1, 2, 3])
        await aggregate_balances(POOLS, caller, RecordingAccumulator())
        assert len(caller.calls) == 1

    async def test_empty_pools_makes_no_call(self):
        caller = FakeBatchCaller()
        acc = RecordingAccumulator()
        assert await aggregate_balances([], caller, acc) == 0
        assert caller.calls == []
        assert acc.added == []

    async def test_batch_failure_is_aggregation_error(self):
        caller = FakeBatchCaller(error=ConnectionError("rpc down"))
        acc = RecordingAccumulator()
        with pytest.raises(AggregationError, match="rpc down"):
            await aggregate_balances(POOLS, caller, acc)
        assert acc.added == []

    async def test_misaligned_results_rejected(self):
        caller = FakeBatchCaller(results=[1, 2])
        with pytest.raises(AggregationError, match="2 results for 3 calls"):
            await aggregate_balances(POOLS, caller, RecordingAccumulator())

    async def test_shared_token_sums_in_balances(self):
        token = addr("b0")
        pools = [_pool(0, addr("a0"), token), _pool(1, addr("a1"), token)]
        balances = Balances("xdai")
        await aggregate_balances(pools, FakeBatchCaller(results=[10, 2**255]), balances)
        assert balances[token] == 10 + 2**255
        assert len(balances) == 1
