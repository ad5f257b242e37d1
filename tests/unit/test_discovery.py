"""Tests for community and pool discovery."""

import pytest
from eth_utils import to_checksum_address

from fakes import FakeLogSource, addr, community_log, pool_log
from gardens_tvl.config.chain_registry import ChainConfig
from gardens_tvl.discovery import discover_communities, discover_pools
from gardens_tvl.errors import DecodeError, RetrievalError

FACTORY_A = addr("0a")
FACTORY_B = addr("0b")
C1 = addr("c1")
C2 = addr("c2")
STRATEGY = addr("aa")
TOKEN = addr("bb")


def _config(*factories, deployed_block=100, max_block_range=None):
    return ChainConfig(
        chain="testnet",
        factory_addresses=tuple(to_checksum_address(f) for f in factories),
        deployed_block=deployed_block,
        rpc_env="TESTNET_RPC",
        max_block_range=max_block_range,
    )


class TestDiscoverCommunities:
    async def test_no_factories_returns_empty_without_queries(self):
        source = FakeLogSource()
        assert await discover_communities(source, _config()) == []
        assert source.queries == []
        assert source.head_calls == 0

    async def test_duplicate_emissions_collapse(self):
        source = FakeLogSource([
            community_log(FACTORY_A, C1, block=200),
            community_log(FACTORY_A, C1, block=300),
        ])
        result = await discover_communities(source, _config(FACTORY_A), 1_000)
        assert result == [to_checksum_address(C1)]

    async def test_dedup_across_factories_and_case(self):
        source = FakeLogSource([
            community_log(FACTORY_A, C1, block=200),
            community_log(FACTORY_B, to_checksum_address(C1), block=250),
            community_log(FACTORY_B, C2, block=260),
        ])
        result = await discover_communities(source, _config(FACTORY_A, FACTORY_B), 1_000)
        assert result == [to_checksum_address(C1), to_checksum_address(C2)]
        assert len({a.lower() for a in result}) == len(result)

    async def test_scans_from_deployment_block(self):
        source = FakeLogSource([
            community_log(FACTORY_A, C1, block=50),
            community_log(FACTORY_A, C2, block=150),
        ])
        result = await discover_communities(source, _config(FACTORY_A, deployed_block=100), 1_000)
        assert result == [to_checksum_address(C2)]
        assert source.queries[0].from_block == 100

    async def test_latest_resolved_through_source(self):
        source = FakeLogSource([community_log(FACTORY_A, C1, block=900)], head=1_000)
        result = await discover_communities(source, _config(FACTORY_A))
        assert result == [to_checksum_address(C1)]
        assert source.head_calls == 1

    async def test_decode_error_is_fatal_by_default(self):
        bad = community_log(FACTORY_A, C1, block=200)
        bad["data"] = "0x1234"
        source = FakeLogSource([bad, community_log(FACTORY_A, C2, block=300)])
        with pytest.raises(DecodeError):
            await discover_communities(source, _config(FACTORY_A), 1_000)

    async def test_decode_error_skipped_when_lenient(self):
        bad = community_log(FACTORY_A, C1, block=200)
        bad["data"] = "0x1234"
        source = FakeLogSource([bad, community_log(FACTORY_A, C2, block=300)])
        result = await discover_communities(source, _config(FACTORY_A), 1_000, strict=False)
        assert result == [to_checksum_address(C2)]

    async def test_retrieval_failure_propagates(self):
        source = FakeLogSource([community_log(FACTORY_A, C1, block=200)], bad_blocks=[500])
        with pytest.raises(RetrievalError) as exc:
            await discover_communities(source, _config(FACTORY_A, FACTORY_B), 1_000)
        assert exc.value.from_block == 500


class TestDiscoverPools:
    async def test_no_communities(self):
        source = FakeLogSource()
        assert await discover_pools(source, [], 100, 1_000) == []
        assert source.queries == []

    async def test_community_without_pools_contributes_nothing(self):
        source = FakeLogSource([pool_log(C1, 1, STRATEGY, TOKEN, block=200)])
        pools = await discover_pools(source, [C1, C2], 100, 1_000)
        assert len(pools) == 1
        assert pools[0].community == to_checksum_address(C1)

    async def test_same_strategy_token_keeps_last(self):
        source = FakeLogSource([
            pool_log(C1, 1, STRATEGY, TOKEN, block=200),
            pool_log(C1, 2, STRATEGY, TOKEN, block=300),
        ])
        pools = await discover_pools(source, [C1], 100, 1_000)
        assert len(pools) == 1
        assert pools[0].pool_id == "2"
        assert pools[0].key == (to_checksum_address(STRATEGY), to_checksum_address(TOKEN))

    async def test_last_wins_survives_splitting(self):
        logs = [
            pool_log(C1, 1, STRATEGY, TOKEN, block=200),
            pool_log(C1, 2, STRATEGY, TOKEN, block=900),
        ]
        source = FakeLogSource(logs, max_results=1)
        pools = await discover_pools(source, [C1], 100, 1_000)
        assert [p.pool_id for p in pools] == ["2"]

    async def test_distinct_pairs_are_kept(self):
        other_token = addr("cc")
        source = FakeLogSource([
            pool_log(C1, 1, STRATEGY, TOKEN, block=200),
            pool_log(C1, 2, STRATEGY, other_token, block=210),
            pool_log(C2, 3, addr("dd"), TOKEN, block=220),
        ])
        pools = await discover_pools(source, [C1, C2], 100, 1_000)
        assert sorted(p.pool_id for p in pools) == ["1", "2", "3"]

    async def test_dedup_across_communities(self):
        source = FakeLogSource([
            pool_log(C1, 1, STRATEGY, TOKEN, block=500),
            pool_log(C2, 9, STRATEGY, TOKEN, block=200),
        ])
        pools = await discover_pools(source, [C1, C2], 100, 1_000)
        assert len(pools) == 1
        assert pools[0].pool_id == "9"

    async def test_uses_window_cap(self):
        source = FakeLogSource([pool_log(C1, 1, STRATEGY, TOKEN, block=200)])
        await discover_pools(source, [C1], 100, 399, max_block_range=100)
        assert sorted((q.from_block, q.to_block) for q in source.queries) == [
            (100, 199), (200, 299), (300, 399),
        ]
