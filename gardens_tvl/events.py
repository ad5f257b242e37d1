"""
Gardens factory events and their decoding.

CommunityCreated(address _registryCommunity)
    emitted by the RegistryFactory for each new community

PoolCreated(uint256 _poolId, address _strategy, address _community,
            address _token, (uint256 protocol, string pointer) _metadata)
    emitted by each RegistryCommunity for each new pool

Neither event has indexed parameters, so every matching log carries exactly
one topic (the signature hash) and the full payload in `data`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from eth_abi.codec import ABICodec
from eth_abi.exceptions import DecodingError
from eth_utils import encode_hex, event_abi_to_log_topic, to_checksum_address
from hexbytes import HexBytes
from web3._utils.abi import build_strict_registry
from web3._utils.events import get_event_data
from web3.exceptions import LogTopicError, MismatchedABI

from .errors import DecodeError

COMMUNITY_CREATED_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": False, "name": "_registryCommunity", "type": "address"},
    ],
    "name": "CommunityCreated",
    "type": "event",
}

POOL_CREATED_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": False, "name": "_poolId", "type": "uint256"},
        {"indexed": False, "name": "_strategy", "type": "address"},
        {"indexed": False, "name": "_community", "type": "address"},
        {"indexed": False, "name": "_token", "type": "address"},
        {
            "indexed": False,
            "name": "_metadata",
            "type": "tuple",
            "components": [
                {"name": "protocol", "type": "uint256"},
                {"name": "pointer", "type": "string"},
            ],
        },
    ],
    "name": "PoolCreated",
    "type": "event",
}


# Same registry a Web3 instance decodes with; no client needed
_CODEC = ABICodec(build_strict_registry())


@dataclass(frozen=True)
class EventDef:
    """An event ABI plus its topic0."""

    abi: Mapping[str, Any]

    @property
    def name(self) -> str:
        return self.abi["name"]

    @property
    def topic0(self) -> str:
        return encode_hex(event_abi_to_log_topic(self.abi))


COMMUNITY_CREATED = EventDef(COMMUNITY_CREATED_EVENT_ABI)
POOL_CREATED = EventDef(POOL_CREATED_EVENT_ABI)


def as_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    return int(value)


def decode_log(log: Mapping[str, Any], event: EventDef) -> Dict[str, Any]:
    """
    Decode a raw log against an event definition.

    Returns a dict of argument name -> python value as produced by web3's
    get_event_data (checksum addresses, ints, tuples as named mappings).
    Raises DecodeError on any shape mismatch.
    """
    block = as_int(log.get("blockNumber"))
    log_index = as_int(log.get("logIndex"))

    def fail(reason: str) -> DecodeError:
        return DecodeError(event.name, reason, block=block, log_index=log_index)

    # get_event_data compares topics as bytes and reads the full receipt-log shape
    try:
        log_for_decode = {
            "address": log.get("address"),
            "data": HexBytes(log.get("data") or b""),
            "topics": [HexBytes(t) for t in log.get("topics") or []],
            "blockNumber": block,
            "logIndex": log_index,
            "transactionIndex": as_int(log.get("transactionIndex")),
            "blockHash": log.get("blockHash"),
            "transactionHash": log.get("transactionHash"),
        }
    except (TypeError, ValueError) as e:
        raise fail(f"malformed topics/data: {e}") from e

    try:
        decoded = get_event_data(_CODEC, event.abi, log_for_decode)
    except MismatchedABI as e:
        raise fail(f"topic0 does not match event signature ({e})") from e
    except LogTopicError as e:
        raise fail(f"wrong number of log topics ({e})") from e
    except (DecodingError, UnicodeDecodeError) as e:
        raise fail(str(e)) from e

    return dict(decoded["args"])


@dataclass(frozen=True)
class CommunityCreatedEvent:
    registry_community: str


@dataclass(frozen=True)
class PoolMetadata:
    protocol: str
    pointer: str


@dataclass(frozen=True)
class PoolCreatedEvent:
    pool_id: str
    strategy: str
    community: str
    token: str
    metadata: PoolMetadata

    @property
    def key(self) -> Tuple[str, str]:
        return (self.strategy, self.token)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "poolId": self.pool_id,
            "strategy": self.strategy,
            "community": self.community,
            "token": self.token,
            "metadata": {"protocol": self.metadata.protocol, "pointer": self.metadata.pointer},
        }


# A pool is the surviving PoolCreatedEvent for its (strategy, token) pair
Pool = PoolCreatedEvent


def decode_community_created(log: Mapping[str, Any]) -> CommunityCreatedEvent:
    args = decode_log(log, COMMUNITY_CREATED)
    return CommunityCreatedEvent(registry_community=to_checksum_address(args["_registryCommunity"]))


def decode_pool_created(log: Mapping[str, Any]) -> PoolCreatedEvent:
    args = decode_log(log, POOL_CREATED)
    metadata = args["_metadata"]
    protocol, pointer = metadata["protocol"], metadata["pointer"]
    return PoolCreatedEvent(
        pool_id=str(args["_poolId"]),
        strategy=to_checksum_address(args["_strategy"]),
        community=to_checksum_address(args["_community"]),
        token=to_checksum_address(args["_token"]),
        metadata=PoolMetadata(protocol=str(protocol), pointer=pointer),
    )
