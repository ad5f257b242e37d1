"""
Exception hierarchy for the Gardens TVL pipeline.

Every error raised by the pipeline derives from GardensTvlError. compute_tvl()
tags escaping errors with the chain and phase they belong to, so the final
message names chain, phase and the offending parameter.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class GardensTvlError(Exception):
    """Base error. `chain` and `phase` are filled in by compute_tvl()."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.chain: Optional[str] = None
        self.phase: Optional[str] = None

    def __str__(self) -> str:
        prefix = ""
        if self.chain:
            prefix += f"[{self.chain}] "
        if self.phase:
            prefix += f"{self.phase}: "
        return prefix + self.message


class ConfigurationError(GardensTvlError):
    """Unknown chain, missing RPC endpoint or malformed chains.yaml."""


class ProviderErrorKind(str, Enum):
    RANGE_TOO_LARGE = "range_too_large"
    RESULT_SET_TOO_LARGE = "result_set_too_large"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    OTHER = "other"

    @property
    def splittable(self) -> bool:
        return self is not ProviderErrorKind.OTHER


class ProviderError(GardensTvlError):
    """A single eth_getLogs request was rejected by the provider."""

    def __init__(self, kind: ProviderErrorKind, message: str):
        super().__init__(f"{kind.value}: {message}")
        self.kind = kind


class RetrievalError(GardensTvlError):
    """A log range could not be fetched, even after splitting."""

    def __init__(
        self,
        address: str,
        topic0: str,
        from_block: int,
        to_block: int,
        cause: Optional[BaseException] = None,
    ):
        if from_block == to_block:
            where = f"block {from_block}"
        else:
            where = f"blocks [{from_block}, {to_block}]"
        message = f"getLogs failed for {address} topic {topic0} at {where}"
        if cause is not None:
            message += f" ({cause})"
        super().__init__(message)
        self.address = address
        self.topic0 = topic0
        self.from_block = from_block
        self.to_block = to_block
        self.cause = cause


class DecodeError(GardensTvlError):
    """A log matching an event topic did not decode against its ABI."""

    def __init__(
        self,
        event: str,
        reason: str,
        block: Optional[int] = None,
        log_index: Optional[int] = None,
    ):
        location = ""
        if block is not None:
            location = f" at block {block}"
            if log_index is not None:
                location += f" logIndex {log_index}"
        super().__init__(f"cannot decode {event}{location}: {reason}")
        self.event = event
        self.reason = reason
        self.block = block
        self.log_index = log_index


class AggregationError(GardensTvlError):
    """The batched balance call failed as a whole."""
