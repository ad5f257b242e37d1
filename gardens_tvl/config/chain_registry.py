# config/chain_registry.py
"""
Static per-chain configuration for the Gardens factories.

chains.yaml is read once per process; the resulting ChainConfig / Settings
objects are frozen and shared read-only by every chain run.

Usage:
    from gardens_tvl.config.chain_registry import get_chain_config
    cfg = get_chain_config("xdai")
    cfg.factory_addresses   # ('0x08dF82...',)
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from eth_utils import is_address, to_checksum_address

from ..errors import ConfigurationError

CHAINS_FILE = Path(__file__).resolve().parent / "chains.yaml"

# Scanning from genesis is never useful, but block 0 is rejected by some RPCs
DEFAULT_FROM_BLOCK = 1


@dataclass(frozen=True)
class Settings:
    request_timeout: float = 60.0
    requests_per_second: float = 10.0
    max_concurrency: int = 4
    strict_decoding: bool = True

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Settings":
        defaults = Settings()
        try:
            return Settings(
                request_timeout=float(d.get("request_timeout", defaults.request_timeout)),
                requests_per_second=float(d.get("requests_per_second", defaults.requests_per_second)),
                max_concurrency=int(d.get("max_concurrency", defaults.max_concurrency)),
                strict_decoding=bool(d.get("strict_decoding", defaults.strict_decoding)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"invalid settings block: {e}") from e


@dataclass(frozen=True)
class ChainConfig:
    chain: str
    factory_addresses: Tuple[str, ...]
    deployed_block: int
    rpc_env: str
    max_block_range: Optional[int] = None

    @staticmethod
    def from_dict(chain: str, d: Dict[str, Any]) -> "ChainConfig":
        # Entries look like: factories, deployed_block, rpc_env, max_block_range
        if not isinstance(d, dict):
            raise ConfigurationError(f"chain '{chain}': expected a mapping, got {type(d).__name__}")

        factories = []
        for raw in d.get("factories") or []:
            if not isinstance(raw, str) or not is_address(raw):
                raise ConfigurationError(f"chain '{chain}': bad factory address {raw!r}")
            factories.append(to_checksum_address(raw))

        deployed = d.get("deployed_block")
        if deployed is None:
            deployed = DEFAULT_FROM_BLOCK
        if not isinstance(deployed, int) or deployed < 0:
            raise ConfigurationError(f"chain '{chain}': deployed_block must be a non-negative int")

        max_range = d.get("max_block_range")
        if max_range is not None and (not isinstance(max_range, int) or max_range < 1):
            raise ConfigurationError(f"chain '{chain}': max_block_range must be a positive int")

        rpc_env = d.get("rpc_env") or f"{chain.upper()}_RPC"

        return ChainConfig(
            chain=chain,
            factory_addresses=tuple(dict.fromkeys(factories)),
            deployed_block=deployed,
            rpc_env=str(rpc_env),
            max_block_range=max_range,
        )


@dataclass(frozen=True)
class Registry:
    chains: Dict[str, ChainConfig]
    settings: Settings


def load_registry(path: Path = CHAINS_FILE) -> Registry:
    """Parse a chains.yaml file into a Registry."""
    try:
        with path.open("r") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"cannot read chain config {path}: {e}") from e

    chains_raw = raw.get("chains") or {}
    if not isinstance(chains_raw, dict):
        raise ConfigurationError(f"{path}: 'chains' must be a mapping")

    chains = {
        str(name).lower(): ChainConfig.from_dict(str(name).lower(), entry)
        for name, entry in chains_raw.items()
    }
    return Registry(chains=chains, settings=Settings.from_dict(raw.get("settings") or {}))


@lru_cache(maxsize=1)
def default_registry() -> Registry:
    return load_registry()


def get_chain_config(chain: str) -> ChainConfig:
    chains = default_registry().chains
    key = chain.lower()
    if key not in chains:
        raise ConfigurationError(f"unknown chain '{chain}' (known: {', '.join(chains)})")
    return chains[key]


def get_settings() -> Settings:
    return default_registry().settings


def supported_chains() -> Tuple[str, ...]:
    return tuple(default_registry().chains)
