"""Chain registry, RPC resolution and request pacing."""

from .chain_registry import (
    ChainConfig,
    Settings,
    get_chain_config,
    get_settings,
    load_registry,
    supported_chains,
)
from .rate_limiter import RateLimiter
from .rpc_config import connect_rpc, get_rpc_url

__all__ = [
    "ChainConfig",
    "Settings",
    "get_chain_config",
    "get_settings",
    "load_registry",
    "supported_chains",
    "RateLimiter",
    "connect_rpc",
    "get_rpc_url",
]
