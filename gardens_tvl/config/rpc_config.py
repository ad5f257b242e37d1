"""
RPC URL resolution and AsyncWeb3 client construction.
"""

import os
from typing import Mapping, Optional

from web3 import AsyncWeb3

from ..errors import ConfigurationError
from .chain_registry import ChainConfig, get_settings


def get_rpc_url(config: ChainConfig, environ: Optional[Mapping[str, str]] = None) -> str:
    """
    Get the RPC URL for a chain.

    Args:
        config: Chain entry from chains.yaml (names the env var to read)
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        RPC URL with surrounding whitespace stripped

    Raises:
        ConfigurationError if the variable is unset or empty
    """
    env = os.environ if environ is None else environ
    url = (env.get(config.rpc_env) or "").strip()
    if not url:
        raise ConfigurationError(f"Missing RPC for {config.chain} ({config.rpc_env})")
    return url


def connect_rpc(rpc_url: str, timeout: Optional[float] = None) -> AsyncWeb3:
    """Build an AsyncWeb3 client. No request is made until first use."""
    if timeout is None:
        timeout = get_settings().request_timeout
    return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
