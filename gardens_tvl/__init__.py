"""Gardens TVL: discover communities and pools from factory logs and sum pool balances."""

from .balances import Balances
from .errors import (
    AggregationError,
    ConfigurationError,
    DecodeError,
    GardensTvlError,
    RetrievalError,
)
from .tvl import ADAPTER, CHAINS, METHODOLOGY, START, compute_tvl

__all__ = [
    "ADAPTER",
    "CHAINS",
    "METHODOLOGY",
    "START",
    "compute_tvl",
    "Balances",
    "GardensTvlError",
    "ConfigurationError",
    "RetrievalError",
    "DecodeError",
    "AggregationError",
]
