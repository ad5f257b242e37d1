from __future__ import annotations

from typing import Dict, Iterator, Tuple

from eth_utils import to_checksum_address


class Balances:
    """Per-token raw balance sums for one chain run."""

    def __init__(self, chain: str):
        self.chain = chain
        self._amounts: Dict[str, int] = {}

    def add(self, token: str, amount: int) -> None:
        amount = int(amount)
        if amount < 0:
            raise ValueError(f"negative amount {amount} for {token}")
        token = to_checksum_address(token)
        self._amounts[token] = self._amounts.get(token, 0) + amount

    def items(self) -> Iterator[Tuple[str, int]]:
        return iter(self._amounts.items())

    def to_dict(self) -> Dict[str, str]:
        # Raw uint256 sums overflow int64/JSON number consumers; keep them as strings
        return {token: str(amount) for token, amount in self._amounts.items()}

    def __len__(self) -> int:
        return len(self._amounts)

    def __getitem__(self, token: str) -> int:
        return self._amounts[to_checksum_address(token)]
