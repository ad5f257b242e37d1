"""
Gardens TVL runner.

Runs compute_tvl() for every requested chain concurrently, prints per-token
totals and writes standardized outputs:

    <out-root>/tvl/gardens_<chain>/tvl_assets_<date>.csv
    <out-root>/bronze/gardens/<chain>/<date>.json

Usage:
    XDAI_RPC=https://... gardens-tvl --chains xdai
    gardens-tvl --chains arbitrum base --no-write --log-level DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd

from .balances import Balances
from .tvl import CHAINS, METHODOLOGY, compute_tvl

logger = logging.getLogger(__name__)

ASSET_FIELDS = ["date", "chain", "protocol", "token", "amount_raw"]


async def run_chains(chains: Sequence[str]) -> Dict[str, Union[Balances, BaseException]]:
    """Run every chain independently; a failing chain never affects the others."""

    async def run_one(chain: str) -> Balances:
        balances = Balances(chain)
        await compute_tvl(chain, balances)
        return balances

    results = await asyncio.gather(*(run_one(c) for c in chains), return_exceptions=True)
    return dict(zip(chains, results))


def write_outputs(balances: Balances, out_root: Path, now: datetime) -> List[Path]:
    date_str = now.strftime("%Y-%m-%d")
    rows = [
        {
            "date": date_str,
            "chain": balances.chain,
            "protocol": "gardens",
            "token": token,
            # Avoid int64 overflow on raw uint256 balances by storing as strings
            "amount_raw": str(amount),
        }
        for token, amount in balances.items()
    ]

    assets_dir = out_root / "tvl" / f"gardens_{balances.chain}"
    assets_dir.mkdir(parents=True, exist_ok=True)
    assets_csv = assets_dir / f"tvl_assets_{date_str}.csv"
    pd.DataFrame(rows, columns=ASSET_FIELDS).to_csv(assets_csv, index=False)

    bronze_dir = out_root / "bronze" / "gardens" / balances.chain
    bronze_dir.mkdir(parents=True, exist_ok=True)
    bronze_json = bronze_dir / f"{date_str}.json"
    with open(bronze_json, "w") as f:
        json.dump(
            {
                "chain": balances.chain,
                "protocol": "gardens",
                "date": date_str,
                "timestamp": int(now.timestamp()),
                "methodology": METHODOLOGY,
                "num_tokens": len(balances),
                "data": balances.to_dict(),
            },
            f,
            indent=2,
        )
    return [assets_csv, bronze_json]


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Gardens TVL per chain from factory event logs.")
    p.add_argument("--chains", nargs="+", default=list(CHAINS), choices=list(CHAINS), help="Chains to run (default: all)")
    p.add_argument("--out-root", default="data/out", help="Root directory for output files")
    p.add_argument("--no-write", action="store_true", help="Do not write output files; just print")
    p.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING...)")
    args = p.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    results = asyncio.run(run_chains(args.chains))
    now = datetime.now(timezone.utc)

    failed = 0
    for chain, result in results.items():
        if isinstance(result, BaseException):
            failed += 1
            logger.error("%s failed: %s", chain, result, exc_info=result)
            continue
        print(f"{chain}: {len(result)} tokens")
        for token, amount in result.items():
            print(f"   {token}  {amount}")
        if not args.no_write:
            for path in write_outputs(result, Path(args.out_root), now):
                print(f"   wrote {path}")

    print(f"done: {len(results) - failed}/{len(results)} chains ok")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
