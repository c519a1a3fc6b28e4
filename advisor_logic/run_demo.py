"""
CLI demo runner for the advisor data tools.
Resolves a client, aggregates one account, computes drift and performance, and prints each JSON payload.
"""
from __future__ import annotations

import argparse
import json
import logging

from .advisor_tools import AdvisorTools


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run the advisor data tools against the configured source.")
    parser.add_argument("query", nargs="?", default="Smith", help="client search text")
    parser.add_argument("--group-by", default="assetClass", choices=["none", "assetClass", "sector"])
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    tools = AdvisorTools.from_env()

    search = tools.resolve_clients(args.query)
    print("=== resolveClients ===")
    print(json.dumps(search, ensure_ascii=False, indent=2))
    if not search["success"]:
        return

    client_id = search["results"][0]["id"]
    profile = tools.get_client_profile(client_id)
    print("\n=== getClientProfile ===")
    print(json.dumps(profile, ensure_ascii=False, indent=2))

    if profile["success"] and profile["client"]["accounts"]:
        account_id = profile["client"]["accounts"][0]["id"]
        print("\n=== aggregateHoldings ===")
        print(json.dumps(tools.aggregate_holdings(account_id, args.group_by), ensure_ascii=False, indent=2))

    print("\n=== computeAllocationDrift ===")
    print(json.dumps(tools.compute_allocation_drift(client_id), ensure_ascii=False, indent=2))

    print("\n=== getPortfolioPerformance ===")
    print(json.dumps(tools.get_portfolio_performance(client_id), ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
