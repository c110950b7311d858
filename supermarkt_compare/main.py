from __future__ import annotations

import argparse
import sys

from .aggregate import Aggregator
from .config import ENV_KEYS, Config
from .log import get_logger, setup_logging
from .normalize import extract_quantity_from_query
from .report import SORT_KEYS, build_report

__version__ = "0.1.0"

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="supermarkt-compare")
    p.add_argument("--version", action="store_true", help="Print version and exit")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = p.add_subparsers(dest="cmd", required=False)

    p_search = sub.add_parser("search", help="Compare prices for a product across supermarkets")
    p_search.add_argument("query", help="Search query, optionally ending in a size (e.g. 'kwark 1kg')")
    p_search.add_argument("--household", default="", help="Household id (needed for Picnic)")
    p_search.add_argument(
        "--sort",
        choices=[k.replace("_", "-") for k in SORT_KEYS],
        default="price",
        help="Sort by price or by unit price",
    )
    p_search.add_argument("--brand", default=None, help="Only show this brand (e.g. 'Campina', 'Huismerk')")
    p_search.add_argument("--limit", type=int, default=0, help="Max products to print (0=all)")
    p_search.add_argument("--json", default=None, help="Also write the report to this JSON file")

    sub.add_parser("retailers", help="List supported supermarkets")

    p_config = sub.add_parser("config", help="Config commands")
    sub_config = p_config.add_subparsers(dest="config_cmd", required=True)
    sub_config.add_parser("keys", help="List environment variables")
    sub_config.add_parser("check", help="Validate environment configuration")

    return p


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    if args.version:
        print(__version__)
        return 0

    if args.cmd is None:
        p.print_help()
        return 0

    if args.cmd == "config":
        if args.config_cmd == "keys":
            for k in ENV_KEYS:
                print(k)
            return 0
        if args.config_cmd == "check":
            cfg = Config.from_env()
            print(f"OK: timeout={cfg.connector_timeout_s:g}s retailers={','.join(r.value for r in cfg.retailers)}")
            return 0

    cfg = Config.from_env()
    setup_logging("DEBUG" if args.verbose else cfg.log_level)

    if args.cmd == "retailers":
        agg = Aggregator.from_config(cfg)
        for retailer, connector in agg.connectors.items():
            print(f"{retailer.value:<10} {connector.label:<14} {connector.kind}")
        return 0

    if args.cmd == "search":
        split = extract_quantity_from_query(args.query)
        if not split.clean_query:
            print("Error: empty search query", file=sys.stderr)
            return 2

        agg = Aggregator.from_config(cfg)
        results = agg.search_all(split.clean_query, args.household)
        report = build_report(
            split.clean_query,
            results,
            qty_filter=split.qty_filter,
            brand=args.brand,
            sort=args.sort.replace("-", "_"),
            limit=args.limit,
        )
        print(report.summary_text())
        if args.json:
            out = report.write_json(args.json)
            print(f"\nReport: {out}")
        return 0

    p.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
