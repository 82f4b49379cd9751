"""Manual acquisition runner for testing and debugging the pipeline.

Runs a single product acquisition or a comparison search with the methods
configured in the environment (.env) and prints the normalized records.

Usage:
    python scripts/acquire.py --url https://www.amazon.in/dp/B0CHX1W1XY
    python scripts/acquire.py --compare "basmati rice 5kg"
    python scripts/acquire.py --compare "atta" --platform bigbasket --json
"""

import asyncio
import argparse
import json
import os
import sys

# Add backend to path so we can import pricepulse modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from pricepulse.config import settings
from pricepulse.core.logging import configure_logging
from pricepulse.scrapers.base import NormalizedRecord
from pricepulse.services.acquisition_service import build_acquisition_service


def _print_record(index: int, record: NormalizedRecord) -> None:
    flags = [
        name
        for name in ("incomplete", "partial", "estimated", "unavailable", "best_price")
        if getattr(record, name)
    ]
    print(f"[{index}] {record.title or '(no title)'}")
    print(f"    💰 Price: {record.currency}{record.price:,.2f}")
    if record.previous_price:
        print(f"    🔖 Previous: {record.currency}{record.previous_price:,.2f}")
    print(f"    🏪 Platform: {record.source_platform}")
    print(f"    📦 In stock: {'yes' if record.in_stock else 'no'}")
    if flags:
        print(f"    🚩 Flags: {', '.join(flags)}")
    print(f"    🔗 URL: {record.canonical_url[:80]}")
    print()


async def run_acquisition(url: str = None, search_term: str = None, platform: str = None, as_json: bool = False):
    """Run one acquisition and display the results.

    Args:
        url: Product page URL (single product mode)
        search_term: Query string (comparison mode)
        platform: Limit a comparison to one platform
        as_json: Print the wire JSON instead of the summary
    """
    service = build_acquisition_service(settings)

    try:
        if url:
            records = [await service.acquire_product(url)]
        else:
            records = await service.acquire_comparison(
                search_term, platforms=[platform] if platform else None
            )

        if as_json:
            print(json.dumps([r.to_dict() for r in records], ensure_ascii=False, indent=2))
            return

        print(f"\n{'='*70}")
        print(f"  Methods: {', '.join(service.method_names) or '(none)'}")
        print(f"{'='*70}\n")

        if not records:
            print("⚠️  No results.\n")
            return

        for i, record in enumerate(records, 1):
            _print_record(i, record)

        stats = service.registry.get_stats()
        print(f"{'='*70}")
        print(f"  Intermediaries: {stats['total_intermediaries']} "
              f"({stats['suspended_intermediaries']} suspended)")
        print(f"{'='*70}\n")

    finally:
        await service.close()


def main():
    """Parse arguments and run the acquisition."""
    parser = argparse.ArgumentParser(
        description="Acquire a product record or compare prices across platforms",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/acquire.py --url https://www.flipkart.com/item/p/itm123
  python scripts/acquire.py --compare "basmati rice 5kg"
  python scripts/acquire.py --compare "atta" --platform bigbasket --json
        """,
    )

    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--url", help="Product page URL")
    target.add_argument("--compare", metavar="TERM", help="Search term for a price comparison")

    parser.add_argument(
        "--platform",
        help="Limit the comparison to one platform (e.g., 'flipkart')",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print records as JSON",
    )

    args = parser.parse_args()

    configure_logging(settings)
    asyncio.run(run_acquisition(args.url, args.compare, args.platform, args.json))


if __name__ == "__main__":
    main()
