#!/usr/bin/env python3
"""
Run one crawl from the command line.

Example:
    python scripts/run_crawl.py --site italist \
        https://www.italist.com/us/women/clothing/2/ --max-products 50
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.crawler.runner import default_options, scrape
from src.logging_config import setup_logging


async def run_crawl(site, start_urls, execution_id=None, **option_overrides):
    """Crawl and print a short report."""
    options = default_options(**option_overrides)
    print(f"Crawling {site}: {len(start_urls)} start URL(s), budget {options.max_products}")

    products = await scrape(start_urls, options, execution_id=execution_id, site=site)

    print(f"\nCollected {len(products)} products")
    for product in products[:10]:
        price = product.current_price.amount if product.current_price else "?"
        print(f"  - {product.brand or '?'} | {product.name or '?'} | {price} | {product.url}")
    if len(products) > 10:
        print(f"  ... and {len(products) - 10} more")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Run a catalog crawl")
    parser.add_argument("start_urls", nargs="+", help="Listing page URLs to start from")
    parser.add_argument("--site", default="italist", help="Registered site adapter (default: italist)")
    parser.add_argument("--max-products", type=int, default=None, help="Global product budget")
    parser.add_argument("--max-concurrency", type=int, default=None, help="Concurrent browser pages")
    parser.add_argument("--max-requests", type=int, default=None, help="Hard ceiling on dispatched tasks")
    parser.add_argument("--max-load-clicks", type=int, default=None, help="Maximum listing page depth")
    parser.add_argument("--headful", action="store_true", help="Show the browser window")
    parser.add_argument("--execution-id", default=None, help="Execution id for backend log correlation")

    args = parser.parse_args()
    setup_logging()

    asyncio.run(run_crawl(
        args.site,
        args.start_urls,
        execution_id=args.execution_id,
        max_products=args.max_products,
        max_concurrency=args.max_concurrency,
        max_requests=args.max_requests,
        max_load_clicks=args.max_load_clicks,
        headless=False if args.headful else None,
    ))
