#!/usr/bin/env python3
"""
Scrape one product page and persist the result.

Usage:
    python scripts/refresh_product.py <product_id> [--force]

Prints the stored product detail as JSON.
"""

import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from detail_scraper.db.session import AsyncSessionLocal, engine, init_db
from detail_scraper.ingest.base import ScraperError
from detail_scraper.logging_config import setup_logging
from detail_scraper.worker.refresh import RefreshService


async def refresh_product(product_id: str, force: bool) -> int:
    """Refresh ``product_id``; returns the process exit code."""
    await init_db()
    service = RefreshService(AsyncSessionLocal)
    try:
        detail = await service.refresh(product_id, force=force)
    except ScraperError as e:
        print(f"Refresh failed: {e}", file=sys.stderr)
        return 1
    finally:
        await service.close()
        await engine.dispose()

    print(json.dumps(
        {
            "product_id": detail.product_id,
            "description": detail.description,
            "rating_average": detail.rating_average,
            "last_scraped_at": detail.last_scraped_at.isoformat() if detail.last_scraped_at else None,
            "specs": detail.specs,
        },
        indent=2,
    ))
    return 0


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Scrape and persist one product's detail")
    parser.add_argument("product_id", help="Product id")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Scrape even if the product was scraped within the cooldown window",
    )
    args = parser.parse_args()

    setup_logging()
    sys.exit(asyncio.run(refresh_product(args.product_id, args.force)))
