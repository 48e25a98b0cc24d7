#!/usr/bin/env python
"""
Debug price resolution against a running pricing authority.

Usage:
    python scripts/debug_pricing.py [customer_id]

Start the authority first with scripts/run_api.py. If it is not running,
every price comes from the local tier fallback.
"""
import asyncio
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from customer_pricing.config.logging_setup import setup_logging
from customer_pricing.engine import PriceResolver
from customer_pricing.services.authority_client import AuthorityClient
from customer_pricing.services.pricelist_service import PricelistService


async def debug(customer_id: str):
    # Local copy of the tables, used only to build Product/Customer objects
    tables = PricelistService()
    customer = tables.get_customer(customer_id)
    products = [tables.get_product(pid) for pid in tables.products['id']]

    async with AuthorityClient() as client:
        resolver = PriceResolver(client)

        print(f"--- Bulk pricing for {customer.id} ({customer.name}) ---")
        for line in await resolver.price_products(customer, products):
            badge = " [custom]" if line.has_custom_pricing else ""
            print(f"{line.product.id:6} ${line.resolved_price:>9.2f}  {line.price_kind:6} {line.source}{badge}")

        print("\n--- Single resolution (served from cache after bulk) ---")
        for product in products:
            price = await resolver.resolve_price(product, customer)
            cached = resolver.get_cached_resolution(product.id, customer.id)
            print(f"{product.id:6} ${price:>9.2f}  cached={cached}")

        print("\nCache stats:", resolver.cache.stats())


if __name__ == "__main__":
    setup_logging()
    asyncio.run(debug(sys.argv[1] if len(sys.argv) > 1 else "C1"))
