"""
Price Resolver - Customer-specific price resolution with caching and fallback.

Resolution order for a customer/product pair:
1. No customer → retail price
2. Cached custom/tier result → cached price
3. Pricing authority → custom price, or tier price from account terms
4. Authority unavailable → local tier fallback, cached with source "fallback"
"""
import logging
import math
from typing import Optional

from .models import (
    Product, Customer, ResolutionResult, PricedProduct,
    KIND_TIER, SOURCE_FALLBACK, SOURCE_RETAIL,
)
from .resolution_cache import ResolutionCache
from .tier_fallback import fallback_tier_and_price

logger = logging.getLogger(__name__)


class PriceResolver:
    """
    Resolves the price a customer pays for a product.

    One instance lives for a user session: it owns the session's
    ResolutionCache and talks to the pricing authority through `authority`
    (an AuthorityClient or anything with the same async methods). Clear it
    at logout with invalidate().
    """

    def __init__(self, authority, cache: Optional[ResolutionCache] = None):
        self.authority = authority
        self.cache = cache if cache is not None else ResolutionCache()
        self._bulk_in_flight = 0

    @property
    def loading(self) -> bool:
        """True while a bulk resolution is waiting on the authority."""
        return self._bulk_in_flight > 0

    async def resolve_price(self, product: Product, customer: Optional[Customer]) -> float:
        """
        Resolve one product's price for a customer. Never raises on authority errors.

        Args:
            product: Product with tier and retail list prices
            customer: Customer, or None for anonymous/retail pricing

        Returns:
            The price to charge
        """
        if customer is None:
            return product.price_retail

        cached = self.cache.get(customer.id, product.id)
        if cached is not None and not cached.is_error:
            return cached.price

        response = await self.authority.resolve(customer.id, product.id)
        if response.ok and not response.data.is_error:
            self.cache.set(customer.id, product.id, response.data)
            return response.data.price

        reason = response.error if not response.ok else response.data.error
        return self._cache_fallback(product, customer, reason)

    def _cache_fallback(self, product: Product, customer: Customer, reason: Optional[str]) -> float:
        """Compute the tier fallback, cache it tagged as a fallback, and return the price."""
        tier, price = fallback_tier_and_price(product, customer)
        logger.warning(
            "Falling back to %s price %.2f for customer %s / product %s: %s",
            tier, price, customer.id, product.id, reason,
        )
        self.cache.set(
            customer.id,
            product.id,
            ResolutionResult(price=price, kind=KIND_TIER, tier=tier, source=SOURCE_FALLBACK),
        )
        return price

    async def resolve_bulk(self, customer_id: str, products: list[Product]) -> dict[str, ResolutionResult]:
        """
        Resolve a whole product list for one customer with a single authority call.

        Returned results overwrite any cached entries for those products. On
        failure nothing is cached or erased and an empty dict is returned.
        Products missing from a successful response are left unresolved.
        """
        if not customer_id or not products:
            return {}

        product_ids = [product.id for product in products]
        self._bulk_in_flight += 1
        try:
            response = await self.authority.bulk_resolve(customer_id, product_ids)
        finally:
            self._bulk_in_flight -= 1

        if not response.ok:
            logger.warning(
                "Bulk resolution failed for customer %s (%d products): %s",
                customer_id, len(product_ids), response.error,
            )
            return {}

        results: dict[str, ResolutionResult] = response.data
        self.cache.update(customer_id, results)

        missing = set(product_ids) - set(results)
        if missing:
            logger.info(
                "Bulk resolution for customer %s returned no price for %d products",
                customer_id, len(missing),
            )
        return results

    async def price_products(self, customer: Optional[Customer], products: list[Product]) -> list[PricedProduct]:
        """
        Price a catalog page for a customer.

        Uses one bulk resolution; products it does not cover (or all of them,
        if it fails) get a display-only tier fallback that is not cached.
        """
        if customer is None:
            return [
                PricedProduct(product=p, resolved_price=p.price_retail, price_kind=KIND_TIER, source=SOURCE_RETAIL)
                for p in products
            ]

        results = await self.resolve_bulk(customer.id, products)
        priced = []
        for product in products:
            result = results.get(product.id)
            if result is not None and not result.is_error:
                priced.append(PricedProduct(
                    product=product,
                    resolved_price=result.price,
                    price_kind=result.kind,
                    margin=result.margin,
                    source=result.source,
                ))
                continue

            _, price = fallback_tier_and_price(product, customer)
            line = PricedProduct(
                product=product,
                resolved_price=price,
                price_kind=KIND_TIER,
                source=SOURCE_FALLBACK,
            )
            if result is not None:
                line.warnings.append(f"Authority could not price {product.id}: {result.error or 'unknown error'}")
            priced.append(line)
        return priced

    def get_cached_resolution(self, product_id: str, customer_id: str) -> Optional[ResolutionResult]:
        """Look up the cached resolution without resolving anything."""
        return self.cache.peek(customer_id, product_id)

    def invalidate(self, customer_id: Optional[str] = None, product_id: Optional[str] = None) -> int:
        """Drop one entry, one customer's entries, or everything."""
        return self.cache.invalidate(customer_id, product_id)

    async def save_override(
        self,
        customer_id: str,
        product_id: str,
        new_price: float,
        reason: Optional[str] = None,
    ) -> bool:
        """
        Save a manual price to the customer's custom price list.

        On success the cached entry for the pair is dropped so the next read
        fetches the new price. On failure the cache is left as it was.
        """
        if new_price is None or not math.isfinite(new_price) or new_price < 0:
            logger.warning("Refusing override for %s/%s: invalid price %r", customer_id, product_id, new_price)
            return False

        response = await self.authority.save_custom_price(customer_id, product_id, new_price, reason=reason)
        if not response.ok:
            logger.warning("Saving custom price for %s/%s failed: %s", customer_id, product_id, response.error)
            return False

        self.invalidate(customer_id, product_id)
        logger.info("Saved custom price %.2f for customer %s / product %s", new_price, customer_id, product_id)
        return True

    async def remove_override(self, customer_id: str, product_id: str, reason: Optional[str] = None) -> bool:
        """Revert a pair to tier pricing. Same cache contract as save_override()."""
        response = await self.authority.delete_custom_price(customer_id, product_id, reason=reason)
        if not response.ok:
            logger.warning("Removing custom price for %s/%s failed: %s", customer_id, product_id, response.error)
            return False

        self.invalidate(customer_id, product_id)
        logger.info("Removed custom price for customer %s / product %s", customer_id, product_id)
        return True
