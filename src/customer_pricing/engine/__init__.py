"""Engine subpackage - customer price resolution, caching and fallback."""
from .price_resolver import PriceResolver
from .resolution_cache import ResolutionCache
from .models import Product, Customer, ResolutionResult, PricedProduct
from .tier_fallback import compute_fallback_price, effective_tier

__all__ = [
    'PriceResolver', 'ResolutionCache', 'Product', 'Customer', 'ResolutionResult',
    'PricedProduct', 'compute_fallback_price', 'effective_tier',
]
