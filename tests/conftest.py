import os
import sys

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from customer_pricing.config.settings import Settings
from customer_pricing.engine import PriceResolver, ResolutionCache, Product, Customer, ResolutionResult
from customer_pricing.services.authority_client import AuthorityResponse


@pytest.fixture
def anyio_backend():
    # asyncio only, no trio
    return "asyncio"


class FakeAuthority:
    """In-memory pricing authority with switchable outages."""

    def __init__(self):
        self.prices: dict[tuple[str, str], ResolutionResult] = {}
        self.down = False
        self.reject_writes = False
        self.calls: list[tuple] = []
        self.saved: list[tuple] = []

    async def resolve(self, customer_id, product_id):
        self.calls.append(("resolve", customer_id, product_id))
        if self.down:
            return AuthorityResponse.failure("connection refused")
        result = self.prices.get((customer_id, product_id))
        if result is None:
            return AuthorityResponse.failure("HTTP 404: not found", 404)
        return AuthorityResponse.success(result, 200)

    async def bulk_resolve(self, customer_id, product_ids):
        self.calls.append(("bulk_resolve", customer_id, tuple(product_ids)))
        if self.down:
            return AuthorityResponse.failure("connection refused")
        return AuthorityResponse.success({
            pid: self.prices[(customer_id, pid)]
            for pid in product_ids
            if (customer_id, pid) in self.prices
        }, 200)

    async def save_custom_price(self, customer_id, product_id, custom_price, reason=None):
        self.calls.append(("save_custom_price", customer_id, product_id, custom_price, reason))
        if self.down or self.reject_writes:
            return AuthorityResponse.failure("HTTP 500: write failed", 500)
        self.saved.append((customer_id, product_id, custom_price, reason))
        self.prices[(customer_id, product_id)] = ResolutionResult(
            price=custom_price, kind="custom", source="custom_pricelist"
        )
        return AuthorityResponse.success({"custom_price": custom_price}, 200)

    async def delete_custom_price(self, customer_id, product_id, reason=None):
        self.calls.append(("delete_custom_price", customer_id, product_id, reason))
        if self.down or self.reject_writes:
            return AuthorityResponse.failure("HTTP 404: Custom price not found", 404)
        self.prices.pop((customer_id, product_id), None)
        return AuthorityResponse.success(None, 200)

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


@pytest.fixture
def authority():
    return FakeAuthority()


@pytest.fixture
def resolver(authority):
    # Fresh cache per test
    return PriceResolver(authority, ResolutionCache())


@pytest.fixture
def product():
    return Product(id="P1", price_t1=80.0, price_t2=90.0, price_t3=100.0, price_retail=120.0)


@pytest.fixture
def product_2():
    return Product(id="P2", price_t1=128.0, price_t2=140.0, price_t3=152.0, price_retail=185.0)


@pytest.fixture
def customer():
    return Customer(id="C1", payment_terms=45)


PRODUCTS_CSV = """id,sku,name,price_t1,price_t2,price_t3,price_retail,cost
P1,GL-6MM,6mm Clear Glass,80,90,100,120,60
P2,GL-10MM,10mm Clear Glass,128,140,152,185,
P3,HW-SPIG,Spigot,32.5,35,38,45,18.4
"""

CUSTOMERS_CSV = """id,name,price_tier,payment_terms
C1,Harbour Glass,,45
C2,Northside Pools,,14
C3,Bayview Builders,T2,60
"""


@pytest.fixture
def data_settings(tmp_path):
    """Settings pointing at a fresh copy of the pricing tables."""
    (tmp_path / 'products.csv').write_text(PRODUCTS_CSV, encoding='utf-8')
    (tmp_path / 'customers.csv').write_text(CUSTOMERS_CSV, encoding='utf-8')
    return Settings(data_dir=tmp_path, api_token="secret-token")
