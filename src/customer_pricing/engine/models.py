"""
Data models for customer price resolution.

Uses dataclasses for structured, type-safe data representation.
"""
from dataclasses import dataclass, field, asdict
from typing import Optional, Union

# Resolution kinds
KIND_CUSTOM = "custom"
KIND_TIER = "tier"
KIND_ERROR = "error"

# Provenance tags
SOURCE_FALLBACK = "fallback"
SOURCE_CUSTOM_PRICELIST = "custom_pricelist"
SOURCE_STANDARD_TIER = "standard_tier"
SOURCE_RETAIL = "retail"  # no customer selected, list retail price


@dataclass
class Product:
    """A catalog product with its four list prices."""
    id: str
    price_t1: float
    price_t2: float
    price_t3: float
    price_retail: float
    sku: Optional[str] = None
    name: Optional[str] = None
    cost: Optional[float] = None


@dataclass
class Customer:
    """A customer account as seen by pricing."""
    id: str
    name: Optional[str] = None
    price_tier: Optional[Union[str, int]] = None  # "T1", "T2", "T3" or a tier level
    payment_terms: Optional[int] = None  # days


@dataclass
class ResolutionResult:
    """The price a customer pays for a product, and where it came from."""
    price: float
    kind: str  # "custom", "tier" or "error"
    margin: Optional[float] = None
    tier: Optional[str] = None
    source: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.kind == KIND_ERROR

    @property
    def is_custom(self) -> bool:
        return self.kind == KIND_CUSTOM

    def to_wire(self) -> dict:
        """Convert to the JSON shape exchanged with the pricing authority."""
        data = asdict(self)
        data["type"] = data.pop("kind")
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_wire(cls, data: dict) -> 'ResolutionResult':
        """Create from an authority payload. Integer tiers become "T<n>" labels."""
        tier = data.get("tier")
        if isinstance(tier, int):
            tier = f"T{tier}"
        return cls(
            price=float(data.get("price", 0.0)),
            kind=data.get("type", KIND_TIER),
            margin=data.get("margin"),
            tier=tier,
            source=data.get("source"),
            error=data.get("error"),
        )


@dataclass
class PricedProduct:
    """A product decorated with the price resolved for one customer."""
    product: Product
    resolved_price: float
    price_kind: str
    margin: Optional[float] = None
    source: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def has_custom_pricing(self) -> bool:
        return self.price_kind == KIND_CUSTOM
