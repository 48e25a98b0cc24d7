"""
Tier Fallback - Local tier price computation.

Used whenever the pricing authority cannot give an answer. Pure functions:
no cache access, no I/O.
"""
from .models import Product, Customer

TIER_1 = "T1"
TIER_2 = "T2"
TIER_3 = "T3"
RETAIL = "RETAIL"

# Payment-term thresholds (days) for deriving a tier
TIER_1_MAX_TERMS = 15
TIER_2_MAX_TERMS = 30


def tier_from_payment_terms(payment_terms) -> str:
    """
    Derive a tier from account payment terms.

    ≤15 days → T1, ≤30 days → T2, anything else (including no terms) → T3.
    """
    if payment_terms is None:
        return TIER_3
    try:
        days = float(payment_terms)
    except (TypeError, ValueError):
        return TIER_3
    if days <= TIER_1_MAX_TERMS:
        return TIER_1
    if days <= TIER_2_MAX_TERMS:
        return TIER_2
    return TIER_3


def effective_tier(customer: Customer) -> str:
    """
    Resolve the tier label used for a customer.

    An explicit price tier label always wins over payment terms. Labels are
    normalized to upper case and integer levels (2 or "2") become "T2";
    unknown labels are returned as-is and price at retail.
    """
    tier = customer.price_tier
    if isinstance(tier, int) and not isinstance(tier, bool):
        tier = f"T{tier}"
    label = str(tier or "").strip().upper()
    if label.isdigit():
        label = f"T{label}"
    if label:
        return label
    return tier_from_payment_terms(customer.payment_terms)


def tier_price(product: Product, tier: str) -> float:
    """Map a tier label to the matching list price, retail for anything else."""
    if tier == TIER_1:
        return product.price_t1
    if tier == TIER_2:
        return product.price_t2
    if tier == TIER_3:
        return product.price_t3
    return product.price_retail


def fallback_tier_and_price(product: Product, customer: Customer) -> tuple[str, float]:
    """Return (tier used, price). Unknown labels collapse to RETAIL."""
    tier = effective_tier(customer)
    if tier not in (TIER_1, TIER_2, TIER_3):
        tier = RETAIL
    return tier, tier_price(product, tier)


def compute_fallback_price(product: Product, customer: Customer) -> float:
    """
    Compute the price a customer pays from list prices alone.

    The caller handles the no-customer case (retail) before calling this.
    """
    return fallback_tier_and_price(product, customer)[1]
