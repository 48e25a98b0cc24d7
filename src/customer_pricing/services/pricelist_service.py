"""
Pricelist Service - Authority-side customer price lists.

Owns the product, customer and custom price tables (CSV files loaded with
pandas) and answers resolution requests:
1. Active custom price for the customer/product → custom
2. Customer's tier price (explicit tier label, else payment terms) → tier
Every custom price change is appended to the price history table.
"""
import logging
import math
from datetime import datetime
from typing import Optional

import pandas as pd

from ..config.settings import get_settings, Settings
from ..engine.models import (
    Product, Customer, ResolutionResult, KIND_CUSTOM, KIND_TIER, KIND_ERROR,
    SOURCE_CUSTOM_PRICELIST, SOURCE_STANDARD_TIER,
)
from ..engine.tier_fallback import fallback_tier_and_price

logger = logging.getLogger(__name__)


class CustomerNotFound(LookupError):
    pass


class ProductNotFound(LookupError):
    pass


class CustomPriceNotFound(LookupError):
    pass


def _clean(value):
    """Turn pandas missing values into None."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    # numpy scalars → plain Python values
    if hasattr(value, 'item') and not isinstance(value, (str, bytes)):
        return value.item()
    return value


def _optional_float(value) -> Optional[float]:
    value = _clean(value)
    return float(value) if value is not None else None


def _records(df: pd.DataFrame) -> list[dict]:
    """DataFrame → list of JSON-safe dicts."""
    return [{k: _clean(v) for k, v in row.items()} for row in df.to_dict(orient='records')]


def is_valid_custom_price(value) -> bool:
    """Custom prices must be finite numbers greater than zero."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and value > 0


def _check_finite(**values):
    for name, value in values.items():
        if value is not None and not math.isfinite(value):
            raise ValueError(f"{name} must be a finite number")


class PricelistService:
    """Service for resolving prices and managing customer custom price lists."""

    PRODUCT_COLUMNS = ['id', 'sku', 'name', 'price_t1', 'price_t2', 'price_t3', 'price_retail', 'cost']
    CUSTOMER_COLUMNS = ['id', 'name', 'price_tier', 'payment_terms']
    CUSTOM_PRICE_COLUMNS = [
        'customer_id', 'product_id', 'custom_price', 'margin_percentage', 'cost_price',
        'is_active', 'created_by', 'updated_by', 'created_at', 'updated_at',
    ]
    HISTORY_COLUMNS = [
        'customer_id', 'product_id', 'old_price', 'new_price', 'old_margin_percentage',
        'new_margin_percentage', 'change_type', 'changed_by', 'reason', 'changed_at',
    ]

    def __init__(self, settings: Optional[Settings] = None):
        """Load all pricing tables from the data directory."""
        self.settings = settings or get_settings()

        if not self.settings.products_csv.exists():
            raise FileNotFoundError(f"products.csv not found at {self.settings.products_csv}.")
        if not self.settings.customers_csv.exists():
            raise FileNotFoundError(f"customers.csv not found at {self.settings.customers_csv}.")

        self.products = self._load_csv(self.settings.products_csv, self.PRODUCT_COLUMNS, id_columns=['id'])
        self.customers = self._load_csv(
            self.settings.customers_csv, self.CUSTOMER_COLUMNS, id_columns=['id', 'price_tier']
        )
        self.custom_prices = self._load_csv(
            self.settings.custom_prices_csv, self.CUSTOM_PRICE_COLUMNS,
            id_columns=['customer_id', 'product_id'],
        )
        self.custom_prices['is_active'] = (
            self.custom_prices['is_active'].astype(str).str.strip().str.lower() == 'true'
        )
        self.price_history = self._load_csv(
            self.settings.price_history_csv, self.HISTORY_COLUMNS,
            id_columns=['customer_id', 'product_id'],
        )

        logger.info(
            "Loaded pricing tables: %d products, %d customers, %d custom prices",
            len(self.products), len(self.customers), self.active_custom_price_count(),
        )

    @staticmethod
    def _load_csv(path, columns: list[str], id_columns: list[str]) -> pd.DataFrame:
        if not path.exists():
            return pd.DataFrame(columns=columns)
        df = pd.read_csv(path, dtype={col: str for col in id_columns})
        df.columns = [c.strip() for c in df.columns]
        for col in columns:
            if col not in df.columns:
                df[col] = None
        for col in id_columns:
            df[col] = df[col].where(df[col].isna(), df[col].astype(str).str.strip())
        return df[columns].astype(object)

    def _save(self):
        """Persist custom prices and history back to the data directory."""
        if self.settings.data_dir is None or not self.settings.data_dir.exists():
            return
        self.custom_prices.to_csv(self.settings.custom_prices_csv, index=False)
        self.price_history.to_csv(self.settings.price_history_csv, index=False)

    # Lookups

    def get_product(self, product_id: str) -> Product:
        match = self.products[self.products['id'] == str(product_id)]
        if match.empty:
            raise ProductNotFound(f"Product '{product_id}' not found")
        row = match.iloc[0]
        return Product(
            id=row['id'],
            sku=_clean(row['sku']),
            name=_clean(row['name']),
            price_t1=float(row['price_t1']),
            price_t2=float(row['price_t2']),
            price_t3=float(row['price_t3']),
            price_retail=float(row['price_retail']),
            cost=_optional_float(row['cost']),
        )

    def get_customer(self, customer_id: str) -> Customer:
        match = self.customers[self.customers['id'] == str(customer_id)]
        if match.empty:
            raise CustomerNotFound(f"Customer '{customer_id}' not found")
        row = match.iloc[0]
        terms = _optional_float(row['payment_terms'])
        return Customer(
            id=row['id'],
            name=_clean(row['name']),
            price_tier=_clean(row['price_tier']),
            payment_terms=int(terms) if terms is not None else None,
        )

    def active_custom_price_count(self) -> int:
        return int(self._active().sum())

    def _active(self) -> pd.Series:
        return self.custom_prices['is_active'].astype(bool)

    def _custom_price_mask(self, customer_id: str, product_id: str) -> pd.Series:
        return (
            (self.custom_prices['customer_id'] == str(customer_id)) &
            (self.custom_prices['product_id'] == str(product_id))
        )

    def _active_custom_price(self, customer_id: str, product_id: str) -> Optional[pd.Series]:
        match = self.custom_prices[
            self._custom_price_mask(customer_id, product_id) & self._active()
        ]
        if match.empty:
            return None
        return match.iloc[0]

    # Resolution

    def resolve_price(self, customer_id: str, product_id: str) -> dict:
        """
        Resolve the price for a customer/product pair.

        Returns the wire form of a resolution: custom price if one is active,
        otherwise the customer's tier price.
        """
        custom = self._active_custom_price(customer_id, product_id)
        if custom is not None:
            return ResolutionResult(
                price=float(custom['custom_price']),
                kind=KIND_CUSTOM,
                margin=_optional_float(custom['margin_percentage']),
                source=SOURCE_CUSTOM_PRICELIST,
            ).to_wire()

        customer = self.get_customer(customer_id)
        product = self.get_product(product_id)
        tier, price = fallback_tier_and_price(product, customer)
        return ResolutionResult(price=price, kind=KIND_TIER, tier=tier, source=SOURCE_STANDARD_TIER).to_wire()

    def bulk_resolve(self, customer_id: str, product_ids: list[str]) -> dict[str, dict]:
        """Resolve many products; per-product failures become error entries."""
        results = {}
        for product_id in product_ids:
            try:
                results[str(product_id)] = self.resolve_price(customer_id, product_id)
            except LookupError as e:
                results[str(product_id)] = ResolutionResult(
                    price=0.0,
                    kind=KIND_ERROR,
                    error=str(e.args[0]) if e.args else type(e).__name__,
                ).to_wire()
        return results

    # Custom price management

    def set_custom_price(
        self,
        customer_id: str,
        product_id: str,
        custom_price: float,
        margin_percentage: Optional[float] = None,
        cost_price: Optional[float] = None,
        reason: Optional[str] = None,
        changed_by: str = "system",
    ) -> dict:
        """
        Create or update a custom price and log the change.

        When no margin is given it is derived from the cost price (or the
        product cost) if one is known.
        """
        if not is_valid_custom_price(custom_price):
            raise ValueError("Valid custom price is required")
        _check_finite(margin_percentage=margin_percentage, cost_price=cost_price)

        self.get_customer(customer_id)
        product = self.get_product(product_id)

        record = self._upsert_custom_price(
            customer_id, product, custom_price, margin_percentage, cost_price, reason, changed_by,
        )
        self._save()

        logger.info("Custom price %.2f set for customer %s / product %s", custom_price, customer_id, product_id)
        return record

    def bulk_update_prices(
        self,
        customer_id: str,
        updates: list[dict],
        reason: Optional[str] = None,
        changed_by: str = "system",
    ) -> list[dict]:
        """
        Upsert several custom prices for one customer.

        Each update is a dict with product_id, custom_price and optionally
        margin_percentage / cost_price. Every update is validated before any
        is applied, so a bad entry leaves the tables untouched. One history
        row is written per product.
        """
        if not updates:
            raise ValueError("Updates are required")

        self.get_customer(customer_id)
        checked = []
        for update in updates:
            if not update.get('product_id') or not is_valid_custom_price(update.get('custom_price')):
                raise ValueError("Each update must have product_id and a valid custom_price")
            _check_finite(margin_percentage=update.get('margin_percentage'), cost_price=update.get('cost_price'))
            checked.append((self.get_product(update['product_id']), update))

        records = [
            self._upsert_custom_price(
                customer_id, product, float(update['custom_price']),
                update.get('margin_percentage'), update.get('cost_price'),
                reason or 'Bulk price update', changed_by,
            )
            for product, update in checked
        ]
        self._save()

        logger.info("Bulk updated %d custom prices for customer %s", len(records), customer_id)
        return records

    def copy_pricelist(
        self,
        source_customer_id: str,
        target_customer_id: str,
        changed_by: str = "system",
    ) -> list[dict]:
        """Copy a customer's active custom prices onto another customer."""
        if str(source_customer_id) == str(target_customer_id):
            raise ValueError("Cannot copy pricelist to the same customer")

        self.get_customer(source_customer_id)
        self.get_customer(target_customer_id)

        source = self.custom_prices[
            (self.custom_prices['customer_id'] == str(source_customer_id)) & self._active()
        ]
        updates = [
            {
                'product_id': row['product_id'],
                'custom_price': float(row['custom_price']),
                'margin_percentage': _optional_float(row['margin_percentage']),
                'cost_price': _optional_float(row['cost_price']),
            }
            for row in source.to_dict(orient='records')
        ]
        if not updates:
            return []
        return self.bulk_update_prices(
            target_customer_id, updates,
            reason=f"Copied from customer {source_customer_id}",
            changed_by=changed_by,
        )

    def _upsert_custom_price(
        self,
        customer_id: str,
        product: Product,
        custom_price: float,
        margin_percentage: Optional[float],
        cost_price: Optional[float],
        reason: Optional[str],
        changed_by: str,
    ) -> dict:
        product_id = product.id
        cost = cost_price if cost_price is not None else product.cost
        if margin_percentage is None and cost is not None:
            margin_percentage = round((custom_price - cost) / custom_price * 100, 2)

        now = datetime.now().isoformat()
        mask = self._custom_price_mask(customer_id, product_id)
        existing = self.custom_prices[mask & self._active()]
        old_price = float(existing.iloc[0]['custom_price']) if not existing.empty else None
        old_margin = _optional_float(existing.iloc[0]['margin_percentage']) if not existing.empty else None

        if mask.any():
            idx = self.custom_prices.index[mask][0]
            self.custom_prices.loc[idx, 'custom_price'] = float(custom_price)
            self.custom_prices.loc[idx, 'margin_percentage'] = margin_percentage
            self.custom_prices.loc[idx, 'cost_price'] = cost_price
            self.custom_prices.loc[idx, 'is_active'] = True
            self.custom_prices.loc[idx, 'updated_by'] = changed_by
            self.custom_prices.loc[idx, 'updated_at'] = now
            record = self.custom_prices.loc[idx].to_dict()
        else:
            record = {
                'customer_id': str(customer_id),
                'product_id': str(product_id),
                'custom_price': float(custom_price),
                'margin_percentage': margin_percentage,
                'cost_price': cost_price,
                'is_active': True,
                'created_by': changed_by,
                'updated_by': changed_by,
                'created_at': now,
                'updated_at': now,
            }
            self.custom_prices = self._append(self.custom_prices, record, self.CUSTOM_PRICE_COLUMNS)

        self._log_change(
            customer_id, product_id,
            old_price=old_price, new_price=float(custom_price),
            old_margin=old_margin, new_margin=margin_percentage,
            change_type='update' if old_price is not None else 'create',
            changed_by=changed_by, reason=reason,
        )
        return {k: _clean(v) for k, v in record.items()}

    def delete_custom_price(
        self,
        customer_id: str,
        product_id: str,
        reason: Optional[str] = None,
        changed_by: str = "system",
    ):
        """Soft-delete an active custom price and log the removal."""
        existing = self._active_custom_price(customer_id, product_id)
        if existing is None:
            raise CustomPriceNotFound(f"Custom price not found for customer '{customer_id}' and product '{product_id}'")

        idx = self.custom_prices.index[
            self._custom_price_mask(customer_id, product_id) & self._active()
        ][0]
        self.custom_prices.loc[idx, 'is_active'] = False
        self.custom_prices.loc[idx, 'updated_by'] = changed_by
        self.custom_prices.loc[idx, 'updated_at'] = datetime.now().isoformat()

        self._log_change(
            customer_id, product_id,
            old_price=float(existing['custom_price']), new_price=0.0,
            old_margin=_optional_float(existing['margin_percentage']), new_margin=None,
            change_type='delete', changed_by=changed_by,
            reason=reason or 'Custom price removed',
        )
        self._save()
        logger.info("Custom price removed for customer %s / product %s", customer_id, product_id)

    def revert_to_tier(
        self,
        customer_id: str,
        product_ids: list[str],
        reason: Optional[str] = None,
        changed_by: str = "system",
    ) -> int:
        """Remove custom prices for several products. Returns how many were removed."""
        for product_id in product_ids:
            self.delete_custom_price(
                customer_id, product_id,
                reason=reason or 'Reverted to tier pricing',
                changed_by=changed_by,
            )
        return len(product_ids)

    def get_customer_prices(self, customer_id: str) -> list[dict]:
        """Active custom prices for a customer, most recently updated first."""
        prices = self.custom_prices[
            (self.custom_prices['customer_id'] == str(customer_id)) & self._active()
        ]
        prices = prices.sort_values('updated_at', ascending=False)
        merged = prices.merge(
            self.products[['id', 'sku', 'name', 'cost']].rename(columns={'id': 'product_id'}),
            on='product_id',
            how='left',
        )
        return _records(merged)

    def get_price_history(self, customer_id: str, product_id: Optional[str] = None) -> list[dict]:
        """Price change history for a customer, newest first."""
        history = self.price_history[self.price_history['customer_id'] == str(customer_id)]
        if product_id:
            history = history[history['product_id'] == str(product_id)]
        # Stable sort keeps insertion order for identical timestamps
        history = history.iloc[::-1].sort_values('changed_at', ascending=False, kind='stable')
        return _records(history)

    def _log_change(
        self,
        customer_id: str,
        product_id: str,
        old_price: Optional[float],
        new_price: float,
        old_margin: Optional[float],
        new_margin: Optional[float],
        change_type: str,
        changed_by: str,
        reason: Optional[str],
    ):
        self.price_history = self._append(self.price_history, {
            'customer_id': str(customer_id),
            'product_id': str(product_id),
            'old_price': old_price,
            'new_price': new_price,
            'old_margin_percentage': old_margin,
            'new_margin_percentage': new_margin,
            'change_type': change_type,
            'changed_by': changed_by,
            'reason': reason,
            'changed_at': datetime.now().isoformat(),
        }, self.HISTORY_COLUMNS)

    @staticmethod
    def _append(df: pd.DataFrame, row: dict, columns: list[str]) -> pd.DataFrame:
        new_row = pd.DataFrame([row], columns=columns).astype(object)
        if df.empty:
            return new_row
        return pd.concat([df, new_row], ignore_index=True)
