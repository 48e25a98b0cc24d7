"""
Custom Pricelists API - FastAPI router for customer custom price management.
"""
from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel
from typing import Optional

from ..services.pricelist_service import (
    CustomerNotFound, ProductNotFound, CustomPriceNotFound, is_valid_custom_price,
)
from .state import get_service, verify_token

router = APIRouter(
    prefix="/api/custom-pricelists",
    tags=["custom-pricelists"],
    dependencies=[Depends(verify_token)],
)


# Pydantic models for API
class CustomPriceWrite(BaseModel):
    """Request model for setting a custom price."""
    custom_price: Optional[float] = None
    margin_percentage: Optional[float] = None
    cost_price: Optional[float] = None
    reason: Optional[str] = None


class CustomPriceDelete(BaseModel):
    """Request model for removing a custom price."""
    reason: Optional[str] = None


class PriceUpdate(BaseModel):
    """One entry of a bulk price update."""
    product_id: Optional[str] = None
    custom_price: Optional[float] = None
    margin_percentage: Optional[float] = None
    cost_price: Optional[float] = None


class BulkUpdateRequest(BaseModel):
    """Request model for updating several custom prices at once."""
    updates: Optional[list[PriceUpdate]] = None
    reason: Optional[str] = None


class RevertToTierRequest(BaseModel):
    """Request model for reverting products to tier pricing."""
    product_ids: Optional[list[str]] = None
    reason: Optional[str] = None


# Endpoints

@router.get("/customers/{customer_id}")
async def get_customer_pricelist(customer_id: str):
    """List a customer's active custom prices."""
    return {"success": True, "data": get_service().get_customer_prices(customer_id)}


def _write_custom_price(customer_id: str, product_id: str, body: CustomPriceWrite, changed_by: str, default_reason: Optional[str]):
    if not is_valid_custom_price(body.custom_price):
        raise HTTPException(status_code=400, detail="Valid custom price is required")
    try:
        record = get_service().set_custom_price(
            customer_id,
            product_id,
            body.custom_price,
            margin_percentage=body.margin_percentage,
            cost_price=body.cost_price,
            reason=body.reason or default_reason,
            changed_by=changed_by,
        )
    except (CustomerNotFound, ProductNotFound) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "data": record}


@router.post("/customers/{customer_id}/products/{product_id}")
async def set_custom_price(
    customer_id: str,
    product_id: str,
    body: CustomPriceWrite,
    x_user_id: str = Header("api"),
):
    """Create or replace a customer's custom price for a product."""
    return _write_custom_price(customer_id, product_id, body, x_user_id, None)


@router.put("/customers/{customer_id}/products/{product_id}")
async def update_custom_price(
    customer_id: str,
    product_id: str,
    body: CustomPriceWrite,
    x_user_id: str = Header("api"),
):
    """Update a customer's custom price for a product."""
    return _write_custom_price(customer_id, product_id, body, x_user_id, "Price updated")


@router.delete("/customers/{customer_id}/products/{product_id}")
async def delete_custom_price(
    customer_id: str,
    product_id: str,
    body: Optional[CustomPriceDelete] = None,
    x_user_id: str = Header("api"),
):
    """Remove a custom price; the product reverts to tier pricing."""
    try:
        get_service().delete_custom_price(
            customer_id,
            product_id,
            reason=body.reason if body else None,
            changed_by=x_user_id,
        )
    except CustomPriceNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "message": "Custom price removed successfully"}


@router.get("/customers/{customer_id}/history")
async def get_price_history(customer_id: str, product_id: Optional[str] = None):
    """Custom price change history for a customer, newest first."""
    return {"success": True, "data": get_service().get_price_history(customer_id, product_id)}


@router.post("/customers/{customer_id}/revert-to-tier")
async def revert_to_tier(
    customer_id: str,
    body: RevertToTierRequest,
    x_user_id: str = Header("api"),
):
    """Remove custom prices for several products at once."""
    if not body.product_ids:
        raise HTTPException(status_code=400, detail="Product IDs are required")
    try:
        count = get_service().revert_to_tier(customer_id, body.product_ids, reason=body.reason, changed_by=x_user_id)
    except CustomPriceNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "message": f"Reverted {count} products to tier pricing"}


@router.post("/customers/{customer_id}/bulk-update")
async def bulk_update_prices(
    customer_id: str,
    body: BulkUpdateRequest,
    x_user_id: str = Header("api"),
):
    """Set several custom prices for a customer in one request."""
    if not body.updates:
        raise HTTPException(status_code=400, detail="Updates array is required")
    try:
        records = get_service().bulk_update_prices(
            customer_id,
            [update.model_dump() for update in body.updates],
            reason=body.reason,
            changed_by=x_user_id,
        )
    except (CustomerNotFound, ProductNotFound) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "data": records, "message": f"Updated {len(records)} custom prices"}


@router.post("/copy/{source_customer_id}/{target_customer_id}")
async def copy_pricelist(
    source_customer_id: str,
    target_customer_id: str,
    x_user_id: str = Header("api"),
):
    """Copy one customer's active custom prices to another customer."""
    try:
        records = get_service().copy_pricelist(source_customer_id, target_customer_id, changed_by=x_user_id)
    except CustomerNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "data": records, "message": f"Copied {len(records)} custom prices"}
