import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from customer_pricing import __version__
from customer_pricing.api.pricelists_api import router as pricelists_router
from customer_pricing.api.state import get_service, verify_token
from customer_pricing.config.logging_setup import setup_logging
from customer_pricing.services.pricelist_service import CustomerNotFound, ProductNotFound

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Customer Pricing API %s starting", __version__)
    yield


app = FastAPI(
    title="Customer Pricing API",
    description="Pricing authority for customer-specific price resolution",
    version=__version__,
    lifespan=lifespan,
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include custom pricelist management API
app.include_router(pricelists_router)


class BulkResolveRequest(BaseModel):
    product_ids: Optional[List[str]] = None


@app.get("/")
async def root():
    return {"status": "online", "message": "Customer Pricing API Active"}


@app.get("/api/pricing/resolve/{customer_id}/{product_id}", dependencies=[Depends(verify_token)])
async def resolve_price(customer_id: str, product_id: str):
    try:
        pricing = get_service().resolve_price(customer_id, product_id)
    except (CustomerNotFound, ProductNotFound) as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "data": pricing}


@app.post("/api/pricing/bulk-resolve/{customer_id}", dependencies=[Depends(verify_token)])
async def bulk_resolve_price(customer_id: str, req: BulkResolveRequest):
    if req.product_ids is None:
        raise HTTPException(status_code=400, detail="product_ids array is required")
    pricing = get_service().bulk_resolve(customer_id, req.product_ids)
    return {"success": True, "data": pricing}


@app.get("/system/status")
async def get_status():
    service = get_service()
    return {
        "engine_active": True,
        "products": len(service.products),
        "customers": len(service.customers),
        "active_custom_prices": service.active_custom_price_count(),
    }
