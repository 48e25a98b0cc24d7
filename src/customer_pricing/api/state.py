"""
Shared API state - the live pricelist service and request authentication.
"""
from typing import Optional

from fastapi import Header, HTTPException

from ..config.settings import get_settings, Settings
from ..services.pricelist_service import PricelistService

_service: Optional[PricelistService] = None


def get_service() -> PricelistService:
    """Get the live pricelist service, loading it on first use."""
    global _service
    if _service is None:
        _service = PricelistService(get_settings())
    return _service


def set_service(service: Optional[PricelistService]):
    """Swap the live service (tests, reloads). None forces a reload on next use."""
    global _service
    _service = service


def _settings() -> Settings:
    return _service.settings if _service is not None else get_settings()


async def verify_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """Require `Authorization: Bearer <token>` when the authority has a token configured."""
    expected = _settings().api_token
    if not expected:
        return None
    if authorization != f"Bearer {expected}":
        raise HTTPException(status_code=401, detail="Authentication required")
    return expected
