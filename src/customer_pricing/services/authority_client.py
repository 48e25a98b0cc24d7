"""
Pricing Authority Client - HTTP binding to the server that owns customer prices.

Every call returns an AuthorityResponse instead of raising: transport errors,
HTTP error statuses, failed envelopes and malformed payloads all come back as
a failed response. Callers decide how to degrade.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional, Union
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field, ValidationError

from ..config.settings import get_settings, read_api_token
from ..engine.models import ResolutionResult

logger = logging.getLogger(__name__)

DEFAULT_OVERRIDE_REASON = "Price updated during quote/order creation"


# Pydantic models for the wire format
class ResolutionPayload(BaseModel):
    """A single resolution as returned by the authority."""
    price: float = Field(ge=0)
    type: Literal["custom", "tier", "error"]
    margin: Optional[float] = None
    tier: Optional[Union[int, str]] = None
    source: Optional[str] = None
    error: Optional[str] = None

    def to_result(self) -> ResolutionResult:
        return ResolutionResult.from_wire(self.model_dump())


class Envelope(BaseModel):
    """Response wrapper used by every authority endpoint."""
    success: bool = True
    data: Any = None
    error: Optional[str] = None
    message: Optional[str] = None


@dataclass
class AuthorityResponse:
    """Outcome of one authority call: either ok with data, or an error."""
    ok: bool
    data: Any = None
    error: Optional[str] = None
    status_code: Optional[int] = None

    @classmethod
    def success(cls, data: Any, status_code: Optional[int] = None) -> 'AuthorityResponse':
        return cls(ok=True, data=data, status_code=status_code)

    @classmethod
    def failure(cls, error: str, status_code: Optional[int] = None) -> 'AuthorityResponse':
        return cls(ok=False, error=error, status_code=status_code)


def _segment(value: str) -> str:
    """Quote an identifier for use as a single path segment."""
    return quote(str(value), safe='')


class AuthorityClient:
    """
    Async client for the pricing authority API.

    Args:
        base_url: Authority root URL (defaults to settings)
        token_provider: Zero-arg callable returning the bearer token, called per request
        timeout: Request timeout in seconds (defaults to settings)
        transport: Optional httpx transport (tests, in-process ASGI apps)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.authority_url).rstrip('/')
        self.token_provider = token_provider or read_api_token
        self.timeout = timeout if timeout is not None else settings.authority_timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> 'AuthorityClient':
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> AuthorityResponse:
        """Send one request and unwrap the {"success", "data"} envelope."""
        try:
            response = await self._client.request(method, path, json=json, headers=self._headers())
        except httpx.HTTPError as e:
            logger.warning("Pricing authority unreachable: %s %s (%s)", method, path, e)
            return AuthorityResponse.failure(str(e) or type(e).__name__)

        if response.status_code >= 400:
            detail = response.text[:200]
            logger.warning("Pricing authority error %s: %s %s %s", response.status_code, method, path, detail)
            return AuthorityResponse.failure(f"HTTP {response.status_code}: {detail}", response.status_code)

        try:
            envelope = Envelope.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.warning("Malformed response from %s %s: %s", method, path, e)
            return AuthorityResponse.failure(f"Malformed response: {e}", response.status_code)

        if not envelope.success:
            error = envelope.error or envelope.message or "Request failed"
            logger.warning("Pricing authority rejected %s %s: %s", method, path, error)
            return AuthorityResponse.failure(error, response.status_code)

        return AuthorityResponse.success(envelope.data, response.status_code)

    async def resolve(self, customer_id: str, product_id: str) -> AuthorityResponse:
        """Resolve one customer/product pair. data is a ResolutionResult."""
        response = await self._request(
            "GET", f"/api/pricing/resolve/{_segment(customer_id)}/{_segment(product_id)}"
        )
        if not response.ok:
            return response
        try:
            result = ResolutionPayload.model_validate(response.data).to_result()
        except ValidationError as e:
            logger.warning("Invalid resolution for %s/%s: %s", customer_id, product_id, e)
            return AuthorityResponse.failure(f"Invalid resolution: {e}", response.status_code)
        return AuthorityResponse.success(result, response.status_code)

    async def bulk_resolve(self, customer_id: str, product_ids: list[str]) -> AuthorityResponse:
        """
        Resolve many products for one customer in a single request.

        data is a dict of product_id → ResolutionResult. The batch is all or
        nothing: one invalid entry fails the whole response.
        """
        response = await self._request(
            "POST",
            f"/api/pricing/bulk-resolve/{_segment(customer_id)}",
            json={"product_ids": [str(pid) for pid in product_ids]},
        )
        if not response.ok:
            return response
        if not isinstance(response.data, dict):
            return AuthorityResponse.failure("Bulk response data is not a mapping", response.status_code)
        try:
            results = {
                str(product_id): ResolutionPayload.model_validate(payload).to_result()
                for product_id, payload in response.data.items()
            }
        except ValidationError as e:
            logger.warning("Invalid bulk resolution for customer %s: %s", customer_id, e)
            return AuthorityResponse.failure(f"Invalid bulk resolution: {e}", response.status_code)
        return AuthorityResponse.success(results, response.status_code)

    async def save_custom_price(
        self,
        customer_id: str,
        product_id: str,
        custom_price: float,
        reason: Optional[str] = None,
    ) -> AuthorityResponse:
        """Persist a custom price for a customer/product pair."""
        return await self._request(
            "POST",
            f"/api/custom-pricelists/customers/{_segment(customer_id)}/products/{_segment(product_id)}",
            json={"custom_price": custom_price, "reason": reason or DEFAULT_OVERRIDE_REASON},
        )

    async def delete_custom_price(self, customer_id: str, product_id: str, reason: Optional[str] = None) -> AuthorityResponse:
        """Remove a custom price so the pair reverts to tier pricing."""
        return await self._request(
            "DELETE",
            f"/api/custom-pricelists/customers/{_segment(customer_id)}/products/{_segment(product_id)}",
            json={"reason": reason} if reason else None,
        )
