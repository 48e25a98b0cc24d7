"""
Authority client tests - wire format, envelopes and failure mapping.
"""
import json

import httpx
import pytest

from customer_pricing.engine import ResolutionResult
from customer_pricing.services.authority_client import AuthorityClient, DEFAULT_OVERRIDE_REASON

pytestmark = pytest.mark.anyio


def _client(handler, token="tok-123"):
    return AuthorityClient(
        base_url="http://authority.test",
        token_provider=lambda: token,
        timeout=2.0,
        transport=httpx.MockTransport(handler),
    )


async def test_resolve_parses_envelope_and_sends_token():
    seen = {}

    def handler(request: httpx.Request):
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={
            "success": True,
            "data": {"price": 75.0, "type": "custom", "margin": 26.7, "source": "custom_pricelist"},
        })

    async with _client(handler) as client:
        response = await client.resolve("C1", "P1")

    assert response.ok
    assert response.data == ResolutionResult(price=75.0, kind="custom", margin=26.7, source="custom_pricelist")
    assert seen == {"path": "/api/pricing/resolve/C1/P1", "auth": "Bearer tok-123"}


async def test_integer_tier_becomes_label():
    def handler(request):
        return httpx.Response(200, json={"success": True, "data": {"price": 90, "type": "tier", "tier": 2}})

    async with _client(handler) as client:
        response = await client.resolve("C1", "P1")
    assert response.data.tier == "T2"


async def test_identifiers_are_path_quoted():
    seen = {}

    def handler(request):
        seen["raw_path"] = request.url.raw_path
        return httpx.Response(200, json={"success": True, "data": {"price": 1, "type": "tier"}})

    async with _client(handler) as client:
        await client.resolve("C/1", "P 1")
    assert seen["raw_path"] == b"/api/pricing/resolve/C%2F1/P%201"


async def test_no_token_means_no_authorization_header():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"success": True, "data": {"price": 1, "type": "tier"}})

    async with _client(handler, token=None) as client:
        await client.resolve("C1", "P1")
    assert seen["auth"] is None


@pytest.mark.parametrize("handler", [
    lambda request: httpx.Response(500, text="Internal Server Error"),
    lambda request: httpx.Response(404, json={"detail": "Customer 'C1' not found"}),
    lambda request: httpx.Response(200, text="<html>not json</html>"),
    lambda request: httpx.Response(200, json={"success": False, "error": "nope"}),
    lambda request: httpx.Response(200, json={"success": True, "data": {"price": "abc", "type": "tier"}}),
    lambda request: httpx.Response(200, json={"success": True, "data": {"price": -5, "type": "tier"}}),
    lambda request: httpx.Response(200, json={"success": True, "data": {"price": 5, "type": "promo"}}),
], ids=["500", "404", "not-json", "success-false", "bad-price", "negative-price", "unknown-kind"])
async def test_resolve_failures_are_returned_not_raised(handler):
    async with _client(handler) as client:
        response = await client.resolve("C1", "P1")
    assert not response.ok
    assert response.error


async def test_transport_error_is_a_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        response = await client.resolve("C1", "P1")
    assert not response.ok
    assert "connection refused" in response.error


async def test_timeout_is_a_failure():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    async with _client(handler) as client:
        response = await client.bulk_resolve("C1", ["P1"])
    assert not response.ok


async def test_bulk_resolve_sends_all_ids_in_one_request():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"success": True, "data": {
            "P1": {"price": 75.0, "type": "custom"},
            "P2": {"price": 0, "type": "error", "error": "Product 'P2' not found"},
        }})

    async with _client(handler) as client:
        response = await client.bulk_resolve("C1", ["P1", "P2"])

    assert len(requests) == 1
    assert requests[0].method == "POST"
    assert requests[0].url.path == "/api/pricing/bulk-resolve/C1"
    assert json.loads(requests[0].content) == {"product_ids": ["P1", "P2"]}
    assert response.ok
    assert response.data["P1"] == ResolutionResult(price=75.0, kind="custom")
    assert response.data["P2"].is_error


async def test_bulk_resolve_is_all_or_nothing():
    def handler(request):
        return httpx.Response(200, json={"success": True, "data": {
            "P1": {"price": 75.0, "type": "custom"},
            "P2": {"price": "??"},
        }})

    async with _client(handler) as client:
        response = await client.bulk_resolve("C1", ["P1", "P2"])
    assert not response.ok


async def test_bulk_resolve_rejects_non_mapping_data():
    def handler(request):
        return httpx.Response(200, json={"success": True, "data": [1, 2]})

    async with _client(handler) as client:
        response = await client.bulk_resolve("C1", ["P1"])
    assert not response.ok


async def test_save_custom_price_body_and_default_reason():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"success": True, "data": {"custom_price": 42.0}})

    async with _client(handler) as client:
        response = await client.save_custom_price("C1", "P1", 42.0)

    assert response.ok
    assert requests[0].url.path == "/api/custom-pricelists/customers/C1/products/P1"
    assert json.loads(requests[0].content) == {"custom_price": 42.0, "reason": DEFAULT_OVERRIDE_REASON}


async def test_save_custom_price_failure():
    def handler(request):
        return httpx.Response(400, json={"detail": "Valid custom price is required"})

    async with _client(handler) as client:
        response = await client.save_custom_price("C1", "P1", 0.0)
    assert not response.ok
    assert response.status_code == 400


async def test_delete_custom_price_uses_delete():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"success": True, "message": "Custom price removed successfully"})

    async with _client(handler) as client:
        response = await client.delete_custom_price("C1", "P1", reason="Back to tier")

    assert response.ok
    assert requests[0].method == "DELETE"
    assert json.loads(requests[0].content) == {"reason": "Back to tier"}


async def test_token_provider_is_called_per_request():
    tokens = iter(["first", "second"])
    seen = []

    def handler(request):
        seen.append(request.headers["Authorization"])
        return httpx.Response(200, json={"success": True, "data": {"price": 1, "type": "tier"}})

    client = AuthorityClient(
        base_url="http://authority.test",
        token_provider=lambda: next(tokens),
        transport=httpx.MockTransport(handler),
    )
    async with client:
        await client.resolve("C1", "P1")
        await client.resolve("C1", "P1")
    assert seen == ["Bearer first", "Bearer second"]
