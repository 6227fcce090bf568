"""
Tests for the storefront API client
"""

import httpx
import pytest

from storefront.utils.error_handler import ApiError, ErrorKind
from tests.conftest import envelope


class TestApiClient:
    """Test ApiClient envelope handling and error classification"""

    async def test_unwraps_success_envelope(self, api_factory):
        api = api_factory(lambda request: httpx.Response(200, json=envelope([{"id": 1}], meta={"total": 1})))

        response = await api.get("/products", params={"page": 1})

        assert response.data == [{"id": 1}]
        assert response.meta == {"total": 1}
        assert response.status_code == 200

    async def test_bearer_token_from_session(self, api_factory, session):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            seen["url"] = str(request.url)
            return httpx.Response(200, json=envelope({}))

        api = api_factory(handler)
        await api.get("/cart", session=session)

        assert seen["auth"] == "Bearer customer-token"
        assert seen["url"] == "https://api.test.example.com/api/cart"

    async def test_no_auth_header_for_guests(self, api_factory):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=envelope([]))

        await api_factory(handler).get("/products")
        assert seen["auth"] is None

    async def test_empty_body_is_success(self, api_factory, session):
        api = api_factory(lambda request: httpx.Response(204))
        response = await api.delete("/cart", session=session)
        assert response.data is None
        assert response.status_code == 204

    @pytest.mark.parametrize(
        "status,kind",
        [
            (400, ErrorKind.VALIDATION),
            (401, ErrorKind.AUTH),
            (403, ErrorKind.AUTH),
            (404, ErrorKind.VALIDATION),
            (422, ErrorKind.VALIDATION),
            (500, ErrorKind.SERVER),
            (503, ErrorKind.SERVER),
        ],
    )
    async def test_status_classification(self, api_factory, status, kind):
        body = {"success": False, "error": {"code": "E", "message": "Nope", "details": {"field": "email"}}}
        api = api_factory(lambda request: httpx.Response(status, json=body))

        with pytest.raises(ApiError) as exc_info:
            await api.post("/orders", json={})

        error = exc_info.value
        assert error.kind is kind
        assert error.status_code == status
        assert error.message == "Nope"
        assert error.error_code == "E"
        assert error.details == {"field": "email"}

    async def test_error_without_body(self, api_factory):
        api = api_factory(lambda request: httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(ApiError) as exc_info:
            await api.get("/cart")
        assert exc_info.value.kind is ErrorKind.SERVER
        assert exc_info.value.error_code == "HTTP_502"

    async def test_non_json_success_is_malformed(self, api_factory):
        api = api_factory(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(ApiError) as exc_info:
            await api.get("/cart")
        assert exc_info.value.kind is ErrorKind.SERVER
        assert exc_info.value.error_code == "MALFORMED_RESPONSE"

    async def test_missing_success_flag_is_malformed(self, api_factory):
        api = api_factory(lambda request: httpx.Response(200, json={"data": []}))

        with pytest.raises(ApiError) as exc_info:
            await api.get("/cart")
        assert exc_info.value.error_code == "MALFORMED_RESPONSE"

    async def test_success_false_on_2xx_is_server_error(self, api_factory):
        body = {"success": False, "error": {"code": "CART_LOCKED", "message": "Cart is locked"}}
        api = api_factory(lambda request: httpx.Response(200, json=body))

        with pytest.raises(ApiError) as exc_info:
            await api.get("/cart")
        assert exc_info.value.kind is ErrorKind.SERVER
        assert exc_info.value.error_code == "CART_LOCKED"

    async def test_transport_error_is_network(self, api_factory):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ApiError) as exc_info:
            await api_factory(handler).get("/cart")
        assert exc_info.value.kind is ErrorKind.NETWORK
        assert exc_info.value.error_code == "NETWORK_ERROR"
        assert exc_info.value.is_retryable

    async def test_timeout_is_network(self, api_factory):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(ApiError) as exc_info:
            await api_factory(handler).post("/orders", json={})
        assert exc_info.value.kind is ErrorKind.NETWORK
        assert exc_info.value.error_code == "TIMEOUT"
