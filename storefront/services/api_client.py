"""
HTTP client for the storefront REST API

Wraps ``httpx.AsyncClient``: adds the bearer token of the calling session,
unwraps the ``{success, data, meta}`` envelope and turns every failure into
an ``ApiError`` with one of the closed ``ErrorKind`` values.
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from storefront.utils.constants import RetrySettings
from storefront.utils.error_handler import ApiError, ErrorKind
from storefront.utils.logger import get_structured_logger

log = get_structured_logger(__name__)


@dataclass
class ApiResponse:
    """Unwrapped success envelope"""

    data: Any = None
    meta: Optional[Dict[str, Any]] = None
    status_code: int = 200


class ApiClient:
    """Thin async client; one instance is shared by all services"""

    def __init__(
        self,
        base_url: str,
        timeout: float = RetrySettings.CONNECTION_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(self, path: str, *, session=None, params: Optional[Dict[str, Any]] = None) -> ApiResponse:
        return await self.request("GET", path, session=session, params=params)

    async def post(self, path: str, *, session=None, json: Any = None) -> ApiResponse:
        return await self.request("POST", path, session=session, json=json)

    async def put(self, path: str, *, session=None, json: Any = None) -> ApiResponse:
        return await self.request("PUT", path, session=session, json=json)

    async def patch(self, path: str, *, session=None, json: Any = None) -> ApiResponse:
        return await self.request("PATCH", path, session=session, json=json)

    async def delete(self, path: str, *, session=None) -> ApiResponse:
        return await self.request("DELETE", path, session=session)

    async def request(
        self,
        method: str,
        path: str,
        *,
        session=None,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> ApiResponse:
        headers = {}
        token = getattr(session, "token", None)
        if token:
            headers["Authorization"] = f"Bearer {token}"

        started = time.perf_counter()
        try:
            response = await self._client.request(method, path, params=params, json=json, headers=headers)
        except httpx.HTTPError as exc:
            duration_ms = (time.perf_counter() - started) * 1000
            log.warning(
                "api_request_failed",
                method=method,
                path=path,
                error=type(exc).__name__,
                duration_ms=round(duration_ms, 1),
            )
            raise ApiError.from_transport(exc) from exc

        duration_ms = (time.perf_counter() - started) * 1000
        log_method = log.warning if duration_ms > RetrySettings.SLOW_REQUEST_THRESHOLD_MS else log.debug
        log_method(
            "api_request",
            method=method,
            path=path,
            status=response.status_code,
            duration_ms=round(duration_ms, 1),
        )
        return self._unwrap(response)

    @staticmethod
    def _unwrap(response: httpx.Response) -> ApiResponse:
        status = response.status_code
        if status == 204 or not response.content:
            if response.is_success:
                return ApiResponse(status_code=status)
            raise ApiError.from_response(status, None)

        try:
            payload = response.json()
        except ValueError as exc:
            if response.is_success:
                raise ApiError.malformed(status, "response is not JSON") from exc
            raise ApiError.from_response(status, None) from exc

        if not response.is_success:
            raise ApiError.from_response(status, payload)

        if not isinstance(payload, dict) or "success" not in payload:
            raise ApiError.malformed(status, "missing success flag")
        if payload["success"] is not True:
            # 2xx with success=false: keep the error body, classify as a server fault
            error = ApiError.from_response(status, payload)
            error.kind = ErrorKind.SERVER
            raise error

        meta = payload.get("meta")
        return ApiResponse(
            data=payload.get("data"),
            meta=meta if isinstance(meta, dict) else None,
            status_code=status,
        )
