# src/flowwire/transport/http_transport.py

from __future__ import annotations

import json
import logging
import time
from typing import Any

import httpx

from ..errors import HttpError, NetworkError, ProtocolError
from .models import RequestDescriptor

logger = logging.getLogger(__name__)


def _make_timeout_obj(total_s: float, connect_s: float = 5.0) -> httpx.Timeout:
    # keep connect <= total so a dead host fails fast
    connect_s = min(connect_s, total_s)
    return httpx.Timeout(total_s, connect=connect_s)


def _is_json_response(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type") or ""
    return "application/json" in content_type


class HttpTransport:
    """
    JSON-over-HTTP transport for the backend API.

    One call to execute() is one exchange: no retries, no queueing. Failures
    are mapped onto the transient error kinds:
    - connectivity/timeouts -> NetworkError
    - non-2xx responses     -> HttpError(status)
    - undecodable JSON      -> ProtocolError

    The CSRF token is sent on every request and refreshed whenever a JSON
    response carries a "csrf" field.
    """

    def __init__(
        self,
        base_url: str,
        *,
        csrf_token: str | None = None,
        api_key: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.csrf_token = csrf_token or ""
        self.api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=_make_timeout_obj(float(timeout)))

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def set_csrf_token(self, token: str) -> None:
        self.csrf_token = token

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith("http"):
            return endpoint
        return f"{self.base_url}{endpoint}"

    def _headers(self, descriptor: RequestDescriptor) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-CSRF-Token": self.csrf_token,
        }
        api_key = descriptor.api_key or self.api_key
        if api_key:
            headers["X-API-Key"] = api_key
        headers.update(descriptor.headers)
        return headers

    async def execute(self, descriptor: RequestDescriptor) -> Any:
        url = self._url(descriptor.endpoint)

        content: str | None = None
        if descriptor.body is not None and descriptor.method != "GET":
            if isinstance(descriptor.body, str):
                content = descriptor.body
            else:
                content = json.dumps(descriptor.body, ensure_ascii=False)

        try:
            response = await self._client.request(
                descriptor.method,
                url,
                params=descriptor.params,
                headers=self._headers(descriptor),
                content=content,
            )
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", descriptor.method, url, e.__class__.__name__)
            raise NetworkError("Network error. Please check your connection.") from e

        if not _is_json_response(response):
            if not response.is_success:
                raise HttpError(response.status_code, f"HTTP {response.status_code}: {response.reason_phrase}")
            return {"success": True, "data": response.text}

        try:
            data = response.json()
        except ValueError as e:
            raise ProtocolError(f"Malformed JSON from {descriptor.method} {url}") from e

        if not response.is_success:
            message = None
            if isinstance(data, dict):
                message = data.get("error")
            raise HttpError(response.status_code, str(message) if message else None, payload=data)

        if isinstance(data, dict) and data.get("csrf"):
            self.set_csrf_token(str(data["csrf"]))

        return data

    # ---- verb helpers ----

    async def get(self, endpoint: str, *, params: dict[str, Any] | None = None, **kwargs: Any) -> Any:
        return await self.execute(RequestDescriptor(endpoint, "GET", params=params, **kwargs))

    async def post(self, endpoint: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.execute(RequestDescriptor(endpoint, "POST", body=body, **kwargs))

    async def put(self, endpoint: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.execute(RequestDescriptor(endpoint, "PUT", body=body, **kwargs))

    async def delete(self, endpoint: str, **kwargs: Any) -> Any:
        return await self.execute(RequestDescriptor(endpoint, "DELETE", **kwargs))

    # ---- status endpoints used by the poller ----

    async def check_task_status(self, task_id: str, provider: str = "runninghub") -> Any:
        return await self.get("/proxy/status.php", params={"task_id": task_id, "provider": provider})

    async def get_execution_status(self, execution_id: str) -> Any:
        return await self.get("/workflows/status.php", params={"id": execution_id})

    async def get_server_status(self) -> Any:
        return await self.get("/status.php")

    async def ping(self) -> dict[str, Any]:
        """Connectivity probe. Never raises: failures come back as success=False."""
        t0 = time.monotonic()
        try:
            await self.get("/ping.php")
        except Exception as e:
            return {"success": False, "error": str(e)}
        return {"success": True, "latency": time.monotonic() - t0}
