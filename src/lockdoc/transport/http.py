"""
REST HTTP client for ledger data providers.
"""

from typing import Any, Optional

import httpx

from lockdoc.errors import ProviderUnavailable

DEFAULT_BASE_URL = "https://api.whatsonchain.com/v1/bsv"
USER_AGENT = "lockdoc/0.1.0"


class HttpStatusError(ProviderUnavailable):
    def __init__(self, status_code: int, body: str):
        super().__init__(f"HTTP {status_code}: {body[:200]}", details={"status_code": status_code, "body": body})
        self.status_code = status_code
        self.body = body


class HttpClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ProviderUnavailable(f"{method} {path} failed: {e}") from e
        if resp.status_code >= 400:
            raise HttpStatusError(resp.status_code, resp.text)
        return resp

    async def get(self, path: str) -> Any:
        resp = await self._request("GET", path)
        return resp.json()

    async def get_text(self, path: str) -> str:
        resp = await self._request("GET", path)
        return resp.text

    async def post(self, path: str, body: Optional[dict[str, Any]] = None) -> Any:
        resp = await self._request("POST", path, json=body, headers={"Content-Type": "application/json"})
        return resp.json()

    async def close(self) -> None:
        await self._client.aclose()
