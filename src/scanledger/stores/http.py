"""HttpStore — PersistenceStore over a remote key/value service.

Self-contained: raw httpx, no client SDK. Lets a station keep its ledger
on a small server so a replaced device picks up where the last one left.

Endpoints (relative to ``base_url``):
- Read:  GET    /kv/{namespace}/{key} -> JSON ``{"value": "..."}``; 404 = absent
- Write: PUT    /kv/{namespace}/{key} -> JSON body ``{"value": "..."}``
- Delete: DELETE /kv/{namespace}/{key}; 404 = already absent
- Clear: DELETE /kv/{namespace}
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from scanledger.constants import DEFAULT_NAMESPACE
from scanledger.store import (
    StoreAuthError,
    StoreConnectionError,
    StoreError,
    StoreServerError,
    StoreTimeoutError,
)

logger = logging.getLogger(__name__)

_STATUS_MAP: dict[int, type[StoreError]] = {
    401: StoreAuthError,
    403: StoreAuthError,
}


class HttpStore:
    """Remote PersistenceStore using bearer-token auth."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> None:
        self._namespace = namespace
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=httpx.Timeout(connect=5.0, read=10.0, write=10.0, pool=5.0),
        )

    def _key_path(self, key: str) -> str:
        return f"/kv/{quote(self._namespace, safe='')}/{quote(key, safe='')}"

    async def _request(
        self,
        method: str,
        endpoint: str,
        json_data: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send a request and map errors to the StoreError hierarchy."""
        try:
            response = await self._client.request(method, endpoint, json=json_data)
        except httpx.ConnectError as exc:
            raise StoreConnectionError(str(exc)) from exc
        except httpx.TimeoutException as exc:
            raise StoreTimeoutError(str(exc)) from exc

        if response.status_code >= 400 and response.status_code != 404:
            body = response.text
            exc_cls = _STATUS_MAP.get(response.status_code)
            if exc_cls is not None:
                raise exc_cls(body, status_code=response.status_code)
            if response.status_code >= 500:
                raise StoreServerError(body, status_code=response.status_code)
            raise StoreError(body, status_code=response.status_code)
        return response

    async def get(self, key: str) -> str | None:
        response = await self._request("GET", self._key_path(key))
        if response.status_code == 404:
            return None
        value = response.json().get("value")
        if value is not None and not isinstance(value, str):
            logger.warning("Store returned non-string value for %s; ignoring.", key)
            return None
        return value

    async def set(self, key: str, value: str) -> None:
        await self._request("PUT", self._key_path(key), json_data={"value": value})

    async def delete(self, key: str) -> None:
        await self._request("DELETE", self._key_path(key))

    async def clear(self) -> None:
        await self._request("DELETE", f"/kv/{quote(self._namespace, safe='')}")

    # -- lifecycle ------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> HttpStore:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
