"""Authenticated JSON transport over httpx."""

from __future__ import annotations

import logging
from typing import Any, Callable

import httpx

from roomchat.client.errors import NetworkError, error_for_status

logger = logging.getLogger("roomchat.client.transport")

TokenProvider = Callable[[], "str | None"]


class ApiClient:
    """Issues requests against the chat API and classifies failures.

    No retries happen here; callers own retry policy.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token_provider = token_provider or (lambda: None)
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    def set_token_provider(self, provider: TokenProvider) -> None:
        self._token_provider = provider

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> dict:
        headers = {"Accept": "application/json"}
        token = self._token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = await self._http.request(
                method, path, json=json, params=params or None, headers=headers
            )
        except httpx.TransportError as err:
            logger.warning("%s %s failed: %s", method, path, err)
            raise NetworkError(str(err) or err.__class__.__name__) from err

        payload = _decode(response)
        if response.is_success:
            return payload
        message = payload.get("error") or response.reason_phrase or "Request failed"
        raise error_for_status(response.status_code, message)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> dict:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> dict:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> dict:
        return await self.request("PUT", path, json=json)

    async def delete(
        self,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> dict:
        return await self.request("DELETE", path, json=json, params=params)

    async def aclose(self) -> None:
        await self._http.aclose()


def _decode(response: httpx.Response) -> dict:
    if not response.content:
        return {}
    try:
        payload = response.json()
    except ValueError:
        return {"error": response.text[:200]} if not response.is_success else {}
    return payload if isinstance(payload, dict) else {"data": payload}
