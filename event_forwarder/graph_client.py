"""Async Microsoft Graph client: MSAL client-credentials auth over httpx."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog
from msal import ConfidentialClientApplication

from .config import GraphConfig

logger = structlog.get_logger()

SCOPES = ["https://graph.microsoft.com/.default"]

# Immutable IDs keep a message's id stable when rules move it between folders.
DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Prefer": 'IdType="ImmutableId", outlook.body-content-type="text"',
}


class GraphAuthError(RuntimeError):
    """Raised when no access token could be acquired."""


class GraphClient:
    """Thin authenticated wrapper around :class:`httpx.AsyncClient`.

    Non-2xx responses raise :class:`httpx.HTTPStatusError`.  MSAL keeps
    its own in-memory token cache, so acquiring a token per request only
    hits the identity platform when the cached token is near expiry.
    """

    def __init__(self, config: GraphConfig) -> None:
        self._config = config
        self._client: httpx.AsyncClient | None = None
        self._msal: ConfidentialClientApplication | None = None

    @property
    def mailbox_path(self) -> str:
        return f"/users/{self._config.mailbox}"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        self._msal = await asyncio.to_thread(
            ConfidentialClientApplication,
            client_id=self._config.client_id,
            client_credential=self._config.client_secret.get_secret_value(),
            authority=self._config.authority,
        )
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=httpx.Timeout(self._config.timeout_seconds),
            headers=DEFAULT_HEADERS,
        )
        logger.info("graph_client_started", mailbox=self._config.mailbox)

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("graph_client_stopped")

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def _acquire_token(self) -> str:
        assert self._msal is not None, "Graph client not started"
        result = await asyncio.to_thread(self._msal.acquire_token_for_client, scopes=SCOPES)
        if "access_token" not in result:
            error = result.get("error_description") or result.get("error") or "unknown error"
            raise GraphAuthError(f"Failed to acquire Graph token: {error}")
        return result["access_token"]

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send an authenticated request.  *url* may be relative or absolute."""
        assert self._client is not None, "Graph client not started"
        token = await self._acquire_token()
        request_headers = {"Authorization": f"Bearer {token}", **(headers or {})}

        response = await self._client.request(
            method,
            url,
            params=params,
            json=json,
            headers=request_headers,
        )
        response.raise_for_status()
        logger.debug("graph_request", method=method, url=str(response.url), status=response.status_code)
        return response

    async def get_json(self, url: str, **kwargs: Any) -> dict[str, Any]:
        response = await self.request("GET", url, **kwargs)
        return response.json()

    async def post_json(self, url: str, body: dict[str, Any]) -> dict[str, Any]:
        response = await self.request("POST", url, json=body)
        return response.json() if response.content else {}

    async def patch(self, url: str, body: dict[str, Any]) -> None:
        await self.request("PATCH", url, json=body)

    async def delete(self, url: str) -> None:
        await self.request("DELETE", url)

    async def get_bytes(self, url: str) -> bytes:
        response = await self.request("GET", url)
        return response.content
