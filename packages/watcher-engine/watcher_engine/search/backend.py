"""Search backends — the engine's outbound side.

SearchBackend       — abstract interface consumed by the engine
HttpSearchBackend   — Elasticsearch-compatible REST API over httpx.AsyncClient

Impersonation returns a *scoped* backend instead of mutating the shared one,
so concurrent executions for different owners never see each other's
identity.  Scoped backends share the parent's connection pool.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import quote

import httpx

from watcher_engine.config import SearchConfig
from watcher_engine.exceptions import FederationDetectionError, SearchBackendError
from watcher_engine.logging import get_logger

log = get_logger(__name__)


class SearchBackend(ABC):
    """Abstract search backend.  Implementations must be safe for concurrent async use."""

    supports_federation: bool = False

    @abstractmethod
    async def search(self, index: list[str], body: dict[str, Any]) -> dict[str, Any]:
        """Run a standard search and return the decoded response."""

    async def federated_search(self, index: list[str], body: dict[str, Any]) -> dict[str, Any]:
        """Run a search through the federation extension."""
        raise NotImplementedError(f"{self.__class__.__name__} has no federated transport.")

    @abstractmethod
    async def impersonate(self, user_id: str) -> "SearchBackend":
        """Return a backend whose searches run as *user_id*."""

    async def plugin_versions(self) -> dict[str, str]:
        """Return ``{plugin_name: version}`` for the backend's installed plugins."""
        raise FederationDetectionError(
            f"{self.__class__.__name__} does not report installed plugins."
        )

    async def index_document(self, index: str, document: dict[str, Any]) -> dict[str, Any]:
        """Store *document* in *index*."""
        raise NotImplementedError(f"{self.__class__.__name__} cannot index documents.")

    async def close(self) -> None:
        """Release network resources."""


class HttpSearchBackend(SearchBackend):
    """Elasticsearch REST API client.

    Usage::

        backend = HttpSearchBackend.from_config(settings.search)
        response = await backend.search(["logs-*"], {"query": {"match_all": {}}})
        await backend.close()

    Endpoints::

        standard search    POST /<index>/_search
        federated search   POST /siren/<index>/_search
        plugins            GET  /_cat/plugins?format=json
        index a document   POST /<index>/_doc

    Impersonation uses the ``es-security-runas-user`` header.
    """

    supports_federation = True
    RUN_AS_HEADER = "es-security-runas-user"

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:9200",
        *,
        timeout: float = 30.0,
        verify: bool = True,
        auth: tuple[str, str] | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            verify=verify,
            auth=auth,
            transport=transport,
        )
        self._headers: dict[str, str] = dict(headers or {})

    @classmethod
    def from_config(cls, config: SearchConfig) -> "HttpSearchBackend":
        auth = None
        if config.username:
            auth = (config.username, config.password or "")
        return cls(
            config.url,
            timeout=config.timeout_seconds,
            verify=config.verify_tls,
            auth=auth,
        )

    # ------------------------------------------------------------------
    # SearchBackend API
    # ------------------------------------------------------------------

    async def search(self, index: list[str], body: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", f"/{_index_path(index)}/_search", json=body)

    async def federated_search(self, index: list[str], body: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", f"/siren/{_index_path(index)}/_search", json=body)

    async def impersonate(self, user_id: str) -> "HttpSearchBackend":
        scoped = HttpSearchBackend(
            client=self._client,
            headers={**self._headers, self.RUN_AS_HEADER: user_id},
        )
        log.debug("search_backend_impersonating", user_id=user_id)
        return scoped

    async def plugin_versions(self) -> dict[str, str]:
        try:
            rows = await self._request("GET", "/_cat/plugins", params={"format": "json"})
        except SearchBackendError as exc:
            raise FederationDetectionError(f"Cannot list backend plugins: {exc.message}") from exc
        if not isinstance(rows, list):
            raise FederationDetectionError("Unexpected /_cat/plugins response shape.")
        return {
            str(row.get("component")): str(row.get("version"))
            for row in rows
            if isinstance(row, dict) and row.get("component")
        }

    async def index_document(self, index: str, document: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", f"/{quote(index, safe='')}/_doc", json=document)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpSearchBackend":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, headers=self._headers, **kwargs)
        except httpx.HTTPError as exc:
            raise SearchBackendError(
                f"{method} {path} failed: {exc}",
                context={"method": method, "path": path},
            ) from exc

        if response.status_code >= 400:
            raise SearchBackendError(
                f"{method} {path} returned HTTP {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
                context={"method": method, "path": path},
            )
        try:
            return response.json()
        except ValueError as exc:
            raise SearchBackendError(
                f"{method} {path} returned a non-JSON body",
                status_code=response.status_code,
            ) from exc


def _index_path(index: list[str]) -> str:
    if not index:
        raise SearchBackendError("search request names no index")
    return ",".join(quote(str(name), safe="*") for name in index)
