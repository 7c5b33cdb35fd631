"""Search transport selection and the client handed to templates.

Each execution resolves its transport once:

STANDARD   — ``backend.search``
FEDERATED  — ``backend.federated_search``; chosen only when federation is
             enabled, the backend supports it, and the installed plugin
             version satisfies the configured specifier

Detection failures are logged as warnings and resolve to STANDARD.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from watcher_engine.config import FederationConfig
from watcher_engine.exceptions import (
    FederationDetectionError,
    SearchBackendError,
    WatcherEngineError,
)
from watcher_engine.logging import get_logger
from watcher_engine.search.backend import SearchBackend

log = get_logger(__name__)


class SearchTransport(str, Enum):
    STANDARD = "standard"
    FEDERATED = "federated"


def plugin_release(version: str) -> Version:
    """Parse a plugin version.

    Federation plugin builds are published as ``<backend version>-<plugin
    version>`` (``7.17.10-27.5``); only the part after the last dash is the
    plugin's own release.
    """
    release = version.rsplit("-", 1)[-1]
    try:
        return Version(release)
    except InvalidVersion as exc:
        raise FederationDetectionError(f"Unparseable plugin version '{version}'") from exc


async def detect_federation(backend: SearchBackend, config: FederationConfig) -> bool:
    """Return True when the federated transport can be used.

    Raises:
        FederationDetectionError: Probing failed or the plugin version does
            not satisfy ``config.version_specifier``.
    """
    if not backend.supports_federation:
        return False

    versions = await backend.plugin_versions()
    installed = versions.get(config.plugin_name)
    if installed is None:
        return False

    try:
        specifier = SpecifierSet(config.version_specifier)
    except InvalidSpecifier as exc:
        raise FederationDetectionError(
            f"Invalid federation version specifier '{config.version_specifier}'"
        ) from exc

    if plugin_release(installed) not in specifier:
        raise FederationDetectionError(
            f"{config.plugin_name} {installed} does not satisfy '{config.version_specifier}'",
            context={"plugin": config.plugin_name, "version": installed},
        )
    return True


async def select_transport(backend: SearchBackend, config: FederationConfig) -> SearchTransport:
    """Pick the transport for one execution.  Never raises."""
    if not config.enabled:
        return SearchTransport.STANDARD
    try:
        if await detect_federation(backend, config):
            return SearchTransport.FEDERATED
    except Exception as exc:
        log.warning(
            "federation_detection_failed",
            plugin=config.plugin_name,
            error=str(exc),
            fallback=SearchTransport.STANDARD.value,
        )
    return SearchTransport.STANDARD


class SearchClient:
    """The ``client`` argument of ``WatcherTemplate.search``.

    Usage inside a template::

        response = await client.search({"index": ["logs"], "body": {...}})
    """

    def __init__(
        self,
        backend: SearchBackend,
        transport: SearchTransport = SearchTransport.STANDARD,
    ) -> None:
        self._backend = backend
        self._transport = transport

    @property
    def transport(self) -> SearchTransport:
        return self._transport

    async def search(self, request: Mapping[str, Any]) -> dict[str, Any]:
        """Run *request* (``{"index": ..., "body": ...}``) through the selected transport.

        Raises:
            SearchBackendError: Any transport or backend failure.
        """
        index = request.get("index")
        if isinstance(index, str):
            index = [index]
        body = dict(request.get("body") or {})

        if self._transport is SearchTransport.FEDERATED:
            method = self._backend.federated_search
        else:
            method = self._backend.search

        try:
            return await method(list(index or []), body)
        except WatcherEngineError as exc:
            if isinstance(exc, SearchBackendError):
                raise
            raise SearchBackendError(exc.message, context=exc.context) from exc
        except Exception as exc:
            raise SearchBackendError(
                f"{self._transport.value} search failed: {exc}",
                context={"transport": self._transport.value},
            ) from exc
