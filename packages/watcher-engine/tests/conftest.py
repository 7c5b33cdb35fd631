"""Shared pytest fixtures for the watcher-engine test suite."""

from __future__ import annotations

import copy
import json
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest

from watcher_engine.config import FederationConfig, Settings, override_settings
from watcher_engine.engine import WatcherEngine
from watcher_engine.models import Task
from watcher_engine.search.backend import SearchBackend
from watcher_engine.templates.registry import default_registry
from watcher_engine.templates.resolver import TemplateResolver
from watcher_engine.templates.store import InMemoryScriptStore

# 10:07:30 UTC: "every 5 minutes" last fired at 10:05 and 10:00.
FIXED_NOW = datetime(2024, 3, 1, 10, 7, 30, tzinfo=timezone.utc)


class FakeBackend(SearchBackend):
    """In-process SearchBackend that records every call."""

    def __init__(
        self,
        response: dict[str, Any] | None = None,
        plugins: dict[str, str] | None = None,
        supports_federation: bool = False,
        user: str | None = None,
    ) -> None:
        self.response = response if response is not None else hits_response(0)
        self.plugins = plugins or {}
        self.supports_federation = supports_federation
        self.user = user
        self.searches: list[tuple[str, list[str], dict[str, Any], str | None]] = []
        self.impersonated: list[str] = []
        self.indexed: list[tuple[str, dict[str, Any]]] = []
        self.search_error: Exception | None = None

    async def search(self, index, body):
        return self._record("standard", index, body)

    async def federated_search(self, index, body):
        return self._record("federated", index, body)

    async def impersonate(self, user_id):
        self.impersonated.append(user_id)
        scoped = FakeBackend(self.response, self.plugins, self.supports_federation, user=user_id)
        scoped.searches = self.searches
        scoped.search_error = self.search_error
        return scoped

    async def plugin_versions(self):
        return dict(self.plugins)

    async def index_document(self, index, document):
        self.indexed.append((index, document))
        return {"result": "created"}

    def _record(self, transport, index, body):
        self.searches.append((transport, list(index), copy.deepcopy(body), self.user))
        if self.search_error is not None:
            raise self.search_error
        return copy.deepcopy(self.response)


def hits_response(total: int) -> dict[str, Any]:
    return {
        "took": 3,
        "timed_out": False,
        "hits": {
            "total": {"value": total, "relation": "eq"},
            "hits": [{"_id": str(i), "_source": {"status": "open"}} for i in range(total)],
        },
    }


def make_task(**overrides: Any) -> Task:
    data: dict[str, Any] = {
        "id": "watcher-1",
        "title": "Open tickets",
        "custom": {"type": "threshold-v1", "params": {"threshold": 1}},
        "input": {
            "search": {
                "request": {
                    "index": "tickets",
                    "time": {"range": {"created_at": {}}},
                    "filters": [
                        {
                            "meta": {"type": "phrase", "negate": False, "disabled": False},
                            "query": {"term": {"status": "open"}},
                        }
                    ],
                }
            }
        },
        "trigger": {"schedule": {"later": "every 5 minutes"}},
        "impersonate": False,
        "actions": {"email_admin": {"email": {"to": "ops@example.com"}}},
    }
    data.update(overrides)
    return Task.model_validate(data)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings() -> Settings:
    settings = Settings(
        federation=FederationConfig(enabled=True, version_specifier=">=20.0"),
        logging={"level": "debug", "format": "console"},
    )
    override_settings(settings)
    return settings


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend(response=hits_response(3))


@pytest.fixture
def script_store() -> InMemoryScriptStore:
    store = InMemoryScriptStore()
    store.add_script("s1", "threshold-v1", json.dumps({"template": "threshold", "options": {"operator": "gte"}}))
    store.add_script("s2", "threshold-v1-legacy", json.dumps({"template": "absence"}))
    store.add_script("s3", "silence", json.dumps({"template": "absence"}))
    return store


@pytest.fixture
def resolver(script_store: InMemoryScriptStore) -> TemplateResolver:
    return TemplateResolver(script_store, default_registry())


@pytest.fixture
def alarm_sink() -> AsyncMock:
    sink = AsyncMock()
    sink.log_alarm = AsyncMock()
    return sink


@pytest.fixture
def dispatcher() -> AsyncMock:
    d = AsyncMock()
    d.dispatch = AsyncMock()
    return d


@pytest.fixture
def engine(
    backend: FakeBackend,
    resolver: TemplateResolver,
    alarm_sink: AsyncMock,
    dispatcher: AsyncMock,
    test_settings: Settings,
) -> WatcherEngine:
    return WatcherEngine(
        backend=backend,
        resolver=resolver,
        alarm_sink=alarm_sink,
        dispatcher=dispatcher,
        settings=test_settings,
    )
