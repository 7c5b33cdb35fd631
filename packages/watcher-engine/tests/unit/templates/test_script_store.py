"""Unit tests — InMemoryScriptStore and DirectoryScriptStore."""

from __future__ import annotations

import json

import pytest

from watcher_engine.templates.store import (
    AuthContext,
    DirectoryScriptStore,
    InMemoryScriptStore,
    SavedObject,
    ScriptQuery,
)


def _titles(result) -> list[str]:
    return sorted(o.attributes["title"] for o in result.saved_objects)


@pytest.mark.unit
class TestInMemoryScriptStore:
    async def test_search_returns_near_matches(self) -> None:
        store = InMemoryScriptStore()
        store.add_script("a", "Errors", "{}")
        store.add_script("b", "errors-eu", "{}")
        store.add_script("c", "latency", "{}")

        result = await store.find(ScriptQuery(search="errors"), AuthContext())
        assert _titles(result) == ["Errors", "errors-eu"]
        assert result.total == 2

    async def test_only_script_objects(self) -> None:
        store = InMemoryScriptStore([SavedObject("d", "dashboard", {"title": "errors"})])
        result = await store.find(ScriptQuery(search="errors"), AuthContext())
        assert result.saved_objects == []

    async def test_empty_search_matches_everything(self) -> None:
        store = InMemoryScriptStore()
        store.add_script("a", "x", "{}")
        store.add_script("b", "y", "{}")
        assert (await store.find(ScriptQuery(search=""), AuthContext())).total == 2

    async def test_required_roles(self) -> None:
        store = InMemoryScriptStore(required_roles=["sirenalert"])
        store.add_script("a", "errors", "{}")
        denied = await store.find(ScriptQuery(search="errors"), AuthContext(roles=("guest",)))
        allowed = await store.find(ScriptQuery(search="errors"), AuthContext(roles=("guest", "sirenalert")))
        assert denied.total == 0
        assert allowed.total == 1


@pytest.mark.unit
class TestDirectoryScriptStore:
    async def test_loads_json_and_yaml(self, tmp_path) -> None:
        (tmp_path / "full.json").write_text(
            json.dumps({"id": "s1", "type": "script", "attributes": {"title": "errors", "scriptSource": "{}"}})
        )
        (tmp_path / "short.yaml").write_text("title: errors-eu\nscriptSource: '{}'\n")
        (tmp_path / "notes.txt").write_text("ignored")

        result = await DirectoryScriptStore(tmp_path).find(ScriptQuery(search="errors"), AuthContext())

        assert _titles(result) == ["errors", "errors-eu"]
        ids = sorted(o.id for o in result.saved_objects)
        assert ids == ["s1", "short"]

    async def test_bad_files_are_skipped(self, tmp_path) -> None:
        (tmp_path / "broken.json").write_text("{not json")
        (tmp_path / "list.yaml").write_text("- a\n- b\n")
        (tmp_path / "ok.json").write_text(json.dumps({"title": "errors"}))

        result = await DirectoryScriptStore(tmp_path).find(ScriptQuery(search="errors"), AuthContext())
        assert _titles(result) == ["errors"]

    async def test_missing_directory_is_empty(self, tmp_path) -> None:
        store = DirectoryScriptStore(tmp_path / "nowhere")
        assert (await store.find(ScriptQuery(search="x"), AuthContext())).total == 0

    async def test_changes_are_picked_up(self, tmp_path) -> None:
        store = DirectoryScriptStore(tmp_path)
        query = ScriptQuery(search="errors")
        assert (await store.find(query, AuthContext())).total == 0
        (tmp_path / "new.json").write_text(json.dumps({"title": "errors"}))
        assert (await store.find(query, AuthContext())).total == 1
