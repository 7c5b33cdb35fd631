"""Script stores — where template script records live.

The engine only needs ``find``: a title-scoped search over records of kind
``"script"``.  Like a full-text search it may return near matches, so callers
must filter on the exact title themselves.

InMemoryScriptStore   — records held in a dict (embedding, tests)
DirectoryScriptStore  — one JSON / YAML saved object per file, re-read on
                        every lookup
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from watcher_engine.logging import get_logger

log = get_logger(__name__)

SCRIPT_TYPE = "script"


@dataclass(frozen=True)
class AuthContext:
    """Credentials presented to the store for a lookup."""

    roles: tuple[str, ...] = ()
    user: str | None = None


@dataclass(frozen=True)
class ScriptQuery:
    type: str = SCRIPT_TYPE
    search: str = ""
    search_fields: tuple[str, ...] = ("title",)


@dataclass
class SavedObject:
    id: str
    type: str
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass
class FindResult:
    saved_objects: list[SavedObject] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.saved_objects)


class ScriptStore(ABC):
    """Read side of the script store."""

    @abstractmethod
    async def find(self, query: ScriptQuery, auth: AuthContext) -> FindResult:
        """Return the records of ``query.type`` whose search fields match ``query.search``."""


def _matches(obj: SavedObject, query: ScriptQuery) -> bool:
    if obj.type != query.type:
        return False
    tokens = query.search.lower().split()
    if not tokens:
        return True
    for name in query.search_fields:
        value = str(obj.attributes.get(name, "")).lower()
        if any(token in value for token in tokens):
            return True
    return False


class InMemoryScriptStore(ScriptStore):
    """Dict-backed store.

    When ``required_roles`` is set, lookups whose auth context shares none of
    those roles see an empty store.
    """

    def __init__(
        self,
        objects: list[SavedObject] | None = None,
        required_roles: list[str] | None = None,
    ) -> None:
        self._objects: dict[str, SavedObject] = {o.id: o for o in objects or []}
        self._required_roles = set(required_roles or [])

    def add_script(self, object_id: str, title: str, script_source: str) -> SavedObject:
        obj = SavedObject(
            id=object_id,
            type=SCRIPT_TYPE,
            attributes={"title": title, "scriptSource": script_source},
        )
        self._objects[object_id] = obj
        return obj

    def _authorised(self, auth: AuthContext) -> bool:
        return not self._required_roles or bool(self._required_roles & set(auth.roles))

    async def find(self, query: ScriptQuery, auth: AuthContext) -> FindResult:
        if not self._authorised(auth):
            log.debug("script_store_access_denied", roles=list(auth.roles))
            return FindResult()
        return FindResult([o for o in self._objects.values() if _matches(o, query)])


class DirectoryScriptStore(ScriptStore):
    """Reads saved objects from ``*.json`` / ``*.yaml`` / ``*.yml`` files.

    Each file holds either a full saved object::

        {"id": "t1", "type": "script",
         "attributes": {"title": "threshold-v1", "scriptSource": "..."}}

    or just its attributes (``id`` defaults to the file stem, ``type`` to
    ``"script"``).  Unreadable files are logged and skipped.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    async def find(self, query: ScriptQuery, auth: AuthContext) -> FindResult:
        objects = await asyncio.to_thread(self._load_all)
        return FindResult([o for o in objects if _matches(o, query)])

    def _load_all(self) -> list[SavedObject]:
        if not self._directory.is_dir():
            log.warning("script_directory_missing", directory=str(self._directory))
            return []
        objects: list[SavedObject] = []
        for path in sorted(self._directory.iterdir()):
            if path.suffix not in (".json", ".yaml", ".yml"):
                continue
            try:
                objects.append(self._load_file(path))
            except (OSError, ValueError) as exc:
                log.warning("script_file_unreadable", path=str(path), error=str(exc))
        return objects

    @staticmethod
    def _load_file(path: Path) -> SavedObject:
        text = path.read_text(encoding="utf-8")
        if path.suffix == ".json":
            data = json.loads(text)
        else:
            import yaml

            try:
                data = yaml.safe_load(text)
            except yaml.YAMLError as exc:
                raise ValueError(str(exc)) from exc
        if not isinstance(data, dict):
            raise ValueError("saved object must be a mapping")
        if "attributes" in data:
            attributes = data["attributes"]
            if not isinstance(attributes, dict):
                raise ValueError("'attributes' must be a mapping")
        else:
            attributes = {k: v for k, v in data.items() if k not in ("id", "type")}
        return SavedObject(
            id=str(data.get("id", path.stem)),
            type=str(data.get("type", SCRIPT_TYPE)),
            attributes=dict(attributes),
        )
