"""Watcher templates — plugin interface, registry, script stores and resolver.

Package structure
-----------------
templates/
  base.py      — WatcherTemplate ABC (search + condition hooks)
  builtin.py   — threshold, absence, aggregation_threshold
  registry.py  — TemplateRegistry (explicit + entry-point registration)
  store.py     — ScriptStore ABC, in-memory and directory stores
  resolver.py  — TemplateResolver (exact-title lookup → plugin instance)
"""

from watcher_engine.templates.base import WatcherTemplate
from watcher_engine.templates.builtin import (
    AbsenceTemplate,
    AggregationThresholdTemplate,
    ThresholdTemplate,
)
from watcher_engine.templates.registry import TemplateRegistry, default_registry
from watcher_engine.templates.resolver import ScriptSource, TemplateResolver
from watcher_engine.templates.store import (
    AuthContext,
    DirectoryScriptStore,
    FindResult,
    InMemoryScriptStore,
    SavedObject,
    ScriptQuery,
    ScriptStore,
)

__all__ = [
    "AbsenceTemplate",
    "AggregationThresholdTemplate",
    "AuthContext",
    "DirectoryScriptStore",
    "FindResult",
    "InMemoryScriptStore",
    "SavedObject",
    "ScriptQuery",
    "ScriptSource",
    "ScriptStore",
    "TemplateRegistry",
    "TemplateResolver",
    "ThresholdTemplate",
    "WatcherTemplate",
    "default_registry",
]
