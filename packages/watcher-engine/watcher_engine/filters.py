"""Filter compiler — filter descriptors to boolean query clauses.

A task's ``filters`` list holds dashboard-style descriptors::

    {"meta": {"type": "phrase", "negate": false, "disabled": false},
     "query": {"match_phrase": {"status": "open"}}}

    {"meta": {"type": "exists"}, "exists": {"field": "owner"}}

    {"meta": {"type": "phrase"}, "join_sequence": [...]}   # kind join_sequence

They are parsed into a tagged variant:

PhraseFilter  — the clause is carried verbatim in ``query``
ClauseFilter  — the clause is ``{kind: body}`` where ``body`` is the
                descriptor field named after the kind

A ``join_sequence`` payload always wins over the declared ``meta.type``.  Only
a missing, null, false, zero or empty-string payload is ignored: empty lists
and empty mappings still count.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Union

from watcher_engine.exceptions import FilterCompilationError

PHRASE = "phrase"
JOIN_SEQUENCE = "join_sequence"
_ABSENT_PAYLOADS = (None, False, 0, "")


@dataclass(frozen=True)
class FilterMeta:
    type: str | None = None
    negate: bool = False
    disabled: bool = False


@dataclass(frozen=True)
class PhraseFilter:
    meta: FilterMeta
    query: dict[str, Any]
    kind: str = PHRASE

    def clause(self) -> dict[str, Any]:
        return self.query


@dataclass(frozen=True)
class ClauseFilter:
    meta: FilterMeta
    kind: str
    body: Any

    def clause(self) -> dict[str, Any]:
        return {self.kind: self.body}


FilterDescriptor = Union[PhraseFilter, ClauseFilter]


@dataclass
class CompiledFilters:
    must: list[dict[str, Any]] = field(default_factory=list)
    must_not: list[dict[str, Any]] = field(default_factory=list)


def _has_payload(value: Any) -> bool:
    if isinstance(value, (list, dict)):
        return True
    return value not in _ABSENT_PAYLOADS


def parse_filter(raw: Mapping[str, Any], position: int | None = None) -> FilterDescriptor:
    """Parse one raw descriptor.  *raw* is never modified."""
    meta_raw = raw.get("meta") or {}
    meta = FilterMeta(
        type=meta_raw.get("type"),
        negate=bool(meta_raw.get("negate", False)),
        disabled=bool(meta_raw.get("disabled", False)),
    )

    kind = JOIN_SEQUENCE if _has_payload(raw.get(JOIN_SEQUENCE)) else meta.type
    if not kind:
        raise FilterCompilationError("missing meta.type", position)

    if kind == PHRASE:
        if "query" not in raw:
            raise FilterCompilationError("phrase filter has no 'query'", position)
        return PhraseFilter(meta=meta, query=copy.deepcopy(raw["query"]))

    if kind not in raw:
        raise FilterCompilationError(f"filter of type '{kind}' has no '{kind}' payload", position)
    return ClauseFilter(meta=meta, kind=kind, body=copy.deepcopy(raw[kind]))


def compile_filters(filters: Iterable[Mapping[str, Any] | FilterDescriptor] | None) -> CompiledFilters:
    """Split *filters* into must / must-not clauses, preserving input order.

    Disabled filters are dropped before parsing, so a disabled descriptor
    never fails compilation.
    """
    compiled = CompiledFilters()
    for position, item in enumerate(filters or []):
        if isinstance(item, (PhraseFilter, ClauseFilter)):
            descriptor = item
        else:
            if (item.get("meta") or {}).get("disabled"):
                continue
            descriptor = parse_filter(item, position)

        if descriptor.meta.disabled:
            continue
        if descriptor.meta.negate:
            compiled.must_not.append(descriptor.clause())
        else:
            compiled.must.append(descriptor.clause())
    return compiled
