"""Search request assembler.

Turns a task's base request::

    {
        "index": "logs-*",
        "time": {"range": {"@timestamp": {}}},
        "queries": [...],            # optional
        "filters": [...],            # optional filter descriptors
    }

into the request actually sent to the backend::

    {
        "index": ["logs-*"],
        "body": {
            "query": {"bool": {
                "must": [time_clause, *queries_or_match_all, *filter_must],
                "must_not": [*filter_must_not],
            }},
            "size": 10000,
        },
    }
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from watcher_engine.exceptions import SearchRequestError
from watcher_engine.filters import CompiledFilters, compile_filters
from watcher_engine.schedule import previous_fire_times
from watcher_engine.timewindow import TimeRange, build_time_range

MAX_RESULT_SIZE = 10000
MATCH_ALL: dict[str, Any] = {"match_all": {}}


@dataclass
class SearchRequest:
    index: list[str]
    body: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"index": list(self.index), "body": self.body}


def discover_time_field(request: Mapping[str, Any]) -> str:
    """Return the lone field name under ``request["time"]["range"]``."""
    time_clause = request.get("time")
    if not isinstance(time_clause, Mapping) or not isinstance(time_clause.get("range"), Mapping):
        raise SearchRequestError("search request has no 'time.range' clause")
    keys = list(time_clause["range"])
    if len(keys) != 1:
        raise SearchRequestError(
            f"'time.range' must name exactly one field, got {keys}",
            context={"fields": keys},
        )
    return keys[0]


def assemble_request(
    request: Mapping[str, Any],
    time_range: TimeRange,
    compiled: CompiledFilters,
) -> SearchRequest:
    """Build the backend request.  *request* is not modified."""
    if "index" not in request:
        raise SearchRequestError("search request has no 'index'")

    time_clause = copy.deepcopy(dict(request["time"]))
    time_clause["range"] = {time_range.field: time_range.bounds()}

    must: list[dict[str, Any]] = [time_clause]
    queries = request.get("queries")
    if queries is not None:
        must.extend(copy.deepcopy(list(queries)))
    else:
        must.append(copy.deepcopy(MATCH_ALL))
    must.extend(compiled.must)

    body = {
        "query": {
            "bool": {
                "must": must,
                "must_not": list(compiled.must_not),
            }
        },
        "size": MAX_RESULT_SIZE,
    }
    return SearchRequest(index=[request["index"]], body=body)


def build_search_params(
    request: Mapping[str, Any],
    schedule: str,
    async_mode: bool = False,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Return the params handed to a template's hooks.

    ``{"defaultRequest": <SearchRequest dict>, **request}`` — keys of the
    caller's request override the computed ones.  The ``time`` fragment in
    the result carries the computed range.
    """
    field_name = discover_time_field(request)
    fire_times = previous_fire_times(schedule, now)
    time_range = build_time_range(field_name, fire_times, async_mode=async_mode, now=now)
    compiled = compile_filters(request.get("filters"))
    default_request = assemble_request(request, time_range, compiled)

    params = copy.deepcopy(dict(request))
    params["time"] = copy.deepcopy(default_request.body["query"]["bool"]["must"][0])
    return {"defaultRequest": default_request.to_dict(), **params}
