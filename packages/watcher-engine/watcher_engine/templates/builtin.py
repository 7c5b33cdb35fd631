"""Built-in template plugins.

threshold              — hit count compared against a threshold
absence                — fires when the window holds no hits at all
aggregation_threshold  — an aggregation value compared against a threshold

Every setting can come from the script's ``options`` and be overridden per
task through ``custom.params``.
"""

from __future__ import annotations

import copy
import operator
from typing import Any, Callable, Mapping

from watcher_engine.templates.base import WatcherTemplate

_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
    "eq": operator.eq,
    "ne": operator.ne,
}


def hit_total(response: Mapping[str, Any]) -> int:
    """Return ``hits.total`` for both the integer and the ``{"value": n}`` forms."""
    hits = response.get("hits") or {}
    total = hits.get("total")
    if isinstance(total, Mapping):
        total = total.get("value")
    if total is None:
        return len(hits.get("hits") or [])
    return int(total)


def _compare(op_name: str, value: Any, threshold: Any) -> bool:
    try:
        op = _OPERATORS[op_name]
    except KeyError:
        raise ValueError(
            f"Unknown operator '{op_name}'. Expected one of {sorted(_OPERATORS)}"
        ) from None
    return op(value, threshold)


def _narrow_index(request: dict[str, Any], custom_params: Mapping[str, Any]) -> dict[str, Any]:
    index = custom_params.get("index")
    if index:
        request["index"] = [index] if isinstance(index, str) else list(index)
    return request


class ThresholdTemplate(WatcherTemplate):
    """Fires when the number of hits in the window crosses a threshold.

    Settings::

        {"threshold": 5, "operator": "gte", "index": "optional-override"}
    """

    TEMPLATE_ID = "threshold"
    DESCRIPTION = "Compare the hit count of the window against a threshold."

    def __init__(self, options: Mapping[str, Any] | None = None) -> None:
        super().__init__(options)
        op_name = self.options.get("operator", "gte")
        if op_name not in _OPERATORS:
            raise ValueError(f"Unknown operator '{op_name}'. Expected one of {sorted(_OPERATORS)}")

    async def search(self, client, params, custom_params):
        request = _narrow_index(copy.deepcopy(dict(params["defaultRequest"])), custom_params)
        return await client.search(request)

    def condition(self, response, params, custom_params):
        threshold = self.setting("threshold", custom_params, 1)
        op_name = self.setting("operator", custom_params, "gte")
        return _compare(op_name, hit_total(response), threshold)


class AbsenceTemplate(WatcherTemplate):
    """Fires when nothing matched during the window (dead-man check)."""

    TEMPLATE_ID = "absence"
    DESCRIPTION = "Fire when the window contains no hits."

    async def search(self, client, params, custom_params):
        request = _narrow_index(copy.deepcopy(dict(params["defaultRequest"])), custom_params)
        return await client.search(request)

    def condition(self, response, params, custom_params):
        return hit_total(response) == 0


class AggregationThresholdTemplate(WatcherTemplate):
    """Fires when an aggregation value crosses a threshold.

    Settings::

        {
            "aggs": {"avg_latency": {"avg": {"field": "latency_ms"}}},
            "value_path": "avg_latency.value",
            "threshold": 250,
            "operator": "gt"
        }
    """

    TEMPLATE_ID = "aggregation_threshold"
    DESCRIPTION = "Compare an aggregation value of the window against a threshold."

    def __init__(self, options: Mapping[str, Any] | None = None) -> None:
        super().__init__(options)
        op_name = self.options.get("operator", "gt")
        if op_name not in _OPERATORS:
            raise ValueError(f"Unknown operator '{op_name}'. Expected one of {sorted(_OPERATORS)}")

    async def search(self, client, params, custom_params):
        aggs = self.setting("aggs", custom_params)
        if not aggs:
            raise ValueError("aggregation_threshold requires 'aggs'")
        request = _narrow_index(copy.deepcopy(dict(params["defaultRequest"])), custom_params)
        request["body"]["aggs"] = copy.deepcopy(aggs)
        return await client.search(request)

    def condition(self, response, params, custom_params):
        path = self.setting("value_path", custom_params)
        if not path:
            raise ValueError("aggregation_threshold requires 'value_path'")
        value: Any = response.get("aggregations") or {}
        for part in path.split("."):
            if not isinstance(value, Mapping) or part not in value:
                raise ValueError(f"aggregation path '{path}' not found in response")
            value = value[part]
        if value is None:
            return False
        threshold = self.setting("threshold", custom_params, 0)
        op_name = self.setting("operator", custom_params, "gt")
        return _compare(op_name, value, threshold)


BUILTIN_TEMPLATES: list[type[WatcherTemplate]] = [
    ThresholdTemplate,
    AbsenceTemplate,
    AggregationThresholdTemplate,
]
