"""WatcherEngine — executes one watcher task end to end.

Execution flow::

    resolve template (task.custom.type)
        ↓
    impersonate owner (settings or task flag)  →  select transport
        ↓
    build search params (time window + filters + queries)
        ↓
    template.search(client, params, custom_params)
        ↓
    template.condition(response, params, custom_params)
        ↓                              ↓
    dispatch actions → Success      no match → Warning

Any failure along the way is reported to the alarm sink exactly once, its
message is prefixed with ``"execute custom watcher: "`` and it is re-raised.

The engine holds only injected, long-lived collaborators; every execution
builds its own state, so concurrent ``execute`` calls need no locking.
"""

from __future__ import annotations

import copy
import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from watcher_engine.actions import ActionDispatcher, LogActionDispatcher
from watcher_engine.alarms import AlarmRecord, AlarmSink, LogAlarmSink, create_alarm_sink
from watcher_engine.config import Settings, get_settings
from watcher_engine.exceptions import (
    ActionDispatchError,
    SearchBackendError,
    TemplateRuntimeError,
    WatcherEngineError,
)
from watcher_engine.logging import bind_watcher_context, clear_watcher_context, get_logger
from watcher_engine.models import Task
from watcher_engine.request import build_search_params
from watcher_engine.results import ExecutionResult, SuccessResult, WarningResult
from watcher_engine.search.backend import HttpSearchBackend, SearchBackend
from watcher_engine.search.transport import SearchClient, select_transport
from watcher_engine.templates.base import WatcherTemplate
from watcher_engine.templates.registry import TemplateRegistry, default_registry
from watcher_engine.templates.resolver import TemplateResolver
from watcher_engine.templates.store import AuthContext, DirectoryScriptStore, InMemoryScriptStore, ScriptStore

log = get_logger(__name__)

ERROR_PREFIX = "execute custom watcher: "
SUCCESS_MESSAGE = "successfully executed"
NO_MATCH_MESSAGE = "no data satisfy condition"


class ExecutionStage(str, Enum):
    """Where an execution currently is.

    State machine::

        IDLE → RESOLVING → BUILDING_REQUEST → SEARCHING → EVALUATING
             → DISPATCHING → DONE     (condition true)
             → WARNED      → DONE     (condition false)

        any non-terminal stage → FAILED
    """

    IDLE = "idle"
    RESOLVING = "resolving"
    BUILDING_REQUEST = "building_request"
    SEARCHING = "searching"
    EVALUATING = "evaluating"
    DISPATCHING = "dispatching"
    WARNED = "warned"
    DONE = "done"
    FAILED = "failed"


class WatcherEngine:
    """Runs watcher tasks against a search backend.

    Usage::

        engine = WatcherEngine(
            backend=HttpSearchBackend.from_config(settings.search),
            resolver=TemplateResolver(store),
            alarm_sink=LogAlarmSink(),
            dispatcher=my_dispatcher,
            settings=settings,
        )
        result = await engine.execute(task)
    """

    def __init__(
        self,
        backend: SearchBackend,
        resolver: TemplateResolver,
        alarm_sink: AlarmSink | None = None,
        dispatcher: ActionDispatcher | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._backend = backend
        self._resolver = resolver
        self._alarms = alarm_sink or LogAlarmSink()
        self._dispatcher = dispatcher or LogActionDispatcher()
        self._settings = settings or get_settings()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: ScriptStore | None = None,
        registry: TemplateRegistry | None = None,
        dispatcher: ActionDispatcher | None = None,
    ) -> "WatcherEngine":
        """Wire an engine from configuration: HTTP backend, directory store, built-in plugins."""
        backend = HttpSearchBackend.from_config(settings.search)
        if store is None:
            if settings.templates.scripts_dir is not None:
                store = DirectoryScriptStore(settings.templates.scripts_dir)
            else:
                store = InMemoryScriptStore()
        registry = registry or default_registry(load_entry_points=settings.templates.load_entry_points)
        resolver = TemplateResolver(
            store,
            registry,
            AuthContext(roles=tuple(settings.authentication.script_roles)),
        )
        return cls(
            backend=backend,
            resolver=resolver,
            alarm_sink=create_alarm_sink(settings.alarms, backend),
            dispatcher=dispatcher,
            settings=settings,
        )

    async def close(self) -> None:
        await self._backend.close()

    # ---------------------------------------------------------------------------
    # Execution API
    # ---------------------------------------------------------------------------

    async def execute(
        self,
        task: Task,
        *,
        async_mode: bool = False,
        now: datetime | None = None,
    ) -> ExecutionResult:
        """Execute *task* once.

        Args:
            task:       The watcher to run.  Not modified.
            async_mode: Anchor the search window to the current time instead
                        of the last schedule tick.
            now:        Reference time for the window (defaults to the
                        current time).

        Returns:
            SuccessResult when the condition held, WarningResult otherwise.

        Raises:
            WatcherEngineError: Any failure, message prefixed with
                ``"execute custom watcher: "``.
        """
        run_id = uuid.uuid4().hex[:8]
        bind_watcher_context(watcher_id=task.id, watcher_title=task.title, run_id=run_id)
        stage = ExecutionStage.IDLE
        try:
            log.debug("watcher_execution_started", template=task.custom.type, async_mode=async_mode)

            stage = ExecutionStage.RESOLVING
            template = await self._resolver.resolve(task.custom.type)

            stage = ExecutionStage.BUILDING_REQUEST
            client = await self._search_client(task)
            params = build_search_params(
                task.search_request,
                task.schedule,
                async_mode=async_mode,
                now=now,
            )

            stage = ExecutionStage.SEARCHING
            custom_params = copy.deepcopy(task.custom.params)
            response = await self._run_search(template, client, params, custom_params)

            stage = ExecutionStage.EVALUATING
            matched = self._run_condition(template, response, params, custom_params)

            if not matched:
                stage = ExecutionStage.WARNED
                log.warning("watcher_condition_unmet", template=template.template_id)
                return WarningResult(NO_MATCH_MESSAGE)

            stage = ExecutionStage.DISPATCHING
            await self._dispatch(response, task)
            stage = ExecutionStage.DONE
            log.info("watcher_succeeded", template=template.template_id, actions=len(task.actions))
            return SuccessResult(SUCCESS_MESSAGE)

        except WatcherEngineError as exc:
            await self._report_failure(task, exc, stage)
            raise
        except Exception as exc:
            error = WatcherEngineError(str(exc), context={"error_type": type(exc).__name__})
            await self._report_failure(task, error, stage)
            raise error from exc
        finally:
            clear_watcher_context()

    # ---------------------------------------------------------------------------
    # Steps
    # ---------------------------------------------------------------------------

    async def _search_client(self, task: Task) -> SearchClient:
        backend = self._backend
        if self._settings.authentication.impersonate or task.impersonate:
            try:
                backend = await backend.impersonate(task.id)
            except WatcherEngineError:
                raise
            except Exception as exc:
                raise SearchBackendError(f"impersonation of '{task.id}' failed: {exc}") from exc
        transport = await select_transport(backend, self._settings.federation)
        log.debug("search_transport_selected", transport=transport.value)
        return SearchClient(backend, transport)

    async def _run_search(
        self,
        template: WatcherTemplate,
        client: SearchClient,
        params: dict[str, Any],
        custom_params: dict[str, Any],
    ) -> dict[str, Any]:
        try:
            return await template.search(client, params, custom_params)
        except WatcherEngineError:
            raise
        except Exception as exc:
            raise TemplateRuntimeError(template.template_id, "search", exc) from exc

    def _run_condition(
        self,
        template: WatcherTemplate,
        response: dict[str, Any],
        params: dict[str, Any],
        custom_params: dict[str, Any],
    ) -> bool:
        try:
            return bool(template.condition(response, params, custom_params))
        except WatcherEngineError:
            raise
        except Exception as exc:
            raise TemplateRuntimeError(template.template_id, "condition", exc) from exc

    async def _dispatch(self, response: dict[str, Any], task: Task) -> None:
        try:
            await self._dispatcher.dispatch(response, task.actions, task)
        except WatcherEngineError:
            raise
        except Exception as exc:
            raise ActionDispatchError(exc) from exc

    async def _report_failure(
        self, task: Task, exc: WatcherEngineError, stage: ExecutionStage
    ) -> None:
        detail = exc.message
        record = AlarmRecord(
            watcher_title=task.title,
            message=ERROR_PREFIX + detail,
            level="high",
            is_error=True,
            context={
                **exc.context,
                "stage": stage.value,
                "error_type": exc.context.get("error_type", type(exc).__name__),
            },
        )
        try:
            await self._alarms.log_alarm(record)
        except Exception as sink_exc:
            log.error("alarm_sink_failed", error=str(sink_exc))
        exc.relabel(ERROR_PREFIX)
        log.error(
            "watcher_execution_failed",
            stage=stage.value,
            error_type=record.context["error_type"],
            error=exc.message,
        )
