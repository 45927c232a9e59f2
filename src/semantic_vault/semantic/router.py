"""Single entry point routing operation/action requests with response enrichment."""

from __future__ import annotations

import logging
from collections import deque
from pathlib import PurePosixPath
from typing import Any

from pydantic import BaseModel, Field, ValidationError
from pydantic.alias_generators import to_camel, to_snake

from semantic_vault.config import EditConfig, RetrievalConfig, SessionConfig
from semantic_vault.errors import ErrorCode, classify_error, error_message
from semantic_vault.retrieval.retriever import FragmentRetriever
from semantic_vault.semantic.actions import SUPPORTED_ACTIONS, register_builtin_actions
from semantic_vault.semantic.context import SessionContext
from semantic_vault.semantic.hints import (
    WorkflowConfig,
    build_suggestions,
    interpolate,
    load_workflow_config,
)
from semantic_vault.semantic.registry import ActionRegistry
from semantic_vault.semantic.tokens import StateTokenManager
from semantic_vault.types import ActionTrace
from semantic_vault.vault.buffer import ContentBuffer
from semantic_vault.vault.store import VaultStore

logger = logging.getLogger(__name__)


class RouteRequest(BaseModel):
    operation: str = Field(min_length=1)
    action: str = Field(min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)


class SemanticRouter:
    """Dispatches requests and wraps every outcome with session-aware hints.

    One router holds one session: its context, state tokens and content
    buffer are never shared. Calls are expected to be serialized.
    """

    def __init__(
        self,
        store: VaultStore,
        *,
        buffer: ContentBuffer | None = None,
        retriever: FragmentRetriever | None = None,
        workflow_config: WorkflowConfig | None = None,
        workflow_config_path: str | None = None,
        retrieval_config: RetrievalConfig | None = None,
        edit_config: EditConfig | None = None,
        session_config: SessionConfig | None = None,
    ) -> None:
        self.store = store
        self.edit_config = edit_config or EditConfig()
        self.session_config = session_config or SessionConfig()
        self.buffer = buffer or ContentBuffer()
        self.retriever = retriever or FragmentRetriever(retrieval_config or RetrievalConfig())
        self.workflow_config = workflow_config or load_workflow_config(workflow_config_path)
        self.context = SessionContext(config=self.session_config)
        self.tokens = StateTokenManager(history_limit=self.session_config.file_history_limit)
        self._traces: deque[ActionTrace] = deque(maxlen=self.session_config.trace_limit)

        self.registry = ActionRegistry()
        register_builtin_actions(
            self.registry,
            store=self.store,
            buffer=self.buffer,
            retriever=self.retriever,
            context=self.context,
            edit_config=self.edit_config,
        )
        self.registry.ensure_complete(SUPPORTED_ACTIONS)
        self.registry.set_observer(self._record_trace)

    def route(self, request: RouteRequest | dict[str, Any]) -> dict[str, Any]:
        try:
            parsed = (
                request if isinstance(request, RouteRequest) else RouteRequest.model_validate(request)
            )
        except ValidationError as exc:
            logger.info("Rejected malformed request: %s", exc)
            return self._error_response(exc, "", "", {}, efficiency_hints=None)

        operation, action, params = parsed.operation, parsed.action, dict(parsed.params)
        previous_file = self.context.last_file
        previous_search = self.tokens.tokens.search_query
        self.context.record_attempt(operation, action, params)
        efficiency_hints = self._efficiency_hints(
            operation, action, params, previous_file, previous_search
        )

        try:
            result = self.registry.execute(operation, action, params)
        except Exception as exc:
            code = classify_error(exc)
            if code is ErrorCode.UNKNOWN:
                logger.exception("Unexpected failure in %s.%s", operation, action)
            else:
                logger.info("%s.%s failed with %s: %s", operation, action, code.value, exc)
            self.tokens.update_tokens(operation, action, params, None, False)
            return self._error_response(
                exc, operation, action, params, efficiency_hints=efficiency_hints
            )

        self.tokens.update_tokens(operation, action, params, result, True)
        return self._success_response(
            operation, action, params, result, efficiency_hints=efficiency_hints
        )

    def recent_traces(self, limit: int = 20) -> list[ActionTrace]:
        return list(self._traces)[-limit:][::-1]

    def current_context(self) -> dict[str, Any]:
        return self.context.snapshot(self.tokens.tokens, buffer_available=self.buffer.available)

    def _success_response(
        self,
        operation: str,
        action: str,
        params: dict[str, Any],
        result: Any,
        *,
        efficiency_hints: dict[str, Any] | None,
    ) -> dict[str, Any]:
        self.context.record_success(
            operation,
            action,
            self.tokens.tokens,
            self.buffer.retrieve().content if self.buffer.available else None,
        )
        response: dict[str, Any] = {"result": result, "context": self.current_context()}

        block = self.workflow_config.hints_for(operation, action, failed=False)
        if block is not None:
            hint_params = self._hint_params(params)
            response["workflow"] = {
                "message": interpolate(block.message, hint_params, result),
                "suggested_next": build_suggestions(
                    block, hint_params, result, self.workflow_config, self.tokens.has_tokens_for
                ),
            }
        if efficiency_hints is not None:
            response["efficiency_hints"] = efficiency_hints
        return response

    def _error_response(
        self,
        exc: Exception,
        operation: str,
        action: str,
        params: dict[str, Any],
        *,
        efficiency_hints: dict[str, Any] | None,
    ) -> dict[str, Any]:
        error: dict[str, Any] = {
            "code": classify_error(exc).value,
            "message": error_message(exc),
            "recovery_hints": [],
        }
        block = self.workflow_config.hints_for(operation, action, failed=True)
        if block is not None:
            hint_params = self._hint_params(params)
            error["hint"] = interpolate(block.message, hint_params, None)
            error["recovery_hints"] = build_suggestions(
                block, hint_params, None, self.workflow_config, self.tokens.has_tokens_for
            )

        response: dict[str, Any] = {
            "result": None,
            "context": self.current_context(),
            "error": error,
        }
        if efficiency_hints is not None:
            response["efficiency_hints"] = efficiency_hints
        return response

    def _hint_params(self, params: dict[str, Any]) -> dict[str, Any]:
        """Params in both spellings plus values derived for hint templates."""

        values: dict[str, Any] = {}
        for key, value in params.items():
            values[key] = value
            values.setdefault(to_camel(key), value)
            values.setdefault(to_snake(key), value)

        path = values.get("path")
        directory = values.get("directory")
        source = path if isinstance(path, str) and path else directory
        parent = ""
        if isinstance(source, str) and source:
            parent = str(PurePosixPath(source.strip("/")).parent)
        values["parent_directory"] = parent if parent not in ("", ".") else "/"
        values.setdefault("directory", "/")
        if isinstance(path, str) and path:
            values["file_stem"] = PurePosixPath(path).stem

        buffer_file = self.tokens.tokens.buffer_file
        if buffer_file:
            values["buffer_file"] = buffer_file
        return values

    def _efficiency_hints(
        self,
        operation: str,
        action: str,
        params: dict[str, Any],
        previous_file: str | None,
        previous_search: str | None,
    ) -> dict[str, Any] | None:
        fired = [
            rule.hint
            for rule in self.workflow_config.efficiency_rules
            if _rule_fires(rule.pattern, operation, action, params, previous_file, previous_search)
        ]
        if not fired:
            return None
        return {"message": fired[0], "alternatives": fired[1:]}

    def _record_trace(self, trace: ActionTrace) -> None:
        logger.debug(
            "%s.%s completed in %.2fms", trace.operation, trace.action, trace.latency_ms
        )
        self._traces.append(trace)


def _rule_fires(
    pattern: str,
    operation: str,
    action: str,
    params: dict[str, Any],
    previous_file: str | None,
    previous_search: str | None,
) -> bool:
    if pattern == "multiple_edits_same_file":
        path = params.get("path")
        return operation == "edit" and bool(path) and path == previous_file
    if pattern == "full_file_read":
        full = params.get("returnFullFile", params.get("return_full_file"))
        return operation == "vault" and action == "read" and full is True
    if pattern == "repeated_search":
        query = params.get("query")
        return (
            operation == "vault" and action == "search" and bool(query) and query == previous_search
        )
    return False
