"""LangChain tool wrappers exposing the router's five operations to an agent."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, Field

from semantic_vault.semantic.actions import SUPPORTED_ACTIONS
from semantic_vault.semantic.router import SemanticRouter

_DESCRIPTIONS: dict[str, str] = {
    "vault": "File operations: list, read (relevant fragments by default), fragments, create, update, delete, search.",
    "edit": "Smart editing: window (fuzzy anchored replace), append, patch, at_line, from_buffer.",
    "view": "Viewing: file, window (lines around a line number or text), open.",
    "workflow": "Workflow guidance: suggest next steps from the current session.",
    "system": "System operations: info, commands.",
}


class OperationToolInput(BaseModel):
    action: str = Field(min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)


def build_semantic_tools(router: SemanticRouter) -> list[StructuredTool]:
    """One structured tool per operation; each returns the JSON-encoded router response."""

    tools: list[StructuredTool] = []
    for operation, actions in SUPPORTED_ACTIONS.items():
        tools.append(
            StructuredTool.from_function(
                name=operation,
                description=f"{_DESCRIPTIONS[operation]} Actions: {', '.join(actions)}.",
                args_schema=OperationToolInput,
                func=_build_function(router, operation),
            )
        )
    return tools


def _build_function(router: SemanticRouter, operation: str) -> Callable[..., str]:
    def _callable(action: str, params: dict[str, Any] | None = None) -> str:
        response = router.route({"operation": operation, "action": action, "params": params or {}})
        return json.dumps(response, default=str)

    return _callable
