"""Declarative workflow hints: config models, loading and evaluation."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).with_name("workflows.json")

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


class SuggestionSpec(BaseModel):
    description: str
    command: str
    reason: str = ""
    requires_tokens: list[str] = Field(default_factory=list)

    @field_validator("requires_tokens", mode="before")
    @classmethod
    def _coerce_single(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value if value is not None else []


class ConditionalSuggestions(BaseModel):
    condition: str = "always"
    suggestions: list[SuggestionSpec] = Field(default_factory=list)


class HintBlock(BaseModel):
    message: str = ""
    suggested_next: list[ConditionalSuggestions] = Field(default_factory=list)


class ActionHints(BaseModel):
    description: str = ""
    success_hints: HintBlock | None = None
    failure_hints: HintBlock | None = None


class OperationHints(BaseModel):
    description: str = ""
    actions: dict[str, ActionHints] = Field(default_factory=dict)


class EfficiencyRule(BaseModel):
    pattern: str
    hint: str


class ContextTriggers(BaseModel):
    daily_note_pattern: str | None = None


class WorkflowConfig(BaseModel):
    """Read-only hint document: operation -> action -> success/failure hints."""

    version: str = "1.0.0"
    description: str = ""
    operations: dict[str, OperationHints] = Field(default_factory=dict)
    efficiency_rules: list[EfficiencyRule] = Field(default_factory=list)
    context_triggers: ContextTriggers = Field(default_factory=ContextTriggers)

    def hints_for(self, operation: str, action: str, *, failed: bool) -> HintBlock | None:
        operation_hints = self.operations.get(operation)
        if operation_hints is None:
            return None
        action_hints = operation_hints.actions.get(action)
        if action_hints is None:
            return None
        return action_hints.failure_hints if failed else action_hints.success_hints


def default_workflow_config() -> WorkflowConfig:
    return WorkflowConfig(
        version="1.0.0",
        description="Default workflow configuration",
        operations={
            "vault": OperationHints(description="File operations"),
            "edit": OperationHints(description="Edit operations"),
        },
    )


def load_workflow_config(path: str | Path | None = None) -> WorkflowConfig:
    """Load hints from JSON; any read or parse failure yields the default config."""

    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    try:
        return WorkflowConfig.model_validate_json(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Failed to load workflow config from %s, using default: %s", config_path, exc)
        return default_workflow_config()


def interpolate(template: str, params: dict[str, Any], result: Any) -> str:
    """Fill `{key}` from params, then from a dict result; unknown keys stay literal."""

    def _substitute(match: re.Match[str]) -> str:
        key = match.group(1)
        value = params.get(key)
        if _present(value):
            return str(value)
        if isinstance(result, dict):
            value = result.get(key)
            if _present(value):
                return str(value)
        return match.group(0)

    return _PLACEHOLDER.sub(_substitute, template)


def evaluate_condition(
    condition: str,
    params: dict[str, Any],
    result: Any,
    config: WorkflowConfig,
) -> bool:
    check = _CONDITIONS.get(condition)
    if check is None:
        return False
    return check(params, result, config)


def build_suggestions(
    block: HintBlock,
    params: dict[str, Any],
    result: Any,
    config: WorkflowConfig,
    tokens_available: Callable[[list[str]], bool],
) -> list[dict[str, str]]:
    """Suggestions whose condition holds and whose token requirements are met."""

    suggestions: list[dict[str, str]] = []
    for conditional in block.suggested_next:
        if not evaluate_condition(conditional.condition, params, result, config):
            continue
        for spec in conditional.suggestions:
            if spec.requires_tokens and not tokens_available(spec.requires_tokens):
                continue
            suggestions.append(
                {
                    "description": interpolate(spec.description, params, result),
                    "command": interpolate(spec.command, params, result),
                    "reason": spec.reason,
                }
            )
    return suggestions


def matches_pattern(value: Any, pattern: str | None) -> bool:
    if not pattern or not isinstance(value, str):
        return False
    try:
        return re.search(pattern, value, flags=re.IGNORECASE) is not None
    except re.error:
        logger.warning("Invalid daily note pattern %r", pattern)
        return False


def _present(value: Any) -> bool:
    return value is not None and value != ""


def _has_results(params: dict[str, Any], result: Any, config: WorkflowConfig) -> bool:
    if isinstance(result, dict):
        total = result.get("total_results")
        return bool(result.get("results")) or (isinstance(total, int) and total > 0)
    if isinstance(result, list):
        return len(result) > 0
    return False


def _no_results(params: dict[str, Any], result: Any, config: WorkflowConfig) -> bool:
    return not _has_results(params, result, config)


def _has_links(params: dict[str, Any], result: Any, config: WorkflowConfig) -> bool:
    return isinstance(result, dict) and bool(result.get("links"))


def _has_tags(params: dict[str, Any], result: Any, config: WorkflowConfig) -> bool:
    return isinstance(result, dict) and bool(result.get("tags"))


def _has_markdown_files(params: dict[str, Any], result: Any, config: WorkflowConfig) -> bool:
    return isinstance(result, list) and any(
        isinstance(item, str) and item.endswith(".md") for item in result
    )


def _is_daily_note(params: dict[str, Any], result: Any, config: WorkflowConfig) -> bool:
    return matches_pattern(params.get("path"), config.context_triggers.daily_note_pattern)


_CONDITIONS: dict[str, Callable[[dict[str, Any], Any, WorkflowConfig], bool]] = {
    "always": lambda params, result, config: True,
    "has_results": _has_results,
    "no_results": _no_results,
    "has_links": _has_links,
    "has_tags": _has_tags,
    "has_markdown_files": _has_markdown_files,
    "is_daily_note": _is_daily_note,
}
