"""Closed (operation, action) dispatch table built on Pydantic v2 models."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from time import perf_counter
from typing import Any

from pydantic import BaseModel, ConfigDict

from semantic_vault.errors import InvalidRequestError
from semantic_vault.types import ActionTrace

ActionKey = tuple[str, str]


class ActionSpec(BaseModel):
    """Declarative action specification for registration and validation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    operation: str
    action: str
    description: str
    args_schema: type[BaseModel]
    handler: Callable[[BaseModel], Any]

    @property
    def key(self) -> ActionKey:
        return (self.operation, self.action)

    def invoke(self, payload: dict[str, Any]) -> Any:
        data = self.args_schema.model_validate(payload)
        return self.handler(data)


class ActionRegistry:
    """Stores action specs keyed by `(operation, action)` and dispatches to them."""

    def __init__(self) -> None:
        self._actions: dict[ActionKey, ActionSpec] = {}
        self._observer: Callable[[ActionTrace], None] | None = None

    def register(self, spec: ActionSpec) -> None:
        if spec.key in self._actions:
            raise ValueError(f"Action already registered: {spec.operation}.{spec.action}")
        self._actions[spec.key] = spec

    def set_observer(self, observer: Callable[[ActionTrace], None] | None) -> None:
        """Set an optional callback invoked after each successful dispatch."""
        self._observer = observer

    def ensure_complete(self, supported: dict[str, Iterable[str]]) -> None:
        """Raise ValueError unless every supported pair has a handler and nothing else does."""

        expected = {(op, action) for op, actions in supported.items() for action in actions}
        missing = sorted(expected - self._actions.keys())
        extra = sorted(self._actions.keys() - expected)
        if missing or extra:
            raise ValueError(
                "Action table mismatch: "
                f"missing={['.'.join(pair) for pair in missing]} "
                f"unexpected={['.'.join(pair) for pair in extra]}"
            )

    def has(self, operation: str, action: str) -> bool:
        return (operation, action) in self._actions

    def execute(self, operation: str, action: str, payload: dict[str, Any]) -> Any:
        spec = self._actions.get((operation, action))
        if spec is None:
            raise InvalidRequestError(f"Unknown action: {operation}.{action}")
        return self._execute_spec(spec, payload)

    def specs(self) -> list[ActionSpec]:
        return list(self._actions.values())

    def _execute_spec(self, spec: ActionSpec, payload: dict[str, Any]) -> Any:
        start = perf_counter()
        output = spec.invoke(payload)
        latency_ms = (perf_counter() - start) * 1000.0

        if self._observer is not None:
            self._observer(
                ActionTrace(
                    operation=spec.operation,
                    action=spec.action,
                    input_payload=payload,
                    output_preview=_preview(output),
                    latency_ms=latency_ms,
                )
            )
        return output


def _preview(output: Any) -> str:
    if isinstance(output, str):
        return output[:320]
    return json.dumps(output, default=str)[:320]
