"""Session state tokens derived from operation outcomes."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from typing import Any

from semantic_vault.vault.store import extract_tags

logger = logging.getLogger(__name__)

_WIKI_LINK = re.compile(r"\[\[([^\]]+)\]\]")

FILE_HISTORY_LIMIT = 10


@dataclass(slots=True)
class SessionTokens:
    file_loaded: str | None = None
    file_has_links: list[str] = field(default_factory=list)
    file_has_tags: list[str] = field(default_factory=list)
    file_history: list[str] = field(default_factory=list)
    buffer_available: bool = False
    buffer_file: str | None = None
    search_has_results: bool = False
    search_query: str | None = None
    directory_listed: str | None = None


_REQUIREMENTS: dict[str, Callable[[SessionTokens], bool]] = {
    "can_follow_links": lambda t: len(t.file_has_links) > 0,
    "can_use_tags": lambda t: len(t.file_has_tags) > 0,
    "can_use_buffer": lambda t: t.buffer_available and t.buffer_file is not None,
    "can_edit": lambda t: t.file_loaded is not None,
    "can_refine_search": lambda t: t.search_query is not None and t.search_has_results,
    "can_browse_directory": lambda t: t.directory_listed is not None,
}


def extract_links(content: str) -> list[str]:
    """Wiki-link targets with alias (`|`) and heading (`#`) parts dropped."""
    links: list[str] = []
    for match in _WIKI_LINK.finditer(content):
        target = match.group(1).split("|", 1)[0].split("#", 1)[0].strip()
        if target and target not in links:
            links.append(target)
    return links


class StateTokenManager:
    """Derives symbolic session state from routed operation outcomes.

    `update_tokens` is the only mutator and is called once per routed request
    after the outcome is known. Everything else reads a copy.
    """

    def __init__(self, history_limit: int = FILE_HISTORY_LIMIT) -> None:
        self.history_limit = history_limit
        self._tokens = SessionTokens()

    @property
    def tokens(self) -> SessionTokens:
        return replace(
            self._tokens,
            file_has_links=list(self._tokens.file_has_links),
            file_has_tags=list(self._tokens.file_has_tags),
            file_history=list(self._tokens.file_history),
        )

    def reset(self) -> None:
        self._tokens = SessionTokens()

    def update_tokens(
        self,
        operation: str,
        action: str,
        params: dict[str, Any],
        result: Any,
        success: bool,
    ) -> None:
        tokens = self._tokens
        if not success:
            if operation == "edit":
                tokens.buffer_available = True
                tokens.buffer_file = params.get("path")
            return

        if operation == "vault" and action == "read":
            path = params.get("path")
            tokens.file_loaded = path
            tokens.file_has_links = _collect(result, "links", extract_links)
            tokens.file_has_tags = _collect(result, "tags", extract_tags)
            if path and path not in tokens.file_history:
                tokens.file_history.append(path)
                del tokens.file_history[: -self.history_limit]
        elif operation == "vault" and action == "list":
            tokens.directory_listed = params.get("directory") or "/"
        elif operation == "vault" and action == "search":
            tokens.search_has_results = _result_count(result) > 0
            tokens.search_query = params.get("query")
        elif operation == "edit" and action == "from_buffer":
            tokens.buffer_available = False
            tokens.buffer_file = None

    def has_tokens_for(self, requirement: str | Iterable[str]) -> bool:
        """True when every named requirement holds for the current tokens."""
        names = [requirement] if isinstance(requirement, str) else list(requirement)
        for name in names:
            check = _REQUIREMENTS.get(name)
            if check is None:
                logger.warning("Unknown token requirement %r", name)
                return False
            if not check(self._tokens):
                return False
        return True


def _collect(result: Any, key: str, extract: Callable[[str], list[str]]) -> list[str]:
    if isinstance(result, dict):
        explicit = result.get(key)
        if isinstance(explicit, list):
            return [str(item) for item in explicit]
        content = result.get("content")
    else:
        content = result
    return extract(content) if isinstance(content, str) else []


def _result_count(result: Any) -> int:
    if isinstance(result, dict):
        total = result.get("total_results")
        if isinstance(total, int):
            return total
        return len(result.get("results") or [])
    if isinstance(result, list):
        return len(result)
    return 0
