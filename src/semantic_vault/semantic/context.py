"""Rolling session memory of recent files, directories and searches."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from semantic_vault.config import SessionConfig
from semantic_vault.semantic.tokens import SessionTokens


@dataclass(slots=True)
class SessionContext:
    """Records what was attempted (before dispatch) and what happened (after success).

    Attempts are never rolled back: a failed read still lands in the history.
    """

    config: SessionConfig = field(default_factory=SessionConfig)
    operation: str | None = None
    action: str | None = None
    last_file: str | None = None
    last_directory: str | None = None
    file_history: list[str] = field(default_factory=list)
    search_history: list[str] = field(default_factory=list)
    buffer_content: str | None = None

    def record_attempt(self, operation: str, action: str, params: dict[str, Any]) -> None:
        self.operation = operation
        self.action = action

        path = params.get("path")
        if isinstance(path, str) and path:
            self.last_file = path
            if path not in self.file_history:
                self.file_history.append(path)
                del self.file_history[: -self.config.file_history_limit]

        directory = params.get("directory")
        if isinstance(directory, str) and directory:
            self.last_directory = directory

        query = params.get("query")
        if isinstance(query, str) and query:
            self.search_history.append(query)
            del self.search_history[: -self.config.search_history_limit]

    def record_success(
        self,
        operation: str,
        action: str,
        tokens: SessionTokens,
        buffer_content: str | None,
    ) -> None:
        self.buffer_content = buffer_content
        if operation != "vault":
            return
        if action == "read" and tokens.file_loaded:
            self.last_file = tokens.file_loaded
            for path in tokens.file_history:
                if path not in self.file_history:
                    self.file_history.append(path)
            del self.file_history[: -self.config.file_history_limit]
        elif action == "list" and tokens.directory_listed:
            self.last_directory = tokens.directory_listed
        elif (
            action == "search"
            and tokens.search_query
            and tokens.search_query not in self.search_history
        ):
            self.search_history.append(tokens.search_query)
            del self.search_history[: -self.config.search_history_limit]

    def snapshot(self, tokens: SessionTokens, *, buffer_available: bool) -> dict[str, Any]:
        return {
            "current_file": self.last_file,
            "current_directory": self.last_directory,
            "buffer_available": buffer_available,
            "file_history": list(self.file_history),
            "search_history": list(self.search_history),
            "has_links": len(tokens.file_has_links) > 0,
            "has_tags": len(tokens.file_has_tags) > 0,
            "search_results_available": tokens.search_has_results,
            "linked_files": list(tokens.file_has_links),
            "tags": list(tokens.file_has_tags),
        }
