"""Built-in action implementations for the semantic router."""

from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import PurePosixPath
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from semantic_vault.config import EditConfig
from semantic_vault.editing.fuzzy import find_fuzzy_matches
from semantic_vault.editing.lines import InsertMode, insert_at_line, line_window
from semantic_vault.editing.window_edit import WindowEditResult, perform_window_edit
from semantic_vault.errors import NotFoundError, SemanticVaultError
from semantic_vault.retrieval.retriever import FragmentRetriever
from semantic_vault.semantic.context import SessionContext
from semantic_vault.semantic.registry import ActionRegistry, ActionSpec
from semantic_vault.semantic.tokens import extract_links
from semantic_vault.types import StrategyChoice
from semantic_vault.vault.buffer import ContentBuffer
from semantic_vault.vault.store import PatchOperation, PatchTarget, VaultStore, extract_tags

logger = logging.getLogger(__name__)

SUPPORTED_ACTIONS: dict[str, tuple[str, ...]] = {
    "vault": ("list", "read", "fragments", "create", "update", "delete", "search"),
    "edit": ("window", "append", "patch", "at_line", "from_buffer"),
    "view": ("file", "window", "open"),
    "workflow": ("suggest",),
    "system": ("info", "commands"),
}


class ActionParams(BaseModel):
    """Accepts both `returnFullFile` and `return_full_file` spellings."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class EmptyParams(ActionParams):
    pass


class ListParams(ActionParams):
    directory: str | None = None


class PathParams(ActionParams):
    path: str = Field(min_length=1)


class ReadParams(PathParams):
    query: str | None = None
    strategy: StrategyChoice = "auto"
    max_fragments: int | None = Field(default=None, ge=1)
    return_full_file: bool = False


class FragmentsParams(ActionParams):
    query: str | None = None
    path: str | None = None
    strategy: StrategyChoice = "auto"
    max_fragments: int | None = Field(default=None, ge=1)


class ContentParams(PathParams):
    content: str = ""


class SearchParams(ActionParams):
    query: str = Field(min_length=1)
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1, le=100)


class WindowEditParams(PathParams):
    old_text: str = Field(min_length=1)
    new_text: str
    fuzzy_threshold: float | None = Field(default=None, ge=0.0, le=1.0)


class PatchParams(PathParams):
    operation: PatchOperation = "append"
    target_type: PatchTarget
    target: str = Field(min_length=1)
    content: str


class AtLineParams(PathParams):
    line_number: int
    content: str | None = None
    mode: InsertMode = "replace"


class FromBufferParams(PathParams):
    old_text: str | None = None
    fuzzy_threshold: float | None = Field(default=None, ge=0.0, le=1.0)


class ViewWindowParams(PathParams):
    line_number: int | None = Field(default=None, ge=1)
    search_text: str | None = None
    window_size: int | None = Field(default=None, ge=1)


def file_doc_id(path: str) -> str:
    return f"file:{path}"


class VaultIndex:
    """Whole-vault indexing for `vault fragments`, refreshed per written note."""

    def __init__(self, store: VaultStore, retriever: FragmentRetriever) -> None:
        self.store = store
        self.retriever = retriever
        self.complete = False
        self._stale: set[str] = set()

    def invalidate(self, path: str) -> None:
        self.retriever.remove_document(file_doc_id(path))
        if self.complete:
            self._stale.add(path)

    def ensure_indexed(self) -> None:
        if not self.complete:
            _index_vault(self.store, self.retriever)
            self.complete = True
            self._stale.clear()
            return
        for path in sorted(self._stale):
            if not path.endswith(".md"):
                continue
            try:
                note = self.store.get_file(path)
            except NotFoundError:
                continue
            except SemanticVaultError as exc:
                logger.warning("Skipping note %s while re-indexing: %s", path, exc)
                continue
            self.retriever.index_document(file_doc_id(path), path, note.content)
        self._stale.clear()


def register_builtin_actions(
    registry: ActionRegistry,
    *,
    store: VaultStore,
    buffer: ContentBuffer,
    retriever: FragmentRetriever,
    context: SessionContext,
    edit_config: EditConfig,
) -> None:
    """Register the closed action table used by the router.

    Actions:
    - `vault`: list, read (fragments or full file), fragments across the
      vault, create/update/delete, paginated search.
    - `edit`: fuzzy window replace, append, structural patch, line edits and
      replaying buffered content.
    - `view`: whole note, a line window, open in the editor.
    - `workflow`: session-based suggestions.
    - `system`: store info and editor commands.
    """

    vault_index = VaultIndex(store, retriever)

    def _invalidate(path: str) -> None:
        vault_index.invalidate(path)

    def _list(input_data: ListParams) -> list[str]:
        return store.list_files(input_data.directory)

    def _read(input_data: ReadParams) -> dict[str, Any]:
        note = store.get_file(input_data.path)
        links = extract_links(note.content)
        tags = note.tags or extract_tags(note.content)

        if input_data.return_full_file:
            word_count = len(note.content.split())
            warning = None
            if word_count > edit_config.full_file_word_warning:
                warning = (
                    f"Large file ({word_count} words). Consider fragment retrieval "
                    "with a query to save context."
                )
            return {
                "path": note.path,
                "content": note.content,
                "links": links,
                "tags": tags,
                "frontmatter": note.frontmatter,
                "metadata": {"word_count": word_count, "warning": warning},
            }

        doc_id = file_doc_id(input_data.path)
        retriever.index_document(doc_id, input_data.path, note.content)
        query = input_data.query or PurePosixPath(input_data.path).stem
        response = retriever.retrieve_fragments(
            query,
            strategy=input_data.strategy,
            max_fragments=input_data.max_fragments,
            doc_ids={doc_id},
        )
        return {
            "path": note.path,
            "content": [asdict(fragment) for fragment in response.result],
            "links": links,
            "tags": tags,
            "frontmatter": note.frontmatter,
            "original_content_length": len(note.content),
            "fragment_metadata": {
                "total_fragments": len(response.result),
                "strategy": input_data.strategy,
                "query": query,
            },
            "workflow": response.workflow,
            "efficiency_hints": response.efficiency_hints,
        }

    def _fragments(input_data: FragmentsParams) -> dict[str, Any]:
        vault_index.ensure_indexed()
        response = retriever.retrieve_fragments(
            input_data.query or input_data.path,
            strategy=input_data.strategy,
            max_fragments=input_data.max_fragments,
        )
        return response.to_dict()

    def _create(input_data: ContentParams) -> dict[str, Any]:
        result = store.create_file(input_data.path, input_data.content)
        _invalidate(input_data.path)
        return result

    def _update(input_data: ContentParams) -> dict[str, Any]:
        result = store.update_file(input_data.path, input_data.content)
        _invalidate(input_data.path)
        return result

    def _delete(input_data: PathParams) -> dict[str, Any]:
        result = store.delete_file(input_data.path)
        _invalidate(input_data.path)
        return result

    def _search(input_data: SearchParams) -> dict[str, Any]:
        hits = store.search_simple(input_data.query)
        total = len(hits)
        start = (input_data.page - 1) * input_data.page_size
        return {
            "query": input_data.query,
            "page": input_data.page,
            "page_size": input_data.page_size,
            "total_results": total,
            "total_pages": -(-total // input_data.page_size),
            "results": hits[start : start + input_data.page_size],
        }

    def _window(input_data: WindowEditParams) -> dict[str, Any]:
        threshold = input_data.fuzzy_threshold
        try:
            result = perform_window_edit(
                store,
                input_data.path,
                input_data.old_text,
                input_data.new_text,
                edit_config.fuzzy_threshold if threshold is None else threshold,
            )
        except Exception:
            buffer.store(
                input_data.new_text,
                search_text=input_data.old_text,
                path=input_data.path,
            )
            raise
        _invalidate(input_data.path)
        return _edit_payload(result)

    def _append(input_data: ContentParams) -> dict[str, Any]:
        result = store.append_to_file(input_data.path, input_data.content)
        _invalidate(input_data.path)
        return result

    def _patch(input_data: PatchParams) -> dict[str, Any]:
        result = store.patch_file(
            input_data.path,
            operation=input_data.operation,
            target_type=input_data.target_type,
            target=input_data.target,
            content=input_data.content,
        )
        _invalidate(input_data.path)
        return result

    def _at_line(input_data: AtLineParams) -> dict[str, Any]:
        text = input_data.content
        if not text:
            buffered = buffer.retrieve()
            if buffered is None:
                raise NotFoundError("No content provided and no buffered content found")
            text = buffered.content
        content = store.get_file(input_data.path).content
        updated = insert_at_line(content, input_data.line_number, text, input_data.mode)
        store.update_file(input_data.path, updated)
        _invalidate(input_data.path)
        return {
            "success": True,
            "path": input_data.path,
            "line": input_data.line_number,
            "mode": input_data.mode,
        }

    def _from_buffer(input_data: FromBufferParams) -> dict[str, Any]:
        buffered = buffer.retrieve()
        if buffered is None:
            raise NotFoundError("No buffered content available")
        threshold = input_data.fuzzy_threshold
        result = perform_window_edit(
            store,
            input_data.path,
            input_data.old_text or buffered.search_text or "",
            buffered.content,
            edit_config.fuzzy_threshold if threshold is None else threshold,
        )
        buffer.clear()
        _invalidate(input_data.path)
        return _edit_payload(result)

    def _view_file(input_data: PathParams) -> dict[str, Any]:
        note = store.get_file(input_data.path)
        return asdict(note)

    def _view_window(input_data: ViewWindowParams) -> dict[str, Any]:
        content = store.get_file(input_data.path).content
        center = input_data.line_number or 1
        if input_data.search_text and input_data.line_number is None:
            matches = find_fuzzy_matches(
                content, input_data.search_text, edit_config.view_search_threshold
            )
            if matches:
                center = matches[0].line_number
        window = line_window(
            content, center, input_data.window_size or edit_config.view_window_size
        )
        return {"path": input_data.path, "search_text": input_data.search_text, **window}

    def _open(input_data: PathParams) -> dict[str, Any]:
        return store.open_file(input_data.path)

    def _suggest(input_data: EmptyParams) -> dict[str, Any]:
        suggestions: list[dict[str, str]] = []
        if context.last_file:
            suggestions.append(
                {
                    "description": "Continue working with last file",
                    "command": f"vault(action='read', path='{context.last_file}')",
                    "reason": "Return to previous work",
                }
            )
        if context.search_history:
            suggestions.append(
                {
                    "description": "Refine last search",
                    "command": f"vault(action='search', query='{context.search_history[-1]} ...')",
                    "reason": "Narrow down results",
                }
            )
        pending = buffer.retrieve()
        if pending is not None and pending.path:
            suggestions.append(
                {
                    "description": "Apply buffered edit",
                    "command": f"edit(action='from_buffer', path='{pending.path}')",
                    "reason": "A previous edit did not find its anchor",
                }
            )
        return {
            "current_context": {
                "operation": context.operation,
                "action": context.action,
                "last_file": context.last_file,
                "last_directory": context.last_directory,
                "file_history": list(context.file_history),
                "search_history": list(context.search_history),
                "buffer_available": buffer.available,
            },
            "suggestions": suggestions,
        }

    def _info(input_data: EmptyParams) -> dict[str, Any]:
        return store.get_server_info()

    def _commands(input_data: EmptyParams) -> list[dict[str, str]]:
        return store.get_commands()

    specs = [
        ("vault", "list", "List files in a vault directory", ListParams, _list),
        ("vault", "read", "Read relevant fragments of a note, or the full file", ReadParams, _read),
        ("vault", "fragments", "Rank fragments across all notes", FragmentsParams, _fragments),
        ("vault", "create", "Create a note", ContentParams, _create),
        ("vault", "update", "Replace a note's content", ContentParams, _update),
        ("vault", "delete", "Delete a note", PathParams, _delete),
        ("vault", "search", "Substring search with pagination", SearchParams, _search),
        ("edit", "window", "Replace text found exactly or fuzzily", WindowEditParams, _window),
        ("edit", "append", "Append content to a note", ContentParams, _append),
        ("edit", "patch", "Insert relative to a heading, block or frontmatter key", PatchParams, _patch),
        ("edit", "at_line", "Insert or replace at a line number", AtLineParams, _at_line),
        ("edit", "from_buffer", "Apply buffered content from a failed edit", FromBufferParams, _from_buffer),
        ("view", "file", "Show a whole note", PathParams, _view_file),
        ("view", "window", "Show lines around a line number or text", ViewWindowParams, _view_window),
        ("view", "open", "Open a note in the editor", PathParams, _open),
        ("workflow", "suggest", "Suggest next steps from the session", EmptyParams, _suggest),
        ("system", "info", "Describe the vault store", EmptyParams, _info),
        ("system", "commands", "List editor commands", EmptyParams, _commands),
    ]
    for operation, action, description, schema, handler in specs:
        registry.register(
            ActionSpec(
                operation=operation,
                action=action,
                description=description,
                args_schema=schema,
                handler=handler,
            )
        )


def _edit_payload(result: WindowEditResult) -> dict[str, Any]:
    payload = asdict(result)
    payload["success"] = True
    payload["message"] = (
        f"Replaced text at line {result.line_number} ({result.match_type} match, "
        f"similarity {result.similarity:.2f})"
    )
    return payload


def _index_vault(store: VaultStore, retriever: FragmentRetriever, directory: str | None = None) -> int:
    """Index every markdown note below `directory`; unreadable entries are skipped."""

    indexed = 0
    try:
        entries = store.list_files(directory)
    except SemanticVaultError as exc:
        logger.warning("Skipping directory %s while indexing: %s", directory or "/", exc)
        return 0
    for entry in entries:
        path = f"{directory}/{entry}" if directory else entry
        if entry.endswith("/"):
            indexed += _index_vault(store, retriever, path.rstrip("/"))
        elif entry.endswith(".md"):
            try:
                note = store.get_file(path)
            except SemanticVaultError as exc:
                logger.warning("Skipping note %s while indexing: %s", path, exc)
                continue
            retriever.index_document(file_doc_id(path), path, note.content)
            indexed += 1
    logger.debug("Indexed %d notes under %s", indexed, directory or "/")
    return indexed
