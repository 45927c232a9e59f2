"""Vault store interfaces and concrete adapters."""

from __future__ import annotations

import logging
import re
from pathlib import Path, PurePosixPath
from typing import Any, Literal, Protocol

import yaml

from semantic_vault.errors import InvalidRequestError, NotFoundError, UpstreamError
from semantic_vault.types import VaultNote

logger = logging.getLogger(__name__)

PatchOperation = Literal["append", "prepend", "replace"]
PatchTarget = Literal["heading", "block", "frontmatter"]

_TAG_PATTERN = re.compile(r"(?<![\w#])#([A-Za-z0-9_][\w/-]*)")
_HEADING = re.compile(r"^(#{1,6})\s+(.*?)\s*$")
_FRONTMATTER = re.compile(r"\A---[ \t]*\n(.*?)^---[ \t]*$\n?", re.DOTALL | re.MULTILINE)
_SEARCH_CONTEXT = 40

DEFAULT_COMMANDS: list[dict[str, str]] = [
    {"id": "daily-notes", "name": "Open today's daily note"},
    {"id": "graph:open", "name": "Open graph view"},
    {"id": "editor:save-file", "name": "Save current file"},
]


class VaultStore(Protocol):
    """File CRUD, listing, search and patch primitives the router needs."""

    def list_files(self, directory: str | None = None) -> list[str]:
        """List direct children of a directory; subdirectories end with '/'."""

    def get_file(self, path: str) -> VaultNote:
        """Return a note or raise NotFoundError."""

    def create_file(self, path: str, content: str) -> dict[str, Any]:
        """Create or overwrite a note."""

    def update_file(self, path: str, content: str) -> dict[str, Any]:
        """Replace the content of an existing note."""

    def delete_file(self, path: str) -> dict[str, Any]:
        """Delete a note."""

    def append_to_file(self, path: str, content: str) -> dict[str, Any]:
        """Append content to an existing note."""

    def patch_file(
        self,
        path: str,
        *,
        operation: PatchOperation,
        target_type: PatchTarget,
        target: str,
        content: str,
    ) -> dict[str, Any]:
        """Insert content relative to a heading, block reference or frontmatter key."""

    def search_simple(self, query: str) -> list[dict[str, Any]]:
        """Case-insensitive substring search across notes."""

    def open_file(self, path: str) -> dict[str, Any]:
        """Ask the editor to open a note."""

    def get_server_info(self) -> dict[str, Any]:
        """Describe the backing store."""

    def get_commands(self) -> list[dict[str, str]]:
        """List editor commands."""


class InMemoryVaultStore:
    """Deterministic vault store used for tests and local prototyping."""

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self._files: dict[str, str] = {}
        for path, content in (files or {}).items():
            self._files[_normalize_path(path)] = content

    def list_files(self, directory: str | None = None) -> list[str]:
        prefix = _directory_prefix(directory)
        children: list[str] = []
        for path in sorted(self._files):
            if not path.startswith(prefix):
                continue
            head, _, rest = path[len(prefix) :].partition("/")
            entry = f"{head}/" if rest else head
            if entry not in children:
                children.append(entry)
        if prefix and not children:
            raise NotFoundError(_directory_not_found(directory))
        return children

    def get_file(self, path: str) -> VaultNote:
        key = _normalize_path(path)
        if key not in self._files:
            raise NotFoundError(f"File not found: {path}")
        content = self._files[key]
        return _note(key, content)

    def create_file(self, path: str, content: str) -> dict[str, Any]:
        self._files[_normalize_path(path)] = content
        return {"success": True, "path": path}

    def update_file(self, path: str, content: str) -> dict[str, Any]:
        key = self._require(path)
        self._files[key] = content
        return {"success": True, "path": path}

    def delete_file(self, path: str) -> dict[str, Any]:
        key = self._require(path)
        del self._files[key]
        return {"success": True, "path": path}

    def append_to_file(self, path: str, content: str) -> dict[str, Any]:
        key = self._require(path)
        self._files[key] = self._files[key] + content
        return {"success": True, "path": path}

    def patch_file(
        self,
        path: str,
        *,
        operation: PatchOperation,
        target_type: PatchTarget,
        target: str,
        content: str,
    ) -> dict[str, Any]:
        key = self._require(path)
        self._files[key] = apply_patch(
            self._files[key],
            operation=operation,
            target_type=target_type,
            target=target,
            content=content,
        )
        return {"success": True, "path": path, "target": target}

    def search_simple(self, query: str) -> list[dict[str, Any]]:
        return [
            hit
            for path in sorted(self._files)
            if (hit := _search_hit(path, self._files[path], query)) is not None
        ]

    def open_file(self, path: str) -> dict[str, Any]:
        self._require(path)
        return {"success": True, "message": f"Opened {path}"}

    def get_server_info(self) -> dict[str, Any]:
        return {
            "status": "OK",
            "service": "semantic-vault (in-memory)",
            "authenticated": True,
            "versions": {"self": "0.1.0"},
            "file_count": len(self._files),
        }

    def get_commands(self) -> list[dict[str, str]]:
        return [dict(command) for command in DEFAULT_COMMANDS]

    def _require(self, path: str) -> str:
        key = _normalize_path(path)
        if key not in self._files:
            raise NotFoundError(f"File not found: {path}")
        return key


class FilesystemVaultStore:
    """Vault store backed by a directory of notes on local disk."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def list_files(self, directory: str | None = None) -> list[str]:
        target = self._resolve(_directory_prefix(directory))
        if not target.is_dir():
            raise NotFoundError(_directory_not_found(directory))
        try:
            entries = sorted(target.iterdir(), key=lambda item: item.name)
        except OSError as exc:
            raise UpstreamError(f"Cannot list {directory or 'root'}: {exc}") from exc
        return [
            f"{entry.name}/" if entry.is_dir() else entry.name
            for entry in entries
            if not entry.name.startswith(".")
        ]

    def get_file(self, path: str) -> VaultNote:
        content = self._read(path)
        return _note(_normalize_path(path), content)

    def create_file(self, path: str, content: str) -> dict[str, Any]:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise UpstreamError(f"Cannot write {path}: {exc}") from exc
        return {"success": True, "path": path}

    def update_file(self, path: str, content: str) -> dict[str, Any]:
        self._read(path)
        return self.create_file(path, content)

    def delete_file(self, path: str) -> dict[str, Any]:
        target = self._resolve(path)
        if not target.is_file():
            raise NotFoundError(f"File not found: {path}")
        try:
            target.unlink()
        except OSError as exc:
            raise UpstreamError(f"Cannot delete {path}: {exc}") from exc
        return {"success": True, "path": path}

    def append_to_file(self, path: str, content: str) -> dict[str, Any]:
        existing = self._read(path)
        return self.create_file(path, existing + content)

    def patch_file(
        self,
        path: str,
        *,
        operation: PatchOperation,
        target_type: PatchTarget,
        target: str,
        content: str,
    ) -> dict[str, Any]:
        existing = self._read(path)
        patched = apply_patch(
            existing,
            operation=operation,
            target_type=target_type,
            target=target,
            content=content,
        )
        self.create_file(path, patched)
        return {"success": True, "path": path, "target": target}

    def search_simple(self, query: str) -> list[dict[str, Any]]:
        hits: list[dict[str, Any]] = []
        for file_path in sorted(self.root.rglob("*.md")):
            relative = file_path.relative_to(self.root).as_posix()
            try:
                content = file_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping unreadable note %s during search: %s", relative, exc)
                continue
            hit = _search_hit(relative, content, query)
            if hit is not None:
                hits.append(hit)
        return hits

    def open_file(self, path: str) -> dict[str, Any]:
        if not self._resolve(path).is_file():
            raise NotFoundError(f"File not found: {path}")
        return {"success": True, "message": f"Opened {path}"}

    def get_server_info(self) -> dict[str, Any]:
        return {
            "status": "OK",
            "service": "semantic-vault (filesystem)",
            "authenticated": True,
            "versions": {"self": "0.1.0"},
            "root": str(self.root),
        }

    def get_commands(self) -> list[dict[str, str]]:
        return [dict(command) for command in DEFAULT_COMMANDS]

    def _read(self, path: str) -> str:
        target = self._resolve(path)
        if not target.is_file():
            raise NotFoundError(f"File not found: {path}")
        try:
            return target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise UpstreamError(f"Cannot read {path}: {exc}") from exc

    def _resolve(self, path: str) -> Path:
        target = (self.root / _normalize_path(path)).resolve()
        if target != self.root and self.root not in target.parents:
            raise InvalidRequestError(f"Path escapes the vault root: {path}")
        return target


def extract_tags(content: str) -> list[str]:
    """Unique `#tags` in order of appearance; markdown headings are not tags."""
    tags: list[str] = []
    for match in _TAG_PATTERN.finditer(content):
        tag = f"#{match.group(1)}"
        if tag not in tags:
            tags.append(tag)
    return tags


def parse_frontmatter(content: str) -> dict[str, Any]:
    """YAML mapping from a leading `---` block, or `{}` when absent or unreadable."""
    match = _FRONTMATTER.match(content)
    if match is None:
        return {}
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        logger.warning("Ignoring malformed frontmatter: %s", exc)
        return {}
    return data if isinstance(data, dict) else {}


def _frontmatter_tags(frontmatter: dict[str, Any]) -> list[str]:
    raw = frontmatter.get("tags")
    if isinstance(raw, str):
        raw = re.split(r"[,\s]+", raw)
    if not isinstance(raw, list):
        return []
    return [f"#{str(item).lstrip('#')}" for item in raw if item is not None and str(item).strip("# ")]


def _note(path: str, content: str) -> VaultNote:
    frontmatter = parse_frontmatter(content)
    tags = _frontmatter_tags(frontmatter)
    for tag in extract_tags(content):
        if tag not in tags:
            tags.append(tag)
    return VaultNote(path=path, content=content, tags=tags, frontmatter=frontmatter)


def apply_patch(
    text: str,
    *,
    operation: PatchOperation,
    target_type: PatchTarget,
    target: str,
    content: str,
) -> str:
    """Insert `content` relative to a heading, a `^block` reference or a frontmatter key.

    Missing heading targets are created at the end of the note.
    """

    lines = text.split("\n")
    if target_type == "heading":
        return _patch_heading(lines, operation, target, content)
    if target_type == "block":
        return _patch_block(lines, operation, target, content)
    if target_type == "frontmatter":
        return _patch_frontmatter(lines, operation, target, content)
    raise InvalidRequestError(f"Unsupported patch target type: {target_type}")


def _patch_heading(lines: list[str], operation: str, target: str, new_text: str) -> str:
    wanted = target.split("::")[-1].strip().lower()
    for idx, line in enumerate(lines):
        match = _HEADING.match(line)
        if not match or match.group(2).strip().lower() != wanted:
            continue
        level = len(match.group(1))
        end = len(lines)
        for cursor in range(idx + 1, len(lines)):
            nested = _HEADING.match(lines[cursor])
            if nested and len(nested.group(1)) <= level:
                end = cursor
                break
        if operation == "prepend":
            lines[idx + 1 : idx + 1] = [new_text]
        elif operation == "replace":
            lines[idx + 1 : end] = [new_text, ""] if end < len(lines) else [new_text]
        else:
            while end > idx + 1 and not lines[end - 1].strip():
                end -= 1
            lines[end:end] = [new_text]
        return "\n".join(lines)

    suffix = [] if not lines or not lines[-1].strip() else [""]
    return "\n".join(lines + suffix + [f"## {target.split('::')[-1].strip()}", new_text])


def _patch_block(lines: list[str], operation: str, target: str, new_text: str) -> str:
    marker = f"^{target.lstrip('^')}"
    for idx, line in enumerate(lines):
        if not line.rstrip().endswith(marker):
            continue
        if operation == "prepend":
            lines.insert(idx, new_text)
        elif operation == "replace":
            lines[idx] = f"{new_text} {marker}"
        else:
            lines.insert(idx + 1, new_text)
        return "\n".join(lines)
    raise NotFoundError(f"Block reference not found: {marker}")


def _patch_frontmatter(lines: list[str], operation: str, target: str, new_text: str) -> str:
    text = "\n".join(lines)
    match = _FRONTMATTER.match(text)
    if match is None:
        if lines and lines[0].rstrip() == "---":
            raise InvalidRequestError("Unterminated frontmatter block")
        data: dict[str, Any] = {}
        body = text
    else:
        try:
            loaded = yaml.safe_load(match.group(1))
        except yaml.YAMLError as exc:
            raise InvalidRequestError(f"Malformed frontmatter: {exc}") from exc
        if loaded is not None and not isinstance(loaded, dict):
            raise InvalidRequestError("Frontmatter is not a mapping")
        data = loaded or {}
        body = text[match.end() :]

    value = _frontmatter_value(new_text)
    current = data.get(target)
    if operation == "replace" or current is None or current == "":
        data[target] = value
    elif isinstance(current, list):
        items = value if isinstance(value, list) else [value]
        data[target] = items + current if operation == "prepend" else current + items
    elif isinstance(current, str) and isinstance(value, str):
        data[target] = f"{value} {current}" if operation == "prepend" else f"{current} {value}"
    else:
        data[target] = [value, current] if operation == "prepend" else [current, value]

    dumped = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)
    header = dumped.rstrip("\n")
    return f"---\n{header}\n---\n{body}"


def _frontmatter_value(raw: str) -> Any:
    try:
        value = yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw
    # a bare `#tag` loads as a YAML comment
    return raw if value is None and raw.strip() else value


def _search_hit(path: str, content: str, query: str) -> dict[str, Any] | None:
    needle = query.lower()
    if not needle:
        return None
    haystack = content.lower()
    matches: list[dict[str, Any]] = []
    start = haystack.find(needle)
    while start != -1:
        end = start + len(needle)
        matches.append(
            {
                "match": {"start": start, "end": end},
                "context": content[max(0, start - _SEARCH_CONTEXT) : end + _SEARCH_CONTEXT],
            }
        )
        start = haystack.find(needle, end)
    if not matches and needle not in path.lower():
        return None
    return {"filename": path, "score": float(len(matches)), "matches": matches}


def _normalize_path(path: str) -> str:
    cleaned = str(PurePosixPath("/" + path.strip())).lstrip("/")
    return "" if cleaned == "." else cleaned


def _directory_prefix(directory: str | None) -> str:
    normalized = _normalize_path(directory or "")
    return f"{normalized}/" if normalized else ""


def _directory_not_found(directory: str | None) -> str:
    name = directory or "root"
    return (
        f"Directory not found: {name}. Try vault(action='list') to see available "
        "directories, or list the parent directory."
    )
