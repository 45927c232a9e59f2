"""Line-addressed helpers for inserting and viewing note content."""

from __future__ import annotations

from typing import Any, Literal

from semantic_vault.errors import InvalidRequestError

InsertMode = Literal["before", "after", "replace"]


def insert_at_line(content: str, line_number: int, text: str, mode: InsertMode = "replace") -> str:
    lines = content.split("\n")
    if line_number < 1 or line_number > len(lines) + 1:
        raise InvalidRequestError(
            f"Invalid line number {line_number}. File has {len(lines)} lines."
        )
    index = line_number - 1
    if mode == "before":
        lines.insert(index, text)
    elif mode == "after":
        lines.insert(index + 1, text)
    elif index == len(lines):
        lines.append(text)
    else:
        lines[index] = text
    return "\n".join(lines)


def line_window(content: str, center_line: int, window_size: int) -> dict[str, Any]:
    """Slice of lines centered on `center_line`, clamped to the file."""

    lines = content.split("\n")
    half = window_size // 2
    center = min(max(1, center_line), len(lines))
    start = max(1, center - half)
    end = min(len(lines), center + half)
    return {
        "lines": lines[start - 1 : end],
        "start_line": start,
        "end_line": end,
        "total_lines": len(lines),
        "center_line": center,
    }
