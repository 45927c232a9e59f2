"""Single-slot buffer for edit content awaiting a retry."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(slots=True)
class BufferedContent:
    content: str
    search_text: str | None
    path: str | None
    stored_at: str


class ContentBuffer:
    """Holds at most one pending edit; owned by the session, not the process.

    Storing replaces whatever was held before. Retrieval does not consume the
    slot; call `clear` once the buffered edit has been applied.
    """

    def __init__(self) -> None:
        self._slot: BufferedContent | None = None

    def store(
        self,
        content: str,
        *,
        search_text: str | None = None,
        path: str | None = None,
    ) -> BufferedContent:
        self._slot = BufferedContent(
            content=content,
            search_text=search_text,
            path=path,
            stored_at=datetime.now(timezone.utc).isoformat(),
        )
        return self._slot

    def retrieve(self) -> BufferedContent | None:
        return self._slot

    def clear(self) -> None:
        self._slot = None

    @property
    def available(self) -> bool:
        return self._slot is not None
