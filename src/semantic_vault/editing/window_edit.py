"""Replace text in a vault note using an exact or fuzzy anchor."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from semantic_vault.editing.fuzzy import best_similarity, find_fuzzy_matches, line_number_at
from semantic_vault.errors import InvalidRequestError, NoMatchError
from semantic_vault.vault.store import VaultStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WindowEditResult:
    path: str
    match_type: Literal["exact", "fuzzy"]
    similarity: float
    line_number: int
    replaced_text: str
    new_text: str


def perform_window_edit(
    store: VaultStore,
    path: str,
    old_text: str,
    new_text: str,
    fuzzy_threshold: float = 0.7,
) -> WindowEditResult:
    """Replace `old_text` with `new_text` in the note at `path`.

    1. Exact match: the first occurrence is replaced.
    2. Otherwise the best fuzzy span at or above `fuzzy_threshold` is replaced;
       equal scores resolve to the lowest line.
    3. Otherwise `NoMatchError` is raised. Buffering the attempted edit for a
       retry is left to the caller.
    """

    if not old_text:
        raise InvalidRequestError("oldText must be a non-empty string")

    content = store.get_file(path).content

    start = content.find(old_text)
    if start != -1:
        end = start + len(old_text)
        store.update_file(path, content[:start] + new_text + content[end:])
        return WindowEditResult(
            path=path,
            match_type="exact",
            similarity=1.0,
            line_number=line_number_at(content, start),
            replaced_text=old_text,
            new_text=new_text,
        )

    matches = find_fuzzy_matches(content, old_text, fuzzy_threshold)
    if not matches:
        best = best_similarity(content, old_text)
        logger.info(
            "No fuzzy anchor in %s (best similarity %.2f, threshold %.2f)",
            path,
            best,
            fuzzy_threshold,
        )
        raise NoMatchError(path, best, fuzzy_threshold)

    match = matches[0]
    store.update_file(path, content[: match.start] + new_text + content[match.end :])
    return WindowEditResult(
        path=path,
        match_type="fuzzy",
        similarity=match.similarity,
        line_number=match.line_number,
        replaced_text=match.text,
        new_text=new_text,
    )
