"""Approximate substring search used to anchor edits."""

from __future__ import annotations

import re
from dataclasses import dataclass

from rapidfuzz import fuzz

_WORD = re.compile(r"\S+")
_WHITESPACE = re.compile(r"\s+")


@dataclass(slots=True)
class FuzzyMatch:
    """A span of the content similar to the search text.

    `start`/`end` are character offsets into the searched content and
    `line_number` is the 1-based line the span starts on.
    """

    line_number: int
    text: str
    similarity: float
    start: int
    end: int


def similarity(a: str, b: str) -> float:
    """Normalized Indel similarity over whitespace-collapsed, lowercased text.

    RapidFuzz's ratio is 2*M / (len(a) + len(b)) with M the longest common
    subsequence, scaled here to [0, 1]; identical text scores exactly 1.0.
    """

    left = _normalize(a)
    right = _normalize(b)
    if left == right:
        return 1.0
    return fuzz.ratio(left, right) / 100.0


def find_fuzzy_matches(content: str, search_text: str, threshold: float = 0.7) -> list[FuzzyMatch]:
    """Return spans with similarity >= threshold, best first.

    An exact substring short-circuits: every occurrence is returned with
    similarity 1.0. Ties are ordered by line number, then start offset, so
    the first span in the file always wins.
    """

    if not search_text or not content:
        return []

    if search_text in content:
        return _exact_matches(content, search_text)

    line_offsets = _line_offsets(content)
    lines = content.split("\n")
    if "\n" in search_text.strip():
        candidates = _line_window_candidates(lines, line_offsets, search_text)
    else:
        candidates = _word_window_candidates(lines, line_offsets, search_text)

    matches: dict[tuple[int, int], FuzzyMatch] = {}
    for line_number, start, end in candidates:
        if (start, end) in matches:
            continue
        text = content[start:end]
        score = similarity(text, search_text)
        if score >= threshold:
            matches[(start, end)] = FuzzyMatch(
                line_number=line_number,
                text=text,
                similarity=score,
                start=start,
                end=end,
            )

    return sorted(
        matches.values(),
        key=lambda item: (-item.similarity, item.line_number, item.start),
    )


def best_similarity(content: str, search_text: str) -> float:
    """Highest similarity of any candidate span, regardless of threshold."""
    matches = find_fuzzy_matches(content, search_text, threshold=0.0)
    return matches[0].similarity if matches else 0.0


def line_number_at(content: str, offset: int) -> int:
    return content.count("\n", 0, offset) + 1


def _exact_matches(content: str, search_text: str) -> list[FuzzyMatch]:
    found: list[FuzzyMatch] = []
    start = content.find(search_text)
    while start != -1:
        end = start + len(search_text)
        found.append(
            FuzzyMatch(
                line_number=line_number_at(content, start),
                text=search_text,
                similarity=1.0,
                start=start,
                end=end,
            )
        )
        start = content.find(search_text, end)
    return found


def _line_window_candidates(
    lines: list[str], offsets: list[int], search_text: str
) -> list[tuple[int, int, int]]:
    size = len(search_text.strip().split("\n"))
    candidates: list[tuple[int, int, int]] = []
    for window in (size - 1, size, size + 1):
        if window < 1:
            continue
        for idx in range(0, max(0, len(lines) - window + 1)):
            last = idx + window - 1
            start = offsets[idx]
            end = offsets[last] + len(lines[last])
            candidates.append((idx + 1, start, end))
    return candidates


def _word_window_candidates(
    lines: list[str], offsets: list[int], search_text: str
) -> list[tuple[int, int, int]]:
    size = len(search_text.split())
    candidates: list[tuple[int, int, int]] = []
    for idx, line in enumerate(lines):
        if not line.strip():
            continue
        base = offsets[idx]
        candidates.append((idx + 1, base, base + len(line)))
        words = [(m.start(), m.end()) for m in _WORD.finditer(line)]
        for window in (size - 1, size, size + 1):
            if window < 1 or window > len(words):
                continue
            for first in range(0, len(words) - window + 1):
                last = first + window - 1
                candidates.append((idx + 1, base + words[first][0], base + words[last][1]))
    return candidates


def _line_offsets(content: str) -> list[int]:
    offsets = [0]
    for idx, char in enumerate(content):
        if char == "\n":
            offsets.append(idx + 1)
    return offsets


def _normalize(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip().lower()
