"""Paragraph, sentence and heading-chunk indexing for one document."""

from __future__ import annotations

import re
from collections import Counter

from semantic_vault.types import Chunk, IndexedDocument, Paragraph, Sentence

_TOKEN_PATTERN = re.compile(r"\w+", flags=re.UNICODE)
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?。！？])\s+")
_HEADING = re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$")
_LIST_ITEM = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+")
_TABLE_ROW = re.compile(r"^\s*\|.*\|\s*$")
_FENCE = re.compile(r"^\s*(```|~~~)")


def tokenize(text: str) -> list[str]:
    """Lowercase word tokens used by every strategy and by query parsing."""
    return [token.lower() for token in _TOKEN_PATTERN.findall(text)]


def query_terms(query: str) -> list[str]:
    """Distinct query terms in first-seen order."""
    seen: list[str] = []
    for token in tokenize(query):
        if token not in seen:
            seen.append(token)
    return seen


class DocumentIndexer:
    """Builds the three parallel structures scored by retrieval strategies.

    - Paragraphs are blank-line delimited runs of lines.
    - Sentences are split on terminal punctuation followed by whitespace and
      on line breaks, so markdown headings and list items stand alone.
    - Chunks start at a heading and run until the next heading of equal or
      higher level. Text before the first heading becomes a level-0 chunk.

    All line numbers are 1-based and inclusive. The returned document is
    complete before anyone can see it; callers swap it in atomically.
    """

    def build(self, doc_id: str, path: str, text: str) -> IndexedDocument:
        lines = text.split("\n")
        paragraphs = self._split_paragraphs(lines)
        return IndexedDocument(
            doc_id=doc_id,
            path=path,
            raw_text=text,
            paragraphs=paragraphs,
            sentences=self._split_sentences(lines, paragraphs),
            chunks=self._split_chunks(lines),
        )

    @staticmethod
    def _split_paragraphs(lines: list[str]) -> list[Paragraph]:
        paragraphs: list[Paragraph] = []
        start: int | None = None
        for idx, line in enumerate(lines):
            if line.strip():
                if start is None:
                    start = idx
                continue
            if start is not None:
                paragraphs.append(
                    Paragraph(
                        text="\n".join(lines[start:idx]),
                        line_start=start + 1,
                        line_end=idx,
                    )
                )
                start = None
        if start is not None:
            paragraphs.append(
                Paragraph(
                    text="\n".join(lines[start:]),
                    line_start=start + 1,
                    line_end=len(lines),
                )
            )
        return paragraphs

    @staticmethod
    def _split_sentences(lines: list[str], paragraphs: list[Paragraph]) -> list[Sentence]:
        sentences: list[Sentence] = []
        for p_index, paragraph in enumerate(paragraphs):
            for line_no in range(paragraph.line_start, paragraph.line_end + 1):
                for part in _SENTENCE_SPLIT.split(lines[line_no - 1]):
                    part = part.strip()
                    if part:
                        sentences.append(
                            Sentence(
                                text=part,
                                line_start=line_no,
                                line_end=line_no,
                                paragraph_index=p_index,
                            )
                        )
        return sentences

    def _split_chunks(self, lines: list[str]) -> list[Chunk]:
        headings: list[tuple[int, int, str]] = []
        in_fence = False
        for idx, line in enumerate(lines):
            if _FENCE.match(line):
                in_fence = not in_fence
                continue
            if in_fence:
                continue
            match = _HEADING.match(line)
            if match:
                headings.append((idx, len(match.group(1)), match.group(2).strip()))

        chunks: list[Chunk] = []
        first_heading = headings[0][0] if headings else len(lines)
        preamble = self._build_chunk(lines, 0, first_heading, heading="", level=0)
        if preamble is not None:
            chunks.append(preamble)

        for pos, (start, level, title) in enumerate(headings):
            end = len(lines)
            for next_start, next_level, _ in headings[pos + 1 :]:
                if next_level <= level:
                    end = next_start
                    break
            chunk = self._build_chunk(lines, start, end, heading=title, level=level)
            if chunk is not None:
                chunks.append(chunk)
        return chunks

    def _build_chunk(
        self, lines: list[str], start: int, end: int, *, heading: str, level: int
    ) -> Chunk | None:
        while end > start and not lines[end - 1].strip():
            end -= 1
        if level == 0:
            while start < end and not lines[start].strip():
                start += 1
        if end <= start:
            return None

        body = lines[start + 1 : end] if level > 0 else lines[start:end]
        return Chunk(
            text="\n".join(lines[start:end]),
            heading=heading,
            level=level,
            chunk_type=self._chunk_type(body),
            line_start=start + 1,
            line_end=end,
        )

    @staticmethod
    def _chunk_type(body: list[str]) -> str:
        kinds: Counter[str] = Counter()
        in_fence = False
        for line in body:
            if _FENCE.match(line):
                in_fence = not in_fence
                kinds["code"] += 1
                continue
            if not line.strip():
                continue
            if in_fence:
                kinds["code"] += 1
            elif _HEADING.match(line):
                kinds["heading"] += 1
            elif _LIST_ITEM.match(line):
                kinds["list"] += 1
            elif _TABLE_ROW.match(line):
                kinds["table"] += 1
            else:
                kinds["paragraph"] += 1
        if not kinds:
            return "heading"
        # Counter.most_common keeps insertion order for ties.
        return kinds.most_common(1)[0][0]
