"""Scoring strategies over an indexed document."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections import Counter

from semantic_vault.config import RetrievalConfig
from semantic_vault.retrieval.index import tokenize
from semantic_vault.types import Fragment, IndexedDocument, Sentence, StrategyName


class RetrievalStrategy(ABC):
    """Strategy interface: score one document for a set of query terms."""

    name: StrategyName

    @abstractmethod
    def score(self, document: IndexedDocument, terms: list[str]) -> list[Fragment]:
        """Return candidate fragments with score > 0."""


class AdaptiveStrategy(RetrievalStrategy):
    """Paragraph-level scoring tuned for short, precise queries.

    score = distinct matched terms / (1 + ln(1 + paragraph word count))
    """

    name: StrategyName = "adaptive"

    def score(self, document: IndexedDocument, terms: list[str]) -> list[Fragment]:
        fragments: list[Fragment] = []
        for paragraph in document.paragraphs:
            tokens = tokenize(paragraph.text)
            token_set = set(tokens)
            matched = [term for term in terms if term in token_set]
            if not matched:
                continue
            score = len(matched) / (1.0 + math.log1p(len(tokens)))
            fragments.append(
                Fragment(
                    content=paragraph.text,
                    line_start=paragraph.line_start,
                    line_end=paragraph.line_end,
                    score=score,
                    doc_path=document.path,
                    metadata={
                        "strategy": self.name,
                        "doc_id": document.doc_id,
                        "matched_terms": matched,
                    },
                )
            )
        return fragments


class ProximityStrategy(RetrievalStrategy):
    """Sentence-window scoring that rewards query terms appearing together.

    Windows of `proximity_window` consecutive sentences are taken inside each
    paragraph. A window scores `term_count / span` where `span` is the shortest
    token run covering one occurrence of every distinct term; windows missing a
    term score zero. The fragment is trimmed to the sentences the span touches.
    """

    name: StrategyName = "proximity"

    def __init__(self, config: RetrievalConfig | None = None) -> None:
        self.config = config or RetrievalConfig()

    def score(self, document: IndexedDocument, terms: list[str]) -> list[Fragment]:
        if not terms:
            return []
        best: dict[tuple[int, int, str], Fragment] = {}
        for window in self._windows(document.sentences):
            positions: list[tuple[int, str, int]] = []
            offset = 0
            for s_index, sentence in enumerate(window):
                for token in tokenize(sentence.text):
                    if token in terms:
                        positions.append((offset, token, s_index))
                    offset += 1
            span = _min_covering_span(positions, len(terms))
            if span is None:
                continue
            length, first_sentence, last_sentence = span
            selected = window[first_sentence : last_sentence + 1]
            fragment = Fragment(
                content=" ".join(sentence.text for sentence in selected),
                line_start=selected[0].line_start,
                line_end=selected[-1].line_end,
                score=len(terms) / length,
                doc_path=document.path,
                metadata={
                    "strategy": self.name,
                    "doc_id": document.doc_id,
                    "span": length,
                },
            )
            key = (fragment.line_start, fragment.line_end, fragment.content)
            current = best.get(key)
            if current is None or fragment.score > current.score:
                best[key] = fragment
        return list(best.values())

    def _windows(self, sentences: list[Sentence]) -> list[list[Sentence]]:
        size = self.config.proximity_window
        windows: list[list[Sentence]] = []
        for idx, sentence in enumerate(sentences):
            window = [sentence]
            for following in sentences[idx + 1 : idx + size]:
                if following.paragraph_index != sentence.paragraph_index:
                    break
                window.append(following)
            windows.append(window)
        return windows


class SemanticStrategy(RetrievalStrategy):
    """Chunk-level scoring for long, descriptive queries.

    score = total query-term frequency in the chunk, plus `heading_bonus` when
    a query term appears in the chunk heading.
    """

    name: StrategyName = "semantic"

    def __init__(self, config: RetrievalConfig | None = None) -> None:
        self.config = config or RetrievalConfig()

    def score(self, document: IndexedDocument, terms: list[str]) -> list[Fragment]:
        fragments: list[Fragment] = []
        for chunk in document.chunks:
            frequencies = Counter(tokenize(chunk.text))
            tf = sum(frequencies[term] for term in terms)
            if tf == 0:
                continue
            heading_tokens = set(tokenize(chunk.heading))
            bonus = self.config.heading_bonus if heading_tokens.intersection(terms) else 0.0
            fragments.append(
                Fragment(
                    content=chunk.text,
                    line_start=chunk.line_start,
                    line_end=chunk.line_end,
                    score=float(tf) + bonus,
                    doc_path=document.path,
                    metadata={
                        "strategy": self.name,
                        "doc_id": document.doc_id,
                        "chunk_type": chunk.chunk_type,
                        "heading": chunk.heading,
                    },
                )
            )
        return fragments


def _min_covering_span(
    positions: list[tuple[int, str, int]], term_count: int
) -> tuple[int, int, int] | None:
    """Shortest run of positions covering every distinct term.

    Returns `(length_in_tokens, first_sentence, last_sentence)` or None.
    """

    counts: Counter[str] = Counter()
    best: tuple[int, int, int] | None = None
    left = 0
    for right, (offset, term, _) in enumerate(positions):
        counts[term] += 1
        while len(counts) == term_count:
            start_offset, start_term, _ = positions[left]
            length = offset - start_offset + 1
            if best is None or length < best[0]:
                best = (length, positions[left][2], positions[right][2])
            counts[start_term] -= 1
            if counts[start_term] == 0:
                del counts[start_term]
            left += 1
    return best
