"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

StrategyName = Literal["adaptive", "proximity", "semantic"]
StrategyChoice = Literal["adaptive", "proximity", "semantic", "auto"]


@dataclass(slots=True)
class Paragraph:
    """A blank-line delimited block of a document."""

    text: str
    line_start: int
    line_end: int


@dataclass(slots=True)
class Sentence:
    text: str
    line_start: int
    line_end: int
    paragraph_index: int


@dataclass(slots=True)
class Chunk:
    """A heading-bounded section of a document."""

    text: str
    heading: str
    level: int
    chunk_type: str
    line_start: int
    line_end: int


@dataclass(slots=True)
class IndexedDocument:
    """A fully indexed document; replaced wholesale on re-index."""

    doc_id: str
    path: str
    raw_text: str
    paragraphs: list[Paragraph]
    sentences: list[Sentence]
    chunks: list[Chunk]


@dataclass(slots=True)
class Fragment:
    """A scored excerpt returned instead of the whole document."""

    content: str
    line_start: int
    line_end: int
    score: float
    doc_path: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class VaultNote:
    """A note as returned by a vault store."""

    path: str
    content: str
    tags: list[str] = field(default_factory=list)
    frontmatter: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ActionTrace:
    """Trace record for a dispatched router action."""

    operation: str
    action: str
    input_payload: dict[str, Any]
    output_preview: str
    latency_ms: float
