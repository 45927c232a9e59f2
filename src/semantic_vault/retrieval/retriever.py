"""Multi-strategy fragment retriever over indexed documents."""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import asdict, dataclass, field
from typing import Any

from semantic_vault.config import RetrievalConfig
from semantic_vault.retrieval.index import DocumentIndexer, query_terms
from semantic_vault.retrieval.strategies import (
    AdaptiveStrategy,
    ProximityStrategy,
    RetrievalStrategy,
    SemanticStrategy,
)
from semantic_vault.types import Fragment, IndexedDocument, StrategyChoice, StrategyName

_STRATEGY_REASONS: dict[StrategyName, str] = {
    "adaptive": "short queries favor precise paragraph-level matches",
    "proximity": "medium queries favor passages where terms appear together",
    "semantic": "long queries favor topical sections under matching headings",
}


def select_strategy(query: str, requested: StrategyChoice = "auto") -> tuple[StrategyName, str]:
    """Resolve `auto` by query word count: <=2 adaptive, 3 proximity, >=4 semantic."""

    if requested != "auto":
        return requested, f"Using requested {requested} strategy"
    words = len(query.split())
    if words <= 2:
        chosen: StrategyName = "adaptive"
    elif words == 3:
        chosen = "proximity"
    else:
        chosen = "semantic"
    return chosen, f"Auto-selected {chosen} strategy for a {words}-word query: {_STRATEGY_REASONS[chosen]}"


@dataclass(slots=True)
class FragmentResponse:
    """Fragments plus workflow and efficiency hints for the caller."""

    result: list[Fragment]
    workflow: dict[str, Any] | None = None
    efficiency_hints: dict[str, Any] | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "result": [asdict(fragment) for fragment in self.result],
            "context": dict(self.context),
        }
        if self.workflow is not None:
            payload["workflow"] = self.workflow
        if self.efficiency_hints is not None:
            payload["efficiency_hints"] = self.efficiency_hints
        return payload


class FragmentRetriever:
    """Indexes documents and returns the most relevant excerpts for a query.

    Documents are keyed by `doc_id`. Re-indexing builds the new document in
    full and then replaces the old entry, so stale fragments never survive.
    """

    def __init__(
        self,
        config: RetrievalConfig | None = None,
        indexer: DocumentIndexer | None = None,
    ) -> None:
        self.config = config or RetrievalConfig()
        self.indexer = indexer or DocumentIndexer()
        self._documents: dict[str, IndexedDocument] = {}
        self._strategies: dict[StrategyName, RetrievalStrategy] = {
            "adaptive": AdaptiveStrategy(),
            "proximity": ProximityStrategy(self.config),
            "semantic": SemanticStrategy(self.config),
        }

    @property
    def indexed_document_count(self) -> int:
        return len(self._documents)

    def index_document(self, doc_id: str, path: str, text: str) -> IndexedDocument:
        document = self.indexer.build(doc_id, path, text)
        self._documents[doc_id] = document
        return document

    def remove_document(self, doc_id: str) -> bool:
        return self._documents.pop(doc_id, None) is not None

    def has_document(self, doc_id: str) -> bool:
        return doc_id in self._documents

    def retrieve_fragments(
        self,
        query: str | None,
        *,
        strategy: StrategyChoice = "auto",
        max_fragments: int | None = None,
        doc_ids: Collection[str] | None = None,
    ) -> FragmentResponse:
        """Rank fragments across indexed documents, or only `doc_ids` when given.

        A missing or blank query yields an empty result rather than an error.
        Ordering is score descending, then `line_start` ascending.
        """

        limit = self.config.max_fragments if max_fragments is None else max_fragments
        query = (query or "").strip()
        if not query:
            return FragmentResponse(
                result=[],
                workflow={
                    "message": "No query provided; nothing to retrieve",
                    "suggested_next": [
                        {
                            "description": "Retry with a query",
                            "command": "vault(action='fragments', query='<terms>')",
                            "reason": "Fragment retrieval needs at least one search term",
                        }
                    ],
                },
                context={"search_results": 0, "linked_files": []},
            )

        chosen, reason = select_strategy(query, strategy)
        terms = query_terms(query)
        candidates: list[Fragment] = []
        for document in list(self._documents.values()):
            if doc_ids is not None and document.doc_id not in doc_ids:
                continue
            candidates.extend(
                fragment
                for fragment in self._strategies[chosen].score(document, terms)
                if fragment.score > 0
            )

        ranked = sorted(
            candidates,
            key=lambda item: (-item.score, item.line_start, item.doc_path),
        )[:limit]

        linked_files: list[str] = []
        for fragment in ranked:
            if fragment.doc_path not in linked_files:
                linked_files.append(fragment.doc_path)

        return FragmentResponse(
            result=ranked,
            workflow=self._workflow_hints(ranked, chosen, linked_files),
            efficiency_hints={
                "message": reason,
                "alternatives": [
                    f"strategy='{name}' when {_STRATEGY_REASONS[name]}"
                    for name in self._strategies
                    if name != chosen
                ],
            },
            context={"search_results": len(ranked), "linked_files": linked_files},
        )

    def _workflow_hints(
        self, ranked: list[Fragment], chosen: StrategyName, linked_files: list[str]
    ) -> dict[str, Any]:
        target = linked_files[0] if linked_files else "<path>"
        alternative = "semantic" if chosen != "semantic" else "proximity"
        return {
            "message": f"Found {len(ranked)} relevant fragments using {chosen} strategy",
            "suggested_next": [
                {
                    "description": "Read the full file for complete context",
                    "command": f"vault(action='read', path='{target}', returnFullFile=true)",
                    "reason": "Fragments may omit surrounding context",
                },
                {
                    "description": f"Try the {alternative} strategy",
                    "command": f"vault(action='fragments', query='...', strategy='{alternative}')",
                    "reason": "A different granularity can surface other relevant passages",
                },
            ],
        }
