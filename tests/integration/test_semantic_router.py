from semantic_vault.semantic.router import SemanticRouter
from semantic_vault.vault.store import InMemoryVaultStore


def _router(files: dict[str, str]) -> SemanticRouter:
    return SemanticRouter(InMemoryVaultStore(files))


def _commands(hints: list[dict[str, str]]) -> list[str]:
    return [hint["command"] for hint in hints]


def test_read_returns_fragments_and_edit_suggestion() -> None:
    router = _router({"notes/tax.md": "# Tax\nWe expect to recover $200,000 in ITCs. See [[Budget]]."})

    response = router.route(
        {"operation": "vault", "action": "read", "params": {"path": "notes/tax.md", "query": "tax recovery"}}
    )

    result = response["result"]
    assert "$200,000" in result["content"][0]["content"]
    assert result["content"][0]["line_start"] > 0
    assert result["links"] == ["Budget"]
    descriptions = [s["description"] for s in response["workflow"]["suggested_next"]]
    assert "Edit this file" in descriptions
    assert "Follow a linked note" in descriptions
    assert response["context"]["current_file"] == "notes/tax.md"
    assert response["context"]["has_links"] is True
    assert "efficiency_hints" not in response


def test_missing_file_read_suggests_listing_parent() -> None:
    router = _router({"a.md": "alpha"})

    response = router.route({"operation": "vault", "action": "read", "params": {"path": "missing/none.md"}})

    assert response["result"] is None
    assert "workflow" not in response
    assert response["error"]["code"] == "NOT_FOUND"
    assert "File not found: missing/none.md" in response["error"]["message"]
    assert "vault(action='list', directory='missing')" in _commands(response["error"]["recovery_hints"])
    assert response["context"]["current_file"] == "missing/none.md"


def test_missing_directory_list_suggests_root_and_parent() -> None:
    router = _router({"a.md": "alpha"})

    response = router.route({"operation": "vault", "action": "list", "params": {"directory": "nope"}})

    assert response["error"]["code"] == "NOT_FOUND"
    assert "Directory not found" in response["error"]["message"]
    commands = _commands(response["error"]["recovery_hints"])
    assert "vault(action='list')" in commands
    assert "vault(action='list', directory='/')" in commands


def test_list_success_suggests_reading_not_editing() -> None:
    router = _router({"a.md": "alpha", "notes/b.md": "beta"})

    response = router.route({"operation": "vault", "action": "list", "params": {}})

    assert response["result"] == ["a.md", "notes/"]
    commands = _commands(response["workflow"]["suggested_next"])
    assert "vault(action='read', path='<file>')" in commands
    assert not any(command.startswith("edit(") for command in commands)
    assert response["context"]["current_directory"] == "/"


def test_second_consecutive_edit_gets_batching_hint() -> None:
    router = _router({"a.md": "one two three"})

    first = router.route(
        {"operation": "edit", "action": "window", "params": {"path": "a.md", "oldText": "one", "newText": "uno"}}
    )
    second = router.route(
        {"operation": "edit", "action": "window", "params": {"path": "a.md", "old_text": "two", "new_text": "dos"}}
    )

    assert "efficiency_hints" not in first
    assert "incremental edits" in second["efficiency_hints"]["message"]
    assert "Replaced text" in second["workflow"]["message"]
    assert router.store.get_file("a.md").content == "uno dos three"


def test_failed_edit_buffers_content_and_from_buffer_applies_it() -> None:
    router = _router({"a.md": "hello world"})

    failed = router.route(
        {
            "operation": "edit",
            "action": "window",
            "params": {"path": "a.md", "oldText": "zzzz qqqq xxxx", "newText": "goodbye"},
        }
    )

    assert failed["error"]["code"] == "NOT_FOUND"
    assert failed["context"]["buffer_available"] is True
    buffered_hint = next(h for h in failed["error"]["recovery_hints"] if "buffered" in h["description"])
    assert buffered_hint["command"] == "edit(action='from_buffer', path='a.md', oldText='...')"
    assert router.buffer.retrieve().content == "goodbye"

    applied = router.route(
        {"operation": "edit", "action": "from_buffer", "params": {"path": "a.md", "oldText": "hello"}}
    )

    assert applied["result"]["match_type"] == "exact"
    assert router.store.get_file("a.md").content == "goodbye world"
    assert router.buffer.available is False
    assert applied["context"]["buffer_available"] is False


def test_from_buffer_without_buffer_is_not_found() -> None:
    router = _router({"a.md": "hello"})

    response = router.route({"operation": "edit", "action": "from_buffer", "params": {"path": "a.md"}})

    assert response["error"]["code"] == "NOT_FOUND"
    assert response["error"]["message"] == "No buffered content available"


def test_unknown_action_and_bad_params_are_validation_errors() -> None:
    router = _router({})

    unknown = router.route({"operation": "vault", "action": "teleport", "params": {}})
    missing_path = router.route({"operation": "vault", "action": "read", "params": {}})
    malformed = router.route({"action": "read"})

    assert unknown["error"]["code"] == "VALIDATION_ERROR"
    assert unknown["error"]["recovery_hints"] == []
    assert missing_path["error"]["code"] == "VALIDATION_ERROR"
    assert missing_path["error"]["message"].startswith("Invalid params")
    assert malformed["error"]["code"] == "VALIDATION_ERROR"


def test_create_then_writes_invalidate_index() -> None:
    router = _router({"a.md": "alpha"})

    created = router.route({"operation": "vault", "action": "create", "params": {"path": "new.md", "content": "x"}})
    assert "Add content to the new note" in [s["description"] for s in created["workflow"]["suggested_next"]]

    router.route({"operation": "vault", "action": "read", "params": {"path": "a.md"}})
    assert router.retriever.has_document("file:a.md")

    router.route({"operation": "vault", "action": "update", "params": {"path": "a.md", "content": "beta"}})
    assert not router.retriever.has_document("file:a.md")


def test_search_paginates_and_flags_repeats() -> None:
    router = _router({"a.md": "alpha", "b.md": "alpha", "c.md": "alpha"})

    first = router.route(
        {"operation": "vault", "action": "search", "params": {"query": "alpha", "pageSize": 2}}
    )
    second = router.route(
        {"operation": "vault", "action": "search", "params": {"query": "alpha", "page": 2, "pageSize": 2}}
    )

    assert first["result"]["total_results"] == 3
    assert first["result"]["total_pages"] == 2
    assert len(first["result"]["results"]) == 2
    assert len(second["result"]["results"]) == 1
    assert "efficiency_hints" not in first
    assert "Same search" in second["efficiency_hints"]["message"]
    assert second["context"]["search_results_available"] is True


def test_full_file_read_reports_word_count_and_hint() -> None:
    router = _router({"a.md": "one two three"})

    response = router.route(
        {"operation": "vault", "action": "read", "params": {"path": "a.md", "returnFullFile": True}}
    )

    assert response["result"]["content"] == "one two three"
    assert response["result"]["metadata"] == {"word_count": 3, "warning": None}
    assert "Full-file reads" in response["efficiency_hints"]["message"]


def test_fragments_indexes_whole_vault_on_first_use() -> None:
    router = _router({"a.md": "# Tax\nWe expect to recover $200,000.", "sub/b.md": "unrelated text", "img.png": "x"})

    response = router.route({"operation": "vault", "action": "fragments", "params": {"query": "tax"}})

    assert response["result"]["result"][0]["doc_path"] == "a.md"
    assert router.retriever.indexed_document_count == 2


def test_view_window_centers_on_search_text() -> None:
    router = _router({"a.md": "\n".join(f"line {n}" for n in range(1, 31))})

    response = router.route(
        {"operation": "view", "action": "window", "params": {"path": "a.md", "searchText": "line 25"}}
    )

    assert (response["result"]["start_line"], response["result"]["end_line"]) == (15, 30)
    assert response["result"]["center_line"] == 25


def test_at_line_rejects_out_of_range_lines() -> None:
    router = _router({"a.md": "a\nb"})

    response = router.route(
        {"operation": "edit", "action": "at_line", "params": {"path": "a.md", "lineNumber": 0, "content": "x"}}
    )
    ok = router.route(
        {"operation": "edit", "action": "at_line", "params": {"path": "a.md", "lineNumber": 2, "content": "x"}}
    )

    assert response["error"]["code"] == "VALIDATION_ERROR"
    assert response["error"]["message"] == "Invalid line number 0. File has 2 lines."
    assert ok["result"]["success"] is True
    assert router.store.get_file("a.md").content == "a\nx"


def test_workflow_suggest_and_system_passthrough() -> None:
    router = _router({"a.md": "alpha"})
    router.route({"operation": "vault", "action": "read", "params": {"path": "a.md"}})

    suggested = router.route({"operation": "workflow", "action": "suggest"})
    info = router.route({"operation": "system", "action": "info"})
    commands = router.route({"operation": "system", "action": "commands"})

    assert suggested["result"]["suggestions"][0]["description"] == "Continue working with last file"
    assert info["result"]["status"] == "OK"
    assert commands["result"]
    assert [trace.action for trace in router.recent_traces(limit=2)] == ["commands", "info"]


def test_full_read_returns_frontmatter_and_its_tags() -> None:
    router = _router({"tax.md": "---\ntitle: Tax\ntags: [finance, q3]\n---\n# Tax\nRecover ITCs."})

    response = router.route(
        {"operation": "vault", "action": "read", "params": {"path": "tax.md", "returnFullFile": True}}
    )

    result = response["result"]
    assert result["frontmatter"] == {"title": "Tax", "tags": ["finance", "q3"]}
    assert result["tags"] == ["#finance", "#q3"]
    assert response["context"]["has_tags"] is True


def test_repeat_check_ignores_queries_from_reads() -> None:
    router = _router({"a.md": "alpha", "b.md": "alpha"})

    router.route({"operation": "vault", "action": "read", "params": {"path": "a.md", "query": "alpha"}})
    response = router.route({"operation": "vault", "action": "search", "params": {"query": "alpha"}})

    assert response["result"]["total_results"] == 2
    assert "efficiency_hints" not in response


def test_fragments_covers_vault_after_read_and_writes() -> None:
    router = _router({"a.md": "alpha", "b.md": "beta notes"})

    router.route({"operation": "vault", "action": "read", "params": {"path": "a.md"}})
    first = router.route({"operation": "vault", "action": "fragments", "params": {"query": "beta"}})
    assert [item["doc_path"] for item in first["result"]["result"]] == ["b.md"]

    router.route({"operation": "vault", "action": "create", "params": {"path": "c.md", "content": "beta again"}})
    router.route({"operation": "vault", "action": "delete", "params": {"path": "b.md"}})
    second = router.route({"operation": "vault", "action": "fragments", "params": {"query": "beta"}})

    assert [item["doc_path"] for item in second["result"]["result"]] == ["c.md"]
