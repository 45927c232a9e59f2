import pytest

from semantic_vault.editing.fuzzy import find_fuzzy_matches, similarity
from semantic_vault.editing.lines import insert_at_line, line_window
from semantic_vault.editing.window_edit import perform_window_edit
from semantic_vault.errors import ErrorCode, InvalidRequestError, NoMatchError, NotFoundError
from semantic_vault.vault.store import InMemoryVaultStore


def test_similarity_bounds() -> None:
    assert similarity("Same  Text", "same text") == 1.0
    assert 0.0 <= similarity("abc", "xyz") < 0.5


def test_similarity_is_normalized_indel_ratio() -> None:
    assert similarity("kitten", "sitting") == pytest.approx(8 / 13)
    assert similarity("The quick  brown fox", "the quikc brown fox") == pytest.approx(36 / 38)
    assert similarity("", "abc") == 0.0


def test_exact_substring_returns_every_occurrence() -> None:
    matches = find_fuzzy_matches("foo bar\nfoo bar", "foo bar")

    assert [(m.line_number, m.similarity) for m in matches] == [(1, 1.0), (2, 1.0)]


def test_fuzzy_word_window_finds_typo() -> None:
    content = "The quick brown fox jumps\nother line"

    matches = find_fuzzy_matches(content, "the quikc brown fox", threshold=0.7)

    assert matches[0].line_number == 1
    assert matches[0].text == "The quick brown fox"
    assert matches[0].similarity > 0.9


def test_fuzzy_ties_resolve_to_first_line() -> None:
    matches = find_fuzzy_matches("alpha beta gamme\nalpha beta gamme", "alpha beta gamma")

    assert matches[0].line_number == 1
    assert matches[0].similarity == matches[1].similarity


def test_multiline_search_uses_line_windows() -> None:
    matches = find_fuzzy_matches("line one\nline two\nline three", "line one\nline tw0")

    assert matches[0].line_number == 1
    assert matches[0].text == "line one\nline two"


def test_below_threshold_returns_nothing() -> None:
    assert find_fuzzy_matches("completely different", "zzz qqq", threshold=0.7) == []


def test_window_edit_exact_replaces_first_occurrence() -> None:
    store = InMemoryVaultStore({"n.md": "Hello world\nworld again"})

    result = perform_window_edit(store, "n.md", "world", "there")

    assert result.match_type == "exact"
    assert result.similarity == 1.0
    assert result.line_number == 1
    assert store.get_file("n.md").content == "Hello there\nworld again"


def test_window_edit_fuzzy_replaces_best_span() -> None:
    store = InMemoryVaultStore({"n.md": "The quick brown fox jumps\nother line"})

    result = perform_window_edit(store, "n.md", "the quikc brown fox", "A slow dog")

    assert result.match_type == "fuzzy"
    assert result.replaced_text == "The quick brown fox"
    assert store.get_file("n.md").content == "A slow dog jumps\nother line"


def test_window_edit_without_match_raises_and_leaves_file() -> None:
    store = InMemoryVaultStore({"n.md": "hello world"})

    with pytest.raises(NoMatchError) as excinfo:
        perform_window_edit(store, "n.md", "zzzz qqqq xxxx", "new")

    assert excinfo.value.code is ErrorCode.NOT_FOUND
    assert excinfo.value.best_similarity < 0.7
    assert store.get_file("n.md").content == "hello world"


def test_window_edit_rejects_empty_anchor_and_missing_file() -> None:
    store = InMemoryVaultStore({"n.md": "hello"})

    with pytest.raises(InvalidRequestError):
        perform_window_edit(store, "n.md", "", "new")
    with pytest.raises(NotFoundError):
        perform_window_edit(store, "missing.md", "hello", "new")


def test_insert_at_line_modes() -> None:
    content = "a\nb\nc"

    assert insert_at_line(content, 2, "X", "before") == "a\nX\nb\nc"
    assert insert_at_line(content, 2, "X", "after") == "a\nb\nX\nc"
    assert insert_at_line(content, 2, "X", "replace") == "a\nX\nc"
    assert insert_at_line(content, 4, "X", "replace") == "a\nb\nc\nX"

    with pytest.raises(InvalidRequestError, match="Invalid line number 0. File has 3 lines."):
        insert_at_line(content, 0, "X")


def test_line_window_clamps_to_file() -> None:
    content = "\n".join(f"line {n}" for n in range(1, 31))

    window = line_window(content, 25, 20)

    assert (window["start_line"], window["end_line"], window["total_lines"]) == (15, 30, 30)
    assert window["lines"][0] == "line 15"
