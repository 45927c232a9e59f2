import pytest

from semantic_vault.errors import InvalidRequestError, NotFoundError
from semantic_vault.vault.buffer import ContentBuffer
from semantic_vault.vault.store import (
    FilesystemVaultStore,
    InMemoryVaultStore,
    apply_patch,
    extract_tags,
    parse_frontmatter,
)


def test_in_memory_listing_and_missing_items() -> None:
    store = InMemoryVaultStore({"a.md": "alpha", "notes/b.md": "beta", "notes/deep/c.md": "gamma"})

    assert store.list_files() == ["a.md", "notes/"]
    assert store.list_files("notes") == ["b.md", "deep/"]

    with pytest.raises(NotFoundError, match="Directory not found: nope"):
        store.list_files("nope")
    with pytest.raises(NotFoundError, match="File not found: missing.md"):
        store.get_file("missing.md")


def test_in_memory_search_reports_match_offsets() -> None:
    store = InMemoryVaultStore({"a.md": "Alpha and alpha", "b.md": "beta"})

    hits = store.search_simple("alpha")

    assert [hit["filename"] for hit in hits] == ["a.md"]
    assert [m["match"] for m in hits[0]["matches"]] == [
        {"start": 0, "end": 5},
        {"start": 10, "end": 15},
    ]


def test_extract_tags_skips_headings() -> None:
    assert extract_tags("# Heading\nBody #project and #area/work #project") == [
        "#project",
        "#area/work",
    ]


def test_apply_patch_targets() -> None:
    assert (
        apply_patch("# A\nline1\n\n# B\nline2", operation="append", target_type="heading", target="A", content="new")
        == "# A\nline1\nnew\n\n# B\nline2"
    )
    assert (
        apply_patch("---\ntitle: x\n---\nbody", operation="replace", target_type="frontmatter", target="title", content="y")
        == "---\ntitle: y\n---\nbody"
    )
    assert (
        apply_patch("para ^abc\nnext", operation="append", target_type="block", target="abc", content="added")
        == "para ^abc\nadded\nnext"
    )
    with pytest.raises(NotFoundError):
        apply_patch("text", operation="append", target_type="block", target="zzz", content="x")


def test_notes_carry_parsed_frontmatter_and_its_tags(tmp_path) -> None:
    content = "---\ntitle: Tax\ntags: [finance, q3]\n---\n# Tax\nRecover ITCs #audit"
    (tmp_path / "tax.md").write_text(content, encoding="utf-8")

    for store in (InMemoryVaultStore({"tax.md": content}), FilesystemVaultStore(tmp_path)):
        note = store.get_file("tax.md")
        assert note.frontmatter == {"title": "Tax", "tags": ["finance", "q3"]}
        assert note.tags == ["#finance", "#q3", "#audit"]


def test_parse_frontmatter_tolerates_missing_and_malformed_blocks() -> None:
    assert parse_frontmatter("# Just a heading") == {}
    assert parse_frontmatter("---\n---\nbody") == {}
    assert parse_frontmatter("---\ntags: [unclosed\n---\nbody") == {}
    assert parse_frontmatter("---\n- a\n- b\n---\nbody") == {}
    assert parse_frontmatter("---\ntags: daily, review\n---\n") == {"tags": "daily, review"}


def test_patch_frontmatter_edits_yaml_values() -> None:
    note = "---\ntitle: Tax\ntags:\n- finance\n---\nbody"

    appended = apply_patch(note, operation="append", target_type="frontmatter", target="tags", content="q3")
    assert appended == "---\ntitle: Tax\ntags:\n- finance\n- q3\n---\nbody"
    assert parse_frontmatter(appended)["tags"] == ["finance", "q3"]

    prepended = apply_patch(note, operation="prepend", target_type="frontmatter", target="title", content="Draft")
    assert parse_frontmatter(prepended)["title"] == "Draft Tax"

    added = apply_patch("body only", operation="append", target_type="frontmatter", target="status", content="open")
    assert added == "---\nstatus: open\n---\nbody only"

    with pytest.raises(InvalidRequestError, match="Unterminated"):
        apply_patch("---\ntitle: x\nbody", operation="replace", target_type="frontmatter", target="title", content="y")


def test_filesystem_store_round_trip(tmp_path) -> None:
    store = FilesystemVaultStore(tmp_path)

    store.create_file("notes/today.md", "hello #daily")
    store.append_to_file("notes/today.md", "\nmore")

    note = store.get_file("notes/today.md")
    assert note.content == "hello #daily\nmore"
    assert note.tags == ["#daily"]
    assert store.list_files() == ["notes/"]
    assert store.list_files("notes") == ["today.md"]
    assert [hit["filename"] for hit in store.search_simple("more")] == ["notes/today.md"]

    store.delete_file("notes/today.md")
    with pytest.raises(NotFoundError):
        store.get_file("notes/today.md")


def test_filesystem_store_rejects_escaping_paths(tmp_path) -> None:
    store = FilesystemVaultStore(tmp_path / "vault")
    (tmp_path / "vault").mkdir()

    with pytest.raises(InvalidRequestError):
        store.get_file("../secret.md")
    with pytest.raises(NotFoundError):
        store.list_files("missing")


def test_content_buffer_holds_one_entry() -> None:
    buffer = ContentBuffer()
    assert buffer.available is False

    buffer.store("first", path="a.md")
    buffer.store("second", search_text="anchor", path="b.md")

    held = buffer.retrieve()
    assert held is not None
    assert (held.content, held.search_text, held.path) == ("second", "anchor", "b.md")

    buffer.clear()
    assert buffer.retrieve() is None
