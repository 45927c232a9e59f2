import logging

from semantic_vault.semantic.hints import (
    ConditionalSuggestions,
    HintBlock,
    SuggestionSpec,
    WorkflowConfig,
    build_suggestions,
    evaluate_condition,
    interpolate,
    load_workflow_config,
)


def test_interpolate_prefers_params_then_result() -> None:
    text = interpolate("{path} line {line_number} {missing}", {"path": "a.md"}, {"line_number": 4})

    assert text == "a.md line 4 {missing}"


def test_missing_config_falls_back_to_default(tmp_path, caplog) -> None:
    with caplog.at_level(logging.WARNING):
        config = load_workflow_config(tmp_path / "absent.json")

    assert config.version == "1.0.0"
    assert set(config.operations) == {"vault", "edit"}
    assert "Failed to load workflow config" in caplog.text


def test_invalid_config_falls_back_to_default(tmp_path) -> None:
    broken = tmp_path / "workflows.json"
    broken.write_text("{not json", encoding="utf-8")

    config = load_workflow_config(broken)

    assert config.efficiency_rules == []


def test_conditions() -> None:
    config = WorkflowConfig.model_validate({"context_triggers": {"daily_note_pattern": r"\d{4}-\d{2}-\d{2}"}})

    assert evaluate_condition("has_markdown_files", {}, ["a.md", "dir/"], config)
    assert not evaluate_condition("has_markdown_files", {}, ["dir/"], config)
    assert evaluate_condition("no_results", {}, {"total_results": 0, "results": []}, config)
    assert evaluate_condition("is_daily_note", {"path": "journal/2024-01-15.md"}, None, config)
    assert not evaluate_condition("is_sunny", {}, None, config)


def test_build_suggestions_drops_unmet_requirements() -> None:
    block = HintBlock(
        message="Loaded {path}",
        suggested_next=[
            ConditionalSuggestions(
                condition="always",
                suggestions=[
                    SuggestionSpec(description="Edit {path}", command="edit(path='{path}')", requires_tokens="can_edit"),
                    SuggestionSpec(description="List", command="vault(action='list')"),
                ],
            ),
            ConditionalSuggestions(
                condition="has_links",
                suggestions=[SuggestionSpec(description="Follow", command="vault(action='read')")],
            ),
        ],
    )

    suggestions = build_suggestions(block, {"path": "a.md"}, {"links": []}, WorkflowConfig(), lambda names: False)

    assert suggestions == [{"description": "List", "command": "vault(action='list')", "reason": ""}]

    granted = build_suggestions(block, {"path": "a.md"}, {"links": ["b"]}, WorkflowConfig(), lambda names: True)
    assert [s["description"] for s in granted] == ["Edit a.md", "List", "Follow"]
