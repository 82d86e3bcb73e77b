"""Unit tests for decision prompt construction."""

from __future__ import annotations

import pytest

from decisions.prompt import (
    PROMPT_VERSION,
    PROMPT_VERSION_V1,
    PROMPT_VERSION_V2,
    build_prompt,
)


def test_prompt_is_deterministic() -> None:
    """Identical inputs always produce identical prompts."""
    first = build_prompt("Should I move to Berlin?", "en")
    second = build_prompt("Should I move to Berlin?", "en")

    assert first == second


def test_prompt_embeds_trimmed_problem_between_triple_quotes() -> None:
    """The problem text is trimmed and placed after USER_PROBLEM."""
    prompt = build_prompt("   Pick a laptop   \n", "en")

    assert 'USER_PROBLEM:\n"""Pick a laptop"""' in prompt


def test_prompt_embeds_text_verbatim() -> None:
    """Quotes and braces in the problem are not escaped or altered."""
    problem = 'He said "quit" {now} ```json``` é'
    prompt = build_prompt(problem, "en")

    assert f'"""{problem}"""' in prompt


def test_prompt_states_locale_or_defaults_to_english() -> None:
    """The response language follows the locale and falls back to en."""
    assert "Respond in de." in build_prompt("x", "de")
    assert "Respond in en." in build_prompt("x", "")
    assert "Respond in en." in build_prompt("x", None)


def test_default_version_is_scored_schema() -> None:
    """The current prompt asks for scores and a recommendation."""
    prompt = build_prompt("x")

    assert PROMPT_VERSION == PROMPT_VERSION_V2
    assert '"recommendation"' in prompt
    assert '"scoreExplanation"' in prompt
    assert "bestOptionIndex is the zero-based position" in prompt
    assert "Provide 3-6 distinct options." in prompt
    assert '"actionPlan"' not in prompt


def test_legacy_version_asks_for_action_plan() -> None:
    """The v1.0 prompt asks for clarifying questions and action steps."""
    prompt = build_prompt("x", version=PROMPT_VERSION_V1)

    assert '"clarifyingQuestions"' in prompt
    assert '"actionPlan"' in prompt
    assert "Provide 5-8 concrete action steps." in prompt
    assert '"recommendation"' not in prompt


def test_prompt_forbids_markdown_fences() -> None:
    """Both schema revisions tell the model not to fence its output."""
    for version in (PROMPT_VERSION_V1, PROMPT_VERSION_V2):
        assert "Do not wrap the JSON in markdown code fences." in build_prompt(
            "x", version=version
        )


def test_unknown_version_is_rejected() -> None:
    """Unsupported prompt versions raise ValueError."""
    with pytest.raises(ValueError, match="v3.0"):
        build_prompt("x", version="v3.0")
