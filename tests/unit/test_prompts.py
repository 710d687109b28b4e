# tests/unit/test_prompts.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from babyai.prompts import PromptType, WEEKLY_SUMMARY_PROMPT, fill_prompt_template, get_prompt_template


def test_fill_replaces_every_occurrence():
    out = fill_prompt_template("{{a}} and {{a}} but {{b}}", {"a": 1, "b": "x"})
    assert out == "1 and 1 but x"


def test_fill_leaves_unknown_placeholders():
    assert fill_prompt_template("{{a}} {{missing}}", {"a": "y"}) == "y {{missing}}"


def test_fill_does_not_interpret_replacement_text():
    assert fill_prompt_template("{{a}}", {"a": r"\1 $0 \\"}) == r"\1 $0 \\"


def test_templates_by_type():
    assert get_prompt_template("weekly_summary") == WEEKLY_SUMMARY_PROMPT
    for t in PromptType:
        assert "{{babyAgeMonths}}" in get_prompt_template(t)
    with pytest.raises(ValueError):
        get_prompt_template("haiku")
