"""Tests for the YAML prompt config loader."""

from __future__ import annotations

import pytest

from english_tutor import prompts


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "prompts.yaml"
    monkeypatch.setattr(prompts, "PROMPTS_PATH", path)
    prompts.invalidate_cache()
    yield path
    prompts.invalidate_cache()


def test_missing_file_uses_defaults(config_file):
    assert prompts.get_model("conversation") == prompts.DEFAULT_MODEL
    assert prompts.get_temperature("conversation") == prompts.DEFAULT_TEMPERATURE
    assert prompts.get("tutor_persona", "fallback") == "fallback"


def test_operation_then_default(config_file):
    config_file.write_text(
        "models:\n  default: base-model\n  tips: tips-model\n"
        "temperatures:\n  default: 0.5\n",
        encoding="utf-8",
    )
    assert prompts.get_model("tips") == "tips-model"
    assert prompts.get_model("compare") == "base-model"
    assert prompts.get_temperature("tips") == pytest.approx(0.5)


def test_dotted_get(config_file):
    config_file.write_text("tutor_persona: '  You are Kim.  '\n", encoding="utf-8")
    assert prompts.get("tutor_persona") == "You are Kim."
    assert prompts.get("models.conversation", "none") == "none"


def test_broken_yaml_is_ignored(config_file):
    config_file.write_text("models: [unclosed\n", encoding="utf-8")
    assert prompts.get_model("tips") == prompts.DEFAULT_MODEL


def test_bad_temperature_falls_back(config_file):
    config_file.write_text("temperatures:\n  tips: warm\n", encoding="utf-8")
    assert prompts.get_temperature("tips") == prompts.DEFAULT_TEMPERATURE


def test_results_are_cached(config_file):
    config_file.write_text("models:\n  tips: first\n", encoding="utf-8")
    assert prompts.get_model("tips") == "first"
    config_file.write_text("models:\n  tips: second\n", encoding="utf-8")
    assert prompts.get_model("tips") == "first"
    prompts.invalidate_cache()
    assert prompts.get_model("tips") == "second"
