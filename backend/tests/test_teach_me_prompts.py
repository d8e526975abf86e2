from __future__ import annotations

import pytest

import prompts
from prompts import get as prompt_get, render as prompt_render, render_pair


@pytest.mark.parametrize(
    "key",
    [
        "teach_me.analyze",
        "teach_me.scaffold",
        "teach_me.challenge",
        "teach_me.probe",
        "teach_me.concepts",
        "teach_me.completion",
        "teach_me.steps",
        "teach_me.step_validate",
    ],
)
def test_builtin_prompts_have_system_and_user(key):
    assert prompt_get(f"{key}.system")
    assert prompt_get(f"{key}.user")


def test_render_replaces_placeholders_only():
    out = prompt_render('{"concept": "{{concept}}", "other": "{{missing}}"}', {"concept": "Osmosis"})
    assert out == '{"concept": "Osmosis", "other": "{{missing}}"}'


def test_render_pair_fills_both_templates():
    system, user = render_pair("teach_me.concepts", {"target_concepts": 9, "exam_types": "CBSE, SSC", "content": "Cells"})
    assert "9-concept" in system
    assert "CBSE, SSC" in system
    assert "Cells" in user


def test_yaml_prompt_set_overrides_builtin(monkeypatch, tmp_path):
    (tmp_path / "experiment.yaml").write_text(
        "teach_me:\n  probe:\n    user: 'Custom probe for {{concept}}'\n",
        encoding="utf-8",
    )
    monkeypatch.setattr(prompts, "_prompts_dir", lambda: str(tmp_path))
    monkeypatch.setenv("PROMPT_SET", "experiment")
    assert prompts.active_set() == "experiment"
    assert prompt_render(prompt_get("teach_me.probe.user"), {"concept": "Osmosis"}) == "Custom probe for Osmosis"
    # keys missing from the set fall back to the built-in prompts
    assert "Socratic teacher" in prompt_get("teach_me.probe.system")


def test_render_does_not_expand_placeholders_inside_values():
    template = "Answer: {{answer}}\nHistory: {{history}}"
    out = prompt_render(template, {"answer": "I typed {{history}} and {{concept}}", "history": "AI: hello"})
    assert out == "Answer: I typed {{history}} and {{concept}}\nHistory: AI: hello"
