from __future__ import annotations

import json

import pytest

from agents.teach_me.constants import CHALLENGE, MOVE_ON, PROBE, SCAFFOLD
from agents.teach_me.policy import decide, score_after, select_action
from schemas.teach_me import UnderstandingAnalysis

from conftest import analysis_json


def _analysis(**kwargs) -> UnderstandingAnalysis:
    return UnderstandingAnalysis.model_validate(json.loads(analysis_json(**kwargs)))


@pytest.mark.parametrize(
    "current,level,expected",
    [
        (0, "none", 0),
        (5, "none", 0),
        (50, "partial", 55),
        (50, "good", 65),
        (90, "excellent", 100),
        (100, "good", 100),
    ],
)
def test_score_after_clamps(current, level, expected):
    assert score_after(current, level) == expected


def test_excellent_grasped_from_zero_does_not_move_on():
    analysis = _analysis(level="excellent", grasped=True, probing=True)
    decision = decide(analysis, 0)
    assert decision.new_score == 25
    assert decision.action != MOVE_ON
    assert decision.concept_mastered is False


def test_good_grasped_from_75_moves_on():
    analysis = _analysis(level="good", grasped=True)
    decision = decide(analysis, 75)
    assert decision.new_score == 90
    assert decision.action == MOVE_ON
    assert decision.concept_mastered is True
    assert decision.turn_type == "VALIDATION"


def test_high_score_without_grasp_never_moves_on():
    analysis = _analysis(level="excellent", grasped=False)
    assert select_action(analysis, 95) == PROBE


def test_scaffold_beats_misconceptions():
    analysis = _analysis(level="none", scaffolding=True, misconceptions=["plants eat soil"])
    decision = decide(analysis, 10)
    assert decision.action == SCAFFOLD
    assert decision.question_type == "SIMPLIFYING"


def test_challenge_targets_first_misconception():
    analysis = _analysis(level="partial", misconceptions=["plants eat soil", "light is heat"], probing=True)
    decision = decide(analysis, 10)
    assert decision.action == CHALLENGE
    assert decision.misconception == "plants eat soil"
    assert decision.question_type == "WHAT_IF"


def test_probe_question_type_depends_on_level():
    assert decide(_analysis(level="partial", probing=True), 0).question_type == "WHY"
    assert decide(_analysis(level="good", probing=True), 0).question_type == "HOW"


def test_default_is_generic_explain_probe():
    decision = decide(_analysis(level="good"), 0)
    assert decision.action == PROBE
    assert decision.generic_probe is True
    assert decision.question_type == "EXPLAIN"


def test_recommended_action_is_ignored():
    analysis = _analysis(level="none", action="MOVE_ON", grasped=False)
    assert select_action(analysis, 99) == PROBE


def test_select_action_is_pure():
    analysis = _analysis(level="good", grasped=True, misconceptions=["x"])
    before = analysis.model_dump()
    results = {select_action(analysis, 70) for _ in range(5)}
    assert results == {MOVE_ON}
    assert analysis.model_dump() == before


def test_custom_threshold():
    analysis = _analysis(level="good", grasped=True)
    assert select_action(analysis, 50, threshold=60) == MOVE_ON
    assert select_action(analysis, 50) == PROBE
