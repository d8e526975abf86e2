from __future__ import annotations

import json

import pytest

from agents.teach_me.analyzer import analyze_answer
from agents.teach_me.policy import decide
from agents.teach_me.questions import generate_question
from agents.teach_me.state import Concept, ConversationTurn
from core.errors import AnalysisParseError
from schemas.teach_me import UnderstandingAnalysis

from conftest import ScriptedOracle, analysis_json


def _concept() -> Concept:
    concept = Concept(concept_number=1, concept_name="Photosynthesis inputs", exam_tag="CBSE", exam_context="Class 10")
    concept.conversation_turns.append(
        ConversationTurn(turn_number=1, speaker="AI", message="What do plants need to make food?", type="OPENING_QUESTION")
    )
    return concept


def test_analyze_answer_uses_analysis_budget(settings):
    oracle = ScriptedOracle([analysis_json(level="good", grasped=True)])
    analysis = analyze_answer(oracle, settings, _concept(), "Sunlight, water and carbon dioxide")
    assert analysis.understanding_demonstrated == "good"
    request = oracle.requests[0]
    assert request.temperature == 0.3
    assert request.max_tokens == 500
    assert request.json_mode is True
    assert "What do plants need to make food?" in request.user_prompt
    assert "Sunlight, water and carbon dioxide" in request.user_prompt
    assert "Photosynthesis inputs" in request.user_prompt


def test_analyze_answer_without_ai_turn_uses_placeholder(settings):
    oracle = ScriptedOracle([analysis_json()])
    concept = Concept(concept_number=1, concept_name="Light")
    analyze_answer(oracle, settings, concept, "answer")
    assert "Opening question" in oracle.requests[0].user_prompt


def test_analyze_answer_parse_failure_is_not_retried(settings):
    oracle = ScriptedOracle(["I think the student did fine."])
    with pytest.raises(AnalysisParseError):
        analyze_answer(oracle, settings, _concept(), "answer")
    assert len(oracle.requests) == 1


def _analysis(**kwargs) -> UnderstandingAnalysis:
    return UnderstandingAnalysis.model_validate(json.loads(analysis_json(**kwargs)))


def test_generic_probe_skips_oracle(settings):
    oracle = ScriptedOracle()
    analysis = _analysis(level="good")
    question = generate_question(oracle, settings, decide(analysis, 0), analysis, _concept(), "x")
    assert question == "Good! Can you explain your reasoning behind that answer?"
    assert oracle.requests == []


def test_move_on_text_without_oracle(settings):
    oracle = ScriptedOracle()
    analysis = _analysis(level="excellent", grasped=True)
    concept = _concept()
    nxt = Concept(concept_number=2, concept_name="Light reactions")
    question = generate_question(oracle, settings, decide(analysis, 70), analysis, concept, "x", nxt)
    assert "Photosynthesis inputs" in question
    last = generate_question(oracle, settings, decide(analysis, 70), analysis, concept, "x", None)
    assert last == "You've completed all concepts! Let me prepare your summary."
    assert oracle.requests == []


def test_challenge_prompt_names_misconception(settings):
    oracle = ScriptedOracle(['"What if a plant grew in pure water?"'])
    analysis = _analysis(level="partial", misconceptions=["plants eat soil"])
    question = generate_question(oracle, settings, decide(analysis, 0), analysis, _concept(), "soil")
    assert question == "What if a plant grew in pure water?"
    request = oracle.requests[0]
    assert "plants eat soil" in request.user_prompt
    assert request.temperature == 0.7
    assert request.max_tokens == 200


def test_probe_prompt_includes_exam_context(settings):
    oracle = ScriptedOracle(["Why is light needed?"])
    analysis = _analysis(level="partial", probing=True)
    generate_question(oracle, settings, decide(analysis, 0), analysis, _concept(), "light")
    assert "Class 10" in oracle.requests[0].user_prompt


def test_empty_question_is_parse_error(settings):
    oracle = ScriptedOracle(['""'])
    analysis = _analysis(level="none", scaffolding=True)
    with pytest.raises(AnalysisParseError):
        generate_question(oracle, settings, decide(analysis, 0), analysis, _concept(), "no idea")
