from __future__ import annotations

import pytest

from agents.teach_me.engine import TeachMeEngine
from agents.teach_me.state import TeachMeSession
from config.teach_me import TeachMeSettings
from core.errors import (
    AnalysisParseError,
    InvalidSessionState,
    NotAuthorized,
    OracleUnavailable,
    PersistenceConflict,
    SessionNotFound,
)

from conftest import NOTE_ID, USER_ID, analysis_json, completion_json, concepts_json


def _start(engine, oracle, count: int = 9):
    oracle.queue(concepts_json(count))
    return engine.start_session(NOTE_ID, USER_ID)


def _set_score(store, session_id: str, score: int) -> None:
    session = store.load(session_id, USER_ID)
    session.active_concept.understanding_score = score
    store.save(session)


def test_start_session_seeds_opening_turns(engine, oracle, store):
    resp = _start(engine, oracle)
    assert resp["current_concept_index"] == 0
    assert resp["total_concepts"] == 9
    assert resp["step_data"]["concept_name"] == "Concept 1"
    assert resp["step_data"]["opening_question"] == "What do you know about concept 1?"

    session = store.load(resp["session_id"], USER_ID)
    assert session.total_conversation_turns == 1
    assert session.exam_tags == ["CBSE", "SSC"]
    first = session.concepts[0].conversation_turns[0]
    assert first.type == "OPENING_QUESTION"
    assert first.question_type == "OPEN_ENDED"
    assert all(c.understanding_score == 0 for c in session.concepts)

    request = oracle.requests[0]
    assert request.temperature == 0.6
    assert request.max_tokens == 3000
    assert "Photosynthesis" in request.user_prompt


def test_start_session_requires_enough_concepts(engine, oracle):
    oracle.queue(concepts_json(3))
    with pytest.raises(AnalysisParseError):
        engine.start_session(NOTE_ID, USER_ID)


def test_start_session_unknown_note(engine):
    with pytest.raises(SessionNotFound):
        engine.start_session("missing", USER_ID)


def test_start_session_note_without_content(engine, store):
    store.add_note("empty", {"user_id": USER_ID, "title": "Blank"})
    with pytest.raises(InvalidSessionState):
        engine.start_session("empty", USER_ID)


def test_excellent_from_zero_stays_on_concept(engine, oracle, store):
    sid = _start(engine, oracle)["session_id"]
    oracle.queue(analysis_json(level="excellent", grasped=True, probing=True, insight="solid"), "How does light help?")
    resp = engine.submit_answer(sid, USER_ID, "Light, water and CO2")

    assert resp["understanding_analysis"]["score"] == 25
    assert resp["concept_status"]["is_mastered"] is False
    assert resp["concept_status"]["move_to_next"] is False
    assert resp["turn_type"] == "PROBING_QUESTION"
    assert resp["question_type"] == "HOW"
    assert resp["next_question"] == "How does light help?"
    assert "next_concept" not in resp

    session = store.load(sid, USER_ID)
    concept = session.concepts[0]
    assert session.current_concept_index == 0
    assert concept.attempts == 1
    assert concept.probing_questions_asked == 1
    assert session.total_conversation_turns == 3
    turns = concept.conversation_turns
    assert [t.speaker for t in turns] == ["AI", "STUDENT", "AI"]
    assert [t.turn_number for t in turns] == [1, 2, 3]
    assert turns[1].validation_result["is_correct"] is True
    assert turns[1].validation_result["score"] == 25


def test_good_at_75_moves_to_next_concept(engine, oracle, store):
    sid = _start(engine, oracle)["session_id"]
    _set_score(store, sid, 75)
    oracle.queue(analysis_json(level="good", grasped=True))
    resp = engine.submit_answer(sid, USER_ID, "Complete answer")

    assert resp["understanding_analysis"]["score"] == 90
    assert resp["turn_type"] == "VALIDATION"
    assert resp["concept_status"]["is_mastered"] is True
    assert resp["concept_status"]["move_to_next"] is True
    assert resp["session_status"]["current_concept_index"] == 1
    assert resp["session_status"]["concepts_mastered"] == 1
    assert resp["next_concept"]["concept_name"] == "Concept 2"
    assert resp["next_question"].startswith("Excellent! You've truly grasped Concept 1.")
    # only the analysis call; the transition text needs no oracle
    assert len(oracle.requests) == 2

    session = store.load(sid, USER_ID)
    assert [t.message for t in session.current_conversation] == ["What do you know about concept 2?"]
    # opening question, two turns for the answer, then the next opening question
    assert session.total_conversation_turns == 4
    assert resp["session_status"]["total_turns"] == 4


def test_misconceptions_recorded_once(engine, oracle, store):
    sid = _start(engine, oracle)["session_id"]
    for _ in range(2):
        oracle.queue(
            analysis_json(level="partial", misconceptions=["plants eat soil"], insight="confuses inputs"),
            "What if a plant grew in water?",
        )
        engine.submit_answer(sid, USER_ID, "They eat soil")

    session = store.load(sid, USER_ID)
    concept = session.concepts[0]
    assert concept.misconceptions_identified == ["plants eat soil"]
    assert len(session.misconceptions) == 1
    record = session.misconceptions[0]
    assert record.concept == "Concept 1"
    assert record.resolved is False
    assert session.concept_weak_areas == ["Concept 1: plants eat soil"]
    assert concept.understanding_score == 10
    assert concept.probing_questions_asked == 2


def test_weak_reasoning_partial_is_writing_issue(engine, oracle, store):
    sid = _start(engine, oracle)["session_id"]
    oracle.queue(analysis_json(level="partial", reasoning="weak", scaffolding=True, insight="vague wording"), "Simpler?")
    resp = engine.submit_answer(sid, USER_ID, "something about light")
    assert resp["turn_type"] == "SCAFFOLDING"
    session = store.load(sid, USER_ID)
    assert session.writing_weak_areas == ["Concept 1: vague wording"]
    assert session.concepts[0].probing_questions_asked == 0


def test_oracle_failure_leaves_record_identical(engine, oracle, store):
    sid = _start(engine, oracle)["session_id"]
    before = store.raw(sid)
    oracle.queue(OracleUnavailable("both providers down"))
    with pytest.raises(OracleUnavailable):
        engine.submit_answer(sid, USER_ID, "answer")
    assert store.raw(sid) == before


def test_question_failure_leaves_record_identical(engine, oracle, store):
    sid = _start(engine, oracle)["session_id"]
    before = store.raw(sid)
    oracle.queue(analysis_json(level="partial", probing=True), OracleUnavailable("down"))
    with pytest.raises(OracleUnavailable):
        engine.submit_answer(sid, USER_ID, "answer")
    assert store.raw(sid) == before


def test_stale_write_raises_conflict(engine, oracle, store):
    sid = _start(engine, oracle)["session_id"]
    stale = store.load(sid, USER_ID)
    _set_score(store, sid, 10)
    with pytest.raises(PersistenceConflict) as exc:
        store.save(stale)
    assert exc.value.retryable is True


def test_wrong_user_is_rejected(engine, oracle):
    sid = _start(engine, oracle)["session_id"]
    with pytest.raises(NotAuthorized):
        engine.submit_answer(sid, "someone-else", "answer")


def test_empty_answer_is_invalid(engine, oracle):
    sid = _start(engine, oracle)["session_id"]
    with pytest.raises(ValueError):
        engine.submit_answer(sid, USER_ID, "   ")


def _finish(engine, oracle, store, sid: str, count: int) -> dict:
    resp = {}
    for _ in range(count):
        _set_score(store, sid, 90)
        oracle.queue(analysis_json(level="excellent", grasped=True))
        resp = engine.submit_answer(sid, USER_ID, "Perfect answer")
    return resp


def test_full_session_completes_and_summarises(engine, oracle, store):
    sid = _start(engine, oracle, count=5)["session_id"]
    oracle.queue(analysis_json(level="none", insight="no idea"))
    engine.submit_answer(sid, USER_ID, "no idea")
    # eager completion runs after the fifth mastery
    for _ in range(4):
        _set_score(store, sid, 90)
        oracle.queue(analysis_json(level="excellent", grasped=True))
        engine.submit_answer(sid, USER_ID, "Perfect answer")
    _set_score(store, sid, 90)
    oracle.queue(analysis_json(level="excellent", grasped=True), completion_json())
    resp = engine.submit_answer(sid, USER_ID, "Perfect answer")

    assert resp["session_status"]["is_completed"] is True
    assert resp["session_status"]["concepts_mastered"] == 5
    assert resp["next_question"] == "You've completed all concepts! Let me prepare your summary."

    completion_request = oracle.requests[-1]
    assert completion_request.role == "completion"
    assert completion_request.temperature == 0.5
    assert completion_request.max_tokens == 2000
    assert "Topic: Photosynthesis" in completion_request.user_prompt

    first = engine.fetch_completion_summary(sid, USER_ID)
    second = engine.fetch_completion_summary(sid, USER_ID)
    assert first == second
    summary = first["completion_summary"]
    assert summary["performance_breakdown"]["writing_quality"] == 100
    assert summary["exam_risk_areas"][0]["risk_level"] == "HIGH"
    assert summary["revision_plan_3min"]["step_1"] == "Re-read the equation"
    assert first["stats"] == {
        "total_steps": 6,
        "correct_answers": 5,
        "accuracy_percentage": 83,
        "concept_issues": 1,
        "writing_issues": 0,
        "exam_mistakes": 0,
    }
    # no further oracle calls for the fetches
    assert oracle.replies == []


def test_completed_session_rejects_answers_without_mutation(engine, oracle, store):
    sid = _start(engine, oracle, count=5)["session_id"]
    engine.settings = TeachMeSettings(store_backend="memory", eager_completion=False)
    _finish(engine, oracle, store, sid, 5)
    before = store.raw(sid)
    calls = len(oracle.requests)
    with pytest.raises(InvalidSessionState):
        engine.submit_answer(sid, USER_ID, "one more")
    assert store.raw(sid) == before
    assert len(oracle.requests) == calls


def test_lazy_completion_generated_once(engine, oracle, store):
    engine.settings = TeachMeSettings(store_backend="memory", eager_completion=False)
    sid = _start(engine, oracle, count=5)["session_id"]
    _finish(engine, oracle, store, sid, 5)
    oracle.queue(completion_json())
    first = engine.fetch_completion_summary(sid, USER_ID)
    stored = store.raw(sid)
    second = engine.fetch_completion_summary(sid, USER_ID)
    assert first == second
    assert store.raw(sid) == stored
    assert first["stats"]["accuracy_percentage"] == 100


def test_eager_completion_failure_falls_back_to_lazy(engine, oracle, store):
    sid = _start(engine, oracle, count=5)["session_id"]
    for _ in range(4):
        _set_score(store, sid, 90)
        oracle.queue(analysis_json(level="excellent", grasped=True))
        engine.submit_answer(sid, USER_ID, "Perfect answer")
    _set_score(store, sid, 90)
    oracle.queue(analysis_json(level="excellent", grasped=True), "not json at all")
    resp = engine.submit_answer(sid, USER_ID, "Perfect answer")
    assert resp["session_status"]["is_completed"] is True
    assert store.load(sid, USER_ID).has_completion_summary is False

    oracle.queue(completion_json())
    assert engine.fetch_completion_summary(sid, USER_ID)["completion_summary"] is not None


def test_completion_requires_completed_session(engine, oracle):
    sid = _start(engine, oracle)["session_id"]
    with pytest.raises(InvalidSessionState):
        engine.fetch_completion_summary(sid, USER_ID)


def test_session_round_trips_through_dict(engine, oracle, store):
    sid = _start(engine, oracle)["session_id"]
    session = store.load(sid, USER_ID)
    clone = TeachMeSession.from_dict(session.to_dict())
    assert clone.to_dict() == session.to_dict()
    assert clone.current_conversation[0].message == "What do you know about concept 1?"


def test_engine_uses_injected_settings(oracle, store, metrics):
    engine = TeachMeEngine(oracle, store, TeachMeSettings(store_backend="memory", target_concepts=6), metrics)
    oracle.queue(concepts_json(9))
    resp = engine.start_session(NOTE_ID, USER_ID)
    assert resp["total_concepts"] == 6
    assert metrics.counter("teach_me_sessions_started", {"mode": "socratic"}) == 1
