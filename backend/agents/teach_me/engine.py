"""Teach Me session engine.

Control flow per answer: load session, reject if completed, analyze the
answer, select an action, generate the follow-up, update the state machine,
then write conditionally on the version that was read. Nothing is written
when any oracle step fails.
"""
from __future__ import annotations

from typing import Any, Dict, Optional
import logging
import threading

from config.teach_me import TeachMeSettings
from core.errors import InvalidSessionState, NotAuthorized, SessionNotFound, TeachMeError
from llm import ReasoningOracle, build_default_oracle
from metrics import MetricsCollector

from .analyzer import analyze_answer
from .completion import apply_completion, generate_completion
from .concepts import build_lesson_content, plan_concepts
from .constants import MODE_SOCRATIC, MODE_STEPS
from .persistence import SessionStore, build_store
from .policy import decide
from .questions import generate_question
from .session import apply_answer, peek_next_concept, reject_if_completed, require_active_concept
from .state import Concept, TeachMeSession
from .steps import TOTAL_STEPS, apply_step_answer, find_step, generate_steps, grade_step, public_step

logger = logging.getLogger(__name__)


def _require_text(value: Optional[str], name: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValueError(f"{name} is required")
    return text


def concept_card(concept: Concept) -> Dict[str, Any]:
    return {
        "concept_name": concept.concept_name,
        "concept_difficulty": concept.concept_difficulty,
        "opening_question": concept.opening_question,
        "exam_tag": concept.exam_tag,
        "exam_context": concept.exam_context,
    }


class TeachMeEngine:
    def __init__(
        self,
        oracle: ReasoningOracle,
        store: SessionStore,
        settings: Optional[TeachMeSettings] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.oracle = oracle
        self.store = store
        self.settings = settings or TeachMeSettings()
        self.metrics = metrics or MetricsCollector.get_global()

    # adaptive sessions

    def start_session(self, note_id: str, user_id: str) -> Dict[str, Any]:
        note = self.store.load_note(note_id, user_id)
        concepts = plan_concepts(self.oracle, self.settings, note)
        session = TeachMeSession(
            user_id=user_id,
            note_id=note_id,
            teaching_mode=MODE_SOCRATIC,
            concepts=concepts,
            total_concepts=len(concepts),
            total_conversation_turns=1,
            exam_tags=list(dict.fromkeys(c.exam_tag for c in concepts if c.exam_tag)),
        )
        session = self.store.create(session)
        self.metrics.increment("teach_me_sessions_started", labels={"mode": MODE_SOCRATIC})
        logger.info(
            "teach_me_session_started session=%s note=%s concepts=%d",
            session.session_id,
            note_id,
            session.total_concepts,
        )
        return {
            "session_id": session.session_id,
            "current_concept_index": 0,
            "total_concepts": session.total_concepts,
            "step_data": concept_card(concepts[0]),
        }

    def submit_answer(self, session_id: str, user_id: str, answer_text: str) -> Dict[str, Any]:
        answer = _require_text(answer_text, "answer_text")
        session = self.store.load(session_id, user_id)
        if session.teaching_mode != MODE_SOCRATIC:
            raise InvalidSessionState(f"session {session_id} is a {session.teaching_mode} session")
        reject_if_completed(session)
        concept = require_active_concept(session)

        analysis = analyze_answer(self.oracle, self.settings, concept, answer)
        decision = decide(analysis, concept.understanding_score, self.settings.mastery_threshold)
        upcoming = peek_next_concept(session) if decision.concept_mastered else None
        question = generate_question(self.oracle, self.settings, decision, analysis, concept, answer, upcoming)

        outcome = apply_answer(session, analysis, decision, answer, question)
        session = self.store.save(session)
        self.metrics.increment("teach_me_actions", labels={"action": decision.action})
        logger.info(
            "teach_me_turn_saved session=%s concept=%s action=%s score=%s mastered=%s completed=%s",
            session.session_id,
            concept.concept_number,
            decision.action,
            decision.new_score,
            decision.concept_mastered,
            session.is_completed,
        )

        if outcome.completed_now and self.settings.eager_completion:
            try:
                session = self._complete(session)
            except TeachMeError:
                # fetch_completion_summary generates it on first read instead
                logger.exception("teach_me_eager_completion_failed session=%s", session.session_id)

        result: Dict[str, Any] = {
            "next_question": question,
            "turn_type": decision.turn_type,
            "question_type": decision.question_type,
            "understanding_analysis": {
                "level": analysis.understanding_demonstrated,
                "reasoning": analysis.reasoning_quality,
                "score": decision.new_score,
                "misconceptions": list(analysis.misconceptions_detected),
                "key_insight": analysis.key_insight,
            },
            "concept_status": {
                "is_mastered": concept.is_mastered,
                "move_to_next": outcome.next_concept is not None,
                "current_concept": concept.concept_name,
                "attempts": concept.attempts,
                "understanding_score": concept.understanding_score,
            },
            "session_status": {
                "current_concept_index": session.current_concept_index,
                "total_concepts": session.total_concepts,
                "concepts_mastered": session.concepts_mastered,
                "is_completed": session.is_completed,
                "total_turns": session.total_conversation_turns,
            },
        }
        if outcome.next_concept is not None:
            result["next_concept"] = concept_card(outcome.next_concept)
        return result

    # completion

    def _topic(self, session: TeachMeSession) -> Optional[str]:
        if not session.note_id:
            return None
        try:
            return self.store.load_note(session.note_id, session.user_id).get("title")
        except (SessionNotFound, NotAuthorized):
            return None

    def _complete(self, session: TeachMeSession) -> TeachMeSession:
        summary, stats = generate_completion(self.oracle, self.settings, session, self._topic(session))
        apply_completion(session, summary, stats)
        session = self.store.save(session)
        self.metrics.increment("teach_me_completions", labels={"mode": session.teaching_mode})
        return session

    def fetch_completion_summary(self, session_id: str, user_id: str) -> Dict[str, Any]:
        session = self.store.load(session_id, user_id)
        if not session.is_completed:
            raise InvalidSessionState(f"session {session_id} is not completed yet")
        if not session.has_completion_summary:
            session = self._complete(session)
        return {
            "session_id": session.session_id,
            "completion_summary": session.completion_summary(),
            "stats": dict(session.completion_stats or {}),
        }

    # fixed six-step sessions

    def start_step_session(self, note_id: str, user_id: str) -> Dict[str, Any]:
        note = self.store.load_note(note_id, user_id)
        content = build_lesson_content(note, self.settings.content_char_limit)
        steps = generate_steps(self.oracle, self.settings, content)
        session = TeachMeSession(
            user_id=user_id,
            note_id=note_id,
            teaching_mode=MODE_STEPS,
            steps=steps,
            current_step=1,
            total_steps=TOTAL_STEPS,
            exam_tags=list(dict.fromkeys(s.get("exam_tag") for s in steps if s.get("exam_tag"))),
        )
        session = self.store.create(session)
        self.metrics.increment("teach_me_sessions_started", labels={"mode": MODE_STEPS})
        logger.info("teach_me_step_session_started session=%s note=%s", session.session_id, note_id)
        return {
            "session_id": session.session_id,
            "current_step": 1,
            "total_steps": TOTAL_STEPS,
            "step_data": public_step(steps[0]),
        }

    def submit_step_answer(self, session_id: str, user_id: str, step_number: int, answer_text: str) -> Dict[str, Any]:
        answer = _require_text(answer_text, "answer_text")
        try:
            number = int(step_number)
        except (TypeError, ValueError):
            raise ValueError("step_number must be an integer")
        session = self.store.load(session_id, user_id)
        if session.teaching_mode != MODE_STEPS:
            raise InvalidSessionState(f"session {session_id} is a {session.teaching_mode} session")

        step = find_step(session, number)
        validation = grade_step(self.oracle, self.settings, step, answer)
        next_step = apply_step_answer(session, number, answer, validation)
        session = self.store.save(session)
        logger.info(
            "teach_me_step_saved session=%s step=%s correct=%s feedback=%s",
            session.session_id,
            number,
            validation.is_correct,
            validation.feedback_type,
        )

        if session.is_completed and self.settings.eager_completion:
            try:
                session = self._complete(session)
            except TeachMeError:
                logger.exception("teach_me_eager_completion_failed session=%s", session.session_id)

        return {
            "validation": validation.model_dump(),
            "is_correct": validation.is_correct,
            "is_completed": session.is_completed,
            "next_step": public_step(next_step),
            "current_step": session.current_step,
            "total_steps": session.total_steps,
        }


_ENGINE: Optional[TeachMeEngine] = None
_ENGINE_LOCK = threading.Lock()


def get_engine() -> TeachMeEngine:
    """Process-wide engine built from environment settings on first use."""
    global _ENGINE
    with _ENGINE_LOCK:
        if _ENGINE is None:
            settings = TeachMeSettings.from_env()
            _ENGINE = TeachMeEngine(build_default_oracle(), build_store(settings.store_backend), settings)
        return _ENGINE


def set_engine(engine: Optional[TeachMeEngine]) -> None:
    global _ENGINE
    with _ENGINE_LOCK:
        _ENGINE = engine


__all__ = ["TeachMeEngine", "concept_card", "get_engine", "set_engine"]
