"""Session state machine for adaptive Teach Me sessions.

A session is ACTIVE on concept ``current_concept_index`` until the last
concept is mastered, then COMPLETED. Every accepted answer appends exactly
two turns (learner answer, then the AI follow-up) to the active concept.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from core.errors import InvalidSessionState
from schemas.teach_me import UnderstandingAnalysis

from .constants import (
    CORRECT_LEVELS,
    FEEDBACK_CONCEPT,
    FEEDBACK_EXAM,
    FEEDBACK_PERFECT,
    FEEDBACK_WRITING,
    QUESTION_OPEN_ENDED,
    SPEAKER_AI,
    SPEAKER_STUDENT,
    TURN_ANSWER,
    TURN_OPENING,
)
from .policy import ActionDecision
from .state import Concept, ConversationTurn, MisconceptionRecord, TeachMeSession, utc_now_iso


@dataclass
class TurnOutcome:
    question: str
    decision: ActionDecision
    concept: Concept
    is_correct: bool
    feedback_type: str
    next_concept: Optional[Concept] = None
    completed_now: bool = False


def reject_if_completed(session: TeachMeSession) -> None:
    if session.is_completed:
        raise InvalidSessionState(f"session {session.session_id} is already completed")


def require_active_concept(session: TeachMeSession) -> Concept:
    concept = session.active_concept
    if concept is None:
        raise InvalidSessionState(
            f"session {session.session_id} has no concept at index {session.current_concept_index}"
        )
    return concept


def classify_answer(analysis: UnderstandingAnalysis) -> Tuple[bool, str]:
    level = analysis.understanding_demonstrated
    if level in CORRECT_LEVELS:
        return True, FEEDBACK_PERFECT
    if level == "none" or analysis.misconceptions_detected:
        return False, FEEDBACK_CONCEPT
    if analysis.reasoning_quality == "weak":
        return False, FEEDBACK_WRITING
    return False, FEEDBACK_EXAM


def _append_unique(items: list, value: str) -> None:
    if value and value not in items:
        items.append(value)


def _record_weak_area(session: TeachMeSession, concept: Concept, analysis: UnderstandingAnalysis, feedback_type: str) -> None:
    detail = analysis.key_insight
    if feedback_type == FEEDBACK_CONCEPT and analysis.misconceptions_detected:
        detail = analysis.misconceptions_detected[0]
    label = f"{concept.concept_name}: {detail}" if detail else concept.concept_name
    if feedback_type == FEEDBACK_CONCEPT:
        _append_unique(session.concept_weak_areas, label)
    elif feedback_type == FEEDBACK_WRITING:
        _append_unique(session.writing_weak_areas, label)
    elif feedback_type == FEEDBACK_EXAM:
        _append_unique(session.exam_mistake_areas, label)


def seed_opening_turn(concept: Concept, question: Optional[str] = None) -> None:
    if concept.conversation_turns:
        return
    question = question or concept.opening_question or f"What do you already know about {concept.concept_name}?"
    concept.conversation_turns.append(
        ConversationTurn(
            turn_number=1,
            speaker=SPEAKER_AI,
            message=question,
            type=TURN_OPENING,
            question_type=QUESTION_OPEN_ENDED,
        )
    )


def peek_next_concept(session: TeachMeSession) -> Optional[Concept]:
    idx = session.current_concept_index + 1
    return session.concepts[idx] if idx < len(session.concepts) else None


def apply_answer(
    session: TeachMeSession,
    analysis: UnderstandingAnalysis,
    decision: ActionDecision,
    answer: str,
    question: str,
) -> TurnOutcome:
    """Mutate ``session`` for one accepted answer.

    Callers work on a copy and persist it with a conditional write; nothing
    here talks to the oracle or the store.
    """
    reject_if_completed(session)
    concept = require_active_concept(session)
    now = utc_now_iso()
    is_correct, feedback_type = classify_answer(analysis)

    validation = analysis.snapshot()
    validation.update(
        {
            "score": decision.new_score,
            "is_correct": is_correct,
            "feedback_type": feedback_type,
            "action": decision.action,
        }
    )
    base = len(concept.conversation_turns)
    concept.conversation_turns.append(
        ConversationTurn(
            turn_number=base + 1,
            speaker=SPEAKER_STUDENT,
            message=answer,
            type=TURN_ANSWER,
            timestamp=now,
            validation_result=validation,
        )
    )
    concept.conversation_turns.append(
        ConversationTurn(
            turn_number=base + 2,
            speaker=SPEAKER_AI,
            message=question,
            type=decision.turn_type,
            timestamp=now,
            question_type=decision.question_type,
        )
    )

    concept.attempts += 1
    concept.understanding_score = decision.new_score
    if "PROB" in decision.turn_type or "CHALLENGE" in decision.turn_type:
        concept.probing_questions_asked += 1

    fresh = [m for m in analysis.misconceptions_detected if m not in concept.misconceptions_identified]
    concept.add_misconceptions(analysis.misconceptions_detected)
    for item in fresh:
        session.misconceptions.append(
            MisconceptionRecord(concept=concept.concept_name, misconception=item, identified_at=now)
        )

    session.total_conversation_turns += 2
    if not is_correct:
        _record_weak_area(session, concept, analysis, feedback_type)

    outcome = TurnOutcome(
        question=question,
        decision=decision,
        concept=concept,
        is_correct=is_correct,
        feedback_type=feedback_type,
    )
    if decision.concept_mastered:
        concept.is_mastered = True
        session.concepts_mastered += 1
        next_concept = peek_next_concept(session)
        if next_concept is not None:
            session.current_concept_index += 1
            seed_opening_turn(next_concept)
            # its opening question is asked now
            session.total_conversation_turns += 1
            outcome.next_concept = next_concept
        else:
            session.is_completed = True
            session.completed_at = now
            outcome.completed_now = True

    session.updated_at = now
    return outcome


__all__ = [
    "TurnOutcome",
    "apply_answer",
    "classify_answer",
    "peek_next_concept",
    "reject_if_completed",
    "require_active_concept",
    "seed_opening_turn",
]
