"""Fixed six-step Teach Me sessions.

All six steps are generated up front in one oracle call. Written answers
are graded by the oracle; the other question types are compared directly.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging

from config.teach_me import TeachMeSettings
from core.errors import AnalysisParseError, InvalidSessionState
from llm import OracleRequest, ReasoningOracle, parse_json_array, parse_record, validate_record
from prompts import render_pair
from schemas.teach_me import StepDraft, StepValidation

from .constants import FEEDBACK_CONCEPT, FEEDBACK_EXAM, FEEDBACK_PERFECT, FEEDBACK_WRITING
from .state import TeachMeSession, utc_now_iso

logger = logging.getLogger(__name__)

STEP_CONFIGS: Dict[int, Dict[str, str]] = {
    1: {"type": "warm_up", "question_type": "TRUE_FALSE"},
    2: {"type": "core_thinking", "question_type": "ANSWER_WRITING"},
    3: {"type": "core_thinking", "question_type": "ANSWER_WRITING"},
    4: {"type": "core_thinking", "question_type": "ANSWER_WRITING"},
    5: {"type": "application", "question_type": "MCQ"},
    6: {"type": "integration", "question_type": "CONCEPT_SEQUENCING"},
}
TOTAL_STEPS = len(STEP_CONFIGS)
WEAK_AREA_CHARS = 100

# fields the learner must not see before answering
_HIDDEN_FIELDS = ("correct_answer", "explanation", "user_answer", "validation_result", "answered_at")


def public_step(step: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if step is None:
        return None
    return {k: v for k, v in step.items() if k not in _HIDDEN_FIELDS}


def generate_steps(oracle: ReasoningOracle, settings: TeachMeSettings, content: str) -> List[Dict[str, Any]]:
    system_prompt, user_prompt = render_pair("teach_me.steps", {"content": content})
    request = OracleRequest.for_budget(
        system_prompt,
        user_prompt,
        settings.budget("steps"),
        role="steps",
    )
    response = oracle.complete(request)
    items = parse_json_array(response.content)
    if len(items) != TOTAL_STEPS:
        raise AnalysisParseError(f"expected {TOTAL_STEPS} steps, got {len(items)}", raw=response.content)

    steps: List[Dict[str, Any]] = []
    for idx, item in enumerate(items):
        number = idx + 1
        if isinstance(item, dict):
            # step identity comes from position, not from the oracle
            item = {**item, "step_number": number}
            item.setdefault("step_type", STEP_CONFIGS[number]["type"])
            item.setdefault("question_type", STEP_CONFIGS[number]["question_type"])
        draft = validate_record(item, StepDraft, raw=response.content)
        steps.append(draft.model_dump(exclude_none=True))
    logger.info("teach_me_steps_generated count=%d provider=%s", len(steps), response.provider)
    return steps


def _grade_written(
    oracle: ReasoningOracle,
    settings: TeachMeSettings,
    step: Dict[str, Any],
    answer: str,
) -> StepValidation:
    system_prompt, user_prompt = render_pair(
        "teach_me.step_validate",
        {
            "question": step.get("question_text", ""),
            "expected": step.get("correct_answer", ""),
            "answer": answer,
            "exam_tag": step.get("exam_tag", ""),
            "exam_context": step.get("exam_context", ""),
        },
    )
    request = OracleRequest.for_budget(
        system_prompt,
        user_prompt,
        settings.budget("step_validation"),
        json_mode=True,
        role="step_validation",
    )
    response = oracle.complete(request)
    return parse_record(response.content, StepValidation)


def _grade_exact(step: Dict[str, Any], answer: str) -> StepValidation:
    expected = str(step.get("correct_answer") or "")
    is_correct = answer.strip().upper() == expected.strip().upper()
    return StepValidation(
        is_correct=is_correct,
        feedback_type=FEEDBACK_PERFECT if is_correct else FEEDBACK_CONCEPT,
        feedback_message="Correct! Well done." if is_correct else f"Incorrect. The correct answer is: {expected}",
        score_percentage=100 if is_correct else 0,
        improvement_tip=None if is_correct else f"Review the concept: {step.get('hint') or 'Check the material again'}",
        exam_relevance=str(step.get("exam_context") or ""),
    )


def grade_step(
    oracle: ReasoningOracle,
    settings: TeachMeSettings,
    step: Dict[str, Any],
    answer: str,
) -> StepValidation:
    if step.get("question_type") == "ANSWER_WRITING":
        return _grade_written(oracle, settings, step, answer)
    return _grade_exact(step, answer)


def find_step(session: TeachMeSession, step_number: int) -> Dict[str, Any]:
    if session.is_completed:
        raise InvalidSessionState(f"session {session.session_id} is already completed")
    if step_number != session.current_step:
        raise InvalidSessionState(f"expected step {session.current_step}, got {step_number}")
    for step in session.steps:
        if step.get("step_number") == step_number:
            return step
    raise InvalidSessionState(f"step {step_number} is missing from session {session.session_id}")


def apply_step_answer(
    session: TeachMeSession,
    step_number: int,
    answer: str,
    validation: StepValidation,
) -> Optional[Dict[str, Any]]:
    """Record the graded answer and advance; returns the next step or None when finished."""
    step = find_step(session, step_number)
    now = utc_now_iso()
    step["user_answer"] = answer
    step["validation_result"] = validation.model_dump()
    step["answered_at"] = now

    if not validation.is_correct:
        topic = str(step.get("question_text") or "")[:WEAK_AREA_CHARS]
        if validation.feedback_type == FEEDBACK_CONCEPT:
            session.concept_weak_areas.append(topic)
        elif validation.feedback_type == FEEDBACK_WRITING:
            session.writing_weak_areas.append(topic)
        elif validation.feedback_type == FEEDBACK_EXAM:
            session.exam_mistake_areas.append(topic)

    session.updated_at = now
    if step_number >= session.total_steps:
        session.is_completed = True
        session.completed_at = now
        return None
    session.current_step = step_number + 1
    for candidate in session.steps:
        if candidate.get("step_number") == session.current_step:
            return candidate
    return None


__all__ = [
    "STEP_CONFIGS",
    "TOTAL_STEPS",
    "apply_step_answer",
    "find_step",
    "generate_steps",
    "grade_step",
    "public_step",
]
