"""Session-wide completion summary: exam risks, a 3-minute revision plan and scores."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple
import logging

from config.teach_me import TeachMeSettings
from core.errors import InvalidSessionState
from llm import OracleRequest, ReasoningOracle, parse_record
from prompts import render_pair
from schemas.teach_me import CompletionSummary

from .constants import FEEDBACK_CONCEPT, FEEDBACK_EXAM, FEEDBACK_WRITING, MODE_STEPS, SPEAKER_AI
from .state import TeachMeSession, utc_now_iso

logger = logging.getLogger(__name__)


def collect_steps(session: TeachMeSession) -> List[Dict[str, Any]]:
    """Answered steps for stats; socratic sessions use every learner turn."""
    if session.teaching_mode == MODE_STEPS:
        return [s for s in session.steps if s.get("validation_result") or s.get("user_answer")]

    steps: List[Dict[str, Any]] = []
    for concept in session.concepts:
        prev_question = ""
        for turn in concept.conversation_turns:
            if turn.speaker == SPEAKER_AI:
                prev_question = turn.message
                continue
            steps.append(
                {
                    "step_number": len(steps) + 1,
                    "question_type": concept.concept_name,
                    "question_text": prev_question,
                    "user_answer": turn.message,
                    "validation_result": dict(turn.validation_result or {}),
                }
            )
    return steps


def completion_stats(steps: List[Dict[str, Any]]) -> Dict[str, int]:
    def _count(feedback_type: str) -> int:
        return sum(1 for s in steps if (s.get("validation_result") or {}).get("feedback_type") == feedback_type)

    total = len(steps)
    correct = sum(1 for s in steps if (s.get("validation_result") or {}).get("is_correct") is True)
    return {
        "total_steps": total,
        "correct_answers": correct,
        "accuracy_percentage": round(correct / total * 100) if total else 0,
        "concept_issues": _count(FEEDBACK_CONCEPT),
        "writing_issues": _count(FEEDBACK_WRITING),
        "exam_mistakes": _count(FEEDBACK_EXAM),
    }


def _top(items: List[str]) -> str:
    return "; ".join(items[:3]) or "None"


def build_performance_context(
    session: TeachMeSession,
    steps: List[Dict[str, Any]],
    stats: Dict[str, int],
    topic: Optional[str] = None,
) -> str:
    lines = [
        "Session Performance:",
        f"- Topic: {topic or 'Unknown'}",
        f"- Total Steps: {stats['total_steps']}",
        f"- Correct Answers: {stats['correct_answers']}",
        f"- Accuracy: {stats['accuracy_percentage']}%",
        "",
        "Issue Breakdown:",
        f"- Concept Issues: {stats['concept_issues']} ({len(session.concept_weak_areas)} unique areas)",
        f"- Writing Issues: {stats['writing_issues']} ({len(session.writing_weak_areas)} unique areas)",
        f"- Exam Mistakes: {stats['exam_mistakes']} ({len(session.exam_mistake_areas)} unique areas)",
        "",
        "Weak Areas:",
        f"Concept: {_top(session.concept_weak_areas)}",
        f"Writing: {_top(session.writing_weak_areas)}",
        f"Exam: {_top(session.exam_mistake_areas)}",
        "",
        f"Exam Tags: {', '.join(session.exam_tags)}",
        "",
        "Step-by-Step Performance:",
    ]
    for step in steps:
        result = step.get("validation_result") or {}
        lines.extend(
            [
                f"Step {step.get('step_number')} ({step.get('question_type')}):",
                f"Q: {str(step.get('question_text') or '')[:100]}",
                f"User Answer: {step.get('user_answer') or 'N/A'}",
                f"Result: {'Correct' if result.get('is_correct') else 'Incorrect'}",
                f"Feedback: {result.get('feedback_type') or 'N/A'}",
                "",
            ]
        )
    return "\n".join(lines).strip()


def generate_completion(
    oracle: ReasoningOracle,
    settings: TeachMeSettings,
    session: TeachMeSession,
    topic: Optional[str] = None,
) -> Tuple[CompletionSummary, Dict[str, int]]:
    if not session.is_completed:
        raise InvalidSessionState(f"session {session.session_id} is not completed yet")
    if session.has_completion_summary:
        raise InvalidSessionState(f"session {session.session_id} already has a completion summary")

    steps = collect_steps(session)
    stats = completion_stats(steps)
    system_prompt, user_prompt = render_pair(
        "teach_me.completion",
        {"performance_context": build_performance_context(session, steps, stats, topic)},
    )
    request = OracleRequest.for_budget(
        system_prompt,
        user_prompt,
        settings.budget("completion"),
        json_mode=True,
        role="completion",
    )
    response = oracle.complete(request)
    summary = parse_record(response.content, CompletionSummary)
    logger.info(
        "teach_me_completion_generated session=%s steps=%d accuracy=%s risks=%d provider=%s",
        session.session_id,
        stats["total_steps"],
        stats["accuracy_percentage"],
        len(summary.exam_risk_areas),
        response.provider,
    )
    return summary, stats


def apply_completion(session: TeachMeSession, summary: CompletionSummary, stats: Dict[str, int]) -> None:
    if session.has_completion_summary:
        raise InvalidSessionState(f"session {session.session_id} already has a completion summary")
    data = summary.model_dump()
    session.exam_risk_areas = data["exam_risk_areas"]
    session.recommended_revision = data["revision_plan_3min"]
    session.performance_breakdown = data["performance_breakdown"]
    session.motivational_message = data["motivational_message"]
    session.completion_stats = dict(stats)
    session.updated_at = utc_now_iso()


__all__ = [
    "apply_completion",
    "build_performance_context",
    "collect_steps",
    "completion_stats",
    "generate_completion",
]
