from __future__ import annotations

from typing import Optional
import logging

from config.teach_me import TeachMeSettings
from core.errors import AnalysisParseError
from llm import OracleRequest, ReasoningOracle, clean_question_text
from prompts import render_pair
from schemas.teach_me import UnderstandingAnalysis

from .constants import CHALLENGE, GENERIC_PROBE_TEXT, MOVE_ON, PROBE, SCAFFOLD, VALIDATE
from .policy import ActionDecision
from .state import Concept

logger = logging.getLogger(__name__)

_PROMPT_KEYS = {
    SCAFFOLD: "teach_me.scaffold",
    CHALLENGE: "teach_me.challenge",
    PROBE: "teach_me.probe",
}


def transition_text(concept: Concept, next_concept: Optional[Concept]) -> str:
    if next_concept is None:
        return "You've completed all concepts! Let me prepare your summary."
    return f"Excellent! You've truly grasped {concept.concept_name}. Let's move on to our next concept."


def generate_question(
    oracle: ReasoningOracle,
    settings: TeachMeSettings,
    decision: ActionDecision,
    analysis: UnderstandingAnalysis,
    concept: Concept,
    answer: str,
    next_concept: Optional[Concept] = None,
) -> str:
    if decision.action in (MOVE_ON, VALIDATE):
        return transition_text(concept, next_concept)
    if decision.generic_probe:
        return GENERIC_PROBE_TEXT

    key = _PROMPT_KEYS[decision.action]
    system_prompt, user_prompt = render_pair(
        key,
        {
            "concept": concept.concept_name,
            "key_insight": analysis.key_insight,
            "misconception": decision.misconception or analysis.key_insight,
            "answer": answer,
            "exam_context": concept.exam_context or concept.exam_tag or "general exams",
        },
    )
    request = OracleRequest.for_budget(
        system_prompt,
        user_prompt,
        settings.budget("question"),
        role="question",
    )
    response = oracle.complete(request)
    question = clean_question_text(response.content)
    if not question:
        raise AnalysisParseError(f"empty {decision.action.lower()} question", raw=response.content)
    logger.info(
        "teach_me_question action=%s question_type=%s chars=%d provider=%s",
        decision.action,
        decision.question_type,
        len(question),
        response.provider,
    )
    return question


__all__ = ["generate_question", "transition_text"]
