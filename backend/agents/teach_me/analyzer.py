from __future__ import annotations

from typing import List
import logging

from config.teach_me import TeachMeSettings
from llm import OracleRequest, ReasoningOracle, parse_record
from prompts import render_pair
from schemas.teach_me import UnderstandingAnalysis

from .state import Concept, ConversationTurn

logger = logging.getLogger(__name__)


def format_history(turns: List[ConversationTurn]) -> str:
    if not turns:
        return "(no prior turns)"
    return "\n".join(f"{t.speaker}: {t.message}" for t in turns)


def analyze_answer(
    oracle: ReasoningOracle,
    settings: TeachMeSettings,
    concept: Concept,
    answer: str,
) -> UnderstandingAnalysis:
    """Classify one learner answer against the active concept window.

    Parse failures are not retried; they surface as AnalysisParseError.
    """
    last_ai = concept.last_ai_turn()
    system_prompt, user_prompt = render_pair(
        "teach_me.analyze",
        {
            "answer": answer,
            "question": last_ai.message if last_ai else "Opening question",
            "concept": concept.concept_name,
            "history": format_history(concept.conversation_turns),
            "attempts": concept.attempts,
            "score": concept.understanding_score,
        },
    )
    request = OracleRequest.for_budget(
        system_prompt,
        user_prompt,
        settings.budget("analysis"),
        json_mode=True,
        role="analysis",
    )
    response = oracle.complete(request)
    analysis = parse_record(response.content, UnderstandingAnalysis)
    logger.info(
        "teach_me_analysis concept=%s level=%s reasoning=%s grasped=%s misconceptions=%d recommended=%s provider=%s",
        concept.concept_number,
        analysis.understanding_demonstrated,
        analysis.reasoning_quality,
        analysis.concept_grasped,
        len(analysis.misconceptions_detected),
        analysis.recommended_action,
        response.provider,
    )
    return analysis


__all__ = ["analyze_answer", "format_history"]
