from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from schemas.teach_me import UnderstandingAnalysis

from .constants import (
    CHALLENGE,
    MOVE_ON,
    PROBE,
    QUESTION_EXPLAIN,
    QUESTION_HOW,
    QUESTION_SIMPLIFYING,
    QUESTION_WHAT_IF,
    QUESTION_WHY,
    SCAFFOLD,
    SCORE_DELTAS,
    TURN_CHALLENGE,
    TURN_PROBING,
    TURN_SCAFFOLDING,
    TURN_VALIDATION,
)

DEFAULT_MASTERY_THRESHOLD = 80


def clamp_score(value: int) -> int:
    return max(0, min(100, int(value)))


def score_delta(level: str) -> int:
    return SCORE_DELTAS.get(level, 0)


def score_after(current: int, level: str) -> int:
    return clamp_score(current + score_delta(level))


def select_action(
    analysis: UnderstandingAnalysis,
    current_score: int,
    threshold: int = DEFAULT_MASTERY_THRESHOLD,
) -> str:
    """Pick the next pedagogical action.

    Pure function of the analysis and the score before this answer. The
    oracle's ``recommended_action`` is advisory and never consulted here.
    """
    new_score = score_after(current_score, analysis.understanding_demonstrated)
    if analysis.concept_grasped and new_score >= threshold:
        return MOVE_ON
    if analysis.needs_scaffolding:
        return SCAFFOLD
    if analysis.misconceptions_detected:
        return CHALLENGE
    return PROBE


@dataclass(frozen=True)
class ActionDecision:
    action: str
    new_score: int
    delta: int
    concept_mastered: bool
    turn_type: str
    question_type: str
    generic_probe: bool = False
    misconception: Optional[str] = None


def decide(
    analysis: UnderstandingAnalysis,
    current_score: int,
    threshold: int = DEFAULT_MASTERY_THRESHOLD,
) -> ActionDecision:
    level = analysis.understanding_demonstrated
    new_score = score_after(current_score, level)
    delta = new_score - clamp_score(current_score)
    action = select_action(analysis, current_score, threshold)

    if action == MOVE_ON:
        return ActionDecision(action, new_score, delta, True, TURN_VALIDATION, QUESTION_EXPLAIN)
    if action == SCAFFOLD:
        return ActionDecision(action, new_score, delta, False, TURN_SCAFFOLDING, QUESTION_SIMPLIFYING)
    if action == CHALLENGE:
        return ActionDecision(
            action,
            new_score,
            delta,
            False,
            TURN_CHALLENGE,
            QUESTION_WHAT_IF,
            misconception=analysis.misconceptions_detected[0],
        )
    if analysis.needs_probing:
        question_type = QUESTION_WHY if level == "partial" else QUESTION_HOW
        return ActionDecision(action, new_score, delta, False, TURN_PROBING, question_type)
    return ActionDecision(action, new_score, delta, False, TURN_PROBING, QUESTION_EXPLAIN, generic_probe=True)


__all__ = [
    "ActionDecision",
    "DEFAULT_MASTERY_THRESHOLD",
    "clamp_score",
    "decide",
    "score_after",
    "score_delta",
    "select_action",
]
