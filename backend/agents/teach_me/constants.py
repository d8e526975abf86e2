from __future__ import annotations

from typing import Dict

PROBE = "PROBE"
CHALLENGE = "CHALLENGE"
SCAFFOLD = "SCAFFOLD"
VALIDATE = "VALIDATE"
MOVE_ON = "MOVE_ON"

SPEAKER_AI = "AI"
SPEAKER_STUDENT = "STUDENT"

TURN_OPENING = "OPENING_QUESTION"
TURN_ANSWER = "ANSWER"
TURN_PROBING = "PROBING_QUESTION"
TURN_SCAFFOLDING = "SCAFFOLDING"
TURN_CHALLENGE = "CHALLENGE"
TURN_VALIDATION = "VALIDATION"

QUESTION_OPEN_ENDED = "OPEN_ENDED"
QUESTION_WHY = "WHY"
QUESTION_HOW = "HOW"
QUESTION_EXPLAIN = "EXPLAIN"
QUESTION_SIMPLIFYING = "SIMPLIFYING"
QUESTION_WHAT_IF = "WHAT_IF"

FEEDBACK_CONCEPT = "CONCEPT_ISSUE"
FEEDBACK_WRITING = "WRITING_ISSUE"
FEEDBACK_EXAM = "EXAM_MISTAKE"
FEEDBACK_PERFECT = "PERFECT"

MODE_SOCRATIC = "socratic"
MODE_STEPS = "steps"

SCORE_DELTAS: Dict[str, int] = {
    "none": -10,
    "partial": 5,
    "good": 15,
    "excellent": 25,
}

CORRECT_LEVELS = frozenset({"good", "excellent"})

GENERIC_PROBE_TEXT = "Good! Can you explain your reasoning behind that answer?"

EXAM_TYPES = ["CBSE", "SSC", "UPSC", "Railway", "Banking", "State PSC", "Teaching", "Police", "Defence", "Judiciary"]
