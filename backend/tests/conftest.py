from __future__ import annotations

import json
import os
import sys
from typing import Any, Dict, List, Optional, Union

import pytest

# ensure project root on path
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from agents.teach_me.engine import TeachMeEngine  # noqa: E402
from agents.teach_me.persistence import InMemorySessionStore  # noqa: E402
from config.teach_me import TeachMeSettings  # noqa: E402
from core.errors import OracleUnavailable  # noqa: E402
from llm import OracleRequest, OracleResponse  # noqa: E402
from metrics import MetricsCollector  # noqa: E402

USER_ID = "user-1"
NOTE_ID = "note-1"


class ScriptedOracle:
    """Returns queued replies in order; an exception in the queue is raised."""

    def __init__(self, replies: Optional[List[Union[str, Exception]]] = None) -> None:
        self.replies: List[Union[str, Exception]] = list(replies or [])
        self.requests: List[OracleRequest] = []

    def queue(self, *replies: Union[str, Exception]) -> "ScriptedOracle":
        self.replies.extend(replies)
        return self

    def complete(self, request: OracleRequest) -> OracleResponse:
        self.requests.append(request)
        if not self.replies:
            raise OracleUnavailable("scripted oracle has no replies left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return OracleResponse(content=reply, tokens_used=10, provider="scripted", model="stub")


def analysis_json(
    level: str = "partial",
    reasoning: str = "moderate",
    misconceptions: Optional[List[str]] = None,
    probing: bool = False,
    scaffolding: bool = False,
    grasped: bool = False,
    insight: str = "knows the basics",
    action: str = "PROBE",
) -> str:
    return json.dumps(
        {
            "understanding_demonstrated": level,
            "reasoning_quality": reasoning,
            "misconceptions_detected": misconceptions or [],
            "needs_probing": probing,
            "needs_scaffolding": scaffolding,
            "concept_grasped": grasped,
            "key_insight": insight,
            "recommended_action": action,
        }
    )


def concepts_json(count: int = 9) -> str:
    return json.dumps(
        [
            {
                "concept_number": i + 1,
                "concept_name": f"Concept {i + 1}",
                "concept_difficulty": "easy" if i < 2 else "medium",
                "opening_question": f"What do you know about concept {i + 1}?",
                "exam_tag": "CBSE" if i % 2 == 0 else "SSC",
                "exam_context": f"Context {i + 1}",
            }
            for i in range(count)
        ]
    )


def completion_json() -> str:
    return json.dumps(
        {
            "exam_risk_areas": [
                {
                    "risk_level": "high",
                    "area": "Photosynthesis inputs",
                    "issue_type": "CONCEPT_ISSUE",
                    "quick_fix": "List the reactants twice.",
                    "exam_impact": "Loses 2 marks per question",
                }
            ],
            "revision_plan_3min": {
                "step_1": "Re-read the equation",
                "step_2": "Explain the light reaction aloud",
                "step_3": "Solve one past paper question",
                "key_formula_or_fact": "6CO2 + 6H2O -> C6H12O6 + 6O2",
            },
            "performance_breakdown": {
                "concept_understanding": 82,
                "writing_quality": 120,
                "exam_readiness": 70,
                "overall_score": 77,
                "strengths": ["Clear definitions"],
                "priority_improvements": ["Use keywords"],
            },
            "motivational_message": "Great progress, keep going!",
        }
    )


def steps_json() -> str:
    configs = [
        ("warm_up", "TRUE_FALSE", "TRUE"),
        ("core_thinking", "ANSWER_WRITING", "Plants make food using sunlight."),
        ("core_thinking", "ANSWER_WRITING", "Chlorophyll absorbs light."),
        ("core_thinking", "ANSWER_WRITING", "Oxygen is released as a by-product."),
        ("application", "MCQ", "B"),
        ("integration", "CONCEPT_SEQUENCING", "A,B,C,D"),
    ]
    return json.dumps(
        [
            {
                "step_number": i + 1,
                "step_type": step_type,
                "question_type": question_type,
                "question_text": f"Step {i + 1} question about photosynthesis",
                "correct_answer": answer,
                "exam_tag": "CBSE",
                "exam_context": "Class 10 Science",
                "hint": "Think about leaves",
            }
            for i, (step_type, question_type, answer) in enumerate(configs)
        ]
    )


@pytest.fixture()
def note() -> Dict[str, Any]:
    return {
        "user_id": USER_ID,
        "title": "Photosynthesis",
        "summary": "How plants turn light into chemical energy.",
        "key_points": ["Chlorophyll absorbs light", "Oxygen is released"],
        "extracted_text": "Photosynthesis happens in the chloroplast.",
    }


@pytest.fixture()
def store(note) -> InMemorySessionStore:
    s = InMemorySessionStore()
    s.add_note(NOTE_ID, note)
    return s


@pytest.fixture()
def oracle() -> ScriptedOracle:
    return ScriptedOracle()


@pytest.fixture()
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture()
def settings() -> TeachMeSettings:
    return TeachMeSettings(store_backend="memory")


@pytest.fixture()
def engine(oracle, store, settings, metrics) -> TeachMeEngine:
    return TeachMeEngine(oracle, store, settings, metrics)
