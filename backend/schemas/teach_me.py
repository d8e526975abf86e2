from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

UNDERSTANDING_LEVELS = ("none", "partial", "good", "excellent")
REASONING_LEVELS = ("weak", "moderate", "strong")
ACTIONS = ("PROBE", "CHALLENGE", "SCAFFOLD", "VALIDATE", "MOVE_ON")
FEEDBACK_TYPES = ("CONCEPT_ISSUE", "WRITING_ISSUE", "EXAM_MISTAKE", "PERFECT")
RISK_LEVELS = ("HIGH", "MEDIUM", "LOW")


def _string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ValueError("expected a list of strings")
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def _clamp_score(value: Any) -> float:
    try:
        num = float(value)
    except (TypeError, ValueError):
        raise ValueError("score must be numeric")
    return max(0.0, min(100.0, num))


class UnderstandingAnalysis(BaseModel):
    understanding_demonstrated: Literal["none", "partial", "good", "excellent"]
    reasoning_quality: Literal["weak", "moderate", "strong"]
    misconceptions_detected: List[str] = Field(default_factory=list)
    needs_probing: bool
    needs_scaffolding: bool
    concept_grasped: bool
    key_insight: str = ""
    recommended_action: Optional[str] = None

    @field_validator("understanding_demonstrated", "reasoning_quality", mode="before")
    @classmethod
    def _lower_enum(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("misconceptions_detected", mode="before")
    @classmethod
    def _misconceptions(cls, value: Any) -> List[str]:
        return _string_list(value)

    @field_validator("key_insight", mode="before")
    @classmethod
    def _insight(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("recommended_action", mode="before")
    @classmethod
    def _action(cls, value: Any) -> Optional[str]:
        if not isinstance(value, str):
            return None
        action = value.strip().upper().replace(" ", "_")
        return action if action in ACTIONS else None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "understanding_demonstrated": self.understanding_demonstrated,
            "reasoning_quality": self.reasoning_quality,
            "misconceptions_detected": list(self.misconceptions_detected),
            "needs_probing": self.needs_probing,
            "needs_scaffolding": self.needs_scaffolding,
            "concept_grasped": self.concept_grasped,
            "key_insight": self.key_insight,
            "recommended_action": self.recommended_action,
        }


class ConceptDraft(BaseModel):
    concept_name: str = Field(min_length=1)
    concept_difficulty: str = "medium"
    opening_question: str = Field(min_length=1)
    exam_tag: str = Field(min_length=1)
    exam_context: Optional[str] = None

    @field_validator("concept_difficulty", mode="before")
    @classmethod
    def _difficulty(cls, value: Any) -> str:
        text = str(value or "").strip().lower()
        return text or "medium"


class ExamRiskArea(BaseModel):
    risk_level: Literal["HIGH", "MEDIUM", "LOW"]
    area: str
    issue_type: str
    quick_fix: str
    exam_impact: str

    @field_validator("risk_level", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value


class RevisionPlan(BaseModel):
    step_1: str
    step_2: str
    step_3: str
    key_formula_or_fact: str


class PerformanceBreakdown(BaseModel):
    concept_understanding: float
    writing_quality: float
    exam_readiness: float
    overall_score: float
    strengths: List[str] = Field(default_factory=list)
    priority_improvements: List[str] = Field(default_factory=list)

    @field_validator("concept_understanding", "writing_quality", "exam_readiness", "overall_score", mode="before")
    @classmethod
    def _score(cls, value: Any) -> float:
        return _clamp_score(value)

    @field_validator("strengths", "priority_improvements", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> List[str]:
        return _string_list(value)


class CompletionSummary(BaseModel):
    exam_risk_areas: List[ExamRiskArea] = Field(default_factory=list)
    revision_plan_3min: RevisionPlan
    performance_breakdown: PerformanceBreakdown
    motivational_message: str = ""


class StepDraft(BaseModel):
    step_number: int
    step_type: str
    question_type: str
    question_text: str = Field(min_length=1)
    correct_answer: str = Field(min_length=1)
    exam_tag: str = Field(min_length=1)
    exam_context: str = ""
    hint: Optional[str] = None
    explanation: Optional[str] = None
    options: Optional[List[str]] = None
    items_to_sequence: Optional[List[str]] = None

    @field_validator("correct_answer", mode="before")
    @classmethod
    def _answer(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return ",".join(str(v).strip() for v in value)
        if isinstance(value, bool):
            return "TRUE" if value else "FALSE"
        return value

    @field_validator("exam_context", mode="before")
    @classmethod
    def _context(cls, value: Any) -> str:
        return "" if value is None else str(value)


class StepValidation(BaseModel):
    is_correct: bool
    feedback_type: Literal["CONCEPT_ISSUE", "WRITING_ISSUE", "EXAM_MISTAKE", "PERFECT"]
    feedback_message: str = ""
    score_percentage: float = 0.0
    improvement_tip: Optional[str] = None
    exam_relevance: str = ""

    @field_validator("feedback_type", mode="before")
    @classmethod
    def _feedback(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("score_percentage", mode="before")
    @classmethod
    def _score(cls, value: Any) -> float:
        return _clamp_score(value if value is not None else 0)

    @field_validator("exam_relevance", mode="before")
    @classmethod
    def _relevance(cls, value: Any) -> str:
        return "" if value is None else str(value)


class TeachMeRequest(BaseModel):
    note_id: Optional[str] = None
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    answer_text: Optional[str] = None
    user_answer: Optional[str] = None
    step_number: Optional[int] = None


__all__ = [
    "ACTIONS",
    "CompletionSummary",
    "ConceptDraft",
    "ExamRiskArea",
    "FEEDBACK_TYPES",
    "PerformanceBreakdown",
    "REASONING_LEVELS",
    "RevisionPlan",
    "StepDraft",
    "StepValidation",
    "TeachMeRequest",
    "UNDERSTANDING_LEVELS",
    "UnderstandingAnalysis",
]
