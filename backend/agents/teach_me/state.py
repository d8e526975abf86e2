from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .constants import MODE_SOCRATIC, SPEAKER_AI, SPEAKER_STUDENT


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class ConversationTurn:
    turn_number: int
    speaker: str
    message: str
    type: str
    timestamp: str = field(default_factory=utc_now_iso)
    question_type: Optional[str] = None
    validation_result: Optional[Dict[str, Any]] = None

    @property
    def is_learner(self) -> bool:
        return self.speaker == SPEAKER_STUDENT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationTurn":
        validation = data.get("validation_result")
        return cls(
            turn_number=_as_int(data.get("turn_number"), 0),
            speaker=str(data.get("speaker") or SPEAKER_AI),
            message=str(data.get("message") or ""),
            type=str(data.get("type") or ""),
            timestamp=str(data.get("timestamp") or utc_now_iso()),
            question_type=data.get("question_type"),
            validation_result=dict(validation) if isinstance(validation, dict) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "turn_number": self.turn_number,
            "speaker": self.speaker,
            "message": self.message,
            "type": self.type,
            "timestamp": self.timestamp,
        }
        if self.question_type:
            out["question_type"] = self.question_type
        if self.validation_result is not None:
            out["validation_result"] = copy.deepcopy(self.validation_result)
        return out


@dataclass
class Concept:
    concept_number: int
    concept_name: str
    concept_difficulty: str = "medium"
    understanding_score: int = 0
    attempts: int = 0
    is_mastered: bool = False
    misconceptions_identified: List[str] = field(default_factory=list)
    probing_questions_asked: int = 0
    conversation_turns: List[ConversationTurn] = field(default_factory=list)
    exam_tag: Optional[str] = None
    exam_context: Optional[str] = None

    @property
    def opening_question(self) -> str:
        for turn in self.conversation_turns:
            if turn.speaker == SPEAKER_AI:
                return turn.message
        return ""

    def last_ai_turn(self) -> Optional[ConversationTurn]:
        for turn in reversed(self.conversation_turns):
            if turn.speaker == SPEAKER_AI:
                return turn
        return None

    def add_misconceptions(self, items: List[str]) -> None:
        for item in items:
            if item and item not in self.misconceptions_identified:
                self.misconceptions_identified.append(item)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Concept":
        return cls(
            concept_number=_as_int(data.get("concept_number"), 0),
            concept_name=str(data.get("concept_name") or ""),
            concept_difficulty=str(data.get("concept_difficulty") or "medium"),
            understanding_score=_as_int(data.get("understanding_score"), 0),
            attempts=_as_int(data.get("attempts"), 0),
            is_mastered=bool(data.get("is_mastered")),
            misconceptions_identified=[str(m) for m in _as_list(data.get("misconceptions_identified"))],
            probing_questions_asked=_as_int(data.get("probing_questions_asked"), 0),
            conversation_turns=[
                ConversationTurn.from_dict(t) for t in _as_list(data.get("conversation_turns")) if isinstance(t, dict)
            ],
            exam_tag=data.get("exam_tag"),
            exam_context=data.get("exam_context"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "concept_number": self.concept_number,
            "concept_name": self.concept_name,
            "concept_difficulty": self.concept_difficulty,
            "understanding_score": self.understanding_score,
            "attempts": self.attempts,
            "is_mastered": self.is_mastered,
            "misconceptions_identified": list(self.misconceptions_identified),
            "probing_questions_asked": self.probing_questions_asked,
            "conversation_turns": [t.to_dict() for t in self.conversation_turns],
            "exam_tag": self.exam_tag,
            "exam_context": self.exam_context,
        }


@dataclass
class MisconceptionRecord:
    concept: str
    misconception: str
    identified_at: str = field(default_factory=utc_now_iso)
    resolved: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MisconceptionRecord":
        return cls(
            concept=str(data.get("concept") or ""),
            misconception=str(data.get("misconception") or ""),
            identified_at=str(data.get("identified_at") or utc_now_iso()),
            resolved=bool(data.get("resolved")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "concept": self.concept,
            "misconception": self.misconception,
            "identified_at": self.identified_at,
            "resolved": self.resolved,
        }


@dataclass
class TeachMeSession:
    user_id: str
    note_id: Optional[str] = None
    session_id: Optional[str] = None
    teaching_mode: str = MODE_SOCRATIC
    concepts: List[Concept] = field(default_factory=list)
    current_concept_index: int = 0
    total_concepts: int = 0
    concepts_mastered: int = 0
    is_completed: bool = False
    completed_at: Optional[str] = None
    total_conversation_turns: int = 0
    misconceptions: List[MisconceptionRecord] = field(default_factory=list)
    concept_weak_areas: List[str] = field(default_factory=list)
    writing_weak_areas: List[str] = field(default_factory=list)
    exam_mistake_areas: List[str] = field(default_factory=list)
    exam_tags: List[str] = field(default_factory=list)
    # fixed-six-step sessions
    steps: List[Dict[str, Any]] = field(default_factory=list)
    current_step: int = 0
    total_steps: int = 0
    # written once by the completion analyzer
    exam_risk_areas: Optional[List[Dict[str, Any]]] = None
    recommended_revision: Optional[Dict[str, Any]] = None
    performance_breakdown: Optional[Dict[str, Any]] = None
    motivational_message: Optional[str] = None
    completion_stats: Optional[Dict[str, Any]] = None
    version: int = 0
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    @property
    def active_concept(self) -> Optional[Concept]:
        if 0 <= self.current_concept_index < len(self.concepts):
            return self.concepts[self.current_concept_index]
        return None

    @property
    def current_conversation(self) -> List[ConversationTurn]:
        concept = self.active_concept
        return list(concept.conversation_turns) if concept else []

    @property
    def has_completion_summary(self) -> bool:
        return self.performance_breakdown is not None

    def completion_summary(self) -> Optional[Dict[str, Any]]:
        if not self.has_completion_summary:
            return None
        return {
            "exam_risk_areas": copy.deepcopy(self.exam_risk_areas or []),
            "revision_plan_3min": copy.deepcopy(self.recommended_revision or {}),
            "performance_breakdown": copy.deepcopy(self.performance_breakdown or {}),
            "motivational_message": self.motivational_message or "",
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TeachMeSession":
        return cls(
            user_id=str(data.get("user_id") or ""),
            note_id=data.get("note_id"),
            session_id=data.get("session_id") or data.get("id"),
            teaching_mode=str(data.get("teaching_mode") or MODE_SOCRATIC),
            concepts=[Concept.from_dict(c) for c in _as_list(data.get("concepts")) if isinstance(c, dict)],
            current_concept_index=_as_int(data.get("current_concept_index"), 0),
            total_concepts=_as_int(data.get("total_concepts"), 0),
            concepts_mastered=_as_int(data.get("concepts_mastered"), 0),
            is_completed=bool(data.get("is_completed")),
            completed_at=data.get("completed_at"),
            total_conversation_turns=_as_int(data.get("total_conversation_turns"), 0),
            misconceptions=[
                MisconceptionRecord.from_dict(m) for m in _as_list(data.get("misconceptions")) if isinstance(m, dict)
            ],
            concept_weak_areas=[str(x) for x in _as_list(data.get("concept_weak_areas"))],
            writing_weak_areas=[str(x) for x in _as_list(data.get("writing_weak_areas"))],
            exam_mistake_areas=[str(x) for x in _as_list(data.get("exam_mistake_areas"))],
            exam_tags=[str(x) for x in _as_list(data.get("exam_tags"))],
            steps=[copy.deepcopy(s) for s in _as_list(data.get("steps")) if isinstance(s, dict)],
            current_step=_as_int(data.get("current_step"), 0),
            total_steps=_as_int(data.get("total_steps"), 0),
            exam_risk_areas=copy.deepcopy(data.get("exam_risk_areas")),
            recommended_revision=copy.deepcopy(data.get("recommended_revision")),
            performance_breakdown=copy.deepcopy(data.get("performance_breakdown")),
            motivational_message=data.get("motivational_message"),
            completion_stats=copy.deepcopy(data.get("completion_stats")),
            version=_as_int(data.get("version"), 0),
            created_at=str(data.get("created_at") or utc_now_iso()),
            updated_at=str(data.get("updated_at") or utc_now_iso()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "note_id": self.note_id,
            "teaching_mode": self.teaching_mode,
            "concepts": [c.to_dict() for c in self.concepts],
            "current_concept_index": self.current_concept_index,
            "total_concepts": self.total_concepts,
            "concepts_mastered": self.concepts_mastered,
            "is_completed": self.is_completed,
            "completed_at": self.completed_at,
            "current_conversation": [t.to_dict() for t in self.current_conversation],
            "total_conversation_turns": self.total_conversation_turns,
            "misconceptions": [m.to_dict() for m in self.misconceptions],
            "concept_weak_areas": list(self.concept_weak_areas),
            "writing_weak_areas": list(self.writing_weak_areas),
            "exam_mistake_areas": list(self.exam_mistake_areas),
            "exam_tags": list(self.exam_tags),
            "steps": copy.deepcopy(self.steps),
            "current_step": self.current_step,
            "total_steps": self.total_steps,
            "exam_risk_areas": copy.deepcopy(self.exam_risk_areas),
            "recommended_revision": copy.deepcopy(self.recommended_revision),
            "performance_breakdown": copy.deepcopy(self.performance_breakdown),
            "motivational_message": self.motivational_message,
            "completion_stats": copy.deepcopy(self.completion_stats),
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
