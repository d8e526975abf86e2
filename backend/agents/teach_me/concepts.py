from __future__ import annotations

from typing import Any, Dict, List
import json
import logging

from config.teach_me import TeachMeSettings
from core.errors import AnalysisParseError, InvalidSessionState
from llm import OracleRequest, ReasoningOracle, parse_json_array, validate_record
from prompts import render_pair
from schemas.teach_me import ConceptDraft

from .constants import EXAM_TYPES
from .session import seed_opening_turn
from .state import Concept

logger = logging.getLogger(__name__)


def build_lesson_content(note: Dict[str, Any], limit: int = 12000) -> str:
    """Flatten a stored note into prompt text; extracted text wins over structured content."""
    summary = note.get("summary")
    key_points = note.get("key_points")
    extracted = note.get("extracted_text")
    structured = note.get("structured_content")
    if not (summary or key_points or extracted or structured):
        raise InvalidSessionState(f"note {note.get('id')} has no usable content")

    if extracted:
        detailed = str(extracted)
    elif structured:
        try:
            detailed = json.dumps(structured, indent=2, ensure_ascii=False)
        except (TypeError, ValueError):
            detailed = str(structured)
    else:
        detailed = "N/A"

    if isinstance(key_points, (list, tuple)):
        points = "\n".join(str(p) for p in key_points)
    else:
        points = str(key_points) if key_points else "N/A"

    content = (
        f"Title: {note.get('title') or 'Untitled'}\n\n"
        f"Summary:\n{summary or 'N/A'}\n\n"
        f"Key Points:\n{points}\n\n"
        f"Detailed Content:\n{detailed}"
    ).strip()
    return content[:limit]


def plan_concepts(
    oracle: ReasoningOracle,
    settings: TeachMeSettings,
    note: Dict[str, Any],
) -> List[Concept]:
    content = build_lesson_content(note, settings.content_char_limit)
    system_prompt, user_prompt = render_pair(
        "teach_me.concepts",
        {
            "target_concepts": settings.target_concepts,
            "exam_types": ", ".join(EXAM_TYPES),
            "content": content,
        },
    )
    request = OracleRequest.for_budget(
        system_prompt,
        user_prompt,
        settings.budget("concepts"),
        role="concepts",
    )
    response = oracle.complete(request)
    items = parse_json_array(response.content)
    if len(items) < settings.min_concepts:
        raise AnalysisParseError(
            f"expected at least {settings.min_concepts} concepts, got {len(items)}",
            raw=response.content,
        )

    concepts: List[Concept] = []
    for idx, item in enumerate(items[: settings.target_concepts]):
        draft = validate_record(item, ConceptDraft, raw=response.content)
        concept = Concept(
            concept_number=idx + 1,
            concept_name=draft.concept_name,
            concept_difficulty=draft.concept_difficulty,
            understanding_score=settings.seed_score,
            exam_tag=draft.exam_tag,
            exam_context=draft.exam_context or f"Relevant for {draft.exam_tag}",
        )
        seed_opening_turn(concept, draft.opening_question)
        concepts.append(concept)

    logger.info(
        "teach_me_concepts_planned note=%s count=%d provider=%s",
        note.get("id"),
        len(concepts),
        response.provider,
    )
    return concepts


__all__ = ["build_lesson_content", "plan_concepts"]
