"""Prompt registry with YAML-backed prompt sets and simple rendering.

- Reads PROMPT_SET from environment (default: 'baseline')
- Loads prompts/<set>.yaml on first use and caches content; auto-reloads on mtime change
- Provides get(key_path) e.g., 'teach_me.analyze.user' and render(template, vars)
- Falls back to built-in baseline prompts when files or keys are missing
"""
from __future__ import annotations
from typing import Dict, Any, Optional
import logging
import os
import re
import threading

import yaml

logger = logging.getLogger(__name__)

_LOCK = threading.Lock()
_CACHE: Dict[str, Any] = {"set": None, "mtime": 0.0, "prompts": {}}
_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


def _default_prompts() -> Dict[str, Any]:
    """Built-in baseline prompt set for the Teach Me engine."""
    return {
        "teach_me": {
            "analyze": {
                "system": "You are an expert educational psychologist. Return ONLY valid JSON.",
                "user": (
                    "You are an expert educational psychologist analyzing student responses for Socratic teaching.\n\n"
                    "STUDENT'S ANSWER: \"{{answer}}\"\n\n"
                    "QUESTION ASKED: \"{{question}}\"\n\n"
                    "CONCEPT BEING TAUGHT: \"{{concept}}\"\n\n"
                    "CONVERSATION HISTORY:\n{{history}}\n\n"
                    "PREVIOUS ATTEMPTS: {{attempts}}\n"
                    "CURRENT UNDERSTANDING SCORE: {{score}}/100\n\n"
                    "Analyze this student response and return ONLY valid JSON:\n\n"
                    "{\n"
                    '  "understanding_demonstrated": "none" | "partial" | "good" | "excellent",\n'
                    '  "reasoning_quality": "weak" | "moderate" | "strong",\n'
                    '  "misconceptions_detected": ["list of specific misconceptions"],\n'
                    '  "needs_probing": true/false,\n'
                    '  "needs_scaffolding": true/false,\n'
                    '  "concept_grasped": true/false,\n'
                    '  "key_insight": "What the student understands or misunderstands",\n'
                    '  "recommended_action": "PROBE" | "CHALLENGE" | "SCAFFOLD" | "VALIDATE" | "MOVE_ON"\n'
                    "}"
                ),
            },
            "scaffold": {
                "system": "You are a patient Socratic teacher. Generate ONE scaffolding question.",
                "user": (
                    "Generate a SCAFFOLDING question for a struggling student.\n\n"
                    "CONCEPT: \"{{concept}}\"\n"
                    "STUDENT'S STRUGGLE: \"{{key_insight}}\"\n"
                    "STUDENT'S ANSWER: \"{{answer}}\"\n\n"
                    "Create a simpler, guiding question that:\n"
                    "- Breaks down the concept into smaller parts\n"
                    "- Provides hints without giving away the answer\n"
                    "- Uses analogy or real-world examples\n"
                    "- Builds confidence\n\n"
                    "Return ONLY the question text, no JSON, no explanation."
                ),
            },
            "challenge": {
                "system": "You are a Socratic teacher. Generate ONE challenging question.",
                "user": (
                    "Generate a CHALLENGING question to address this misconception.\n\n"
                    "CONCEPT: \"{{concept}}\"\n"
                    "MISCONCEPTION: \"{{misconception}}\"\n"
                    "STUDENT'S ANSWER: \"{{answer}}\"\n\n"
                    "Create a thought-provoking question that:\n"
                    "- Gently challenges the misconception\n"
                    "- Encourages the student to reconsider\n"
                    "- Uses Socratic method (e.g., \"What if...\", \"Can you think of...\")\n"
                    "- Doesn't directly state the error\n\n"
                    "Return ONLY the question text, no JSON, no explanation."
                ),
            },
            "probe": {
                "system": "You are a Socratic teacher. Generate ONE probing question.",
                "user": (
                    "Generate a PROBING question to deepen understanding.\n\n"
                    "CONCEPT: \"{{concept}}\"\n"
                    "STUDENT'S CURRENT UNDERSTANDING: \"{{key_insight}}\"\n"
                    "STUDENT'S ANSWER: \"{{answer}}\"\n\n"
                    "Create a probing question that:\n"
                    "- Asks \"Why?\" or \"How?\" to reveal reasoning\n"
                    "- Encourages explanation of their thinking\n"
                    "- Connects to exam relevance: {{exam_context}}\n"
                    "- Deepens conceptual understanding\n\n"
                    "Return ONLY the question text, no JSON, no explanation."
                ),
            },
            "concepts": {
                "system": (
                    "You are an expert Indian competitive exam educator. Create a {{target_concepts}}-concept "
                    "learning progression for Socratic teaching.\n\n"
                    "Order the concepts from foundation (easy) through core ideas, reasoning checks, integration, "
                    "application, analysis and synthesis, ending with exam mastery.\n\n"
                    "For each concept, provide:\n"
                    "- Concept name: Clear, specific learning goal\n"
                    "- Difficulty: easy, medium, hard, or very_hard\n"
                    "- Opening question: First Socratic question to ask\n"
                    "- Exam tag: Relevant exam from: {{exam_types}}\n"
                    "- Exam context: Why this matters for that exam\n\n"
                    "Return ONLY valid JSON array without markdown."
                ),
                "user": (
                    "Create {{target_concepts}} Socratic learning concepts for this content:\n\n"
                    "{{content}}\n\n"
                    "OUTPUT FORMAT (return ONLY this JSON array):\n"
                    "[\n"
                    "  {\n"
                    '    "concept_number": 1,\n'
                    '    "concept_name": "Foundation: Understanding [basic concept]",\n'
                    '    "concept_difficulty": "easy",\n'
                    '    "opening_question": "What do you already know about [topic]?",\n'
                    '    "exam_tag": "CBSE",\n'
                    '    "exam_context": "Foundational for Class 10 Science"\n'
                    "  }\n"
                    "]"
                ),
            },
            "completion": {
                "system": (
                    "You are an expert exam coach for Indian competitive exams. Analyze student performance and "
                    "create actionable revision plans.\n\n"
                    "FOCUS ON:\n"
                    "1. Exam Risk Areas: Identify HIGH/MEDIUM/LOW risk areas with quick fixes\n"
                    "2. 3-Minute Revision Plan: Ultra-focused actionable steps\n"
                    "3. Performance Breakdown: Clear metrics for concept/writing/exam readiness\n\n"
                    "Return ONLY valid JSON without markdown."
                ),
                "user": (
                    "Analyze this Teach Me session and create a completion summary:\n\n"
                    "{{performance_context}}\n\n"
                    "OUTPUT FORMAT (return ONLY this JSON):\n"
                    "{\n"
                    '  "exam_risk_areas": [\n'
                    "    {\n"
                    '      "risk_level": "HIGH" | "MEDIUM" | "LOW",\n'
                    '      "area": "Specific weak area",\n'
                    '      "issue_type": "CONCEPT_ISSUE" | "WRITING_ISSUE" | "EXAM_MISTAKE",\n'
                    '      "quick_fix": "Actionable 1-sentence fix",\n'
                    '      "exam_impact": "How this affects exam scoring"\n'
                    "    }\n"
                    "  ],\n"
                    '  "revision_plan_3min": {\n'
                    '    "step_1": "First thing to revise (30 sec)",\n'
                    '    "step_2": "Second thing to revise (60 sec)",\n'
                    '    "step_3": "Third thing to revise (90 sec)",\n'
                    '    "key_formula_or_fact": "One critical thing to memorize"\n'
                    "  },\n"
                    '  "performance_breakdown": {\n'
                    '    "concept_understanding": 0-100,\n'
                    '    "writing_quality": 0-100,\n'
                    '    "exam_readiness": 0-100,\n'
                    '    "overall_score": 0-100,\n'
                    '    "strengths": ["Strength 1", "Strength 2"],\n'
                    '    "priority_improvements": ["Improvement 1", "Improvement 2"]\n'
                    "  },\n"
                    '  "motivational_message": "Encouraging 1-2 sentence message"\n'
                    "}\n\n"
                    "IMPORTANT:\n"
                    "- Prioritize HIGH risk areas (those that will cost the most marks)\n"
                    "- Make revision plan ultra-specific and time-bound\n"
                    "- Be honest but encouraging"
                ),
            },
            "steps": {
                "system": (
                    "You are an expert Socratic teacher for Indian competitive exams. Generate a complete 6-step "
                    "teaching session.\n\n"
                    "STEP REQUIREMENTS:\n"
                    "Step 1 (warm_up, TRUE_FALSE): Simple true/false to activate prior knowledge\n"
                    "Step 2 (core_thinking, ANSWER_WRITING): Basic application question (2-3 sentences)\n"
                    "Step 3 (core_thinking, ANSWER_WRITING): Deeper analysis question (2-3 sentences)\n"
                    "Step 4 (core_thinking, ANSWER_WRITING): Critical thinking question (2-3 sentences)\n"
                    "Step 5 (application, MCQ): Multiple choice with 4 options testing practical application\n"
                    "Step 6 (integration, CONCEPT_SEQUENCING): Arrange 4 items in correct order\n\n"
                    "For steps 1, 5 and 6 include an \"explanation\" field saying why the answer is correct.\n"
                    "Return ONLY valid JSON array without markdown."
                ),
                "user": (
                    "Create complete 6-step session for this content:\n\n"
                    "{{content}}\n\n"
                    "OUTPUT FORMAT (return ONLY this JSON array):\n"
                    "[\n"
                    "  {\n"
                    '    "step_number": 1,\n'
                    '    "step_type": "warm_up",\n'
                    '    "question_type": "TRUE_FALSE",\n'
                    '    "question_text": "...",\n'
                    '    "correct_answer": "TRUE" or "FALSE",\n'
                    '    "exam_tag": "Relevant exam",\n'
                    '    "exam_context": "Exam relevance",\n'
                    '    "hint": "Optional hint",\n'
                    '    "explanation": "Why this is true/false and exam relevance"\n'
                    "  }\n"
                    "]\n"
                    "MCQ steps add \"options\" (4 strings, correct_answer is the option letter); "
                    "CONCEPT_SEQUENCING steps add \"items_to_sequence\" (correct_answer like A,B,C,D)."
                ),
            },
            "step_validate": {
                "system": (
                    "You are an expert Indian competitive exam evaluator. Analyze student answers using "
                    "3-dimensional exam lens.\n\n"
                    "FEEDBACK TYPES:\n"
                    "1. CONCEPT_ISSUE: Fundamental misunderstanding of the concept\n"
                    "2. WRITING_ISSUE: Correct concept but poor articulation that loses marks in exams\n"
                    "3. EXAM_MISTAKE: Common exam pitfall that costs marks (incomplete answer, missing keywords)\n"
                    "4. PERFECT: Excellent answer that would score full marks\n\n"
                    "Return ONLY valid JSON without markdown."
                ),
                "user": (
                    "Evaluate this student answer:\n\n"
                    "QUESTION: {{question}}\n"
                    "EXPECTED ANSWER: {{expected}}\n"
                    "STUDENT ANSWER: {{answer}}\n"
                    "EXAM CONTEXT: {{exam_tag}} - {{exam_context}}\n\n"
                    "OUTPUT FORMAT (return ONLY this JSON):\n"
                    "{\n"
                    '  "is_correct": true or false,\n'
                    '  "feedback_type": "CONCEPT_ISSUE" | "WRITING_ISSUE" | "EXAM_MISTAKE" | "PERFECT",\n'
                    '  "feedback_message": "Specific feedback explaining the issue or praising the answer",\n'
                    '  "score_percentage": 0-100,\n'
                    '  "improvement_tip": "Actionable tip for improvement (null if perfect)",\n'
                    '  "exam_relevance": "How this relates to exam scoring"\n'
                    "}"
                ),
            },
        },
    }


def _active_set_name() -> str:
    return os.getenv("PROMPT_SET", "baseline").strip() or "baseline"


def _prompts_dir() -> str:
    # prompts/ folder at repo root
    return os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir, "prompts"))


def _load_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError:
        return {}
    except (OSError, yaml.YAMLError):
        logger.exception("prompt_set_load_failed path=%s", path)
        return {}


def _ensure_loaded() -> None:
    with _LOCK:
        set_name = _active_set_name()
        ypath = os.path.join(_prompts_dir(), f"{set_name}.yaml")
        try:
            mtime = os.path.getmtime(ypath)
        except OSError:
            mtime = 0.0
        if _CACHE["set"] != set_name or _CACHE["mtime"] != mtime:
            data = _load_yaml(ypath)
            if not isinstance(data, dict):
                data = {}
            _CACHE["set"] = set_name
            _CACHE["mtime"] = mtime
            _CACHE["prompts"] = data


def _lookup(tree: Any, parts: list) -> Optional[str]:
    cur = tree
    for p in parts:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(p)
    if isinstance(cur, str) and cur.strip():
        return cur
    return None


def get(key_path: str, default: Optional[str] = None) -> str:
    """Get a template string by dotted key path (e.g., 'teach_me.probe.user')."""
    parts = key_path.split(".") if key_path else []
    _ensure_loaded()
    found = _lookup(_CACHE.get("prompts", {}), parts)
    if found is None:
        found = _lookup(_default_prompts(), parts)
    return found if found is not None else (default or "")


def render(template_str: str, vars: Dict[str, Any]) -> str:
    """Single-pass {{var}} substitution; values are never re-expanded."""
    if not template_str:
        return ""
    values = {str(k): str(v) for k, v in (vars or {}).items()}
    return _PLACEHOLDER.sub(lambda m: values.get(m.group(1), m.group(0)), str(template_str))


def render_pair(key: str, vars: Dict[str, Any]) -> tuple:
    """Render the ``<key>.system`` / ``<key>.user`` templates together."""
    return (
        render(get(f"{key}.system"), vars),
        render(get(f"{key}.user"), vars),
    )


def active_set() -> str:
    """Expose the active prompt set name for metrics tagging."""
    return _active_set_name()
