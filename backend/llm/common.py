"""Response parsing helpers for oracle output.

- Code-fence stripping and balanced-bracket extraction of the first JSON value
- Light repair of common LLM JSON slips (trailing commas, missing separators)
- A salvage pass that regex-extracts complete key/value pairs from truncated output
- Validation into pydantic records; anything unusable raises AnalysisParseError
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from core.errors import AnalysisParseError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

JSON_SENTINEL_PATTERN = re.compile(r"BEGIN_STRICT_JSON\s*([\[{][\s\S]*?[\]}])\s*END_STRICT_JSON", re.IGNORECASE)
FENCED_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
CODE_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE | re.MULTILINE)
_STRING = r'"(?:[^"\\]|\\.)*"'
SALVAGE_PAIR_PATTERN = re.compile(
    r'"(?P<key>[A-Za-z_][A-Za-z0-9_]*)"\s*:\s*(?P<value>'
    + _STRING
    + r'|true|false|null|-?\d+(?:\.\d+)?|\[\s*(?:'
    + _STRING
    + r"\s*,?\s*)*\])"
)


def strip_code_fences(text: Optional[str]) -> str:
    cleaned = (text or "").strip()
    match = JSON_SENTINEL_PATTERN.search(cleaned)
    if match:
        return match.group(1).strip()
    fenced = FENCED_BLOCK_PATTERN.search(cleaned)
    if fenced:
        return fenced.group(1).strip()
    return CODE_FENCE_PATTERN.sub("", cleaned).strip()


def _unwrap_string_literal(text: str) -> str:
    """Providers sometimes return the JSON document as an escaped string."""
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        try:
            inner = json.loads(text)
        except ValueError:
            return text
        if isinstance(inner, str):
            return inner.strip()
    return text


def extract_json_blob(text: str, opener: str = "{") -> str:
    """Return the first balanced JSON object (or array) found in ``text``."""
    closer = "}" if opener == "{" else "]"
    start_idx = text.find(opener)
    if start_idx == -1:
        return text

    depth = 0
    in_string = False
    escape = False
    for i in range(start_idx, len(text)):
        char = text[i]
        if escape:
            escape = False
            continue
        if char == "\\":
            escape = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return text[start_idx : i + 1]
    # unbalanced: hand back the tail so the salvage pass can look at it
    return text[start_idx:]


def repair_json(json_str: str) -> str:
    json_str = re.sub(r",\s*}", "}", json_str)
    json_str = re.sub(r",\s*]", "]", json_str)
    json_str = re.sub(r'"\s*\n\s*"', '",\n"', json_str)
    json_str = re.sub(r"}\s*\n\s*{", "},\n{", json_str)
    json_str = re.sub(r"]\s*\n\s*\[", "],\n[", json_str)
    return json_str


def salvage_pairs(text: str) -> Dict[str, Any]:
    """Collect every complete top-level-looking ``"key": value`` pair.

    The first occurrence of a key wins. Values that fail to decode are skipped.
    """
    salvaged: Dict[str, Any] = {}
    for match in SALVAGE_PAIR_PATTERN.finditer(text or ""):
        key = match.group("key")
        if key in salvaged:
            continue
        try:
            salvaged[key] = json.loads(repair_json(match.group("value")))
        except ValueError:
            continue
    return salvaged


def _try_load(candidate: str) -> Any:
    for attempt in (candidate, repair_json(candidate)):
        try:
            return json.loads(attempt)
        except ValueError:
            continue
    return None


def parse_json_object(content: Optional[str], *, allow_salvage: bool = True) -> Dict[str, Any]:
    cleaned = _unwrap_string_literal(strip_code_fences(content))
    if not cleaned:
        raise AnalysisParseError("empty oracle response", raw=content or "")

    parsed = _try_load(cleaned)
    if not isinstance(parsed, dict):
        parsed = _try_load(extract_json_blob(cleaned, "{"))
    if isinstance(parsed, dict):
        return parsed

    if allow_salvage:
        salvaged = salvage_pairs(cleaned)
        if salvaged:
            logger.warning("oracle_json_salvaged keys=%s", ",".join(sorted(salvaged)))
            return salvaged
    raise AnalysisParseError("oracle response is not a JSON object", raw=content or "")


def parse_json_array(content: Optional[str]) -> List[Any]:
    cleaned = _unwrap_string_literal(strip_code_fences(content))
    if not cleaned:
        raise AnalysisParseError("empty oracle response", raw=content or "")

    parsed = _try_load(cleaned)
    if isinstance(parsed, dict):
        # json_object mode forces a wrapper object around the array
        for value in parsed.values():
            if isinstance(value, list):
                return value
    if not isinstance(parsed, list):
        parsed = _try_load(extract_json_blob(cleaned, "["))
    if isinstance(parsed, list):
        return parsed
    raise AnalysisParseError("oracle response is not a JSON array", raw=content or "")


def validate_record(data: Any, model: Type[ModelT], *, raw: Optional[str] = None) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        fields = ",".join(".".join(str(p) for p in err.get("loc", ())) for err in exc.errors())
        raise AnalysisParseError(f"{model.__name__} validation failed fields={fields}", raw=raw) from exc


def parse_record(content: Optional[str], model: Type[ModelT]) -> ModelT:
    """Parse oracle text into ``model``; salvage only when a full parse fails."""
    data = parse_json_object(content)
    return validate_record(data, model, raw=content)


def clean_question_text(content: Optional[str]) -> str:
    """Plain-text oracle output with wrapping quotes and fences removed."""
    text = strip_code_fences(content)
    text = text.strip()
    text = re.sub(r'^["“]+|["”]+$', "", text).strip()
    return text


__all__ = [
    "clean_question_text",
    "extract_json_blob",
    "parse_json_array",
    "parse_json_object",
    "parse_record",
    "repair_json",
    "salvage_pairs",
    "strip_code_fences",
    "validate_record",
]
