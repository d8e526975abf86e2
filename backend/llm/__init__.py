"""Oracle client and response parsing for the Teach Me engine."""

from .common import (
    clean_question_text,
    parse_json_array,
    parse_json_object,
    parse_record,
    salvage_pairs,
    validate_record,
)
from .oracle import (
    ChatCompletionsProvider,
    FallbackOracle,
    OracleProviderError,
    OracleRequest,
    OracleResponse,
    ReasoningOracle,
    build_default_oracle,
)

__all__ = [
    "ChatCompletionsProvider",
    "FallbackOracle",
    "OracleProviderError",
    "OracleRequest",
    "OracleResponse",
    "ReasoningOracle",
    "build_default_oracle",
    "clean_question_text",
    "parse_json_array",
    "parse_json_object",
    "parse_record",
    "salvage_pairs",
    "validate_record",
]
