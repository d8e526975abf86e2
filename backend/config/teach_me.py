from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Optional


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_str(*keys: str) -> Optional[str]:
    for key in keys:
        value = os.getenv(key)
        if value and value.strip():
            return value.strip()
    return None


def _normalize_base_url(base: Optional[str]) -> Optional[str]:
    if not base:
        return None
    base_clean = base.rstrip("/")
    if not base_clean.endswith("/v1"):
        base_clean = base_clean + "/v1"
    return base_clean


@dataclass(frozen=True)
class OracleProviderConfig:
    """One OpenAI-compatible chat-completions endpoint."""

    name: str
    base_url: Optional[str]
    api_key: Optional[str]
    model: str
    timeout_secs: int = 60
    json_mode: bool = True

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    @classmethod
    def primary_from_env(cls) -> "OracleProviderConfig":
        return cls(
            name=_env_str("ORACLE_PRIMARY_NAME") or "primary",
            base_url=_normalize_base_url(_env_str("ORACLE_PRIMARY_BASE_URL", "OPENAI_API_BASE")),
            api_key=_env_str("ORACLE_PRIMARY_API_KEY", "OPENAI_API_KEY"),
            model=_env_str("ORACLE_PRIMARY_MODEL", "LLM_MODEL_NANO") or "gpt-4o-mini",
            timeout_secs=_env_int("LLM_TIMEOUT_SECS", 60),
            json_mode=_env_bool("LLM_RESPONSE_FORMAT_JSON", True),
        )

    @classmethod
    def fallback_from_env(cls) -> "OracleProviderConfig":
        return cls(
            name=_env_str("ORACLE_FALLBACK_NAME") or "fallback",
            base_url=_normalize_base_url(_env_str("ORACLE_FALLBACK_BASE_URL", "OPENAI_API_BASE")),
            api_key=_env_str("ORACLE_FALLBACK_API_KEY", "OPENAI_API_KEY"),
            model=_env_str("ORACLE_FALLBACK_MODEL", "LLM_MODEL_MINI") or "gpt-4o",
            timeout_secs=_env_int("LLM_TIMEOUT_SECS", 60),
            json_mode=_env_bool("LLM_RESPONSE_FORMAT_JSON", True),
        )


@dataclass(frozen=True)
class OracleBudget:
    """Sampling temperature and output budget for one oracle role."""

    temperature: float
    max_tokens: int


def _default_budgets() -> Dict[str, OracleBudget]:
    return {
        "analysis": OracleBudget(temperature=0.3, max_tokens=500),
        "question": OracleBudget(temperature=0.7, max_tokens=200),
        "concepts": OracleBudget(temperature=0.6, max_tokens=3000),
        "completion": OracleBudget(temperature=0.5, max_tokens=2000),
        "steps": OracleBudget(temperature=0.6, max_tokens=4000),
        "step_validation": OracleBudget(temperature=0.4, max_tokens=800),
    }


@dataclass(frozen=True)
class TeachMeSettings:
    mastery_threshold: int = 80
    seed_score: int = 0
    target_concepts: int = 9
    min_concepts: int = 5
    content_char_limit: int = 12000
    eager_completion: bool = True
    store_backend: str = "postgres"
    budgets: Dict[str, OracleBudget] = field(default_factory=_default_budgets)

    @classmethod
    def from_env(cls) -> "TeachMeSettings":
        budgets = _default_budgets()
        for role, budget in list(budgets.items()):
            prefix = f"TEACH_ME_{role.upper()}"
            budgets[role] = OracleBudget(
                temperature=_env_float(f"{prefix}_TEMPERATURE", budget.temperature),
                max_tokens=_env_int(f"{prefix}_MAX_TOKENS", budget.max_tokens),
            )
        return cls(
            mastery_threshold=_env_int("TEACH_ME_MASTERY_THRESHOLD", cls.mastery_threshold),
            seed_score=_env_int("TEACH_ME_SEED_SCORE", cls.seed_score),
            target_concepts=_env_int("TEACH_ME_TARGET_CONCEPTS", cls.target_concepts),
            min_concepts=_env_int("TEACH_ME_MIN_CONCEPTS", cls.min_concepts),
            content_char_limit=_env_int("TEACH_ME_CONTENT_CHAR_LIMIT", cls.content_char_limit),
            eager_completion=_env_bool("TEACH_ME_EAGER_COMPLETION", cls.eager_completion),
            store_backend=(os.getenv("TEACH_ME_STORE") or cls.store_backend).strip().lower(),
            budgets=budgets,
        )

    def budget(self, role: str) -> OracleBudget:
        return self.budgets.get(role) or OracleBudget(temperature=0.3, max_tokens=500)


__all__ = [
    "OracleBudget",
    "OracleProviderConfig",
    "TeachMeSettings",
]
