"""Reasoning Oracle client.

Sends a system/user prompt pair to OpenAI-compatible chat-completions
providers. Providers are tried in order (fast provider first, general
provider second); transport errors, non-2xx answers and empty content move on
to the next provider. When every provider fails the call raises
OracleUnavailable. Nothing here invents content.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

import requests

from config.teach_me import OracleBudget, OracleProviderConfig
from core.errors import OracleUnavailable
from metrics import MetricsCollector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OracleRequest:
    system_prompt: str
    user_prompt: str
    temperature: float = 0.3
    max_tokens: int = 500
    json_mode: bool = False
    role: str = "generic"

    @classmethod
    def for_budget(
        cls,
        system_prompt: str,
        user_prompt: str,
        budget: OracleBudget,
        *,
        json_mode: bool = False,
        role: str = "generic",
    ) -> "OracleRequest":
        return cls(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=budget.temperature,
            max_tokens=budget.max_tokens,
            json_mode=json_mode,
            role=role,
        )


@dataclass(frozen=True)
class OracleResponse:
    content: str
    tokens_used: int = 0
    provider: str = ""
    model: str = ""


class OracleProviderError(Exception):
    """A single provider could not produce usable content."""


class ReasoningOracle(Protocol):
    def complete(self, request: OracleRequest) -> OracleResponse:  # pragma: no cover - protocol
        ...


_PROVIDER_FAILURES = (
    OracleProviderError,
    requests.RequestException,
    TimeoutError,
    ConnectionError,
)


class ChatCompletionsProvider:
    """One OpenAI-compatible endpoint called through ``requests``."""

    def __init__(self, config: OracleProviderConfig, http: Optional[requests.Session] = None) -> None:
        self.config = config
        self.name = config.name
        self._http = http or requests.Session()

    def _body(self, request: OracleRequest) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_prompt},
            ],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "stream": False,
        }
        if request.json_mode and self.config.json_mode:
            body["response_format"] = {"type": "json_object"}
        return body

    def complete(self, request: OracleRequest) -> OracleResponse:
        if not self.config.configured:
            raise OracleProviderError(f"provider {self.name} is not configured")

        url = f"{self.config.base_url}/chat/completions"
        headers = {"Authorization": f"Bearer {self.config.api_key}", "Content-Type": "application/json"}
        logger.info(
            "oracle_request provider=%s model=%s role=%s json_mode=%s max_tokens=%s",
            self.name,
            self.config.model,
            request.role,
            request.json_mode,
            request.max_tokens,
        )
        resp = self._http.post(url, headers=headers, json=self._body(request), timeout=self.config.timeout_secs)
        if not (200 <= resp.status_code < 300):
            raise OracleProviderError(f"provider {self.name} status={resp.status_code} body={resp.text[:256]}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise OracleProviderError(f"provider {self.name} returned invalid JSON envelope") from exc

        choices = data.get("choices") if isinstance(data, dict) else None
        first = choices[0] if isinstance(choices, list) and choices else None
        message = first.get("message") if isinstance(first, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise OracleProviderError(f"provider {self.name} returned malformed choices")
        if not content.strip():
            raise OracleProviderError(f"provider {self.name} returned empty content")

        usage = data.get("usage")
        if not isinstance(usage, dict):
            usage = {}
        tokens = usage.get("total_tokens") or usage.get("output_tokens") or 0
        try:
            tokens_used = int(tokens)
        except (TypeError, ValueError):
            tokens_used = 0
        return OracleResponse(
            content=content,
            tokens_used=tokens_used,
            provider=self.name,
            model=str(data.get("model") or self.config.model),
        )


class FallbackOracle:
    """Try each provider in order; the first usable answer wins."""

    def __init__(self, providers: Sequence[Any], metrics: Optional[MetricsCollector] = None) -> None:
        if not providers:
            raise ValueError("at least one oracle provider is required")
        self.providers: List[Any] = list(providers)
        self.metrics = metrics or MetricsCollector.get_global()

    def complete(self, request: OracleRequest) -> OracleResponse:
        failures: Dict[str, str] = {}
        for idx, provider in enumerate(self.providers):
            name = getattr(provider, "name", f"provider-{idx}")
            t0 = time.time()
            try:
                response = provider.complete(request)
            except _PROVIDER_FAILURES as exc:
                failures[name] = str(exc)[:200]
                self.metrics.increment("oracle_provider_failures", labels={"provider": name})
                logger.warning("oracle_provider_failed provider=%s role=%s error=%s", name, request.role, exc)
                continue
            if not (response.content or "").strip():
                failures[name] = "empty content"
                self.metrics.increment("oracle_provider_failures", labels={"provider": name})
                logger.warning("oracle_provider_empty provider=%s role=%s", name, request.role)
                continue
            self.metrics.timing("oracle_latency_ms", int((time.time() - t0) * 1000), labels={"provider": name})
            if idx > 0:
                self.metrics.increment("oracle_fallback_used", labels={"role": request.role})
                logger.info("oracle_fallback_succeeded provider=%s role=%s", name, request.role)
            return response

        self.metrics.increment("oracle_unavailable", labels={"role": request.role})
        logger.error("oracle_unavailable role=%s failures=%s", request.role, failures)
        raise OracleUnavailable(
            f"all oracle providers failed for role={request.role}",
            failures=failures,
        )


def build_default_oracle(http: Optional[requests.Session] = None) -> FallbackOracle:
    return FallbackOracle(
        [
            ChatCompletionsProvider(OracleProviderConfig.primary_from_env(), http=http),
            ChatCompletionsProvider(OracleProviderConfig.fallback_from_env(), http=http),
        ]
    )


__all__ = [
    "ChatCompletionsProvider",
    "FallbackOracle",
    "OracleProviderError",
    "OracleRequest",
    "OracleResponse",
    "ReasoningOracle",
    "build_default_oracle",
]
