"""LLM adapter: one HTTP completion against one resolved AI provider.

Failover is not handled here; the dispatcher calls :meth:`HttpLLMAdapter.complete`
once per candidate and moves on when it raises.  Claude providers speak the
Anthropic Messages API; every other AI engine is treated as OpenAI-compatible
and honours ``baseUrl``.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog

from leadscore.domain.value_objects import AIEngineConfig, ResolvedConfig
from leadscore.ports.outbound import LLMPort

logger = structlog.get_logger(__name__)

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
OPENAI_BASE_URL = "https://api.openai.com/v1"


def is_anthropic(resolved: ResolvedConfig) -> bool:
    config = resolved.config
    model = config.model.lower() if isinstance(config, AIEngineConfig) else ""
    return model.startswith("claude") or "claude" in resolved.provider_name.lower()


class HttpLLMAdapter(LLMPort):
    """Completes prompts over httpx; pass ``client`` to share or mock transport."""

    def __init__(
        self,
        *,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def complete(
        self,
        resolved: ResolvedConfig,
        *,
        system_prompt: str,
        user_prompt: str,
    ) -> dict[str, Any]:
        config = resolved.config
        if not isinstance(config, AIEngineConfig):
            raise ValueError(
                f"{resolved.provider_name} is a {resolved.service_type.value} provider, "
                "not an AI engine"
            )
        if is_anthropic(resolved):
            return await self._invoke_anthropic(config, system_prompt, user_prompt)
        return await self._invoke_openai(config, system_prompt, user_prompt)

    # ── Provider HTTP calls (pure, no retry logic) ───────────
    async def _invoke_anthropic(
        self, config: AIEngineConfig, system_prompt: str, user_prompt: str
    ) -> dict[str, Any]:
        url = f"{config.base_url.rstrip('/')}/messages" if config.base_url else ANTHROPIC_URL
        response = await self._client.post(
            url,
            headers={
                "x-api-key": config.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "content-type": "application/json",
            },
            json={
                "model": config.model,
                "max_tokens": config.max_tokens,
                "temperature": config.temperature,
                "system": system_prompt,
                "messages": [{"role": "user", "content": user_prompt}],
            },
        )
        response.raise_for_status()
        data = response.json()
        text = data.get("content", [{}])[0].get("text", "{}")
        return self._parse_json(text)

    async def _invoke_openai(
        self, config: AIEngineConfig, system_prompt: str, user_prompt: str
    ) -> dict[str, Any]:
        base_url = (config.base_url or OPENAI_BASE_URL).rstrip("/")
        response = await self._client.post(
            f"{base_url}/chat/completions",
            headers={
                "Authorization": f"Bearer {config.api_key}",
                "Content-Type": "application/json",
            },
            json={
                "model": config.model,
                "temperature": config.temperature,
                "max_tokens": config.max_tokens,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            },
        )
        response.raise_for_status()
        data = response.json()
        text = data["choices"][0]["message"]["content"]
        return self._parse_json(text)

    @staticmethod
    def _parse_json(text: str) -> dict[str, Any]:
        try:
            return json.loads(text)  # type: ignore[no-any-return]
        except json.JSONDecodeError:
            if "```json" in text:
                start = text.index("```json") + 7
                end = text.index("```", start)
                return json.loads(text[start:end].strip())  # type: ignore[no-any-return]
            if "```" in text:
                start = text.index("```") + 3
                end = text.index("```", start)
                return json.loads(text[start:end].strip())  # type: ignore[no-any-return]
            return {"raw_text": text, "confidence": 0.0}

    async def close(self) -> None:
        await self._client.aclose()
