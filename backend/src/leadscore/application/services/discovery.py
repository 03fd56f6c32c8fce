"""AI discovery and lead scoring on top of the failover dispatcher.

Each call is one dispatch: the mapped AI providers are tried in priority
order and the first one that returns a well-formed answer wins.  A reply
missing the expected fields counts as a provider failure.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import structlog

from leadscore.domain.enums import OperationName
from leadscore.domain.value_objects import DispatchResult, ResolvedConfig
from leadscore.ports.outbound import LLMPort
from leadscore.shared.providers.dispatcher import FailoverDispatcher

logger = structlog.get_logger(__name__)


# ── Prompts ──────────────────────────────────────────────────
INDUSTRY_DISCOVERY_SYSTEM = """You are a B2B market research analyst.
Given a product or service description, identify the industries most likely
to buy it. Return ONLY a JSON object with keys:
industries (list of objects with name, description, market_size,
growth_rate, product_verticals (list of strings),
customer_types (list of strings)), rationale (string)."""

LEAD_SCORING_SYSTEM = """You are a B2B lead qualification analyst.
Score the lead from 0 to 100 for purchase likelihood. Return ONLY a JSON
object with keys: score (number 0-100), confidence (float 0-1),
factors (list of strings), recommendations (list of strings),
risk_level (low/medium/high)."""


class AIDiscoveryService:
    def __init__(self, dispatcher: FailoverDispatcher, llm: LLMPort) -> None:
        self._dispatcher = dispatcher
        self._llm = llm

    async def discover_industries(
        self, product: str, *, context: str | None = None
    ) -> DispatchResult[dict[str, Any]]:
        user_prompt = f"Product or service: {product.strip()}"
        if context:
            user_prompt += f"\nAdditional context: {context.strip()}"

        async def _invoke(resolved: ResolvedConfig) -> dict[str, Any]:
            output = await self._llm.complete(
                resolved, system_prompt=INDUSTRY_DISCOVERY_SYSTEM, user_prompt=user_prompt
            )
            if not isinstance(output.get("industries"), list):
                raise ValueError("Model reply has no 'industries' list")
            return output

        outcome = await self._dispatcher.dispatch(OperationName.AI_DISCOVERY.value, _invoke)
        logger.info(
            "industries_discovered",
            provider=outcome.provider_used,
            count=len(outcome.result["industries"]),
        )
        return outcome

    async def score_lead(self, lead: Mapping[str, Any]) -> DispatchResult[dict[str, Any]]:
        user_prompt = "Lead profile:\n" + json.dumps(dict(lead), indent=2, default=str)

        async def _invoke(resolved: ResolvedConfig) -> dict[str, Any]:
            output = await self._llm.complete(
                resolved, system_prompt=LEAD_SCORING_SYSTEM, user_prompt=user_prompt
            )
            try:
                score = float(output["score"])
            except (KeyError, TypeError, ValueError) as exc:
                raise ValueError("Model reply has no numeric 'score'") from exc
            output["score"] = max(0.0, min(100.0, score))
            return output

        outcome = await self._dispatcher.dispatch(OperationName.LEAD_SCORING.value, _invoke)
        logger.info(
            "lead_scored",
            provider=outcome.provider_used,
            score=outcome.result["score"],
        )
        return outcome
