"""Unit tests for AI discovery and lead scoring over the dispatcher."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from leadscore.application.services import AIDiscoveryService
from leadscore.domain.entities import MappedProvider, OperationServiceMapping, ServiceProvider
from leadscore.domain.enums import CredentialSource, ServiceType
from leadscore.domain.exceptions import AllProvidersFailedError
from leadscore.domain.value_objects import AIEngineConfig, ProviderLimits, ResolvedConfig
from leadscore.shared.providers import FailoverDispatcher


def _dispatcher(operation: str, names: list[str]) -> FailoverDispatcher:
    rows = [
        MappedProvider(
            OperationServiceMapping(id=i, operation=operation, provider_id=i, priority=i),
            ServiceProvider(id=i, name=name, service_type=ServiceType.AI_ENGINE, priority=i),
        )
        for i, name in enumerate(names, start=1)
    ]
    mappings = AsyncMock()
    mappings.list_for_operation.return_value = rows
    resolver = AsyncMock()
    resolver.resolve.side_effect = lambda name, _type: ResolvedConfig(
        provider_name=name,
        service_type=ServiceType.AI_ENGINE,
        config=AIEngineConfig(api_key=f"key-{name}"),
        capabilities=(),
        limits=ProviderLimits(),
        source=CredentialSource.ENV,
    )
    return FailoverDispatcher(mappings, resolver)


class TestDiscoverIndustries:
    @pytest.mark.asyncio
    async def test_returns_first_well_formed_reply(self) -> None:
        llm = AsyncMock()
        llm.complete.return_value = {"industries": [{"name": "Logistics"}], "rationale": "r"}
        service = AIDiscoveryService(_dispatcher("AI_DISCOVERY", ["Claude AI"]), llm)

        outcome = await service.discover_industries("Fleet telematics", context="EU market")

        assert outcome.provider_used == "Claude AI"
        assert outcome.result["industries"][0]["name"] == "Logistics"
        kwargs = llm.complete.await_args.kwargs
        assert "Fleet telematics" in kwargs["user_prompt"]
        assert "EU market" in kwargs["user_prompt"]

    @pytest.mark.asyncio
    async def test_malformed_reply_fails_over(self) -> None:
        llm = AsyncMock()
        llm.complete.side_effect = [
            {"raw_text": "Sorry, I can't help", "confidence": 0.0},
            {"industries": []},
        ]
        service = AIDiscoveryService(_dispatcher("AI_DISCOVERY", ["Claude AI", "OpenAI GPT-4"]), llm)

        outcome = await service.discover_industries("Payroll software")

        assert outcome.provider_used == "OpenAI GPT-4"
        assert outcome.attempts == 2
        first_call, second_call = llm.complete.await_args_list
        assert first_call.args[0].provider_name == "Claude AI"
        assert second_call.args[0].provider_name == "OpenAI GPT-4"


class TestScoreLead:
    @pytest.mark.asyncio
    async def test_score_is_clamped(self) -> None:
        llm = AsyncMock()
        llm.complete.return_value = {"score": "130", "confidence": 0.9}
        service = AIDiscoveryService(_dispatcher("LEAD_SCORING", ["Lead Scoring AI"]), llm)

        outcome = await service.score_lead({"company_name": "Acme", "employee_count": 40})

        assert outcome.result["score"] == 100.0
        assert "Acme" in llm.complete.await_args.kwargs["user_prompt"]

    @pytest.mark.asyncio
    async def test_missing_score_exhausts_providers(self) -> None:
        llm = AsyncMock()
        llm.complete.return_value = {"factors": []}
        service = AIDiscoveryService(_dispatcher("LEAD_SCORING", ["A", "B"]), llm)

        with pytest.raises(AllProvidersFailedError) as exc_info:
            await service.score_lead({"company_name": "Acme"})

        assert exc_info.value.attempts == 2
        assert "numeric 'score'" in exc_info.value.errors["B"]
