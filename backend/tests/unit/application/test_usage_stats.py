"""Unit tests for usage aggregation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from leadscore.application.services import UsageStatsService
from leadscore.domain.entities import ServiceUsage
from leadscore.domain.enums import ServiceType
from leadscore.domain.exceptions import ValidationError


@pytest.fixture
def usage_service(usage_repo) -> UsageStatsService:
    return UsageStatsService(usage_repo)


class TestUsageStatsService:
    @pytest.mark.asyncio
    async def test_aggregates_window(self, registry, usage_repo, usage_service) -> None:
        a = await registry.upsert("A", ServiceType.AI_ENGINE, {"apiKey": "k"})
        b = await registry.upsert("B", ServiceType.AI_ENGINE, {"apiKey": "k"})
        await usage_repo.record(
            ServiceUsage(a.id, "AI_DISCOVERY", True, duration_ms=100.0, cost=0.5, tokens_used=10)
        )
        await usage_repo.record(
            ServiceUsage(a.id, "LEAD_SCORING", False, duration_ms=300.0, error_message="boom")
        )
        await usage_repo.record(
            ServiceUsage(b.id, "AI_DISCOVERY", True, duration_ms=200.0, cost=0.25)
        )
        await usage_repo.record(
            ServiceUsage(
                b.id,
                "AI_DISCOVERY",
                True,
                cost=9.0,
                created_at=datetime.now(timezone.utc) - timedelta(days=40),
            )
        )

        stats = await usage_service.stats(days=30)

        assert stats.total_requests == 3
        assert stats.successful_requests == 2
        assert stats.total_cost == pytest.approx(0.75)
        assert stats.total_tokens == 10
        assert stats.average_duration_ms == pytest.approx(200.0)

        by_provider = await usage_service.stats(provider_id=a.id)
        assert by_provider.total_requests == 2

        by_operation = await usage_service.stats(operation="ai_discovery")
        assert by_operation.total_requests == 2
        assert by_operation.success_rate == 100.0

    @pytest.mark.asyncio
    async def test_empty(self, usage_service) -> None:
        stats = await usage_service.stats()
        assert stats.total_requests == 0
        assert stats.total_cost == 0.0
        assert stats.average_duration_ms == 0.0

    @pytest.mark.asyncio
    async def test_days_must_be_positive(self, usage_service) -> None:
        with pytest.raises(ValidationError):
            await usage_service.stats(days=0)
