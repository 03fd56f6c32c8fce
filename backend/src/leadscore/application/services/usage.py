"""Usage statistics over the per-attempt log written by the dispatcher."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from leadscore.domain.exceptions import ValidationError
from leadscore.domain.value_objects import UsageStats
from leadscore.ports.outbound import ServiceUsageRepository


class UsageStatsService:
    def __init__(self, usage: ServiceUsageRepository) -> None:
        self._usage = usage

    async def stats(
        self,
        *,
        days: int = 30,
        provider_id: int | None = None,
        operation: str | None = None,
    ) -> UsageStats:
        if days < 1:
            raise ValidationError("days must be at least 1")
        since = datetime.now(timezone.utc) - timedelta(days=days)
        return await self._usage.stats(since=since, provider_id=provider_id, operation=operation)
