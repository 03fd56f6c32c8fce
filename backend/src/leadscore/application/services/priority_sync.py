"""Priority synchroniser: keeps mapping priorities in step with their provider.

A mapping whose priority differs from its provider's is *drifted*.  Drift is
reported, never raised: the mapping still dispatches and its own priority
only breaks ties between providers of equal global priority.

All writes for one provider run under that provider's :class:`KeyedLock`
entry plus a row lock on the provider, so a concurrent ``set_priority``
cannot interleave with the propagate step.
"""

from __future__ import annotations

from collections import defaultdict

import structlog

from leadscore.domain.entities import MappedProvider
from leadscore.domain.exceptions import ProviderNotFoundError
from leadscore.domain.value_objects import (
    DriftedMapping,
    ProviderSyncResult,
    ProviderSyncStatus,
    SyncReport,
    SyncStatusReport,
)
from leadscore.ports.outbound import MappingRepository, ProviderRepository
from leadscore.shared.observability.metrics import PRIORITY_SYNC_UPDATES
from leadscore.shared.providers.locks import KeyedLock

logger = structlog.get_logger(__name__)


class PrioritySynchronizer:
    def __init__(
        self,
        providers: ProviderRepository,
        mappings: MappingRepository,
        locks: KeyedLock,
    ) -> None:
        self._providers = providers
        self._mappings = mappings
        self._locks = locks

    @property
    def locks(self) -> KeyedLock:
        return self._locks

    async def sync_one(self, provider_id: int, new_priority: int) -> int:
        """Set every mapping of ``provider_id`` to ``new_priority``; return rows changed."""
        async with self._locks.hold(provider_id):
            if await self._providers.get_for_update(provider_id) is None:
                raise ProviderNotFoundError(provider_id)
            return await self.propagate(provider_id, new_priority, trigger="sync_one")

    async def propagate(
        self, provider_id: int, priority: int, *, trigger: str = "set_priority"
    ) -> int:
        """Write-through step.  Caller must already hold the provider's lock."""
        updated = await self._mappings.set_priority_for_provider(provider_id, priority)
        if updated:
            PRIORITY_SYNC_UPDATES.labels(trigger=trigger).inc(updated)
            logger.info(
                "mapping_priorities_synced",
                provider_id=provider_id,
                priority=priority,
                updated=updated,
                trigger=trigger,
            )
        return updated

    async def sync_all(self) -> SyncReport:
        """Realign every provider's mappings to that provider's current priority."""
        results: list[ProviderSyncResult] = []
        for listed in await self._providers.list():
            if listed.id is None:
                continue
            async with self._locks.hold(listed.id):
                provider = await self._providers.get_for_update(listed.id)
                if provider is None:
                    # Deleted since the listing
                    continue
                mappings = await self._mappings.list_by_provider(listed.id)
                updated = await self.propagate(
                    listed.id, provider.priority, trigger="sync_all"
                )
            results.append(
                ProviderSyncResult(
                    provider_id=listed.id,
                    provider_name=provider.name,
                    provider_priority=provider.priority,
                    mappings_count=len(mappings),
                    updated_count=updated,
                )
            )

        report = SyncReport(results=tuple(results))
        logger.info(
            "priority_sync_completed",
            providers=report.total_providers,
            mappings=report.total_mappings,
            updated=report.updated_mappings,
        )
        return report

    async def get_sync_status(self) -> SyncStatusReport:
        """Read-only drift report, one entry per provider (including unmapped ones)."""
        providers = await self._providers.list()
        by_provider: dict[int, list[MappedProvider]] = defaultdict(list)
        for row in await self._mappings.list_all():
            by_provider[row.mapping.provider_id].append(row)

        statuses: list[ProviderSyncStatus] = []
        for provider in providers:
            if provider.id is None:
                continue
            rows = by_provider.get(provider.id, [])
            drifted = tuple(
                DriftedMapping(
                    mapping_id=r.mapping.id or 0,
                    operation=r.mapping.operation,
                    mapping_priority=r.mapping.priority,
                )
                for r in rows
                if not r.is_synced
            )
            statuses.append(
                ProviderSyncStatus(
                    provider_id=provider.id,
                    provider_name=provider.name,
                    priority=provider.priority,
                    mappings_count=len(rows),
                    synced_mappings_count=len(rows) - len(drifted),
                    drifted=drifted,
                )
            )
        return SyncStatusReport(providers=tuple(statuses))
