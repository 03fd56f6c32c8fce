"""Operation mapping table: which providers serve which operation."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog

from leadscore.domain.entities import MappedProvider, OperationServiceMapping
from leadscore.domain.enums import normalize_operation
from leadscore.domain.exceptions import (
    MappingConflictError,
    MappingNotFoundError,
    ProviderNotFoundError,
    ValidationError,
)
from leadscore.ports.outbound import MappingRepository, ProviderRepository

logger = structlog.get_logger(__name__)


class OperationMappingTable:
    def __init__(self, providers: ProviderRepository, mappings: MappingRepository) -> None:
        self._providers = providers
        self._mappings = mappings

    async def create_mapping(
        self,
        operation: str,
        provider_id: int,
        priority: int | None = None,
        is_enabled: bool = True,
        config: dict[str, Any] | None = None,
    ) -> OperationServiceMapping:
        """Bind ``provider_id`` to ``operation``.

        ``priority`` defaults to the provider's current priority so a new
        mapping starts out synced.
        """
        operation = normalize_operation(operation)
        if not operation:
            raise ValidationError("Operation name must not be empty")
        provider = await self._providers.get_by_id(provider_id)
        if provider is None:
            raise ProviderNotFoundError(provider_id)
        if await self._mappings.find(operation, provider_id) is not None:
            raise MappingConflictError(operation, provider_id)

        mapping = await self._mappings.add(
            OperationServiceMapping(
                operation=operation,
                provider_id=provider_id,
                is_enabled=is_enabled,
                priority=provider.priority if priority is None else priority,
                config=dict(config or {}),
            )
        )
        if not provider.supports(operation):
            logger.info(
                "mapping_outside_capabilities", operation=operation, provider=provider.name
            )
        logger.info(
            "mapping_created",
            mapping_id=mapping.id,
            operation=operation,
            provider_id=provider_id,
            priority=mapping.priority,
        )
        return mapping

    async def list_for_operation(self, operation: str) -> list[MappedProvider]:
        """Every mapping for ``operation``, enabled or not, in dispatch order."""
        rows = await self._mappings.list_for_operation(operation)
        return sorted(rows, key=lambda r: r.sort_key)

    async def list_all(self) -> list[MappedProvider]:
        return await self._mappings.list_all()

    async def get(self, mapping_id: int) -> OperationServiceMapping:
        mapping = await self._mappings.get_by_id(mapping_id)
        if mapping is None:
            raise MappingNotFoundError(mapping_id)
        return mapping

    async def set_enabled(self, mapping_id: int, is_enabled: bool) -> OperationServiceMapping:
        return await self.update_mapping(mapping_id, is_enabled=is_enabled)

    async def update_mapping(
        self,
        mapping_id: int,
        *,
        priority: int | None = None,
        is_enabled: bool | None = None,
        config: dict[str, Any] | None = None,
    ) -> OperationServiceMapping:
        mapping = await self.get(mapping_id)
        if priority is not None:
            mapping.priority = priority
        if is_enabled is not None:
            mapping.is_enabled = is_enabled
        if config is not None:
            mapping.config = dict(config)
        mapping.updated_at = datetime.now(timezone.utc)
        mapping = await self._mappings.update(mapping)
        logger.info(
            "mapping_updated",
            mapping_id=mapping_id,
            priority=mapping.priority,
            is_enabled=mapping.is_enabled,
        )
        return mapping

    async def delete_mapping(self, mapping_id: int) -> None:
        mapping = await self.get(mapping_id)
        await self._mappings.delete(mapping_id)
        logger.info(
            "mapping_deleted",
            mapping_id=mapping_id,
            operation=mapping.operation,
            provider_id=mapping.provider_id,
        )
