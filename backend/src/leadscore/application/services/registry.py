"""Provider registry: the durable catalog of external service providers.

Providers are unique per ``(name, type)``.  Every write invalidates the
credential cache entry for the provider it touched, and every priority change
is propagated to the provider's operation mappings before the call returns.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

import structlog

from leadscore.domain.entities import ServiceProvider
from leadscore.domain.enums import DEFAULT_CAPABILITIES, ServiceType, normalize_operation
from leadscore.domain.exceptions import ProviderNotFoundError, ValidationError
from leadscore.domain.value_objects import (
    CREDENTIAL_SENTINEL,
    GenericProviderConfig,
    ProviderLimits,
    parse_provider_config,
)
from leadscore.ports.outbound import (
    MappingRepository,
    ProviderRepository,
    ServiceUsageRepository,
)
from leadscore.application.services.priority_sync import PrioritySynchronizer
from leadscore.shared.providers.credentials import CredentialCache, PendingInvalidations
from leadscore.shared.security.encryption import CredentialCipher

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProviderRegistry:
    def __init__(
        self,
        providers: ProviderRepository,
        mappings: MappingRepository,
        usage: ServiceUsageRepository,
        cipher: CredentialCipher,
        cache: CredentialCache | PendingInvalidations,
        synchronizer: PrioritySynchronizer,
    ) -> None:
        self._providers = providers
        self._mappings = mappings
        self._usage = usage
        self._cipher = cipher
        self._cache = cache
        self._sync = synchronizer

    # ── Upsert ───────────────────────────────────────────────
    async def upsert(
        self,
        name: str,
        service_type: ServiceType,
        config: Mapping[str, Any] | GenericProviderConfig,
        capabilities: Iterable[str] | None = None,
        limits: Mapping[str, Any] | ProviderLimits | None = None,
        *,
        priority: int | None = None,
        is_active: bool | None = None,
    ) -> ServiceProvider:
        """Create or update the provider identified by ``(name, service_type)``.

        The credential is encrypted before it is stored unless it already
        carries the ``encrypted:`` marker.  On update, priority and active
        flag are kept unless given explicitly.

        Raises:
            ValidationError: empty name, missing credential or a masked placeholder.
        """
        name = name.strip()
        if not name:
            raise ValidationError("Provider name must not be empty")

        typed = self._typed_config(service_type, config)
        if typed.api_key == CREDENTIAL_SENTINEL:
            raise ValidationError("Refusing to store the masked credential placeholder")
        if not self._cipher.is_encrypted(typed.api_key):
            typed = typed.with_api_key(self._cipher.encrypt(typed.api_key))

        caps = None if capabilities is None else tuple(
            dict.fromkeys(normalize_operation(c) for c in capabilities if str(c).strip())
        )
        typed_limits = (
            limits
            if isinstance(limits, ProviderLimits) or limits is None
            else ProviderLimits.from_dict(limits)
        )

        existing = await self._providers.find_by_name_type(name, service_type)
        if existing is None:
            provider = await self._providers.add(
                ServiceProvider(
                    name=name,
                    service_type=service_type,
                    config=typed,
                    is_active=True if is_active is None else is_active,
                    priority=1 if priority is None else priority,
                    capabilities=(
                        caps if caps is not None else DEFAULT_CAPABILITIES.get(service_type, ())
                    ),
                    limits=typed_limits or ProviderLimits(),
                )
            )
            logger.info(
                "provider_created",
                provider_id=provider.id,
                provider=name,
                service_type=service_type.value,
                priority=provider.priority,
            )
        else:
            existing.config = typed
            if caps is not None:
                existing.capabilities = caps
            if typed_limits is not None:
                existing.limits = typed_limits
            if is_active is not None:
                existing.is_active = is_active
            existing.updated_at = _utcnow()
            provider = await self._providers.update(existing)
            logger.info("provider_updated", provider_id=provider.id, provider=name)
            if (
                provider.id is not None
                and priority is not None
                and priority != provider.priority
            ):
                provider = await self.set_priority(provider.id, priority)

        self._cache.invalidate(name, service_type)
        return provider

    @staticmethod
    def _typed_config(
        service_type: ServiceType, config: Mapping[str, Any] | GenericProviderConfig
    ) -> GenericProviderConfig:
        if isinstance(config, GenericProviderConfig):
            if not config.api_key.strip():
                raise ValidationError(
                    f"{service_type.value} configuration requires a non-empty 'apiKey'"
                )
            return config
        return parse_provider_config(service_type, config, require_credential=True)

    # ── Priority & activation ────────────────────────────────
    async def set_priority(self, provider_id: int, new_priority: int) -> ServiceProvider:
        """Change the global priority and realign the provider's mappings."""
        async with self._sync.locks.hold(provider_id):
            provider = await self._providers.get_for_update(provider_id)
            if provider is None:
                raise ProviderNotFoundError(provider_id)
            if provider.priority == new_priority:
                return provider

            old_priority = provider.priority
            provider.priority = new_priority
            provider.updated_at = _utcnow()
            provider = await self._providers.update(provider)
            updated = await self._sync.propagate(provider_id, new_priority)

        logger.info(
            "provider_priority_changed",
            provider_id=provider_id,
            old_priority=old_priority,
            new_priority=new_priority,
            mappings_updated=updated,
        )
        return provider

    async def set_active(self, provider_id: int, is_active: bool) -> ServiceProvider:
        provider = await self.get(provider_id)
        if provider.is_active != is_active:
            provider.is_active = is_active
            provider.updated_at = _utcnow()
            provider = await self._providers.update(provider)
            logger.info("provider_active_changed", provider_id=provider_id, is_active=is_active)
        self._cache.invalidate(provider.name, provider.service_type)
        return provider

    # ── Reads ────────────────────────────────────────────────
    async def get(self, provider_id: int) -> ServiceProvider:
        provider = await self._providers.get_by_id(provider_id)
        if provider is None:
            raise ProviderNotFoundError(provider_id)
        return provider

    async def list(
        self,
        *,
        is_active: bool | None = None,
        service_type: ServiceType | None = None,
    ) -> list[ServiceProvider]:
        return await self._providers.list(is_active=is_active, service_type=service_type)

    # ── Delete ───────────────────────────────────────────────
    async def delete(self, provider_id: int) -> None:
        """Remove the provider together with its mappings and usage history."""
        async with self._sync.locks.hold(provider_id):
            provider = await self.get(provider_id)
            mappings_removed = await self._mappings.delete_by_provider(provider_id)
            usage_removed = await self._usage.delete_by_provider(provider_id)
            await self._providers.delete(provider_id)

        self._cache.invalidate(provider.name, provider.service_type)
        logger.info(
            "provider_deleted",
            provider_id=provider_id,
            provider=provider.name,
            mappings_removed=mappings_removed,
            usage_removed=usage_removed,
        )
