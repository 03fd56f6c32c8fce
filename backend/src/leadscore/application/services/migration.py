"""Legacy key migration: SystemConfig rows → provider registry.

Before the registry existed, credentials lived as plain key/value rows
(``CLAUDE_API_KEY``, ``OPENAI_API_KEY``, ``APIFY_API_TOKEN`` ...).  The
migrator copies the first matching row for each known provider into the
registry and leaves providers that are already registered untouched.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

import structlog

from leadscore.domain.enums import DEFAULT_CAPABILITIES, ServiceType
from leadscore.domain.value_objects import ProviderLimits
from leadscore.ports.outbound import ProviderRepository, SystemConfigRepository
from leadscore.application.services.registry import ProviderRegistry
from leadscore.shared.security.encryption import CredentialCipher

logger = structlog.get_logger(__name__)


class MigrationStatus(str, enum.Enum):
    MIGRATED = "MIGRATED"
    ALREADY_REGISTERED = "ALREADY_REGISTERED"
    NOT_FOUND = "NOT_FOUND"
    UNREADABLE = "UNREADABLE"


@dataclass(frozen=True, slots=True)
class LegacyKey:
    provider_name: str
    service_type: ServiceType
    config_keys: tuple[str, ...]
    model: str | None = None
    limits: ProviderLimits = field(default_factory=ProviderLimits)


@dataclass(frozen=True, slots=True)
class MigrationOutcome:
    provider_name: str
    service_type: ServiceType
    status: MigrationStatus
    source_key: str | None = None
    provider_id: int | None = None


LEGACY_KEYS: tuple[LegacyKey, ...] = (
    LegacyKey(
        "Claude AI",
        ServiceType.AI_ENGINE,
        ("CLAUDE_API_KEY", "Claude_API_Key"),
        model="claude-sonnet-4-20250514",
        limits=ProviderLimits(monthly_quota=1000, concurrent_requests=5, cost_per_request=0.03),
    ),
    LegacyKey(
        "OpenAI GPT-4",
        ServiceType.AI_ENGINE,
        ("OPENAI_API_KEY",),
        model="gpt-4",
        limits=ProviderLimits(monthly_quota=1000, concurrent_requests=5, cost_per_request=0.03),
    ),
    LegacyKey(
        "Apify Web Scraper",
        ServiceType.SCRAPER,
        ("APIFY_API_KEY", "APIFY_API_TOKEN"),
        limits=ProviderLimits(monthly_quota=1000, concurrent_requests=10, cost_per_request=0.01),
    ),
)


class LegacyKeyMigrator:
    def __init__(
        self,
        system_config: SystemConfigRepository,
        providers: ProviderRepository,
        registry: ProviderRegistry,
        cipher: CredentialCipher,
        *,
        legacy_keys: tuple[LegacyKey, ...] = LEGACY_KEYS,
    ) -> None:
        self._system_config = system_config
        self._providers = providers
        self._registry = registry
        self._cipher = cipher
        self._legacy_keys = legacy_keys

    async def migrate(self) -> list[MigrationOutcome]:
        outcomes = [await self._migrate_one(legacy) for legacy in self._legacy_keys]
        logger.info(
            "legacy_key_migration_completed",
            migrated=sum(o.status == MigrationStatus.MIGRATED for o in outcomes),
            total=len(outcomes),
        )
        return outcomes

    async def _migrate_one(self, legacy: LegacyKey) -> MigrationOutcome:
        entry = await self._system_config.find_first(list(legacy.config_keys))
        if entry is None or not entry.value.strip():
            return MigrationOutcome(
                legacy.provider_name, legacy.service_type, MigrationStatus.NOT_FOUND
            )

        existing = await self._providers.find_by_name_type(
            legacy.provider_name, legacy.service_type
        )
        if existing is not None:
            logger.info("legacy_key_already_registered", provider=legacy.provider_name)
            return MigrationOutcome(
                legacy.provider_name,
                legacy.service_type,
                MigrationStatus.ALREADY_REGISTERED,
                source_key=entry.key,
                provider_id=existing.id,
            )

        # Rows flagged encrypted but not in our at-rest format cannot be read back
        if entry.is_encrypted and not self._cipher.is_encrypted(entry.value):
            logger.warning("legacy_key_unreadable", provider=legacy.provider_name, key=entry.key)
            return MigrationOutcome(
                legacy.provider_name,
                legacy.service_type,
                MigrationStatus.UNREADABLE,
                source_key=entry.key,
            )

        config: dict[str, object] = {"apiKey": entry.value.strip()}
        if legacy.model:
            config.update(model=legacy.model, maxTokens=4096, temperature=0.7)
        provider = await self._registry.upsert(
            legacy.provider_name,
            legacy.service_type,
            config,
            DEFAULT_CAPABILITIES.get(legacy.service_type, ()),
            legacy.limits,
        )
        logger.info(
            "legacy_key_migrated",
            provider=legacy.provider_name,
            provider_id=provider.id,
            source_key=entry.key,
        )
        return MigrationOutcome(
            legacy.provider_name,
            legacy.service_type,
            MigrationStatus.MIGRATED,
            source_key=entry.key,
            provider_id=provider.id,
        )
