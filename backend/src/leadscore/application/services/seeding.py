"""Default provider catalog and its operation mappings.

Seeding is idempotent: providers that already exist (by name and type) and
mappings that already exist are left alone.  A provider whose credential is
not configured in settings is skipped, together with its mappings.

Mappings are created at their provider's priority, so the catalog seeds with
zero drift.  Within one priority level the listing order below decides.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from leadscore.config import Settings
from leadscore.domain.entities import ServiceProvider
from leadscore.domain.enums import OperationName, ServiceType
from leadscore.ports.outbound import ProviderRepository
from leadscore.application.services.mappings import OperationMappingTable
from leadscore.application.services.registry import ProviderRegistry

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    name: str
    service_type: ServiceType
    credential_setting: str
    priority: int
    capabilities: tuple[str, ...]
    config: dict[str, Any] = field(default_factory=dict)
    limits: dict[str, Any] = field(default_factory=dict)


_AI_OPERATIONS = (
    OperationName.AI_DISCOVERY.value,
    OperationName.MARKET_DISCOVERY.value,
    OperationName.KEYWORD_EXTRACTION.value,
    OperationName.CONTENT_ANALYSIS.value,
    OperationName.LEAD_SCORING.value,
)

DEFAULT_CATALOG: tuple[CatalogEntry, ...] = (
    CatalogEntry(
        "Claude AI",
        ServiceType.AI_ENGINE,
        "claude_api_key",
        priority=1,
        capabilities=_AI_OPERATIONS,
        config={"model": "claude-sonnet-4-20250514", "maxTokens": 4096, "temperature": 0.7},
        limits={"monthlyQuota": 1000, "concurrentRequests": 5, "costPerRequest": 0.015},
    ),
    CatalogEntry(
        "OpenAI GPT-4",
        ServiceType.AI_ENGINE,
        "openai_api_key",
        priority=2,
        capabilities=_AI_OPERATIONS,
        config={"model": "gpt-4", "maxTokens": 4096, "temperature": 0.7},
        limits={"monthlyQuota": 500, "concurrentRequests": 3, "costPerRequest": 0.03},
    ),
    CatalogEntry(
        "Apify Web Scraper",
        ServiceType.SCRAPER,
        "apify_api_token",
        priority=1,
        capabilities=(OperationName.WEB_SCRAPING.value, OperationName.SITE_ANALYSIS.value),
        config={"defaultActor": "apify/web-scraper", "maxConcurrency": 10},
        limits={"monthlyQuota": 10000, "concurrentRequests": 10, "costPerRequest": 0.001},
    ),
    CatalogEntry(
        "Custom Site Analyzer",
        ServiceType.SITE_ANALYZER,
        "site_analyzer_api_key",
        priority=2,
        capabilities=(OperationName.SITE_ANALYSIS.value, OperationName.KEYWORD_EXTRACTION.value),
        config={"maxDepth": 5, "maxPages": 500, "requestDelay": 1000},
        limits={"monthlyQuota": 5000, "concurrentRequests": 5, "costPerRequest": 0.0001},
    ),
    CatalogEntry(
        "Lead Scoring AI",
        ServiceType.CONTENT_ANALYZER,
        "lead_scoring_api_key",
        priority=1,
        capabilities=(OperationName.LEAD_SCORING.value, OperationName.CONTENT_ANALYSIS.value),
        config={"scoringModel": "default", "confidenceThreshold": 0.7},
        limits={"monthlyQuota": 2000, "concurrentRequests": 8, "costPerRequest": 0.005},
    ),
)

# (operation, provider name) in preference order per operation
DEFAULT_MAPPINGS: tuple[tuple[str, str], ...] = (
    (OperationName.AI_DISCOVERY.value, "Claude AI"),
    (OperationName.AI_DISCOVERY.value, "OpenAI GPT-4"),
    (OperationName.MARKET_DISCOVERY.value, "Claude AI"),
    (OperationName.MARKET_DISCOVERY.value, "OpenAI GPT-4"),
    (OperationName.WEB_SCRAPING.value, "Apify Web Scraper"),
    (OperationName.WEB_SCRAPING.value, "Custom Site Analyzer"),
    (OperationName.SITE_ANALYSIS.value, "Custom Site Analyzer"),
    (OperationName.SITE_ANALYSIS.value, "Apify Web Scraper"),
    (OperationName.KEYWORD_EXTRACTION.value, "Claude AI"),
    (OperationName.KEYWORD_EXTRACTION.value, "OpenAI GPT-4"),
    (OperationName.LEAD_SCORING.value, "Lead Scoring AI"),
    (OperationName.LEAD_SCORING.value, "Claude AI"),
    (OperationName.CONTENT_ANALYSIS.value, "Claude AI"),
    (OperationName.CONTENT_ANALYSIS.value, "OpenAI GPT-4"),
)


@dataclass(slots=True)
class SeedReport:
    created_providers: list[str] = field(default_factory=list)
    existing_providers: list[str] = field(default_factory=list)
    skipped_providers: list[str] = field(default_factory=list)
    created_mappings: int = 0
    existing_mappings: int = 0


class CatalogSeeder:
    def __init__(
        self,
        registry: ProviderRegistry,
        mapping_table: OperationMappingTable,
        providers: ProviderRepository,
        settings: Settings,
        *,
        catalog: tuple[CatalogEntry, ...] = DEFAULT_CATALOG,
        mappings: tuple[tuple[str, str], ...] = DEFAULT_MAPPINGS,
    ) -> None:
        self._registry = registry
        self._mapping_table = mapping_table
        self._providers = providers
        self._settings = settings
        self._catalog = catalog
        self._mappings = mappings

    async def seed(self) -> SeedReport:
        report = SeedReport()
        seeded: dict[str, ServiceProvider] = {}

        for entry in self._catalog:
            existing = await self._providers.find_by_name_type(entry.name, entry.service_type)
            if existing is not None:
                report.existing_providers.append(entry.name)
                seeded[entry.name] = existing
                continue

            credential = str(getattr(self._settings, entry.credential_setting, "") or "").strip()
            if not credential:
                logger.info("seed_provider_skipped", provider=entry.name, reason="no_credential")
                report.skipped_providers.append(entry.name)
                continue

            provider = await self._registry.upsert(
                entry.name,
                entry.service_type,
                {**entry.config, "apiKey": credential},
                entry.capabilities,
                entry.limits,
                priority=entry.priority,
            )
            report.created_providers.append(entry.name)
            seeded[entry.name] = provider

        for operation, provider_name in self._mappings:
            provider = seeded.get(provider_name)
            if provider is None or provider.id is None:
                continue
            existing_ops = {
                row.mapping.operation
                for row in await self._mapping_table.list_for_operation(operation)
                if row.provider.id == provider.id
            }
            if operation in existing_ops:
                report.existing_mappings += 1
                continue
            await self._mapping_table.create_mapping(operation, provider.id)
            report.created_mappings += 1

        logger.info(
            "catalog_seeded",
            created=report.created_providers,
            skipped=report.skipped_providers,
            mappings_created=report.created_mappings,
        )
        return report
