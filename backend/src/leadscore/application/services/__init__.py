"""Application services: use cases over the provider registry."""

from leadscore.application.services.discovery import AIDiscoveryService
from leadscore.application.services.mappings import OperationMappingTable
from leadscore.application.services.migration import LegacyKeyMigrator
from leadscore.application.services.priority_sync import PrioritySynchronizer
from leadscore.application.services.registry import ProviderRegistry
from leadscore.application.services.seeding import CatalogSeeder
from leadscore.application.services.usage import UsageStatsService

__all__ = [
    "AIDiscoveryService",
    "CatalogSeeder",
    "LegacyKeyMigrator",
    "OperationMappingTable",
    "PrioritySynchronizer",
    "ProviderRegistry",
    "UsageStatsService",
]
