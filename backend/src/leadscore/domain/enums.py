"""Domain enumerations for provider resolution."""

from __future__ import annotations

import enum


class ServiceType(str, enum.Enum):
    """Kind of external capability a provider offers."""

    AI_ENGINE = "AI_ENGINE"
    SCRAPER = "SCRAPER"
    SITE_ANALYZER = "SITE_ANALYZER"
    KEYWORD_EXTRACTOR = "KEYWORD_EXTRACTOR"
    CONTENT_ANALYZER = "CONTENT_ANALYZER"


class OperationName(str, enum.Enum):
    """Well-known operations.

    Operations are stored as free-form strings; these are the names the
    platform itself dispatches.
    """

    AI_DISCOVERY = "AI_DISCOVERY"
    MARKET_DISCOVERY = "MARKET_DISCOVERY"
    WEB_SCRAPING = "WEB_SCRAPING"
    SITE_ANALYSIS = "SITE_ANALYSIS"
    KEYWORD_EXTRACTION = "KEYWORD_EXTRACTION"
    LEAD_SCORING = "LEAD_SCORING"
    CONTENT_ANALYSIS = "CONTENT_ANALYSIS"


class CredentialSource(str, enum.Enum):
    """Where a resolved configuration came from."""

    ENV = "ENV"
    DATABASE = "DATABASE"


class SyncState(str, enum.Enum):
    """Whether a provider's mappings track its global priority."""

    SYNCED = "SYNCED"
    DRIFTED = "DRIFTED"


DEFAULT_CAPABILITIES: dict[ServiceType, tuple[str, ...]] = {
    ServiceType.AI_ENGINE: (
        OperationName.AI_DISCOVERY.value,
        OperationName.MARKET_DISCOVERY.value,
        OperationName.KEYWORD_EXTRACTION.value,
        OperationName.CONTENT_ANALYSIS.value,
        OperationName.LEAD_SCORING.value,
    ),
    ServiceType.SCRAPER: (
        OperationName.WEB_SCRAPING.value,
        OperationName.SITE_ANALYSIS.value,
    ),
    ServiceType.SITE_ANALYZER: (
        OperationName.SITE_ANALYSIS.value,
        OperationName.KEYWORD_EXTRACTION.value,
    ),
}


def normalize_operation(operation: str | OperationName) -> str:
    """Operations compare case-insensitively and are stored upper-case."""
    if isinstance(operation, OperationName):
        return operation.value
    return operation.strip().upper()
