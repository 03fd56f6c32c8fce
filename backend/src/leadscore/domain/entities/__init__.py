"""Domain entities: objects with identity and lifecycle.

Identity is an integer assigned by the store on first save; ``None`` means
"not persisted yet".  Ordering ties on priority are broken by that id, which
grows with insertion order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from leadscore.domain.enums import ServiceType, normalize_operation
from leadscore.domain.value_objects import (
    GenericProviderConfig,
    ProviderConfig,
    ProviderLimits,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════
#  Service Provider
# ═══════════════════════════════════════════════════════════════
@dataclass(slots=True)
class ServiceProvider:
    """A configured external capability source (AI engine, scraper, analyser)."""

    name: str
    service_type: ServiceType
    config: ProviderConfig = field(default_factory=GenericProviderConfig)
    id: int | None = None
    is_active: bool = True
    priority: int = 1
    capabilities: tuple[str, ...] = ()
    limits: ProviderLimits = field(default_factory=ProviderLimits)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def supports(self, operation: str) -> bool:
        return normalize_operation(operation) in self.capabilities

    @property
    def label(self) -> str:
        return f"{self.name} ({self.service_type.value})"


# ═══════════════════════════════════════════════════════════════
#  Operation ↔ Provider mapping
# ═══════════════════════════════════════════════════════════════
@dataclass(slots=True)
class OperationServiceMapping:
    """Binds one provider to one operation with its own switch and priority."""

    operation: str
    provider_id: int
    id: int | None = None
    is_enabled: bool = True
    priority: int = 1
    config: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        self.operation = normalize_operation(self.operation)


@dataclass(frozen=True, slots=True)
class MappedProvider:
    """Read model: a mapping joined with the provider it references."""

    mapping: OperationServiceMapping
    provider: ServiceProvider

    @property
    def is_eligible(self) -> bool:
        return self.mapping.is_enabled and self.provider.is_active

    @property
    def is_synced(self) -> bool:
        return self.mapping.priority == self.provider.priority

    @property
    def sort_key(self) -> tuple[int, int, int]:
        # Provider priority dominates; mapping priority only breaks ties.
        return (self.provider.priority, self.mapping.priority, self.mapping.id or 0)


# ═══════════════════════════════════════════════════════════════
#  Usage & legacy config
# ═══════════════════════════════════════════════════════════════
@dataclass(slots=True)
class ServiceUsage:
    """One invocation attempt against a provider."""

    provider_id: int
    operation: str
    success: bool
    duration_ms: float = 0.0
    id: int | None = None
    cost: float | None = None
    tokens_used: int | None = None
    error_message: str | None = None
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class SystemConfigEntry:
    """Legacy key/value configuration row that may hold credentials."""

    key: str
    value: str
    is_encrypted: bool = False
    category: str = "GENERAL"
    description: str | None = None
    id: int | None = None
