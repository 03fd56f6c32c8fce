"""Data Transfer Objects: Pydantic models for API boundaries.

DTOs handle serialisation, validation, and documentation.  They live in the
application layer because they are *not* domain objects; they adapt between
the external world and the domain.  Credentials never leave through a DTO
unmasked.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from leadscore.domain.entities import MappedProvider, OperationServiceMapping, ServiceProvider
from leadscore.domain.enums import CredentialSource, ServiceType, SyncState
from leadscore.domain.value_objects import (
    DispatchResult,
    ProviderSyncStatus,
    ResolvedConfig,
    SyncReport,
    SyncStatusReport,
    UsageStats,
)


# ═══════════════════════════════════════════════════════════════
#  Common
# ═══════════════════════════════════════════════════════════════
class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    environment: str = "development"
    services: dict[str, str] = Field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════
#  Providers
# ═══════════════════════════════════════════════════════════════
class ProviderUpsertRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    type: ServiceType
    config: dict[str, Any] = Field(..., description="camelCase config; must include apiKey")
    capabilities: list[str] | None = None
    limits: dict[str, Any] | None = None
    priority: int | None = Field(None, ge=1)
    is_active: bool | None = None


class PriorityUpdateRequest(BaseModel):
    priority: int = Field(..., ge=1)


class ActiveUpdateRequest(BaseModel):
    is_active: bool


class ProviderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    type: ServiceType
    is_active: bool
    priority: int
    capabilities: list[str]
    config: dict[str, Any]
    limits: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, p: ServiceProvider) -> ProviderResponse:
        if p.id is None:
            raise ValueError(f"Provider {p.name!r} has not been saved")
        return cls(
            id=p.id,
            name=p.name,
            type=p.service_type,
            is_active=p.is_active,
            priority=p.priority,
            capabilities=list(p.capabilities),
            config=p.config.masked(),
            limits=p.limits.to_dict(),
            created_at=p.created_at,
            updated_at=p.updated_at,
        )


# ═══════════════════════════════════════════════════════════════
#  Mappings
# ═══════════════════════════════════════════════════════════════
class MappingCreateRequest(BaseModel):
    operation: str = Field(..., min_length=1, max_length=60)
    provider_id: int
    priority: int | None = Field(None, ge=1)
    is_enabled: bool = True
    config: dict[str, Any] | None = None


class MappingUpdateRequest(BaseModel):
    priority: int | None = Field(None, ge=1)
    is_enabled: bool | None = None
    config: dict[str, Any] | None = None


class MappingResponse(BaseModel):
    id: int
    operation: str
    provider_id: int
    is_enabled: bool
    priority: int
    config: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, m: OperationServiceMapping) -> MappingResponse:
        if m.id is None:
            raise ValueError(f"Mapping {m.operation!r} has not been saved")
        return cls(
            id=m.id,
            operation=m.operation,
            provider_id=m.provider_id,
            is_enabled=m.is_enabled,
            priority=m.priority,
            config=m.config,
            created_at=m.created_at,
            updated_at=m.updated_at,
        )


class MappedProviderResponse(BaseModel):
    mapping: MappingResponse
    provider: ProviderResponse
    eligible: bool
    synced: bool

    @classmethod
    def from_entity(cls, row: MappedProvider) -> MappedProviderResponse:
        return cls(
            mapping=MappingResponse.from_entity(row.mapping),
            provider=ProviderResponse.from_entity(row.provider),
            eligible=row.is_eligible,
            synced=row.is_synced,
        )


# ═══════════════════════════════════════════════════════════════
#  Priority sync
# ═══════════════════════════════════════════════════════════════
class DriftedMappingResponse(BaseModel):
    mapping_id: int
    operation: str
    mapping_priority: int


class ProviderSyncStatusResponse(BaseModel):
    provider_id: int
    provider_name: str
    priority: int
    state: SyncState
    mappings_count: int
    synced_mappings_count: int
    unsynced_mappings_count: int
    sync_percentage: float
    drifted: list[DriftedMappingResponse]

    @classmethod
    def from_status(cls, s: ProviderSyncStatus) -> ProviderSyncStatusResponse:
        return cls(
            provider_id=s.provider_id,
            provider_name=s.provider_name,
            priority=s.priority,
            state=s.state,
            mappings_count=s.mappings_count,
            synced_mappings_count=s.synced_mappings_count,
            unsynced_mappings_count=s.unsynced_mappings_count,
            sync_percentage=round(s.sync_percentage, 2),
            drifted=[
                DriftedMappingResponse(
                    mapping_id=d.mapping_id,
                    operation=d.operation,
                    mapping_priority=d.mapping_priority,
                )
                for d in s.drifted
            ],
        )


class SyncStatusResponse(BaseModel):
    total_providers: int
    total_mappings: int
    synced_mappings: int
    unsynced_mappings: int
    overall_sync_percentage: float
    providers: list[ProviderSyncStatusResponse]

    @classmethod
    def from_report(cls, r: SyncStatusReport) -> SyncStatusResponse:
        return cls(
            total_providers=r.total_providers,
            total_mappings=r.total_mappings,
            synced_mappings=r.synced_mappings,
            unsynced_mappings=r.unsynced_mappings,
            overall_sync_percentage=round(r.overall_sync_percentage, 2),
            providers=[ProviderSyncStatusResponse.from_status(p) for p in r.providers],
        )


class ProviderSyncResultResponse(BaseModel):
    provider_id: int
    provider_name: str
    provider_priority: int
    mappings_count: int
    updated_count: int


class SyncReportResponse(BaseModel):
    message: str
    total_providers: int
    total_mappings: int
    updated_mappings: int
    results: list[ProviderSyncResultResponse]

    @classmethod
    def from_report(cls, r: SyncReport) -> SyncReportResponse:
        return cls(
            message=r.message,
            total_providers=r.total_providers,
            total_mappings=r.total_mappings,
            updated_mappings=r.updated_mappings,
            results=[
                ProviderSyncResultResponse(
                    provider_id=x.provider_id,
                    provider_name=x.provider_name,
                    provider_priority=x.provider_priority,
                    mappings_count=x.mappings_count,
                    updated_count=x.updated_count,
                )
                for x in r.results
            ],
        )


# ═══════════════════════════════════════════════════════════════
#  Usage, credentials, metadata
# ═══════════════════════════════════════════════════════════════
class UsageStatsResponse(BaseModel):
    days: int
    total_requests: int
    successful_requests: int
    success_rate: float
    total_cost: float
    total_tokens: int
    average_duration_ms: float

    @classmethod
    def from_stats(cls, s: UsageStats, days: int) -> UsageStatsResponse:
        return cls(
            days=days,
            total_requests=s.total_requests,
            successful_requests=s.successful_requests,
            success_rate=round(s.success_rate, 2),
            total_cost=s.total_cost,
            total_tokens=s.total_tokens,
            average_duration_ms=round(s.average_duration_ms, 2),
        )


class CredentialResponse(BaseModel):
    provider_id: int | None
    name: str
    type: ServiceType
    source: CredentialSource
    usable: bool
    config: dict[str, Any]
    capabilities: list[str]
    limits: dict[str, Any]

    @classmethod
    def from_resolved(cls, r: ResolvedConfig) -> CredentialResponse:
        return cls(
            provider_id=r.provider_id,
            name=r.provider_name,
            type=r.service_type,
            source=r.source,
            usable=r.has_usable_credential,
            config=r.config.masked(),
            capabilities=list(r.capabilities),
            limits=r.limits.to_dict(),
        )


class MetadataResponse(BaseModel):
    service_types: list[str]
    operations: list[str]
    default_capabilities: dict[str, list[str]]


class MigrationOutcomeResponse(BaseModel):
    provider_name: str
    type: ServiceType
    status: str
    source_key: str | None = None
    provider_id: int | None = None


class SeedResponse(BaseModel):
    created_providers: list[str]
    existing_providers: list[str]
    skipped_providers: list[str]
    created_mappings: int
    existing_mappings: int


# ═══════════════════════════════════════════════════════════════
#  AI discovery & scoring
# ═══════════════════════════════════════════════════════════════
class IndustryDiscoveryRequest(BaseModel):
    product: str = Field(..., min_length=2, max_length=500)
    context: str | None = Field(None, max_length=2000)


class LeadScoringRequest(BaseModel):
    company_name: str = Field(..., min_length=1, max_length=200)
    industry: str | None = None
    website: str | None = None
    employee_count: int | None = Field(None, ge=0)
    annual_revenue: float | None = Field(None, ge=0)
    notes: str | None = Field(None, max_length=4000)
    attributes: dict[str, Any] = Field(default_factory=dict)


class DispatchResponse(BaseModel):
    result: dict[str, Any]
    provider_used: str
    priority: int
    attempts: int

    @classmethod
    def from_result(cls, r: DispatchResult[dict[str, Any]]) -> DispatchResponse:
        return cls(
            result=r.result,
            provider_used=r.provider_used,
            priority=r.priority,
            attempts=r.attempts,
        )
