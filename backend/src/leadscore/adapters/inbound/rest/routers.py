"""Health, service configuration, AI discovery: REST routers."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import text
from starlette.responses import JSONResponse, Response

from leadscore.application.dtos import (
    ActiveUpdateRequest,
    CredentialResponse,
    DispatchResponse,
    HealthResponse,
    IndustryDiscoveryRequest,
    LeadScoringRequest,
    MappedProviderResponse,
    MappingCreateRequest,
    MappingResponse,
    MappingUpdateRequest,
    MetadataResponse,
    MigrationOutcomeResponse,
    PriorityUpdateRequest,
    ProviderResponse,
    ProviderUpsertRequest,
    SeedResponse,
    SyncReportResponse,
    SyncStatusResponse,
    UsageStatsResponse,
)
from leadscore.application.services import (
    AIDiscoveryService,
    CatalogSeeder,
    LegacyKeyMigrator,
    OperationMappingTable,
    PrioritySynchronizer,
    ProviderRegistry,
    UsageStatsService,
)
from leadscore.config import Settings
from leadscore.domain.enums import DEFAULT_CAPABILITIES, OperationName, ServiceType
from leadscore.dependencies import (
    get_app_settings,
    get_catalog_seeder,
    get_credential_resolver,
    get_current_user,
    get_discovery_service,
    get_legacy_migrator,
    get_mapping_table,
    get_registry,
    get_synchronizer,
    get_usage_service,
)
from leadscore.shared.providers import CredentialResolver
from leadscore.shared.security import ADMIN_ROLES
from leadscore.shared.security.rbac import require_role

_admin = [Depends(require_role(*ADMIN_ROLES))]
_reader = [Depends(get_current_user)]


# ═══════════════════════════════════════════════════════════════
#  Health
# ═══════════════════════════════════════════════════════════════
health_router = APIRouter(tags=["Health"])


@health_router.get("/health", response_model=HealthResponse)
async def health_check(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> Any:
    db_status = "connected"
    try:
        async with request.app.state.session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        db_status = "disconnected"
        resp = HealthResponse(
            status="degraded",
            environment=settings.app_env.value,
            services={"database": db_status, "database_error": str(exc)},
        )
        return JSONResponse(status_code=503, content=resp.model_dump())

    return HealthResponse(
        status="ok",
        environment=settings.app_env.value,
        services={"database": db_status},
    )


@health_router.get("/metrics")
async def prometheus_metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# ═══════════════════════════════════════════════════════════════
#  Service configuration: providers
# ═══════════════════════════════════════════════════════════════
service_configuration_router = APIRouter(
    prefix="/service-configuration", tags=["Service Configuration"]
)


@service_configuration_router.get(
    "/metadata", response_model=MetadataResponse, dependencies=_reader
)
async def get_metadata() -> MetadataResponse:
    return MetadataResponse(
        service_types=[t.value for t in ServiceType],
        operations=[o.value for o in OperationName],
        default_capabilities={t.value: list(caps) for t, caps in DEFAULT_CAPABILITIES.items()},
    )


@service_configuration_router.get(
    "/providers", response_model=list[ProviderResponse], dependencies=_reader
)
async def list_providers(
    is_active: bool | None = Query(None),
    type: ServiceType | None = Query(None),
    registry: ProviderRegistry = Depends(get_registry),
) -> list[ProviderResponse]:
    providers = await registry.list(is_active=is_active, service_type=type)
    return [ProviderResponse.from_entity(p) for p in providers]


@service_configuration_router.post(
    "/providers",
    response_model=ProviderResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=_admin,
)
async def upsert_provider(
    body: ProviderUpsertRequest,
    registry: ProviderRegistry = Depends(get_registry),
) -> ProviderResponse:
    provider = await registry.upsert(
        body.name,
        body.type,
        body.config,
        body.capabilities,
        body.limits,
        priority=body.priority,
        is_active=body.is_active,
    )
    return ProviderResponse.from_entity(provider)


@service_configuration_router.get(
    "/providers/{provider_id}", response_model=ProviderResponse, dependencies=_reader
)
async def get_provider(
    provider_id: int,
    registry: ProviderRegistry = Depends(get_registry),
) -> ProviderResponse:
    return ProviderResponse.from_entity(await registry.get(provider_id))


@service_configuration_router.delete(
    "/providers/{provider_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=_admin,
)
async def delete_provider(
    provider_id: int,
    registry: ProviderRegistry = Depends(get_registry),
) -> Response:
    await registry.delete(provider_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@service_configuration_router.put(
    "/providers/{provider_id}/priority",
    response_model=ProviderResponse,
    dependencies=_admin,
)
async def update_provider_priority(
    provider_id: int,
    body: PriorityUpdateRequest,
    registry: ProviderRegistry = Depends(get_registry),
) -> ProviderResponse:
    return ProviderResponse.from_entity(await registry.set_priority(provider_id, body.priority))


@service_configuration_router.put(
    "/providers/{provider_id}/active",
    response_model=ProviderResponse,
    dependencies=_admin,
)
async def update_provider_active(
    provider_id: int,
    body: ActiveUpdateRequest,
    registry: ProviderRegistry = Depends(get_registry),
) -> ProviderResponse:
    return ProviderResponse.from_entity(await registry.set_active(provider_id, body.is_active))


# ── Mappings ─────────────────────────────────────────────────
@service_configuration_router.get(
    "/operations/{operation}/providers",
    response_model=list[MappedProviderResponse],
    dependencies=_reader,
)
async def list_operation_providers(
    operation: str,
    table: OperationMappingTable = Depends(get_mapping_table),
) -> list[MappedProviderResponse]:
    rows = await table.list_for_operation(operation)
    return [MappedProviderResponse.from_entity(r) for r in rows]


@service_configuration_router.get(
    "/mappings", response_model=list[MappedProviderResponse], dependencies=_reader
)
async def list_mappings(
    table: OperationMappingTable = Depends(get_mapping_table),
) -> list[MappedProviderResponse]:
    return [MappedProviderResponse.from_entity(r) for r in await table.list_all()]


@service_configuration_router.post(
    "/mappings",
    response_model=MappingResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=_admin,
)
async def create_mapping(
    body: MappingCreateRequest,
    table: OperationMappingTable = Depends(get_mapping_table),
) -> MappingResponse:
    mapping = await table.create_mapping(
        body.operation,
        body.provider_id,
        priority=body.priority,
        is_enabled=body.is_enabled,
        config=body.config,
    )
    return MappingResponse.from_entity(mapping)


@service_configuration_router.patch(
    "/mappings/{mapping_id}", response_model=MappingResponse, dependencies=_admin
)
async def update_mapping(
    mapping_id: int,
    body: MappingUpdateRequest,
    table: OperationMappingTable = Depends(get_mapping_table),
) -> MappingResponse:
    mapping = await table.update_mapping(
        mapping_id,
        priority=body.priority,
        is_enabled=body.is_enabled,
        config=body.config,
    )
    return MappingResponse.from_entity(mapping)


@service_configuration_router.delete(
    "/mappings/{mapping_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=_admin,
)
async def delete_mapping(
    mapping_id: int,
    table: OperationMappingTable = Depends(get_mapping_table),
) -> Response:
    await table.delete_mapping(mapping_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Priority sync ────────────────────────────────────────────
@service_configuration_router.get(
    "/priority-sync/status", response_model=SyncStatusResponse, dependencies=_reader
)
async def get_priority_sync_status(
    synchronizer: PrioritySynchronizer = Depends(get_synchronizer),
) -> SyncStatusResponse:
    return SyncStatusResponse.from_report(await synchronizer.get_sync_status())


@service_configuration_router.post(
    "/priority-sync", response_model=SyncReportResponse, dependencies=_admin
)
async def run_priority_sync(
    synchronizer: PrioritySynchronizer = Depends(get_synchronizer),
) -> SyncReportResponse:
    return SyncReportResponse.from_report(await synchronizer.sync_all())


# ── Usage & credentials ──────────────────────────────────────
@service_configuration_router.get(
    "/usage", response_model=UsageStatsResponse, dependencies=_reader
)
async def get_usage_stats(
    days: int = Query(30, ge=1, le=365),
    provider_id: int | None = Query(None),
    operation: str | None = Query(None),
    usage: UsageStatsService = Depends(get_usage_service),
) -> UsageStatsResponse:
    stats = await usage.stats(days=days, provider_id=provider_id, operation=operation)
    return UsageStatsResponse.from_stats(stats, days)


@service_configuration_router.get(
    "/credentials", response_model=list[CredentialResponse], dependencies=_admin
)
async def list_credentials(
    resolver: CredentialResolver = Depends(get_credential_resolver),
) -> list[CredentialResponse]:
    return [CredentialResponse.from_resolved(r) for r in await resolver.list_configured()]


# ── Maintenance ──────────────────────────────────────────────
@service_configuration_router.post(
    "/legacy-keys/migrate",
    response_model=list[MigrationOutcomeResponse],
    dependencies=_admin,
)
async def migrate_legacy_keys(
    migrator: LegacyKeyMigrator = Depends(get_legacy_migrator),
) -> list[MigrationOutcomeResponse]:
    outcomes = await migrator.migrate()
    return [
        MigrationOutcomeResponse(
            provider_name=o.provider_name,
            type=o.service_type,
            status=o.status.value,
            source_key=o.source_key,
            provider_id=o.provider_id,
        )
        for o in outcomes
    ]


@service_configuration_router.post("/seed", response_model=SeedResponse, dependencies=_admin)
async def seed_catalog(
    seeder: CatalogSeeder = Depends(get_catalog_seeder),
) -> SeedResponse:
    report = await seeder.seed()
    return SeedResponse(
        created_providers=report.created_providers,
        existing_providers=report.existing_providers,
        skipped_providers=report.skipped_providers,
        created_mappings=report.created_mappings,
        existing_mappings=report.existing_mappings,
    )


# ═══════════════════════════════════════════════════════════════
#  AI discovery & scoring
# ═══════════════════════════════════════════════════════════════
discovery_router = APIRouter(tags=["AI Discovery"])


@discovery_router.post(
    "/ai-discovery/industries", response_model=DispatchResponse, dependencies=_reader
)
async def discover_industries(
    body: IndustryDiscoveryRequest,
    service: AIDiscoveryService = Depends(get_discovery_service),
) -> DispatchResponse:
    outcome = await service.discover_industries(body.product, context=body.context)
    return DispatchResponse.from_result(outcome)


@discovery_router.post("/ai-scoring/leads", response_model=DispatchResponse, dependencies=_reader)
async def score_lead(
    body: LeadScoringRequest,
    service: AIDiscoveryService = Depends(get_discovery_service),
) -> DispatchResponse:
    outcome = await service.score_lead(body.model_dump(exclude_none=True))
    return DispatchResponse.from_result(outcome)
