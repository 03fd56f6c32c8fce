"""Concrete repository implementations using SQLAlchemy.

These adapters implement the outbound port interfaces, translating between
domain entities and ORM models.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import orjson
from sqlalchemy import case, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leadscore.domain.entities import (
    MappedProvider,
    OperationServiceMapping,
    ServiceProvider,
    ServiceUsage,
    SystemConfigEntry,
)
from leadscore.domain.enums import ServiceType, normalize_operation
from leadscore.domain.exceptions import (
    MappingNotFoundError,
    ProviderConflictError,
    ProviderNotFoundError,
)
from leadscore.domain.value_objects import (
    ProviderLimits,
    UsageStats,
    parse_provider_config,
)
from leadscore.ports.outbound import (
    MappingRepository,
    ProviderRepository,
    ServiceUsageRepository,
    SystemConfigRepository,
    UsageRecorder,
)

from .models import (
    OperationServiceMappingModel,
    ServiceProviderModel,
    ServiceUsageModel,
    SystemConfigModel,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _dumps(value: Any) -> str:
    return orjson.dumps(value).decode()


def _loads(raw: str | None, default: Any) -> Any:
    if not raw:
        return default
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError:
        return default


# ── Converters ───────────────────────────────────────────────
def _model_to_provider(m: ServiceProviderModel) -> ServiceProvider:
    service_type = ServiceType(m.type)
    return ServiceProvider(
        id=m.id,
        name=m.name,
        service_type=service_type,
        config=parse_provider_config(service_type, _loads(m.config, {})),
        is_active=m.is_active,
        priority=m.priority,
        capabilities=tuple(_loads(m.capabilities, [])),
        limits=ProviderLimits.from_dict(_loads(m.limits, {})),
        created_at=m.created_at,
        updated_at=m.updated_at,
    )


def _apply_provider(m: ServiceProviderModel, p: ServiceProvider) -> None:
    m.name = p.name
    m.type = p.service_type.value
    m.is_active = p.is_active
    m.priority = p.priority
    m.config = _dumps(p.config.to_dict())
    m.capabilities = _dumps(list(p.capabilities))
    m.limits = _dumps(p.limits.to_dict())
    m.updated_at = p.updated_at


def _model_to_mapping(m: OperationServiceMappingModel) -> OperationServiceMapping:
    return OperationServiceMapping(
        id=m.id,
        operation=m.operation,
        provider_id=m.provider_id,
        is_enabled=m.is_enabled,
        priority=m.priority,
        config=_loads(m.config, {}),
        created_at=m.created_at,
        updated_at=m.updated_at,
    )


# ═══════════════════════════════════════════════════════════════
#  SQLAlchemy Provider Repository
# ═══════════════════════════════════════════════════════════════
class SQLAlchemyProviderRepository(ProviderRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, provider: ServiceProvider) -> ServiceProvider:
        model = ServiceProviderModel(created_at=provider.created_at)
        _apply_provider(model, provider)
        self._session.add(model)
        await self._flush_unique(provider)
        return _model_to_provider(model)

    async def get_by_id(self, provider_id: int) -> ServiceProvider | None:
        result = await self._session.get(ServiceProviderModel, provider_id)
        return _model_to_provider(result) if result else None

    async def get_for_update(self, provider_id: int) -> ServiceProvider | None:
        stmt = (
            select(ServiceProviderModel)
            .where(ServiceProviderModel.id == provider_id)
            .with_for_update()
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _model_to_provider(model) if model else None

    async def find_by_name_type(
        self,
        name: str,
        service_type: ServiceType,
        *,
        active_only: bool = False,
    ) -> ServiceProvider | None:
        stmt = (
            select(ServiceProviderModel)
            .where(
                ServiceProviderModel.name == name,
                ServiceProviderModel.type == service_type.value,
            )
        )
        if active_only:
            stmt = stmt.where(ServiceProviderModel.is_active.is_(True))
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _model_to_provider(model) if model else None

    async def list(
        self,
        *,
        is_active: bool | None = None,
        service_type: ServiceType | None = None,
    ) -> list[ServiceProvider]:
        stmt = select(ServiceProviderModel).order_by(
            ServiceProviderModel.priority, ServiceProviderModel.id
        )
        if is_active is not None:
            stmt = stmt.where(ServiceProviderModel.is_active.is_(is_active))
        if service_type is not None:
            stmt = stmt.where(ServiceProviderModel.type == service_type.value)
        result = await self._session.execute(stmt)
        return [_model_to_provider(r) for r in result.scalars()]

    async def update(self, provider: ServiceProvider) -> ServiceProvider:
        if provider.id is None:
            raise ValueError("Cannot update a provider that was never saved")
        model = await self._session.get(ServiceProviderModel, provider.id)
        if model is None:
            raise ProviderNotFoundError(provider.id)
        _apply_provider(model, provider)
        await self._flush_unique(provider)
        return _model_to_provider(model)

    async def delete(self, provider_id: int) -> None:
        await self._session.execute(
            delete(ServiceProviderModel).where(ServiceProviderModel.id == provider_id)
        )

    async def _flush_unique(self, provider: ServiceProvider) -> None:
        try:
            await self._session.flush()
        except IntegrityError as exc:
            raise ProviderConflictError(provider.name, provider.service_type.value) from exc


# ═══════════════════════════════════════════════════════════════
#  SQLAlchemy Mapping Repository
# ═══════════════════════════════════════════════════════════════
class SQLAlchemyMappingRepository(MappingRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    def _joined(self):  # type: ignore[no-untyped-def]
        return (
            select(OperationServiceMappingModel, ServiceProviderModel)
            .join(
                ServiceProviderModel,
                ServiceProviderModel.id == OperationServiceMappingModel.provider_id,
            )
            .order_by(
                ServiceProviderModel.priority,
                OperationServiceMappingModel.priority,
                OperationServiceMappingModel.id,
            )
        )

    async def add(self, mapping: OperationServiceMapping) -> OperationServiceMapping:
        model = OperationServiceMappingModel(
            operation=mapping.operation,
            provider_id=mapping.provider_id,
            is_enabled=mapping.is_enabled,
            priority=mapping.priority,
            config=_dumps(mapping.config),
            created_at=mapping.created_at,
            updated_at=mapping.updated_at,
        )
        self._session.add(model)
        await self._session.flush()
        return _model_to_mapping(model)

    async def get_by_id(self, mapping_id: int) -> OperationServiceMapping | None:
        result = await self._session.get(OperationServiceMappingModel, mapping_id)
        return _model_to_mapping(result) if result else None

    async def find(
        self, operation: str, provider_id: int
    ) -> OperationServiceMapping | None:
        stmt = select(OperationServiceMappingModel).where(
            OperationServiceMappingModel.operation == normalize_operation(operation),
            OperationServiceMappingModel.provider_id == provider_id,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _model_to_mapping(model) if model else None

    async def list_for_operation(self, operation: str) -> list[MappedProvider]:
        stmt = self._joined().where(
            OperationServiceMappingModel.operation == normalize_operation(operation)
        )
        result = await self._session.execute(stmt)
        return [
            MappedProvider(_model_to_mapping(m), _model_to_provider(p))
            for m, p in result.all()
        ]

    async def list_all(self) -> list[MappedProvider]:
        result = await self._session.execute(self._joined())
        return [
            MappedProvider(_model_to_mapping(m), _model_to_provider(p))
            for m, p in result.all()
        ]

    async def list_by_provider(self, provider_id: int) -> list[OperationServiceMapping]:
        stmt = (
            select(OperationServiceMappingModel)
            .where(OperationServiceMappingModel.provider_id == provider_id)
            .order_by(OperationServiceMappingModel.id)
        )
        result = await self._session.execute(stmt)
        return [_model_to_mapping(r) for r in result.scalars()]

    async def update(self, mapping: OperationServiceMapping) -> OperationServiceMapping:
        if mapping.id is None:
            raise ValueError("Cannot update a mapping that was never saved")
        model = await self._session.get(OperationServiceMappingModel, mapping.id)
        if model is None:
            raise MappingNotFoundError(mapping.id)
        model.is_enabled = mapping.is_enabled
        model.priority = mapping.priority
        model.config = _dumps(mapping.config)
        model.updated_at = mapping.updated_at
        await self._session.flush()
        return _model_to_mapping(model)

    async def delete(self, mapping_id: int) -> None:
        await self._session.execute(
            delete(OperationServiceMappingModel).where(
                OperationServiceMappingModel.id == mapping_id
            )
        )

    async def delete_by_provider(self, provider_id: int) -> int:
        result = await self._session.execute(
            delete(OperationServiceMappingModel).where(
                OperationServiceMappingModel.provider_id == provider_id
            )
        )
        return result.rowcount or 0

    async def set_priority_for_provider(self, provider_id: int, priority: int) -> int:
        stmt = (
            update(OperationServiceMappingModel)
            .where(
                OperationServiceMappingModel.provider_id == provider_id,
                OperationServiceMappingModel.priority != priority,
            )
            .values(priority=priority, updated_at=_utcnow())
            .execution_options(synchronize_session="evaluate")
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0


# ═══════════════════════════════════════════════════════════════
#  SQLAlchemy Usage Repository
# ═══════════════════════════════════════════════════════════════
class SQLAlchemyServiceUsageRepository(ServiceUsageRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(self, usage: ServiceUsage) -> None:
        self._session.add(
            ServiceUsageModel(
                provider_id=usage.provider_id,
                operation=usage.operation,
                success=usage.success,
                duration_ms=usage.duration_ms,
                cost=usage.cost,
                tokens_used=usage.tokens_used,
                error_message=usage.error_message,
                created_at=usage.created_at,
            )
        )
        await self._session.flush()

    async def stats(
        self,
        *,
        since: datetime,
        provider_id: int | None = None,
        operation: str | None = None,
    ) -> UsageStats:
        stmt = select(
            func.count(ServiceUsageModel.id),
            func.coalesce(func.sum(case((ServiceUsageModel.success.is_(True), 1), else_=0)), 0),
            func.coalesce(func.sum(ServiceUsageModel.cost), 0.0),
            func.coalesce(func.sum(ServiceUsageModel.tokens_used), 0),
            func.coalesce(func.avg(ServiceUsageModel.duration_ms), 0.0),
        ).where(ServiceUsageModel.created_at >= since)
        if provider_id is not None:
            stmt = stmt.where(ServiceUsageModel.provider_id == provider_id)
        if operation is not None:
            stmt = stmt.where(ServiceUsageModel.operation == normalize_operation(operation))
        total, successful, cost, tokens, avg_duration = (await self._session.execute(stmt)).one()
        return UsageStats(
            total_requests=int(total),
            successful_requests=int(successful),
            total_cost=float(cost),
            total_tokens=int(tokens),
            average_duration_ms=float(avg_duration),
        )

    async def delete_by_provider(self, provider_id: int) -> int:
        result = await self._session.execute(
            delete(ServiceUsageModel).where(ServiceUsageModel.provider_id == provider_id)
        )
        return result.rowcount or 0


class SQLAlchemyCommittingUsageRecorder(UsageRecorder):
    """Writes each usage row in a session of its own and commits it at once.

    Failed attempts must survive the rollback of the request that made them.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(self, usage: ServiceUsage) -> None:
        async with self._session_factory() as session:
            await SQLAlchemyServiceUsageRepository(session).record(usage)
            await session.commit()


# ═══════════════════════════════════════════════════════════════
#  SQLAlchemy System Config Repository
# ═══════════════════════════════════════════════════════════════
def _model_to_entry(m: SystemConfigModel) -> SystemConfigEntry:
    return SystemConfigEntry(
        id=m.id,
        key=m.key,
        value=m.value,
        is_encrypted=m.is_encrypted,
        category=m.category,
        description=m.description,
    )


class SQLAlchemySystemConfigRepository(SystemConfigRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, key: str) -> SystemConfigEntry | None:
        result = await self._session.execute(
            select(SystemConfigModel).where(SystemConfigModel.key == key)
        )
        model = result.scalar_one_or_none()
        return _model_to_entry(model) if model else None

    async def find_first(self, keys: list[str]) -> SystemConfigEntry | None:
        for key in keys:
            entry = await self.get(key)
            if entry is not None:
                return entry
        return None

    async def upsert(self, entry: SystemConfigEntry) -> SystemConfigEntry:
        result = await self._session.execute(
            select(SystemConfigModel).where(SystemConfigModel.key == entry.key)
        )
        model = result.scalar_one_or_none()
        if model is None:
            model = SystemConfigModel(key=entry.key)
            self._session.add(model)
        model.value = entry.value
        model.is_encrypted = entry.is_encrypted
        model.category = entry.category
        model.description = entry.description
        await self._session.flush()
        return _model_to_entry(model)
