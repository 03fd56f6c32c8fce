"""Dependency injection container: wires adapters to ports.

FastAPI's ``Depends()`` system uses these factories to inject the correct
adapter implementations into route handlers.  Process-lifetime objects
(session factory, credential cache, provider locks, cipher, LLM client) live
on ``app.state`` and are created by :func:`init_app_state`.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, AsyncGenerator

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from leadscore.adapters.outbound.llm import HttpLLMAdapter
from leadscore.adapters.outbound.persistence.database import (
    create_engine,
    create_session_factory,
)
from leadscore.adapters.outbound.persistence.repositories import (
    SQLAlchemyCommittingUsageRecorder,
    SQLAlchemyMappingRepository,
    SQLAlchemyProviderRepository,
    SQLAlchemyServiceUsageRepository,
    SQLAlchemySystemConfigRepository,
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
from leadscore.config import Settings, get_settings
from leadscore.shared.providers import (
    CredentialCache,
    CredentialResolver,
    FailoverDispatcher,
    KeyedLock,
    PendingInvalidations,
)
from leadscore.shared.security import decode_token
from leadscore.shared.security.encryption import CredentialCipher


# ── Settings ─────────────────────────────────────────────────
@lru_cache(maxsize=1)
def get_cached_settings() -> Settings:
    return get_settings()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings  # type: ignore[no-any-return]


# ── Process-lifetime state ───────────────────────────────────
def init_app_state(app: FastAPI, settings: Settings) -> None:
    """Create the shared singletons once per application instance."""
    engine = create_engine(settings)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(settings, engine)
    app.state.credential_cache = CredentialCache()
    app.state.provider_locks = KeyedLock()
    app.state.cipher = CredentialCipher(settings.encryption_key)
    app.state.llm = HttpLLMAdapter(timeout=settings.provider_timeout_seconds)


# ── DB session dependency ────────────────────────────────────
_INVALIDATIONS_KEY = "credential_invalidations"


def pending_invalidations(request: Request, session: AsyncSession) -> PendingInvalidations:
    """Cache invalidations tied to ``session``, applied once it commits."""
    pending = session.info.get(_INVALIDATIONS_KEY)
    if pending is None:
        pending = PendingInvalidations(request.app.state.credential_cache)
        session.info[_INVALIDATIONS_KEY] = pending
    return pending  # type: ignore[no-any-return]


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    factory = request.app.state.session_factory
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            pending = session.info.pop(_INVALIDATIONS_KEY, None)
            if pending is not None:
                pending.discard()
            raise
        pending = session.info.pop(_INVALIDATIONS_KEY, None)
        if pending is not None:
            pending.flush()


# ── Auth dependency ──────────────────────────────────────────
async def get_current_user(
    request: Request,
    authorization: str = Header(None, alias="Authorization"),
) -> dict[str, Any]:
    """Extract and validate the bearer JWT; the role claim drives RBAC."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    settings = get_app_settings(request)
    token = authorization.split(" ", 1)[1]
    payload = decode_token(token, settings.jwt_secret_key, settings.jwt_algorithm)
    return {
        "username": payload.get("sub", ""),
        "role": payload.get("role", ""),
        "id": payload.get("user_id"),
    }


# ── Core component factories ────────────────────────────────
def get_credential_resolver(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
) -> CredentialResolver:
    return CredentialResolver(
        SQLAlchemyProviderRepository(session),
        request.app.state.cipher,
        request.app.state.credential_cache,
    )


def get_synchronizer(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
) -> PrioritySynchronizer:
    return PrioritySynchronizer(
        SQLAlchemyProviderRepository(session),
        SQLAlchemyMappingRepository(session),
        request.app.state.provider_locks,
    )


def get_registry(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    synchronizer: PrioritySynchronizer = Depends(get_synchronizer),
) -> ProviderRegistry:
    return ProviderRegistry(
        SQLAlchemyProviderRepository(session),
        SQLAlchemyMappingRepository(session),
        SQLAlchemyServiceUsageRepository(session),
        request.app.state.cipher,
        pending_invalidations(request, session),
        synchronizer,
    )


def get_mapping_table(
    session: AsyncSession = Depends(get_db_session),
) -> OperationMappingTable:
    return OperationMappingTable(
        SQLAlchemyProviderRepository(session),
        SQLAlchemyMappingRepository(session),
    )


def get_dispatcher(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    resolver: CredentialResolver = Depends(get_credential_resolver),
) -> FailoverDispatcher:
    settings = get_app_settings(request)
    return FailoverDispatcher(
        SQLAlchemyMappingRepository(session),
        resolver,
        usage=(
            SQLAlchemyCommittingUsageRecorder(request.app.state.session_factory)
            if settings.record_usage
            else None
        ),
        timeout_s=settings.dispatch_timeout_seconds or None,
    )


# ── Supporting service factories ─────────────────────────────
def get_usage_service(
    session: AsyncSession = Depends(get_db_session),
) -> UsageStatsService:
    return UsageStatsService(SQLAlchemyServiceUsageRepository(session))


def get_legacy_migrator(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    registry: ProviderRegistry = Depends(get_registry),
) -> LegacyKeyMigrator:
    return LegacyKeyMigrator(
        SQLAlchemySystemConfigRepository(session),
        SQLAlchemyProviderRepository(session),
        registry,
        request.app.state.cipher,
    )


def get_catalog_seeder(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    registry: ProviderRegistry = Depends(get_registry),
    mapping_table: OperationMappingTable = Depends(get_mapping_table),
) -> CatalogSeeder:
    return CatalogSeeder(
        registry,
        mapping_table,
        SQLAlchemyProviderRepository(session),
        get_app_settings(request),
    )


def get_discovery_service(
    request: Request,
    dispatcher: FailoverDispatcher = Depends(get_dispatcher),
) -> AIDiscoveryService:
    return AIDiscoveryService(dispatcher, request.app.state.llm)
