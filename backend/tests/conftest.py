"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from leadscore.adapters.outbound.persistence.database import create_schema
from leadscore.adapters.outbound.persistence.repositories import (
    SQLAlchemyMappingRepository,
    SQLAlchemyProviderRepository,
    SQLAlchemyServiceUsageRepository,
    SQLAlchemySystemConfigRepository,
)
from leadscore.application.services import (
    OperationMappingTable,
    PrioritySynchronizer,
    ProviderRegistry,
)
from leadscore.config import Settings, get_settings
from leadscore.shared.providers import CredentialCache, CredentialResolver, KeyedLock
from leadscore.shared.security.encryption import CredentialCipher

TEST_ENCRYPTION_KEY = "test-encryption-key-for-unit-tests"


@pytest.fixture(scope="session")
def cipher() -> CredentialCipher:
    # scrypt is deliberately slow; derive the key once per run
    return CredentialCipher(TEST_ENCRYPTION_KEY)


@pytest.fixture
def settings() -> Settings:
    return get_settings(
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret_key="test-secret-key-256-bits-long-enough",
        encryption_key=TEST_ENCRYPTION_KEY,
    )


# ═══════════════════════════════════════════════════════════════
#  Database
# ═══════════════════════════════════════════════════════════════
@pytest_asyncio.fixture
async def session() -> AsyncIterator[AsyncSession]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_schema(engine)
    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    async with factory() as s:
        yield s
    await engine.dispose()


@pytest.fixture
def provider_repo(session: AsyncSession) -> SQLAlchemyProviderRepository:
    return SQLAlchemyProviderRepository(session)


@pytest.fixture
def mapping_repo(session: AsyncSession) -> SQLAlchemyMappingRepository:
    return SQLAlchemyMappingRepository(session)


@pytest.fixture
def usage_repo(session: AsyncSession) -> SQLAlchemyServiceUsageRepository:
    return SQLAlchemyServiceUsageRepository(session)


@pytest.fixture
def system_config_repo(session: AsyncSession) -> SQLAlchemySystemConfigRepository:
    return SQLAlchemySystemConfigRepository(session)


# ═══════════════════════════════════════════════════════════════
#  Services wired against the in-memory store
# ═══════════════════════════════════════════════════════════════
@pytest.fixture
def cache() -> CredentialCache:
    return CredentialCache()


@pytest.fixture
def locks() -> KeyedLock:
    return KeyedLock()


@pytest.fixture
def synchronizer(provider_repo, mapping_repo, locks) -> PrioritySynchronizer:
    return PrioritySynchronizer(provider_repo, mapping_repo, locks)


@pytest.fixture
def registry(
    provider_repo, mapping_repo, usage_repo, cipher, cache, synchronizer
) -> ProviderRegistry:
    return ProviderRegistry(provider_repo, mapping_repo, usage_repo, cipher, cache, synchronizer)


@pytest.fixture
def mapping_table(provider_repo, mapping_repo) -> OperationMappingTable:
    return OperationMappingTable(provider_repo, mapping_repo)


@pytest.fixture
def environ() -> dict[str, str]:
    """Isolated process environment for the resolver."""
    return {}


@pytest.fixture
def resolver(provider_repo, cipher, cache, environ) -> CredentialResolver:
    return CredentialResolver(provider_repo, cipher, cache, environ=environ)
