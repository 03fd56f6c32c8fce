"""Outbound ports: interfaces that infrastructure adapters must implement.

These are the *driven* ports in hexagonal architecture.  The domain and
application layers depend only on these abstractions, never on concrete
implementations (database drivers, HTTP clients, etc.).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from leadscore.domain.entities import (
    MappedProvider,
    OperationServiceMapping,
    ServiceProvider,
    ServiceUsage,
    SystemConfigEntry,
)
from leadscore.domain.enums import ServiceType
from leadscore.domain.value_objects import ResolvedConfig, UsageStats


# ═══════════════════════════════════════════════════════════════
#  Repository ports
# ═══════════════════════════════════════════════════════════════
class ProviderRepository(ABC):
    """Persistence for service providers."""

    @abstractmethod
    async def add(self, provider: ServiceProvider) -> ServiceProvider: ...

    @abstractmethod
    async def get_by_id(self, provider_id: int) -> ServiceProvider | None: ...

    @abstractmethod
    async def get_for_update(self, provider_id: int) -> ServiceProvider | None:
        """Fetch and row-lock a provider for the rest of the transaction."""

    @abstractmethod
    async def find_by_name_type(
        self,
        name: str,
        service_type: ServiceType,
        *,
        active_only: bool = False,
    ) -> ServiceProvider | None: ...

    @abstractmethod
    async def list(
        self,
        *,
        is_active: bool | None = None,
        service_type: ServiceType | None = None,
    ) -> list[ServiceProvider]:
        """Ordered by priority ascending, then insertion order."""

    @abstractmethod
    async def update(self, provider: ServiceProvider) -> ServiceProvider: ...

    @abstractmethod
    async def delete(self, provider_id: int) -> None: ...


class MappingRepository(ABC):
    """Operation ↔ provider associations."""

    @abstractmethod
    async def add(self, mapping: OperationServiceMapping) -> OperationServiceMapping: ...

    @abstractmethod
    async def get_by_id(self, mapping_id: int) -> OperationServiceMapping | None: ...

    @abstractmethod
    async def find(
        self, operation: str, provider_id: int
    ) -> OperationServiceMapping | None: ...

    @abstractmethod
    async def list_for_operation(self, operation: str) -> list[MappedProvider]:
        """Ordered by provider priority, then mapping priority, then mapping id."""

    @abstractmethod
    async def list_all(self) -> list[MappedProvider]: ...

    @abstractmethod
    async def list_by_provider(self, provider_id: int) -> list[OperationServiceMapping]: ...

    @abstractmethod
    async def update(self, mapping: OperationServiceMapping) -> OperationServiceMapping: ...

    @abstractmethod
    async def delete(self, mapping_id: int) -> None: ...

    @abstractmethod
    async def delete_by_provider(self, provider_id: int) -> int: ...

    @abstractmethod
    async def set_priority_for_provider(self, provider_id: int, priority: int) -> int:
        """Align every mapping of ``provider_id`` to ``priority``; return rows changed."""


class UsageRecorder(ABC):
    """Sink for provider invocation attempts."""

    @abstractmethod
    async def record(self, usage: ServiceUsage) -> None: ...


class ServiceUsageRepository(UsageRecorder):
    """Append-only log of provider invocation attempts."""

    @abstractmethod
    async def stats(
        self,
        *,
        since: datetime,
        provider_id: int | None = None,
        operation: str | None = None,
    ) -> UsageStats: ...

    @abstractmethod
    async def delete_by_provider(self, provider_id: int) -> int: ...


class SystemConfigRepository(ABC):
    """Legacy key/value configuration store."""

    @abstractmethod
    async def get(self, key: str) -> SystemConfigEntry | None: ...

    @abstractmethod
    async def find_first(self, keys: list[str]) -> SystemConfigEntry | None: ...

    @abstractmethod
    async def upsert(self, entry: SystemConfigEntry) -> SystemConfigEntry: ...


# ═══════════════════════════════════════════════════════════════
#  LLM port
# ═══════════════════════════════════════════════════════════════
class LLMPort(ABC):
    """Completes a prompt against one already-resolved AI provider."""

    @abstractmethod
    async def complete(
        self,
        resolved: ResolvedConfig,
        *,
        system_prompt: str,
        user_prompt: str,
    ) -> dict[str, Any]: ...
