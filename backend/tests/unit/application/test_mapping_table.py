"""Unit tests for the operation → provider mapping table."""

from __future__ import annotations

import pytest

from leadscore.domain.enums import ServiceType
from leadscore.domain.exceptions import (
    MappingConflictError,
    MappingNotFoundError,
    ProviderNotFoundError,
    ValidationError,
)


async def _provider(registry, name: str, priority: int, service_type=ServiceType.AI_ENGINE):
    return await registry.upsert(name, service_type, {"apiKey": f"key-{name}"}, priority=priority)


class TestCreateMapping:
    @pytest.mark.asyncio
    async def test_priority_defaults_to_provider_priority(self, registry, mapping_table) -> None:
        provider = await _provider(registry, "A", 3)
        mapping = await mapping_table.create_mapping("ai_discovery", provider.id)

        assert mapping.id is not None
        assert mapping.operation == "AI_DISCOVERY"
        assert mapping.priority == 3
        assert mapping.is_enabled is True
        assert mapping.config == {}

    @pytest.mark.asyncio
    async def test_explicit_values(self, registry, mapping_table) -> None:
        provider = await _provider(registry, "A", 1)
        mapping = await mapping_table.create_mapping(
            "LEAD_SCORING", provider.id, priority=7, is_enabled=False, config={"temperature": 0.1}
        )
        assert mapping.priority == 7
        assert mapping.is_enabled is False
        assert mapping.config == {"temperature": 0.1}

    @pytest.mark.asyncio
    async def test_duplicate_is_a_conflict(self, registry, mapping_table) -> None:
        provider = await _provider(registry, "A", 1)
        await mapping_table.create_mapping("AI_DISCOVERY", provider.id)
        with pytest.raises(MappingConflictError):
            await mapping_table.create_mapping("ai_discovery", provider.id)

    @pytest.mark.asyncio
    async def test_unknown_provider(self, mapping_table) -> None:
        with pytest.raises(ProviderNotFoundError):
            await mapping_table.create_mapping("AI_DISCOVERY", 404)

    @pytest.mark.asyncio
    async def test_blank_operation(self, registry, mapping_table) -> None:
        provider = await _provider(registry, "A", 1)
        with pytest.raises(ValidationError):
            await mapping_table.create_mapping("   ", provider.id)

    @pytest.mark.asyncio
    async def test_operation_outside_capabilities_is_allowed(self, registry, mapping_table) -> None:
        provider = await _provider(registry, "A", 1)
        assert not provider.supports("WEB_SCRAPING")
        mapping = await mapping_table.create_mapping("WEB_SCRAPING", provider.id)
        assert mapping.operation == "WEB_SCRAPING"


class TestListForOperation:
    @pytest.mark.asyncio
    async def test_sorted_by_provider_then_mapping_priority(self, registry, mapping_table) -> None:
        low = await _provider(registry, "low", 3)
        high_b = await _provider(registry, "high-b", 1)
        high_a = await _provider(registry, "high-a", 1)
        mid = await _provider(registry, "mid", 2)

        await mapping_table.create_mapping("AI_DISCOVERY", low.id, priority=1)
        await mapping_table.create_mapping("AI_DISCOVERY", high_b.id, priority=4)
        await mapping_table.create_mapping("AI_DISCOVERY", mid.id, priority=9)
        await mapping_table.create_mapping("AI_DISCOVERY", high_a.id, priority=2)
        await mapping_table.create_mapping("LEAD_SCORING", mid.id)

        rows = await mapping_table.list_for_operation("ai_discovery")

        assert [r.provider.name for r in rows] == ["high-a", "high-b", "mid", "low"]
        keys = [(r.provider.priority, r.mapping.priority) for r in rows]
        assert keys == sorted(keys)

    @pytest.mark.asyncio
    async def test_includes_disabled_and_inactive_rows(self, registry, mapping_table) -> None:
        on = await _provider(registry, "on", 1)
        off = await _provider(registry, "off", 2)
        await registry.set_active(off.id, False)
        mapping = await mapping_table.create_mapping("AI_DISCOVERY", on.id)
        await mapping_table.create_mapping("AI_DISCOVERY", off.id)
        await mapping_table.set_enabled(mapping.id, False)

        rows = await mapping_table.list_for_operation("AI_DISCOVERY")

        assert [(r.provider.name, r.is_eligible) for r in rows] == [("on", False), ("off", False)]

    @pytest.mark.asyncio
    async def test_unknown_operation(self, mapping_table) -> None:
        assert await mapping_table.list_for_operation("NOTHING") == []


class TestMutations:
    @pytest.mark.asyncio
    async def test_update_mapping(self, registry, mapping_table) -> None:
        provider = await _provider(registry, "A", 1)
        mapping = await mapping_table.create_mapping("AI_DISCOVERY", provider.id)

        updated = await mapping_table.update_mapping(
            mapping.id, priority=5, config={"model": "claude-haiku"}
        )

        assert updated.priority == 5
        assert updated.is_enabled is True
        assert updated.config == {"model": "claude-haiku"}
        assert (await mapping_table.get(mapping.id)).priority == 5

    @pytest.mark.asyncio
    async def test_set_enabled(self, registry, mapping_table) -> None:
        provider = await _provider(registry, "A", 1)
        mapping = await mapping_table.create_mapping("AI_DISCOVERY", provider.id)
        assert (await mapping_table.set_enabled(mapping.id, False)).is_enabled is False

    @pytest.mark.asyncio
    async def test_delete_mapping(self, registry, mapping_table) -> None:
        provider = await _provider(registry, "A", 1)
        mapping = await mapping_table.create_mapping("AI_DISCOVERY", provider.id)

        await mapping_table.delete_mapping(mapping.id)

        with pytest.raises(MappingNotFoundError):
            await mapping_table.get(mapping.id)
        assert await mapping_table.list_all() == []

    @pytest.mark.asyncio
    async def test_unknown_mapping(self, mapping_table) -> None:
        with pytest.raises(MappingNotFoundError):
            await mapping_table.update_mapping(99, priority=1)
        with pytest.raises(MappingNotFoundError):
            await mapping_table.delete_mapping(99)
