"""Unit tests for the provider registry against an in-memory store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from leadscore.domain.entities import ServiceUsage
from leadscore.domain.enums import DEFAULT_CAPABILITIES, ServiceType
from leadscore.domain.exceptions import ProviderNotFoundError, ValidationError
from leadscore.domain.value_objects import CREDENTIAL_SENTINEL, ProviderLimits


class TestUpsert:
    @pytest.mark.asyncio
    async def test_create_defaults(self, registry, cipher) -> None:
        provider = await registry.upsert(
            "Claude AI", ServiceType.AI_ENGINE, {"apiKey": "sk-ant-secret", "model": "claude-3"}
        )

        assert provider.id is not None
        assert provider.is_active is True
        assert provider.priority == 1
        assert provider.capabilities == DEFAULT_CAPABILITIES[ServiceType.AI_ENGINE]
        assert provider.config.model == "claude-3"
        assert provider.config.api_key.startswith("encrypted:")
        assert cipher.decrypt(provider.config.api_key) == "sk-ant-secret"

    @pytest.mark.asyncio
    async def test_already_encrypted_credential_is_kept(self, registry, cipher) -> None:
        token = cipher.encrypt("sk-pre")
        provider = await registry.upsert("Claude AI", ServiceType.AI_ENGINE, {"apiKey": token})
        assert provider.config.api_key == token

    @pytest.mark.asyncio
    async def test_capabilities_and_limits(self, registry) -> None:
        provider = await registry.upsert(
            "Apify",
            ServiceType.SCRAPER,
            {"apiToken": "apify_api_x"},
            ["web_scraping", "WEB_SCRAPING", "site_analysis"],
            {"monthlyQuota": 10000, "costPerRequest": 0.001},
            priority=3,
        )
        assert provider.capabilities == ("WEB_SCRAPING", "SITE_ANALYSIS")
        assert provider.limits == ProviderLimits(monthly_quota=10000, cost_per_request=0.001)
        assert provider.priority == 3

    @pytest.mark.asyncio
    async def test_update_preserves_identity_priority_and_active(self, registry, cipher) -> None:
        created = await registry.upsert(
            "Claude AI", ServiceType.AI_ENGINE, {"apiKey": "sk-1"}, priority=4, is_active=False
        )
        updated = await registry.upsert(
            "Claude AI", ServiceType.AI_ENGINE, {"apiKey": "sk-2", "model": "claude-opus"}
        )

        assert updated.id == created.id
        assert updated.priority == 4
        assert updated.is_active is False
        assert updated.config.model == "claude-opus"
        assert cipher.decrypt(updated.config.api_key) == "sk-2"
        assert len(await registry.list()) == 1

    @pytest.mark.asyncio
    async def test_update_with_new_priority_syncs_mappings(
        self, registry, mapping_table, mapping_repo
    ) -> None:
        provider = await registry.upsert("Claude AI", ServiceType.AI_ENGINE, {"apiKey": "k"})
        await mapping_table.create_mapping("AI_DISCOVERY", provider.id)

        updated = await registry.upsert(
            "Claude AI", ServiceType.AI_ENGINE, {"apiKey": "k"}, priority=2
        )

        assert updated.priority == 2
        assert [m.priority for m in await mapping_repo.list_by_provider(provider.id)] == [2]

    @pytest.mark.asyncio
    async def test_same_name_different_type_is_a_different_provider(self, registry) -> None:
        a = await registry.upsert("Acme", ServiceType.SCRAPER, {"apiKey": "k1"})
        b = await registry.upsert("Acme", ServiceType.SITE_ANALYZER, {"apiKey": "k2"})
        assert a.id != b.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name, config",
        [
            ("  ", {"apiKey": "k"}),
            ("Claude AI", {"model": "claude-3"}),
            ("Claude AI", {"apiKey": "   "}),
            ("Claude AI", {"apiKey": CREDENTIAL_SENTINEL}),
        ],
        ids=["blank-name", "missing-key", "blank-key", "masked-placeholder"],
    )
    async def test_rejects_invalid_input(self, registry, name, config) -> None:
        with pytest.raises(ValidationError):
            await registry.upsert(name, ServiceType.AI_ENGINE, config)


class TestPriority:
    @pytest.mark.asyncio
    async def test_unknown_provider(self, registry) -> None:
        with pytest.raises(ProviderNotFoundError):
            await registry.set_priority(999, 1)

    @pytest.mark.asyncio
    async def test_priority_change_reaches_every_mapping(
        self, registry, mapping_table, mapping_repo, synchronizer
    ) -> None:
        provider = await registry.upsert(
            "C", ServiceType.AI_ENGINE, {"apiKey": "k"}, priority=5
        )
        for op in ("AI_DISCOVERY", "LEAD_SCORING", "CONTENT_ANALYSIS"):
            await mapping_table.create_mapping(op, provider.id)

        updated = await registry.set_priority(provider.id, 1)

        assert updated.priority == 1
        mappings = await mapping_repo.list_by_provider(provider.id)
        assert [m.priority for m in mappings] == [1, 1, 1]
        status = (await synchronizer.get_sync_status()).for_provider(provider.id)
        assert status is not None
        assert status.sync_percentage == 100.0

    @pytest.mark.asyncio
    async def test_unchanged_priority_is_a_no_op(self, registry) -> None:
        provider = await registry.upsert("A", ServiceType.AI_ENGINE, {"apiKey": "k"}, priority=2)
        again = await registry.set_priority(provider.id, 2)
        assert again.priority == 2
        assert again.updated_at == provider.updated_at


class TestReads:
    @pytest.mark.asyncio
    async def test_list_is_ordered_by_priority_then_id(self, registry) -> None:
        await registry.upsert("third", ServiceType.AI_ENGINE, {"apiKey": "k"}, priority=2)
        await registry.upsert("first", ServiceType.AI_ENGINE, {"apiKey": "k"}, priority=1)
        await registry.upsert("fourth", ServiceType.SCRAPER, {"apiKey": "k"}, priority=2)
        await registry.upsert("second", ServiceType.AI_ENGINE, {"apiKey": "k"}, priority=1)

        names = [p.name for p in await registry.list()]
        assert names == ["first", "second", "third", "fourth"]

    @pytest.mark.asyncio
    async def test_list_filters(self, registry) -> None:
        await registry.upsert("ai", ServiceType.AI_ENGINE, {"apiKey": "k"})
        await registry.upsert("off", ServiceType.AI_ENGINE, {"apiKey": "k"}, is_active=False)
        await registry.upsert("scraper", ServiceType.SCRAPER, {"apiKey": "k"})

        assert [p.name for p in await registry.list(is_active=True)] == ["ai", "scraper"]
        assert [p.name for p in await registry.list(service_type=ServiceType.AI_ENGINE)] == [
            "ai",
            "off",
        ]

    @pytest.mark.asyncio
    async def test_get_unknown(self, registry) -> None:
        with pytest.raises(ProviderNotFoundError):
            await registry.get(42)


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_removes_mappings_and_usage(
        self, registry, mapping_table, mapping_repo, usage_repo
    ) -> None:
        provider = await registry.upsert("A", ServiceType.AI_ENGINE, {"apiKey": "k"})
        other = await registry.upsert("B", ServiceType.AI_ENGINE, {"apiKey": "k"})
        await mapping_table.create_mapping("AI_DISCOVERY", provider.id)
        await mapping_table.create_mapping("AI_DISCOVERY", other.id)
        await usage_repo.record(
            ServiceUsage(provider_id=provider.id, operation="AI_DISCOVERY", success=True)
        )

        await registry.delete(provider.id)

        with pytest.raises(ProviderNotFoundError):
            await registry.get(provider.id)
        assert await mapping_repo.list_by_provider(provider.id) == []
        assert len(await mapping_repo.list_by_provider(other.id)) == 1
        since = datetime.now(timezone.utc) - timedelta(days=1)
        assert (await usage_repo.stats(since=since, provider_id=provider.id)).total_requests == 0

    @pytest.mark.asyncio
    async def test_delete_unknown(self, registry) -> None:
        with pytest.raises(ProviderNotFoundError):
            await registry.delete(7)
