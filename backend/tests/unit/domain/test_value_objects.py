"""Unit tests for domain value objects."""

from __future__ import annotations

import pytest

from leadscore.domain.enums import CredentialSource, ServiceType, SyncState
from leadscore.domain.exceptions import ValidationError
from leadscore.domain.value_objects import (
    CREDENTIAL_SENTINEL,
    AIEngineConfig,
    DriftedMapping,
    GenericProviderConfig,
    ProviderLimits,
    ProviderSyncResult,
    ProviderSyncStatus,
    ResolvedConfig,
    ScraperConfig,
    SiteAnalyzerConfig,
    SyncReport,
    SyncStatusReport,
    UsageStats,
    mask_secret,
    parse_provider_config,
)


class TestProviderConfig:
    def test_ai_engine_defaults(self) -> None:
        config = parse_provider_config(ServiceType.AI_ENGINE, {"apiKey": "sk-test"})
        assert isinstance(config, AIEngineConfig)
        assert config.api_key == "sk-test"
        assert config.model == "claude-sonnet-4-20250514"
        assert config.max_tokens == 4096
        assert config.temperature == 0.7
        assert config.base_url is None

    def test_string_values_are_coerced(self) -> None:
        config = parse_provider_config(
            ServiceType.AI_ENGINE,
            {"apiKey": "k", "maxTokens": "2048", "temperature": "0.2"},
        )
        assert config.max_tokens == 2048
        assert config.temperature == 0.2

    def test_invalid_number_raises(self) -> None:
        with pytest.raises(ValidationError, match="maxTokens"):
            parse_provider_config(ServiceType.AI_ENGINE, {"apiKey": "k", "maxTokens": "lots"})

    def test_unknown_keys_survive_round_trip(self) -> None:
        raw = {"apiKey": "k", "model": "gpt-4", "organization": "org-1"}
        config = parse_provider_config(ServiceType.AI_ENGINE, raw)
        assert config.extra == {"organization": "org-1"}
        out = config.to_dict()
        assert out["organization"] == "org-1"
        assert out["model"] == "gpt-4"
        assert out["apiKey"] == "k"

    def test_scraper_accepts_api_token_alias(self) -> None:
        config = parse_provider_config(
            ServiceType.SCRAPER, {"apiToken": "apify_api_x", "maxConcurrency": 4}
        )
        assert isinstance(config, ScraperConfig)
        assert config.api_key == "apify_api_x"
        assert config.max_concurrency == 4

    def test_site_analyzer_request_delay_alias(self) -> None:
        config = parse_provider_config(
            ServiceType.SITE_ANALYZER, {"apiKey": "k", "requestDelay": "250"}
        )
        assert isinstance(config, SiteAnalyzerConfig)
        assert config.request_delay_ms == 250
        assert config.max_depth == 3

    def test_generic_types_fall_back_to_generic_config(self) -> None:
        config = parse_provider_config(
            ServiceType.CONTENT_ANALYZER, {"apiKey": "k", "scoringModel": "default"}
        )
        assert type(config) is GenericProviderConfig
        assert config.extra == {"scoringModel": "default"}

    def test_require_credential(self) -> None:
        with pytest.raises(ValidationError, match="apiKey"):
            parse_provider_config(
                ServiceType.AI_ENGINE, {"model": "gpt-4"}, require_credential=True
            )

    def test_none_values_keep_defaults(self) -> None:
        config = parse_provider_config(ServiceType.AI_ENGINE, {"apiKey": "k", "model": None})
        assert config.model == "claude-sonnet-4-20250514"

    def test_with_api_key_returns_copy(self) -> None:
        config = parse_provider_config(ServiceType.AI_ENGINE, {"apiKey": "old", "model": "m"})
        updated = config.with_api_key("encrypted:aa:bb")
        assert updated.api_key == "encrypted:aa:bb"
        assert updated.is_encrypted
        assert updated.model == "m"
        assert config.api_key == "old"

    def test_masked_hides_credential(self) -> None:
        config = parse_provider_config(ServiceType.AI_ENGINE, {"apiKey": "sk-abcdefghijkl"})
        masked = config.masked()
        assert masked["apiKey"] == "sk-a...ijkl"
        assert "abcdefgh" not in str(masked)


class TestMaskSecret:
    def test_long_secret(self) -> None:
        assert mask_secret("sk-1234567890") == "sk-1...7890"

    def test_short_secret(self) -> None:
        assert mask_secret("short") == "****"

    def test_sentinel_is_left_alone(self) -> None:
        assert mask_secret(CREDENTIAL_SENTINEL) == CREDENTIAL_SENTINEL


class TestProviderLimits:
    def test_from_camel_case(self) -> None:
        limits = ProviderLimits.from_dict(
            {"monthlyQuota": "500", "concurrentRequests": 3, "costPerRequest": "0.02"}
        )
        assert limits.monthly_quota == 500
        assert limits.concurrent_requests == 3
        assert limits.cost_per_request == pytest.approx(0.02)

    def test_empty_to_dict(self) -> None:
        assert ProviderLimits().to_dict() == {}


class TestResolvedConfig:
    def _resolved(self, api_key: str) -> ResolvedConfig:
        return ResolvedConfig(
            provider_name="Claude AI",
            service_type=ServiceType.AI_ENGINE,
            config=AIEngineConfig(api_key=api_key),
            capabilities=(),
            limits=ProviderLimits(),
            source=CredentialSource.DATABASE,
        )

    def test_plain_credential_is_usable(self) -> None:
        assert self._resolved("sk-live").has_usable_credential

    @pytest.mark.parametrize("api_key", ["", "   ", CREDENTIAL_SENTINEL, "encrypted:00:11"])
    def test_unusable_credentials(self, api_key: str) -> None:
        assert not self._resolved(api_key).has_usable_credential

    def test_masked_view(self) -> None:
        view = self._resolved("sk-abcdefghijkl").masked()
        assert view["config"]["apiKey"] == "sk-a...ijkl"
        assert view["source"] == "DATABASE"
        assert view["usable"] is True


class TestSyncReports:
    def test_provider_without_mappings_is_fully_synced(self) -> None:
        status = ProviderSyncStatus(
            provider_id=1, provider_name="A", priority=1,
            mappings_count=0, synced_mappings_count=0,
        )
        assert status.sync_percentage == 100.0
        assert status.state == SyncState.SYNCED

    def test_drifted_provider(self) -> None:
        status = ProviderSyncStatus(
            provider_id=1,
            provider_name="A",
            priority=1,
            mappings_count=4,
            synced_mappings_count=3,
            drifted=(DriftedMapping(mapping_id=9, operation="WEB_SCRAPING", mapping_priority=2),),
        )
        assert status.state == SyncState.DRIFTED
        assert status.unsynced_mappings_count == 1
        assert status.sync_percentage == 75.0

    def test_overall_percentage(self) -> None:
        report = SyncStatusReport(
            providers=(
                ProviderSyncStatus(1, "A", 1, mappings_count=2, synced_mappings_count=2),
                ProviderSyncStatus(2, "B", 2, mappings_count=2, synced_mappings_count=0),
            )
        )
        assert report.total_mappings == 4
        assert report.unsynced_mappings == 2
        assert report.overall_sync_percentage == 50.0
        assert report.for_provider(2) is report.providers[1]
        assert report.for_provider(3) is None

    def test_empty_status_report(self) -> None:
        assert SyncStatusReport(providers=()).overall_sync_percentage == 100.0

    def test_sync_report_message(self) -> None:
        report = SyncReport(
            results=(
                ProviderSyncResult(1, "A", 1, mappings_count=3, updated_count=2),
                ProviderSyncResult(2, "B", 2, mappings_count=1, updated_count=0),
            )
        )
        assert report.updated_mappings == 2
        assert report.message == (
            "Bulk synchronization completed. Updated 2 out of 4 operation mappings "
            "across 2 service providers."
        )


class TestUsageStats:
    def test_success_rate(self) -> None:
        stats = UsageStats(
            total_requests=4, successful_requests=3, total_cost=0.09,
            total_tokens=0, average_duration_ms=12.5,
        )
        assert stats.success_rate == 75.0

    def test_success_rate_without_requests(self) -> None:
        assert UsageStats(0, 0, 0.0, 0, 0.0).success_rate == 0.0
