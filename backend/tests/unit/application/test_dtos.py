"""Unit tests for response DTO construction."""

from __future__ import annotations

import pytest

from leadscore.application.dtos import MappingResponse, ProviderResponse
from leadscore.domain.entities import OperationServiceMapping, ServiceProvider
from leadscore.domain.enums import ServiceType
from leadscore.domain.value_objects import AIEngineConfig


def _provider(pid: int | None) -> ServiceProvider:
    return ServiceProvider(
        id=pid,
        name="Claude AI",
        service_type=ServiceType.AI_ENGINE,
        config=AIEngineConfig(api_key="sk-ant-secret-123456"),
    )


class TestProviderResponse:
    def test_masks_credential(self) -> None:
        resp = ProviderResponse.from_entity(_provider(7))
        assert resp.id == 7
        assert "sk-ant-secret-123456" not in str(resp.config)

    def test_unsaved_provider_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="Claude AI"):
            ProviderResponse.from_entity(_provider(None))


class TestMappingResponse:
    def test_saved_mapping(self) -> None:
        resp = MappingResponse.from_entity(
            OperationServiceMapping(id=3, operation="AI_DISCOVERY", provider_id=7)
        )
        assert resp.id == 3
        assert resp.operation == "AI_DISCOVERY"

    def test_unsaved_mapping_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="AI_DISCOVERY"):
            MappingResponse.from_entity(
                OperationServiceMapping(operation="AI_DISCOVERY", provider_id=7)
            )
