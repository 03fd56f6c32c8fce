"""Domain value objects: immutable, self-validating types.

Value objects have *no identity*; two instances with equal fields are equal.
Provider configuration is a tagged union keyed by ``ServiceType``: each
variant is a typed record that round-trips to the camelCase JSON blob stored
in the database, preserving any keys it does not model in ``extra``.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar, Generic, TypeVar, Union

from leadscore.domain.enums import CredentialSource, ServiceType, SyncState
from leadscore.domain.exceptions import ValidationError

ENCRYPTED_PREFIX = "encrypted:"
CREDENTIAL_SENTINEL = "[ENCRYPTED]"

T = TypeVar("T")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _coerce(value: Any, target: type, key: str) -> Any:
    try:
        if target is bool:
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if target is int:
            return int(value)
        if target is float:
            return float(value)
        return str(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid value for {key!r}: {value!r}") from exc


class _CamelRecord:
    """Mixin: camelCase dict round-tripping with unknown keys kept in ``extra``."""

    _ALIASES: ClassVar[dict[str, tuple[str, ...]]] = {}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None):  # type: ignore[no-untyped-def]
        remaining = dict(data or {})
        kwargs: dict[str, Any] = {}
        for f in dataclasses.fields(cls):  # type: ignore[arg-type]
            if f.name == "extra":
                continue
            keys = (_camel(f.name), f.name, *cls._ALIASES.get(f.name, ()))
            for key in keys:
                if key in remaining:
                    raw = remaining.pop(key)
                    if raw is None:
                        break
                    target = _FIELD_TYPES.get(f.type if isinstance(f.type, str) else "", str)
                    kwargs[f.name] = _coerce(raw, target, key)
                    break
        return cls(**kwargs, extra=remaining)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = dict(self.extra)  # type: ignore[attr-defined]
        for f in dataclasses.fields(self):  # type: ignore[arg-type]
            if f.name == "extra":
                continue
            value = getattr(self, f.name)
            if value is not None:
                out[_camel(f.name)] = value
        return out


# Annotations are strings under ``from __future__ import annotations``
_FIELD_TYPES: dict[str, type] = {
    "str": str,
    "str | None": str,
    "int": int,
    "int | None": int,
    "float": float,
    "float | None": float,
    "bool": bool,
}


# ═══════════════════════════════════════════════════════════════
#  Limits
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True, kw_only=True)
class ProviderLimits(_CamelRecord):
    """Advisory usage limits. Stored and returned, never enforced here."""

    monthly_quota: int | None = None
    concurrent_requests: int | None = None
    cost_per_request: float | None = None
    extra: dict[str, Any] = field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════
#  Provider configuration variants
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True, kw_only=True)
class GenericProviderConfig(_CamelRecord):
    """Keyword extractors, content analysers and anything without extra knobs."""

    api_key: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    def with_api_key(self, api_key: str):  # type: ignore[no-untyped-def]
        return dataclasses.replace(self, api_key=api_key)

    @property
    def is_encrypted(self) -> bool:
        return self.api_key.startswith(ENCRYPTED_PREFIX)

    def masked(self) -> dict[str, Any]:
        data = self.to_dict()
        if self.api_key:
            data["apiKey"] = mask_secret(self.api_key)
        return data


@dataclass(frozen=True, slots=True, kw_only=True)
class AIEngineConfig(GenericProviderConfig):
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096
    temperature: float = 0.7
    base_url: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ScraperConfig(GenericProviderConfig):
    _ALIASES: ClassVar[dict[str, tuple[str, ...]]] = {"api_key": ("apiToken",)}

    base_url: str | None = None
    max_concurrency: int = 10
    default_actor: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class SiteAnalyzerConfig(GenericProviderConfig):
    _ALIASES: ClassVar[dict[str, tuple[str, ...]]] = {"request_delay_ms": ("requestDelay",)}

    max_depth: int = 3
    max_pages: int = 100
    request_delay_ms: int = 1000


ProviderConfig = Union[AIEngineConfig, ScraperConfig, SiteAnalyzerConfig, GenericProviderConfig]

CONFIG_TYPES: dict[ServiceType, type[GenericProviderConfig]] = {
    ServiceType.AI_ENGINE: AIEngineConfig,
    ServiceType.SCRAPER: ScraperConfig,
    ServiceType.SITE_ANALYZER: SiteAnalyzerConfig,
    ServiceType.KEYWORD_EXTRACTOR: GenericProviderConfig,
    ServiceType.CONTENT_ANALYZER: GenericProviderConfig,
}


def parse_provider_config(
    service_type: ServiceType,
    data: Mapping[str, Any] | None,
    *,
    require_credential: bool = False,
) -> ProviderConfig:
    """Build the typed config variant for ``service_type`` from a raw blob."""
    config = CONFIG_TYPES[service_type].from_dict(data)
    if require_credential and not config.api_key.strip():
        raise ValidationError(
            f"{service_type.value} configuration requires a non-empty 'apiKey'"
        )
    return config


def mask_secret(secret: str) -> str:
    if secret == CREDENTIAL_SENTINEL:
        return secret
    if len(secret) <= 8:
        return "****"
    return f"{secret[:4]}...{secret[-4:]}"


# ═══════════════════════════════════════════════════════════════
#  Credential resolution
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class ResolvedConfig:
    """A provider's effective configuration with its credential in the clear."""

    provider_name: str
    service_type: ServiceType
    config: ProviderConfig
    capabilities: tuple[str, ...]
    limits: ProviderLimits
    source: CredentialSource
    provider_id: int | None = None

    @property
    def api_key(self) -> str:
        return self.config.api_key

    @property
    def has_usable_credential(self) -> bool:
        key = self.config.api_key
        return bool(key.strip()) and key != CREDENTIAL_SENTINEL and not key.startswith(
            ENCRYPTED_PREFIX
        )

    def masked(self) -> dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "name": self.provider_name,
            "type": self.service_type.value,
            "source": self.source.value,
            "config": self.config.masked(),
            "capabilities": list(self.capabilities),
            "limits": self.limits.to_dict(),
            "usable": self.has_usable_credential,
        }


# ═══════════════════════════════════════════════════════════════
#  Priority synchronisation reports
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class DriftedMapping:
    mapping_id: int
    operation: str
    mapping_priority: int


@dataclass(frozen=True, slots=True)
class ProviderSyncStatus:
    provider_id: int
    provider_name: str
    priority: int
    mappings_count: int
    synced_mappings_count: int
    drifted: tuple[DriftedMapping, ...] = ()

    @property
    def unsynced_mappings_count(self) -> int:
        return self.mappings_count - self.synced_mappings_count

    @property
    def state(self) -> SyncState:
        return SyncState.DRIFTED if self.drifted else SyncState.SYNCED

    @property
    def sync_percentage(self) -> float:
        if self.mappings_count == 0:
            return 100.0
        return self.synced_mappings_count / self.mappings_count * 100


@dataclass(frozen=True, slots=True)
class SyncStatusReport:
    providers: tuple[ProviderSyncStatus, ...]

    @property
    def total_providers(self) -> int:
        return len(self.providers)

    @property
    def total_mappings(self) -> int:
        return sum(p.mappings_count for p in self.providers)

    @property
    def synced_mappings(self) -> int:
        return sum(p.synced_mappings_count for p in self.providers)

    @property
    def unsynced_mappings(self) -> int:
        return self.total_mappings - self.synced_mappings

    @property
    def overall_sync_percentage(self) -> float:
        total = self.total_mappings
        return self.synced_mappings / total * 100 if total else 100.0

    def for_provider(self, provider_id: int) -> ProviderSyncStatus | None:
        return next((p for p in self.providers if p.provider_id == provider_id), None)


@dataclass(frozen=True, slots=True)
class ProviderSyncResult:
    provider_id: int
    provider_name: str
    provider_priority: int
    mappings_count: int
    updated_count: int


@dataclass(frozen=True, slots=True)
class SyncReport:
    results: tuple[ProviderSyncResult, ...]

    @property
    def total_providers(self) -> int:
        return len(self.results)

    @property
    def total_mappings(self) -> int:
        return sum(r.mappings_count for r in self.results)

    @property
    def updated_mappings(self) -> int:
        return sum(r.updated_count for r in self.results)

    @property
    def message(self) -> str:
        return (
            f"Bulk synchronization completed. Updated {self.updated_mappings} out of "
            f"{self.total_mappings} operation mappings across {self.total_providers} "
            "service providers."
        )


# ═══════════════════════════════════════════════════════════════
#  Dispatch
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class DispatchResult(Generic[T]):
    """Outcome of a successful dispatch, tagged with the provider that served it."""

    result: T
    provider_used: str
    priority: int
    attempts: int = 1


@dataclass(frozen=True, slots=True)
class UsageStats:
    total_requests: int
    successful_requests: int
    total_cost: float
    total_tokens: int
    average_duration_ms: float

    @property
    def success_rate(self) -> float:
        if not self.total_requests:
            return 0.0
        return self.successful_requests / self.total_requests * 100
