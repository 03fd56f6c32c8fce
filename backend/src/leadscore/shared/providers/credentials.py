"""Credential resolution: environment first, encrypted provider record second.

Environment variables follow ``{TYPE}_{NAME}_API_KEY`` where type and name are
upper-cased and every character outside ``[A-Z0-9]`` becomes ``_``.  Optional
settings hang off the key variable as suffixes, e.g.
``AI_ENGINE_CLAUDE_AI_API_KEY_MODEL`` or ``SCRAPER_APIFY_API_KEY_MAX_CONCURRENCY``.

Successful lookups are cached in a :class:`CredentialCache` shared by every
resolver in the process.  Registry writes invalidate it, through a
:class:`PendingInvalidations` when they run inside a transaction.
"""

from __future__ import annotations

import os
import re
import threading
from collections.abc import Mapping
from typing import Any

import orjson
import structlog

from leadscore.domain.entities import ServiceProvider
from leadscore.domain.enums import DEFAULT_CAPABILITIES, CredentialSource, ServiceType
from leadscore.domain.exceptions import ValidationError
from leadscore.domain.value_objects import (
    CREDENTIAL_SENTINEL,
    ProviderLimits,
    ResolvedConfig,
    parse_provider_config,
)
from leadscore.ports.outbound import ProviderRepository
from leadscore.shared.security.encryption import CredentialCipher, DecryptionError

logger = structlog.get_logger(__name__)

_NON_ALNUM = re.compile(r"[^A-Z0-9]")

ENV_LIMIT_DEFAULTS = {
    "monthlyQuota": 1000,
    "concurrentRequests": 5,
    "costPerRequest": 0.03,
}

# (env suffix, camelCase config key) per service type
_ENV_CONFIG_KEYS: dict[ServiceType, tuple[tuple[str, str], ...]] = {
    ServiceType.AI_ENGINE: (
        ("MODEL", "model"),
        ("MAX_TOKENS", "maxTokens"),
        ("TEMPERATURE", "temperature"),
        ("BASE_URL", "baseUrl"),
    ),
    ServiceType.SCRAPER: (
        ("BASE_URL", "baseUrl"),
        ("MAX_CONCURRENCY", "maxConcurrency"),
    ),
    ServiceType.SITE_ANALYZER: (
        ("MAX_DEPTH", "maxDepth"),
        ("MAX_PAGES", "maxPages"),
        ("REQUEST_DELAY", "requestDelay"),
    ),
}


def env_key(service_name: str, service_type: ServiceType | str) -> str:
    """``("Claude AI", AI_ENGINE)`` → ``AI_ENGINE_CLAUDE_AI_API_KEY``."""
    type_value = service_type.value if isinstance(service_type, ServiceType) else service_type
    name = _NON_ALNUM.sub("_", service_name.upper())
    kind = _NON_ALNUM.sub("_", type_value.upper())
    return f"{kind}_{name}_API_KEY"


def _load_json(raw: str, var: str) -> Any:
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError as exc:
        raise ValidationError(f"{var} is not valid JSON: {exc}") from exc


def _parse_capabilities(raw: str, var: str) -> tuple[str, ...]:
    raw = raw.strip()
    if raw.startswith("["):
        items = _load_json(raw, var)
    else:
        items = raw.split(",")
    return tuple(str(i).strip().upper() for i in items if str(i).strip())


# ═══════════════════════════════════════════════════════════════
#  Cache
# ═══════════════════════════════════════════════════════════════
CacheKey = tuple[str, ServiceType]


class CredentialCache:
    """Process-lifetime cache of resolved configs keyed by ``(name, type)``.

    Readers and writers may run on different threads (the ASGI worker and
    threadpool-backed sync routes), so every access takes the lock.

    Each key carries a version that :meth:`invalidate` bumps.  A resolver
    takes the version before reading the store and hands it back to
    :meth:`put`, which refuses the entry if an invalidation landed in between.
    """

    def __init__(self) -> None:
        self._entries: dict[CacheKey, ResolvedConfig] = {}
        self._versions: dict[CacheKey, int] = {}
        self._epoch = 0
        self._lock = threading.Lock()

    def get(self, name: str, service_type: ServiceType) -> ResolvedConfig | None:
        with self._lock:
            return self._entries.get((name, service_type))

    def version(self, name: str, service_type: ServiceType) -> tuple[int, int]:
        with self._lock:
            return (self._epoch, self._versions.get((name, service_type), 0))

    def put(self, resolved: ResolvedConfig, version: tuple[int, int] | None = None) -> bool:
        """Store ``resolved``; return ``False`` when ``version`` is stale."""
        key = (resolved.provider_name, resolved.service_type)
        with self._lock:
            if version is not None and version != (self._epoch, self._versions.get(key, 0)):
                return False
            self._entries[key] = resolved
            return True

    def invalidate(self, name: str, service_type: ServiceType) -> None:
        key = (name, service_type)
        with self._lock:
            self._entries.pop(key, None)
            self._versions[key] = self._versions.get(key, 0) + 1

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._epoch += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class PendingInvalidations:
    """Invalidations held back until the transaction that caused them commits.

    Registry writes made inside a request go through one of these.  The
    request's session dependency calls :meth:`flush` after ``commit()`` and
    :meth:`discard` after a rollback.
    """

    def __init__(self, cache: CredentialCache) -> None:
        self._cache = cache
        self._keys: dict[CacheKey, None] = {}

    def invalidate(self, name: str, service_type: ServiceType) -> None:
        self._keys[(name, service_type)] = None

    def flush(self) -> None:
        for name, service_type in self._keys:
            self._cache.invalidate(name, service_type)
        self._keys.clear()

    def discard(self) -> None:
        self._keys.clear()

    def __len__(self) -> int:
        return len(self._keys)


# ═══════════════════════════════════════════════════════════════
#  Resolver
# ═══════════════════════════════════════════════════════════════
class CredentialResolver:
    """Resolves a provider's effective configuration.

    Order of precedence:
      1. Process environment (``source=ENV``)
      2. Active provider row in the store, credential decrypted (``source=DATABASE``)

    A credential that fails to decrypt comes back as ``[ENCRYPTED]`` rather
    than raising; such results are never cached.
    """

    def __init__(
        self,
        providers: ProviderRepository,
        cipher: CredentialCipher,
        cache: CredentialCache,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._providers = providers
        self._cipher = cipher
        self._cache = cache
        self._environ = os.environ if environ is None else environ

    async def resolve(
        self, service_name: str, service_type: ServiceType
    ) -> ResolvedConfig | None:
        version = self._cache.version(service_name, service_type)
        cached = self._cache.get(service_name, service_type)
        if cached is not None:
            return cached

        resolved = self._from_environment(service_name, service_type)
        if resolved is None:
            resolved = await self._from_store(service_name, service_type)
        if resolved is None:
            logger.debug(
                "credential_not_found", provider=service_name, service_type=service_type.value
            )
            return None

        if resolved.has_usable_credential:
            self._cache.put(resolved, version)
        return resolved

    async def list_configured(self) -> list[ResolvedConfig]:
        """Every env-declared provider followed by every active stored provider."""
        configured: list[ResolvedConfig] = []
        for var in sorted(self._environ):
            parsed = self._split_env_var(var)
            if parsed is None:
                continue
            name, service_type = parsed
            resolved = self._from_environment(name, service_type)
            if resolved is not None:
                configured.append(resolved)

        for provider in await self._providers.list(is_active=True):
            configured.append(self._decrypted(provider))
        return configured

    # ── Environment ──────────────────────────────────────────
    def _from_environment(
        self, service_name: str, service_type: ServiceType
    ) -> ResolvedConfig | None:
        key_var = env_key(service_name, service_type)
        api_key = self._environ.get(key_var, "").strip()
        if not api_key:
            return None

        raw: dict[str, Any] = {"apiKey": api_key}
        for suffix, field_name in _ENV_CONFIG_KEYS.get(service_type, ()):
            value = self._environ.get(f"{key_var}_{suffix}")
            if value:
                raw[field_name] = value

        caps_raw = self._environ.get(f"{key_var}_CAPABILITIES")
        capabilities = (
            _parse_capabilities(caps_raw, f"{key_var}_CAPABILITIES")
            if caps_raw
            else DEFAULT_CAPABILITIES.get(service_type, ())
        )

        limits_raw = self._environ.get(f"{key_var}_LIMITS")
        if limits_raw:
            limits_data = _load_json(limits_raw, f"{key_var}_LIMITS")
        else:
            limits_data = {
                "monthlyQuota": self._environ.get(
                    f"{key_var}_MONTHLY_QUOTA", ENV_LIMIT_DEFAULTS["monthlyQuota"]
                ),
                "concurrentRequests": self._environ.get(
                    f"{key_var}_CONCURRENT_REQUESTS", ENV_LIMIT_DEFAULTS["concurrentRequests"]
                ),
                "costPerRequest": self._environ.get(
                    f"{key_var}_COST_PER_REQUEST", ENV_LIMIT_DEFAULTS["costPerRequest"]
                ),
            }

        return ResolvedConfig(
            provider_name=service_name,
            service_type=service_type,
            config=parse_provider_config(service_type, raw),
            capabilities=capabilities,
            limits=ProviderLimits.from_dict(limits_data),
            source=CredentialSource.ENV,
        )

    @staticmethod
    def _split_env_var(var: str) -> tuple[str, ServiceType] | None:
        if not var.endswith("_API_KEY"):
            return None
        # Longest type first so KEYWORD_EXTRACTOR is not read as a name
        for service_type in sorted(ServiceType, key=lambda t: len(t.value), reverse=True):
            prefix = f"{service_type.value}_"
            if var.startswith(prefix):
                name = var[len(prefix):-len("_API_KEY")]
                return (name, service_type) if name else None
        return None

    # ── Store ────────────────────────────────────────────────
    async def _from_store(
        self, service_name: str, service_type: ServiceType
    ) -> ResolvedConfig | None:
        provider = await self._providers.find_by_name_type(
            service_name, service_type, active_only=True
        )
        if provider is None:
            return None
        return self._decrypted(provider)

    def _decrypted(self, provider: ServiceProvider) -> ResolvedConfig:
        config = provider.config
        if self._cipher.is_encrypted(config.api_key):
            try:
                config = config.with_api_key(self._cipher.decrypt(config.api_key))
            except DecryptionError:
                logger.warning(
                    "credential_decrypt_failed",
                    provider=provider.name,
                    provider_id=provider.id,
                )
                config = config.with_api_key(CREDENTIAL_SENTINEL)
        return ResolvedConfig(
            provider_name=provider.name,
            service_type=provider.service_type,
            config=config,
            capabilities=provider.capabilities,
            limits=provider.limits,
            source=CredentialSource.DATABASE,
            provider_id=provider.id,
        )
