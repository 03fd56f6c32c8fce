"""Failover dispatcher: the entry-point for every provider-backed operation.

Builds the ordered candidate list for an operation from the mapping table,
resolves each candidate's credentials and calls ``invoke`` on them one at a
time.  The first success wins; every failure is recorded and the next
candidate is tried.  Candidates are never raced and never retried.

States per call::

    BUILDING_CANDIDATES → TRYING(i) → SUCCEEDED | EXHAUSTED
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from leadscore.domain.entities import MappedProvider, ServiceUsage
from leadscore.domain.enums import normalize_operation
from leadscore.domain.exceptions import (
    AllProvidersFailedError,
    CredentialNotFoundError,
    DispatchTimeoutError,
    NoProvidersConfiguredError,
    ProviderInvocationFailedError,
    ValidationError,
)
from leadscore.domain.value_objects import DispatchResult, ResolvedConfig
from leadscore.ports.outbound import MappingRepository, UsageRecorder
from leadscore.shared.observability.metrics import (
    DISPATCH_ATTEMPTS,
    DISPATCH_RESULTS,
    PROVIDER_LATENCY,
)
from leadscore.shared.providers.credentials import CredentialResolver

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Invoke = Callable[[ResolvedConfig], Awaitable[T]]


class FailoverDispatcher:
    """Sequential priority failover across the providers mapped to an operation.

    Usage::

        dispatcher = FailoverDispatcher(mappings, resolver)

        outcome = await dispatcher.dispatch(
            "AI_DISCOVERY",
            lambda cfg: llm.complete(cfg, system_prompt=..., user_prompt=...),
        )
        outcome.result, outcome.provider_used, outcome.priority

    ``invoke`` receives the candidate's :class:`ResolvedConfig` with the
    credential in the clear and must return the result or raise.  It owns
    its own per-call timeout; ``timeout_s`` here bounds the whole loop and is
    only checked between attempts.
    """

    def __init__(
        self,
        mappings: MappingRepository,
        resolver: CredentialResolver,
        *,
        usage: UsageRecorder | None = None,
        timeout_s: float | None = None,
    ) -> None:
        self._mappings = mappings
        self._resolver = resolver
        self._usage = usage
        self._timeout_s = timeout_s or None

    # ── Candidate list ───────────────────────────────────────
    async def candidates(self, operation: str) -> list[MappedProvider]:
        """Enabled mappings to active providers, best first."""
        rows = await self._mappings.list_for_operation(operation)
        eligible = [r for r in rows if r.is_eligible]
        eligible.sort(key=lambda r: r.sort_key)
        return eligible

    # ── Main entry-point ─────────────────────────────────────
    async def dispatch(self, operation: str, invoke: Invoke[T]) -> DispatchResult[T]:
        """Run ``invoke`` against each candidate in order until one succeeds.

        Raises:
            NoProvidersConfiguredError: No eligible candidate; ``invoke`` is never called.
            AllProvidersFailedError: Every candidate was tried once and failed.
            DispatchTimeoutError: The dispatch deadline passed between attempts.
        """
        operation = normalize_operation(operation)
        chain = await self.candidates(operation)
        if not chain:
            DISPATCH_RESULTS.labels(operation=operation, outcome="no_providers").inc()
            logger.warning("dispatch_no_providers", operation=operation)
            raise NoProvidersConfiguredError(operation)

        errors: dict[str, str] = {}
        last_error: BaseException | None = None
        last_provider = ""
        attempts = 0
        started = time.monotonic()

        for index, candidate in enumerate(chain):
            provider = candidate.provider
            if index and self._deadline_passed(started):
                DISPATCH_RESULTS.labels(operation=operation, outcome="timeout").inc()
                logger.warning(
                    "dispatch_timeout",
                    operation=operation,
                    attempts=attempts,
                    timeout_s=self._timeout_s,
                )
                raise DispatchTimeoutError(
                    operation, attempts=attempts, timeout_s=self._timeout_s or 0.0
                )

            attempts += 1
            last_provider = provider.name
            log = logger.bind(
                operation=operation,
                provider=provider.name,
                priority=provider.priority,
                attempt=attempts,
            )

            resolved = await self._resolve(candidate)
            if resolved is None or not resolved.has_usable_credential:
                last_error = CredentialNotFoundError(provider.name, provider.service_type.value)
                errors[provider.name] = last_error.message
                DISPATCH_ATTEMPTS.labels(
                    operation=operation, provider=provider.name, outcome="no_credential"
                ).inc()
                log.warning("provider_credential_unavailable")
                continue

            start = time.monotonic()
            try:
                result = await invoke(resolved)
            except Exception as exc:
                latency_s = time.monotonic() - start
                error_msg = f"{type(exc).__name__}: {exc}"
                last_error = exc
                errors[provider.name] = error_msg
                PROVIDER_LATENCY.labels(operation=operation, provider=provider.name).observe(latency_s)
                DISPATCH_ATTEMPTS.labels(
                    operation=operation, provider=provider.name, outcome="failure"
                ).inc()
                log.warning(
                    "provider_request_failed",
                    error=error_msg,
                    latency_ms=round(latency_s * 1000, 1),
                )
                await self._record(candidate, operation, resolved, False, latency_s, error_msg)
                continue

            latency_s = time.monotonic() - start
            PROVIDER_LATENCY.labels(operation=operation, provider=provider.name).observe(latency_s)
            DISPATCH_ATTEMPTS.labels(
                operation=operation, provider=provider.name, outcome="success"
            ).inc()
            DISPATCH_RESULTS.labels(operation=operation, outcome="succeeded").inc()
            await self._record(candidate, operation, resolved, True, latency_s, None)

            if attempts > 1:
                log.info("provider_failover_success", failed_providers=list(errors))
            else:
                log.info("provider_request_success", latency_ms=round(latency_s * 1000, 1))
            return DispatchResult(
                result=result,
                provider_used=provider.name,
                priority=provider.priority,
                attempts=attempts,
            )

        DISPATCH_RESULTS.labels(operation=operation, outcome="exhausted").inc()
        logger.error(
            "dispatch_exhausted", operation=operation, attempts=attempts, errors=errors
        )
        if last_error is None:
            raise NoProvidersConfiguredError(operation)
        cause = ProviderInvocationFailedError(last_provider, operation, str(last_error))
        cause.__cause__ = last_error
        raise AllProvidersFailedError(
            operation,
            attempts=attempts,
            last_provider=last_provider,
            last_error=last_error,
            errors=errors,
        ) from cause

    # ── Helpers ──────────────────────────────────────────────
    def _deadline_passed(self, started: float) -> bool:
        return self._timeout_s is not None and time.monotonic() - started >= self._timeout_s

    async def _resolve(self, candidate: MappedProvider) -> ResolvedConfig | None:
        provider = candidate.provider
        try:
            return await self._resolver.resolve(provider.name, provider.service_type)
        except ValidationError as exc:
            # Malformed env overrides make this candidate unusable, not the dispatch
            logger.warning("provider_config_invalid", provider=provider.name, error=exc.message)
            return None

    async def _record(
        self,
        candidate: MappedProvider,
        operation: str,
        resolved: ResolvedConfig,
        success: bool,
        latency_s: float,
        error: str | None,
    ) -> None:
        if self._usage is None or candidate.provider.id is None:
            return
        await self._usage.record(
            ServiceUsage(
                provider_id=candidate.provider.id,
                operation=operation,
                success=success,
                duration_ms=round(latency_s * 1000, 3),
                cost=resolved.limits.cost_per_request if success else None,
                error_message=error,
            )
        )
