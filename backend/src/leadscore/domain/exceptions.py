"""Domain-specific exception hierarchy.

All exceptions inherit from ``DomainError`` so callers can catch the entire
family in one clause while still discriminating on subclass.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for all domain-layer errors."""

    def __init__(self, message: str, *, code: str = "DOMAIN_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# ── Validation ───────────────────────────────────────────────
class ValidationError(DomainError):
    """Input failed domain validation rules."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="VALIDATION_ERROR")


# ── Lookup ───────────────────────────────────────────────────
class NotFoundError(DomainError):
    """Base for missing-row errors."""


class ProviderNotFoundError(NotFoundError):
    def __init__(self, provider_id: int) -> None:
        self.provider_id = provider_id
        super().__init__(
            f"Service provider {provider_id!r} not found", code="PROVIDER_NOT_FOUND"
        )


class MappingNotFoundError(NotFoundError):
    def __init__(self, mapping_id: int) -> None:
        self.mapping_id = mapping_id
        super().__init__(
            f"Operation mapping {mapping_id!r} not found", code="MAPPING_NOT_FOUND"
        )


class CredentialNotFoundError(NotFoundError):
    def __init__(self, name: str, service_type: str) -> None:
        self.name = name
        self.service_type = service_type
        super().__init__(
            f"No usable credential for {name!r} ({service_type})",
            code="CREDENTIAL_NOT_FOUND",
        )


# ── Conflicts ────────────────────────────────────────────────
class ConflictError(DomainError):
    """A uniqueness constraint would be violated."""


class ProviderConflictError(ConflictError):
    def __init__(self, name: str, service_type: str) -> None:
        super().__init__(
            f"A {service_type} provider named {name!r} already exists",
            code="PROVIDER_CONFLICT",
        )


class MappingConflictError(ConflictError):
    def __init__(self, operation: str, provider_id: int) -> None:
        super().__init__(
            f"Provider {provider_id!r} is already mapped to {operation!r}",
            code="MAPPING_CONFLICT",
        )


# ── Dispatch ─────────────────────────────────────────────────
class ProviderInvocationFailedError(DomainError):
    """One candidate failed. Recovered inside dispatch, never raised to callers."""

    def __init__(self, provider: str, operation: str, reason: str) -> None:
        self.provider = provider
        self.operation = operation
        self.reason = reason
        super().__init__(
            f"[{provider}] {operation} failed: {reason}",
            code="PROVIDER_INVOCATION_FAILED",
        )


class NoProvidersConfiguredError(DomainError):
    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(
            f"No enabled providers are configured for {operation!r}",
            code="NO_PROVIDERS_CONFIGURED",
        )


class AllProvidersFailedError(DomainError):
    """Every candidate for an operation was tried once and failed."""

    def __init__(
        self,
        operation: str,
        *,
        attempts: int,
        last_provider: str,
        last_error: BaseException,
        errors: dict[str, str] | None = None,
    ) -> None:
        self.operation = operation
        self.attempts = attempts
        self.last_provider = last_provider
        self.last_error = last_error
        self.errors = errors or {}
        super().__init__(
            f"All {attempts} provider(s) failed for {operation!r}; "
            f"last failure from {last_provider!r}: {last_error}",
            code="ALL_PROVIDERS_FAILED",
        )


class DispatchTimeoutError(DomainError):
    def __init__(self, operation: str, *, attempts: int, timeout_s: float) -> None:
        self.operation = operation
        self.attempts = attempts
        self.timeout_s = timeout_s
        super().__init__(
            f"Dispatch of {operation!r} exceeded {timeout_s}s after {attempts} attempt(s)",
            code="DISPATCH_TIMEOUT",
        )


# ── Auth ─────────────────────────────────────────────────────
class AuthenticationError(DomainError):
    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message, code="AUTHENTICATION_ERROR")


class AuthorisationError(DomainError):
    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message, code="AUTHORISATION_ERROR")
