"""Global exception handlers: map domain errors to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
import structlog

from leadscore.domain.exceptions import (
    AllProvidersFailedError,
    AuthenticationError,
    AuthorisationError,
    ConflictError,
    DispatchTimeoutError,
    DomainError,
    NoProvidersConfiguredError,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


def _body(exc: DomainError) -> dict[str, str]:
    return {"code": exc.code, "message": exc.message}


def register_exception_handlers(app: FastAPI) -> None:
    """Register all domain→HTTP exception mappings."""

    @app.exception_handler(ValidationError)
    async def handle_validation(request: Request, exc: ValidationError) -> ORJSONResponse:
        return ORJSONResponse(status_code=422, content=_body(exc))

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError) -> ORJSONResponse:
        return ORJSONResponse(status_code=404, content=_body(exc))

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError) -> ORJSONResponse:
        return ORJSONResponse(status_code=409, content=_body(exc))

    @app.exception_handler(NoProvidersConfiguredError)
    async def handle_no_providers(
        request: Request, exc: NoProvidersConfiguredError
    ) -> ORJSONResponse:
        logger.warning("no_providers_http", operation=exc.operation)
        return ORJSONResponse(status_code=503, content=_body(exc))

    @app.exception_handler(AllProvidersFailedError)
    async def handle_all_failed(
        request: Request, exc: AllProvidersFailedError
    ) -> ORJSONResponse:
        logger.error(
            "all_providers_failed_http",
            operation=exc.operation,
            attempts=exc.attempts,
            last_provider=exc.last_provider,
        )
        content: dict[str, object] = {**_body(exc), "errors": exc.errors}
        return ORJSONResponse(status_code=502, content=content)

    @app.exception_handler(DispatchTimeoutError)
    async def handle_timeout(request: Request, exc: DispatchTimeoutError) -> ORJSONResponse:
        logger.error("dispatch_timeout_http", operation=exc.operation, attempts=exc.attempts)
        return ORJSONResponse(status_code=504, content=_body(exc))

    @app.exception_handler(AuthenticationError)
    async def handle_authn(request: Request, exc: AuthenticationError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=401,
            content=_body(exc),
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(AuthorisationError)
    async def handle_authz(request: Request, exc: AuthorisationError) -> ORJSONResponse:
        return ORJSONResponse(status_code=403, content=_body(exc))

    @app.exception_handler(DomainError)
    async def handle_domain(request: Request, exc: DomainError) -> ORJSONResponse:
        logger.warning("domain_error_http", code=exc.code, message=exc.message)
        return ORJSONResponse(status_code=400, content=_body(exc))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("unhandled_error", path=request.url.path)
        return ORJSONResponse(
            status_code=500,
            content={"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"},
        )
