"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from turista.api.bookings import router as bookings_router
from turista.api.messages import router as messages_router
from turista.api.realtime import router as realtime_router
from turista.app_logging import configure_logging
from turista.config import parse_allowed_origins
from turista.containers import AppContainer
from turista.domain.errors import DomainError, ErrorCode

_UNPROCESSABLE = 422

_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.CAPACITY_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_GUEST_COUNT: _UNPROCESSABLE,
    ErrorCode.PAST_DATE: _UNPROCESSABLE,
    ErrorCode.DATE_NOT_OFFERED: _UNPROCESSABLE,
    ErrorCode.EMPTY_CONTENT: _UNPROCESSABLE,
    ErrorCode.INVALID_PARTICIPANTS: _UNPROCESSABLE,
    ErrorCode.READ_NOT_PERMITTED: status.HTTP_403_FORBIDDEN,
    ErrorCode.INVALID_BOOKING_STATE: status.HTTP_409_CONFLICT,
    ErrorCode.BOOKING_DATE_PASSED: status.HTTP_409_CONFLICT,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.CONFLICT_RETRY: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    origins = parse_allowed_origins(container.settings.cors_allowed_origins)
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(bookings_router)
    app.include_router(messages_router)
    app.include_router(realtime_router)

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
        status_code = _STATUS_BY_CODE.get(
            exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.warning(
                "%s %s failed: %s", request.method, request.url.path, exc
            )
        return JSONResponse(
            status_code=status_code,
            content={"error": {"code": exc.code.value, "message": exc.message}},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
