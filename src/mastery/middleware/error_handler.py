"""Global error handlers: every error leaves as JSON ``{"detail": ...}``."""

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mastery.gamification.activity import UnknownActionError
from mastery.scheduler.service import ScheduleNotFoundError, StaleScheduleError
from mastery.scheduler.sm2 import InvalidQualityRating

logger = structlog.get_logger()


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers, including the domain errors."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(InvalidQualityRating)
    async def invalid_quality_handler(_request: Request, exc: InvalidQualityRating) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(UnknownActionError)
    async def unknown_action_handler(_request: Request, exc: UnknownActionError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(StaleScheduleError)
    async def stale_schedule_handler(_request: Request, exc: StaleScheduleError) -> JSONResponse:
        logger.info("stale_schedule", card_id=exc.card_id, expected_version=exc.expected_version)
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(ScheduleNotFoundError)
    async def schedule_not_found_handler(_request: Request, exc: ScheduleNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": f"No schedule for card {exc}"})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions — always return JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
