import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cinema_booking.api.v1 import (
    routes_admin,
    routes_health,
    routes_movie,
    routes_reservation,
    routes_showtime,
    routes_theater,
)
from cinema_booking.core.config import settings
from cinema_booking.core.exceptions import BookingError, ErrorCode
from cinema_booking.core.logger import LoggingMiddleware, setup_logging
from cinema_booking.db import session
from cinema_booking.redis import close_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.ENV == "development":
        await session.init_db()
    yield
    await close_redis()
    await session.engine.dispose()


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, ex: BookingError):
        return JSONResponse(status_code=ex.status_code, content=ex.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, ex: RequestValidationError):
        return JSONResponse(status_code=422, content={
            "code": ErrorCode.VALIDATION_ERROR.value,
            "message": "Invalid request",
            "details": {"errors": [
                {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
                for error in ex.errors()
            ]},
        })

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, ex: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"code": "INTERNAL_ERROR", "message": "Internal server error"})


def create_app() -> FastAPI:
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.PROJECT_VERSION,
        description=settings.PROJECT_DESCRIPTION,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    register_exception_handlers(app)

    for router in (
        routes_health.router,
        routes_movie.router,
        routes_movie.genre_router,
        routes_theater.router,
        routes_showtime.router,
        routes_reservation.router,
        routes_admin.router,
    ):
        app.include_router(router, prefix=settings.API_V1_PREFIX)

    @app.get("/")
    async def root():
        return {"message": "Cinema booking backend is running"}

    return app


app = create_app()
