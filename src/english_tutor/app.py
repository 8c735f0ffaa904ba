from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .conversation_routes import router as conversation_router
from .db import init_db
from .errors import TutorError
from .profile_routes import router as profile_router
from .pronunciation_routes import router as pronunciation_router

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
GENERIC_SERVER_MESSAGE = "Something went wrong while processing the request"


def setup_logging(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    package_logger = logging.getLogger("english_tutor")
    package_logger.setLevel(settings.log_level)
    if getattr(package_logger, "_tutor_configured", False):
        return

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(file_handler)
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    package_logger._tutor_configured = True  # type: ignore[attr-defined]


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    yield


async def tutor_error_handler(request: Request, exc: TutorError) -> JSONResponse:
    if exc.http_status == status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return _server_error(exc.http_status, exc.message)
    if exc.http_status >= 500:
        logger.warning("%s %s upstream failure: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.http_status,
        content={"success": False, "error": exc.message},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    if first.get("type") == "json_invalid":
        message = "Request body is not valid JSON"
    else:
        # Skip the "body" root and integer offsets/indexes.
        location = ".".join(
            part for part in first.get("loc", ()) if isinstance(part, str) and part != "body"
        )
        detail = first.get("msg", "Invalid request")
        message = f"Invalid value for {location}: {detail}" if location else detail
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": message},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _server_error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))


def _server_error(status_code: int, detail: str) -> JSONResponse:
    """500-class envelope; the underlying text is only echoed in debug mode."""
    message = detail if get_settings().debug else GENERIC_SERVER_MESSAGE
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": "Internal Server Error", "message": message},
    )


def create_app() -> FastAPI:
    setup_logging()
    application = FastAPI(title="English Tutor", lifespan=lifespan)
    application.add_exception_handler(TutorError, tutor_error_handler)
    application.add_exception_handler(RequestValidationError, request_validation_handler)
    application.add_exception_handler(Exception, unhandled_error_handler)
    application.include_router(conversation_router)
    application.include_router(pronunciation_router)
    application.include_router(profile_router)

    @application.get("/health")
    async def health() -> dict[str, object]:
        return {"success": True, "status": "ok"}

    return application


app = create_app()
