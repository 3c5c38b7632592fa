"""Entry point for the weekvault API service."""

import time
import uuid
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.logging_config import reset_request_id, set_request_id, setup_logging
from controller import config
from controller.audit_task import IntegritySweepTask
from controller.auth import normalize_caller
from controller.repositories.week_repository import WeekRepository
from controller.routes.admin_routes import router as admin_router
from controller.routes.file_routes import router as file_router
from controller.routes.week_routes import router as week_router
from controller.services.integrity_auditor import IntegrityAuditor
from controller.services.week_linker import WeekAssetLinker
from storage.backend import StorageBackend
from storage.chunk_store import ChunkStore
from storage.exceptions import (
    DeadlineExceededError,
    DuplicateError,
    InvalidIdentifierError,
    InvalidRequestError,
    NotFoundError,
    RangeError,
    StorageException,
    StorageIOError,
    StorageUnavailableError,
    UploadTooLargeError,
)
from storage.file_catalog import FileCatalog
from storage.range_streamer import RangeStreamer

logger = setup_logging('controller')


def _error_response(request: Request, exc: Exception, status_code: int, code: str, headers=None) -> JSONResponse:
    request_id = getattr(request.state, 'request_id', 'unknown')
    message = f"{type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}"
    if status_code >= 500:
        logger.error(message, exc_info=exc)
    else:
        logger.warning(message)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "code": code},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the storage exception taxonomy to HTTP responses.
    """

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return _error_response(request, exc, status.HTTP_404_NOT_FOUND, "NOT_FOUND")

    @app.exception_handler(DuplicateError)
    async def duplicate_handler(request: Request, exc: DuplicateError):
        return _error_response(request, exc, status.HTTP_409_CONFLICT, "DUPLICATE")

    @app.exception_handler(RangeError)
    async def range_handler(request: Request, exc: RangeError):
        headers = {"Accept-Ranges": "bytes"}
        if exc.length is not None:
            headers["Content-Range"] = f"bytes */{exc.length}"
        return _error_response(
            request, exc, status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE, "RANGE_NOT_SATISFIABLE", headers
        )

    @app.exception_handler(InvalidIdentifierError)
    async def invalid_identifier_handler(request: Request, exc: InvalidIdentifierError):
        return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INVALID_IDENTIFIER")

    @app.exception_handler(UploadTooLargeError)
    async def upload_too_large_handler(request: Request, exc: UploadTooLargeError):
        return _error_response(request, exc, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "UPLOAD_TOO_LARGE")

    @app.exception_handler(InvalidRequestError)
    async def invalid_request_handler(request: Request, exc: InvalidRequestError):
        return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INVALID_REQUEST")

    @app.exception_handler(StorageUnavailableError)
    async def storage_unavailable_handler(request: Request, exc: StorageUnavailableError):
        return _error_response(request, exc, status.HTTP_503_SERVICE_UNAVAILABLE, "STORAGE_UNAVAILABLE")

    @app.exception_handler(StorageIOError)
    async def storage_io_handler(request: Request, exc: StorageIOError):
        return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "STORAGE_IO_ERROR")

    @app.exception_handler(DeadlineExceededError)
    async def deadline_handler(request: Request, exc: DeadlineExceededError):
        return _error_response(request, exc, status.HTTP_504_GATEWAY_TIMEOUT, "DEADLINE_EXCEEDED")

    @app.exception_handler(StorageException)
    async def storage_exception_handler(request: Request, exc: StorageException):
        return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR")


def create_app(
    backend: Optional[StorageBackend] = None,
    chunk_size: int = config.CHUNK_SIZE_BYTES,
    max_photos: int = config.MAX_PHOTOS,
    max_upload_bytes: int = config.MAX_UPLOAD_BYTES,
    cache_max_age: int = config.CACHE_MAX_AGE_SECONDS,
    audit_interval_seconds: int = config.AUDIT_INTERVAL_SECONDS,
) -> FastAPI:
    """
    Build the API application and wire its components.

    Args:
        backend: Storage backend; defaults to one built from WEEKVAULT_* settings
        chunk_size: Chunk size for new uploads
        max_photos: Photo limit per week
        max_upload_bytes: Size limit per uploaded file
        cache_max_age: Cache-Control max-age for served files
        audit_interval_seconds: Interval of the background sweep, 0 disables it

    Returns:
        Configured FastAPI application
    """
    if backend is None:
        backend = StorageBackend(
            config.DATABASE_PATH,
            bucket_name=config.BUCKET_NAME,
            timeout=config.DB_TIMEOUT_SECONDS,
        )

    app = FastAPI(
        title="weekvault",
        description="Chunked file storage and week asset service for the community-service program",
        version="1.0.0"
    )

    chunk_store = ChunkStore(backend, chunk_size=chunk_size)
    catalog = FileCatalog(backend)
    weeks = WeekRepository(backend)
    auditor = IntegrityAuditor(chunk_store, catalog, weeks)

    app.state.backend = backend
    app.state.chunk_store = chunk_store
    app.state.catalog = catalog
    app.state.weeks = weeks
    app.state.linker = WeekAssetLinker(
        chunk_store, catalog, weeks, max_photos=max_photos, max_upload_bytes=max_upload_bytes
    )
    app.state.streamer = RangeStreamer(chunk_store, catalog, cache_max_age=cache_max_age)
    app.state.auditor = auditor
    app.state.sweep_task = IntegritySweepTask(auditor, interval_seconds=audit_interval_seconds)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Middleware to log all HTTP requests and responses.
        """
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        token = set_request_id(request_id)

        start_time = time.time()
        caller = normalize_caller(request.headers.get(config.CALLER_HEADER))

        try:
            logger.info(
                f"Request started: {request.method} {request.url.path} [caller={caller or 'anonymous'}]"
            )

            response = await call_next(request)

            duration = time.time() - start_time
            logger.info(
                f"Request completed: {request.method} {request.url.path} "
                f"status={response.status_code} duration={duration:.3f}s"
            )
        finally:
            reset_request_id(token)

        response.headers["X-Request-ID"] = request_id
        return response

    @app.on_event("startup")
    async def startup_event():
        """
        Create the schema and start the integrity sweep.
        """
        logger.info("weekvault service starting up...")
        backend.init_schema()
        logger.info("Database initialized")

        if audit_interval_seconds > 0:
            await app.state.sweep_task.start()
        else:
            logger.info("Integrity sweep disabled")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("weekvault service shutting down...")
        await app.state.sweep_task.stop()

    register_exception_handlers(app)

    app.include_router(week_router)
    app.include_router(file_router)
    app.include_router(admin_router)

    @app.get("/")
    async def root():
        """
        Root endpoint for health check.
        """
        return {"message": "weekvault API", "status": "running"}

    @app.get("/health")
    async def health_check():
        """
        Health check endpoint for Docker healthcheck.
        Returns 200 if service is alive.
        """
        return {"status": "healthy", "service": "weekvault"}

    @app.get("/ready")
    async def ready_check():
        """
        Readiness check endpoint.
        Verifies the database answers and reports row counts.
        """
        try:
            backend.ping()
            counts = backend.counts()
        except StorageIOError as e:
            logger.warning(f"Readiness check failed: {e}")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"ready": False, "database": f"error: {e}"}
            )

        return {
            "ready": True,
            "database": "ok",
            "bucket": backend.bucket_name,
            "counts": counts,
            "sweep_running": app.state.sweep_task.running,
        }

    return app


app = create_app()


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "controller.main:app",
        host=config.CONTROLLER_HOST,
        port=config.CONTROLLER_PORT,
    )


if __name__ == "__main__":
    main()
