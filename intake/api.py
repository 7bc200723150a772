"""FastAPI app with the form submission and listing endpoints.

Components are built once in the lifespan and handed to routes through
``app.state``; nothing connects at import time.
"""
from __future__ import annotations

import logging
from contextlib import aclosing, asynccontextmanager

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, get_settings
from .db import Database
from .logging_config import setup_logging
from .notifications import MailNotifier, notify_submission
from .pipelines.assembler import StreamError, iter_form_parts
from .pipelines.ingestion import SubmissionIngestion
from .pipelines.sinks import FileSink, FileTooLargeError, StorageError, build_file_sink
from .ratelimit import FixedWindowRateLimiter, client_address, enforce_rate_limit
from .schemas import SubmissionOut
from .store import PersistenceError, SubmissionStore

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"
NOT_FOUND_MESSAGE = "Endpoint not found"
FILE_TOO_LARGE_MESSAGE = "File too large"
LIST_FAILED_MESSAGE = "Failed to fetch submissions"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "Content-Security-Policy": "default-src 'self'; frame-ancestors 'self'; object-src 'none'",
}


# Pydantic response models
class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class ErrorResponse(BaseModel):
    """Error response."""
    success: bool = False
    message: str


class SubmissionIdDTO(BaseModel):
    id: str


class SubmitFormResponse(BaseModel):
    """Form submission response."""
    success: bool = True
    message: str
    data: SubmissionIdDTO


class SubmissionListResponse(BaseModel):
    """Submission listing response."""
    success: bool = True
    count: int
    data: list[SubmissionOut] = Field(default_factory=list)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(message=message).model_dump())


# Dependencies
def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> SubmissionStore:
    return request.app.state.store


def get_file_sink(request: Request) -> FileSink:
    return request.app.state.file_sink


def get_notifier(request: Request) -> MailNotifier:
    return request.app.state.notifier


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect before serving, release on shutdown."""
    settings: Settings = app.state.settings
    setup_logging(settings.logging)
    logger.info("Application starting up (%s)", settings.environment.value)

    database = Database(settings.db.url, echo=settings.db.echo)
    try:
        await database.connect(unique_email=settings.unique_email)
    except Exception as e:
        logger.error("Database connection failed: %s", e)
        raise

    sink = build_file_sink(settings)
    await sink.prepare()

    app.state.database = database
    app.state.store = SubmissionStore(database)
    app.state.file_sink = sink
    app.state.notifier = MailNotifier(settings.mail)
    logger.info("Allowed frontend: %s", settings.frontend_url)

    try:
        yield
    finally:
        await database.dispose()
        logger.info("Application shutting down")


router = APIRouter(prefix="/api", dependencies=[Depends(enforce_rate_limit)])


@router.post("/submit-form", response_model=SubmitFormResponse)
async def submit_form(
    request: Request,
    background_tasks: BackgroundTasks,
    settings: Settings = Depends(get_app_settings),
    sink: FileSink = Depends(get_file_sink),
    store: SubmissionStore = Depends(get_store),
    notifier: MailNotifier = Depends(get_notifier),
) -> SubmitFormResponse:
    """Accept one multipart submission.

    Scalar parts become profile fields, files under the six document field
    names are stored (or measured) and everything is saved as one record.
    The confirmation mail goes out after the response.

    Any file over ``UPLOAD_MAX_FILE_SIZE`` answers 413 ``File too large``
    instead of the generic 500; nothing is saved in either case.
    """
    ingestion = SubmissionIngestion(sink, store)
    parts = iter_form_parts(
        request,
        max_files=settings.uploads.max_files,
        max_fields=settings.uploads.max_fields,
    )
    try:
        async with aclosing(parts):
            result = await ingestion.run(
                parts,
                client_ip=client_address(request),
                user_agent=request.headers.get("user-agent"),
            )
    except (StreamError, FileTooLargeError, StorageError, PersistenceError) as e:
        logger.error(
            "Error submitting form (failed while %s): %s",
            ingestion.failed_in.value if ingestion.failed_in else "receiving",
            e,
            exc_info=True,
        )
        raise

    background_tasks.add_task(notify_submission, notifier, result.submission_id, result.submission)

    return SubmitFormResponse(
        message="Form submitted successfully!",
        data=SubmissionIdDTO(id=result.submission_id),
    )


@router.get("/submissions", response_model=SubmissionListResponse, response_model_exclude_none=True)
async def list_submissions(store: SubmissionStore = Depends(get_store)):
    """All submissions, newest first."""
    try:
        submissions = await store.list_recent()
    except PersistenceError as e:
        logger.error("Fetch error: %s", e, exc_info=True)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, LIST_FAILED_MESSAGE)

    return SubmissionListResponse(count=len(submissions), data=submissions)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application; ``settings`` defaults to the environment."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        description="Contractor onboarding form intake with document uploads",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.rate_limiter = FixedWindowRateLimiter(
        settings.rate_limit.max_requests,
        settings.rate_limit.window_seconds,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_and_harden(request: Request, call_next):
        logger.info("[%s] %s", request.method, request.url.path)
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    # Exception handlers
    @app.exception_handler(FileTooLargeError)
    async def file_too_large_handler(request: Request, exc: FileTooLargeError):
        """Reject oversized uploads without saving anything."""
        return _error(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, FILE_TOO_LARGE_MESSAGE)

    @app.exception_handler(StreamError)
    @app.exception_handler(StorageError)
    @app.exception_handler(PersistenceError)
    async def ingestion_error_handler(request: Request, exc: Exception):
        """Stream, storage and database failures all look the same to clients."""
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = NOT_FOUND_MESSAGE if exc.status_code == status.HTTP_404_NOT_FOUND else str(exc.detail)
        response = _error(exc.status_code, message)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        # Runs in ServerErrorMiddleware, outside log_and_harden
        logger.error("Unhandled error on [%s] %s: %s", request.method, request.url.path, exc, exc_info=exc)
        response = _error(status.HTTP_500_INTERNAL_SERVER_ERROR, UNEXPECTED_ERROR_MESSAGE)
        response.headers.update(SECURITY_HEADERS)
        return response

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="ok", version=settings.version)

    @app.get("/")
    async def root():
        """Root endpoint with API info."""
        return {
            "app": settings.app_name,
            "version": settings.version,
            "endpoints": {
                "health": "/health",
                "submit_form": "/api/submit-form",
                "submissions": "/api/submissions",
                "docs": "/docs",
            },
        }

    app.include_router(router)
    return app


app = create_app()
