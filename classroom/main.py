"""FastAPI application entrypoint.

``create_app()`` builds the app for one service (``admin``, ``teacher``,
``student``) or for all three in one process.  The circuit breaker
registry, the pooled ``ServiceClient`` and the verifier are built once
here and shared by every request.

Run with ``uvicorn classroom.main:app``; ``CLASSROOM_SERVICE_NAME``
selects the service.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from classroom.core.config import Settings
from classroom.core.errors import ClassroomError, StructuredErrorResponse
from classroom.core.logging_config import configure_logging
from classroom.models.schemas import HealthResponse, ReadyResponse
from classroom.resilience.circuit_breaker import CircuitBreakerRegistry
from classroom.security.authn import BearerAuthMiddleware
from classroom.service_client import ServiceClient
from classroom.services import admin, student, teacher
from classroom.storage import InMemoryRepository, Repository
from classroom.verification import CrossServiceVerifier

logger = logging.getLogger(__name__)

_ROUTERS = {
    "admin": (admin.router,),
    "teacher": (teacher.router,),
    "student": (student.router,),
    "all": (admin.router, teacher.router, student.router),
}


def create_app(
    settings: Settings | None = None,
    *,
    repository: Repository | None = None,
    service_client: ServiceClient | None = None,
) -> FastAPI:
    """Build the FastAPI app and its long-lived collaborators."""
    settings = settings or Settings()
    configure_logging(settings.LOG_LEVEL)

    if service_client is None:
        breakers = CircuitBreakerRegistry(
            settings.target_urls(),
            failure_threshold=settings.CIRCUIT_BREAKER_THRESHOLD,
            recovery_timeout=settings.CIRCUIT_BREAKER_RECOVERY_SECONDS,
        )
        service_client = ServiceClient.from_settings(settings, breakers)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "starting %s service, targets: %s",
            settings.SERVICE_NAME,
            ", ".join(f"{t.name}={t.base_url}" for t in service_client.targets.values()),
        )
        yield
        await service_client.close()

    app = FastAPI(
        title=f"classroom-{settings.SERVICE_NAME}",
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.started_at = time.monotonic()
    app.state.repository = repository if repository is not None else InMemoryRepository()
    app.state.service_client = service_client
    app.state.verifier = CrossServiceVerifier(service_client, deadline=settings.REQUEST_TIMEOUT_SECONDS)

    # Starlette add_middleware prepends, so LAST added = OUTERMOST.
    app.add_middleware(BearerAuthMiddleware, settings=settings)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next) -> Response:
        """Assign or preserve a unique request ID on every request."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(ClassroomError)
    async def classroom_error_handler(request: Request, exc: ClassroomError) -> JSONResponse:
        request_id = getattr(request.state, "request_id", "") or str(uuid.uuid4())
        body = StructuredErrorResponse.from_exception(exc, request_id)
        return JSONResponse(status_code=exc.status_code, content=body.model_dump())

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Return service health, uptime and circuit breaker snapshots."""
        return HealthResponse(
            service=f"classroom-{settings.SERVICE_NAME}",
            version=settings.SERVICE_VERSION,
            status="healthy",
            uptime_seconds=round(time.monotonic() - app.state.started_at, 2),
            circuits=service_client.circuit_breakers.all_snapshots(),
        )

    @app.get("/ready", response_model=ReadyResponse)
    async def ready() -> Response:
        """503 until the repository answers."""
        try:
            await app.state.repository.ping()
        except Exception:
            logger.warning("readiness check failed", exc_info=True)
            return JSONResponse(status_code=503, content={"status": "unavailable"})
        return JSONResponse(content={"status": "ok"})

    for router in _ROUTERS[settings.SERVICE_NAME]:
        app.include_router(router)

    return app


app = create_app()
