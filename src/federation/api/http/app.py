"""FastAPI application factory and setup."""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from src.federation.api.http.app_data import ApplicationDependencies, build_dependencies
from src.federation.api.http.routers.auth import router_auth
from src.federation.api.utils.app_startup import configure_logging
from src.federation.core.errors import SessionError
from src.federation.runtime.config.config_data import ConfigData
from src.federation.runtime.context import get_config


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        if request.app.state.config.app.environment == "production":
            response.headers.setdefault(
                "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
            )
        return response


async def log_requests(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    xff = request.headers.get("x-forwarded-for")
    client_ip = (
        xff.split(",")[0].strip()
        if xff
        else request.client.host
        if request.client
        else "unknown"
    )

    # The query string is never logged: callbacks carry codes and states
    base_ctx = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "client_ip": client_ip,
    }

    start = time.perf_counter()
    with logger.contextualize(**base_ctx):
        try:
            logger.info("request.start")
            response = await call_next(request)
        except Exception as exc:
            logger.bind(
                status_code=500,
                duration_ms=round((time.perf_counter() - start) * 1000, 1),
                error_type=type(exc).__name__,
            ).exception("request.error")
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal Server Error", "request_id": request_id},
                headers={"X-Request-ID": request_id},
            )

        logger.bind(
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 1),
        ).info("request.end")
        response.headers.setdefault("X-Request-ID", request_id)
        return response


async def session_error_handler(request: Request, exc: SessionError) -> JSONResponse:
    return JSONResponse(status_code=503, content={"message": exc.message})


async def startup(app: FastAPI) -> None:
    config: ConfigData = app.state.config
    logger.info("Starting up application in {} environment", config.app.environment)
    deps = await build_dependencies(config)
    app.state.app_dependencies = deps

    demo = config.demo_account
    if demo.enabled:
        if demo.password:
            deps.identity_resolver.seed_demo_account(
                demo.username,
                demo.password,
                email=demo.email,
                first_name=demo.first_name,
                last_name=demo.last_name,
            )
        else:
            logger.warning("Demo account enabled but no password configured; skipping")

    providers = deps.provider_registry.names()
    if not providers:
        logger.warning("No identity providers configured")
    logger.bind(providers=providers).info("Application ready")


async def shutdown(app: FastAPI) -> None:
    logger.info("Shutting down application")
    deps: ApplicationDependencies | None = getattr(app.state, "app_dependencies", None)
    if deps is None:
        return
    removed = await deps.session_manager.cleanup_expired()
    logger.bind(removed=removed).debug("Expired sessions purged")
    deps.database_service.dispose()


@asynccontextmanager
async def lifespan(app: FastAPI):
    await startup(app)
    try:
        yield
    finally:
        await shutdown(app)


def create_app(config: ConfigData | None = None) -> FastAPI:
    """Build the application; services are wired in the lifespan."""
    config = config or get_config()
    configure_logging(config)

    is_production = config.app.environment == "production"
    application = FastAPI(
        title="Identity Federation",
        lifespan=lifespan,
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
    )
    application.state.config = config

    application.add_middleware(SecurityHeadersMiddleware)
    if config.app.cors_origins:
        if is_production and "*" in config.app.cors_origins:
            raise RuntimeError(
                "CORS misconfigured: cannot use '*' with credentials in production"
            )
        application.add_middleware(
            CORSMiddleware,
            allow_origins=config.app.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )
    application.middleware("http")(log_requests)
    application.add_exception_handler(SessionError, session_error_handler)

    application.include_router(router_auth, prefix="/auth")

    @application.get("/health")
    async def health(request: Request) -> dict[str, str]:
        """Health check endpoint."""
        deps: ApplicationDependencies = request.app.state.app_dependencies
        database = "ok" if deps.database_service.health_check() else "unavailable"
        return {"status": "healthy", "database": database}

    return application


__all__ = ["create_app", "startup", "shutdown"]


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=5000, access_log=False)
