import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from erp_auth.auth.engine import AuthEngine, build_engine
from erp_auth.cache.redis_cache import RedisSessionCache
from erp_auth.cache.session_cache import MemorySessionCache, SessionCache
from erp_auth.configs.logging_config import get_logger, setup_logging
from erp_auth.configs.settings import Settings, get_settings
from erp_auth.errors import AppError, AuthError
from erp_auth.repositories.company_repository import CompanyRepository
from erp_auth.repositories.mongo import get_mongo_client, get_mongo_db
from erp_auth.repositories.redis_client import redis_client
from erp_auth.repositories.user_repository import UserRepository
from erp_auth.routers.access_router import router as access_router
from erp_auth.routers.auth_router import router as auth_router
from erp_auth.routers.health_router import router as health_router
from erp_auth.services.access_admin_service import AccessAdminService
from erp_auth.services.login_service import LoginService
from erp_auth.utils.response import failure

log = get_logger(__name__)


async def build_session_cache(settings: Settings) -> SessionCache:
    if settings.session_cache_backend == "redis":
        client = await redis_client.connect(settings.redis_url)
        log.info("startup.session_cache backend=redis prefix=%s", settings.session_cache_prefix)
        return RedisSessionCache(client, prefix=settings.session_cache_prefix)
    log.info(
        "startup.session_cache backend=memory ttl=%s sweep=%s",
        settings.session_cache_ttl_seconds,
        settings.session_cache_sweep_seconds,
    )
    return MemorySessionCache(sweep_interval=settings.session_cache_sweep_seconds)


def create_app(
    settings: Settings | None = None,
    *,
    engine: AuthEngine | None = None,
    access_service: AccessAdminService | None = None,
    login_service: LoginService | None = None,
) -> FastAPI:
    """
    Build the service. With `engine` (and the services) supplied, no store
    or cache connections are opened; tests use this to run against fakes.
    """
    settings = settings or get_settings()
    app = FastAPI(title="erp_auth", version="0.1.0")
    app.state.settings = settings
    app.state.auth = engine
    app.state.access_service = access_service
    app.state.login_service = login_service

    # Normalize CORS origins from settings (.env can provide a comma-separated string)
    raw_origins = settings.CORS_ORIGINS
    if isinstance(raw_origins, str):
        origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
    elif isinstance(raw_origins, (list, tuple, set)):
        origins = list(raw_origins)
    else:
        origins = []
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        start = time.perf_counter()
        method = request.method
        path = request.url.path
        request_id = request.headers.get("x-request-id") or request.headers.get("x-correlation-id")
        company_hint = request.headers.get(settings.company_header_name)

        log.info(
            "request.start method=%s path=%s request_id=%s company_hint=%s",
            method,
            path,
            request_id,
            company_hint,
        )
        status_code = "unknown"
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            log.info(
                "request.end method=%s path=%s status=%s request_id=%s elapsed_ms=%s",
                method,
                path,
                status_code,
                request_id,
                elapsed_ms,
            )
        return response

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(access_router)

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
        log.info(
            "request.error type=auth_error status=%s code=%s path=%s",
            exc.http_status,
            exc.code.value,
            request.url.path,
        )
        return JSONResponse(
            status_code=exc.http_status,
            content=failure(exc.message, code=exc.code.value, details=exc.details),
        )

    @app.exception_handler(AppError)
    async def app_error_handler(_: Request, exc: AppError) -> JSONResponse:
        log.info("request.error type=app_error status=%s message=%s", exc.http_status, exc.message)
        return JSONResponse(status_code=exc.http_status, content=failure(exc.message))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(_: Request, exc: Exception) -> JSONResponse:
        log.exception("Unhandled error: %s", str(exc))
        return JSONResponse(status_code=500, content=failure("internal server error"))

    @app.on_event("startup")
    async def startup() -> None:
        setup_logging(settings.LOG_LEVEL)

        if app.state.auth is None:
            mongo_client = get_mongo_client(settings)
            mongo_db = get_mongo_db(mongo_client, settings)
            app.state.mongo_client = mongo_client

            users = UserRepository(mongo_db, settings)
            companies = CompanyRepository(mongo_db, settings)
            cache = await build_session_cache(settings)

            engine = build_engine(settings, users, companies, cache)
            app.state.auth = engine
            app.state.access_service = AccessAdminService(users, companies, engine.principals)
            app.state.login_service = LoginService(users, settings)

        await app.state.auth.cache.start()
        log.info("startup.done service=%s env=%s", settings.SERVICE_NAME, settings.ENVIRONMENT)

    @app.on_event("shutdown")
    async def shutdown() -> None:
        log.info("shutdown.begin")
        engine = app.state.auth
        if engine is not None:
            await engine.cache.stop()
        await redis_client.close()
        mongo_client = getattr(app.state, "mongo_client", None)
        if mongo_client is not None:
            mongo_client.close()
        log.info("shutdown.done")

    return app


app = create_app()
