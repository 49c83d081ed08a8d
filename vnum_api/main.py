import logging
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from vnum_api.core.config import Settings, get_settings
from vnum_api.core.exceptions import AppError, UpstreamError
from vnum_api.core.hasura import HasuraClient
from vnum_api.routes.auth import auth_router
from vnum_api.routes.validity import validity_router
from vnum_api.routes.wallets import wallet_router

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def _error_body(settings: Settings, message: str, exc: Optional[BaseException] = None) -> dict:
    body = {"success": False, "error": message}
    if exc is not None and settings.is_development:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    return f"{field}: {first.get('msg')}" if field else str(first.get("msg"))


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if isinstance(exc, UpstreamError):
            logger.error(f"{request.method} {request.url.path}: {exc.message} {exc.details}")
        else:
            logger.info(f"{request.method} {request.url.path}: {exc.kind.value} - {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=_error_body(settings, exc.message, exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(settings, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body(settings, _validation_message(exc)),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(settings, "Internal server error", exc),
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.state.settings
    app.state.hasura = HasuraClient.from_settings(settings)
    logger.info(f"Virtual Number API started ({settings.NODE_ENV}), Hasura at {settings.HASURA_GRAPHQL_ENDPOINT}")
    try:
        yield
    finally:
        app.state.hasura.close()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(title="Virtual Number API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.CORS_ORIGIN.split(",") if origin.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app, settings)

    # Include all routers
    app.include_router(auth_router)
    app.include_router(wallet_router)
    app.include_router(validity_router)

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": "virtualnumber-api",
        }

    return app


app = create_app()
