from __future__ import annotations

import logging
import secrets
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.sessions import SessionMiddleware
from starlette.staticfiles import StaticFiles

from premium_estimator.api.router import router as api_router
from premium_estimator.config import PACKAGE_DIR, Settings, get_settings
from premium_estimator.domain.errors import ConfigurationError, ValidationError
from premium_estimator.services.rate_table import load_rate_table
from premium_estimator.ui.router import router as ui_router

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    # Fails startup on a broken rate table instead of on the first estimate
    try:
        rates = load_rate_table(str(settings.rates_path))
    except ConfigurationError as e:
        logger.error("Rate table rejected: %s", e)
        raise

    app = FastAPI(title="Insurance premium estimator", version=rates.version)
    app.state.settings = settings
    app.state.rates = rates

    # Session (signed cookie). No DB.
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret or secrets.token_urlsafe(32),
        same_site="lax",
    )

    # RequestId middleware
    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next: Callable):  # type: ignore[override]
        req_id = request.headers.get("X-Request-Id")
        if not req_id:
            req_id = secrets.token_hex(16)
        request.state.request_id = req_id
        response = await call_next(request)
        response.headers["X-Request-Id"] = req_id
        return response

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=400, content=exc.to_dict(getattr(request.state, "request_id", None))
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_exception_handler(request: Request, exc: ConfigurationError):
        logger.error("Configuration error while serving %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=500, content=exc.to_dict(getattr(request.state, "request_id", None))
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error while serving %s", request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={
                "title": "Internal error",
                "detail": "Something went wrong on our side. Please try again.",
                "requestId": getattr(request.state, "request_id", None),
            },
        )

    @app.get("/", include_in_schema=False)
    def root() -> RedirectResponse:
        return RedirectResponse(url="/ui/", status_code=302)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "rateTableVersion": rates.version}

    app.mount("/static", StaticFiles(directory=str(PACKAGE_DIR / "static")), name="static")
    app.include_router(ui_router)
    app.include_router(api_router)

    return app


app = create_app()
