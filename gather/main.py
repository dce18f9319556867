import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError

# Export .env into os.environ for anything outside Settings
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()

from gather.api import health, notifications, plans, ratings, users
from gather.core.config import Settings, settings as default_settings, validate_config
from gather.core.container import Services, build_services
from gather.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from gather.core.logging import configure_logging
from gather.core.middleware.metrics import MetricsMiddleware
from gather.core.middleware.request_id import RequestIdMiddleware


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """
    Build the API.

    Args:
        settings: Defaults to the process-wide Settings
        services: Prebuilt container (tests); otherwise built in lifespan
            and disposed on shutdown
    """
    settings = settings or (services.settings if services else default_settings)
    configure_logging(settings.ENV)
    validate_config(settings_obj=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger = logging.getLogger("gather")
        owned = services is None
        app.state.services = services or build_services(settings)
        logger.info("Starting gather backend...")
        try:
            yield
        finally:
            if owned:
                app.state.services.close()
            logger.info("Stopping gather backend...")

    app = FastAPI(title="gather", lifespan=lifespan)
    if services is not None:
        # usable without entering lifespan
        app.state.services = services

    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(users.auth_router)
    app.include_router(users.profile_router)
    app.include_router(plans.router)
    app.include_router(ratings.router)
    app.include_router(notifications.router)
    app.include_router(health.router)

    return app


app = create_app()
