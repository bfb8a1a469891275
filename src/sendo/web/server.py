import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from sendo.app import App
from sendo.config import Config
from sendo.errors import UserError
from sendo.web.error_handlers import general_exception_handler, request_validation_handler, user_error_handler
from sendo.web.middleware import NoCacheMiddleware
from sendo.web.openapi import set_custom_openapi
from sendo.web.routers import files_router, join_router, sessions_router


def create_fastapi_app(app_instance: App, config: Config) -> FastAPI:
    """Create and configure FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        """FastAPI application lifespan management."""
        # Store app instance and config in app state
        app.state.app = app_instance
        app.state.config = config
        async with app_instance.lifespan():
            yield

    app = FastAPI(
        title="Sendo API",
        lifespan=lifespan,
        openapi_tags=[],  # Tags will be added by custom OpenAPI function
    )

    app.add_middleware(NoCacheMiddleware)

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials="*" not in config.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["Content-Disposition", "Content-Length"],
        )

    @app.get("/api/health", tags=["health"])
    async def health_check() -> dict[str, str | int]:
        return {"status": "healthy", "name": "Sendo", "time": int(time.time() * 1000)}

    app.include_router(sessions_router, prefix="/api")
    app.include_router(files_router, prefix="/api")
    app.include_router(join_router)

    # Register error handlers
    app.add_exception_handler(UserError, user_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    set_custom_openapi(app)

    return app
