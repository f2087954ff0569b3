"""
FastAPI application factory.

``create_app()`` wires the operation middleware, error handlers and
lifespan events into a single ``FastAPI`` instance.

Manifesto:
    The app factory is the single composition root. The dispatcher, its
    modules and its routes are built by the caller, the factory only
    exposes them over HTTP.

Tags:
    opkit, api, app-factory, composition-root, FastAPI

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from opkit.dispatcher import OperationDispatcher
from opkit.errors import OperationError
from opkit.logging import configure_logging, get_logger
from opkit.middleware import OperationMiddleware, error_response
from opkit.modules import Module, ModuleRegistry
from opkit.settings import OperationSettings, get_settings


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown logging."""
    settings: OperationSettings = app.state.settings

    configure_logging(
        level=settings.log_level,
        json_format=None if settings.log_format is None else settings.log_format == "json",
        service=settings.service_name,
    )

    log = get_logger("opkit.api")
    log.info(
        "opkit API starting",
        version=app.version,
        modules=len(app.state.dispatcher.modules),
        routes=len(app.state.dispatcher.routes),
    )
    yield
    log.info("opkit API shutting down")


async def operation_error_handler(request: Request, exc: OperationError) -> JSONResponse:
    return error_response(exc, debug=request.app.state.settings.debug)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions, answered with 500."""
    return JSONResponse(
        status_code=500,
        content={
            "message": str(exc) if request.app.state.settings.debug else "An unexpected error occurred.",
        },
    )


def default_dispatcher(settings: OperationSettings) -> OperationDispatcher:
    """Dispatcher serving the ``core`` module, which provides ``ping``."""
    import opkit.ping  # noqa: F401  (registers core/ping)

    return OperationDispatcher(ModuleRegistry([Module("core")]), settings=settings)


def create_app(
    settings: OperationSettings | None = None,
    dispatcher: OperationDispatcher | None = None,
) -> FastAPI:
    """Build and return a FastAPI application serving operations.

    Parameters
    ----------
    settings : OperationSettings | None
        Override settings (useful for testing).  When ``None`` the cached
        singleton from :func:`get_settings` is used.
    dispatcher : OperationDispatcher | None
        Dispatcher handling the requests. Defaults to one serving the
        ``core`` module.
    """
    settings = settings or get_settings()
    dispatcher = dispatcher or default_dispatcher(settings)

    app = FastAPI(
        title=settings.title,
        version=settings.version,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.dispatcher = dispatcher

    app.add_middleware(OperationMiddleware, dispatcher=dispatcher, debug=settings.debug)

    app.add_exception_handler(OperationError, operation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    return app
