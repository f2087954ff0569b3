"""Operation middleware - serves operations from a Starlette/FastAPI app.

Manifesto:
    Operations know nothing about ASGI. The middleware converts the
    incoming Starlette request into an :class:`opkit.http.Request`, lets the
    dispatcher handle it, and converts the response back. Requests that
    target no operation, and forwarded operations, fall through to the
    application.

Tags:
    opkit, api, middleware, starlette, dispatcher

Doc-Types:
    api-reference
"""

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request as StarletteRequest
from starlette.responses import Response as StarletteResponse
from starlette.types import ASGIApp

from opkit.context import RequestContext
from opkit.dispatcher import OperationDispatcher
from opkit.errors import Failure, OperationError
from opkit.http import Request
from opkit.logging import get_logger

log = get_logger(__name__)

_FORM_MEDIA_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def to_operation_request(request: StarletteRequest) -> Request:
    """Build an operation request from a Starlette request.

    Body parameters are read from JSON objects and forms. The user and
    session are taken from ``request.state``, where authentication
    middleware is expected to put them.
    """
    media_type = request.headers.get("content-type", "").split(";", 1)[0].strip().lower()
    request_params: dict[str, Any] = {}

    if media_type == "application/json" or media_type in _FORM_MEDIA_TYPES:
        # Cached on the request, the application may read it again.
        body = await request.body()

        if body and media_type == "application/json":
            payload = await request.json()
            if isinstance(payload, dict):
                request_params = payload
        elif body:
            form = await request.form()
            request_params = dict(form)

    return Request(
        request.url.path,
        method=request.method,
        query_params=dict(request.query_params),
        request_params=request_params,
        headers=dict(request.headers),
        context=RequestContext(
            user=getattr(request.state, "user", None),
            session=getattr(request.state, "session", None),
        ),
    )


def error_response(exc: OperationError, *, debug: bool = False) -> JSONResponse:
    """JSON response for an unrescued operation error.

    A :class:`Failure` is answered with the payload of the failed operation's
    response, other errors with their message.
    """
    if isinstance(exc, Failure):
        content = exc.operation.response.finalize_as_dict(None)
    else:
        content = {"message": exc.message}

    if debug:
        content["error"] = exc.to_dict()

    return JSONResponse(status_code=exc.status_code, content=content)


class OperationMiddleware(BaseHTTPMiddleware):
    """Dispatch requests targeting operations, pass the others through."""

    def __init__(self, app: ASGIApp, dispatcher: OperationDispatcher, debug: bool = False) -> None:
        super().__init__(app)
        self.dispatcher = dispatcher
        self.debug = debug

    async def dispatch(self, request: StarletteRequest, call_next: RequestResponseEndpoint) -> StarletteResponse:
        operation_request = await to_operation_request(request)

        try:
            response = await run_in_threadpool(self.dispatcher.handle, operation_request)
        except OperationError as exc:
            log.warning(
                "operation.unrescued",
                path=request.url.path,
                error_type=type(exc).__name__,
                status=exc.status_code,
            )
            return error_response(exc, debug=self.debug)

        if response is None:
            return await call_next(request)

        return response.to_starlette()
