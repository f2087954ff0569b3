"""Thin HTTP primitives used by operations.

The operation layer only needs a handful of request and response properties
(method, parameters, XHR flag, status, location). These classes carry them
on top of Starlette's header and URL datastructures, and convert to Starlette
responses at the edge (see :mod:`opkit.middleware`).
"""

from __future__ import annotations

import inspect
import time
from collections.abc import Mapping
from http import HTTPStatus
from typing import Any
from urllib.parse import urlencode

from starlette.datastructures import URL, MutableHeaders, QueryParams
from starlette.responses import Response as StarletteResponse
from starlette.responses import StreamingResponse

from opkit.context import RequestContext


class Request:
    """An HTTP request as seen by operations.

    ``params`` merges query, body and path parameters (path parameters win,
    then body parameters). ``request_params`` keeps the body parameters on
    their own: forwarded operations are detected from them.
    """

    METHOD_ANY = "ANY"

    def __init__(
        self,
        path: str = "/",
        *,
        method: str = "GET",
        query_params: Mapping[str, Any] | None = None,
        request_params: Mapping[str, Any] | None = None,
        path_params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        is_xhr: bool = False,
        parent: Request | None = None,
        context: RequestContext | None = None,
    ) -> None:
        self.path = path
        self.method = method.upper()
        self.query_params = dict(query_params or {})
        self.request_params = dict(request_params or {})
        self.path_params = dict(path_params or {})
        self.params: dict[str, Any] = {**self.query_params, **self.request_params, **self.path_params}
        self.headers = MutableHeaders(headers=dict(headers or {}))
        self.parent = parent
        self.context = context or RequestContext()
        self.time = time.time()

        if is_xhr:
            self.headers["X-Requested-With"] = "XMLHttpRequest"

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> Request:
        """Create a request from a path with an optional query string.

        ``Request.from_url("/api/core/ping?timer")`` yields ``{"timer": ""}``
        as query parameters.
        """
        parsed = URL(url)
        query = dict(QueryParams(parsed.query))
        query.update(kwargs.pop("query_params", None) or {})
        return cls(parsed.path or "/", query_params=query, **kwargs)

    @property
    def is_xhr(self) -> bool:
        return self.headers.get("X-Requested-With", "").lower() == "xmlhttprequest"

    @property
    def is_patch(self) -> bool:
        return self.method == "PATCH"

    @property
    def extension(self) -> str | None:
        """Extension of the last path segment, without the dot."""
        segment = self.path.rsplit("/", 1)[-1]
        if "." not in segment:
            return None
        return segment.rsplit(".", 1)[-1] or None

    @property
    def uri(self) -> str:
        if not self.query_params:
            return self.path
        return f"{self.path}?{urlencode(self.query_params, doseq=True)}"

    def get(self, key: str, default: Any = None) -> Any:
        return self.params.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.params.get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self.params[key] = value

    def __delitem__(self, key: str) -> None:
        self.params.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self.params

    def __repr__(self) -> str:
        return f"Request({self.method} {self.uri!r})"


class Status:
    """HTTP status code and reason phrase."""

    def __init__(self, code: int = 200, message: str | None = None) -> None:
        code = int(code)
        if not 100 <= code < 600:
            raise ValueError(f"Status code not valid: {code}")
        self.code = code
        if message is None:
            try:
                message = HTTPStatus(code).phrase
            except ValueError:
                message = ""
        self.message = message

    @property
    def is_informational(self) -> bool:
        return 100 <= self.code < 200

    @property
    def is_successful(self) -> bool:
        return 200 <= self.code < 300

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.code < 400

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.code < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.code < 600

    @property
    def is_error(self) -> bool:
        return self.is_client_error or self.is_server_error

    @property
    def is_not_modified(self) -> bool:
        return self.code == HTTPStatus.NOT_MODIFIED

    def __int__(self) -> int:
        return self.code

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Status):
            return self.code == other.code
        if isinstance(other, int):
            return self.code == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.code)

    def __str__(self) -> str:
        return f"{self.code} {self.message}".rstrip()

    def __repr__(self) -> str:
        return f"Status({self.code}, {self.message!r})"


StatusLike = int | tuple[int, str] | Status


class Response:
    """An HTTP response.

    ``location`` and ``content_type`` are kept apart from ``headers`` and
    written into them by :meth:`finalize`, so that the lifecycle can move or
    clear them before the response leaves.
    """

    def __init__(
        self,
        body: Any = None,
        status: StatusLike = 200,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self.body = body
        self.headers = MutableHeaders(headers=dict(headers or {}))
        self.location: str | None = self.headers.get("Location")
        self.content_type: str | None = self.headers.get("Content-Type")
        self.status = status

    @property
    def status(self) -> Status:
        return self._status

    @status.setter
    def status(self, value: StatusLike) -> None:
        if isinstance(value, Status):
            self._status = value
        elif isinstance(value, tuple):
            self._status = Status(*value)
        else:
            self._status = Status(value)

    def finalize(self) -> tuple[MutableHeaders, Any]:
        """Return the headers and body to send."""
        headers = MutableHeaders(raw=list(self.headers.raw))

        if self.location:
            headers["Location"] = self.location
        elif "Location" in headers:
            del headers["Location"]

        if self.content_type:
            headers["Content-Type"] = self.content_type

        return headers, self.body

    def to_starlette(self) -> StarletteResponse:
        """Convert to a Starlette response, streaming deferred bodies."""
        headers, body = self.finalize()

        if inspect.isroutine(body):
            body = body()

        if inspect.isgenerator(body) or inspect.isasyncgen(body):
            return StreamingResponse(body, status_code=self.status.code, headers=dict(headers))

        if body is None:
            content: bytes | str = b""
        elif isinstance(body, (bytes, str)):
            content = body
        else:
            content = str(body)

        return StarletteResponse(content=content, status_code=self.status.code, headers=dict(headers))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.status})"
