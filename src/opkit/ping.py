"""Ping operation, registered as ``core/ping``.

Answers ``pong`` in plain text and keeps the current session alive. With a
``timer`` parameter the answer includes the time elapsed since the request
was created: ``pong, in 1.234 ms.``
"""

from __future__ import annotations

import time
from typing import Any

from opkit.error_collection import ErrorCollection
from opkit.http import Request
from opkit.operation import Operation
from opkit.registry import register_operation
from opkit.response import OperationResponse


@register_operation("core", "ping")
class PingOperation(Operation):
    def __call__(self, request: Request) -> OperationResponse:
        response = super().__call__(request)
        response.content_type = "text/plain"
        return response

    def validate(self, errors: ErrorCollection) -> bool:
        return True

    def process(self) -> Any:
        session = self.request.context.session
        if session is not None:
            session.touch()

        rc = "pong"

        if "timer" in self.request:
            elapsed = (time.time() - self.request.time) * 1000
            rc += f", in {elapsed:.3f} ms."

        return rc
