"""
opkit - controlled, validated and processed operations for web applications.

An operation turns a request into a structured response through a
control → validate → process lifecycle, with event hooks around every stage.
The dispatcher resolves operations from routes, RESTful paths or request
parameters, and rescues their failures.

Usage::

    from opkit import Module, ModuleRegistry, Operation, OperationDispatcher, Request
    from opkit.registry import register_operation

    @register_operation("articles", "publish")
    class PublishOperation(Operation):
        def validate(self, errors):
            return True

        def process(self):
            return True

    dispatcher = OperationDispatcher(ModuleRegistry([Module("articles")]))
    response = dispatcher.handle(Request("/api/articles/12/publish", method="POST"))
"""

from opkit.context import RequestContext
from opkit.dispatcher import OperationDispatcher
from opkit.error_collection import ErrorCollection
from opkit.errors import (
    BadRequest,
    ErrorCategory,
    Failure,
    FormHasExpired,
    FormNotFound,
    HTTPError,
    MethodNotAllowed,
    NotFound,
    OperationError,
    PermissionRequired,
    Unauthorized,
)
from opkit.hooks import EventHooks, get_hooks, set_hooks
from opkit.http import Request, Response, Status
from opkit.modules import Module, ModuleRegistry
from opkit.operation import Control, Operation
from opkit.registry import OperationRegistry, get_registry, register_operation
from opkit.response import OperationResponse
from opkit.routing import Route, RouteTable, encode_operation_path

__version__ = "0.1.0"

__all__ = [
    "BadRequest",
    "Control",
    "ErrorCategory",
    "ErrorCollection",
    "EventHooks",
    "Failure",
    "FormHasExpired",
    "FormNotFound",
    "HTTPError",
    "MethodNotAllowed",
    "Module",
    "ModuleRegistry",
    "NotFound",
    "Operation",
    "OperationDispatcher",
    "OperationError",
    "OperationRegistry",
    "OperationResponse",
    "PermissionRequired",
    "Request",
    "RequestContext",
    "Response",
    "Route",
    "RouteTable",
    "Status",
    "Unauthorized",
    "encode_operation_path",
    "get_hooks",
    "get_registry",
    "register_operation",
    "set_hooks",
    "__version__",
]
