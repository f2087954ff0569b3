"""
Operation dispatcher - resolves operations from requests, runs and rescues them.

Manifesto:
    The dispatcher is the seam between the host application and the
    operations. It finds the operation a request targets, gives hooks a
    chance to answer in its place, runs it, and applies the forwarding
    rule: a form posted on its page URI but targeting a module must let
    that page render, so no response is returned for it.

    When an operation fails, :meth:`OperationDispatcher.rescue` gives hooks
    one chance to supply a response or substitute the exception. Failures
    of XHR requests are answered with the operation's response, since the
    client expects a structured answer, not an error page.

Resolution:
    ::

        /api/articles/12/online.json
          │   strip .json/.xml, set Accept + X-Requested-With
          ├── route table (namespace "api")          → route controller
          ├── PATCH  /api/<module>/<digits>          → <module>/patch
          └── REST   /api/<module>(/<key>)/<name>    → registry lookup
        anything else
          └── #destination + #operation (+ #key)     → registry lookup

Tags:
    opkit, dispatcher, routing, rescue, hooks

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

import inspect
import re
from typing import Any

from opkit.errors import BadRequest, Failure, FormHasExpired, NotFound, OperationError
from opkit.events import BeforeDispatchEvent, DispatchEvent, RescueEvent
from opkit.hooks import EventHooks, get_hooks
from opkit.http import Request, Response
from opkit.logging import LogContext, get_logger, log_error
from opkit.modules import ModuleRegistry
from opkit.operation import Operation
from opkit.registry import OperationRegistry, get_registry
from opkit.routing import RouteTable
from opkit.settings import OperationSettings, get_settings

log = get_logger(__name__)

REST_PATTERN = re.compile(r"^([a-z.-]+)/(([^/]+)/)?([a-zA-Z0-9_-]+)$")
PATCH_PATTERN = re.compile(r"^([^/]+)/(\d+)$")

_SUFFIX_MEDIA_TYPES = {
    "json": "application/json",
    "xml": "application/xml",
}


class OperationDispatcher:
    """Dispatch requests to operations.

    Args:
        modules: Modules operations may target
        routes: Explicit operation routes, tried before the RESTful convention
        registry: Operation factories, defaults to the global registry
        hooks: Event hooks, defaults to the process-wide registry
        settings: Settings providing the API prefix
    """

    def __init__(
        self,
        modules: ModuleRegistry,
        routes: RouteTable | None = None,
        registry: OperationRegistry | None = None,
        hooks: EventHooks | None = None,
        settings: OperationSettings | None = None,
    ) -> None:
        self.modules = modules
        self.routes = routes if routes is not None else RouteTable()
        self.registry = registry if registry is not None else get_registry()
        self._hooks = hooks
        self.settings = settings or get_settings()

    @property
    def hooks(self) -> EventHooks:
        return self._hooks or get_hooks()

    @property
    def api_prefix(self) -> str:
        return self.settings.api_prefix

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    def resolve_operation(self, request: Request) -> Operation | None:
        """Resolve the operation targeted by a request.

        Returns:
            The operation, or ``None`` if the request doesn't target one.

        Raises:
            NotFound: The RESTful path, the module or the operation is unknown.
            BadRequest: Only one of the destination and name parameters is defined.
            OperationError: A route controller didn't produce an operation.
        """
        path = request.path
        extension = request.extension

        if extension in _SUFFIX_MEDIA_TYPES:
            path = path[: -(len(extension) + 1)]
            request.headers["Accept"] = _SUFFIX_MEDIA_TYPES[extension]
            request.headers["X-Requested-With"] = "XMLHttpRequest"

        path = path.rstrip("/")
        base = self.api_prefix

        if (path + "/").startswith(base):
            return self.resolve_rest_operation(request, path, path[len(base):])

        module_id = request[Operation.DESTINATION]
        name = request[Operation.NAME]

        if not module_id and not name:
            return None

        if not module_id:
            raise BadRequest(f"The destination for the {name} operation is missing.")

        if not name:
            raise BadRequest(f"The operation for the {module_id} module is missing.")

        return self.resolve_module_operation(request, module_id, name)

    def resolve_rest_operation(self, request: Request, path: str, remainder: str) -> Operation:
        operation = self.resolve_route_operation(request, path)

        if operation is not None:
            return operation

        if request.is_patch:
            matched = PATCH_PATTERN.match(remainder)
            if matched is None:
                raise NotFound(f"Unknown operation {path}.")
            module_id, key = matched.groups()
            name = "patch"
        else:
            matched = REST_PATTERN.match(remainder)
            if matched is None:
                raise NotFound(f"Unknown operation {path}.")
            module_id, _, key, name = matched.groups()

        if module_id not in self.modules:
            raise NotFound(f"Unknown operation {path}.")

        if key is not None:
            request[Operation.KEY] = key

        return self.resolve_module_operation(request, module_id, name)

    def resolve_route_operation(self, request: Request, path: str) -> Operation | None:
        found = self.routes.find(path, request.method, namespace="api")

        if found is None:
            return None

        route, captured = found

        if captured:
            for name, translated in route.param_translation_list.items():
                if name in captured:
                    captured[translated] = captured[name]

            request.path_params = captured
            request.params.update(captured)

        controller = route.controller

        if inspect.isclass(controller):
            operation = controller(route.module, hooks=self.hooks)
        elif callable(controller):
            operation = controller(request)
        else:
            operation = None

        if not isinstance(operation, Operation):
            raise OperationError(
                f"The controller for the route {route.id} failed to produce an operation object, "
                f"{operation!r} returned."
            )

        log.debug("operation.route_matched", route=route.id, operation=type(operation).__name__)

        return operation

    def resolve_module_operation(self, request: Request, module_id: str, name: str) -> Operation:
        module = self.modules.get(module_id)

        if module is None:
            raise NotFound(f"Unknown module {module_id}.")

        factory = self.registry.resolve(name, module)

        if factory is None:
            raise NotFound(f"Unknown operation {name} for the {module_id} module.")

        return factory(module, hooks=self.hooks)

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def dispatch(self, request: Request) -> Response | None:
        """Run the operation targeted by the request.

        Returns:
            The response, or ``None`` when the request targets no operation or
            when the operation was forwarded and the page it was posted on must
            be rendered instead.
        """
        operation = self.resolve_operation(request)
        request.context.operation = operation

        if operation is None:
            return None

        with LogContext(operation=type(operation).__name__, module=getattr(operation.module, "id", None)):
            event = self.hooks.fire(BeforeDispatchEvent(self, operation=operation, request=request))
            response = event.response

            if response is None:
                response = operation(request)

            response = self.hooks.fire(
                DispatchEvent(self, operation=operation, request=request, response=response)
            ).response

        if operation.is_forwarded and not request.is_xhr and not getattr(response, "location", None):
            return None

        return response

    def rescue(self, exception: Exception, request: Request) -> Response | None:
        """Try to rescue an exception raised while dispatching.

        Returns:
            A response, or ``None`` when the failed operation was forwarded
            and the page it was posted on must be rendered instead.

        Raises:
            Exception: The exception, or the one substituted by a hook, when
                it cannot be rescued.
        """
        failure: Failure | None = None

        if isinstance(exception, Failure):
            failure = exception
            operation = failure.operation
            if failure.previous is not None:
                exception = failure.previous
        elif request.context.operation is not None:
            operation = request.context.operation
        else:
            raise exception

        event = self.hooks.fire(RescueEvent(operation, exception=exception, request=request))
        exception = event.exception

        if event.response is not None:
            return event.response

        if failure is None:
            raise exception

        if request.is_xhr:
            return operation.response

        if isinstance(failure.previous, FormHasExpired):
            log.warning("operation.form_expired", operation=type(operation).__name__, message=str(failure.previous))
            return None

        if operation.is_forwarded:
            if failure.previous is not None:
                log_error(str(exception), operation=type(operation).__name__)
            return None

        raise exception

    def handle(self, request: Request) -> Response | None:
        """Dispatch the request, rescuing any exception."""
        try:
            return self.dispatch(request)
        except Exception as exception:
            return self.rescue(exception, request)
