"""Routes to operations.

Routes let an operation answer on a path of its own instead of the RESTful
``/api/<module>(/<key>)/<name>`` convention. Patterns use Starlette's path
syntax (``/api/articles/{slug}``, ``/api/nodes/{nid:int}/online``).
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from starlette.routing import compile_path

if TYPE_CHECKING:
    from opkit.modules import Module


@dataclass
class Route:
    """A route to an operation.

    Attributes:
        id: Route identifier, namespaced with a colon (``api:articles:publish``)
        pattern: Starlette path pattern
        controller: Operation class, or callable receiving the request and
            returning an operation
        methods: Accepted methods, ``None`` accepts any
        module: Module passed to the operation class
        param_translation_list: Captured parameters to copy under another
            name, ``{"slug": "#key"}``
    """

    id: str
    pattern: str
    controller: Any
    methods: tuple[str, ...] | None = None
    module: Module | None = None
    param_translation_list: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._regex, _, self._convertors = compile_path(self.pattern)
        if self.methods is not None:
            self.methods = tuple(method.upper() for method in self.methods)

    @property
    def namespace(self) -> str | None:
        return self.id.split(":", 1)[0] if ":" in self.id else None

    def match(self, path: str, method: str = "GET") -> dict[str, Any] | None:
        """Return the captured parameters if the route matches, ``None`` otherwise."""
        if self.methods is not None and method.upper() not in self.methods:
            return None

        matched = self._regex.match(path)
        if matched is None:
            return None

        return {
            name: self._convertors[name].convert(value)
            for name, value in matched.groupdict().items()
        }


class RouteTable:
    """Ordered collection of routes, first match wins."""

    def __init__(self) -> None:
        self._routes: dict[str, Route] = {}

    def add(self, route_id: str, pattern: str, controller: Any, **kwargs: Any) -> Route:
        route = Route(route_id, pattern, controller, **kwargs)
        self._routes[route_id] = route
        return route

    def find(
        self,
        path: str,
        method: str = "GET",
        namespace: str | None = None,
    ) -> tuple[Route, dict[str, Any]] | None:
        for route in self._routes.values():
            if namespace is not None and route.namespace != namespace:
                continue
            captured = route.match(path, method)
            if captured is not None:
                return route, captured
        return None

    def __getitem__(self, route_id: str) -> Route:
        return self._routes[route_id]

    def __contains__(self, route_id: object) -> bool:
        return route_id in self._routes

    def __iter__(self) -> Iterator[Route]:
        return iter(self._routes.values())

    def __len__(self) -> int:
        return len(self._routes)


def encode_operation_path(pattern: str, params: Mapping[str, Any] | None = None, prefix: str = "/api/") -> str:
    """Encode an operation as a RESTful path.

    The ``{destination}``, ``{name}`` and ``{key}`` placeholders of the pattern
    are replaced with the ``#destination``, ``#operation`` and ``#key``
    parameters, the remaining parameters become the query string::

        encode_operation_path("{destination}/{key}/{name}", {
            "#destination": "articles", "#operation": "online", "#key": 12, "lang": "fr",
        })
        # '/api/articles/12/online?lang=fr'
    """
    from opkit.operation import Operation

    query = dict(params or {})
    replacements = {
        "{destination}": query.pop(Operation.DESTINATION, None),
        "{name}": query.pop(Operation.NAME, None),
        "{key}": query.pop(Operation.KEY, None),
    }

    path = pattern
    for placeholder, value in replacements.items():
        path = path.replace(placeholder, "" if value is None else str(value))

    encoded = prefix.rstrip("/") + "/" + path.lstrip("/")
    if query:
        encoded += "?" + urlencode(query, doseq=True)
    return encoded
