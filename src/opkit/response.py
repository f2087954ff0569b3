"""
Operation response - result, message, errors and meta of an operation.

Manifesto:
    An operation answers with more than its result. The response carries a
    human message, the validation errors and free-form meta values, and
    serializes them lazily, at the last moment, so that hooks and the
    lifecycle can still reshape it.

Body synthesis:
    ::

        body already set ──────────────► sent as is
        rc is a generator / function ──► streamed as is
        otherwise ─────────────────────► {"rc"?, "message"?, "errors"?, **meta}
                                          ├─ application/xml, text/xml → XML
                                          ├─ text/*                    → raw text
                                          └─ anything else             → JSON

    ``rc`` is only part of the payload when the status is successful.

Tags:
    opkit, response, json, xml, serialization

Doc-Types:
    api-reference
"""

from __future__ import annotations

import dataclasses
import inspect
import json
from collections.abc import Iterator, Mapping
from typing import Any
from xml.etree import ElementTree

from pydantic import BaseModel
from starlette.datastructures import MutableHeaders

from opkit.error_collection import ErrorCollection
from opkit.http import Response, StatusLike

JSON_MEDIA_TYPE = "application/json"
XML_MEDIA_TYPES = ("application/xml", "text/xml")


def is_stream(value: Any) -> bool:
    """Whether a result is a deferred producer rather than a value."""
    return inspect.isgenerator(value) or inspect.isasyncgen(value) or inspect.isroutine(value)


def negotiate_media_type(accept: str | None) -> str | None:
    """Pick the media type of a response from an ``Accept`` header.

    Media ranges are tried by decreasing quality, in header order for equal
    qualities. The first one a response can be serialized to wins: XML,
    ``text/*`` (``text/plain`` for the wildcard) or JSON, which ``*/*`` also
    selects. ``None`` when nothing in the header is supported.

    ::

        negotiate_media_type("application/xml, text/xml, */*; q=0.01")  # "application/xml"
        negotiate_media_type("image/png")                                # None
    """
    if not accept:
        return None

    ranges: list[tuple[float, str]] = []
    for item in accept.split(","):
        media_type, *params = (part.strip() for part in item.split(";"))
        quality = 1.0
        for param in params:
            name, _, value = param.partition("=")
            if name.strip().lower() == "q":
                try:
                    quality = float(value)
                except ValueError:
                    quality = 0.0
        if media_type and quality > 0:
            ranges.append((quality, media_type.lower()))

    for _, media_type in sorted(ranges, key=lambda entry: -entry[0]):
        if media_type in XML_MEDIA_TYPES or media_type == JSON_MEDIA_TYPE:
            return media_type
        if media_type == "text/*":
            return "text/plain"
        if media_type.startswith("text/"):
            return media_type
        if media_type in ("*/*", "application/*"):
            return JSON_MEDIA_TYPE

    return None


def finalize_value(value: Any) -> Any:
    """Transform a value into something JSON and XML encoders understand.

    - pydantic models are dumped
    - objects with a ``to_dict()`` method are converted with it
    - dataclass instances are converted with :func:`dataclasses.asdict`
    - objects overriding ``__str__`` are cast to strings

    Anything else is returned as is.
    """
    if value is None or isinstance(value, (str, int, float, bool, list, tuple, dict)):
        return value

    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")

    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)

    if type(value).__str__ is not object.__str__:
        return str(value)

    return value


def _collection_tag(parent: str) -> str:
    if parent.endswith("ies"):
        return parent[:-3] + "y"
    if parent.endswith("es"):
        return parent[:-2]
    if parent.endswith("s"):
        return parent[:-1]
    return "entry"


def _fill_element(element: ElementTree.Element, value: Any) -> None:
    if isinstance(value, Mapping):
        for key, item in value.items():
            _fill_element(ElementTree.SubElement(element, str(key)), item)
    elif isinstance(value, (list, tuple)):
        tag = _collection_tag(element.tag)
        for item in value:
            _fill_element(ElementTree.SubElement(element, tag), item)
    elif isinstance(value, bool):
        element.text = "1" if value else ""
    elif value is not None:
        element.text = str(finalize_value(value))


def to_xml(data: Mapping[str, Any], root: str = "response") -> str:
    """Encode a mapping as an XML document.

    List items are named after the singular of their parent tag:
    ``{"tags": ["a", "b"]}`` becomes ``<tags><tag>a</tag><tag>b</tag></tags>``.
    """
    element = ElementTree.Element(root)
    _fill_element(element, data)
    return ElementTree.tostring(element, encoding="unicode", xml_declaration=True)


class OperationResponse(Response):
    """Response of an operation.

    Meta values are accessed with item access, missing keys read as ``None``::

        response["redirect_to"] = "/articles/12"
        response["redirect_to"]   # "/articles/12"
        response["missing"]       # None
    """

    def __init__(
        self,
        body: Any = None,
        status: StatusLike = 200,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(body, status, headers)
        self.rc: Any = None
        self.errors = ErrorCollection()
        self.meta: dict[str, Any] = {}
        self._message: str | None = None

    @property
    def message(self) -> Any:
        return self._message

    @message.setter
    def message(self, message: Any) -> None:
        if isinstance(message, (list, tuple, dict, set)):
            raise TypeError(
                f'Invalid message type "{type(message).__name__}", '
                f"should be a string or an object implementing __str__. Given: {message!r}"
            )
        self._message = message

    # ── Finalization ──────────────────────────────────────────────

    def finalize(self) -> tuple[MutableHeaders, Any]:
        headers, body = super().finalize()

        if body is not None:
            return headers, body

        rc = self.rc

        if is_stream(rc):
            return headers, rc

        media_type = (self.content_type or "").split(";", 1)[0].strip().lower()

        if media_type in XML_MEDIA_TYPES:
            body = to_xml(self.finalize_as_dict(rc))
            headers["Content-Type"] = "application/xml"
        elif media_type.startswith("text/"):
            body = self.finalize_as_text(rc)
            headers["Content-Type"] = f"{media_type}; charset=utf-8"
        else:
            body = json.dumps(self.finalize_as_dict(rc), default=str)
            headers["Content-Type"] = JSON_MEDIA_TYPE

        headers["Content-Length"] = str(len(body.encode("utf-8")))

        return headers, body

    def finalize_as_dict(self, rc: Any) -> dict[str, Any]:
        """Build the payload: ``rc`` (successful responses only), ``message``, ``errors`` and meta."""
        data: dict[str, Any] = {}

        if self.status.is_successful:
            data["rc"] = finalize_value(rc)

        message = self.finalize_message(self._message)
        if message:
            data["message"] = message

        errors = self.errors.to_dict()
        if errors:
            data["errors"] = errors

        for key, value in self.meta.items():
            data.setdefault(key, finalize_value(value))

        return data

    def finalize_as_text(self, rc: Any) -> str:
        if self.status.is_successful and rc is not None:
            return str(finalize_value(rc))
        return self.finalize_message(self._message)

    @staticmethod
    def finalize_message(message: Any) -> str:
        return "" if message is None else str(message)

    # ── Meta access ───────────────────────────────────────────────

    def __getitem__(self, key: str) -> Any:
        return self.meta.get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self.meta[key] = value

    def __delitem__(self, key: str) -> None:
        self.meta.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self.meta

    def __iter__(self) -> Iterator[str]:
        return iter(self.meta)
