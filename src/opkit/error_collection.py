"""Ordered collection of validation errors.

Manifesto:
    Validation problems are data, not exceptions. Operations record them
    against the attribute they concern (or against ``_base`` when they
    concern the whole request) and the lifecycle decides what to do with
    the collection once validation is over.

Tags:
    opkit, errors, validation, error-collection

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

ErrorMessage = str | bool


class ErrorCollection:
    """Keyed multiset of error messages.

    Messages are grouped by attribute, in insertion order. ``True`` is a
    placeholder meaning "this attribute errored" without a message.

    Example::

        errors = ErrorCollection()
        errors.add("email", "Invalid address: {value}", value="foo@")
        errors.add("email", "Already taken")
        errors.add_generic("Please try again")
        errors.to_dict()
        # {'email': 'Invalid address: foo@; Already taken', '_base': 'Please try again'}
    """

    BASE = "_base"

    def __init__(self) -> None:
        self._collection: dict[str, list[ErrorMessage]] = {}

    def add(self, attribute: str | None, message: ErrorMessage = True, **args: Any) -> ErrorCollection:
        """Add an error message for an attribute.

        Args:
            attribute: Attribute the error concerns, ``None`` or ``""`` for ``_base``
            message: Error message or ``True`` when there is nothing to say
            args: Arguments formatted into the message

        Returns:
            The collection, for chaining
        """
        if isinstance(message, str) and args:
            message = message.format(**args)
        elif not isinstance(message, (str, bool)):
            message = str(message)

        self._collection.setdefault(attribute or self.BASE, []).append(message)
        return self

    def add_generic(self, message: ErrorMessage = True, **args: Any) -> ErrorCollection:
        """Add an error message that concerns the whole request."""
        return self.add(self.BASE, message, **args)

    def count(self) -> int:
        return len(self)

    def clear(self) -> None:
        self._collection.clear()

    def to_dict(self) -> dict[str, ErrorMessage]:
        """Flatten the collection into ``{attribute: message}``.

        String messages of an attribute are joined with ``"; "``. An attribute
        holding only ``True`` placeholders flattens to ``True``.
        """
        flattened: dict[str, ErrorMessage] = {}
        for attribute, messages in self._collection.items():
            strings = [m for m in messages if not isinstance(m, bool)]
            flattened[attribute] = "; ".join(strings) if strings else True
        return flattened

    def __setitem__(self, attribute: str | None, message: ErrorMessage) -> None:
        self.add(attribute, message)

    def __getitem__(self, attribute: str | None) -> list[ErrorMessage] | None:
        messages = self._collection.get(attribute or self.BASE)
        return list(messages) if messages is not None else None

    def __delitem__(self, attribute: str | None) -> None:
        self._collection.pop(attribute or self.BASE, None)

    def __contains__(self, attribute: object) -> bool:
        if attribute is None or attribute == "":
            attribute = self.BASE
        return attribute in self._collection

    def __len__(self) -> int:
        return sum(len(messages) for messages in self._collection.values())

    def __bool__(self) -> bool:
        return len(self) > 0

    def __iter__(self) -> Iterator[tuple[str, ErrorMessage]]:
        for attribute, messages in self._collection.items():
            for message in messages:
                yield attribute, message

    def __repr__(self) -> str:
        return f"ErrorCollection({self.to_dict()!r})"
