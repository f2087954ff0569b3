"""Request-scoped context consulted by operation controls.

The host application fills a :class:`RequestContext` for each request with
the current user and session. Controls read them from
``operation.request.context`` rather than from process globals, and the
dispatcher records the resolved operation there so ``rescue`` can find it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from opkit.operation import Operation


@runtime_checkable
class User(Protocol):
    """What controls need to know about the current user."""

    @property
    def is_guest(self) -> bool: ...

    def has_permission(self, permission: str | int, target: Any = None) -> bool: ...

    def has_ownership(self, record: Any) -> bool: ...


@runtime_checkable
class Session(Protocol):
    """What controls need to know about the current session."""

    @property
    def token(self) -> str | None: ...

    def touch(self) -> None: ...


@dataclass
class RequestContext:
    """Collaborators attached to a request.

    Attributes:
        user: Current user, ``None`` when the host has no user store
        session: Current session, ``None`` when no session was started
        operation: Operation resolved for the request by the dispatcher
    """

    user: User | None = None
    session: Session | None = None
    operation: Operation | None = None
