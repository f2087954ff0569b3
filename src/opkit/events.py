"""Lifecycle and dispatch events.

Each event is a mutable payload. Hooks may overwrite its fields; the
publisher reads them back after :meth:`opkit.hooks.EventHooks.fire`.

================================  =========================  ====================================
Event                             Fired by                   Mutable fields read back
================================  =========================  ====================================
BeforeControlEvent                Operation                  success, controls
ControlEvent                      Operation                  success
BeforeValidateEvent               Operation                  success
ValidateEvent                     Operation                  success
FailureEvent                      Operation                  -
BeforeProcessEvent                Operation                  (errors, response by reference)
ProcessEvent                      Operation                  rc
GetFormEvent                      Operation                  form
BeforeDispatchEvent               OperationDispatcher        response
DispatchEvent                     OperationDispatcher        response
RescueEvent                       OperationDispatcher        exception, response
================================  =========================  ====================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

from opkit.http import Response

if TYPE_CHECKING:
    from opkit.error_collection import ErrorCollection
    from opkit.http import Request
    from opkit.operation import Control, Operation
    from opkit.response import OperationResponse


@dataclass
class Event:
    """Base event.

    Attributes:
        target: Object firing the event, hooks attached with a ``target``
            class only see events whose target is an instance of it
    """

    event_type: ClassVar[str] = "event"

    target: Any


# ── Control ──────────────────────────────────────────────────────────────


@dataclass
class BeforeControlEvent(Event):
    """Fired before the operation is controlled.

    Setting ``success`` to ``False`` skips :meth:`Operation.control`; editing
    ``controls`` changes the controls it applies.
    """

    event_type: ClassVar[str] = "control:before"

    request: Request
    controls: dict[Control, Any]
    success: bool = True


@dataclass
class ControlEvent(Event):
    """Fired after the operation was controlled, ``success`` may be overridden."""

    event_type: ClassVar[str] = "control"

    request: Request
    controls: dict[Control, Any]
    success: bool = True


# ── Validate ─────────────────────────────────────────────────────────────


@dataclass
class BeforeValidateEvent(Event):
    """Fired before the operation is validated."""

    event_type: ClassVar[str] = "validate:before"

    request: Request
    errors: ErrorCollection
    success: bool = True


@dataclass
class ValidateEvent(Event):
    """Fired after the operation was validated, ``success`` may be overridden."""

    event_type: ClassVar[str] = "validate"

    request: Request
    errors: ErrorCollection
    success: bool = True


@dataclass
class FailureEvent(Event):
    """Fired when the control or the validation of an operation failed.

    Not fired when an exception is raised.
    """

    event_type: ClassVar[str] = "failure"

    TYPE_CONTROL: ClassVar[str] = "control"
    TYPE_VALIDATE: ClassVar[str] = "validate"

    type: str
    request: Request

    @property
    def is_control(self) -> bool:
        return self.type == self.TYPE_CONTROL

    @property
    def is_validate(self) -> bool:
        return self.type == self.TYPE_VALIDATE


# ── Process ──────────────────────────────────────────────────────────────


@dataclass
class BeforeProcessEvent(Event):
    """Fired before the operation is processed.

    Adding errors to ``errors`` cancels the processing.
    """

    event_type: ClassVar[str] = "process:before"

    request: Request
    response: OperationResponse
    errors: ErrorCollection


@dataclass
class ProcessEvent(Event):
    """Fired after a successful processing, ``rc`` may be replaced."""

    event_type: ClassVar[str] = "process"

    rc: Any
    response: OperationResponse
    request: Request


@dataclass
class GetFormEvent(Event):
    """Fired to retrieve the form associated with an operation."""

    event_type: ClassVar[str] = "get_form"

    request: Request
    form: Any = None


# ── Dispatch ─────────────────────────────────────────────────────────────


class BeforeDispatchEvent(Event):
    """Fired before an operation is dispatched.

    A hook providing a ``response`` short-circuits the operation. The
    response must be a :class:`~opkit.http.Response`.
    """

    event_type: ClassVar[str] = "dispatch:before"

    def __init__(
        self,
        target: Any,
        operation: Operation,
        request: Request,
        response: Response | None = None,
    ) -> None:
        super().__init__(target)
        self.operation = operation
        self.request = request
        self.response = response

    @property
    def response(self) -> Response | None:
        return self._response

    @response.setter
    def response(self, response: Response | None) -> None:
        if response is not None and not isinstance(response, Response):
            raise TypeError(
                f"response must be an instance of {Response.__module__}.Response. "
                f"Given: {type(response).__name__}."
            )
        self._response = response


@dataclass
class DispatchEvent(Event):
    """Fired after an operation was dispatched, ``response`` may be replaced."""

    event_type: ClassVar[str] = "dispatch"

    operation: Operation
    request: Request
    response: Response | None = None


@dataclass
class RescueEvent(Event):
    """Fired when the dispatcher tries to rescue a failed operation.

    The target is the operation. Hooks may replace ``exception`` or provide
    a ``response``.
    """

    event_type: ClassVar[str] = "rescue"

    exception: BaseException
    request: Request
    response: Response | None = field(default=None)
