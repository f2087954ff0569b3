"""
Operation - a controlled, validated and processed unit of request handling.

Manifesto:
    An operation turns a request into a response in three stages. It is
    first *controlled* (method, session token, authentication, permission,
    record, ownership, form), then *validated*, then *processed*. Hooks are
    fired around every stage and may veto it, extend it or reshape its
    outcome. An operation that ends with a client or server error raises a
    :class:`~opkit.errors.Failure` carrying it, so that the dispatcher can
    rescue it.

Lifecycle:
    ::

        reset
          │
          ├── control:before ── control() ── control ──┐ failed → failure(control)
          │                                             │
          ├── validate:before ── validate() ── validate ┤ failed → failure(validate)
          │                                             │
          ├── process:before ── process()               │
          │                                             │
          │   exception in any stage ─────────────► Failure(operation, exception)
          │
          ├── rc is None → 400 "Operation failed"  else  process event
          ├── response shaping (XHR, location, 304)
          └── error status → Failure(operation)  else  response

Response location:
    A ``location`` asks a browser to load another page, typically after a
    resource was created or deleted. XHR clients must get the result of their
    request first, so for them the location is moved to the ``redirect_to``
    meta and cleared.

Example:
    >>> class PublishOperation(Operation):
    ...     def get_controls(self):
    ...         return {**super().get_controls(), Control.RECORD: True, Control.OWNERSHIP: True}
    ...
    ...     def validate(self, errors):
    ...         return True
    ...
    ...     def process(self):
    ...         self.record.is_online = True
    ...         self.response.message = "The record is online."
    ...         return True

Tags:
    opkit, operation, lifecycle, control, validation, hooks

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any

from starlette import status

from opkit.errors import (
    Failure,
    FormNotFound,
    MethodNotAllowed,
    NotFound,
    PermissionRequired,
    Unauthorized,
)
from opkit.events import (
    BeforeControlEvent,
    BeforeProcessEvent,
    BeforeValidateEvent,
    ControlEvent,
    FailureEvent,
    GetFormEvent,
    ProcessEvent,
    ValidateEvent,
)
from opkit.hooks import EventHooks, get_hooks
from opkit.http import Request
from opkit.logging import get_logger, log_error, log_success
from opkit.response import OperationResponse, negotiate_media_type

if TYPE_CHECKING:
    from opkit.error_collection import ErrorCollection
    from opkit.modules import Module

log = get_logger(__name__)

_UNSET: Any = object()


class Control(str, Enum):
    """Controls applied before an operation is validated, in this order."""

    METHOD = "method"
    SESSION_TOKEN = "session_token"
    AUTHENTICATION = "authentication"
    PERMISSION = "permission"
    RECORD = "record"
    OWNERSHIP = "ownership"
    FORM = "form"


class Operation(ABC):
    """Base class for all operations.

    Subclasses implement :meth:`validate` and :meth:`process`, and extend
    :meth:`get_controls` to enable controls.
    """

    DESTINATION = "#destination"
    """Request parameter defining the destination module of a forwarded operation."""

    NAME = "#operation"
    """Request parameter defining the name of a forwarded operation."""

    KEY = "#key"
    """Request parameter defining the key of the record targeted by the operation."""

    SESSION_TOKEN = "_session_token"
    """Request parameter holding the session token to match."""

    def __init__(self, module: Module | None = None, *, hooks: EventHooks | None = None) -> None:
        self.module = module
        self.hooks = hooks or get_hooks()
        self.key: Any = None
        self.request: Request | None = None
        self.response: OperationResponse = OperationResponse()
        self._record: Any = _UNSET
        self._form: Any = _UNSET

    # ── Properties ────────────────────────────────────────────────

    def get_controls(self) -> dict[Control, Any]:
        """Return the controls to pass, all disabled."""
        return {control: False for control in Control}

    @property
    def controls(self) -> dict[Control, Any]:
        return self.get_controls()

    @property
    def record(self) -> Any:
        """Target record of the operation, loaded from the module's model by key."""
        if self._record is _UNSET:
            self._record = self.resolve_record()
        return self._record

    @record.setter
    def record(self, record: Any) -> None:
        self._record = record

    def resolve_record(self) -> Any:
        model = getattr(self.module, "model", None)
        if model is None or self.key is None:
            return None
        return model.get(self.key)

    @property
    def form(self) -> Any:
        """Form associated with the operation, provided by a ``get_form`` hook."""
        if self._form is _UNSET:
            self._form = self.resolve_form()
        return self._form

    @form.setter
    def form(self, form: Any) -> None:
        self._form = form

    def resolve_form(self) -> Any:
        return self.hooks.fire(GetFormEvent(self, request=self.request)).form

    @property
    def has_form(self) -> bool:
        """Whether a form was attached, without resolving it."""
        return self._form is not _UNSET and self._form is not None

    @property
    def is_forwarded(self) -> bool:
        """Whether the operation was forwarded.

        An operation is forwarded when the destination module and the operation
        name are defined in the request body, which is the case of forms posted
        on their page URI but targeting a module.
        """
        if self.request is None:
            return False
        params = self.request.request_params
        return bool(params.get(self.NAME)) and bool(params.get(self.DESTINATION))

    # ── Lifecycle ─────────────────────────────────────────────────

    def reset(self) -> None:
        """Reset the operation state before it is controlled, validated and processed.

        The same operation object may be invoked several times with different
        requests, the record and form are resolved again for each of them.
        """
        self.response = OperationResponse()
        self._record = _UNSET
        self._form = _UNSET

        key = self.request[self.KEY] if self.request is not None else None
        if key:
            self.key = key

    def __call__(self, request: Request) -> OperationResponse:
        """Handle the request and return the response.

        Raises:
            Failure: The response has a client or server error status, or an
                exception was raised while the operation was controlled,
                validated or processed.
        """
        self.request = request
        self.reset()

        rc = None
        response = self.response

        try:
            rc = self._run(request, response)
        except Exception as exception:
            code = getattr(exception, "status_code", None)
            if code is None:
                code = getattr(exception, "code", None)
            if not isinstance(code, int) or isinstance(code, bool) or not 200 <= code < 600:
                code = status.HTTP_500_INTERNAL_SERVER_ERROR

            response.status = code
            response.message = str(exception)

            log.debug(
                "operation.exception",
                operation=type(self).__name__,
                error_type=type(exception).__name__,
                status=code,
            )

            raise Failure(self, exception) from exception

        response.rc = rc

        if response.errors and not request.is_xhr and not self.has_form:
            for _, message in response.errors:
                if message is not True:
                    log_error(message, operation=type(self).__name__)

        # Hooks may use the process event for further processing, e.g. a
        # comments module deleting the comments of a deleted article.
        if rc is None:
            response.status = (status.HTTP_400_BAD_REQUEST, "Operation failed")
        else:
            event = self.hooks.fire(ProcessEvent(self, rc=response.rc, response=response, request=request))
            response.rc = event.rc

        if response.message and request.parent is None and not request.is_xhr:
            log_success(response.message, operation=type(self).__name__)

        if request.is_xhr:
            response.content_type = negotiate_media_type(request.headers.get("Accept"))

            if response.location:
                response["redirect_to"] = response.location

            response.location = None
        elif response.location:
            response.body = ""
            response.headers["Referer"] = request.uri
        elif response.status.is_not_modified:
            response.body = ""

        if response.status.is_error:
            raise Failure(self)

        return response

    def _run(self, request: Request, response: OperationResponse) -> Any:
        """Control, validate and process. Returns the result of :meth:`process`."""
        errors = response.errors
        controls = self.controls

        event = self.hooks.fire(BeforeControlEvent(self, request=request, controls=controls))
        controls = event.controls
        success = event.success

        if success:
            success = self.control(controls)

        success = self.hooks.fire(
            ControlEvent(self, request=request, controls=controls, success=success)
        ).success

        if not success:
            self.hooks.fire(FailureEvent(self, type=FailureEvent.TYPE_CONTROL, request=request))

            if not errors:
                errors.add_generic("Operation control failed.")

            return None

        success = self.hooks.fire(BeforeValidateEvent(self, request=request, errors=errors)).success

        if success:
            success = self.validate(errors)

        success = self.hooks.fire(
            ValidateEvent(self, request=request, errors=errors, success=success)
        ).success

        if not success or errors:
            self.hooks.fire(FailureEvent(self, type=FailureEvent.TYPE_VALIDATE, request=request))

            if not errors:
                errors.add_generic("Operation validation failed.")

            return None

        self.hooks.fire(BeforeProcessEvent(self, request=request, response=response, errors=errors))

        if errors:
            return None

        rc = self.process()

        if rc is None and not errors:
            errors.add_generic("Operation failed (result was null).")

        return rc

    # ── Controls ──────────────────────────────────────────────────

    def control(self, controls: dict[Control, Any]) -> bool:
        """Control the operation.

        Controls are given as a mapping from :class:`Control` to a value
        enabling them. ``PERMISSION`` is enabled by a permission string or
        level, ``METHOD`` by a method name or :attr:`Request.METHOD_ANY`, the
        others by ``True``. Given controls are merged over :attr:`controls`.

        Every failing control raises an exception, except ``FORM``: a form
        failing its validation makes the method return ``False``.

        Returns:
            ``True`` if all the controls pass, ``False`` otherwise.
        """
        controls = {**self.controls, **controls}
        name = type(self).__name__

        method = controls.get(Control.METHOD)
        if method and not self.control_method(method):
            raise MethodNotAllowed(f"The {name} operation requires the {method} method.")

        if controls.get(Control.SESSION_TOKEN) and not self.control_session_token():
            raise Unauthorized("Session token doesn't match.")

        if controls.get(Control.AUTHENTICATION) and not self.control_authentication():
            raise Unauthorized(f"The {name} operation requires authentication.")

        permission = controls.get(Control.PERMISSION)
        if permission and not self.control_permission(permission):
            raise PermissionRequired(f"You don't have permission to perform the {name} operation.")

        if controls.get(Control.RECORD) and not self.control_record():
            raise NotFound(f"Unable to retrieve record required for the {name} operation.")

        if controls.get(Control.OWNERSHIP) and not self.control_ownership():
            raise Unauthorized("You don't have ownership of the record.")

        if controls.get(Control.FORM) and not self.control_form():
            log.debug("operation.form_invalid", operation=name)
            return False

        return True

    def control_method(self, method: str) -> bool:
        if method.upper() == Request.METHOD_ANY:
            return True
        return self.request is not None and method.upper() == self.request.method

    def control_session_token(self) -> bool:
        session = self.request.context.session
        token = self.request.request_params.get(self.SESSION_TOKEN)
        return session is not None and token is not None and token == session.token

    def control_authentication(self) -> bool:
        user = self.request.context.user
        return user is not None and not user.is_guest

    def control_permission(self, permission: str | int) -> bool:
        user = self.request.context.user
        return user is not None and user.has_permission(permission, self.module)

    def control_record(self) -> Any:
        return self.record

    def control_ownership(self) -> bool:
        """Passes when there is no record, or the user owns it."""
        record = self.record
        if not record:
            return True
        user = self.request.context.user
        return user is not None and user.has_ownership(record)

    def control_form(self) -> bool:
        """Check the form exists and validates the request parameters.

        Raises:
            FormNotFound: No form is associated with the operation.
        """
        form = self.form
        if form is None:
            raise FormNotFound(self)
        return bool(form.validate(self.request.params, self.response.errors))

    # ── Implementation ────────────────────────────────────────────

    @abstractmethod
    def validate(self, errors: ErrorCollection) -> bool:
        """Validate the operation before it is processed."""
        ...

    @abstractmethod
    def process(self) -> Any:
        """Process the operation, ``None`` signals a failure."""
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(module={self.module}, key={self.key!r})"
