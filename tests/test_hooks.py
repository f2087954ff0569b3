"""
Tests for opkit.hooks and opkit.events modules.

Tests cover:
- Attaching, firing and detaching hooks
- Delivery order and target filtering
- Event payload specifics
"""

import pytest

from opkit.events import BeforeDispatchEvent, Event, FailureEvent, GetFormEvent, ProcessEvent
from opkit.hooks import EventHooks, get_hooks, set_hooks
from opkit.http import Request, Response
from tests._support.sample import MessageOperation, SuccessOperation


class TestEventHooks:
    """Tests for EventHooks."""

    def test_attach_returns_subscription_id(self):
        hooks = EventHooks()
        sub_id = hooks.attach(Event, lambda event: None)
        assert sub_id.startswith("sub_")
        assert hooks.subscription_count == 1

    def test_fire_returns_event(self):
        hooks = EventHooks()
        event = GetFormEvent(None, request=Request())
        assert hooks.fire(event) is event

    def test_hooks_run_in_attachment_order(self):
        """Test that hooks run in the order they were attached."""
        hooks = EventHooks()
        calls = []
        hooks.attach(ProcessEvent, lambda event: calls.append("first"))
        hooks.attach(ProcessEvent, lambda event: calls.append("second"))
        hooks.attach(ProcessEvent, lambda event: calls.append("third"))

        hooks.fire(ProcessEvent(None, rc=True, response=None, request=Request()))

        assert calls == ["first", "second", "third"]

    def test_later_hooks_see_earlier_changes(self):
        """Test that hooks share the mutable payload."""
        hooks = EventHooks()
        seen = []

        def first(event):
            event.rc = "changed"

        hooks.attach(ProcessEvent, first)
        hooks.attach(ProcessEvent, lambda event: seen.append(event.rc))

        event = hooks.fire(ProcessEvent(None, rc="original", response=None, request=Request()))

        assert seen == ["changed"]
        assert event.rc == "changed"

    def test_base_class_receives_subclass_events(self):
        hooks = EventHooks()
        calls = []
        hooks.attach(Event, calls.append)

        hooks.fire(GetFormEvent(None, request=Request()))

        assert len(calls) == 1

    def test_other_event_classes_are_ignored(self):
        hooks = EventHooks()
        calls = []
        hooks.attach(ProcessEvent, calls.append)

        hooks.fire(GetFormEvent(None, request=Request()))

        assert calls == []

    def test_target_filtering(self):
        """Test that targeted hooks only see events of instances of the target class."""
        hooks = EventHooks()
        calls = []
        hooks.attach(GetFormEvent, lambda event: calls.append(type(event.target)), target=SuccessOperation)

        hooks.fire(GetFormEvent(SuccessOperation(), request=Request()))
        hooks.fire(GetFormEvent(MessageOperation(), request=Request()))

        assert calls == [SuccessOperation]

    def test_target_filtering_includes_subclasses(self):
        class DerivedOperation(SuccessOperation):
            pass

        hooks = EventHooks()
        calls = []
        hooks.attach(GetFormEvent, calls.append, target=SuccessOperation)

        hooks.fire(GetFormEvent(DerivedOperation(), request=Request()))

        assert len(calls) == 1

    def test_detach(self):
        hooks = EventHooks()
        calls = []
        sub_id = hooks.attach(Event, calls.append)
        hooks.detach(sub_id)
        hooks.detach("sub_unknown")

        hooks.fire(GetFormEvent(None, request=Request()))

        assert calls == []
        assert hooks.subscription_count == 0

    def test_hook_exceptions_propagate(self):
        """Test that exceptions raised by hooks reach the publisher."""
        hooks = EventHooks()

        def explode(event):
            raise RuntimeError("boom")

        hooks.attach(Event, explode)

        with pytest.raises(RuntimeError, match="boom"):
            hooks.fire(GetFormEvent(None, request=Request()))

    def test_clear(self):
        hooks = EventHooks()
        hooks.attach(Event, lambda event: None)
        hooks.clear()
        assert hooks.subscription_count == 0


class TestDefaultHooks:
    """Tests for the process-wide registry."""

    def test_set_hooks(self, hooks):
        assert get_hooks() is hooks

        replacement = EventHooks()
        set_hooks(replacement)
        assert get_hooks() is replacement

    def test_reset_creates_new_registry(self, hooks):
        set_hooks(None)
        created = get_hooks()
        assert isinstance(created, EventHooks)
        assert created is not hooks
        assert get_hooks() is created

    def test_operations_use_default_hooks(self, hooks):
        assert SuccessOperation().hooks is hooks


class TestEvents:
    """Tests for event payloads."""

    def test_failure_event_type(self):
        control = FailureEvent(None, type=FailureEvent.TYPE_CONTROL, request=Request())
        validate = FailureEvent(None, type=FailureEvent.TYPE_VALIDATE, request=Request())

        assert control.is_control and not control.is_validate
        assert validate.is_validate and not validate.is_control

    def test_before_dispatch_accepts_response(self):
        event = BeforeDispatchEvent(None, operation=SuccessOperation(), request=Request())
        assert event.response is None

        response = Response("cached")
        event.response = response
        assert event.response is response

        event.response = None
        assert event.response is None

    def test_before_dispatch_rejects_other_values(self):
        event = BeforeDispatchEvent(None, operation=SuccessOperation(), request=Request())

        with pytest.raises(TypeError, match="Given: str"):
            event.response = "nope"

    def test_event_types(self):
        assert GetFormEvent.event_type == "get_form"
        assert ProcessEvent.event_type == "process"
        assert BeforeDispatchEvent.event_type == "dispatch:before"
