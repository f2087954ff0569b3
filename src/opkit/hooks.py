"""Event hooks for the operation lifecycle.

Why This Module Exists
----------------------
Operations and the dispatcher publish events at every stage of their
lifecycle (``control:before``, ``process``, ``rescue`` ...). Hooks attached to
those events may read and overwrite the event's fields: a hook can veto a
control, replace a result, supply a response or substitute an exception. The
publisher reads the fields back once every hook has run.

Delivery is synchronous, in the caller's thread, in attachment order.
Exceptions raised by hooks propagate to the publisher.

Usage::

    from opkit.events import ProcessEvent
    from opkit.hooks import get_hooks

    def on_save(event: ProcessEvent) -> None:
        event.response.message = "Saved!"

    get_hooks().attach(ProcessEvent, on_save, target=SaveOperation)
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from opkit.logging import get_logger

if TYPE_CHECKING:
    from opkit.events import Event

__all__ = [
    "EventHook",
    "EventHooks",
    "get_hooks",
    "set_hooks",
]

log = get_logger(__name__)

E = TypeVar("E", bound="Event")

EventHook = Callable[[Any], None]


@dataclass
class Subscription:
    """Internal subscription record."""

    id: str
    event_class: type[Event]
    hook: EventHook
    target: type | None = None

    def matches(self, event: Event) -> bool:
        if not isinstance(event, self.event_class):
            return False
        return self.target is None or isinstance(event.target, self.target)


class EventHooks:
    """Registry of event hooks.

    A hook is attached to an event class, and optionally to a target class:
    it then only runs for events fired by instances of that class or of its
    subclasses.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}

    def attach(self, event_class: type[Event], hook: EventHook, target: type | None = None) -> str:
        """Attach a hook.

        Args:
            event_class: Event class to listen to (subclasses included)
            hook: Callable receiving the event
            target: Only fire for events whose target is an instance of this class

        Returns:
            Subscription ID for later detachment
        """
        sub_id = f"sub_{uuid.uuid4().hex[:12]}"
        self._subscriptions[sub_id] = Subscription(sub_id, event_class, hook, target)
        log.debug(
            "hook_attached",
            subscription_id=sub_id,
            event_type=event_class.event_type,
            target=target.__name__ if target else None,
        )
        return sub_id

    def detach(self, subscription_id: str) -> None:
        """Remove a hook."""
        self._subscriptions.pop(subscription_id, None)

    def fire(self, event: E) -> E:
        """Run every matching hook with the event and return the event."""
        for subscription in list(self._subscriptions.values()):
            if subscription.matches(event):
                subscription.hook(event)
        return event

    def clear(self) -> None:
        self._subscriptions.clear()

    @property
    def subscription_count(self) -> int:
        """Number of attached hooks."""
        return len(self._subscriptions)


# ── Default hooks singleton ─────────────────────────────────────────────

_hooks: EventHooks | None = None


def get_hooks() -> EventHooks:
    """Get the process-wide hooks registry, creating it on first use."""
    global _hooks
    if _hooks is None:
        _hooks = EventHooks()
    return _hooks


def set_hooks(hooks: EventHooks | None) -> None:
    """Replace the process-wide hooks registry (``None`` resets it)."""
    global _hooks
    _hooks = hooks
