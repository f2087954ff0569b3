"""
Test support utilities for opkit tests.

Sample operations, users, sessions and forms used across test files, and
a helper building an event recorder.
"""

from __future__ import annotations

from typing import Any

from opkit.events import Event
from opkit.hooks import EventHooks


class EventRecorder:
    """Hook recording every event it receives."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def __call__(self, event: Event) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [event.event_type for event in self.events]

    def count(self, event_type: str) -> int:
        return self.types.count(event_type)


def record_events(hooks: EventHooks, *event_classes: Any) -> EventRecorder:
    """Attach a recorder to the given event classes (all events when none)."""
    recorder = EventRecorder()
    for event_class in event_classes or (Event,):
        hooks.attach(event_class, recorder)
    return recorder
