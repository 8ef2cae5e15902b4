"""Verbose progress messages driven by the lifecycle event stream."""

from __future__ import annotations

from typing import TYPE_CHECKING

from testrun.reporting.events import AfterGroup, BeforeGroup, EventDispatcher

if TYPE_CHECKING:
    from testrun.context import InvocationContext


class VerboseProgress:
    """Announces each unit as it starts and its history update as it ends.

    Args:
        context: Invocation context whose verbose channel receives the
            messages.
        records_history: True when this invocation saves run history, so
            every finished unit gets an "Updating" message.
    """

    def __init__(self, context: InvocationContext, records_history: bool = False) -> None:
        self.context = context
        self.records_history = records_history

    def register(self, dispatcher: EventDispatcher) -> None:
        dispatcher.subscribe(BeforeGroup, self.on_before_group)
        dispatcher.subscribe(AfterGroup, self.on_after_group)

    def on_before_group(self, event: BeforeGroup) -> None:
        if event.scope.is_unit:
            self.context.verbose(f"Running tests in {event.scope.unit_id}...")

    def on_after_group(self, event: AfterGroup) -> None:
        if event.scope.is_unit and self.records_history:
            self.context.verbose(f"Updating run history entry for {event.scope.unit_id}...")
