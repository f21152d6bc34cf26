"""
Synchronous event stream exposed by the orchestrator.
"""

import logging
from typing import Any, Callable, List, Optional


EventListener = Callable[[str, Any], None]


class Events:
    """Names of the events emitted by the orchestrator."""
    ORCHESTRATOR_STARTED = "orchestrator:started"
    ORCHESTRATOR_STOPPED = "orchestrator:stopped"
    ORCHESTRATOR_RESET = "orchestrator:reset"
    TASK_CREATED = "task:created"
    TASK_STARTED = "task:started"
    TASK_COMPLETED = "task:completed"
    TASK_FAILED = "task:failed"
    MESSAGE_SENT = "message:sent"
    MEMORY_ADDED = "memory:added"
    WORKFLOW_STARTED = "workflow:started"
    WORKFLOW_STAGE = "workflow:stage"
    WORKFLOW_COMPLETED = "workflow:completed"
    WORKFLOW_TIMED_OUT = "workflow:timed_out"


class Subscription:
    """Handle returned by ``EventEmitter.subscribe``."""

    def __init__(self, emitter: "EventEmitter", listener: EventListener):
        self._emitter = emitter
        self.listener = listener

    @property
    def active(self) -> bool:
        return self._emitter.is_subscribed(self.listener)

    def unsubscribe(self) -> None:
        self._emitter.unsubscribe(self.listener)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()


class EventEmitter:
    """Observer registry; listeners run synchronously in registration order."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("grant_agent_orchestrator")
        self._listeners: List[EventListener] = []

    def subscribe(self, listener: EventListener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self, listener)

    def unsubscribe(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def is_subscribed(self, listener: EventListener) -> bool:
        return listener in self._listeners

    def emit(self, event: str, payload: Any = None) -> None:
        # A listener failing must not corrupt the state transition that emitted
        for listener in list(self._listeners):
            try:
                listener(event, payload)
            except Exception as e:
                self.logger.error(f"Event listener failed on {event}: {str(e)}")

    def __len__(self) -> int:
        return len(self._listeners)
