"""
Test the orchestrator event stream.
"""

import pytest
import logging
from unittest.mock import Mock

from grant_agent_orchestrator.events import EventEmitter, Events


@pytest.fixture
def mock_logger():
    return Mock(spec=logging.Logger)


@pytest.fixture
def emitter(mock_logger):
    return EventEmitter(mock_logger)


class TestEventEmitter:
    """Test subscription and synchronous delivery."""

    def test_listeners_receive_events_in_registration_order(self, emitter):
        calls = []
        emitter.subscribe(lambda event, payload: calls.append(("first", event, payload)))
        emitter.subscribe(lambda event, payload: calls.append(("second", event, payload)))

        emitter.emit(Events.TASK_CREATED, {"id": "task_1"})

        assert calls == [
            ("first", "task:created", {"id": "task_1"}),
            ("second", "task:created", {"id": "task_1"}),
        ]

    def test_unsubscribe_stops_delivery(self, emitter):
        listener = Mock()
        emitter.subscribe(listener)
        emitter.unsubscribe(listener)

        emitter.emit(Events.TASK_STARTED)

        listener.assert_not_called()
        assert len(emitter) == 0

    def test_unsubscribe_unknown_listener_is_noop(self, emitter):
        emitter.unsubscribe(Mock())

    def test_subscription_handle(self, emitter):
        listener = Mock()
        subscription = emitter.subscribe(listener)
        assert subscription.active

        subscription.unsubscribe()

        assert not subscription.active
        emitter.emit(Events.TASK_STARTED)
        listener.assert_not_called()

    def test_subscription_context_manager(self, emitter):
        listener = Mock()
        with emitter.subscribe(listener):
            emitter.emit(Events.MEMORY_ADDED, 1)
        emitter.emit(Events.MEMORY_ADDED, 2)

        listener.assert_called_once_with("memory:added", 1)

    def test_failing_listener_is_logged_and_others_still_run(self, emitter, mock_logger):
        failing = Mock(side_effect=RuntimeError("listener broke"))
        healthy = Mock()
        emitter.subscribe(failing)
        emitter.subscribe(healthy)

        emitter.emit(Events.TASK_FAILED, None)

        healthy.assert_called_once_with("task:failed", None)
        mock_logger.error.assert_called_once()

    def test_listener_may_unsubscribe_during_emit(self, emitter):
        second = Mock()

        def first(event, payload):
            emitter.unsubscribe(first)

        emitter.subscribe(first)
        emitter.subscribe(second)
        emitter.emit(Events.ORCHESTRATOR_STARTED)
        emitter.emit(Events.ORCHESTRATOR_STOPPED)

        assert second.call_count == 2
        assert not emitter.is_subscribed(first)

    def test_event_names(self):
        assert Events.WORKFLOW_STARTED == "workflow:started"
        assert Events.WORKFLOW_COMPLETED == "workflow:completed"
        assert Events.MESSAGE_SENT == "message:sent"
        assert Events.ORCHESTRATOR_RESET == "orchestrator:reset"
