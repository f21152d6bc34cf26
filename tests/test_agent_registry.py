"""
Test agent state tracking.
"""

import pytest
import logging
from unittest.mock import Mock

from grant_agent_orchestrator.agent_registry import AgentRegistry, ROLE_CAPABILITIES
from grant_agent_orchestrator.models import AgentRole, AgentStatus


@pytest.fixture
def mock_logger():
    return Mock(spec=logging.Logger)


@pytest.fixture
def registry(mock_logger):
    return AgentRegistry(mock_logger)


class TestAgentRegistry:
    """Test agent status, counters and performance."""

    def test_initial_roster(self, registry):
        assert registry.roster == list(AgentRole)
        for agent in registry.snapshots():
            assert agent.status == AgentStatus.IDLE
            assert agent.current_task_id is None
            assert agent.tasks_completed == 0
            assert agent.last_active is None
            assert agent.capabilities == ROLE_CAPABILITIES[agent.role]

    def test_busy_then_completed(self, registry):
        registry.mark_busy(AgentRole.WRITER, "task_1")
        agent = registry.snapshot(AgentRole.WRITER)
        assert agent.status == AgentStatus.BUSY
        assert agent.current_task_id == "task_1"

        registry.mark_completed(AgentRole.WRITER, "task_1", 120.0)
        agent = registry.snapshot(AgentRole.WRITER)
        assert agent.status == AgentStatus.IDLE
        assert agent.current_task_id is None
        assert agent.tasks_completed == 1
        assert agent.performance.success_rate == 1.0
        assert agent.performance.avg_response_time == 120.0
        assert agent.last_active is not None

    def test_agent_stays_busy_while_other_tasks_in_flight(self, registry):
        registry.mark_busy(AgentRole.ANALYZER, "task_1")
        registry.mark_busy(AgentRole.ANALYZER, "task_2")

        registry.mark_completed(AgentRole.ANALYZER, "task_2", 10.0)
        agent = registry.snapshot(AgentRole.ANALYZER)
        assert agent.status == AgentStatus.BUSY
        assert agent.current_task_id == "task_1"

        registry.mark_completed(AgentRole.ANALYZER, "task_1", 30.0)
        assert registry.snapshot(AgentRole.ANALYZER).status == AgentStatus.IDLE
        assert registry.snapshot(AgentRole.ANALYZER).performance.avg_response_time == 20.0

    def test_failure_sets_error_and_it_is_sticky(self, registry, mock_logger):
        registry.mark_busy(AgentRole.REVIEWER, "task_1")
        registry.mark_failed(AgentRole.REVIEWER, "task_1", 50.0)

        agent = registry.snapshot(AgentRole.REVIEWER)
        assert agent.status == AgentStatus.ERROR
        assert agent.current_task_id is None
        assert agent.tasks_failed == 1
        assert agent.performance.success_rate == 0.0

        registry.mark_busy(AgentRole.REVIEWER, "task_2")
        registry.mark_completed(AgentRole.REVIEWER, "task_2", 50.0)

        agent = registry.snapshot(AgentRole.REVIEWER)
        assert agent.status == AgentStatus.ERROR
        assert agent.tasks_completed == 1
        assert agent.performance.success_rate == 0.5
        mock_logger.warning.assert_called()

    def test_recover_clears_error(self, registry):
        registry.mark_busy(AgentRole.REVIEWER, "task_1")
        registry.mark_failed(AgentRole.REVIEWER, "task_1", 5.0)

        recovered = registry.recover(AgentRole.REVIEWER)

        assert recovered.status == AgentStatus.IDLE

    def test_recover_resumes_busy_when_task_in_flight(self, registry):
        registry.mark_busy(AgentRole.REVIEWER, "task_1")
        registry.mark_busy(AgentRole.REVIEWER, "task_2")
        registry.mark_failed(AgentRole.REVIEWER, "task_1", 5.0)

        recovered = registry.recover(AgentRole.REVIEWER)

        assert recovered.status == AgentStatus.BUSY
        assert recovered.current_task_id == "task_2"

    def test_snapshots_are_copies(self, registry):
        snapshot = registry.snapshot(AgentRole.WRITER)
        snapshot.tasks_completed = 99

        assert registry.snapshot(AgentRole.WRITER).tasks_completed == 0

    def test_reset(self, registry):
        registry.mark_busy(AgentRole.WRITER, "task_1")
        registry.mark_failed(AgentRole.WRITER, "task_1", 5.0)

        registry.reset()

        assert registry.snapshots() == AgentRegistry().snapshots()
        assert registry.in_flight(AgentRole.WRITER) == []
