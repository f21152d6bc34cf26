"""
Test the dependency-aware task queue.
"""

import asyncio
import pytest

from grant_agent_orchestrator.exceptions import UnknownTaskError, WorkflowTimeoutError
from grant_agent_orchestrator.models import AgentRole, Task, TaskPriority, TaskStatus
from grant_agent_orchestrator.task_queue import TaskQueue


def make_task(**overrides) -> Task:
    fields = {"assigned_to": AgentRole.ANALYZER, "type": "ANALYZE"}
    fields.update(overrides)
    return Task(**fields)


@pytest.fixture
def queue():
    return TaskQueue()


class TestEligibility:
    """Test dependency gating and selection order."""

    def test_next_eligible_uses_creation_order_not_priority(self, queue):
        low = queue.add(make_task(priority=TaskPriority.LOW))
        queue.add(make_task(priority=TaskPriority.CRITICAL))

        assert queue.next_eligible() is low

    def test_dependency_must_be_completed(self, queue):
        first = queue.add(make_task())
        second = queue.add(make_task(dependencies=[first.id]))

        assert not queue.is_eligible(second)

        queue.mark_in_progress(first)
        assert not queue.is_eligible(second)

        queue.mark_completed(first, "done")
        assert queue.is_eligible(second)

    def test_failed_dependency_blocks_forever(self, queue):
        first = queue.add(make_task())
        second = queue.add(make_task(dependencies=[first.id]))
        queue.mark_failed(first, "boom", "TaskFailed")

        assert not queue.is_eligible(second)
        assert queue.next_eligible() is None

    def test_unknown_dependency_blocks(self, queue):
        blocked = queue.add(make_task(dependencies=["missing-id"]))

        assert queue.next_eligible() is None
        assert queue.unresolved_dependencies(blocked) == (["missing-id"], [])

    def test_find_unresolved(self, queue):
        failed = queue.add(make_task())
        queue.mark_failed(failed, "boom", "TaskFailed")
        on_failed = queue.add(make_task(dependencies=[failed.id]))
        on_missing = queue.add(make_task(dependencies=["nope"]))
        waiting = queue.add(make_task(dependencies=[on_missing.id]))

        unresolved = {task.id: (missing, failed_deps) for task, missing, failed_deps in queue.find_unresolved()}

        assert unresolved == {
            on_failed.id: ([], [failed.id]),
            on_missing.id: (["nope"], []),
        }
        assert waiting.id not in unresolved


class TestTransitions:
    """Test the task state machine."""

    def test_lifecycle_timestamps_and_attempts(self, queue):
        task = queue.add(make_task())

        queue.mark_in_progress(task)
        assert task.status == TaskStatus.IN_PROGRESS
        assert task.started_at is not None
        assert task.attempts == 1

        queue.mark_completed(task, {"ok": True})
        assert task.status == TaskStatus.COMPLETED
        assert task.result == {"ok": True}
        assert task.completed_at >= task.started_at

    def test_pending_task_may_fail_directly(self, queue):
        task = queue.add(make_task())

        queue.mark_failed(task, "blocked", "DependencyUnresolved")

        assert task.status == TaskStatus.FAILED
        assert task.error_kind == "DependencyUnresolved"

    @pytest.mark.parametrize("status", [TaskStatus.COMPLETED, TaskStatus.FAILED])
    def test_terminal_states_are_final(self, queue, status):
        task = queue.add(make_task())
        queue.mark_in_progress(task)
        if status == TaskStatus.COMPLETED:
            queue.mark_completed(task, None)
        else:
            queue.mark_failed(task, "boom", "TaskFailed")

        with pytest.raises(ValueError, match="Illegal transition"):
            queue.mark_in_progress(task)

    def test_pending_cannot_complete(self, queue):
        task = queue.add(make_task())

        with pytest.raises(ValueError):
            queue.mark_completed(task, None)

    def test_duplicate_ids_rejected(self, queue):
        task = queue.add(make_task())

        with pytest.raises(ValueError, match="Duplicate task id"):
            queue.add(make_task(id=task.id))

    def test_get_unknown_task(self, queue):
        with pytest.raises(UnknownTaskError) as exc_info:
            queue.get("task_missing")

        assert exc_info.value.error_code == "UNKNOWN_TASK"


class TestWaiting:
    """Test waiting for tasks to reach a terminal state."""

    @pytest.mark.asyncio
    async def test_wait_returns_when_all_terminal(self, queue):
        first = queue.add(make_task())
        second = queue.add(make_task())

        async def finish():
            await asyncio.sleep(0.01)
            queue.mark_in_progress(first)
            queue.mark_completed(first, None)
            queue.mark_failed(second, "boom", "TaskFailed")

        await asyncio.gather(queue.wait_for_terminal([first.id, second.id], timeout=1), finish())

    @pytest.mark.asyncio
    async def test_wait_on_terminal_tasks_returns_immediately(self, queue):
        task = queue.add(make_task())
        queue.mark_failed(task, "boom", "TaskFailed")

        await queue.wait_for_terminal([task.id], timeout=0.01)

    @pytest.mark.asyncio
    async def test_wait_timeout_names_open_tasks(self, queue):
        done = queue.add(make_task())
        queue.mark_failed(done, "boom", "TaskFailed")
        first = queue.add(make_task())
        second = queue.add(make_task())

        with pytest.raises(WorkflowTimeoutError) as exc_info:
            await queue.wait_for_terminal([second.id, done.id, first.id], timeout=0.02)

        assert exc_info.value.pending == [second.id, first.id]
        assert exc_info.value.error_code == "WorkflowTimedOut"

    @pytest.mark.asyncio
    async def test_wait_unknown_task(self, queue):
        with pytest.raises(UnknownTaskError):
            await queue.wait_for_terminal(["task_missing"], timeout=0.01)

    @pytest.mark.asyncio
    async def test_clear_leaves_waiters_to_time_out(self, queue):
        task = queue.add(make_task())

        async def clear_soon():
            await asyncio.sleep(0.01)
            queue.clear()

        with pytest.raises(WorkflowTimeoutError):
            await asyncio.gather(queue.wait_for_terminal([task.id], timeout=0.05), clear_soon())

        assert len(queue) == 0
