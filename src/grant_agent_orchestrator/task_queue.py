"""
Task queue with dependency-gated eligibility.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .exceptions import UnknownTaskError, WorkflowTimeoutError
from .models import Task, TaskStatus, utc_now


_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.IN_PROGRESS, TaskStatus.FAILED},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
}


class TaskQueue:
    """
    Ordered collection of tasks.

    Scan order is creation order. A PENDING task is eligible only when every
    dependency id names a task in this queue that is COMPLETED; priority plays
    no part in selection.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("grant_agent_orchestrator")
        self._tasks: Dict[str, Task] = {}
        self._waiters: Dict[str, List[asyncio.Future]] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: str) -> bool:
        return task_id in self._tasks

    def add(self, task: Task) -> Task:
        if task.id in self._tasks:
            raise ValueError(f"Duplicate task id: {task.id}")
        self._tasks[task.id] = task
        return task

    def get(self, task_id: str) -> Task:
        try:
            return self._tasks[task_id]
        except KeyError:
            raise UnknownTaskError(task_id) from None

    def tasks(self) -> List[Task]:
        return list(self._tasks.values())

    def by_status(self, status: TaskStatus) -> List[Task]:
        return [task for task in self._tasks.values() if task.status == status]

    def is_eligible(self, task: Task) -> bool:
        if task.status != TaskStatus.PENDING:
            return False
        for dep_id in task.dependencies:
            dep = self._tasks.get(dep_id)
            if dep is None or dep.status != TaskStatus.COMPLETED:
                return False
        return True

    def next_eligible(self) -> Optional[Task]:
        """First eligible task in creation order."""
        for task in self._tasks.values():
            if self.is_eligible(task):
                return task
        return None

    def unresolved_dependencies(self, task: Task) -> Tuple[List[str], List[str]]:
        """Dependency ids of a task that are unknown, and those that FAILED."""
        missing = [dep_id for dep_id in task.dependencies if dep_id not in self._tasks]
        failed = [
            dep_id for dep_id in task.dependencies
            if dep_id in self._tasks and self._tasks[dep_id].status == TaskStatus.FAILED
        ]
        return missing, failed

    def find_unresolved(self) -> List[Tuple[Task, List[str], List[str]]]:
        """PENDING tasks that can never become eligible, with their blockers."""
        unresolved = []
        for task in self.by_status(TaskStatus.PENDING):
            missing, failed = self.unresolved_dependencies(task)
            if missing or failed:
                unresolved.append((task, missing, failed))
        return unresolved

    # ----- transitions -----

    def _transition(self, task: Task, status: TaskStatus) -> None:
        if status not in _TRANSITIONS[task.status]:
            raise ValueError(f"Illegal transition for {task.id}: {task.status.value} -> {status.value}")
        task.status = status
        task.touch()

    def mark_in_progress(self, task: Task) -> None:
        self._transition(task, TaskStatus.IN_PROGRESS)
        task.started_at = task.updated_at
        task.attempts += 1

    def mark_completed(self, task: Task, result: Any) -> None:
        self._transition(task, TaskStatus.COMPLETED)
        task.result = result
        task.completed_at = task.updated_at
        self._notify(task)

    def mark_failed(self, task: Task, error: str, error_kind: str) -> None:
        self._transition(task, TaskStatus.FAILED)
        task.error = error
        task.error_kind = error_kind
        task.completed_at = utc_now()
        self._notify(task)

    def _notify(self, task: Task) -> None:
        for future in self._waiters.pop(task.id, []):
            if not future.done():
                future.set_result(task.status)

    # ----- waiting -----

    async def wait_for_terminal(self, task_ids: Iterable[str], timeout: Optional[float] = None) -> None:
        """Wait until every task is COMPLETED or FAILED.

        Raises WorkflowTimeoutError naming the tasks still open at the deadline.
        """
        loop = asyncio.get_running_loop()
        waiting: Dict[asyncio.Future, str] = {}
        for task_id in task_ids:
            task = self.get(task_id)
            if task.status.is_terminal:
                continue
            future = loop.create_future()
            self._waiters.setdefault(task_id, []).append(future)
            waiting[future] = task_id

        if not waiting:
            return

        _, pending = await asyncio.wait(list(waiting), timeout=timeout)
        if pending:
            pending_ids = []
            for future in pending:
                task_id = waiting[future]
                pending_ids.append(task_id)
                future.cancel()
                if future in self._waiters.get(task_id, []):
                    self._waiters[task_id].remove(future)
            raise WorkflowTimeoutError(sorted(pending_ids, key=list(waiting.values()).index), timeout)

    def clear(self) -> None:
        # Waiters on discarded tasks are dropped and run into their timeout
        self._tasks = {}
        self._waiters = {}
