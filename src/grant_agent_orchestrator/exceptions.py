"""
Custom exceptions for the grant agent orchestrator.
Provides specific error types for better error handling and debugging.
"""

from typing import Optional, Dict, Any, List


class OrchestratorError(Exception):
    """Base exception for all orchestrator errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        """Initialize the exception."""
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class ConfigurationError(OrchestratorError):
    """Raised when there's a configuration error."""
    pass


class UnknownTaskError(OrchestratorError):
    """Raised when a task id is not present in the queue."""

    def __init__(self, task_id: str):
        super().__init__(f"Unknown task: {task_id}", "UNKNOWN_TASK", {"task_id": task_id})
        self.task_id = task_id


class TaskExecutionError(OrchestratorError):
    """Raised when a worker fails to execute a task."""

    def __init__(self, message: str, task_id: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        """Initialize the task execution error."""
        super().__init__(message, error_code or "TaskFailed", details)
        self.task_id = task_id


class WorkerNotFoundError(TaskExecutionError):
    """Raised when no worker is registered for a role/task type pair."""

    def __init__(self, role: str, task_type: str, task_id: str):
        super().__init__(
            f"No worker registered for {role}/{task_type}",
            task_id,
            "WorkerNotFound",
            {"role": role, "task_type": task_type},
        )


class TaskTimeoutError(TaskExecutionError):
    """Raised when a task exceeds its own timeout."""

    def __init__(self, task_id: str, timeout: float):
        super().__init__(f"Task {task_id} timed out after {timeout}s", task_id, "TaskTimedOut", {"timeout": timeout})
        self.timeout = timeout


class DependencyUnresolvedError(OrchestratorError):
    """Raised when a task depends on tasks that can never complete."""

    def __init__(self, task_id: Optional[str], missing: List[str], failed: Optional[List[str]] = None):
        failed = failed or []
        parts = []
        if missing:
            parts.append(f"unknown dependencies {missing}")
        if failed:
            parts.append(f"failed dependencies {failed}")
        super().__init__(
            f"Task {task_id or '<new>'} has unresolvable {' and '.join(parts)}",
            "DependencyUnresolved",
            {"missing": missing, "failed": failed},
        )
        self.task_id = task_id
        self.missing = missing
        self.failed = failed


class WorkflowTimeoutError(OrchestratorError):
    """Raised when a workflow stage does not reach a terminal state in time."""

    def __init__(self, pending: List[str], timeout: float):
        super().__init__(
            f"Timed out after {timeout}s waiting for tasks {pending}",
            "WorkflowTimedOut",
            {"pending": pending, "timeout": timeout},
        )
        self.pending = pending
        self.timeout = timeout


class LLMError(OrchestratorError):
    """Raised when LLM calls fail."""
    pass
