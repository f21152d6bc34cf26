"""
Agent orchestrator: the façade coordinating agents, tasks, memory and messages.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union

from .agent_registry import AgentRegistry
from .config import OrchestratorConfig
from .events import EventEmitter, EventListener, Events, Subscription
from .exceptions import (
    DependencyUnresolvedError,
    OrchestratorError,
    TaskTimeoutError,
    WorkerNotFoundError,
)
from .memory_store import SharedMemoryStore
from .message_bus import MessageBus, MessageHandler
from .models import (
    AgentRole,
    AgentState,
    MemoryType,
    Message,
    MessageType,
    OrchestratorMetrics,
    OrchestratorMode,
    OrchestratorState,
    SharedMemoryEntry,
    Task,
    TaskSpec,
    WorkerRequest,
    WorkflowResult,
    WorkflowTemplate,
    utc_now,
)
from .task_queue import TaskQueue
from .workers import WorkerRegistry
from .workflow import WorkflowEngine


class AgentOrchestrator:
    """
    Coordinates the agent roster through a dependency-aware task queue.

    One instance owns all of its state; create as many independent instances
    as needed. Everything runs on the caller's event loop: the dispatch step
    only suspends while a worker runs, and selecting a task and marking it
    IN_PROGRESS happen without suspension, so concurrent dispatch steps never
    pick the same task.
    """

    def __init__(
        self,
        workers: Optional[WorkerRegistry] = None,
        config: Optional[OrchestratorConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or OrchestratorConfig()
        self.logger = logger or logging.getLogger("grant_agent_orchestrator")
        self.workers = workers or WorkerRegistry()

        self.events = EventEmitter(self.logger)
        self.agents = AgentRegistry(self.logger)
        self.memory = SharedMemoryStore(self.config.memory_capacity, self.logger)
        self.bus = MessageBus(self.logger)
        self.queue = TaskQueue(self.logger)
        self.workflows = WorkflowEngine(self, self.logger)

        self._slots = asyncio.Semaphore(self.config.max_concurrent_tasks)
        self._background: Set[asyncio.Task] = set()
        self._generation = 0
        self._init_state()

    def _init_state(self) -> None:
        self._is_active = False
        self._mode = OrchestratorMode(self.config.mode)
        self._active_agents: List[AgentRole] = []
        self._metrics = OrchestratorMetrics()

    # ===== Lifecycle =====

    @property
    def is_active(self) -> bool:
        return self._is_active

    @property
    def mode(self) -> OrchestratorMode:
        return self._mode

    def set_mode(self, mode: Union[OrchestratorMode, str]) -> None:
        self._mode = OrchestratorMode(mode)
        self.logger.info(f"Orchestrator mode set to {self._mode.value}")

    def start(self) -> None:
        """Activate the orchestrator and every agent role."""
        self._is_active = True
        self._active_agents = self.agents.roster
        self.logger.info("Agent orchestrator started")
        self.events.emit(Events.ORCHESTRATOR_STARTED, {"timestamp": utc_now().isoformat()})

    def stop(self) -> None:
        """Stop automatic dispatch; tasks already handed to a worker keep running."""
        self._is_active = False
        self._active_agents = []
        self.logger.info("Agent orchestrator stopped")
        self.events.emit(Events.ORCHESTRATOR_STOPPED, {"timestamp": utc_now().isoformat()})

    def reset(self) -> None:
        """Discard all state, as if freshly constructed.

        Message handlers and event listeners stay registered. Outcomes of
        worker calls started before the reset are dropped.
        """
        self._generation += 1
        for pending in list(self._background):
            pending.cancel()
        self._background.clear()

        self._init_state()
        self.agents.reset()
        self.memory.clear()
        self.bus.clear()
        self.queue.clear()
        self.workflows.clear()
        self._slots = asyncio.Semaphore(self.config.max_concurrent_tasks)

        self.logger.info("Agent orchestrator reset")
        self.events.emit(Events.ORCHESTRATOR_RESET, {"timestamp": utc_now().isoformat()})

    # ===== Snapshots =====

    def get_state(self) -> OrchestratorState:
        current = self.workflows.current
        return OrchestratorState(
            is_active=self._is_active,
            mode=self._mode,
            active_agents=list(self._active_agents),
            task_queue=[task.model_copy(deep=True) for task in self.queue.tasks()],
            message_log=[message.model_copy(deep=True) for message in self.bus.get_message_log()],
            shared_memory=self.memory.entries(),
            metrics=self._metrics.model_copy(),
            current_workflow=current.model_copy() if current else None,
        )

    def get_agent_state(self, role: AgentRole) -> AgentState:
        return self.agents.snapshot(role)

    def get_task(self, task_id: str) -> Task:
        return self.queue.get(task_id).model_copy(deep=True)

    def get_metrics(self) -> Dict[str, Any]:
        metrics = self._metrics.model_dump()
        metrics["agent_stats"] = [
            {
                "role": agent.role,
                "status": agent.status,
                "tasks_completed": agent.tasks_completed,
                "performance": agent.performance.model_dump(),
            }
            for agent in self.agents.snapshots()
        ]
        return metrics

    # ===== Task Management =====

    async def create_task(self, spec: Union[TaskSpec, Dict[str, Any]]) -> Task:
        """Queue a new PENDING task; in AUTO mode an active orchestrator dispatches right away."""
        if not isinstance(spec, TaskSpec):
            spec = TaskSpec(**spec)

        if self.config.reject_unknown_dependencies:
            missing = [dep_id for dep_id in spec.dependencies if dep_id not in self.queue]
            if missing:
                raise DependencyUnresolvedError(None, missing)

        task = self.queue.add(Task.from_spec(spec))
        self._metrics.total_tasks += 1
        self.logger.info(f"Task created: {task.id} -> {task.assigned_to.value} ({task.type})")
        self.events.emit(Events.TASK_CREATED, task.model_copy(deep=True))

        if self._mode == OrchestratorMode.AUTO and self._is_active:
            await self.process_next_task()

        return task.model_copy(deep=True)

    async def process_next_task(self) -> Optional[Task]:
        """Dispatch the first eligible task and run it to a terminal state.

        Returns a snapshot of the processed task, or None when nothing is eligible.
        """
        task = self.queue.next_eligible()
        if task is None:
            return None

        generation = self._generation
        self.queue.mark_in_progress(task)
        self.agents.mark_busy(task.assigned_to, task.id)
        self.logger.info(f"Task started: {task.id} ({task.type}) by {task.assigned_to.value}")
        self.events.emit(Events.TASK_STARTED, task.model_copy(deep=True))

        try:
            result = await self._execute_with_retries(task, generation)
        except Exception as e:
            if generation != self._generation:
                self.logger.warning(f"Discarding failure of task {task.id} started before reset")
                return task.model_copy(deep=True)
            self._on_task_failed(task, e)
            return task.model_copy(deep=True)

        if generation != self._generation:
            self.logger.warning(f"Discarding result of task {task.id} started before reset")
            return task.model_copy(deep=True)
        self._on_task_completed(task, result)
        return task.model_copy(deep=True)

    async def _execute_with_retries(self, task: Task, generation: int) -> Any:
        while True:
            try:
                return await self._execute(task)
            except WorkerNotFoundError:
                raise
            except Exception as e:
                if generation != self._generation or task.attempts > task.max_retries:
                    raise
                task.attempts += 1
                task.touch()
                self._metrics.retried_tasks += 1
                self.logger.warning(
                    f"Task {task.id} attempt {task.attempts - 1} failed ({str(e)}); "
                    f"retrying ({task.attempts - 1}/{task.max_retries})"
                )

    async def _execute(self, task: Task) -> Any:
        worker = self.workers.resolve(task.assigned_to, task.type)
        if worker is None:
            raise WorkerNotFoundError(task.assigned_to.value, task.type, task.id)

        request = WorkerRequest(
            task_id=task.id,
            role=task.assigned_to,
            task_type=task.type,
            description=task.description,
            context=task.context,
            attempt=task.attempts,
            timeout=task.timeout,
        )
        async with self._slots:
            if task.timeout is None:
                return await worker.execute(request)
            try:
                return await asyncio.wait_for(worker.execute(request), task.timeout)
            except asyncio.TimeoutError:
                raise TaskTimeoutError(task.id, task.timeout) from None

    def _on_task_completed(self, task: Task, result: Any) -> None:
        self.queue.mark_completed(task, result)
        duration_ms = (task.completed_at - task.started_at).total_seconds() * 1000
        self.agents.mark_completed(task.assigned_to, task.id, duration_ms)

        self._metrics.completed_tasks += 1
        completed = self._metrics.completed_tasks
        self._metrics.avg_task_duration += (duration_ms - self._metrics.avg_task_duration) / completed

        self.logger.info(f"Task completed: {task.id} in {duration_ms:.0f}ms")
        self.events.emit(Events.TASK_COMPLETED, task.model_copy(deep=True))

        if self._is_active:
            self._schedule_dispatch()

    def _on_task_failed(self, task: Task, error: Exception) -> None:
        message = str(error) or type(error).__name__
        error_kind = error.error_code if isinstance(error, OrchestratorError) and error.error_code else "TaskFailed"
        self.queue.mark_failed(task, message, error_kind)
        duration_ms = (task.completed_at - task.started_at).total_seconds() * 1000
        self.agents.mark_failed(task.assigned_to, task.id, duration_ms)

        self._metrics.failed_tasks += 1

        self.logger.error(f"Task failed: {task.id} ({error_kind}): {message}")
        self.events.emit(Events.TASK_FAILED, task.model_copy(deep=True))

    def _schedule_dispatch(self) -> None:
        pending = asyncio.create_task(self._delayed_dispatch())
        self._background.add(pending)
        pending.add_done_callback(self._background.discard)

    async def _delayed_dispatch(self) -> None:
        await asyncio.sleep(self.config.auto_dispatch_delay)
        if self._is_active:
            await self.process_next_task()

    async def drain(self) -> List[Task]:
        """Run dispatch steps until no task is eligible."""
        processed = []
        while True:
            task = await self.process_next_task()
            if task is None:
                return processed
            processed.append(task)

    async def wait_idle(self) -> None:
        """Wait for background dispatch steps scheduled after completions."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def wait_for_tasks(self, task_ids: Iterable[str], timeout: Optional[float] = None) -> None:
        """Wait until every given task is COMPLETED or FAILED (WorkflowTimeoutError otherwise)."""
        await self.queue.wait_for_terminal(task_ids, timeout)

    def find_unresolved_tasks(self) -> List[Task]:
        """PENDING tasks blocked on unknown or FAILED dependencies."""
        return [task.model_copy(deep=True) for task, _, _ in self.queue.find_unresolved()]

    def fail_unresolved_tasks(self, task_ids: Optional[Iterable[str]] = None) -> List[Task]:
        """Fail tasks whose dependencies can never complete, cascading to their dependants.

        With ``task_ids`` only those tasks are considered.
        """
        scope = set(task_ids) if task_ids is not None else None
        failed = []
        while True:
            unresolved = [
                entry for entry in self.queue.find_unresolved()
                if scope is None or entry[0].id in scope
            ]
            if not unresolved:
                return failed
            for task, missing, failed_deps in unresolved:
                error = DependencyUnresolvedError(task.id, missing, failed_deps)
                self.queue.mark_failed(task, error.message, error.error_code)
                self._metrics.failed_tasks += 1
                self.logger.warning(error.message)
                self.events.emit(Events.TASK_FAILED, task.model_copy(deep=True))
                failed.append(task.model_copy(deep=True))

    def recover_agent(self, role: AgentRole) -> AgentState:
        """Operator action clearing an agent's ERROR state."""
        return self.agents.recover(role).model_copy(deep=True)

    # ===== Message System =====

    async def send_message(
        self,
        sender: AgentRole,
        to: Union[AgentRole, str],
        type: MessageType,
        payload: Optional[Dict[str, Any]] = None,
        conversation_id: Optional[str] = None,
    ) -> Message:
        message = await self.bus.send(sender, to, type, payload, conversation_id)
        to_label = message.to.value if isinstance(message.to, AgentRole) else message.to
        self.logger.info(f"Message: {message.sender.value} -> {to_label} ({message.type.value})")
        self.events.emit(Events.MESSAGE_SENT, message)
        return message

    def register_message_handler(self, role: AgentRole, handler: MessageHandler) -> Callable[[], None]:
        return self.bus.register_handler(role, handler)

    # ===== Shared Memory =====

    def add_to_memory(
        self,
        type: MemoryType,
        source: AgentRole,
        content: Any = None,
        tags: Optional[Iterable[str]] = None,
        relevance: float = 0.5,
    ) -> SharedMemoryEntry:
        entry = self.memory.add(type, source, content, tags, relevance)
        self.events.emit(Events.MEMORY_ADDED, entry.model_copy(deep=True))
        return entry.model_copy(deep=True)

    def query_memory(
        self,
        type: Optional[MemoryType] = None,
        tags: Optional[Iterable[str]] = None,
        source: Optional[AgentRole] = None,
    ) -> List[SharedMemoryEntry]:
        return [entry.model_copy(deep=True) for entry in self.memory.query(type, tags, source)]

    # ===== Workflow Management =====

    async def execute_workflow(self, template: WorkflowTemplate, timeout: Optional[float] = None) -> WorkflowResult:
        return await self.workflows.execute(template, timeout)

    # ===== Event System =====

    def on(self, listener: EventListener) -> Subscription:
        return self.events.subscribe(listener)

    def off(self, listener: EventListener) -> None:
        self.events.unsubscribe(listener)
