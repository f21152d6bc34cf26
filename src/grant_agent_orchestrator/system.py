"""
Grant agent system: wires configuration, logging, workers and the orchestrator
into the entry points the application uses.
"""

from typing import Any, Callable, Dict, List, Optional

from .catalog import get_workflow, list_workflows, with_context
from .config import Config, ConfigManager
from .events import Events
from .exceptions import OrchestratorError
from .logging_manager import LoggingManager
from .models import (
    AgentRole,
    MemoryType,
    SharedMemoryEntry,
    Task,
    TaskPriority,
    TaskSpec,
    TaskType,
    WorkflowProgress,
    WorkflowResult,
)
from .orchestrator import AgentOrchestrator
from .workers import WorkerRegistry


ProgressCallback = Callable[[WorkflowProgress], None]

_PROGRESS_EVENTS = (
    Events.WORKFLOW_STARTED,
    Events.WORKFLOW_STAGE,
    Events.WORKFLOW_COMPLETED,
    Events.WORKFLOW_TIMED_OUT,
)


class GrantAgentSystem:
    """Application-facing entry point of the grant agent orchestrator."""

    def __init__(
        self,
        config_path: Optional[str] = None,
        config: Optional[Config] = None,
        workers: Optional[WorkerRegistry] = None,
        console_logging: bool = True,
    ):
        """Initialize the grant agent system."""
        self.config_manager = ConfigManager(config_path)
        self.config = config or self.config_manager.load_config()
        self.config_manager.validate_config(self.config)

        self.logging_manager = LoggingManager(self.config, console=console_logging)
        self.logger = self.logging_manager.get_logger()

        self.workers = workers or WorkerRegistry.from_config(self.config, self.logging_manager.get_logger("workers"))
        self.orchestrator = AgentOrchestrator(
            self.workers, self.config.orchestrator, self.logging_manager.get_logger("orchestrator")
        )

        self.logger.info(f"Grant agent system initialized ({self.config.worker.backend} workers)")

    @property
    def is_ready(self) -> bool:
        return self.orchestrator.is_active

    def initialize(self) -> None:
        """Start the orchestrator unless it is already running."""
        if self.orchestrator.is_active:
            return
        self.orchestrator.start()

    async def run_workflow(
        self,
        workflow_id: str,
        context: Optional[Dict[str, Any]] = None,
        on_progress: Optional[ProgressCallback] = None,
        timeout: Optional[float] = None,
    ) -> WorkflowResult:
        """Run a catalog workflow with the given context injected into every task."""
        template = get_workflow(workflow_id)
        if template is None:
            raise OrchestratorError(f"Unknown workflow: {workflow_id}", "UNKNOWN_WORKFLOW", {"workflow_id": workflow_id})

        self.initialize()
        workflow = with_context(template, context or {})

        subscription = None
        if on_progress is not None:
            def forward(event: str, payload: Any) -> None:
                if event in _PROGRESS_EVENTS:
                    on_progress(payload)
            subscription = self.orchestrator.on(forward)

        try:
            result = await self.orchestrator.execute_workflow(workflow, timeout)
        finally:
            if subscription is not None:
                subscription.unsubscribe()

        self.logger.info(
            f"Workflow {workflow.name} finished: {result.status.value} "
            f"({len(result.failed_task_ids)} of {len(result.task_ids)} tasks failed)"
        )
        return result

    async def generate_section(self, section_key: str, requirement: str, context: Optional[Dict[str, Any]] = None) -> Task:
        """Queue a writing task for a single application section."""
        self.initialize()
        task_context = dict(context or {})
        task_context["additional_data"] = {"section_key": section_key, "requirement": requirement}
        task = await self.orchestrator.create_task(TaskSpec(
            assigned_to=AgentRole.WRITER,
            type=TaskType.WRITE.value,
            description=f"Write section: {section_key}",
            context=task_context,
            priority=TaskPriority.HIGH,
        ))
        self.logger.info(f"Section generation task created: {section_key}")
        return task

    async def learn_from_success(self, application: Dict[str, Any]) -> Task:
        """Queue a learning task for an application that was accepted."""
        self.initialize()
        task = await self.orchestrator.create_task(TaskSpec(
            assigned_to=AgentRole.OPTIMIZER,
            type=TaskType.OPTIMIZE.value,
            description="Learn from successful application",
            context={"application": application},
            priority=TaskPriority.LOW,
        ))
        self.logger.info(f"Learning task created for application {application.get('id', 'unknown')}")
        return task

    def get_insights(self, tags: List[str]) -> List[SharedMemoryEntry]:
        return self.orchestrator.query_memory(type=MemoryType.INSIGHT, tags=tags)

    def get_status(self) -> Dict[str, Any]:
        return {
            "is_ready": self.is_ready,
            "state": self.orchestrator.get_state(),
            "metrics": self.orchestrator.get_metrics(),
        }

    def reset(self) -> None:
        self.orchestrator.reset()

    def get_system_info(self) -> Dict[str, Any]:
        """Get system information."""
        return {
            "agents": [role.value for role in self.orchestrator.agents.roster],
            "workers": self.workers.list_workers(),
            "workflows": [workflow.id for workflow in list_workflows()],
            "config": {
                "mode": self.config.orchestrator.mode,
                "backend": self.config.worker.backend,
                "memory_capacity": self.config.orchestrator.memory_capacity,
                "stage_timeout": self.config.orchestrator.stage_timeout,
                "max_concurrent_tasks": self.config.orchestrator.max_concurrent_tasks,
                "model": self.config.aws.model,
                "region": self.config.aws.region,
            },
            "logging": self.logging_manager.get_system_info(),
        }
