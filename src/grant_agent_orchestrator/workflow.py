"""
Workflow engine running workflow templates stage by stage.
Each stage is a node of a linear LangGraph state graph.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from langgraph.graph import StateGraph, START, END
from pydantic import BaseModel

from .events import Events
from .exceptions import WorkflowTimeoutError
from .models import (
    TaskStatus,
    WorkflowProgress,
    WorkflowResult,
    WorkflowStatus,
    WorkflowTemplate,
)

if TYPE_CHECKING:
    from .orchestrator import AgentOrchestrator


class WorkflowRunState(BaseModel):
    """State carried between the stage nodes of one workflow run."""
    template: WorkflowTemplate
    stage_index: int = 0
    task_ids: List[str] = []
    failed_task_ids: List[str] = []
    timed_out: bool = False
    error: Optional[str] = None
    error_kind: Optional[str] = None


class WorkflowEngine:
    """
    Turns each stage of a template into tasks and waits for all of them to be
    COMPLETED or FAILED before entering the next stage. A stage advances on
    terminal state alone, so failed tasks do not stop the workflow. A stage
    that does not settle within the timeout ends the run with a TIMED_OUT
    result and clears the current workflow.
    """

    def __init__(self, orchestrator: "AgentOrchestrator", logger: logging.Logger):
        self.orchestrator = orchestrator
        self.logger = logger
        self.current: Optional[WorkflowProgress] = None

    def clear(self) -> None:
        self.current = None

    async def execute(self, template: WorkflowTemplate, timeout: Optional[float] = None) -> WorkflowResult:
        """Run every stage of the template in order."""
        timeout = timeout if timeout is not None else self.orchestrator.config.stage_timeout
        events = self.orchestrator.events

        self.current = WorkflowProgress(
            id=template.id,
            name=template.name,
            stage=template.stages[0].name if template.stages else "Unknown",
            progress=0,
        )
        self.logger.info(f"Workflow started: {template.name} ({len(template.stages)} stages)")
        events.emit(Events.WORKFLOW_STARTED, self.current.model_copy())

        try:
            graph = self._build_graph(template, timeout)
            result = await graph.ainvoke(
                WorkflowRunState(template=template),
                config={"recursion_limit": len(template.stages) + 10},
            )
        except Exception:
            self.current = None
            raise

        # Extract final state - handle both dict and object results
        if isinstance(result, dict):
            final = WorkflowRunState(**result)
        else:
            final = result

        return WorkflowResult(
            workflow_id=template.id,
            name=template.name,
            status=WorkflowStatus.TIMED_OUT if final.timed_out else WorkflowStatus.COMPLETED,
            stages_completed=final.stage_index,
            task_ids=final.task_ids,
            failed_task_ids=final.failed_task_ids,
            error=final.error,
            error_kind=final.error_kind,
        )

    def _build_graph(self, template: WorkflowTemplate, timeout: float):
        """Build the linear stage graph for a template."""
        workflow = StateGraph(WorkflowRunState)

        stage_nodes = [f"stage_{index}" for index in range(len(template.stages))]
        for index, node in enumerate(stage_nodes):
            workflow.add_node(node, self._stage_node(index, timeout))
        workflow.add_node("finalize", self._finalize)
        workflow.add_edge("finalize", END)

        if not stage_nodes:
            workflow.add_edge(START, "finalize")
            return workflow.compile()

        workflow.add_node("abort", self._abort)
        workflow.add_edge("abort", END)

        workflow.add_edge(START, stage_nodes[0])
        for index, node in enumerate(stage_nodes):
            following = stage_nodes[index + 1] if index + 1 < len(stage_nodes) else "finalize"
            workflow.add_conditional_edges(
                node,
                self._stage_router,
                {
                    "continue": following,
                    "abort": "abort"
                }
            )

        return workflow.compile()

    def _stage_node(self, index: int, timeout: float):
        async def run_stage(state: WorkflowRunState) -> Dict[str, Any]:
            return await self._run_stage(state, index, timeout)
        return run_stage

    async def _run_stage(self, state: WorkflowRunState, index: int, timeout: float) -> Dict[str, Any]:
        """Create the stage's tasks and wait for them to settle."""
        orchestrator = self.orchestrator
        template = state.template
        stage = template.stages[index]

        if self.current is not None:
            self.current.stage = stage.name
            self.current.progress = index / len(template.stages) * 100
            orchestrator.events.emit(Events.WORKFLOW_STAGE, self.current.model_copy())

        roles = ", ".join(role.value for role in stage.agent_roles)
        self.logger.info(f"Workflow stage: {stage.name} ({roles})")

        stage_task_ids = []
        for spec in stage.tasks:
            task = await orchestrator.create_task(spec)
            stage_task_ids.append(task.id)

        if orchestrator.config.fail_unresolved_dependencies:
            orchestrator.fail_unresolved_tasks(stage_task_ids)

        task_ids = state.task_ids + stage_task_ids
        try:
            await orchestrator.wait_for_tasks(stage_task_ids, timeout)
        except WorkflowTimeoutError as e:
            self.logger.error(f"Workflow stage {stage.name} timed out: {e.message}")
            return {
                "task_ids": task_ids,
                "failed_task_ids": state.failed_task_ids + self._failed(stage_task_ids),
                "timed_out": True,
                "error": e.message,
                "error_kind": e.error_code,
            }

        return {
            "stage_index": index + 1,
            "task_ids": task_ids,
            "failed_task_ids": state.failed_task_ids + self._failed(stage_task_ids),
        }

    def _failed(self, task_ids: List[str]) -> List[str]:
        queue = self.orchestrator.queue
        # Ids vanish from the queue when the orchestrator is reset mid-run
        return [
            task_id for task_id in task_ids
            if task_id in queue and queue.get(task_id).status == TaskStatus.FAILED
        ]

    def _stage_router(self, state: WorkflowRunState) -> str:
        """Route based on the stage outcome."""
        if state.timed_out:
            return "abort"
        else:
            return "continue"

    async def _finalize(self, state: WorkflowRunState) -> Dict[str, Any]:
        if self.current is not None:
            self.current.progress = 100
            self.orchestrator.events.emit(Events.WORKFLOW_COMPLETED, self.current.model_copy())
        self.logger.info(f"Workflow completed: {state.template.name}")
        self.current = None
        return {}

    async def _abort(self, state: WorkflowRunState) -> Dict[str, Any]:
        if self.current is not None:
            self.orchestrator.events.emit(Events.WORKFLOW_TIMED_OUT, self.current.model_copy())
        self.logger.error(f"Workflow timed out: {state.template.name} at stage {state.stage_index}")
        self.current = None
        return {}
