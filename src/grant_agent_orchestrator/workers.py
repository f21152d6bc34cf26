"""
Worker capabilities that perform the actual work of a task.
"""

import asyncio
import inspect
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple
from langchain_aws import ChatBedrock
from langchain_core.messages import HumanMessage, SystemMessage

from .config import Config
from .exceptions import LLMError
from .models import AgentRole, WorkerRequest


class Worker(ABC):
    """Base class for all workers.

    ``execute`` returns the task result or raises to fail the task. Workers
    are not cancelled when the orchestrator stops; only a per-task timeout
    interrupts an attempt.
    """

    @abstractmethod
    async def execute(self, request: WorkerRequest) -> Any:
        """Execute one attempt of a task."""
        pass


class FunctionWorker(Worker):
    """Adapts a plain (sync or async) callable taking a WorkerRequest."""

    def __init__(self, func: Callable[[WorkerRequest], Any]):
        self.func = func

    async def execute(self, request: WorkerRequest) -> Any:
        outcome = self.func(request)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return outcome


class SimulatedWorker(Worker):
    """Placeholder worker that waits and reports success."""

    def __init__(self, latency: float = 0.5, logger: Optional[logging.Logger] = None):
        self.latency = latency
        self.logger = logger or logging.getLogger("grant_agent_orchestrator")

    async def execute(self, request: WorkerRequest) -> Dict[str, Any]:
        self.logger.debug(f"Executing task {request.task_id} ({request.task_type}) by {request.role.value}")
        await asyncio.sleep(self.latency)
        return {
            "task_id": request.task_id,
            "status": "success",
            "message": f"Task {request.task_type} completed by {request.role.value}",
        }


ROLE_PROMPTS: Dict[AgentRole, str] = {
    AgentRole.ANALYZER: """
        You are the Analyzer agent of a grant application consultancy.
        You profile companies, check their eligibility for government support programs
        and identify gaps between the company and the program requirements.
        Answer with a structured analysis: strengths, gaps, eligibility verdict and reasons.
        """,
    AgentRole.WRITER: """
        You are the Writer agent of a grant application consultancy.
        You draft application sections that are specific, evidence based and aligned
        with the evaluation criteria of the support program.
        Answer with the drafted text only.
        """,
    AgentRole.REVIEWER: """
        You are the Reviewer agent of a grant application consultancy.
        You check drafts for consistency, completeness and quality and estimate how
        evaluators would score them.
        Answer with a score from 0 to 100 followed by concrete findings.
        """,
    AgentRole.RESEARCHER: """
        You are the Researcher agent of a grant application consultancy.
        You summarise market trends, comparable funded projects and competitors relevant
        to the company and the program.
        Answer with concise findings and why they matter for the application.
        """,
    AgentRole.STRATEGIST: """
        You are the Strategist agent of a grant application consultancy.
        You turn analysis results into a positioning strategy that closes the identified gaps.
        Answer with a prioritised list of strategic moves.
        """,
    AgentRole.OPTIMIZER: """
        You are the Optimizer agent of a grant application consultancy.
        You improve wording, keywords and structure of application content and extract
        reusable patterns from successful applications.
        Answer with the improvements and the patterns learned.
        """,
}


class BedrockWorker(Worker):
    """Worker that answers every task with one Claude call on AWS Bedrock."""

    def __init__(self, config: Config, logger: logging.Logger):
        """Initialize the Bedrock worker."""
        self.config = config
        self.logger = logger

        try:
            self.llm = ChatBedrock(
                model_id=config.aws.model,
                region_name=config.aws.region,
                model_kwargs={
                    "temperature": config.aws.temperature,
                    "max_tokens": config.aws.max_tokens,
                }
            )
        except Exception as e:
            raise LLMError("Failed to initialize Bedrock client", "LLM_INIT_ERROR", {"original_error": str(e)})

    async def execute(self, request: WorkerRequest) -> Dict[str, Any]:
        messages = [
            SystemMessage(content=ROLE_PROMPTS[request.role]),
            HumanMessage(content=self._build_prompt(request)),
        ]
        content = await self._call_llm(messages, request.role)
        return {
            "task_id": request.task_id,
            "role": request.role.value,
            "type": request.task_type,
            "content": content,
        }

    def _build_prompt(self, request: WorkerRequest) -> str:
        context = json.dumps(request.context, ensure_ascii=False, default=str, indent=2)
        return f"""Task type: {request.task_type}
Task: {request.description}

Context:
{context}"""

    async def _call_llm(self, messages: List[Any], role: AgentRole) -> str:
        """Call the LLM with improved error handling."""
        try:
            response = await self.llm.ainvoke(messages)
            return response.content
        except Exception as e:
            self.logger.error(f"LLM call failed for {role.value}: {str(e)}")
            raise LLMError(f"LLM call failed for {role.value}", "LLM_CALL_ERROR", {"original_error": str(e)})


class WorkerRegistry:
    """Workers keyed by (role, task type); a type of None is the role's fallback."""

    def __init__(self):
        self._workers: Dict[Tuple[AgentRole, Optional[str]], Worker] = {}

    def register(self, role: AgentRole, worker: Worker, task_type: Optional[str] = None) -> None:
        self._workers[(AgentRole(role), self._type_key(task_type))] = worker

    def register_all(self, worker: Worker) -> None:
        """Use one worker as the fallback for every role."""
        for role in AgentRole:
            self.register(role, worker)

    def resolve(self, role: AgentRole, task_type: Optional[str]) -> Optional[Worker]:
        role = AgentRole(role)
        worker = self._workers.get((role, self._type_key(task_type)))
        if worker is None:
            worker = self._workers.get((role, None))
        return worker

    def list_workers(self) -> List[str]:
        return [f"{role.value}/{task_type or '*'}" for role, task_type in self._workers]

    @staticmethod
    def _type_key(task_type: Optional[str]) -> Optional[str]:
        # str-valued enums and plain strings share one key
        if task_type is None:
            return None
        return getattr(task_type, "value", task_type)

    @classmethod
    def from_config(cls, config: Config, logger: logging.Logger) -> "WorkerRegistry":
        """Registry with the configured backend serving every role."""
        registry = cls()
        if config.worker.backend == "bedrock":
            registry.register_all(BedrockWorker(config, logger))
        else:
            registry.register_all(SimulatedWorker(config.worker.simulated_latency, logger))
        return registry
