"""
Common data models used across the grant agent orchestrator.
"""

from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Dict, Any, Optional, List, Union, Literal
from uuid import uuid4
from pydantic import BaseModel, ConfigDict, Field


BROADCAST = "BROADCAST"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


class AgentRole(str, Enum):
    """Fixed roster of specialised agent roles."""
    ANALYZER = "ANALYZER"
    WRITER = "WRITER"
    REVIEWER = "REVIEWER"
    RESEARCHER = "RESEARCHER"
    STRATEGIST = "STRATEGIST"
    OPTIMIZER = "OPTIMIZER"


class AgentStatus(str, Enum):
    IDLE = "IDLE"
    BUSY = "BUSY"
    ERROR = "ERROR"


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


class TaskPriority(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


class TaskType(str, Enum):
    """Task types used by the built-in workflow catalog."""
    ANALYZE = "ANALYZE"
    WRITE = "WRITE"
    REVIEW = "REVIEW"
    RESEARCH = "RESEARCH"
    STRATEGIZE = "STRATEGIZE"
    OPTIMIZE = "OPTIMIZE"


class OrchestratorMode(str, Enum):
    AUTO = "AUTO"
    MANUAL = "MANUAL"


class MessageType(str, Enum):
    REQUEST = "REQUEST"
    RESPONSE = "RESPONSE"
    NOTIFICATION = "NOTIFICATION"
    QUERY = "QUERY"


class MemoryType(str, Enum):
    INSIGHT = "INSIGHT"
    PATTERN = "PATTERN"
    STRATEGY = "STRATEGY"
    FEEDBACK = "FEEDBACK"
    LEARNING = "LEARNING"


class AgentPerformance(BaseModel):
    """Rolling success rate and response time (milliseconds) of an agent."""
    success_rate: float = 1.0
    avg_response_time: float = 0.0


class AgentState(BaseModel):
    """Runtime state of one agent role."""
    role: AgentRole
    status: AgentStatus = AgentStatus.IDLE
    current_task_id: Optional[str] = None
    tasks_completed: int = 0
    tasks_failed: int = 0
    last_active: Optional[datetime] = None
    capabilities: List[str] = []
    performance: AgentPerformance = Field(default_factory=AgentPerformance)


class TaskSpec(BaseModel):
    """Caller supplied description of a task, also used as a stage template."""
    assigned_to: AgentRole
    type: str
    description: str = ""
    context: Dict[str, Any] = {}
    priority: TaskPriority = TaskPriority.MEDIUM
    dependencies: List[str] = []
    timeout: Optional[float] = None
    max_retries: int = 0


class Task(TaskSpec):
    """A unit of work tracked by the task queue."""
    id: str = Field(default_factory=lambda: new_id("task"))
    status: TaskStatus = TaskStatus.PENDING
    result: Any = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    attempts: int = 0
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_spec(cls, spec: TaskSpec) -> "Task":
        return cls(**spec.model_dump(include=set(TaskSpec.model_fields)))

    def touch(self) -> None:
        self.updated_at = utc_now()


class Message(BaseModel):
    """Immutable inter-agent message."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("msg"))
    sender: AgentRole
    to: Union[AgentRole, Literal["BROADCAST"]]
    type: MessageType
    payload: Dict[str, Any] = {}
    timestamp: datetime = Field(default_factory=utc_now)
    conversation_id: Optional[str] = None

    @property
    def is_broadcast(self) -> bool:
        return self.to == BROADCAST


class SharedMemoryEntry(BaseModel):
    """A note shared between agents, ranked by relevance."""
    id: str = Field(default_factory=lambda: new_id("mem"))
    type: MemoryType
    source: AgentRole
    content: Any = None
    tags: List[str] = []
    relevance: float = 0.5
    timestamp: datetime = Field(default_factory=utc_now)


class Stage(BaseModel):
    id: str
    name: str
    agent_roles: List[AgentRole] = []
    tasks: List[TaskSpec] = []


class WorkflowTemplate(BaseModel):
    id: str
    name: str
    description: str = ""
    stages: List[Stage] = []


class WorkflowProgress(BaseModel):
    id: str
    name: str
    stage: str
    progress: float = 0.0


class WorkflowStatus(str, Enum):
    COMPLETED = "COMPLETED"
    TIMED_OUT = "TIMED_OUT"


class WorkflowResult(BaseModel):
    """Outcome of a workflow run."""
    workflow_id: str
    name: str
    status: WorkflowStatus
    stages_completed: int = 0
    task_ids: List[str] = []
    failed_task_ids: List[str] = []
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == WorkflowStatus.COMPLETED and not self.failed_task_ids


class OrchestratorMetrics(BaseModel):
    total_tasks: int = 0
    completed_tasks: int = 0
    failed_tasks: int = 0
    retried_tasks: int = 0
    avg_task_duration: float = 0.0


class OrchestratorState(BaseModel):
    """Snapshot of the orchestrator."""
    is_active: bool = False
    mode: OrchestratorMode = OrchestratorMode.AUTO
    active_agents: List[AgentRole] = []
    task_queue: List[Task] = []
    message_log: List[Message] = []
    shared_memory: List[SharedMemoryEntry] = []
    metrics: OrchestratorMetrics = Field(default_factory=OrchestratorMetrics)
    current_workflow: Optional[WorkflowProgress] = None


class WorkerRequest(BaseModel):
    """What a worker receives for one attempt of a task."""
    task_id: str
    role: AgentRole
    task_type: str
    description: str = ""
    context: Dict[str, Any] = {}
    attempt: int = 1
    timeout: Optional[float] = None
