"""
Workflow catalog: predefined templates of the grant application process.
"""

from typing import Any, Dict, List, Optional

from .models import AgentRole, Stage, TaskPriority, TaskSpec, TaskType, WorkflowTemplate


def _task(role: AgentRole, task_type: TaskType, description: str, priority: TaskPriority) -> TaskSpec:
    return TaskSpec(assigned_to=role, type=task_type.value, description=description, priority=priority)


WORKFLOW_TEMPLATES: Dict[str, WorkflowTemplate] = {
    "COMPLETE_APPLICATION": WorkflowTemplate(
        id="wf_complete_application",
        name="Complete application",
        description="Runs the whole process from company analysis through drafting to review.",
        stages=[
            Stage(
                id="stage_1_analyze",
                name="1: Analysis",
                agent_roles=[AgentRole.ANALYZER, AgentRole.RESEARCHER],
                tasks=[
                    _task(AgentRole.ANALYZER, TaskType.ANALYZE, "Analyze company profile", TaskPriority.HIGH),
                    _task(AgentRole.ANALYZER, TaskType.ANALYZE, "Analyze program eligibility", TaskPriority.HIGH),
                    _task(AgentRole.RESEARCHER, TaskType.RESEARCH, "Research industry trends", TaskPriority.MEDIUM),
                ],
            ),
            Stage(
                id="stage_2_strategy",
                name="2: Strategy",
                agent_roles=[AgentRole.STRATEGIST, AgentRole.ANALYZER],
                tasks=[
                    _task(AgentRole.ANALYZER, TaskType.ANALYZE, "Perform gap analysis", TaskPriority.HIGH),
                    _task(AgentRole.STRATEGIST, TaskType.STRATEGIZE, "Define positioning strategy", TaskPriority.HIGH),
                ],
            ),
            Stage(
                id="stage_3_writing",
                name="3: Writing",
                agent_roles=[AgentRole.WRITER],
                tasks=[
                    _task(AgentRole.WRITER, TaskType.WRITE, "Draft the application", TaskPriority.CRITICAL),
                ],
            ),
            Stage(
                id="stage_4_review",
                name="4: Review and optimization",
                agent_roles=[AgentRole.REVIEWER, AgentRole.OPTIMIZER],
                tasks=[
                    _task(AgentRole.REVIEWER, TaskType.REVIEW, "Consistency review", TaskPriority.HIGH),
                    _task(AgentRole.REVIEWER, TaskType.REVIEW, "Quality evaluation", TaskPriority.HIGH),
                    _task(AgentRole.OPTIMIZER, TaskType.OPTIMIZE, "Optimize content", TaskPriority.MEDIUM),
                ],
            ),
        ],
    ),
    "QUICK_REVIEW": WorkflowTemplate(
        id="wf_quick_review",
        name="Quick review",
        description="Reviews a drafted application and suggests improvements.",
        stages=[
            Stage(
                id="stage_1_review",
                name="Review",
                agent_roles=[AgentRole.REVIEWER],
                tasks=[
                    _task(AgentRole.REVIEWER, TaskType.REVIEW, "Consistency review", TaskPriority.HIGH),
                    _task(AgentRole.REVIEWER, TaskType.REVIEW, "Quality evaluation", TaskPriority.HIGH),
                ],
            ),
            Stage(
                id="stage_2_optimize",
                name="Optimization",
                agent_roles=[AgentRole.OPTIMIZER],
                tasks=[
                    _task(AgentRole.OPTIMIZER, TaskType.OPTIMIZE, "Suggest improvements", TaskPriority.MEDIUM),
                ],
            ),
        ],
    ),
    "ENHANCE_PROFILE": WorkflowTemplate(
        id="wf_enhance_profile",
        name="Enhance company profile",
        description="Analyzes company data and derives core competencies to strengthen the profile.",
        stages=[
            Stage(
                id="stage_1_analyze",
                name="Analysis",
                agent_roles=[AgentRole.ANALYZER, AgentRole.RESEARCHER],
                tasks=[
                    _task(AgentRole.ANALYZER, TaskType.ANALYZE, "Structure company data", TaskPriority.HIGH),
                    _task(AgentRole.RESEARCHER, TaskType.RESEARCH, "Identify industry trends", TaskPriority.MEDIUM),
                ],
            ),
            Stage(
                id="stage_2_strategize",
                name="Strategy",
                agent_roles=[AgentRole.STRATEGIST],
                tasks=[
                    _task(AgentRole.STRATEGIST, TaskType.STRATEGIZE, "Optimize positioning", TaskPriority.HIGH),
                ],
            ),
            Stage(
                id="stage_3_learn",
                name="Learning",
                agent_roles=[AgentRole.OPTIMIZER],
                tasks=[
                    _task(AgentRole.OPTIMIZER, TaskType.OPTIMIZE, "Learn success patterns", TaskPriority.LOW),
                ],
            ),
        ],
    ),
    "ELIGIBILITY_CHECK": WorkflowTemplate(
        id="wf_eligibility_check",
        name="Eligibility check",
        description="Assesses how well the company fits a support program.",
        stages=[
            Stage(
                id="stage_1_analyze",
                name="Analysis",
                agent_roles=[AgentRole.ANALYZER],
                tasks=[
                    _task(AgentRole.ANALYZER, TaskType.ANALYZE, "Analyze eligibility requirements", TaskPriority.CRITICAL),
                    _task(AgentRole.ANALYZER, TaskType.ANALYZE, "Gap analysis", TaskPriority.HIGH),
                ],
            ),
            Stage(
                id="stage_2_research",
                name="Research",
                agent_roles=[AgentRole.RESEARCHER],
                tasks=[
                    _task(AgentRole.RESEARCHER, TaskType.RESEARCH, "Research comparable cases", TaskPriority.MEDIUM),
                ],
            ),
            Stage(
                id="stage_3_strategy",
                name="Strategy",
                agent_roles=[AgentRole.STRATEGIST],
                tasks=[
                    _task(AgentRole.STRATEGIST, TaskType.STRATEGIZE, "Plan response strategy", TaskPriority.HIGH),
                ],
            ),
        ],
    ),
    "CONTINUOUS_LEARNING": WorkflowTemplate(
        id="wf_continuous_learning",
        name="Continuous learning",
        description="Learns from completed applications to improve future drafts.",
        stages=[
            Stage(
                id="stage_1_learn",
                name="Learning",
                agent_roles=[AgentRole.OPTIMIZER],
                tasks=[
                    _task(AgentRole.OPTIMIZER, TaskType.OPTIMIZE, "Extract success patterns", TaskPriority.MEDIUM),
                ],
            ),
            Stage(
                id="stage_2_share",
                name="Sharing",
                agent_roles=[AgentRole.OPTIMIZER],
                tasks=[
                    _task(AgentRole.OPTIMIZER, TaskType.OPTIMIZE, "Share learnings with all agents", TaskPriority.LOW),
                ],
            ),
        ],
    ),
}


def with_context(template: WorkflowTemplate, context: Dict[str, Any]) -> WorkflowTemplate:
    """Copy of a template whose every task carries the given context."""
    workflow = template.model_copy(deep=True)
    for stage in workflow.stages:
        for task in stage.tasks:
            task.context = dict(context)
    return workflow


def get_workflow(workflow_id: str) -> Optional[WorkflowTemplate]:
    """Look a template up by template id or catalog key."""
    if workflow_id in WORKFLOW_TEMPLATES:
        return WORKFLOW_TEMPLATES[workflow_id].model_copy(deep=True)
    for template in WORKFLOW_TEMPLATES.values():
        if template.id == workflow_id:
            return template.model_copy(deep=True)
    return None


def list_workflows() -> List[WorkflowTemplate]:
    return [template.model_copy(deep=True) for template in WORKFLOW_TEMPLATES.values()]
