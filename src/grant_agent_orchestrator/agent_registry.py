"""
Agent registry holding the runtime state of every agent role.
"""

import logging
from typing import Dict, List, Optional

from .models import AgentPerformance, AgentRole, AgentState, AgentStatus, utc_now


ROLE_CAPABILITIES: Dict[AgentRole, List[str]] = {
    AgentRole.ANALYZER: ["data_analysis", "company_profiling", "gap_analysis", "eligibility_check"],
    AgentRole.WRITER: ["draft_generation", "content_creation", "document_formatting"],
    AgentRole.REVIEWER: ["quality_check", "consistency_review", "score_evaluation"],
    AgentRole.RESEARCHER: ["market_research", "competitor_analysis", "trend_identification"],
    AgentRole.STRATEGIST: ["strategy_planning", "positioning", "gap_filling"],
    AgentRole.OPTIMIZER: ["content_optimization", "keyword_enhancement", "learning_integration"],
}


class AgentRegistry:
    """Owns one AgentState per role and the tasks each role has in flight.

    An agent is BUSY while it has at least one task in flight; its
    ``current_task_id`` is the most recently dispatched of those. ERROR is
    sticky: it survives later completions until ``recover`` or ``reset``.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("grant_agent_orchestrator")
        self._agents: Dict[AgentRole, AgentState] = {}
        self._in_flight: Dict[AgentRole, List[str]] = {}
        self.reset()

    @property
    def roster(self) -> List[AgentRole]:
        return list(AgentRole)

    def reset(self) -> None:
        """Put every agent back to IDLE with zeroed counters."""
        self._agents = {
            role: AgentState(role=role, capabilities=list(ROLE_CAPABILITIES[role]))
            for role in AgentRole
        }
        self._in_flight = {role: [] for role in AgentRole}

    def get(self, role: AgentRole) -> AgentState:
        return self._agents[AgentRole(role)]

    def snapshot(self, role: AgentRole) -> AgentState:
        return self.get(role).model_copy(deep=True)

    def snapshots(self) -> List[AgentState]:
        return [self._agents[role].model_copy(deep=True) for role in AgentRole]

    def in_flight(self, role: AgentRole) -> List[str]:
        return list(self._in_flight[AgentRole(role)])

    def mark_busy(self, role: AgentRole, task_id: str) -> None:
        agent = self.get(role)
        self._in_flight[agent.role].append(task_id)
        agent.last_active = utc_now()
        if agent.status == AgentStatus.ERROR:
            self.logger.warning(f"{agent.role.value} is in ERROR state but received task {task_id}")
            return
        agent.status = AgentStatus.BUSY
        agent.current_task_id = task_id

    def mark_completed(self, role: AgentRole, task_id: str, duration_ms: float) -> None:
        agent = self.get(role)
        self._release(agent, task_id)
        agent.tasks_completed += 1
        self._record(agent, success=True, duration_ms=duration_ms)

    def mark_failed(self, role: AgentRole, task_id: str, duration_ms: float) -> None:
        agent = self.get(role)
        self._release(agent, task_id)
        agent.tasks_failed += 1
        agent.status = AgentStatus.ERROR
        agent.current_task_id = None
        self._record(agent, success=False, duration_ms=duration_ms)
        self.logger.warning(f"{agent.role.value} entered ERROR state after task {task_id}")

    def recover(self, role: AgentRole) -> AgentState:
        """Clear an ERROR state; the agent resumes any task still in flight."""
        agent = self.get(role)
        if agent.status != AgentStatus.ERROR:
            return agent
        self._sync_status(agent)
        self.logger.info(f"{agent.role.value} recovered from ERROR state")
        return agent

    def _release(self, agent: AgentState, task_id: str) -> None:
        in_flight = self._in_flight[agent.role]
        if task_id in in_flight:
            in_flight.remove(task_id)
        agent.last_active = utc_now()
        if agent.status != AgentStatus.ERROR:
            self._sync_status(agent)

    def _sync_status(self, agent: AgentState) -> None:
        in_flight = self._in_flight[agent.role]
        if in_flight:
            agent.status = AgentStatus.BUSY
            agent.current_task_id = in_flight[-1]
        else:
            agent.status = AgentStatus.IDLE
            agent.current_task_id = None

    @staticmethod
    def _record(agent: AgentState, success: bool, duration_ms: float) -> None:
        finished = agent.tasks_completed + agent.tasks_failed
        previous = agent.performance
        agent.performance = AgentPerformance(
            success_rate=agent.tasks_completed / finished,
            avg_response_time=previous.avg_response_time + (duration_ms - previous.avg_response_time) / finished,
        )
