"""Pipeline state machine.

Pure transitions over RunState: each method takes the current snapshot
and returns the next one, leaving the caller (SimulationEngine) to
commit it.  Agents run strictly one at a time in AGENT_ORDER and the
pipeline stops at the first agent that settles with ERROR.
"""
from __future__ import annotations

import logging
from dataclasses import replace

from . import registry
from .errors import InvalidTransitionError
from .lifecycle import TERMINAL_STATUSES, validate_transition
from .models import AgentId, AgentStatus, RunState

logger = logging.getLogger(__name__)


class PipelineStateMachine:
    """Enforces the sequential agent pipeline over RunState snapshots."""

    def begin_run(self, state: RunState) -> RunState | None:
        """Open a new run.

        Returns None (and logs a warning) when a run is already in
        progress; the caller treats that as a rejected invocation.
        """
        if state.is_running:
            logger.warning(
                "begin_run rejected: run already in progress (active=%s)",
                state.active_agent.value if state.active_agent else None,
            )
            return None
        statuses = {agent_id: AgentStatus.IDLE for agent_id in registry.AGENT_ORDER}
        return replace(
            state,
            is_running=True,
            active_agent=None,
            agent_statuses=statuses,
        )

    def advance(self, state: RunState, agent_id: AgentId) -> RunState:
        """Mark *agent_id* running and make it the active agent."""
        if not state.is_running:
            raise InvalidTransitionError(
                agent_id.value, state.status_of(agent_id).value,
                AgentStatus.RUNNING.value, "no run in progress",
            )
        index = registry.position(agent_id)
        for earlier in registry.AGENT_ORDER[:index]:
            if state.status_of(earlier) != AgentStatus.COMPLETED:
                raise InvalidTransitionError(
                    agent_id.value, state.status_of(agent_id).value,
                    AgentStatus.RUNNING.value,
                    f"{earlier.value} is {state.status_of(earlier).value}",
                )
        validate_transition(agent_id, state.status_of(agent_id), AgentStatus.RUNNING)
        logger.debug("advance %s", agent_id.value)
        return replace(
            state,
            active_agent=agent_id,
            agent_statuses=state.with_statuses({agent_id: AgentStatus.RUNNING}),
        )

    def settle(self, state: RunState, agent_id: AgentId, outcome: AgentStatus) -> RunState:
        """Mark *agent_id* COMPLETED or ERROR.

        ERROR ends the run immediately; downstream agents stay IDLE.
        COMPLETED on the last agent ends the run successfully.
        """
        if outcome not in TERMINAL_STATUSES:
            raise InvalidTransitionError(
                agent_id.value, state.status_of(agent_id).value, outcome.value,
                "settle outcome must be completed or error",
            )
        validate_transition(agent_id, state.status_of(agent_id), outcome)
        logger.debug("settle %s -> %s", agent_id.value, outcome.value)
        statuses = state.with_statuses({agent_id: outcome})
        if outcome == AgentStatus.ERROR or registry.is_last(agent_id):
            return replace(
                state,
                is_running=False,
                active_agent=None,
                agent_statuses=statuses,
            )
        return replace(state, agent_statuses=statuses)

    def handoff(self, state: RunState, agent_id: AgentId) -> RunState:
        """Complete *agent_id* and start the next agent in one step.

        Observers never see a running pipeline with no running agent.
        On the last agent this is the same as settling it COMPLETED.
        """
        settled = self.settle(state, agent_id, AgentStatus.COMPLETED)
        following = registry.next_agent(agent_id)
        if following is None:
            return settled
        return self.advance(settled, following)

    @staticmethod
    def running_agents(state: RunState) -> list[AgentId]:
        return [
            agent_id for agent_id in registry.AGENT_ORDER
            if state.status_of(agent_id) == AgentStatus.RUNNING
        ]

    @staticmethod
    def failed_agent(state: RunState) -> AgentId | None:
        for agent_id in registry.AGENT_ORDER:
            if state.status_of(agent_id) == AgentStatus.ERROR:
                return agent_id
        return None

    @staticmethod
    def succeeded(state: RunState) -> bool:
        """True when every agent is COMPLETED."""
        return all(
            state.status_of(agent_id) == AgentStatus.COMPLETED
            for agent_id in registry.AGENT_ORDER
        )
