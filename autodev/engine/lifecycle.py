"""Agent status state machine.

Defines valid per-agent transitions and enforces them. Invalid
transitions raise InvalidTransitionError rather than silently proceeding.

State Diagram:

    IDLE ──> RUNNING ──┬──> COMPLETED
                       │
                       └──> ERROR

    COMPLETED / ERROR ──> IDLE  (a new run resets every agent)
"""
from __future__ import annotations

from .errors import InvalidTransitionError
from .models import AgentId, AgentStatus

VALID_TRANSITIONS: dict[AgentStatus, set[AgentStatus]] = {
    AgentStatus.IDLE: {
        AgentStatus.RUNNING,
    },
    AgentStatus.RUNNING: {
        AgentStatus.COMPLETED,
        AgentStatus.ERROR,
    },
    AgentStatus.COMPLETED: {
        AgentStatus.IDLE,
    },
    AgentStatus.ERROR: {
        AgentStatus.IDLE,
    },
}

TERMINAL_STATUSES = frozenset({AgentStatus.COMPLETED, AgentStatus.ERROR})


def validate_transition(
    agent_id: AgentId,
    current: AgentStatus,
    target: AgentStatus,
) -> None:
    """Validate a status transition. Raises InvalidTransitionError if invalid."""
    if current == target == AgentStatus.IDLE:
        return
    allowed = VALID_TRANSITIONS.get(current, set())
    if target not in allowed:
        allowed_str = ", ".join(s.value for s in allowed) or "none (terminal)"
        raise InvalidTransitionError(
            agent_id.value,
            current.value,
            target.value,
            f"allowed from {current.value}: {allowed_str}",
        )
