"""Stage outcome policies: decide whether a stage completes or fails."""
from __future__ import annotations

import random
from typing import Protocol

from .models import AgentId, AgentStatus


class OutcomePolicy(Protocol):
    def __call__(self, agent_id: AgentId, rng: random.Random) -> AgentStatus: ...


class AlwaysComplete:
    """Every stage completes."""

    def __call__(self, agent_id: AgentId, rng: random.Random) -> AgentStatus:
        return AgentStatus.COMPLETED

    def __repr__(self) -> str:
        return "AlwaysComplete()"


class FailAt:
    """Force one stage to fail."""

    def __init__(self, agent_id: AgentId) -> None:
        self.agent_id = agent_id

    def __call__(self, agent_id: AgentId, rng: random.Random) -> AgentStatus:
        if agent_id == self.agent_id:
            return AgentStatus.ERROR
        return AgentStatus.COMPLETED

    def __repr__(self) -> str:
        return f"FailAt({self.agent_id.value!r})"


class RandomFailures:
    """Each stage fails independently with probability *rate*."""

    def __init__(self, rate: float) -> None:
        self.rate = rate

    def __call__(self, agent_id: AgentId, rng: random.Random) -> AgentStatus:
        if self.rate > 0 and rng.random() < self.rate:
            return AgentStatus.ERROR
        return AgentStatus.COMPLETED

    def __repr__(self) -> str:
        return f"RandomFailures({self.rate})"


def policy_from_settings(
    fail_stage: AgentId | None,
    failure_rate: float,
) -> OutcomePolicy:
    """A forced failure wins over a random failure rate."""
    if fail_stage is not None:
        return FailAt(fail_stage)
    if failure_rate > 0:
        return RandomFailures(failure_rate)
    return AlwaysComplete()
