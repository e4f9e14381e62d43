"""Agent registry: the six pipeline agents, in run order."""
from __future__ import annotations

from types import MappingProxyType

from .models import Agent, AgentId

AGENT_ORDER: tuple[AgentId, ...] = (
    AgentId.PARSER,
    AgentId.REFINER,
    AgentId.CODEGEN,
    AgentId.FILE,
    AgentId.TEST,
    AgentId.REVIEWER,
)

AGENTS: MappingProxyType[AgentId, Agent] = MappingProxyType({
    AgentId.PARSER: Agent(
        id=AgentId.PARSER,
        name="StoryParserAgent",
        description="Parses user stories into structured requirements",
    ),
    AgentId.REFINER: Agent(
        id=AgentId.REFINER,
        name="PromptRefinerAgent",
        description="Refines prompts for optimal code generation",
    ),
    AgentId.CODEGEN: Agent(
        id=AgentId.CODEGEN,
        name="CodeGenAgent",
        description="Generates production-ready code",
    ),
    AgentId.FILE: Agent(
        id=AgentId.FILE,
        name="FileManagerAgent",
        description="Manages file system operations",
    ),
    AgentId.TEST: Agent(
        id=AgentId.TEST,
        name="TestRunnerAgent",
        description="Runs tests and validates code",
    ),
    AgentId.REVIEWER: Agent(
        id=AgentId.REVIEWER,
        name="CodeReviewerAgent",
        description="Reviews code quality and best practices",
    ),
})


def get_agent(agent_id: AgentId | str) -> Agent:
    """Look up an agent by id (enum or raw string)."""
    return AGENTS[parse_agent_id(agent_id)]


def parse_agent_id(value: AgentId | str) -> AgentId:
    """Parse a string to AgentId. Raises ValueError for unknown ids."""
    if isinstance(value, AgentId):
        return value
    try:
        return AgentId(str(value).strip().lower())
    except ValueError:
        known = ", ".join(a.value for a in AGENT_ORDER)
        raise ValueError(f"Unknown agent '{value}'. Known agents: {known}") from None


def position(agent_id: AgentId) -> int:
    """Zero-based position of *agent_id* in the run order."""
    return AGENT_ORDER.index(agent_id)


def is_last(agent_id: AgentId) -> bool:
    return agent_id == AGENT_ORDER[-1]


def next_agent(agent_id: AgentId) -> AgentId | None:
    """The agent after *agent_id*, or None for the last one."""
    index = position(agent_id) + 1
    return AGENT_ORDER[index] if index < len(AGENT_ORDER) else None
