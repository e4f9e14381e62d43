"""Log message catalog for each agent.

Selection is pure: callers pass the random.Random to draw from, so a
seeded generator reproduces the exact same log stream.
"""
from __future__ import annotations

import random
from dataclasses import dataclass

from .models import AgentId

STAGE_MESSAGES: dict[AgentId, tuple[str, ...]] = {
    AgentId.PARSER: (
        "Tokenizing user story for '{name}'",
        "Extracted {requirements} functional requirements",
        "Identified primary entity: {entity}",
        "Detected features: {features}",
        "Matched story keywords: {keywords}",
        "Mapping acceptance criteria to endpoints",
    ),
    AgentId.REFINER: (
        "Expanding requirements into implementation prompts",
        "Adding type-safety constraints for {entity} model",
        "Resolving ambiguous phrasing in story",
        "Optimizing prompt context window",
        "Injecting project conventions for {features}",
    ),
    AgentId.CODEGEN: (
        "Generating {entity} data model",
        "Scaffolding entry point src/index.ts",
        "Writing handlers for {features}",
        "Applying lint rules to generated sources",
        "Synthesizing dependency manifest",
    ),
    AgentId.FILE: (
        "Creating project directory {slug}/",
        "Writing package.json and tsconfig.json",
        "Organizing sources under src/",
        "Persisting test fixtures",
        "Verifying file tree integrity",
    ),
    AgentId.TEST: (
        "Installing test dependencies",
        "Running unit tests for {entity}",
        "Collecting coverage from {file_count} files",
        "All assertions passed in test suite",
        "Checking edge cases for {features}",
    ),
    AgentId.REVIEWER: (
        "Reviewing naming conventions",
        "Checking error handling paths",
        "Scanning for security anti-patterns",
        "Evaluating test coverage thresholds",
        "Summarizing review for {name}",
    ),
}


FAILURE_MESSAGES: dict[AgentId, tuple[str, ...]] = {
    AgentId.PARSER: (
        "story is too ambiguous to extract requirements",
        "could not identify a primary entity",
    ),
    AgentId.REFINER: (
        "prompt exceeded the context budget",
        "conflicting constraints for {entity} model",
    ),
    AgentId.CODEGEN: (
        "generated code failed type checking",
        "unresolved import in src/index.ts",
    ),
    AgentId.FILE: (
        "could not write project directory {slug}/",
        "file tree integrity check failed",
    ),
    AgentId.TEST: (
        "2 assertions failed in {entity} suite",
        "test runner timed out",
    ),
    AgentId.REVIEWER: (
        "quality score below threshold",
        "security scan flagged unsafe input handling",
    ),
}


@dataclass(frozen=True)
class MessageContext:
    """Values interpolated into message templates."""
    name: str
    slug: str
    entity: str
    features: str
    requirements: int
    file_count: int = 0
    keywords: str = "none"

    def as_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "slug": self.slug,
            "entity": self.entity,
            "features": self.features,
            "requirements": self.requirements,
            "file_count": self.file_count,
            "keywords": self.keywords,
        }


def select_messages(
    agent_id: AgentId,
    rng: random.Random,
    context: MessageContext,
    count: int = 2,
) -> list[str]:
    """Pick *count* distinct messages for *agent_id*, kept in catalog order."""
    templates = STAGE_MESSAGES[agent_id]
    count = max(0, min(count, len(templates)))
    indices = sorted(rng.sample(range(len(templates)), count))
    values = context.as_dict()
    return [templates[i].format(**values) for i in indices]


def select_failure(
    agent_id: AgentId,
    rng: random.Random,
    context: MessageContext,
) -> str:
    """Pick the reason shown when *agent_id* fails."""
    return rng.choice(FAILURE_MESSAGES[agent_id]).format(**context.as_dict())
