"""Exception hierarchy for the simulation engine.

Specific exceptions for each failure mode. None of them escape
SimulationEngine: a run turns them into log entries and statuses.
"""
from __future__ import annotations


class SimulationError(Exception):
    """Base exception for all simulation errors."""


class InvalidTransitionError(SimulationError, ValueError):
    """An agent status change the pipeline does not allow."""
    def __init__(self, agent_id: str, current: str, target: str, reason: str = ""):
        self.agent_id = agent_id
        self.current = current
        self.target = target
        self.reason = reason
        message = f"Invalid transition for {agent_id}: {current} -> {target}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class PathCollisionError(SimulationError):
    """A new node's path is already taken by a node of another type."""
    def __init__(self, path: str, existing_type: str, new_type: str):
        self.path = path
        self.existing_type = existing_type
        self.new_type = new_type
        super().__init__(
            f"Cannot place {new_type} at '{path}': "
            f"a {existing_type} already exists there"
        )


class InvalidInputError(SimulationError):
    """start() was called with an empty project name or story."""
    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"{field_name} must not be empty")


class ConfigError(SimulationError):
    """A configuration value is out of range or unknown."""
    def __init__(self, key: str, value: object, reason: str):
        self.key = key
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid config {key}={value!r}: {reason}")
