"""Core data models for the simulation engine.

All dataclasses, enums, and type aliases. Single source of truth
to avoid circular imports.
"""
from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Union


class AgentId(str, Enum):
    """The six pipeline stages, in declaration order."""
    PARSER = "parser"
    REFINER = "refiner"
    CODEGEN = "codegen"
    FILE = "file"
    TEST = "test"
    REVIEWER = "reviewer"


class AgentStatus(str, Enum):
    """Per-agent status. See lifecycle.py for transition rules."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class LogType(str, Enum):
    """Severity of an agent log entry."""
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"


def _make_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Agent:
    """Static identity of one pipeline agent."""
    id: AgentId
    name: str
    description: str


@dataclass(frozen=True)
class LogEntry:
    """One line of the agent log. Immutable once appended."""
    agent: AgentId
    message: str
    type: LogType = LogType.INFO
    timestamp: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=_make_id)

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "agent": self.agent.value,
            "message": self.message,
            "type": self.type.value,
        }


# ── File tree ──
#
# A node is either a GeneratedFile (content, no children) or a
# GeneratedDirectory (children, no content).  Paths use "/" and equal
# the ancestor names joined together.

PATH_SEPARATOR = "/"


@dataclass(frozen=True)
class GeneratedFile:
    name: str
    path: str
    content: str = ""

    @property
    def type(self) -> str:
        return "file"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path": self.path,
            "type": self.type,
            "content": self.content,
        }


@dataclass(frozen=True)
class GeneratedDirectory:
    name: str
    path: str
    children: tuple[FileNode, ...] = ()

    @property
    def type(self) -> str:
        return "directory"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path": self.path,
            "type": self.type,
            "children": [child.to_dict() for child in self.children],
        }


FileNode = Union[GeneratedFile, GeneratedDirectory]


def join_path(parent: str, name: str) -> str:
    """Join a parent path and a child name with the tree separator."""
    if not parent:
        return name
    return f"{parent}{PATH_SEPARATOR}{name}"


def make_file(path: str, content: str = "") -> GeneratedFile:
    """Build a file node from its full path."""
    return GeneratedFile(
        name=path.rsplit(PATH_SEPARATOR, 1)[-1],
        path=path,
        content=content,
    )


def make_directory(path: str, children: list[FileNode] | tuple[FileNode, ...] = ()) -> GeneratedDirectory:
    """Build a directory node from its full path."""
    return GeneratedDirectory(
        name=path.rsplit(PATH_SEPARATOR, 1)[-1],
        path=path,
        children=tuple(children),
    )


# ── Run state ──


def _idle_statuses() -> Mapping[AgentId, AgentStatus]:
    return MappingProxyType({agent_id: AgentStatus.IDLE for agent_id in AgentId})


@dataclass(frozen=True)
class RunState:
    """Everything an observer can see about the current run.

    Owned exclusively by SimulationEngine, which replaces the whole
    value on every commit.  The zero value (``RunState()``) is the
    state at application start and after ``reset()``.
    """
    is_running: bool = False
    active_agent: AgentId | None = None
    agent_statuses: Mapping[AgentId, AgentStatus] = field(default_factory=_idle_statuses)
    logs: tuple[LogEntry, ...] = ()
    files: tuple[FileNode, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.agent_statuses, MappingProxyType):
            object.__setattr__(
                self, "agent_statuses", MappingProxyType(dict(self.agent_statuses)),
            )

    def status_of(self, agent_id: AgentId) -> AgentStatus:
        return self.agent_statuses[agent_id]

    def with_statuses(self, updates: Mapping[AgentId, AgentStatus]) -> dict[AgentId, AgentStatus]:
        """Return a plain dict of statuses with *updates* applied."""
        merged = dict(self.agent_statuses)
        merged.update(updates)
        return merged

    def to_dict(self) -> dict:
        return {
            "is_running": self.is_running,
            "active_agent": self.active_agent.value if self.active_agent else None,
            "agent_statuses": {
                agent_id.value: status.value
                for agent_id, status in self.agent_statuses.items()
            },
            "logs": [entry.to_dict() for entry in self.logs],
            "files": [node.to_dict() for node in self.files],
        }
