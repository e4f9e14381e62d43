"""Event types emitted by the simulation engine.

Each event corresponds to an engine listener dict, parsed into
a typed dataclass for safe consumption by the TUI and the server.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class EngineEvent:
    """Base event from the simulation engine."""
    event_type: str = ""
    generation: int = 0


@dataclass
class RunStarted(EngineEvent):
    event_type: str = "run_started"
    project_name: str = ""
    story: str = ""


@dataclass
class AgentStatusChanged(EngineEvent):
    event_type: str = "agent_status_changed"
    agent_id: str = ""
    old_status: str = ""
    new_status: str = ""
    active_agent: str | None = None


@dataclass
class LogAppended(EngineEvent):
    event_type: str = "log_appended"
    log_id: str = ""
    timestamp: str = ""
    agent_id: str = ""
    message: str = ""
    log_type: str = "info"


@dataclass
class FilesEmitted(EngineEvent):
    event_type: str = "files_emitted"
    agent_id: str = ""
    paths: list = field(default_factory=list)
    overwritten: list = field(default_factory=list)


@dataclass
class RunFinished(EngineEvent):
    event_type: str = "run_finished"
    success: bool = True
    failed_agent: str | None = None
    file_count: int = 0
    duration_seconds: float = 0.0


@dataclass
class RunReset(EngineEvent):
    event_type: str = "run_reset"


# Map of event type strings to dataclass constructors
_EVENT_MAP: dict[str, type[EngineEvent]] = {
    "run_started": RunStarted,
    "agent_status_changed": AgentStatusChanged,
    "log_appended": LogAppended,
    "files_emitted": FilesEmitted,
    "run_finished": RunFinished,
    "run_reset": RunReset,
}


def event_to_dict(event: EngineEvent) -> dict[str, Any]:
    """Convert a typed event dataclass to a plain dict for JSON serialization."""
    d: dict[str, Any] = {}
    for f in event.__dataclass_fields__:
        val = getattr(event, f)
        if val is not None:
            d[f] = val
    # Use "event" key instead of "event_type" for consistency with engine listeners
    if "event_type" in d:
        d["event"] = d.pop("event_type")
    return d


def dict_to_event(data: dict[str, Any]) -> EngineEvent:
    """Convert an engine listener dict to a typed event dataclass."""
    event_type = data.get("event", "")
    cls = _EVENT_MAP.get(event_type, EngineEvent)
    # Filter dict keys to only those the dataclass accepts
    valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    # Map "event" key to "event_type" field
    if "event" in data and "event_type" not in filtered:
        filtered["event_type"] = data["event"]
    return cls(**filtered)
