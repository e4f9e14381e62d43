"""AutoDev simulation engine: staged multi-agent code-generation pipeline."""
from .models import (
    Agent,
    AgentId,
    AgentStatus,
    FileNode,
    GeneratedDirectory,
    GeneratedFile,
    LogEntry,
    LogType,
    RunState,
)
from .config import EngineConfig
from .engine import RunToken, SimulationEngine
from .errors import (
    ConfigError,
    InvalidInputError,
    InvalidTransitionError,
    PathCollisionError,
    SimulationError,
)
from .registry import AGENT_ORDER, AGENTS

__all__ = [
    # Engine
    "SimulationEngine",
    "RunToken",
    "EngineConfig",
    # Models
    "Agent",
    "AgentId",
    "AgentStatus",
    "FileNode",
    "GeneratedDirectory",
    "GeneratedFile",
    "LogEntry",
    "LogType",
    "RunState",
    # Registry
    "AGENTS",
    "AGENT_ORDER",
    # Errors
    "ConfigError",
    "InvalidInputError",
    "InvalidTransitionError",
    "PathCollisionError",
    "SimulationError",
]
