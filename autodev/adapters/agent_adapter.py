"""Agent model adapter: UI-friendly presentation of engine models.

Provides display helpers (icons, labels, colors) for AgentStatus,
LogType and each agent.  Engine models are the single source of truth
(autodev.engine.models); this adapter only adds presentation logic.
"""
from __future__ import annotations

from datetime import datetime

from autodev.engine.models import AgentId, AgentStatus, LogEntry, LogType
from autodev.engine.registry import AGENTS


# ── Status display: icon + color for each agent status ──

STATUS_ICONS: dict[AgentStatus, tuple[str, str]] = {
    AgentStatus.IDLE: ("○", "dim"),
    AgentStatus.RUNNING: ("▶", "green"),
    AgentStatus.COMPLETED: ("✓", "dim green"),
    AgentStatus.ERROR: ("✗", "red"),
}

STATUS_DISPLAY: dict[AgentStatus, tuple[str, str]] = {
    AgentStatus.IDLE: ("○ Idle", "dim"),
    AgentStatus.RUNNING: ("▶ Running", "green"),
    AgentStatus.COMPLETED: ("✓ Completed", "dim green"),
    AgentStatus.ERROR: ("✗ Error", "red"),
}


# ── Per-agent accent colors (Rich color names) ──

AGENT_COLORS: dict[AgentId, str] = {
    AgentId.PARSER: "bright_cyan",
    AgentId.REFINER: "medium_purple1",
    AgentId.CODEGEN: "spring_green2",
    AgentId.FILE: "gold1",
    AgentId.TEST: "deep_sky_blue1",
    AgentId.REVIEWER: "hot_pink",
}

AGENT_ICONS: dict[AgentId, str] = {
    AgentId.PARSER: "\U0001f4c4",  # page
    AgentId.REFINER: "✨",  # sparkles
    AgentId.CODEGEN: "⚙",  # gear
    AgentId.FILE: "\U0001f4c1",  # folder
    AgentId.TEST: "\U0001f9ea",  # test tube
    AgentId.REVIEWER: "\U0001f50d",  # magnifier
}


# ── Log display ──

LOG_TYPE_STYLES: dict[LogType, str] = {
    LogType.INFO: "",
    LogType.SUCCESS: "green",
    LogType.ERROR: "red",
    LogType.WARNING: "yellow",
}


def parse_status(value: str) -> AgentStatus:
    """Parse a status string to AgentStatus; unknown values read as IDLE."""
    try:
        return AgentStatus(value)
    except ValueError:
        return AgentStatus.IDLE


def parse_log_type(value: str) -> LogType:
    try:
        return LogType(value)
    except ValueError:
        return LogType.INFO


def format_time(timestamp: datetime) -> str:
    """HH:MM:SS, 24-hour."""
    return timestamp.strftime("%H:%M:%S")


def escape_markup(text: str) -> str:
    return text.replace("[", "\\[")


def format_log_line(
    timestamp: datetime,
    agent_id: AgentId,
    message: str,
    log_type: LogType,
) -> str:
    """Rich-markup line: ``[HH:MM:SS] [agent] message``."""
    color = AGENT_COLORS.get(agent_id, "white")
    style = LOG_TYPE_STYLES.get(log_type, "")
    body = escape_markup(message)
    if style:
        body = f"[{style}]{body}[/{style}]"
    return (
        f"[dim]\\[{format_time(timestamp)}][/dim] "
        f"[{color}]\\[{agent_id.value}][/{color}] {body}"
    )


def format_entry(entry: LogEntry) -> str:
    return format_log_line(entry.timestamp, entry.agent, entry.message, entry.type)


def agent_label(agent_id: AgentId) -> str:
    """Icon + display name."""
    return f"{AGENT_ICONS[agent_id]} {AGENTS[agent_id].name}"
