"""Terminal log: RichLog of the agent log, one line per entry."""

from __future__ import annotations

from datetime import datetime

from textual.widgets import RichLog

from autodev.adapters.agent_adapter import format_entry, format_log_line, parse_log_type
from autodev.adapters.events import LogAppended
from autodev.engine.models import AgentId, LogEntry


class TerminalLog(RichLog):
    """Append-only view of the engine's log entries."""

    def __init__(self, **kwargs) -> None:
        super().__init__(
            auto_scroll=True,
            wrap=True,
            markup=True,
            highlight=False,
            max_lines=5000,
            **kwargs,
        )
        self.entry_count = 0

    def write_entry(self, entry: LogEntry) -> None:
        self.write(format_entry(entry))
        self.entry_count += 1

    def write_event(self, event: LogAppended) -> None:
        try:
            timestamp = datetime.fromisoformat(event.timestamp)
        except ValueError:
            timestamp = datetime.now()
        self.write(format_log_line(
            timestamp,
            AgentId(event.agent_id),
            event.message,
            parse_log_type(event.log_type),
        ))
        self.entry_count += 1

    def write_note(self, text: str) -> None:
        """A UI-only line that is not part of the agent log."""
        self.write(f"[dim]{text}[/dim]")

    def reset_log(self) -> None:
        self.clear()
        self.entry_count = 0
