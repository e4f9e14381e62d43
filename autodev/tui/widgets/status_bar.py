"""Status bar: bottom bar showing run state and progress."""

from __future__ import annotations

import time
from typing import Optional

from rich.text import Text
from textual.reactive import reactive
from textual.timer import Timer
from textual.widget import Widget


def _format_elapsed(seconds: float) -> str:
    """Format elapsed seconds into a human-readable string."""
    secs = int(seconds)
    if secs < 60:
        return f"{secs}s"
    m, s = divmod(secs, 60)
    return f"{m}m {s}s"


class StatusBar(Widget):
    """Single-line status bar: project, active agent, run state, files."""

    project: reactive[str] = reactive("—")
    active_agent: reactive[str] = reactive("none")
    status: reactive[str] = reactive("idle")
    file_count: reactive[int] = reactive(0)

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._run_started_at: Optional[float] = None
        self._run_elapsed: Optional[float] = None
        self._elapsed_timer: Timer | None = None

    def watch_status(self, old_value: str, new_value: str) -> None:
        """Track elapsed time while a run is in progress."""
        if new_value == "running" and old_value != "running":
            self._run_started_at = time.monotonic()
            self._run_elapsed = None
            if self._elapsed_timer is None:
                self._elapsed_timer = self.set_interval(1.0, self.refresh)
        elif old_value == "running" and new_value != "running":
            if self._run_started_at is not None and new_value != "idle":
                self._run_elapsed = time.monotonic() - self._run_started_at
            else:
                self._run_elapsed = None
            self._run_started_at = None
            if self._elapsed_timer is not None:
                self._elapsed_timer.stop()
                self._elapsed_timer = None

    def render(self) -> Text:
        status_colors = {
            "idle": "dim",
            "running": "yellow",
            "completed": "green",
            "error": "red bold",
        }
        color = status_colors.get(self.status, "white")

        bar = Text()
        bar.append(f" {self.project} ", style="bold")
        bar.append(" │ ", style="dim")
        bar.append(f"agent: {self.active_agent}", style="cyan")
        bar.append(" │ ", style="dim")
        bar.append(f"{self.file_count} files", style="dim")
        bar.append(" │ ", style="dim")

        status_display = f"● {self.status}"
        if self._run_started_at is not None:
            status_display += f" ({_format_elapsed(time.monotonic() - self._run_started_at)})"
        elif self._run_elapsed is not None:
            status_display += f" ({_format_elapsed(self._run_elapsed)})"
        bar.append(status_display, style=color)
        return bar
