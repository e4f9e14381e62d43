"""Event processor for MainScreen.

Consumes engine events from the EventBus and updates the agent grid,
terminal log, file explorer, code viewer and status bar.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from autodev.adapters.agent_adapter import parse_status
from autodev.adapters.events import (
    AgentStatusChanged,
    EngineEvent,
    FilesEmitted,
    LogAppended,
    RunFinished,
    RunReset,
    RunStarted,
)
from autodev.engine.file_tree import flatten_files
from autodev.engine.models import AgentId, AgentStatus
from autodev.engine.registry import AGENT_ORDER

if TYPE_CHECKING:
    from autodev.tui.screens.main import MainScreen

logger = logging.getLogger(__name__)


class EventProcessor:
    """Processes engine events on behalf of *MainScreen*.

    Events whose generation is not the engine's current one belong to a
    run that was reset or replaced and are skipped.
    """

    def __init__(self, screen: MainScreen) -> None:
        self._screen = screen
        self.processed = 0
        self.skipped = 0

    async def consume_events(self) -> None:
        """Run until the bus is closed or the task is cancelled."""
        async for event in self._screen.bus.consume():
            try:
                self.process(event)
            except Exception:
                logger.exception("Failed to process %s", event.event_type)

    def process(self, event: EngineEvent) -> None:
        engine = self._screen.engine
        if event.generation != engine.generation:
            self.skipped += 1
            logger.debug(
                "Skipping stale %s (generation %d, current %d)",
                event.event_type, event.generation, engine.generation,
            )
            return
        self.processed += 1

        if isinstance(event, RunStarted):
            self._handle_run_started(event)
        elif isinstance(event, AgentStatusChanged):
            self._handle_status_changed(event)
        elif isinstance(event, LogAppended):
            self._screen.terminal_log.write_event(event)
        elif isinstance(event, FilesEmitted):
            self._handle_files_emitted(event)
        elif isinstance(event, RunFinished):
            self._handle_run_finished(event)
        elif isinstance(event, RunReset):
            self._handle_run_reset()

    def _handle_run_started(self, event: RunStarted) -> None:
        s = self._screen
        s.terminal_log.reset_log()
        s.file_explorer.show_files(())
        s.code_viewer.clear_file()
        s.agent_grid.show_statuses({}, None)
        s.job_form.set_running(True)
        s.status_bar.project = event.project_name
        s.status_bar.file_count = 0
        s.status_bar.active_agent = "none"
        s.status_bar.status = "running"

    def _handle_status_changed(self, event: AgentStatusChanged) -> None:
        s = self._screen
        agent_id = AgentId(event.agent_id)
        s.agent_grid.card(agent_id).status = parse_status(event.new_status)
        for other in AGENT_ORDER:
            s.agent_grid.card(other).active = other.value == event.active_agent
        s.status_bar.active_agent = event.active_agent or "none"

    def _handle_files_emitted(self, event: FilesEmitted) -> None:
        s = self._screen
        files = s.engine.files
        s.file_explorer.show_files(files)
        s.status_bar.file_count = len(flatten_files(files))
        if s.code_viewer.current_path in event.overwritten:
            s.open_path(s.code_viewer.current_path)

    def _handle_run_finished(self, event: RunFinished) -> None:
        s = self._screen
        s.job_form.set_running(False)
        s.status_bar.active_agent = "none"
        s.status_bar.status = "completed" if event.success else "error"
        if event.success and s.code_viewer.current_path is None:
            files = flatten_files(s.engine.files)
            if files:
                s.code_viewer.show_file(files[0])

    def _handle_run_reset(self) -> None:
        s = self._screen
        s.terminal_log.reset_log()
        s.file_explorer.show_files(())
        s.code_viewer.clear_file()
        s.agent_grid.show_statuses({a: AgentStatus.IDLE for a in AGENT_ORDER}, None)
        s.job_form.set_running(False)
        s.status_bar.project = "—"
        s.status_bar.active_agent = "none"
        s.status_bar.file_count = 0
        s.status_bar.status = "idle"
