"""Main screen: agent grid, job form, explorer, code viewer and log."""

from __future__ import annotations

import asyncio
import logging

from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import Screen
from textual.widgets import Footer, Header

from autodev.adapters.event_bus import EventBus
from autodev.engine.engine import SimulationEngine
from autodev.engine.file_tree import find_node
from autodev.engine.models import GeneratedFile
from autodev.tui.handlers.event_processor import EventProcessor
from autodev.tui.widgets.agent_grid import AgentGrid
from autodev.tui.widgets.code_viewer import CodeViewer
from autodev.tui.widgets.file_explorer import FileExplorer
from autodev.tui.widgets.job_form import JobForm
from autodev.tui.widgets.status_bar import StatusBar
from autodev.tui.widgets.terminal_log import TerminalLog

logger = logging.getLogger(__name__)


class MainScreen(Screen):
    """Primary workspace driving one SimulationEngine."""

    def __init__(self, engine: SimulationEngine, **kwargs) -> None:
        super().__init__(**kwargs)
        self.engine = engine
        self.bus = EventBus()
        self.event_processor = EventProcessor(self)
        self._unsubscribe = None
        self._event_consumer_task: asyncio.Task | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield AgentGrid(id="agent-grid")
        with Horizontal(id="workspace"):
            with Vertical(id="left-pane"):
                yield JobForm(id="job-form")
                yield FileExplorer(id="file-explorer")
            yield CodeViewer(id="code-viewer")
            yield TerminalLog(id="terminal-log")
        yield StatusBar(id="status-bar")
        yield Footer()

    def on_mount(self) -> None:
        self._unsubscribe = self.engine.subscribe(self.bus.make_listener())
        self._event_consumer_task = asyncio.create_task(
            self.event_processor.consume_events(), name="autodev-tui-events",
        )
        self.code_viewer.clear_file()
        self.terminal_log.write_note("Ready. Enter a project name and a user story, then press Generate.")

    def on_unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.bus.close()
        if self._event_consumer_task is not None:
            self._event_consumer_task.cancel()
            self._event_consumer_task = None

    # ── Widget accessors ──

    @property
    def agent_grid(self) -> AgentGrid:
        return self.query_one("#agent-grid", AgentGrid)

    @property
    def job_form(self) -> JobForm:
        return self.query_one("#job-form", JobForm)

    @property
    def file_explorer(self) -> FileExplorer:
        return self.query_one("#file-explorer", FileExplorer)

    @property
    def code_viewer(self) -> CodeViewer:
        return self.query_one("#code-viewer", CodeViewer)

    @property
    def terminal_log(self) -> TerminalLog:
        return self.query_one("#terminal-log", TerminalLog)

    @property
    def status_bar(self) -> StatusBar:
        return self.query_one("#status-bar", StatusBar)

    # ── Commands ──

    def start_run(self, name: str, story: str) -> bool:
        started = self.engine.start(name, story)
        if not started:
            logger.info("Start rejected from TUI (running=%s)", self.engine.is_running)
        return started

    def reset_run(self) -> None:
        self.engine.reset()

    def open_path(self, path: str | None) -> None:
        if path is None:
            return
        node = find_node(self.engine.files, path)
        if isinstance(node, GeneratedFile):
            self.code_viewer.show_file(node)

    # ── Message handlers ──

    def on_job_form_generate_requested(self, event: JobForm.GenerateRequested) -> None:
        self.start_run(event.project_name, event.story)

    def on_job_form_reset_requested(self, event: JobForm.ResetRequested) -> None:
        self.reset_run()

    def on_file_explorer_file_selected(self, event: FileExplorer.FileSelected) -> None:
        self.code_viewer.show_file(event.file)
