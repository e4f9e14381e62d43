"""AutoDev TUI: Textual application class."""

from __future__ import annotations

import logging
import tempfile
import webbrowser
from pathlib import Path

from textual.app import App

from autodev.engine.engine import SimulationEngine
from autodev.shared.export import export_zip
from autodev.shared.preview import generate_preview_html
from autodev.tui.screens.help import HelpScreen
from autodev.tui.screens.main import MainScreen

logger = logging.getLogger(__name__)


class AutodevApp(App):
    """Terminal UI for the simulated agent pipeline."""

    TITLE = "AutoDev"
    SUB_TITLE = "Agent Pipeline"
    CSS_PATH = Path("styles/app.tcss")

    BINDINGS = [
        ("ctrl+q", "quit", "Quit"),
        ("ctrl+r", "reset_run", "Reset"),
        ("ctrl+s", "export_project", "Export"),
        ("f3", "open_preview", "Preview"),
        ("f1", "open_help", "Help"),
    ]

    def __init__(
        self,
        engine: SimulationEngine | None = None,
        export_dir: Path | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.engine = engine or SimulationEngine()
        self.export_dir = Path(export_dir) if export_dir is not None else Path.cwd()

    def on_mount(self) -> None:
        self.push_screen(MainScreen(self.engine))

    def _main_screen(self) -> MainScreen | None:
        screen = self.screen
        return screen if isinstance(screen, MainScreen) else None

    def action_reset_run(self) -> None:
        screen = self._main_screen()
        if screen is not None:
            screen.reset_run()

    def action_export_project(self) -> Path | None:
        files = self.engine.files
        if not files:
            self.notify("Nothing to export yet", severity="warning")
            return None
        try:
            path = export_zip(files, self.export_dir / f"{files[0].name}.zip")
        except OSError as exc:
            logger.exception("Export failed")
            self.notify(f"Export failed: {exc}", severity="error")
            return None
        screen = self._main_screen()
        if screen is not None:
            screen.terminal_log.write_note(f"Exported to {path}")
        self.notify(f"Exported to {path}")
        return path

    def action_open_preview(self) -> Path | None:
        files = self.engine.files
        if not files:
            self.notify("Nothing to preview yet", severity="warning")
            return None
        with tempfile.NamedTemporaryFile(
            "w", suffix=".html", prefix="autodev-preview-", delete=False, encoding="utf-8",
        ) as fh:
            fh.write(generate_preview_html(files))
            path = Path(fh.name)
        logger.info("Opening preview %s", path)
        webbrowser.open(path.as_uri())
        return path

    def action_open_help(self) -> None:
        if not isinstance(self.screen, HelpScreen):
            self.push_screen(HelpScreen())

    def on_unmount(self) -> None:
        self.engine.reset()
