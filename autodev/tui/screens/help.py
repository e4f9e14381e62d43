"""Help modal listing key bindings and the pipeline stages."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Static

from autodev.engine.registry import AGENT_ORDER, AGENTS


def _agent_lines() -> str:
    return "\n".join(
        f"{index}. {AGENTS[agent_id].name}: {AGENTS[agent_id].description}"
        for index, agent_id in enumerate(AGENT_ORDER, start=1)
    )


class HelpScreen(ModalScreen[None]):
    """Display usage instructions and keyboard shortcuts."""

    BINDINGS = [
        ("escape", "close", "Close"),
        ("f1", "close", "Close"),
    ]

    def compose(self) -> ComposeResult:
        with Vertical(id="help-dialog"):
            yield Static(
                "[bold $primary]AutoDev Help[/bold $primary]",
                id="help-title",
                markup=True,
            )
            yield Static(
                "[bold]Running a job[/bold]\n"
                "- Enter a project name and a user story, or pick an example\n"
                "- Press `Generate`; agents run one at a time, in order\n"
                "- A failed stage stops the pipeline; later agents stay idle\n"
                "- Click a file in the explorer to view it\n\n"
                "[bold]Keyboard shortcuts[/bold]\n"
                "- `Ctrl+R`: reset (cancels a run in progress)\n"
                "- `Ctrl+S`: export the project as a zip\n"
                "- `F3`: open the live preview in a browser\n"
                "- `F1`: help\n"
                "- `Ctrl+Q`: quit\n\n"
                "[bold]Pipeline[/bold]\n"
                + _agent_lines(),
                id="help-body",
                markup=True,
            )
            yield Button("Close", id="help-close", variant="primary")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "help-close":
            self.dismiss(None)

    def action_close(self) -> None:
        self.dismiss(None)
