"""Job form: project name, user story, and run controls."""

from __future__ import annotations

from textual import on
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.widgets import Button, Input, Label, TextArea

from autodev.shared.examples import EXAMPLE_STORIES


class JobForm(Vertical):
    """Collects (name, story) and posts Generate / Reset requests."""

    class GenerateRequested(Message):
        def __init__(self, project_name: str, story: str) -> None:
            super().__init__()
            self.project_name = project_name
            self.story = story

    class ResetRequested(Message):
        pass

    def compose(self) -> ComposeResult:
        yield Label("Project name", classes="form-label")
        yield Input(placeholder="my-awesome-app", id="project-name")
        yield Label("User story", classes="form-label")
        yield TextArea(id="user-story")
        yield Label("Examples", classes="form-label")
        with Horizontal(id="example-buttons"):
            for index in range(len(EXAMPLE_STORIES)):
                yield Button(f"#{index + 1}", id=f"example-{index}", classes="example")
        with Horizontal(id="run-buttons"):
            yield Button("Generate", id="generate", variant="primary")
            yield Button("Reset", id="reset", variant="error")

    @property
    def project_name(self) -> str:
        return self.query_one("#project-name", Input).value

    @property
    def story(self) -> str:
        return self.query_one("#user-story", TextArea).text

    def fill(self, name: str | None = None, story: str | None = None) -> None:
        if name is not None:
            self.query_one("#project-name", Input).value = name
        if story is not None:
            self.query_one("#user-story", TextArea).load_text(story)

    def set_running(self, running: bool) -> None:
        """Lock the inputs while a run is in progress."""
        self.query_one("#generate", Button).disabled = running
        self.query_one("#project-name", Input).disabled = running
        self.query_one("#user-story", TextArea).read_only = running
        for button in self.query(".example").results(Button):
            button.disabled = running

    @on(Button.Pressed, ".example")
    def _on_example(self, event: Button.Pressed) -> None:
        event.stop()
        index = int((event.button.id or "example-0").rsplit("-", 1)[1])
        self.fill(story=EXAMPLE_STORIES[index])

    @on(Button.Pressed, "#generate")
    def _on_generate(self, event: Button.Pressed) -> None:
        event.stop()
        self.post_message(self.GenerateRequested(self.project_name, self.story))

    @on(Button.Pressed, "#reset")
    def _on_reset(self, event: Button.Pressed) -> None:
        event.stop()
        self.post_message(self.ResetRequested())

    @on(Input.Submitted, "#project-name")
    def _on_name_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.post_message(self.GenerateRequested(self.project_name, self.story))
